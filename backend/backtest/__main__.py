"""CLI entry point for the backtesting system.

Usage:
    python -m backtest --start 2025-01-01 --end 2025-03-31
    python -m backtest --instruments XBTUSD,ETHUSD --strategies macd-crossover,ema-crossover \
        --timeframe 4h --start 2025-01-01 --end 2025-06-30
    python -m backtest --source db --download --start 2025-01-01 --end 2025-03-31 --save
    python -m backtest --list-runs
    python -m backtest --delete-run abc123
"""

import argparse
import asyncio
import logging
import os
import sys
from datetime import datetime, timezone

# Add backend to Python path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app.clients.kraken_rest import KrakenRestClient
from core.models.strategy import StrategyKind

from backtest.config import BacktestConfig, get_backtest_settings
from backtest.downloader import CandleDownloader
from backtest.models import BacktestStatus
from backtest.report import ReportFormatter
from backtest.runner import WARMUP_CANDLES, BacktestRunner
from backtest.storage.candle_source import FetcherCandleSource, PostgresCandleSource
from backtest.storage.database import BacktestDatabase
from backtest.storage.run_repo import InMemoryBacktestRunRepo, PostgresBacktestRunRepo
from core.models.timeframe import timeframe_delta

DEFAULT_INSTRUMENTS = "XBTUSD,ETHUSD"
DEFAULT_STRATEGIES = ",".join(k.value for k in StrategyKind.selectable())


def parse_date(date_str: str) -> datetime:
    """Parse YYYY-MM-DD to timezone-aware datetime."""
    try:
        dt = datetime.strptime(date_str, "%Y-%m-%d")
        return dt.replace(tzinfo=timezone.utc)
    except ValueError:
        raise argparse.ArgumentTypeError(
            f"Invalid date format: {date_str} (expected YYYY-MM-DD)"
        )


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Backtest signal strategies over historical candles",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m backtest --start 2025-01-01 --end 2025-03-31
  python -m backtest --instruments XBTUSD --strategies trend-following --timeframe 4h \\
      --start 2025-01-01 --end 2025-06-30 --output result.json
  python -m backtest --list-runs
        """,
    )

    # Management commands
    parser.add_argument("--list-runs", action="store_true", help="List saved backtest runs")
    parser.add_argument("--delete-run", type=str, default=None, help="Delete a saved run by ID")

    # Backtest parameters
    parser.add_argument(
        "--instruments",
        type=str,
        default=DEFAULT_INSTRUMENTS,
        help=f"Comma-separated Kraken pairs (default: {DEFAULT_INSTRUMENTS})",
    )
    parser.add_argument(
        "--strategies",
        type=str,
        default=DEFAULT_STRATEGIES,
        help="Comma-separated strategy names (default: all)",
    )
    parser.add_argument("--timeframe", type=str, default="1h", help="Candle timeframe (default: 1h)")
    parser.add_argument("--start", type=parse_date, default=None, help="Start date (YYYY-MM-DD)")
    parser.add_argument("--end", type=parse_date, default=None, help="End date (YYYY-MM-DD)")
    parser.add_argument("--balance", type=float, default=10_000.0, help="Initial balance")
    parser.add_argument("--max-position", type=float, default=10.0, help="Max position size, %% of balance")
    parser.add_argument("--stop-loss", type=float, default=2.0, help="Stop-loss %%")
    parser.add_argument("--take-profit", type=float, default=4.0, help="Take-profit %%")
    parser.add_argument("--min-confidence", type=float, default=60.0, help="Minimum signal confidence")

    # Data and persistence
    parser.add_argument(
        "--source",
        choices=("kraken", "db"),
        default="kraken",
        help="Candle source: live Kraken API or the PostgreSQL candle cache",
    )
    parser.add_argument(
        "--download",
        action="store_true",
        help="Refresh the PostgreSQL candle cache from Kraken first",
    )
    parser.add_argument("--save", action="store_true", help="Save the run to PostgreSQL")
    parser.add_argument("--output", "-o", type=str, default=None, help="Output file path for JSON results")
    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose logging")
    return parser.parse_args(argv)


def _needs_database(args: argparse.Namespace) -> bool:
    return bool(
        args.list_runs or args.delete_run or args.save or args.download or args.source == "db"
    )


async def cmd_list_runs(db: BacktestDatabase) -> None:
    """List all backtest runs."""
    repo = PostgresBacktestRunRepo(db.pool)
    runs = await repo.list_runs()

    if not runs:
        print("No backtest runs found.")
        return

    print(
        f"\n{'ID':<18} {'Status':<10} {'Period':<25} "
        f"{'Trades':>7} {'Win%':>7} {'Return':>9} {'PF':>6}"
    )
    print("-" * 90)
    for r in runs:
        period = f"{r['start_date']:%Y-%m-%d} → {r['end_date']:%Y-%m-%d}"
        print(
            f"{r['id']:<18} {r['status']:<10} {period:<25} "
            f"{r['total_trades'] or 0:>7} {r['win_rate'] or 0:>6.1f}% "
            f"{r['total_return'] or 0:>+8.2f}% {r['profit_factor'] or 0:>5.2f}"
        )
    print()


async def cmd_delete_run(db: BacktestDatabase, run_id: str) -> None:
    """Delete a backtest run."""
    repo = PostgresBacktestRunRepo(db.pool)
    if await repo.delete_run(run_id):
        print(f"Deleted run {run_id}")
    else:
        print(f"Run {run_id} not found")


async def cmd_run_backtest(args: argparse.Namespace, db: BacktestDatabase | None) -> int:
    """Run a backtest. Returns the process exit code."""
    if args.start is None or args.end is None:
        print("Error: --start and --end are required for backtest")
        return 1

    settings = get_backtest_settings()

    # End date should include the full day
    end_date = args.end.replace(hour=23, minute=59, second=59)

    config = BacktestConfig(
        instruments=[s.strip() for s in args.instruments.split(",") if s.strip()],
        strategies=[s.strip() for s in args.strategies.split(",") if s.strip()],
        timeframe=args.timeframe,
        start_date=args.start,
        end_date=end_date,
        initial_balance=args.balance,
        max_position_size=args.max_position,
        stop_loss_percent=args.stop_loss,
        take_profit_percent=args.take_profit,
        min_confidence=args.min_confidence,
    )

    print(f"\nBacktest: {', '.join(config.instruments)}")
    print(f"Period: {config.start_date:%Y-%m-%d} → {config.end_date:%Y-%m-%d}")
    print(f"Strategies: {', '.join(s.value for s in config.strategies)}")

    client = KrakenRestClient(base_url=settings.kraken_base_url)
    try:
        if args.download:
            downloader = CandleDownloader(db.pool, client)
            since = config.start_date - timeframe_delta(config.timeframe) * WARMUP_CANDLES
            print("\nRefreshing candle cache from Kraken...")
            for instrument in config.instruments:
                count = await downloader.sync(instrument, config.timeframe, since)
                print(f"  {instrument}: {count:,} candles")

        if args.source == "db":
            candle_source = PostgresCandleSource(db.pool)
        else:
            candle_source = FetcherCandleSource(client.fetch_candles)

        run_repo = PostgresBacktestRunRepo(db.pool) if args.save else InMemoryBacktestRunRepo()
        runner = BacktestRunner(config=config, candle_source=candle_source, run_repo=run_repo)

        print("\nRunning backtest...")
        outcome = await runner.run()
    finally:
        await client.close()

    if outcome.status != BacktestStatus.COMPLETED:
        print(f"\nBacktest {outcome.run_id} failed: {outcome.error}")
        return 1

    ReportFormatter.print_console(outcome.result)
    if outcome.skipped_instruments:
        print(f"  Skipped (no data): {', '.join(outcome.skipped_instruments)}")
    if args.save:
        print(f"  Saved as run {outcome.run_id}")

    if args.output:
        ReportFormatter.save_json(outcome.result, args.output)
    return 0


async def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)

    # Configure logging
    level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )
    logging.getLogger("asyncio").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    db: BacktestDatabase | None = None
    if _needs_database(args):
        db = BacktestDatabase(get_backtest_settings().database_url)
        await db.init()

    try:
        if args.list_runs:
            await cmd_list_runs(db)
            return 0
        if args.delete_run:
            await cmd_delete_run(db, args.delete_run)
            return 0
        return await cmd_run_backtest(args, db)
    finally:
        if db is not None:
            await db.close()


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
