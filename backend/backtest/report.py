"""Report formatting for backtest results.

Outputs results to console (formatted tables) and JSON files.
"""

from __future__ import annotations

from pathlib import Path

import orjson

from backtest.stats import BacktestResult, GroupStats

# OPT_SERIALIZE_NUMPY guards against numpy scalars leaking into results
_JSON_OPTIONS = orjson.OPT_INDENT_2 | orjson.OPT_SERIALIZE_NUMPY


class ReportFormatter:
    """Format backtest results for display and export."""

    @staticmethod
    def print_console(result: BacktestResult) -> None:
        """Print formatted report to console."""
        print("\n" + "=" * 70)
        print("  BACKTEST RESULTS")
        print("=" * 70)
        print(f"  Period: {result.start_date:%Y-%m-%d} → {result.end_date:%Y-%m-%d}")
        print(f"  Instruments: {', '.join(result.instruments)}")
        print(f"  Strategies: {', '.join(result.strategies)}")
        print(f"  Timeframe: {result.timeframe}")

        print("\n" + "-" * 70)
        print("  OVERALL")
        print("-" * 70)
        print(f"  Initial balance: {result.initial_balance:,.2f}")
        print(f"  Final balance:   {result.final_balance:,.2f}")
        print(f"  Total return:    {result.total_return:+.2f}%")
        print(f"  Trades:          {result.total_trades}")
        print(f"  Wins / Losses:   {result.winning_trades} / {result.losing_trades}")
        print(f"  Win rate:        {result.win_rate:.1f}%")
        print(f"  Avg win:         {result.avg_win:,.2f}")
        print(f"  Avg loss:        {result.avg_loss:,.2f}")
        print(f"  Profit factor:   {result.profit_factor:.2f}")
        print(f"  Sharpe ratio:    {result.sharpe_ratio:.3f}")
        print(f"  Max drawdown:    {result.max_drawdown:.2f}%")

        ReportFormatter._print_groups("BY INSTRUMENT", "Instrument", result.by_instrument)
        ReportFormatter._print_groups("BY STRATEGY", "Strategy", result.by_strategy)
        ReportFormatter._print_groups("BY EXIT REASON", "Exit", result.by_exit_reason)
        print()

    @staticmethod
    def _print_groups(title: str, label: str, groups: list[GroupStats]) -> None:
        if not groups:
            return
        print("\n" + "-" * 70)
        print(f"  {title}")
        print("-" * 70)
        print(f"  {label:<26} {'Total':>6} {'Wins':>6} {'Losses':>6} {'Win%':>8} {'PnL':>12}")
        for g in groups:
            print(
                f"  {g.key:<26} {g.total:>6} {g.wins:>6} {g.losses:>6} "
                f"{g.win_rate:>7.1f}% {g.pnl:>+12.2f}"
            )

    @staticmethod
    def to_dict(result: BacktestResult) -> dict:
        """Plain JSON-compatible dict (dataclasses, enums and datetimes converted)."""
        return orjson.loads(ReportFormatter.to_json(result))

    @staticmethod
    def to_json(result: BacktestResult) -> bytes:
        """Serialize the full result. Identical results give identical bytes."""
        payload = {
            "summary": {
                "start_date": result.start_date,
                "end_date": result.end_date,
                "instruments": result.instruments,
                "strategies": result.strategies,
                "timeframe": result.timeframe,
                "initial_balance": result.initial_balance,
                "final_balance": result.final_balance,
                "total_trades": result.total_trades,
                "winning_trades": result.winning_trades,
                "losing_trades": result.losing_trades,
                "win_rate": result.win_rate,
                "avg_win": result.avg_win,
                "avg_loss": result.avg_loss,
                "profit_factor": result.profit_factor,
                "total_return": result.total_return,
                "sharpe_ratio": result.sharpe_ratio,
                "max_drawdown": result.max_drawdown,
            },
            "by_instrument": [ReportFormatter._group_dict(g) for g in result.by_instrument],
            "by_strategy": [ReportFormatter._group_dict(g) for g in result.by_strategy],
            "by_exit_reason": [ReportFormatter._group_dict(g) for g in result.by_exit_reason],
            "trades": result.trades,
            "balance_history": result.balance_history,
        }
        return orjson.dumps(payload, option=_JSON_OPTIONS)

    @staticmethod
    def _group_dict(g: GroupStats) -> dict:
        return {
            "key": g.key,
            "total": g.total,
            "wins": g.wins,
            "losses": g.losses,
            "win_rate": g.win_rate,
            "pnl": g.pnl,
        }

    @staticmethod
    def save_json(result: BacktestResult, path: str) -> None:
        """Save results as JSON file."""
        Path(path).write_bytes(ReportFormatter.to_json(result))
        print(f"Results saved to {path}")
