"""BacktestRunner: orchestrates one backtest run end to end.

Run lifecycle: pending -> running -> completed | failed.

1. Create the run record (pending), then mark it running
2. Load every instrument's candles up front (with warmup history);
   instruments whose fetch fails or returns nothing are skipped
3. Simulate in memory with BacktestEngine
4. Store trades and statistics (completed)

Any failure, including "no usable instrument", ends in 'failed' with the
error recorded. run() never raises; callers inspect the returned outcome.
"""

from __future__ import annotations

import hashlib
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone

from core.models.candle import Candle
from core.signal_generator import MIN_HISTORY
from core.models.timeframe import timeframe_delta

from backtest.config import BacktestConfig
from backtest.engine import BacktestEngine, SignalSource
from backtest.models import BacktestStatus
from backtest.stats import BacktestResult
from backtest.storage.candle_source import CandleSource
from backtest.storage.run_repo import BacktestRunRepo

logger = logging.getLogger(__name__)

NO_DATA_ERROR = "No market data available for selected instruments"

# Candles loaded before start_date so indicators are primed at the first step
WARMUP_CANDLES = MIN_HISTORY


def generate_run_id(config: BacktestConfig) -> str:
    """Generate a unique run ID from config + timestamp."""
    key = f"{config.model_dump_json()}:{datetime.now(timezone.utc).isoformat()}"
    return hashlib.sha256(key.encode()).hexdigest()[:16]


@dataclass
class BacktestRunOutcome:
    """Terminal state of a run as seen by the caller."""

    run_id: str
    status: BacktestStatus
    result: BacktestResult | None = None
    error: str | None = None
    skipped_instruments: list[str] = field(default_factory=list)


class BacktestRunner:
    """Load data, simulate, and persist one BacktestConfig."""

    def __init__(
        self,
        config: BacktestConfig,
        candle_source: CandleSource,
        run_repo: BacktestRunRepo,
        generator: SignalSource | None = None,
    ):
        self.config = config
        self._candle_source = candle_source
        self._run_repo = run_repo
        self._generator = generator

    async def run(self, run_id: str | None = None) -> BacktestRunOutcome:
        """Execute the full pipeline and return its terminal state."""
        started = time.time()
        run_id = run_id or generate_run_id(self.config)
        outcome = BacktestRunOutcome(run_id=run_id, status=BacktestStatus.PENDING)

        logger.info(
            f"Starting backtest run={run_id}: {self.config.instruments} "
            f"{self.config.start_date:%Y-%m-%d} → {self.config.end_date:%Y-%m-%d} "
            f"timeframe={self.config.timeframe}"
        )

        try:
            await self._run_repo.create_run(run_id, self.config)
            await self._run_repo.start_run(run_id)
            outcome.status = BacktestStatus.RUNNING

            candles, outcome.skipped_instruments = await self._load_candles()
            if not candles:
                raise ValueError(NO_DATA_ERROR)

            engine = BacktestEngine(self.config, self._generator)
            result = engine.run(candles)

            await self._run_repo.complete_run(run_id, result)
            outcome.status = BacktestStatus.COMPLETED
            outcome.result = result

            logger.info(
                f"Backtest run={run_id} completed in {time.time() - started:.1f}s: "
                f"{result.total_trades} trades, return {result.total_return:+.2f}%"
            )

        except Exception as e:
            error = str(e) or type(e).__name__
            logger.error(f"Backtest run={run_id} failed: {error}", exc_info=True)
            outcome.status = BacktestStatus.FAILED
            outcome.result = None
            outcome.error = error
            try:
                await self._run_repo.fail_run(run_id, error)
            except Exception:
                logger.error(f"Could not record failure for run={run_id}", exc_info=True)

        return outcome

    async def _load_candles(self) -> tuple[dict[str, list[Candle]], list[str]]:
        """Load all instruments before simulating. Returns (data, skipped)."""
        warmup_start = (
            self.config.start_date - timeframe_delta(self.config.timeframe) * WARMUP_CANDLES
        )
        data: dict[str, list[Candle]] = {}
        skipped: list[str] = []

        for instrument in self.config.instruments:
            try:
                candles = await self._candle_source.get_range(
                    instrument, self.config.timeframe, warmup_start, self.config.end_date
                )
            except Exception:
                logger.warning(f"[{instrument}] Candle fetch failed, skipping", exc_info=True)
                skipped.append(instrument)
                continue

            if not candles:
                logger.warning(f"[{instrument}] No candles in range, skipping")
                skipped.append(instrument)
                continue

            data[instrument] = candles
            logger.info(f"[{instrument}] Loaded {len(candles):,} candles")

        return data, skipped
