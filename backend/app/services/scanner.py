"""Market scanner: run strategies over a set of instruments and rank hits."""

import logging
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from core.models.signal import Direction, Risk
from core.models.strategy import StrategyKind
from core.models.timeframe import timeframe_minutes
from core.signal_generator import SignalGenerator
from scheduler.clock import Clock, SystemClock
from scheduler.processor import CandleFetcher

logger = logging.getLogger(__name__)


class ScanFilters(BaseModel):
    """Scanner query. None means "any"."""

    model_config = ConfigDict(frozen=True)

    min_confidence: float = Field(default=60.0, ge=0, le=100)
    direction: Direction | None = None
    risk: Risk | None = None
    strategy: StrategyKind | None = None
    timeframe: str = "1h"
    limit: int = Field(default=20, ge=1, le=100)

    @field_validator("timeframe")
    @classmethod
    def _check_timeframe(cls, value: str) -> str:
        timeframe_minutes(value)
        return value


class Opportunity(BaseModel):
    model_config = ConfigDict(frozen=True)

    instrument: str
    timeframe: str
    strategy: StrategyKind
    direction: Direction
    confidence: float
    risk: Risk
    entry_price: float
    stop_loss: float
    take_profit: float
    potential_profit: float
    reason: str
    timestamp: datetime


class ScanResult(BaseModel):
    opportunities: list[Opportunity]
    total_scanned: int
    total_opportunities: int
    skipped: list[str] = Field(default_factory=list)


class MarketScanner:
    """Scan instruments for signals, highest confidence first."""

    def __init__(
        self,
        fetcher: CandleFetcher,
        instruments: list[str],
        clock: Clock | None = None,
    ):
        self._fetcher = fetcher
        self.instruments = list(instruments)
        self._clock = clock or SystemClock()

    async def scan(self, filters: ScanFilters | None = None) -> ScanResult:
        filters = filters or ScanFilters()
        generator = SignalGenerator(filters.min_confidence)
        strategies = [filters.strategy] if filters.strategy else StrategyKind.selectable()
        now = self._clock.now()

        opportunities: list[Opportunity] = []
        skipped: list[str] = []
        for instrument in self.instruments:
            try:
                candles = await self._fetcher.fetch_candles(instrument, filters.timeframe)
            except Exception as e:
                logger.warning(f"Scanner: skipping {instrument}: {e}")
                skipped.append(instrument)
                continue
            if not candles:
                skipped.append(instrument)
                continue

            for strategy in strategies:
                signal = generator.generate(candles, strategy)
                if signal is None:
                    continue
                if filters.direction and signal.direction != filters.direction:
                    continue
                if filters.risk and signal.risk != filters.risk:
                    continue
                # Only actionable setups with both levels are listed
                if signal.stop_loss is None or signal.take_profit is None:
                    continue

                opportunities.append(
                    Opportunity(
                        instrument=instrument,
                        timeframe=filters.timeframe,
                        strategy=strategy,
                        direction=signal.direction,
                        confidence=signal.confidence,
                        risk=signal.risk,
                        entry_price=signal.entry_price,
                        stop_loss=signal.stop_loss,
                        take_profit=signal.take_profit,
                        potential_profit=signal.potential_profit_percent or 0.0,
                        reason=signal.reason,
                        timestamp=now,
                    )
                )

        opportunities.sort(key=lambda o: o.confidence, reverse=True)
        logger.info(
            f"Scanner: {len(self.instruments)} instruments, "
            f"{len(opportunities)} opportunities, {len(skipped)} skipped"
        )
        return ScanResult(
            opportunities=opportunities[: filters.limit],
            total_scanned=len(self.instruments) - len(skipped),
            total_opportunities=len(opportunities),
            skipped=skipped,
        )
