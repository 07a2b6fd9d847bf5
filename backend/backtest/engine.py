"""Multi-instrument backtest simulation engine.

Replays the merged candle stream of all instruments in strict
chronological order. Processing order for each distinct timestamp:
1. Check open positions against this timestamp's candle (take-profit
   before stop-loss, direction-aware percentage move from entry)
2. For every instrument with a candle at this timestamp and no open
   position, run each configured strategy over the candles up to and
   including "now"; the first qualifying signal opens a position
3. Record a balance snapshot

The engine is synchronous and deterministic: no I/O, no wall clock,
no randomness. All candle history is loaded before run() is called.
"""

from __future__ import annotations

import logging
from bisect import bisect_right
from datetime import datetime
from typing import Mapping, Protocol, Sequence

from core.models.candle import Candle
from core.models.signal import TradingSignal
from core.models.strategy import StrategyKind
from core.signal_generator import SignalGenerator

from backtest.config import BacktestConfig
from backtest.models import BacktestPosition, BacktestTrade, BalanceSnapshot, ExitReason
from backtest.stats import BacktestResult, StatisticsCalculator

logger = logging.getLogger(__name__)

# Never commit more than this share of the balance to one position
MAX_BALANCE_FRACTION = 0.95
# Positions smaller than this notional are not opened
MIN_POSITION_SIZE = 10.0


class SignalSource(Protocol):
    """Anything that turns a candle window into an optional signal."""

    def generate(
        self, candles: Sequence[Candle], strategy: StrategyKind | str
    ) -> TradingSignal | None: ...


class _InstrumentSeries:
    """Sorted candles for one instrument plus timestamp lookups."""

    __slots__ = ("candles", "timestamps", "_index")

    def __init__(self, candles: Sequence[Candle]):
        self.candles = sorted(candles, key=lambda c: c.timestamp)
        self.timestamps = [c.timestamp for c in self.candles]
        self._index = {ts: i for i, ts in enumerate(self.timestamps)}

    def at(self, ts: datetime) -> Candle | None:
        i = self._index.get(ts)
        return self.candles[i] if i is not None else None

    def history(self, ts: datetime) -> Sequence[Candle]:
        """All candles with timestamp <= ts."""
        return self.candles[: bisect_right(self.timestamps, ts)]

    def last_before(self, ts: datetime) -> Candle | None:
        end = bisect_right(self.timestamps, ts)
        return self.candles[end - 1] if end else None


class BacktestEngine:
    """Simulate one BacktestConfig over preloaded candle data."""

    def __init__(self, config: BacktestConfig, generator: SignalSource | None = None):
        self.config = config
        self._generator = generator or SignalGenerator(config.min_confidence)

        self._cash = 0.0
        self._positions: dict[str, BacktestPosition] = {}
        self._trades: list[BacktestTrade] = []
        self._history: list[BalanceSnapshot] = []

    @property
    def balance(self) -> float:
        """Realized balance: free cash plus capital committed to open positions."""
        return self._cash + sum(p.size for p in self._positions.values())

    def run(self, candles_by_instrument: Mapping[str, Sequence[Candle]]) -> BacktestResult:
        """Run the simulation.

        Args:
            candles_by_instrument: Candles per instrument, including any
                warmup history before start_date. Instruments missing
                from the mapping (or empty) are ignored.

        Returns:
            BacktestResult with all trades, balance history and metrics.
        """
        config = self.config
        self._cash = config.initial_balance
        self._positions = {}
        self._trades = []
        self._history = [BalanceSnapshot(config.start_date, config.initial_balance)]

        series = {
            inst: _InstrumentSeries(candles_by_instrument[inst])
            for inst in config.instruments
            if candles_by_instrument.get(inst)
        }

        timestamps = sorted({
            ts
            for s in series.values()
            for ts in s.timestamps
            if config.start_date <= ts <= config.end_date
        })

        logger.info(
            "Simulating %d timestamps across %d instruments",
            len(timestamps),
            len(series),
        )

        for ts in timestamps:
            self._check_exits(ts, series)
            self._check_entries(ts, series)
            self._history.append(BalanceSnapshot(ts, self.balance))

        if self._positions:
            self._close_all(series)
            self._history.append(
                BalanceSnapshot(self._history[-1].timestamp, self.balance)
            )

        return StatisticsCalculator().calculate(
            self._trades,
            self._history,
            start_date=config.start_date,
            end_date=config.end_date,
            instruments=list(config.instruments),
            strategies=[s.value for s in config.strategies],
            timeframe=config.timeframe,
            initial_balance=config.initial_balance,
            final_balance=self._cash,
        )

    # -------------------------------------------------------------------------
    # Exits
    # -------------------------------------------------------------------------

    def _check_exits(self, ts: datetime, series: dict[str, _InstrumentSeries]) -> None:
        tp = self.config.take_profit_percent
        sl = self.config.stop_loss_percent

        for instrument in list(self._positions):
            candle = series[instrument].at(ts)
            if candle is None:
                continue

            position = self._positions[instrument]
            change = position.change_percent(candle.close)
            if change >= tp:
                self._close(instrument, ts, candle.close, ExitReason.TAKE_PROFIT)
            elif change <= -sl:
                self._close(instrument, ts, candle.close, ExitReason.STOP_LOSS)

    def _close_all(self, series: dict[str, _InstrumentSeries]) -> None:
        """Force-close everything at the last price inside the range."""
        for instrument in list(self._positions):
            last = series[instrument].last_before(self.config.end_date)
            self._close(instrument, last.timestamp, last.close, ExitReason.TIME_LIMIT)

    def _close(
        self, instrument: str, ts: datetime, price: float, reason: ExitReason
    ) -> None:
        position = self._positions.pop(instrument)
        trade = BacktestTrade.close(position, ts, price, reason)
        self._cash += position.size + trade.pnl
        self._trades.append(trade)
        logger.debug(
            "Closed %s %s @ %.8g (%s): pnl=%.2f",
            instrument,
            position.direction.value,
            price,
            reason.value,
            trade.pnl,
        )

    # -------------------------------------------------------------------------
    # Entries
    # -------------------------------------------------------------------------

    def _check_entries(self, ts: datetime, series: dict[str, _InstrumentSeries]) -> None:
        for instrument, s in series.items():
            if instrument in self._positions:
                continue
            candle = s.at(ts)
            if candle is None:
                continue

            history = s.history(ts)
            for strategy in self.config.strategies:
                signal = self._generator.generate(history, strategy)
                if signal is None or signal.confidence < self.config.min_confidence:
                    continue
                if self._open(instrument, strategy, signal, ts, candle.close):
                    break

    def _open(
        self,
        instrument: str,
        strategy: StrategyKind,
        signal: TradingSignal,
        ts: datetime,
        price: float,
    ) -> bool:
        size = min(
            self._cash * self.config.max_position_size / 100,
            self._cash * MAX_BALANCE_FRACTION,
        )
        if size < MIN_POSITION_SIZE:
            return False

        self._cash -= size
        self._positions[instrument] = BacktestPosition(
            instrument=instrument,
            direction=signal.direction,
            strategy=strategy,
            entry_time=ts,
            entry_price=price,
            size=size,
            confidence=signal.confidence,
        )
        logger.debug(
            "Opened %s %s @ %.8g size=%.2f (%s %.1f)",
            instrument,
            signal.direction.value,
            price,
            size,
            strategy.value,
            signal.confidence,
        )
        return True
