"""Backtest position, trade and run-status models."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from core.models.signal import Direction
from core.models.strategy import StrategyKind


class ExitReason(str, Enum):
    TAKE_PROFIT = "take_profit"
    STOP_LOSS = "stop_loss"
    TIME_LIMIT = "time_limit"


class BacktestStatus(str, Enum):
    """Run lifecycle: pending -> running -> completed | failed."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class BacktestPosition:
    """An open simulated trade. At most one per instrument."""

    instrument: str
    direction: Direction
    strategy: StrategyKind
    entry_time: datetime
    entry_price: float
    size: float
    confidence: float

    def change_percent(self, price: float) -> float:
        """Move from entry in percent, positive when the trade is in profit."""
        change = (price - self.entry_price) / self.entry_price * 100
        return change if self.direction == Direction.BUY else -change

    def pnl_at(self, price: float) -> float:
        if self.direction == Direction.BUY:
            return self.size * (price - self.entry_price) / self.entry_price
        return self.size * (self.entry_price - price) / self.entry_price


@dataclass(frozen=True, slots=True)
class BacktestTrade:
    """A closed position. Append-only."""

    instrument: str
    direction: Direction
    strategy: StrategyKind
    entry_time: datetime
    entry_price: float
    size: float
    confidence: float
    exit_time: datetime
    exit_price: float
    exit_reason: ExitReason
    pnl: float
    pnl_percent: float
    is_win: bool

    @classmethod
    def close(
        cls,
        position: BacktestPosition,
        exit_time: datetime,
        exit_price: float,
        exit_reason: ExitReason,
    ) -> BacktestTrade:
        pnl = position.pnl_at(exit_price)
        return cls(
            instrument=position.instrument,
            direction=position.direction,
            strategy=position.strategy,
            entry_time=position.entry_time,
            entry_price=position.entry_price,
            size=position.size,
            confidence=position.confidence,
            exit_time=exit_time,
            exit_price=exit_price,
            exit_reason=exit_reason,
            pnl=pnl,
            pnl_percent=pnl / position.size * 100,
            is_win=pnl > 0,
        )


@dataclass(frozen=True, slots=True)
class BalanceSnapshot:
    timestamp: datetime
    balance: float
