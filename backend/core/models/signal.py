"""Trading signal models."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from core.models.indicator import (
    BollingerBandsResult,
    MACDResult,
    RSIResult,
    VolumeAnalysisResult,
)
from core.models.strategy import StrategyKind


class Direction(str, Enum):
    """Trade direction."""

    BUY = "buy"
    SELL = "sell"


class Risk(str, Enum):
    """Risk tier attached to a signal."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class SignalStatus(str, Enum):
    """Lifecycle status of a persisted signal."""

    ACTIVE = "active"
    CLOSED = "closed"
    EXPIRED = "expired"


class IndicatorSnapshot(BaseModel):
    """Indicator values that backed a signal decision."""

    model_config = ConfigDict(frozen=True)

    rsi: RSIResult | None = None
    macd: MACDResult | None = None
    bollinger: BollingerBandsResult | None = None
    volume: VolumeAnalysisResult | None = None
    ema12: float | None = None
    ema26: float | None = None
    sma20: float | None = None
    sma50: float | None = None
    sma200: float | None = None


class TradingSignal(BaseModel):
    """One directional signal produced by a strategy."""

    model_config = ConfigDict(frozen=True)

    direction: Direction
    confidence: float = Field(ge=0, le=100)
    risk: Risk
    entry_price: float
    stop_loss: float | None = None
    take_profit: float | None = None
    reason: str
    strategy: StrategyKind
    indicators: IndicatorSnapshot = Field(default_factory=IndicatorSnapshot)

    @property
    def potential_profit_percent(self) -> float | None:
        """Distance from entry to take-profit in percent of entry."""
        if self.take_profit is None or self.entry_price == 0:
            return None
        if self.direction == Direction.BUY:
            move = self.take_profit - self.entry_price
        else:
            move = self.entry_price - self.take_profit
        return round(move / self.entry_price * 100, 2)
