"""Indicator result models.

Plain frozen dataclasses: they are created on every signal evaluation,
so they stay cheap compared to pydantic models. Pydantic still
serializes them when they appear inside IndicatorSnapshot.
"""

from dataclasses import dataclass

RSI_OVERBOUGHT = 70.0
RSI_OVERSOLD = 30.0
HIGH_VOLUME_RATIO = 1.5


@dataclass(frozen=True, slots=True)
class RSIResult:
    value: float
    overbought: bool
    oversold: bool


@dataclass(frozen=True, slots=True)
class MovingAverageResult:
    """EMA or SMA value for a given period."""

    value: float
    period: int


@dataclass(frozen=True, slots=True)
class MACDResult:
    macd: float
    signal: float
    histogram: float
    prev_histogram: float
    bullish: bool  # histogram crossed from <= 0 to > 0 on this step
    bearish: bool  # histogram crossed from >= 0 to < 0 on this step


@dataclass(frozen=True, slots=True)
class BollingerBandsResult:
    upper: float
    middle: float
    lower: float
    bandwidth: float
    percent_b: float

    def percent_b_at(self, price: float) -> float:
        """Position of an arbitrary price within the bands (0 = lower, 1 = upper)."""
        width = self.upper - self.lower
        if width == 0:
            return 0.5
        return (price - self.lower) / width


@dataclass(frozen=True, slots=True)
class VolumeAnalysisResult:
    current: float
    average: float
    percent_change: float
    high_volume: bool
