"""Immutable data models shared by live analysis, scheduler and backtest."""

from core.models.candle import Candle, closes, volumes
from core.models.indicator import (
    BollingerBandsResult,
    MACDResult,
    MovingAverageResult,
    RSIResult,
    VolumeAnalysisResult,
)
from core.models.signal import (
    Direction,
    IndicatorSnapshot,
    Risk,
    SignalStatus,
    TradingSignal,
)
from core.models.strategy import StrategyKind
from core.models.timeframe import TIMEFRAME_MINUTES, timeframe_delta, timeframe_minutes

__all__ = [
    "Candle",
    "closes",
    "volumes",
    "BollingerBandsResult",
    "MACDResult",
    "MovingAverageResult",
    "RSIResult",
    "VolumeAnalysisResult",
    "Direction",
    "IndicatorSnapshot",
    "Risk",
    "SignalStatus",
    "TradingSignal",
    "StrategyKind",
    "TIMEFRAME_MINUTES",
    "timeframe_delta",
    "timeframe_minutes",
]
