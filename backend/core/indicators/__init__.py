"""Technical indicators (pure math, no I/O)."""

from core.indicators.indicators import (
    rsi,
    ema,
    sma,
    macd,
    bollinger_bands,
    volume_analysis,
    obv,
    ema_series,
    sma_series,
)

__all__ = [
    "rsi",
    "ema",
    "sma",
    "macd",
    "bollinger_bands",
    "volume_analysis",
    "obv",
    "ema_series",
    "sma_series",
]
