"""Candle (OHLCV) data model."""

from datetime import datetime
from typing import Sequence

import numpy as np
from pydantic import BaseModel, ConfigDict


class Candle(BaseModel):
    """One interval of OHLCV data for an instrument.

    Prices are plain floats: indicator math runs on numpy float64 arrays
    and Kraken payloads are decimal strings anyway.
    """

    model_config = ConfigDict(frozen=True)

    timestamp: datetime
    open: float
    high: float
    low: float
    close: float
    volume: float = 0.0


def closes(candles: Sequence[Candle]) -> np.ndarray:
    """Close prices as a float64 array."""
    return np.fromiter((c.close for c in candles), dtype=np.float64, count=len(candles))


def volumes(candles: Sequence[Candle]) -> np.ndarray:
    """Volumes as a float64 array."""
    return np.fromiter((c.volume for c in candles), dtype=np.float64, count=len(candles))
