"""Confidence aggregation and risk banding shared by all strategies."""

from typing import Iterable

from core.models.signal import Direction, Risk

MIN_CONFIDENCE = 0.0
MAX_CONFIDENCE = 100.0

# Confidence bands used by every strategy except RSI and trend-following
LOW_RISK_CONFIDENCE = 75.0
MEDIUM_RISK_CONFIDENCE = 50.0


def combine_factors(factors: Iterable[float]) -> float:
    """Sum independent factor contributions and clamp to [0, 100]."""
    total = sum(factors)
    return max(MIN_CONFIDENCE, min(MAX_CONFIDENCE, total))


def risk_from_confidence(confidence: float) -> Risk:
    if confidence >= LOW_RISK_CONFIDENCE:
        return Risk.LOW
    if confidence >= MEDIUM_RISK_CONFIDENCE:
        return Risk.MEDIUM
    return Risk.HIGH


def risk_from_rsi(rsi_value: float, direction: Direction) -> Risk:
    """Risk from RSI extremity: the deeper the extreme, the lower the risk."""
    if direction == Direction.BUY:
        if rsi_value < 20:
            return Risk.LOW
        if rsi_value < 30:
            return Risk.MEDIUM
        return Risk.HIGH
    if rsi_value > 80:
        return Risk.LOW
    if rsi_value > 70:
        return Risk.MEDIUM
    return Risk.HIGH
