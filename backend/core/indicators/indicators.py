"""Technical indicators for signal generation.

Every public function takes a chronologically sorted candle sequence and
returns None when the sequence is shorter than the indicator's minimum
window. Insufficient data is an expected condition, not an error.

All math is NumPy float64. Nothing is cached between calls: each call
recomputes from the window it was given.
"""

import math
from typing import Sequence

import numpy as np

from core.models.candle import Candle, closes, volumes
from core.models.indicator import (
    HIGH_VOLUME_RATIO,
    RSI_OVERBOUGHT,
    RSI_OVERSOLD,
    BollingerBandsResult,
    MACDResult,
    MovingAverageResult,
    RSIResult,
    VolumeAnalysisResult,
)

# Decimal places kept on reported values
_PRICE_DP = 8
_RATIO_DP = 2


# =============================================================================
# Series helpers (arrays in, arrays out)
# =============================================================================

def ema_series(values: np.ndarray, period: int) -> np.ndarray:
    """EMA over a whole series.

    Seeded with the simple average of the first ``period`` values; the
    first ``period - 1`` outputs are NaN. Because of the SMA seed, the
    value at index i equals the EMA of the prefix ``values[: i + 1]``.
    """
    n = len(values)
    result = np.full(n, np.nan, dtype=np.float64)
    if n < period:
        return result

    k = 2.0 / (period + 1)
    current = math.fsum(values[:period]) / period
    result[period - 1] = current
    for i in range(period, n):
        # Same as close*k + ema*(1-k) but exact on a flat series
        current = current + k * (values[i] - current)
        result[i] = current
    return result


def sma_series(values: np.ndarray, period: int) -> np.ndarray:
    """SMA over a whole series (NaN for the first ``period - 1`` values)."""
    n = len(values)
    result = np.full(n, np.nan, dtype=np.float64)
    if n < period:
        return result
    for i in range(period - 1, n):
        result[i] = np.mean(values[i - period + 1 : i + 1])
    return result


# =============================================================================
# Public indicator API
# =============================================================================

def rsi(candles: Sequence[Candle], period: int = 14) -> RSIResult | None:
    """Relative Strength Index with Wilder smoothing.

    Needs ``period + 1`` candles. A flat window (no gains, no losses)
    reports 50 so that zero volatility stays neutral.
    """
    if len(candles) < period + 1:
        return None

    changes = np.diff(closes(candles))
    gains = np.clip(changes, 0.0, None)
    losses = np.clip(-changes, 0.0, None)

    avg_gain = float(np.sum(gains[:period])) / period
    avg_loss = float(np.sum(losses[:period])) / period
    for i in range(period, len(changes)):
        avg_gain = (avg_gain * (period - 1) + gains[i]) / period
        avg_loss = (avg_loss * (period - 1) + losses[i]) / period

    if avg_loss == 0:
        value = 100.0 if avg_gain > 0 else 50.0
    else:
        rs = avg_gain / avg_loss
        value = 100.0 - 100.0 / (1.0 + rs)

    value = round(value, _RATIO_DP)
    return RSIResult(
        value=value,
        overbought=value > RSI_OVERBOUGHT,
        oversold=value < RSI_OVERSOLD,
    )


def ema(candles: Sequence[Candle], period: int) -> MovingAverageResult | None:
    """Exponential moving average of closes at the last candle."""
    if len(candles) < period:
        return None
    series = ema_series(closes(candles), period)
    return MovingAverageResult(value=round(float(series[-1]), _PRICE_DP), period=period)


def sma(candles: Sequence[Candle], period: int) -> MovingAverageResult | None:
    """Simple moving average of the last ``period`` closes."""
    if len(candles) < period:
        return None
    window = closes(candles[-period:])
    return MovingAverageResult(value=round(float(np.mean(window)), _PRICE_DP), period=period)


def macd(
    candles: Sequence[Candle],
    fast: int = 12,
    slow: int = 26,
    signal: int = 9,
) -> MACDResult | None:
    """MACD line, signal line and histogram with one-step crossover flags.

    Needs ``slow + signal`` candles. The MACD series starts at index
    ``slow - 1`` (first point where the slow EMA exists); the signal line
    is an EMA of that series. ``prev_histogram`` comes from the same
    series without its last point.
    """
    if len(candles) < slow + signal:
        return None

    prices = closes(candles)
    macd_line = (ema_series(prices, fast) - ema_series(prices, slow))[slow - 1 :]
    signal_line = ema_series(macd_line, signal)

    macd_value = round(float(macd_line[-1]), _PRICE_DP)
    signal_value = round(float(signal_line[-1]), _PRICE_DP)
    histogram = round(macd_value - signal_value, _PRICE_DP)

    if len(macd_line) - 1 >= signal:
        prev_macd = round(float(macd_line[-2]), _PRICE_DP)
        prev_signal = round(float(signal_line[-2]), _PRICE_DP)
        prev_histogram = round(prev_macd - prev_signal, _PRICE_DP)
    else:
        prev_histogram = 0.0

    return MACDResult(
        macd=macd_value,
        signal=signal_value,
        histogram=histogram,
        prev_histogram=prev_histogram,
        bullish=histogram > 0 and prev_histogram <= 0,
        bearish=histogram < 0 and prev_histogram >= 0,
    )


def bollinger_bands(
    candles: Sequence[Candle],
    period: int = 20,
    std_dev: float = 2.0,
) -> BollingerBandsResult | None:
    """Bollinger Bands around the SMA using the population standard deviation."""
    if len(candles) < period:
        return None

    window = closes(candles[-period:])
    middle = float(np.mean(window))
    deviation = float(np.std(window))
    upper = middle + std_dev * deviation
    lower = middle - std_dev * deviation
    price = float(window[-1])

    width = upper - lower
    percent_b = (price - lower) / width if width > 0 else 0.5
    bandwidth = width / middle * 100 if middle != 0 else 0.0

    return BollingerBandsResult(
        upper=round(upper, _PRICE_DP),
        middle=round(middle, _PRICE_DP),
        lower=round(lower, _PRICE_DP),
        bandwidth=round(bandwidth, _RATIO_DP),
        percent_b=round(percent_b, _RATIO_DP),
    )


def volume_analysis(candles: Sequence[Candle], period: int = 20) -> VolumeAnalysisResult | None:
    """Current volume versus the average of the last ``period`` volumes."""
    if len(candles) < period:
        return None

    window = volumes(candles[-period:])
    average = float(np.mean(window))
    current = float(window[-1])

    if average > 0:
        percent_change = (current - average) / average * 100
        high_volume = current > average * HIGH_VOLUME_RATIO
    else:
        percent_change = 0.0
        high_volume = False

    return VolumeAnalysisResult(
        current=round(current, _RATIO_DP),
        average=round(average, _RATIO_DP),
        percent_change=round(percent_change, _RATIO_DP),
        high_volume=high_volume,
    )


def obv(candles: Sequence[Candle]) -> float:
    """On-balance volume over the whole sequence (0 for fewer than 2 candles)."""
    if len(candles) < 2:
        return 0.0

    prices = closes(candles)
    vols = volumes(candles)
    direction = np.sign(np.diff(prices))
    return round(float(vols[0] + np.sum(direction * vols[1:])), _RATIO_DP)
