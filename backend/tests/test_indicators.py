"""Tests for technical indicators."""

from datetime import datetime, timedelta, timezone

import numpy as np
import pytest

from core.indicators import (
    bollinger_bands,
    ema,
    ema_series,
    macd,
    obv,
    rsi,
    sma,
    sma_series,
    volume_analysis,
)
from core.models.candle import Candle


# ---------------------------------------------------------------------------
# Helper
# ---------------------------------------------------------------------------

START = datetime(2025, 1, 1, tzinfo=timezone.utc)


def make_candles(
    prices: list[float],
    volumes: list[float] | None = None,
) -> list[Candle]:
    """Hourly candles whose open/high/low/close all equal the given price."""
    volumes = volumes or [100.0] * len(prices)
    return [
        Candle(
            timestamp=START + timedelta(hours=i),
            open=p,
            high=p,
            low=p,
            close=p,
            volume=v,
        )
        for i, (p, v) in enumerate(zip(prices, volumes))
    ]


# ---------------------------------------------------------------------------
# Series helpers
# ---------------------------------------------------------------------------

class TestSeries:
    """Tests for ema_series / sma_series."""

    def test_ema_series_seed_and_recurrence(self):
        values = np.arange(1, 11, dtype=np.float64)
        result = ema_series(values, 5)

        assert np.isnan(result[:4]).all()
        assert result[4] == pytest.approx(3.0)
        # Linear input: EMA trails by (period - 1) / 2
        assert result[9] == pytest.approx(8.0)

    def test_ema_series_insufficient_data(self):
        result = ema_series(np.array([1.0, 2.0]), 5)
        assert len(result) == 2
        assert np.isnan(result).all()

    def test_sma_series(self):
        result = sma_series(np.arange(1, 11, dtype=np.float64), 3)
        assert np.isnan(result[:2]).all()
        assert result[2] == pytest.approx(2.0)
        assert result[9] == pytest.approx(9.0)


# ---------------------------------------------------------------------------
# RSI
# ---------------------------------------------------------------------------

class TestRSI:
    """Tests for RSI calculation."""

    def test_needs_period_plus_one(self):
        assert rsi(make_candles([100.0] * 14)) is None
        assert rsi(make_candles([100.0] * 15)) is not None

    def test_flat_series_is_neutral(self):
        result = rsi(make_candles([100.0] * 30))
        assert result.value == 50.0
        assert not result.overbought
        assert not result.oversold

    def test_rising_series_is_overbought(self):
        result = rsi(make_candles([100.0 + i for i in range(30)]))
        assert result.value == 100.0
        assert result.overbought

    def test_falling_series_is_oversold(self):
        result = rsi(make_candles([200.0 - i for i in range(30)]))
        assert result.value == 0.0
        assert result.oversold

    def test_bounded_on_mixed_series(self):
        prices = [100.0 + (5 if i % 3 == 0 else -2) * (i % 7) for i in range(60)]
        result = rsi(make_candles(prices))
        assert 0.0 <= result.value <= 100.0


# ---------------------------------------------------------------------------
# Moving averages
# ---------------------------------------------------------------------------

class TestMovingAverages:
    """Tests for EMA and SMA at the last candle."""

    def test_ema_of_constant_is_constant(self):
        result = ema(make_candles([42.5] * 50), 12)
        assert result.value == 42.5
        assert result.period == 12

    def test_ema_insufficient_data(self):
        assert ema(make_candles([1.0] * 11), 12) is None

    def test_sma_uses_last_window(self):
        result = sma(make_candles([float(i) for i in range(1, 11)]), 3)
        assert result.value == pytest.approx(9.0)

    def test_sma_insufficient_data(self):
        assert sma(make_candles([1.0] * 19), 20) is None


# ---------------------------------------------------------------------------
# MACD
# ---------------------------------------------------------------------------

class TestMACD:
    """Tests for MACD calculation."""

    def test_needs_slow_plus_signal(self):
        assert macd(make_candles([100.0] * 34)) is None
        assert macd(make_candles([100.0] * 35)) is not None

    def test_flat_series_has_no_crossover(self):
        result = macd(make_candles([100.0] * 60))
        assert result.macd == 0.0
        assert result.signal == 0.0
        assert result.histogram == 0.0
        assert not result.bullish
        assert not result.bearish

    def test_uptrend_macd_positive(self):
        result = macd(make_candles([100.0 + i for i in range(80)]))
        assert result.macd > 0

    def test_crossover_flags_are_exclusive(self):
        prices = [100.0 - i * 0.5 for i in range(60)] + [70.0 + i * 2 for i in range(10)]
        result = macd(make_candles(prices))
        assert not (result.bullish and result.bearish)


# ---------------------------------------------------------------------------
# Bollinger Bands
# ---------------------------------------------------------------------------

class TestBollingerBands:
    """Tests for Bollinger Bands calculation."""

    def test_insufficient_data(self):
        assert bollinger_bands(make_candles([100.0] * 19)) is None

    def test_flat_series_is_degenerate(self):
        result = bollinger_bands(make_candles([100.0] * 20))
        assert result.upper == result.middle == result.lower == 100.0
        assert result.bandwidth == 0.0
        assert result.percent_b == 0.5
        assert result.percent_b_at(100.0) == 0.5

    def test_percent_b_at_band_edges(self):
        prices = [100.0 + (i % 5) for i in range(40)]
        result = bollinger_bands(make_candles(prices))
        assert result.lower < result.middle < result.upper
        assert result.percent_b_at(result.lower) == 0.0
        assert result.percent_b_at(result.upper) == 1.0

    def test_price_below_lower_band(self):
        result = bollinger_bands(make_candles([100.0] * 19 + [90.0]))
        assert result.percent_b < 0
        assert result.middle == pytest.approx(99.5)


# ---------------------------------------------------------------------------
# Volume
# ---------------------------------------------------------------------------

class TestVolume:
    """Tests for volume analysis and OBV."""

    def test_volume_spike(self):
        candles = make_candles([100.0] * 20, [100.0] * 19 + [1000.0])
        result = volume_analysis(candles)
        assert result.average == pytest.approx(145.0)
        assert result.current == 1000.0
        assert result.high_volume

    def test_zero_average_volume(self):
        result = volume_analysis(make_candles([100.0] * 20, [0.0] * 20))
        assert result.percent_change == 0.0
        assert not result.high_volume

    def test_volume_insufficient_data(self):
        assert volume_analysis(make_candles([100.0] * 5)) is None

    def test_obv_accumulates_by_direction(self):
        candles = make_candles([10.0, 11.0, 10.5, 10.5, 12.0], [5.0, 3.0, 2.0, 7.0, 4.0])
        # 5 + 3 - 2 + 0 + 4
        assert obv(candles) == 10.0

    def test_obv_short_series(self):
        assert obv(make_candles([10.0])) == 0.0
