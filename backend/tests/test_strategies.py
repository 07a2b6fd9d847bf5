"""Tests for strategy evaluators, scoring and the registry."""

from datetime import datetime, timedelta, timezone

import pytest

from core.models.candle import Candle
from core.models.indicator import (
    BollingerBandsResult,
    MACDResult,
    RSIResult,
    VolumeAnalysisResult,
)
from core.models.signal import Direction, Risk
from core.models.strategy import StrategyKind
from core.strategy import (
    AnalysisContext,
    combine_factors,
    get_evaluator,
    list_strategies,
    register_strategy,
    risk_from_confidence,
    risk_from_rsi,
)
from core.strategy.fallback.generator import DEFAULT_CHAIN


# ---------------------------------------------------------------------------
# Helper
# ---------------------------------------------------------------------------

START = datetime(2025, 1, 1, tzinfo=timezone.utc)


def make_candles(prices: list[float], volume: float = 100.0) -> list[Candle]:
    return [
        Candle(
            timestamp=START + timedelta(hours=i),
            open=p,
            high=p,
            low=p,
            close=p,
            volume=volume,
        )
        for i, p in enumerate(prices)
    ]


def falling(n: int = 300) -> list[Candle]:
    return make_candles([1000.0 - i for i in range(n)])


def rising(n: int = 300) -> list[Candle]:
    return make_candles([100.0 + i for i in range(n)])


# ---------------------------------------------------------------------------
# Scoring
# ---------------------------------------------------------------------------

class TestScoring:
    """Tests for factor aggregation and risk banding."""

    def test_combine_factors_clamps(self):
        assert combine_factors([80.0, 20.0, 15.0]) == 100.0
        assert combine_factors([-30.0, 10.0]) == 0.0
        assert combine_factors([40.0, 15.5]) == 55.5

    def test_risk_from_confidence(self):
        assert risk_from_confidence(75.0) == Risk.LOW
        assert risk_from_confidence(74.9) == Risk.MEDIUM
        assert risk_from_confidence(50.0) == Risk.MEDIUM
        assert risk_from_confidence(49.9) == Risk.HIGH

    def test_risk_from_rsi(self):
        assert risk_from_rsi(15.0, Direction.BUY) == Risk.LOW
        assert risk_from_rsi(25.0, Direction.BUY) == Risk.MEDIUM
        assert risk_from_rsi(35.0, Direction.BUY) == Risk.HIGH
        assert risk_from_rsi(85.0, Direction.SELL) == Risk.LOW
        assert risk_from_rsi(75.0, Direction.SELL) == Risk.MEDIUM
        assert risk_from_rsi(65.0, Direction.SELL) == Risk.HIGH


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

class TestRegistry:
    """Tests for the strategy registry."""

    def test_every_kind_has_an_evaluator(self):
        assert list_strategies() == list(StrategyKind)

    def test_duplicate_registration_rejected(self):
        with pytest.raises(ValueError, match="already registered"):
            register_strategy(StrategyKind.RSI)(lambda ctx: None)

    def test_default_chain_order(self):
        assert DEFAULT_CHAIN == (
            StrategyKind.TREND_FOLLOWING,
            StrategyKind.MACD,
            StrategyKind.RSI,
            StrategyKind.BOLLINGER,
        )

    def test_parse_unknown_name_falls_back_to_default(self):
        assert StrategyKind.parse("no-such-strategy") == StrategyKind.DEFAULT
        assert StrategyKind.parse("macd-crossover") == StrategyKind.MACD
        assert StrategyKind.DEFAULT not in StrategyKind.selectable()


# ---------------------------------------------------------------------------
# RSI strategy
# ---------------------------------------------------------------------------

class TestRSIStrategy:
    """Tests for the RSI oversold/overbought evaluator."""

    def test_falling_series_buys(self):
        candles = falling()
        signal = get_evaluator(StrategyKind.RSI)(AnalysisContext(candles))

        assert signal is not None
        assert signal.direction == Direction.BUY
        assert signal.strategy == StrategyKind.RSI
        assert signal.confidence == 100.0
        assert signal.risk == Risk.LOW
        assert signal.entry_price == 701.0
        assert signal.stop_loss == pytest.approx(701.0 * 0.95)
        assert signal.take_profit == pytest.approx(701.0 * 1.10)
        assert "RSI oversold" in signal.reason

    def test_rising_series_sells(self):
        signal = get_evaluator(StrategyKind.RSI)(AnalysisContext(rising()))

        assert signal is not None
        assert signal.direction == Direction.SELL
        assert 70.0 <= signal.confidence <= 100.0
        assert signal.risk == Risk.LOW
        assert signal.stop_loss > signal.entry_price > signal.take_profit

    def test_threshold_suppresses_weak_signal(self):
        ctx = AnalysisContext(rising(), confidence_threshold=100.0)
        signal = get_evaluator(StrategyKind.RSI)(ctx)
        assert signal is None or signal.confidence == 100.0

    def test_signal_carries_indicator_snapshot(self):
        signal = get_evaluator(StrategyKind.RSI)(AnalysisContext(falling()))
        assert signal.indicators.rsi.value == 0.0
        assert signal.indicators.sma200 is not None


# ---------------------------------------------------------------------------
# Bollinger strategy
# ---------------------------------------------------------------------------

class TestBollingerStrategy:
    """Tests for the Bollinger band edge evaluator."""

    def test_drop_below_lower_band_buys(self):
        candles = make_candles([100.0] * 299 + [90.0])
        signal = get_evaluator(StrategyKind.BOLLINGER)(AnalysisContext(candles))

        assert signal is not None
        assert signal.direction == Direction.BUY
        assert signal.take_profit == pytest.approx(99.5)
        assert signal.stop_loss == pytest.approx(signal.indicators.bollinger.lower * 0.98)
        assert signal.confidence == 100.0

    def test_middle_of_band_is_silent(self):
        candles = make_candles([100.0 + (i % 5) for i in range(300)][:-1] + [102.0])
        assert get_evaluator(StrategyKind.BOLLINGER)(AnalysisContext(candles)) is None


# ---------------------------------------------------------------------------
# Flat market
# ---------------------------------------------------------------------------

class TestFlatMarket:
    """A perfectly flat market must never produce a signal."""

    @pytest.mark.parametrize("kind", list(StrategyKind))
    def test_no_signal_on_flat_series(self, kind):
        ctx = AnalysisContext(make_candles([100.0] * 300), confidence_threshold=0.0)
        assert get_evaluator(kind)(ctx) is None


# ---------------------------------------------------------------------------
# Stubbed indicator context
# ---------------------------------------------------------------------------

class StubContext(AnalysisContext):
    """AnalysisContext whose indicator values are fixed by the test.

    The window is a single candle at ``price``; anything not passed in
    is computed from it and therefore None.
    """

    def __init__(self, price: float = 100.0, confidence_threshold: float = 60.0, **values):
        super().__init__(make_candles([price]), confidence_threshold)
        for name, value in values.items():
            setattr(self, name, value)


def rsi_at(value: float) -> RSIResult:
    return RSIResult(value=value, overbought=value > 70, oversold=value < 30)


def macd_cross(histogram: float) -> MACDResult:
    return MACDResult(
        macd=histogram,
        signal=0.0,
        histogram=histogram,
        prev_histogram=-histogram,
        bullish=histogram > 0,
        bearish=histogram < 0,
    )


def macd_no_cross(histogram: float) -> MACDResult:
    return MACDResult(
        macd=histogram,
        signal=0.0,
        histogram=histogram,
        prev_histogram=histogram,
        bullish=False,
        bearish=False,
    )


def volume_of(high: bool) -> VolumeAnalysisResult:
    current = 200.0 if high else 100.0
    return VolumeAnalysisResult(
        current=current,
        average=100.0,
        percent_change=current - 100.0,
        high_volume=high,
    )


def bands(lower: float, middle: float, upper: float, percent_b: float) -> BollingerBandsResult:
    return BollingerBandsResult(
        upper=upper,
        middle=middle,
        lower=lower,
        bandwidth=(upper - lower) / middle * 100,
        percent_b=percent_b,
    )


# ---------------------------------------------------------------------------
# MACD strategy
# ---------------------------------------------------------------------------

class TestMACDStrategy:
    """Tests for the MACD histogram crossover evaluator."""

    def test_bullish_crossover_buys(self):
        ctx = StubContext(macd=macd_cross(0.1), rsi=rsi_at(50.0), volume=volume_of(True))
        signal = get_evaluator(StrategyKind.MACD)(ctx)

        assert signal.direction == Direction.BUY
        assert signal.confidence == pytest.approx(95.0)
        assert signal.risk == Risk.LOW
        assert signal.stop_loss == pytest.approx(96.0)
        assert signal.take_profit == pytest.approx(108.0)
        assert "RSI not overbought" in signal.reason
        assert "high volume" in signal.reason

    def test_histogram_bonus_is_capped(self):
        ctx = StubContext(macd=macd_cross(2.0), rsi=rsi_at(80.0), volume=volume_of(False))
        signal = get_evaluator(StrategyKind.MACD)(ctx)

        assert signal.confidence == pytest.approx(85.0)
        assert "RSI not overbought" not in signal.reason

    def test_bearish_crossover_sells(self):
        ctx = StubContext(macd=macd_cross(-0.05), rsi=rsi_at(20.0), volume=volume_of(False))
        signal = get_evaluator(StrategyKind.MACD)(ctx)

        assert signal.direction == Direction.SELL
        assert signal.confidence == pytest.approx(65.0)
        assert signal.risk == Risk.MEDIUM
        assert signal.stop_loss == pytest.approx(104.0)
        assert signal.take_profit == pytest.approx(92.0)

    def test_no_crossover_is_silent(self):
        ctx = StubContext(macd=macd_no_cross(1.0), rsi=rsi_at(50.0), volume=volume_of(True))
        assert get_evaluator(StrategyKind.MACD)(ctx) is None

    def test_below_threshold_is_silent(self):
        ctx = StubContext(
            confidence_threshold=70.0,
            macd=macd_cross(-0.05),
            rsi=rsi_at(20.0),
            volume=volume_of(False),
        )
        assert get_evaluator(StrategyKind.MACD)(ctx) is None


# ---------------------------------------------------------------------------
# EMA crossover strategy
# ---------------------------------------------------------------------------

class TestEMACrossoverStrategy:
    """Tests for the EMA(12/26) crossover evaluator."""

    def test_fast_crossing_above_buys(self):
        ctx = StubContext(
            ema12=101.0, ema26=100.0, prev_ema12=99.0, prev_ema26=100.0,
            rsi=rsi_at(50.0), volume=volume_of(False),
        )
        signal = get_evaluator(StrategyKind.EMA_CROSSOVER)(ctx)

        assert signal.direction == Direction.BUY
        assert signal.confidence == pytest.approx(80.0)
        assert signal.stop_loss == pytest.approx(98.0)
        assert signal.take_profit == pytest.approx(110.0)

    def test_fast_crossing_below_sells(self):
        ctx = StubContext(
            ema12=99.0, ema26=100.0, prev_ema12=101.0, prev_ema26=100.0,
            rsi=rsi_at(20.0), volume=volume_of(True),
        )
        signal = get_evaluator(StrategyKind.EMA_CROSSOVER)(ctx)

        assert signal.direction == Direction.SELL
        assert signal.confidence == pytest.approx(80.0)
        assert signal.stop_loss == pytest.approx(102.0)
        assert signal.take_profit == pytest.approx(90.0)

    def test_sustained_relationship_is_silent(self):
        ctx = StubContext(
            ema12=101.0, ema26=100.0, prev_ema12=100.5, prev_ema26=100.0,
            rsi=rsi_at(50.0), volume=volume_of(True),
        )
        assert get_evaluator(StrategyKind.EMA_CROSSOVER)(ctx) is None

    def test_missing_previous_window_is_silent(self):
        ctx = StubContext(ema12=101.0, ema26=100.0, rsi=rsi_at(50.0))
        assert get_evaluator(StrategyKind.EMA_CROSSOVER)(ctx) is None

    def test_fires_once_on_a_reversal(self):
        # Steady fall to 761, then a steady rise: EMA12 crosses EMA26 once
        prices = [1000.0 - i for i in range(240)] + [761.0 + i for i in range(1, 61)]
        candles = make_candles(prices)
        evaluate = get_evaluator(StrategyKind.EMA_CROSSOVER)

        fired = []
        for n in range(200, len(candles) + 1):
            signal = evaluate(AnalysisContext(candles[:n]))
            if signal is not None:
                fired.append((n, signal.direction))

        assert len(fired) == 1
        n, direction = fired[0]
        assert direction == Direction.BUY
        assert n > 240


# ---------------------------------------------------------------------------
# Trend-following strategy
# ---------------------------------------------------------------------------

class TestTrendFollowingStrategy:
    """Tests for the multi-indicator trend evaluator."""

    def bullish(self, **overrides) -> StubContext:
        values = dict(
            price=110.0, sma50=105.0, sma200=100.0, ema12=108.0, ema26=106.0,
            macd=macd_cross(0.5), rsi=rsi_at(60.0), volume=volume_of(True),
        )
        values.update(overrides)
        return StubContext(**values)

    def test_aligned_bullish_trend_buys(self):
        signal = get_evaluator(StrategyKind.TREND_FOLLOWING)(self.bullish())

        assert signal.direction == Direction.BUY
        assert signal.confidence == pytest.approx(100.0)
        assert signal.risk == Risk.MEDIUM
        assert signal.stop_loss == pytest.approx(102.9)
        assert signal.take_profit == pytest.approx(126.5)

    def test_risk_stays_medium_at_base_confidence(self):
        ctx = self.bullish(rsi=rsi_at(75.0), volume=volume_of(False))
        signal = get_evaluator(StrategyKind.TREND_FOLLOWING)(ctx)

        assert signal.confidence == pytest.approx(70.0)
        assert signal.risk == Risk.MEDIUM

    def test_aligned_bearish_trend_sells(self):
        ctx = StubContext(
            price=90.0, sma50=95.0, sma200=100.0, ema12=92.0, ema26=94.0,
            macd=macd_cross(-0.5), rsi=rsi_at(40.0), volume=volume_of(False),
        )
        signal = get_evaluator(StrategyKind.TREND_FOLLOWING)(ctx)

        assert signal.direction == Direction.SELL
        assert signal.confidence == pytest.approx(85.0)
        assert signal.risk == Risk.MEDIUM
        assert signal.stop_loss == pytest.approx(96.9)
        assert signal.take_profit == pytest.approx(76.5)

    def test_trend_without_crossover_is_silent(self):
        ctx = self.bullish(macd=macd_no_cross(0.5))
        assert get_evaluator(StrategyKind.TREND_FOLLOWING)(ctx) is None

    def test_misaligned_averages_are_silent(self):
        ctx = self.bullish(price=104.0)
        assert get_evaluator(StrategyKind.TREND_FOLLOWING)(ctx) is None


# ---------------------------------------------------------------------------
# Mean-reversion strategy
# ---------------------------------------------------------------------------

class TestMeanReversionStrategy:
    """Tests for the SMA20 deviation evaluator."""

    def test_stretched_below_mean_buys(self):
        ctx = StubContext(
            price=90.0, sma20=100.0,
            bollinger=bands(91.0, 100.0, 109.0, 0.05), rsi=rsi_at(25.0),
        )
        signal = get_evaluator(StrategyKind.MEAN_REVERSION)(ctx)

        assert signal.direction == Direction.BUY
        assert signal.confidence == pytest.approx(100.0)
        assert signal.take_profit == pytest.approx(100.0)
        assert signal.stop_loss == pytest.approx(91.0 * 0.97)

    def test_deviation_score_below_cap(self):
        ctx = StubContext(
            price=94.5, sma20=100.0, confidence_threshold=50.0,
            bollinger=bands(93.0, 100.0, 107.0, 0.2), rsi=rsi_at(40.0),
        )
        signal = get_evaluator(StrategyKind.MEAN_REVERSION)(ctx)

        assert signal.direction == Direction.BUY
        assert signal.confidence == pytest.approx(55.0)
        assert signal.risk == Risk.MEDIUM

    def test_stretched_above_mean_sells(self):
        ctx = StubContext(
            price=106.0, sma20=100.0,
            bollinger=bands(95.0, 100.0, 105.0, 0.8), rsi=rsi_at(60.0),
        )
        signal = get_evaluator(StrategyKind.MEAN_REVERSION)(ctx)

        assert signal.direction == Direction.SELL
        assert signal.confidence == pytest.approx(60.0)
        assert signal.take_profit == pytest.approx(100.0)
        assert signal.stop_loss == pytest.approx(105.0 * 1.03)

    def test_percent_b_gate(self):
        ctx = StubContext(
            price=90.0, sma20=100.0,
            bollinger=bands(85.0, 100.0, 115.0, 0.5), rsi=rsi_at(25.0),
        )
        assert get_evaluator(StrategyKind.MEAN_REVERSION)(ctx) is None

    def test_small_deviation_is_silent(self):
        ctx = StubContext(
            price=96.0, sma20=100.0, confidence_threshold=0.0,
            bollinger=bands(97.0, 100.0, 103.0, 0.05), rsi=rsi_at(25.0),
        )
        assert get_evaluator(StrategyKind.MEAN_REVERSION)(ctx) is None


# ---------------------------------------------------------------------------
# Confidence bounds
# ---------------------------------------------------------------------------

def make_varied_series() -> dict[str, list[Candle]]:
    zigzag = [100.0 + 10.0 * ((i // 7) % 2) + (i % 7) for i in range(300)]
    v_shape = [1000.0 - i for i in range(240)] + [761.0 + i for i in range(1, 61)]
    spiky = [
        Candle(
            timestamp=START + timedelta(hours=i),
            open=p, high=p * 1.01, low=p * 0.99, close=p,
            volume=1000.0 if i % 25 == 0 else 50.0,
        )
        for i, p in enumerate(100.0 + 20.0 * ((i % 40) / 40.0) for i in range(300))
    ]
    return {
        "falling": falling(),
        "rising": rising(),
        "zigzag": make_candles(zigzag),
        "v_shape": make_candles(v_shape),
        "spiky": spiky,
    }


VARIED_SERIES = make_varied_series()


class TestConfidenceBounds:
    """Every evaluator keeps confidence within [0, 100]."""

    @pytest.mark.parametrize("kind", list(StrategyKind))
    @pytest.mark.parametrize("series", sorted(VARIED_SERIES))
    def test_confidence_in_range(self, kind, series):
        candles = VARIED_SERIES[series]
        evaluate = get_evaluator(kind)
        for n in range(200, len(candles) + 1, 5):
            signal = evaluate(AnalysisContext(candles[:n], confidence_threshold=0.0))
            if signal is not None:
                assert 0.0 <= signal.confidence <= 100.0
