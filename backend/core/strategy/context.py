"""Per-call analysis context handed to strategy evaluators.

Indicators are computed lazily on first access and cached on the context
instance only, so a strategy that never looks at Bollinger Bands never
pays for them. A new context is built for every generator call; nothing
survives between calls.
"""

from __future__ import annotations

from functools import cached_property
from typing import Iterable, Sequence

from core import indicators
from core.models.candle import Candle
from core.models.indicator import (
    BollingerBandsResult,
    MACDResult,
    RSIResult,
    VolumeAnalysisResult,
)
from core.models.signal import Direction, IndicatorSnapshot, Risk, TradingSignal
from core.models.strategy import StrategyKind
from core.strategy.scoring import combine_factors, risk_from_confidence


def _value(result) -> float | None:
    return result.value if result is not None else None


class AnalysisContext:
    """One candle window plus the indicators derived from it."""

    def __init__(self, candles: Sequence[Candle], confidence_threshold: float = 60.0):
        if not candles:
            raise ValueError("AnalysisContext requires at least one candle")
        self.candles = candles
        self.confidence_threshold = confidence_threshold

    @property
    def price(self) -> float:
        return self.candles[-1].close

    # -------------------------------------------------------------------------
    # Indicators
    # -------------------------------------------------------------------------

    @cached_property
    def rsi(self) -> RSIResult | None:
        return indicators.rsi(self.candles, 14)

    @cached_property
    def macd(self) -> MACDResult | None:
        return indicators.macd(self.candles, 12, 26, 9)

    @cached_property
    def bollinger(self) -> BollingerBandsResult | None:
        return indicators.bollinger_bands(self.candles, 20, 2.0)

    @cached_property
    def volume(self) -> VolumeAnalysisResult | None:
        return indicators.volume_analysis(self.candles, 20)

    @cached_property
    def ema12(self) -> float | None:
        return _value(indicators.ema(self.candles, 12))

    @cached_property
    def ema26(self) -> float | None:
        return _value(indicators.ema(self.candles, 26))

    @cached_property
    def prev_ema12(self) -> float | None:
        return _value(indicators.ema(self.candles[:-1], 12))

    @cached_property
    def prev_ema26(self) -> float | None:
        return _value(indicators.ema(self.candles[:-1], 26))

    @cached_property
    def sma20(self) -> float | None:
        return _value(indicators.sma(self.candles, 20))

    @cached_property
    def sma50(self) -> float | None:
        return _value(indicators.sma(self.candles, 50))

    @cached_property
    def sma200(self) -> float | None:
        return _value(indicators.sma(self.candles, 200))

    @property
    def high_volume(self) -> bool:
        return self.volume is not None and self.volume.high_volume

    def snapshot(self) -> IndicatorSnapshot:
        return IndicatorSnapshot(
            rsi=self.rsi,
            macd=self.macd,
            bollinger=self.bollinger,
            volume=self.volume,
            ema12=self.ema12,
            ema26=self.ema26,
            sma20=self.sma20,
            sma50=self.sma50,
            sma200=self.sma200,
        )

    # -------------------------------------------------------------------------
    # Signal construction
    # -------------------------------------------------------------------------

    def build_signal(
        self,
        *,
        strategy: StrategyKind,
        direction: Direction,
        factors: Iterable[float],
        reason: str,
        stop_loss: float | None = None,
        take_profit: float | None = None,
        risk: Risk | None = None,
    ) -> TradingSignal | None:
        """Aggregate factors into a signal, or None below the threshold.

        Args:
            risk: Fixed risk tier; banded from confidence when omitted.
        """
        confidence = combine_factors(factors)
        if confidence < self.confidence_threshold:
            return None

        return TradingSignal(
            direction=direction,
            confidence=confidence,
            risk=risk if risk is not None else risk_from_confidence(confidence),
            entry_price=self.price,
            stop_loss=stop_loss,
            take_profit=take_profit,
            reason=reason,
            strategy=strategy,
            indicators=self.snapshot(),
        )
