"""MACD crossover strategy.

Fires only on the step where the histogram changes sign.
Confidence = 60 + min(|histogram| * 100, 25), +15 when RSI is not
extreme against the trade, +10 on high volume. SL/TP: 4% / 8%.
"""

from core.models.signal import Direction, TradingSignal
from core.models.strategy import StrategyKind
from core.strategy.context import AnalysisContext
from core.strategy.registry import register_strategy

BASE_CONFIDENCE = 60.0
MAX_STRENGTH_BONUS = 25.0
RSI_CONFIRM_BONUS = 15.0
VOLUME_CONFIRM_BONUS = 10.0


def _strength(histogram: float) -> float:
    return min(abs(histogram) * 100, MAX_STRENGTH_BONUS)


@register_strategy(StrategyKind.MACD)
def evaluate_macd(ctx: AnalysisContext) -> TradingSignal | None:
    macd = ctx.macd
    if macd is None:
        return None

    rsi = ctx.rsi
    price = ctx.price
    volume_bonus = VOLUME_CONFIRM_BONUS if ctx.high_volume else 0.0

    if macd.bullish:
        rsi_confirm = rsi is not None and not rsi.overbought
        reason = f"MACD bullish crossover (histogram: {macd.histogram:.4f})"
        if rsi_confirm:
            reason += ", RSI not overbought"
        if ctx.high_volume:
            reason += ", high volume"
        return ctx.build_signal(
            strategy=StrategyKind.MACD,
            direction=Direction.BUY,
            factors=(
                BASE_CONFIDENCE,
                _strength(macd.histogram),
                RSI_CONFIRM_BONUS if rsi_confirm else 0.0,
                volume_bonus,
            ),
            stop_loss=price * 0.96,
            take_profit=price * 1.08,
            reason=reason,
        )

    elif macd.bearish:
        rsi_confirm = rsi is not None and not rsi.oversold
        reason = f"MACD bearish crossover (histogram: {macd.histogram:.4f})"
        if rsi_confirm:
            reason += ", RSI not oversold"
        if ctx.high_volume:
            reason += ", high volume"
        return ctx.build_signal(
            strategy=StrategyKind.MACD,
            direction=Direction.SELL,
            factors=(
                BASE_CONFIDENCE,
                _strength(macd.histogram),
                RSI_CONFIRM_BONUS if rsi_confirm else 0.0,
                volume_bonus,
            ),
            stop_loss=price * 1.04,
            take_profit=price * 0.92,
            reason=reason,
        )

    return None
