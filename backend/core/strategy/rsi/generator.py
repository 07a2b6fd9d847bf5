"""RSI oversold/overbought strategy.

- BUY when RSI(14) < 30, SELL when RSI(14) > 70
- Confidence: distance from the opposite threshold, +20 MACD crossover
  in the same direction, +15 high volume
- Risk from RSI extremity (not from confidence)
- SL/TP: 5% / 10% off entry

This module is pure business logic with no I/O dependencies.
"""

from core.models.signal import Direction, TradingSignal
from core.models.strategy import StrategyKind
from core.strategy.context import AnalysisContext
from core.strategy.registry import register_strategy
from core.strategy.scoring import risk_from_rsi

MACD_CONFIRM_BONUS = 20.0
VOLUME_CONFIRM_BONUS = 15.0


@register_strategy(StrategyKind.RSI)
def evaluate_rsi(ctx: AnalysisContext) -> TradingSignal | None:
    rsi = ctx.rsi
    if rsi is None:
        return None

    macd = ctx.macd
    price = ctx.price

    if rsi.oversold:
        macd_confirm = macd is not None and macd.bullish
        reason = f"RSI oversold at {rsi.value:.2f}"
        if macd_confirm:
            reason += ", MACD bullish crossover"
        if ctx.high_volume:
            reason += ", high volume confirmation"
        return ctx.build_signal(
            strategy=StrategyKind.RSI,
            direction=Direction.BUY,
            factors=(
                100 - rsi.value,
                MACD_CONFIRM_BONUS if macd_confirm else 0.0,
                VOLUME_CONFIRM_BONUS if ctx.high_volume else 0.0,
            ),
            risk=risk_from_rsi(rsi.value, Direction.BUY),
            stop_loss=price * 0.95,
            take_profit=price * 1.10,
            reason=reason,
        )

    elif rsi.overbought:
        macd_confirm = macd is not None and macd.bearish
        reason = f"RSI overbought at {rsi.value:.2f}"
        if macd_confirm:
            reason += ", MACD bearish crossover"
        if ctx.high_volume:
            reason += ", high volume confirmation"
        return ctx.build_signal(
            strategy=StrategyKind.RSI,
            direction=Direction.SELL,
            factors=(
                rsi.value - 30,
                MACD_CONFIRM_BONUS if macd_confirm else 0.0,
                VOLUME_CONFIRM_BONUS if ctx.high_volume else 0.0,
            ),
            risk=risk_from_rsi(rsi.value, Direction.SELL),
            stop_loss=price * 1.05,
            take_profit=price * 0.90,
            reason=reason,
        )

    return None
