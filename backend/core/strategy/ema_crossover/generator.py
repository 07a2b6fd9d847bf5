"""EMA(12/26) crossover strategy.

- BUY on the candle where EMA12 moves above EMA26
- SELL on the candle where EMA12 moves below EMA26
- A sustained relationship does not fire; the previous window
  (all candles but the last) must have the opposite relationship

Confidence = 65, +15 RSI not extreme against the trade, +15 high volume.
SL is 2% beyond EMA26, TP is 10% off entry.

This module is pure business logic with no I/O dependencies.
"""

from core.models.signal import Direction, TradingSignal
from core.models.strategy import StrategyKind
from core.strategy.context import AnalysisContext
from core.strategy.registry import register_strategy

BASE_CONFIDENCE = 65.0
RSI_CONFIRM_BONUS = 15.0
VOLUME_CONFIRM_BONUS = 15.0


@register_strategy(StrategyKind.EMA_CROSSOVER)
def evaluate_ema_crossover(ctx: AnalysisContext) -> TradingSignal | None:
    ema12, ema26 = ctx.ema12, ctx.ema26
    prev12, prev26 = ctx.prev_ema12, ctx.prev_ema26
    if ema12 is None or ema26 is None or prev12 is None or prev26 is None:
        return None

    fast_above = ema12 > ema26
    was_above = prev12 > prev26
    fast_below = ema12 < ema26
    was_below = prev12 < prev26

    rsi = ctx.rsi
    price = ctx.price
    volume_bonus = VOLUME_CONFIRM_BONUS if ctx.high_volume else 0.0
    levels = f"(12 EMA: {ema12:.2f}, 26 EMA: {ema26:.2f})"

    if fast_above and not was_above:
        rsi_confirm = rsi is not None and not rsi.overbought
        return ctx.build_signal(
            strategy=StrategyKind.EMA_CROSSOVER,
            direction=Direction.BUY,
            factors=(BASE_CONFIDENCE, RSI_CONFIRM_BONUS if rsi_confirm else 0.0, volume_bonus),
            stop_loss=ema26 * 0.98,
            take_profit=price * 1.10,
            reason=f"Bullish EMA crossover {levels}",
        )

    elif fast_below and not was_below:
        rsi_confirm = rsi is not None and not rsi.oversold
        return ctx.build_signal(
            strategy=StrategyKind.EMA_CROSSOVER,
            direction=Direction.SELL,
            factors=(BASE_CONFIDENCE, RSI_CONFIRM_BONUS if rsi_confirm else 0.0, volume_bonus),
            stop_loss=ema26 * 1.02,
            take_profit=price * 0.90,
            reason=f"Bearish EMA crossover {levels}",
        )

    return None
