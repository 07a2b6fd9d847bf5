"""Mean-reversion strategy.

Fires when price has stretched more than 5% away from SMA20 and the
Bollinger %B agrees (< 0.3 below the mean, > 0.7 above). The target is
SMA20 itself.
"""

from core.models.signal import Direction, TradingSignal
from core.models.strategy import StrategyKind
from core.strategy.context import AnalysisContext
from core.strategy.registry import register_strategy

DEVIATION_THRESHOLD = 5.0
MAX_DEVIATION_SCORE = 60.0
RSI_CONFIRM_BONUS = 25.0
EXTREME_BAND_BONUS = 15.0


@register_strategy(StrategyKind.MEAN_REVERSION)
def evaluate_mean_reversion(ctx: AnalysisContext) -> TradingSignal | None:
    sma20 = ctx.sma20
    bb = ctx.bollinger
    if sma20 is None or bb is None or sma20 == 0:
        return None

    price = ctx.price
    rsi = ctx.rsi
    deviation = (price - sma20) / sma20 * 100
    deviation_score = min(abs(deviation) * 10, MAX_DEVIATION_SCORE)

    if deviation < -DEVIATION_THRESHOLD and bb.percent_b < 0.3:
        return ctx.build_signal(
            strategy=StrategyKind.MEAN_REVERSION,
            direction=Direction.BUY,
            factors=(
                deviation_score,
                RSI_CONFIRM_BONUS if rsi is not None and rsi.oversold else 0.0,
                EXTREME_BAND_BONUS if bb.percent_b < 0.1 else 0.0,
            ),
            stop_loss=bb.lower * 0.97,
            take_profit=sma20,
            reason=f"Mean reversion opportunity: {abs(deviation):.2f}% below 20 SMA",
        )

    elif deviation > DEVIATION_THRESHOLD and bb.percent_b > 0.7:
        return ctx.build_signal(
            strategy=StrategyKind.MEAN_REVERSION,
            direction=Direction.SELL,
            factors=(
                deviation_score,
                RSI_CONFIRM_BONUS if rsi is not None and rsi.overbought else 0.0,
                EXTREME_BAND_BONUS if bb.percent_b > 0.9 else 0.0,
            ),
            stop_loss=bb.upper * 1.03,
            take_profit=sma20,
            reason=f"Mean reversion opportunity: {deviation:.2f}% above 20 SMA",
        )

    return None
