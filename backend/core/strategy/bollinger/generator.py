"""Bollinger Band edge strategy.

- BUY in the lower zone (%B < 0.2), SELL in the upper zone (%B > 0.8)
- Confidence scales with depth into the zone: (distance) * 200,
  +20 RSI agreeing, +15 high volume, +10 bandwidth above 2%
- Target is the middle band, stop is 2% beyond the touched band
"""

from core.models.signal import Direction, TradingSignal
from core.models.strategy import StrategyKind
from core.strategy.context import AnalysisContext
from core.strategy.registry import register_strategy

LOWER_ZONE = 0.2
UPPER_ZONE = 0.8
ZONE_SCALE = 200.0
RSI_CONFIRM_BONUS = 20.0
VOLUME_CONFIRM_BONUS = 15.0
BANDWIDTH_BONUS = 10.0
MIN_BANDWIDTH = 2.0


@register_strategy(StrategyKind.BOLLINGER)
def evaluate_bollinger(ctx: AnalysisContext) -> TradingSignal | None:
    bb = ctx.bollinger
    if bb is None:
        return None

    rsi = ctx.rsi
    volume_bonus = VOLUME_CONFIRM_BONUS if ctx.high_volume else 0.0
    bandwidth_bonus = BANDWIDTH_BONUS if bb.bandwidth > MIN_BANDWIDTH else 0.0

    if bb.percent_b < LOWER_ZONE:
        rsi_confirm = rsi is not None and rsi.oversold
        reason = f"Price near lower Bollinger Band (%B: {bb.percent_b:.2f})"
        if rsi_confirm:
            reason += ", RSI oversold"
        return ctx.build_signal(
            strategy=StrategyKind.BOLLINGER,
            direction=Direction.BUY,
            factors=(
                (LOWER_ZONE - bb.percent_b) * ZONE_SCALE,
                RSI_CONFIRM_BONUS if rsi_confirm else 0.0,
                volume_bonus,
                bandwidth_bonus,
            ),
            stop_loss=bb.lower * 0.98,
            take_profit=bb.middle,
            reason=reason,
        )

    elif bb.percent_b > UPPER_ZONE:
        rsi_confirm = rsi is not None and rsi.overbought
        reason = f"Price near upper Bollinger Band (%B: {bb.percent_b:.2f})"
        if rsi_confirm:
            reason += ", RSI overbought"
        return ctx.build_signal(
            strategy=StrategyKind.BOLLINGER,
            direction=Direction.SELL,
            factors=(
                (bb.percent_b - UPPER_ZONE) * ZONE_SCALE,
                RSI_CONFIRM_BONUS if rsi_confirm else 0.0,
                volume_bonus,
                bandwidth_bonus,
            ),
            stop_loss=bb.upper * 1.02,
            take_profit=bb.middle,
            reason=reason,
        )

    return None
