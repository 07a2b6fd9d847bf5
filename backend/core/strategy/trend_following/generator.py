"""Trend-following strategy (multi-indicator agreement).

Bullish trend: price > SMA50 > SMA200 and EMA12 > EMA26, entered on a
bullish MACD crossover. Bearish is the mirror. Confidence is coarse:
70 base, +15 when RSI sits in the trend half (50-70 for buys, 30-50
for sells), +15 high volume. Risk is always medium.
"""

from core.models.signal import Direction, Risk, TradingSignal
from core.models.strategy import StrategyKind
from core.strategy.context import AnalysisContext
from core.strategy.registry import register_strategy

BASE_CONFIDENCE = 70.0
RSI_CONFIRM_BONUS = 15.0
VOLUME_CONFIRM_BONUS = 15.0


@register_strategy(StrategyKind.TREND_FOLLOWING)
def evaluate_trend_following(ctx: AnalysisContext) -> TradingSignal | None:
    ema12, ema26 = ctx.ema12, ctx.ema26
    sma50, sma200 = ctx.sma50, ctx.sma200
    if ema12 is None or ema26 is None or sma50 is None or sma200 is None:
        return None

    price = ctx.price
    macd = ctx.macd
    rsi = ctx.rsi
    volume_bonus = VOLUME_CONFIRM_BONUS if ctx.high_volume else 0.0

    bullish_trend = price > sma50 > sma200 and ema12 > ema26
    bearish_trend = price < sma50 < sma200 and ema12 < ema26

    if bullish_trend and macd is not None and macd.bullish:
        rsi_confirm = rsi is not None and 50 < rsi.value < 70
        return ctx.build_signal(
            strategy=StrategyKind.TREND_FOLLOWING,
            direction=Direction.BUY,
            factors=(BASE_CONFIDENCE, RSI_CONFIRM_BONUS if rsi_confirm else 0.0, volume_bonus),
            risk=Risk.MEDIUM,
            stop_loss=sma50 * 0.98,
            take_profit=price * 1.15,
            reason="Strong bullish trend confirmed by multiple indicators",
        )

    elif bearish_trend and macd is not None and macd.bearish:
        rsi_confirm = rsi is not None and 30 < rsi.value < 50
        return ctx.build_signal(
            strategy=StrategyKind.TREND_FOLLOWING,
            direction=Direction.SELL,
            factors=(BASE_CONFIDENCE, RSI_CONFIRM_BONUS if rsi_confirm else 0.0, volume_bonus),
            risk=Risk.MEDIUM,
            stop_loss=sma50 * 1.02,
            take_profit=price * 0.85,
            reason="Strong bearish trend confirmed by multiple indicators",
        )

    return None
