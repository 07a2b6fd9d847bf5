"""Default strategy: try several strategies in priority order.

The first strategy that produces a signal at or above the caller's
threshold wins. Used for StrategyKind.DEFAULT and for unknown names.
"""

from core.models.signal import TradingSignal
from core.models.strategy import StrategyKind
from core.strategy.context import AnalysisContext
from core.strategy.registry import get_evaluator, register_strategy

DEFAULT_CHAIN: tuple[StrategyKind, ...] = (
    StrategyKind.TREND_FOLLOWING,
    StrategyKind.MACD,
    StrategyKind.RSI,
    StrategyKind.BOLLINGER,
)


@register_strategy(StrategyKind.DEFAULT)
def evaluate_default(ctx: AnalysisContext) -> TradingSignal | None:
    for kind in DEFAULT_CHAIN:
        signal = get_evaluator(kind)(ctx)
        if signal is not None:
            return signal
    return None
