"""Strategy plugin system.

Public API:
- AnalysisContext: one candle window plus lazily computed indicators
- StrategyEvaluator: Protocol every registered evaluation function satisfies
- register_strategy: Decorator binding an evaluator to a StrategyKind
- get_evaluator: Look up the evaluator for a kind
- list_strategies: Discover all registered kinds

Importing this package registers all built-in strategies and verifies
that every StrategyKind has an evaluator.
"""

from core.strategy.context import AnalysisContext
from core.strategy.protocol import StrategyEvaluator
from core.strategy.registry import (
    ensure_registry_complete,
    get_evaluator,
    list_strategies,
    register_strategy,
)
from core.strategy.scoring import combine_factors, risk_from_confidence, risk_from_rsi

# Import built-in strategies to trigger auto-registration
import core.strategy.rsi  # noqa: F401
import core.strategy.macd  # noqa: F401
import core.strategy.bollinger  # noqa: F401
import core.strategy.ema_crossover  # noqa: F401
import core.strategy.trend_following  # noqa: F401
import core.strategy.mean_reversion  # noqa: F401
import core.strategy.fallback  # noqa: F401

ensure_registry_complete()

__all__ = [
    "AnalysisContext",
    "StrategyEvaluator",
    "ensure_registry_complete",
    "get_evaluator",
    "list_strategies",
    "register_strategy",
    "combine_factors",
    "risk_from_confidence",
    "risk_from_rsi",
]
