"""Mean-reversion strategy package.

Importing this package registers evaluate_mean_reversion for
StrategyKind.MEAN_REVERSION.
"""

from core.strategy.mean_reversion.generator import evaluate_mean_reversion

__all__ = ["evaluate_mean_reversion"]
