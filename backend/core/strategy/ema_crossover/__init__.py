"""EMA(12/26) crossover strategy package.

Importing this package registers evaluate_ema_crossover for
StrategyKind.EMA_CROSSOVER.
"""

from core.strategy.ema_crossover.generator import evaluate_ema_crossover

__all__ = ["evaluate_ema_crossover"]
