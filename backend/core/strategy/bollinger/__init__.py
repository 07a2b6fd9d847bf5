"""Bollinger Band edge strategy package.

Importing this package registers evaluate_bollinger for StrategyKind.BOLLINGER.
"""

from core.strategy.bollinger.generator import evaluate_bollinger

__all__ = ["evaluate_bollinger"]
