"""MACD crossover strategy package.

Importing this package registers evaluate_macd for StrategyKind.MACD.
"""

from core.strategy.macd.generator import evaluate_macd

__all__ = ["evaluate_macd"]
