"""RSI oversold/overbought strategy package.

Importing this package registers evaluate_rsi for StrategyKind.RSI.
"""

from core.strategy.rsi.generator import evaluate_rsi

__all__ = ["evaluate_rsi"]
