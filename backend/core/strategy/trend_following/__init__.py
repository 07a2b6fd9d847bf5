"""Trend-following strategy package.

Importing this package registers evaluate_trend_following for
StrategyKind.TREND_FOLLOWING.
"""

from core.strategy.trend_following.generator import evaluate_trend_following

__all__ = ["evaluate_trend_following"]
