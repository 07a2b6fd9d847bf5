"""Default strategy chain package.

Importing this package registers evaluate_default for StrategyKind.DEFAULT.
"""

from core.strategy.fallback.generator import DEFAULT_CHAIN, evaluate_default

__all__ = ["DEFAULT_CHAIN", "evaluate_default"]
