"""Strategy kind enumeration."""

import logging
from enum import Enum

logger = logging.getLogger(__name__)


class StrategyKind(str, Enum):
    """Closed set of signal strategies.

    Every member must have an evaluator registered in core.strategy;
    core.strategy.ensure_registry_complete() enforces this at import time.
    """

    RSI = "rsi-oversold-overbought"
    MACD = "macd-crossover"
    BOLLINGER = "bollinger-breakout"
    EMA_CROSSOVER = "ema-crossover"
    TREND_FOLLOWING = "trend-following"
    MEAN_REVERSION = "mean-reversion"
    DEFAULT = "default"

    @classmethod
    def parse(cls, name: "str | StrategyKind") -> "StrategyKind":
        """Resolve a strategy name, falling back to DEFAULT for unknown names."""
        if isinstance(name, StrategyKind):
            return name
        try:
            return cls(name)
        except ValueError:
            logger.warning("Unknown strategy '%s', using default chain", name)
            return cls.DEFAULT

    @classmethod
    def selectable(cls) -> list["StrategyKind"]:
        """Strategies a user can pick explicitly (everything but DEFAULT)."""
        return [k for k in cls if k is not cls.DEFAULT]
