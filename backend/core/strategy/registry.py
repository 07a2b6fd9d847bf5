"""Strategy registry mapping each StrategyKind to its evaluator.

Usage:
    @register_strategy(StrategyKind.RSI)
    def evaluate_rsi(ctx: AnalysisContext) -> TradingSignal | None:
        ...

    evaluator = get_evaluator(StrategyKind.RSI)
    kinds = list_strategies()
"""

from __future__ import annotations

import logging

from core.models.strategy import StrategyKind
from core.strategy.protocol import StrategyEvaluator

logger = logging.getLogger(__name__)

# Global registry: kind -> evaluation function
_REGISTRY: dict[StrategyKind, StrategyEvaluator] = {}


def register_strategy(kind: StrategyKind):
    """Decorator to register an evaluation function for a strategy kind.

    Args:
        kind: The StrategyKind the function implements.

    Returns:
        Decorator that registers the function and returns it unchanged.

    Raises:
        ValueError: If the kind already has an evaluator.
    """

    def decorator(func: StrategyEvaluator) -> StrategyEvaluator:
        if kind in _REGISTRY:
            raise ValueError(
                f"Strategy '{kind.value}' is already registered by {_REGISTRY[kind].__name__}"
            )
        _REGISTRY[kind] = func
        logger.debug("Registered strategy: %s -> %s", kind.value, func.__name__)
        return func

    return decorator


def get_evaluator(kind: StrategyKind) -> StrategyEvaluator:
    """Get the evaluation function for a strategy kind.

    Raises:
        KeyError: If no evaluator is registered for the kind.
    """
    func = _REGISTRY.get(kind)
    if func is None:
        available = ", ".join(sorted(k.value for k in _REGISTRY)) or "(none)"
        raise KeyError(f"Unknown strategy '{kind}'. Available: {available}")
    return func


def list_strategies() -> list[StrategyKind]:
    """Return registered kinds in enum declaration order."""
    return [k for k in StrategyKind if k in _REGISTRY]


def ensure_registry_complete() -> None:
    """Verify every StrategyKind has an evaluator.

    Raises:
        RuntimeError: Listing the kinds that are missing.
    """
    missing = [k.value for k in StrategyKind if k not in _REGISTRY]
    if missing:
        raise RuntimeError(f"Strategies without an evaluator: {', '.join(missing)}")
