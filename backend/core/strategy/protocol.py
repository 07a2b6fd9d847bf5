"""Strategy evaluator protocol.

A strategy is a pure function from an AnalysisContext (one candle window
plus lazily computed indicators) to zero or one TradingSignal.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from core.models.signal import TradingSignal
    from core.strategy.context import AnalysisContext


@runtime_checkable
class StrategyEvaluator(Protocol):
    """Callable evaluating one strategy against one candle window."""

    __name__: str

    def __call__(self, ctx: AnalysisContext) -> TradingSignal | None:
        ...
