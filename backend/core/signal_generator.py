"""Signal generator: one candle series + one strategy -> zero or one signal.

This module is pure business logic with no I/O dependencies. It is used
by the live scheduler, the market scanner and the backtest engine.
"""

import logging
from typing import Sequence

from core.models.candle import Candle
from core.models.signal import TradingSignal
from core.models.strategy import StrategyKind
from core.strategy import AnalysisContext, get_evaluator

logger = logging.getLogger(__name__)

# Enough history for SMA200 in the trend strategy
MIN_HISTORY = 200
DEFAULT_CONFIDENCE_THRESHOLD = 60.0


class SignalGenerator:
    """Evaluate strategies against candle windows.

    Holds only the confidence threshold. Every generate() call builds a
    fresh AnalysisContext, so one generator can be shared across
    instruments, timeframes and backtest steps.
    """

    def __init__(self, confidence_threshold: float = DEFAULT_CONFIDENCE_THRESHOLD):
        if not 0 <= confidence_threshold <= 100:
            raise ValueError(
                f"confidence_threshold must be within [0, 100], got {confidence_threshold}"
            )
        self.confidence_threshold = confidence_threshold

    def generate(
        self,
        candles: Sequence[Candle],
        strategy: StrategyKind | str = StrategyKind.DEFAULT,
    ) -> TradingSignal | None:
        """Run one strategy over a chronologically sorted candle window.

        Args:
            candles: Candles, oldest first. The last candle is "now".
            strategy: StrategyKind or its name. Unknown names use the
                default chain.

        Returns:
            The signal, or None when history is shorter than MIN_HISTORY,
            no rule fired, or confidence fell below the threshold.
        """
        if len(candles) < MIN_HISTORY:
            return None

        kind = StrategyKind.parse(strategy)
        ctx = AnalysisContext(candles, self.confidence_threshold)
        signal = get_evaluator(kind)(ctx)
        if signal is not None:
            logger.debug(
                "%s -> %s %.1f (%s)",
                kind.value,
                signal.direction.value,
                signal.confidence,
                signal.reason,
            )
        return signal


def generate_signal(
    candles: Sequence[Candle],
    strategy: StrategyKind | str = StrategyKind.DEFAULT,
    confidence_threshold: float = DEFAULT_CONFIDENCE_THRESHOLD,
) -> TradingSignal | None:
    """Convenience wrapper around SignalGenerator.generate()."""
    return SignalGenerator(confidence_threshold).generate(candles, strategy)
