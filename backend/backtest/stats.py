"""Statistics calculator for backtest results.

Computes overall metrics (win rate, average win/loss, profit factor,
total return, Sharpe ratio, max drawdown) and per-instrument,
per-strategy and per-exit-reason breakdowns.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime

import numpy as np

from backtest.models import BacktestTrade, BalanceSnapshot

logger = logging.getLogger(__name__)


@dataclass
class GroupStats:
    """Trade counts and PnL for one breakdown bucket."""

    key: str
    total: int = 0
    wins: int = 0
    losses: int = 0
    pnl: float = 0.0

    @property
    def win_rate(self) -> float:
        return (self.wins / self.total * 100) if self.total > 0 else 0.0


@dataclass
class BacktestResult:
    """Complete backtest results. Derived; never mutated after calculation."""

    # Metadata
    start_date: datetime
    end_date: datetime
    instruments: list[str]
    strategies: list[str]
    timeframe: str

    # Balances
    initial_balance: float
    final_balance: float

    # Overall
    total_trades: int = 0
    winning_trades: int = 0
    losing_trades: int = 0
    win_rate: float = 0.0
    avg_win: float = 0.0
    avg_loss: float = 0.0
    profit_factor: float = 0.0
    total_return: float = 0.0
    sharpe_ratio: float = 0.0
    max_drawdown: float = 0.0

    # Breakdowns
    by_instrument: list[GroupStats] = field(default_factory=list)
    by_strategy: list[GroupStats] = field(default_factory=list)
    by_exit_reason: list[GroupStats] = field(default_factory=list)

    # Raw data
    trades: list[BacktestTrade] = field(default_factory=list)
    balance_history: list[BalanceSnapshot] = field(default_factory=list)


def sharpe_ratio(balances: list[float]) -> float:
    """Mean step-over-step return divided by its population stdev.

    Returns 0 with fewer than two balances or zero volatility.
    """
    if len(balances) < 2:
        return 0.0
    series = np.asarray(balances, dtype=np.float64)
    returns = np.diff(series) / series[:-1]
    std = float(np.std(returns))
    if std == 0:
        return 0.0
    return float(np.mean(returns)) / std


def max_drawdown(balances: list[float]) -> float:
    """Largest peak-to-trough decline in percent of the peak."""
    if not balances:
        return 0.0
    peak = balances[0]
    worst = 0.0
    for balance in balances:
        if balance > peak:
            peak = balance
        if peak > 0:
            worst = max(worst, (peak - balance) / peak * 100)
    return worst


class StatisticsCalculator:
    """Calculate backtest statistics from closed trades and balance history."""

    def calculate(
        self,
        trades: list[BacktestTrade],
        balance_history: list[BalanceSnapshot],
        *,
        start_date: datetime,
        end_date: datetime,
        instruments: list[str],
        strategies: list[str],
        timeframe: str,
        initial_balance: float,
        final_balance: float,
    ) -> BacktestResult:
        result = BacktestResult(
            start_date=start_date,
            end_date=end_date,
            instruments=instruments,
            strategies=strategies,
            timeframe=timeframe,
            initial_balance=initial_balance,
            final_balance=final_balance,
            trades=list(trades),
            balance_history=list(balance_history),
        )

        wins = [t.pnl for t in trades if t.is_win]
        losses = [t.pnl for t in trades if not t.is_win]

        result.total_trades = len(trades)
        result.winning_trades = len(wins)
        result.losing_trades = len(losses)
        if trades:
            result.win_rate = len(wins) / len(trades) * 100
        if wins:
            result.avg_win = sum(wins) / len(wins)
        if losses:
            result.avg_loss = abs(sum(losses) / len(losses))
        if result.avg_loss > 0:
            result.profit_factor = result.avg_win / result.avg_loss

        result.total_return = (final_balance - initial_balance) / initial_balance * 100

        balances = [s.balance for s in balance_history]
        result.sharpe_ratio = sharpe_ratio(balances)
        result.max_drawdown = max_drawdown(balances)

        result.by_instrument = self._group(trades, lambda t: t.instrument)
        result.by_strategy = self._group(trades, lambda t: t.strategy.value)
        result.by_exit_reason = self._group(trades, lambda t: t.exit_reason.value)

        logger.debug(
            "Stats: %d trades, win rate %.1f%%, return %.2f%%",
            result.total_trades,
            result.win_rate,
            result.total_return,
        )
        return result

    @staticmethod
    def _group(trades: list[BacktestTrade], key_fn) -> list[GroupStats]:
        groups: dict[str, GroupStats] = defaultdict(lambda: GroupStats(key=""))
        for trade in trades:
            key = key_fn(trade)
            stats = groups[key]
            stats.key = key
            stats.total += 1
            stats.pnl += trade.pnl
            if trade.is_win:
                stats.wins += 1
            else:
                stats.losses += 1
        return [groups[k] for k in sorted(groups)]
