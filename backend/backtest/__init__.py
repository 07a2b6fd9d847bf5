"""Backtesting system for signal strategies.

Depends on core/ for business logic; data access lives in
backtest/storage (asyncpg) and the Kraken client.

Usage:
    python -m backtest --start 2025-01-01 --end 2025-03-31
    python -m backtest --list-runs
"""

from backtest.config import BacktestConfig
from backtest.engine import BacktestEngine
from backtest.runner import BacktestRunner, BacktestRunOutcome
from backtest.stats import BacktestResult

__all__ = [
    "BacktestConfig",
    "BacktestEngine",
    "BacktestRunner",
    "BacktestRunOutcome",
    "BacktestResult",
]
