"""Backtest storage layer, independent of app/storage.

Uses a shared asyncpg pool for cached candles and run results.
"""

from backtest.storage.candle_source import (
    CandleSource,
    FetcherCandleSource,
    InMemoryCandleSource,
    PostgresCandleSource,
)
from backtest.storage.database import BacktestDatabase
from backtest.storage.run_repo import (
    BacktestRunRepo,
    InMemoryBacktestRunRepo,
    PostgresBacktestRunRepo,
)

__all__ = [
    "BacktestDatabase",
    "BacktestRunRepo",
    "CandleSource",
    "FetcherCandleSource",
    "InMemoryBacktestRunRepo",
    "InMemoryCandleSource",
    "PostgresBacktestRunRepo",
    "PostgresCandleSource",
]
