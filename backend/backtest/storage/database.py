"""PostgreSQL database for backtest data.

Manages a single asyncpg connection pool shared by candle reading and
result storage. Creates the cached-candle table and the backtest result
tables (backtest_runs, backtest_trades), separate from the live app's
SQLAlchemy tables.
"""

from __future__ import annotations

import logging

import asyncpg

logger = logging.getLogger(__name__)

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS candles (
    instrument      VARCHAR(32) NOT NULL,
    timeframe       VARCHAR(8) NOT NULL,
    timestamp       TIMESTAMPTZ NOT NULL,
    open            DOUBLE PRECISION NOT NULL,
    high            DOUBLE PRECISION NOT NULL,
    low             DOUBLE PRECISION NOT NULL,
    close           DOUBLE PRECISION NOT NULL,
    volume          DOUBLE PRECISION NOT NULL,
    PRIMARY KEY (instrument, timeframe, timestamp)
);

CREATE TABLE IF NOT EXISTS backtest_runs (
    id              TEXT PRIMARY KEY,
    created_at      TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    status          TEXT NOT NULL DEFAULT 'pending',
    config          JSONB NOT NULL,
    start_date      TIMESTAMPTZ NOT NULL,
    end_date        TIMESTAMPTZ NOT NULL,
    initial_balance DOUBLE PRECISION NOT NULL,
    final_balance   DOUBLE PRECISION,
    total_trades    INTEGER DEFAULT 0,
    winning_trades  INTEGER DEFAULT 0,
    losing_trades   INTEGER DEFAULT 0,
    win_rate        DOUBLE PRECISION DEFAULT 0.0,
    profit_factor   DOUBLE PRECISION DEFAULT 0.0,
    sharpe_ratio    DOUBLE PRECISION DEFAULT 0.0,
    max_drawdown    DOUBLE PRECISION DEFAULT 0.0,
    total_return    DOUBLE PRECISION DEFAULT 0.0,
    error           TEXT,
    completed_at    TIMESTAMPTZ
);

CREATE TABLE IF NOT EXISTS backtest_trades (
    run_id          TEXT NOT NULL REFERENCES backtest_runs(id) ON DELETE CASCADE,
    seq             INTEGER NOT NULL,
    instrument      VARCHAR(32) NOT NULL,
    strategy        VARCHAR(50) NOT NULL,
    direction       VARCHAR(4) NOT NULL,
    entry_time      TIMESTAMPTZ NOT NULL,
    entry_price     DOUBLE PRECISION NOT NULL,
    size            DOUBLE PRECISION NOT NULL,
    confidence      DOUBLE PRECISION NOT NULL,
    exit_time       TIMESTAMPTZ NOT NULL,
    exit_price      DOUBLE PRECISION NOT NULL,
    exit_reason     VARCHAR(16) NOT NULL,
    pnl             DOUBLE PRECISION NOT NULL,
    pnl_percent     DOUBLE PRECISION NOT NULL,
    is_win          BOOLEAN NOT NULL,
    PRIMARY KEY (run_id, seq)
);

CREATE INDEX IF NOT EXISTS idx_bt_trades_run_instrument
    ON backtest_trades(run_id, instrument);
"""


class BacktestDatabase:
    """Asyncpg connection pool for backtest operations.

    Shared by PostgresCandleSource (read candles), CandleDownloader
    (write candles) and PostgresBacktestRunRepo (write results).
    """

    def __init__(self, database_url: str):
        self._database_url = database_url
        self._pool: asyncpg.Pool | None = None

    @property
    def pool(self) -> asyncpg.Pool:
        if self._pool is None:
            raise RuntimeError("Database not initialized. Call init() first.")
        return self._pool

    async def init(self) -> None:
        """Create connection pool and ensure backtest tables exist."""
        self._pool = await asyncpg.create_pool(
            self._database_url,
            min_size=1,
            max_size=5,
            command_timeout=120,
        )
        async with self._pool.acquire() as conn:
            await conn.execute(SCHEMA_SQL)
        logger.info("Backtest database initialized")

    async def close(self) -> None:
        if self._pool is not None:
            await self._pool.close()
            self._pool = None
