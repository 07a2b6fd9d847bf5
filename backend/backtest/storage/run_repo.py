"""Backtest run repositories.

PostgresBacktestRunRepo writes to backtest_runs / backtest_trades via the
shared asyncpg pool. InMemoryBacktestRunRepo keeps the same records in
process for tests and runs that should not be saved.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Protocol

import asyncpg

from backtest.config import BacktestConfig
from backtest.models import BacktestStatus
from backtest.stats import BacktestResult

logger = logging.getLogger(__name__)


class BacktestRunRepo(Protocol):
    """Persistence contract for the run state machine."""

    async def create_run(self, run_id: str, config: BacktestConfig) -> None: ...

    async def start_run(self, run_id: str) -> None: ...

    async def complete_run(self, run_id: str, result: BacktestResult) -> None: ...

    async def fail_run(self, run_id: str, error: str) -> None: ...


@dataclass
class RunRecord:
    """In-memory view of one backtest_runs row."""

    id: str
    config: BacktestConfig
    status: BacktestStatus = BacktestStatus.PENDING
    result: BacktestResult | None = None
    error: str | None = None
    transitions: list[BacktestStatus] = field(default_factory=list)


class InMemoryBacktestRunRepo:
    """Dict-backed run repository."""

    def __init__(self):
        self.runs: dict[str, RunRecord] = {}

    async def create_run(self, run_id: str, config: BacktestConfig) -> None:
        self.runs[run_id] = RunRecord(
            id=run_id, config=config, transitions=[BacktestStatus.PENDING]
        )

    async def start_run(self, run_id: str) -> None:
        self._set(run_id, BacktestStatus.RUNNING)

    async def complete_run(self, run_id: str, result: BacktestResult) -> None:
        self._set(run_id, BacktestStatus.COMPLETED).result = result

    async def fail_run(self, run_id: str, error: str) -> None:
        self._set(run_id, BacktestStatus.FAILED).error = error

    def _set(self, run_id: str, status: BacktestStatus) -> RunRecord:
        record = self.runs[run_id]
        record.status = status
        record.transitions.append(status)
        return record


class PostgresBacktestRunRepo:
    """Persist and query backtest runs and trades in PostgreSQL."""

    def __init__(self, pool: asyncpg.Pool):
        self._pool = pool

    # ── Run state machine ──────────────────────────────────────

    async def create_run(self, run_id: str, config: BacktestConfig) -> None:
        """Create a new run record in 'pending' state."""
        async with self._pool.acquire() as conn:
            await conn.execute(
                """INSERT INTO backtest_runs
                   (id, status, config, start_date, end_date, initial_balance)
                   VALUES ($1, 'pending', $2::jsonb, $3, $4, $5)""",
                run_id,
                config.model_dump_json(),
                config.start_date,
                config.end_date,
                config.initial_balance,
            )

    async def start_run(self, run_id: str) -> None:
        async with self._pool.acquire() as conn:
            await conn.execute(
                "UPDATE backtest_runs SET status='running' WHERE id=$1 AND status='pending'",
                run_id,
            )

    async def complete_run(self, run_id: str, result: BacktestResult) -> None:
        """Store trades and final statistics atomically."""
        async with self._pool.acquire() as conn:
            async with conn.transaction():
                await conn.executemany(
                    """INSERT INTO backtest_trades
                       (run_id, seq, instrument, strategy, direction,
                        entry_time, entry_price, size, confidence,
                        exit_time, exit_price, exit_reason, pnl, pnl_percent, is_win)
                       VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12, $13, $14, $15)""",
                    [
                        (
                            run_id,
                            seq,
                            t.instrument,
                            t.strategy.value,
                            t.direction.value,
                            t.entry_time,
                            t.entry_price,
                            t.size,
                            t.confidence,
                            t.exit_time,
                            t.exit_price,
                            t.exit_reason.value,
                            t.pnl,
                            t.pnl_percent,
                            t.is_win,
                        )
                        for seq, t in enumerate(result.trades)
                    ],
                )
                await conn.execute(
                    """UPDATE backtest_runs SET
                        final_balance=$2, total_trades=$3, winning_trades=$4,
                        losing_trades=$5, win_rate=$6, profit_factor=$7,
                        sharpe_ratio=$8, max_drawdown=$9, total_return=$10,
                        status='completed', completed_at=$11
                       WHERE id=$1""",
                    run_id,
                    result.final_balance,
                    result.total_trades,
                    result.winning_trades,
                    result.losing_trades,
                    result.win_rate,
                    result.profit_factor,
                    result.sharpe_ratio,
                    result.max_drawdown,
                    result.total_return,
                    datetime.now(timezone.utc),
                )

    async def fail_run(self, run_id: str, error: str) -> None:
        """Mark a run as failed with a descriptive error."""
        async with self._pool.acquire() as conn:
            await conn.execute(
                """UPDATE backtest_runs SET status='failed', error=$2, completed_at=$3
                   WHERE id=$1""",
                run_id,
                error,
                datetime.now(timezone.utc),
            )

    # ── Queries ────────────────────────────────────────────────

    async def list_runs(self, limit: int = 50) -> list[dict]:
        async with self._pool.acquire() as conn:
            rows = await conn.fetch(
                """SELECT id, status, start_date, end_date, total_trades,
                          win_rate, total_return, profit_factor, error
                   FROM backtest_runs ORDER BY created_at DESC LIMIT $1""",
                limit,
            )
        return [dict(r) for r in rows]

    async def delete_run(self, run_id: str) -> bool:
        """Delete a run and its trades. Returns True if the run existed."""
        async with self._pool.acquire() as conn:
            status = await conn.execute("DELETE FROM backtest_runs WHERE id=$1", run_id)
        return status.endswith(" 1")
