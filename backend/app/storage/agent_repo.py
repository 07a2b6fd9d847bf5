"""PostgreSQL scheduler store (agents, jobs, logs).

Implements scheduler.store.SchedulerStore on SQLAlchemy:
- create_job_if_idle: INSERT ... ON CONFLICT DO NOTHING against the
  partial unique index on live jobs
- claim_pending_jobs: UPDATE ... WHERE id IN (SELECT ... FOR UPDATE
  SKIP LOCKED) RETURNING
- transitions: UPDATE ... WHERE id = :id AND status = :expected
- owner edits: UPDATE of the edited columns only, so last_run_at and
  next_run_at written by the worker are never clobbered
"""

import logging
from datetime import datetime
from typing import Any

from sqlalchemy import delete, func, select, update
from sqlalchemy.dialects.postgresql import insert

from app.storage.database import (
    AgentJobTable,
    AgentLogTable,
    Database,
    ScheduledAgentTable,
    get_database,
)
from scheduler.models import (
    AgentConfig,
    AgentJob,
    JobStatus,
    LogLevel,
    new_id,
)

logger = logging.getLogger(__name__)

_LIVE = [JobStatus.PENDING.value, JobStatus.RUNNING.value]


class PostgresSchedulerStore:
    """SchedulerStore backed by the scheduled_agents/_jobs/_logs tables."""

    def __init__(self, db: Database | None = None):
        self._db = db

    @property
    def db(self) -> Database:
        return self._db or get_database()

    # -------------------------------------------------------------------------
    # Agents
    # -------------------------------------------------------------------------

    async def due_agents(self, now: datetime) -> list[AgentConfig]:
        async with self.db.session() as session:
            stmt = (
                select(ScheduledAgentTable)
                .where(
                    ScheduledAgentTable.is_active.is_(True),
                    ScheduledAgentTable.next_run_at <= now,
                )
                .order_by(ScheduledAgentTable.next_run_at.asc())
            )
            result = await session.execute(stmt)
            return [self._row_to_agent(r) for r in result.scalars().all()]

    async def get_agent(self, agent_id: str) -> AgentConfig | None:
        async with self.db.session() as session:
            row = await session.get(ScheduledAgentTable, agent_id)
            return self._row_to_agent(row) if row else None

    async def list_agents(self, owner_id: str) -> list[AgentConfig]:
        async with self.db.session() as session:
            stmt = (
                select(ScheduledAgentTable)
                .where(ScheduledAgentTable.owner_id == owner_id)
                .order_by(ScheduledAgentTable.created_at.desc())
            )
            result = await session.execute(stmt)
            return [self._row_to_agent(r) for r in result.scalars().all()]

    async def save_agent(self, agent: AgentConfig) -> AgentConfig:
        values = self._agent_values(agent)
        async with self.db.session() as session:
            stmt = insert(ScheduledAgentTable).values(id=agent.id, **values)
            stmt = stmt.on_conflict_do_update(
                index_elements=["id"],
                set_={**values, "updated_at": func.now()},
            )
            await session.execute(stmt)
        return agent

    async def update_agent_fields(
        self, agent_id: str, values: dict[str, Any]
    ) -> AgentConfig | None:
        columns = dict(values)
        if "strategies" in columns:
            columns["strategies"] = [s.value for s in columns["strategies"]]
        async with self.db.session() as session:
            stmt = (
                update(ScheduledAgentTable)
                .where(ScheduledAgentTable.id == agent_id)
                .values(**columns, updated_at=func.now())
                .returning(*ScheduledAgentTable.__table__.c)
                .execution_options(synchronize_session=False)
            )
            row = (await session.execute(stmt)).first()
            return self._row_to_agent(row) if row else None

    async def delete_agent(self, agent_id: str) -> bool:
        async with self.db.session() as session:
            result = await session.execute(
                delete(ScheduledAgentTable).where(ScheduledAgentTable.id == agent_id)
            )
            return result.rowcount > 0

    async def mark_agent_run(
        self, agent_id: str, last_run_at: datetime | None, next_run_at: datetime
    ) -> None:
        values: dict[str, Any] = {"next_run_at": next_run_at}
        if last_run_at is not None:
            values["last_run_at"] = last_run_at
        async with self.db.session() as session:
            await session.execute(
                update(ScheduledAgentTable)
                .where(ScheduledAgentTable.id == agent_id)
                .values(**values)
            )

    # -------------------------------------------------------------------------
    # Jobs
    # -------------------------------------------------------------------------

    async def create_job_if_idle(
        self, agent_id: str, scheduled_for: datetime, run_context: dict[str, Any]
    ) -> AgentJob | None:
        async with self.db.session() as session:
            stmt = (
                insert(AgentJobTable)
                .values(
                    id=new_id(),
                    agent_id=agent_id,
                    status=JobStatus.PENDING.value,
                    attempts=0,
                    scheduled_for=scheduled_for,
                    run_context=run_context,
                )
                .on_conflict_do_nothing(
                    index_elements=["agent_id"],
                    index_where=AgentJobTable.status.in_(_LIVE),
                )
                .returning(*AgentJobTable.__table__.c)
            )
            row = (await session.execute(stmt)).first()
            return self._row_to_job(row) if row else None

    async def claim_pending_jobs(self, limit: int, now: datetime) -> list[AgentJob]:
        claimable = (
            select(AgentJobTable.id)
            .where(
                AgentJobTable.status == JobStatus.PENDING.value,
                AgentJobTable.scheduled_for <= now,
            )
            .order_by(AgentJobTable.scheduled_for.asc())
            .limit(limit)
            .with_for_update(skip_locked=True)
        )
        stmt = (
            update(AgentJobTable)
            .where(AgentJobTable.id.in_(claimable))
            .values(
                status=JobStatus.RUNNING.value,
                started_at=now,
                attempts=AgentJobTable.attempts + 1,
            )
            .returning(*AgentJobTable.__table__.c)
            .execution_options(synchronize_session=False)
        )
        async with self.db.session() as session:
            rows = (await session.execute(stmt)).all()
        jobs = [self._row_to_job(r) for r in rows]
        jobs.sort(key=lambda j: j.scheduled_for)
        return jobs

    async def _transition(self, job_id: str, expected: JobStatus, **values: Any) -> bool:
        stmt = (
            update(AgentJobTable)
            .where(AgentJobTable.id == job_id, AgentJobTable.status == expected.value)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        async with self.db.session() as session:
            result = await session.execute(stmt)
        if result.rowcount != 1:
            logger.warning(
                f"Job {job_id} transition to {values.get('status')} skipped: "
                f"no longer {expected.value}"
            )
            return False
        return True

    async def complete_job(self, job_id: str, finished_at: datetime) -> bool:
        return await self._transition(
            job_id, JobStatus.RUNNING,
            status=JobStatus.SUCCEEDED.value, finished_at=finished_at, error=None,
        )

    async def requeue_job(self, job_id: str, scheduled_for: datetime) -> bool:
        return await self._transition(
            job_id, JobStatus.RUNNING,
            status=JobStatus.PENDING.value, scheduled_for=scheduled_for, finished_at=None,
        )

    async def fail_job(self, job_id: str, error: str, finished_at: datetime) -> bool:
        return await self._transition(
            job_id, JobStatus.RUNNING,
            status=JobStatus.FAILED.value, error=error, finished_at=finished_at,
        )

    async def cancel_job(self, job_id: str, reason: str, finished_at: datetime) -> bool:
        return await self._transition(
            job_id, JobStatus.RUNNING,
            status=JobStatus.CANCELLED.value, error=reason, finished_at=finished_at,
        )

    async def running_jobs_started_before(self, cutoff: datetime) -> list[AgentJob]:
        async with self.db.session() as session:
            stmt = (
                select(AgentJobTable)
                .where(
                    AgentJobTable.status == JobStatus.RUNNING.value,
                    AgentJobTable.started_at <= cutoff,
                )
                .order_by(AgentJobTable.started_at.asc())
            )
            result = await session.execute(stmt)
            return [self._row_to_job(r) for r in result.scalars().all()]

    async def get_job(self, job_id: str) -> AgentJob | None:
        async with self.db.session() as session:
            row = await session.get(AgentJobTable, job_id)
            return self._row_to_job(row) if row else None

    async def list_jobs(self, agent_id: str, limit: int = 20) -> list[AgentJob]:
        async with self.db.session() as session:
            stmt = (
                select(AgentJobTable)
                .where(AgentJobTable.agent_id == agent_id)
                .order_by(AgentJobTable.scheduled_for.desc())
                .limit(limit)
            )
            result = await session.execute(stmt)
            return [self._row_to_job(r) for r in result.scalars().all()]

    # -------------------------------------------------------------------------
    # Logs
    # -------------------------------------------------------------------------

    async def append_log(
        self,
        agent_id: str,
        job_id: str | None,
        level: LogLevel,
        message: str,
        context: dict[str, Any] | None = None,
    ) -> None:
        async with self.db.session() as session:
            await session.execute(
                insert(AgentLogTable).values(
                    agent_id=agent_id,
                    job_id=job_id,
                    level=LogLevel(level).value,
                    message=message,
                    context=context or {},
                )
            )

    # -------------------------------------------------------------------------
    # Row mapping
    # -------------------------------------------------------------------------

    @staticmethod
    def _agent_values(agent: AgentConfig) -> dict[str, Any]:
        return {
            "owner_id": agent.owner_id,
            "name": agent.name,
            "is_active": agent.is_active,
            "interval_minutes": agent.interval_minutes,
            "instruments": list(agent.instruments),
            "timeframes": list(agent.timeframes),
            "strategies": [s.value for s in agent.strategies],
            "min_confidence": agent.min_confidence,
            "concurrency": agent.concurrency,
            "max_runtime_seconds": agent.max_runtime_seconds,
            "max_attempts": agent.max_attempts,
            "timezone": agent.timezone,
            "last_run_at": agent.last_run_at,
            "next_run_at": agent.next_run_at,
        }

    @staticmethod
    def _row_to_agent(row) -> AgentConfig:
        return AgentConfig(
            id=row.id,
            owner_id=row.owner_id,
            name=row.name,
            is_active=row.is_active,
            interval_minutes=row.interval_minutes,
            instruments=list(row.instruments),
            timeframes=list(row.timeframes),
            strategies=list(row.strategies),
            min_confidence=float(row.min_confidence),
            concurrency=row.concurrency,
            max_runtime_seconds=row.max_runtime_seconds,
            max_attempts=row.max_attempts,
            timezone=row.timezone,
            last_run_at=row.last_run_at,
            next_run_at=row.next_run_at,
        )

    @staticmethod
    def _row_to_job(row) -> AgentJob:
        """Works for ORM instances and RETURNING rows alike."""
        return AgentJob(
            id=row.id,
            agent_id=row.agent_id,
            status=JobStatus(row.status),
            attempts=row.attempts,
            scheduled_for=row.scheduled_for,
            started_at=row.started_at,
            finished_at=row.finished_at,
            error=row.error,
            run_context=row.run_context or {},
        )
