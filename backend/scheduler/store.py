"""Scheduler storage contracts and the in-memory reference store.

Every job transition is compare-and-set: it applies only when the job is
still in the expected prior status and reports whether it did. Together
with the atomic create/claim primitives this keeps concurrent enqueue
and worker steps from losing updates or processing a job twice.

The PostgreSQL implementation lives in app.storage.agent_repo.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Any, Protocol, runtime_checkable

from scheduler.clock import Clock, SystemClock
from scheduler.models import (
    LIVE_STATUSES,
    AgentConfig,
    AgentJob,
    AgentLog,
    JobStatus,
    LogLevel,
)

logger = logging.getLogger(__name__)


@runtime_checkable
class AgentStore(Protocol):
    async def due_agents(self, now: datetime) -> list[AgentConfig]:
        """Active agents whose next_run_at <= now."""
        ...

    async def get_agent(self, agent_id: str) -> AgentConfig | None:
        ...

    async def list_agents(self, owner_id: str) -> list[AgentConfig]:
        ...

    async def save_agent(self, agent: AgentConfig) -> AgentConfig:
        """Insert or replace an agent."""
        ...

    async def update_agent_fields(
        self, agent_id: str, values: dict[str, Any]
    ) -> AgentConfig | None:
        """Update only the given columns and return the stored agent.

        Owner edits go through here so they never overwrite last_run_at
        or next_run_at with a stale read. Returns None for unknown ids.
        """
        ...

    async def delete_agent(self, agent_id: str) -> bool:
        ...

    async def mark_agent_run(
        self, agent_id: str, last_run_at: datetime | None, next_run_at: datetime
    ) -> None:
        """Record a finished run. last_run_at None leaves it unchanged."""
        ...


@runtime_checkable
class JobStore(Protocol):
    async def create_job_if_idle(
        self, agent_id: str, scheduled_for: datetime, run_context: dict[str, Any]
    ) -> AgentJob | None:
        """Atomically insert a pending job unless the agent has a live one.

        Returns:
            The new job, or None when a pending/running job already exists.
        """
        ...

    async def claim_pending_jobs(self, limit: int, now: datetime) -> list[AgentJob]:
        """Atomically move up to ``limit`` due pending jobs to running.

        Each claimed job gets attempts + 1 and started_at = now. A job
        returned here is never returned to a concurrent claim.
        """
        ...

    async def complete_job(self, job_id: str, finished_at: datetime) -> bool:
        """running -> succeeded."""
        ...

    async def requeue_job(self, job_id: str, scheduled_for: datetime) -> bool:
        """running -> pending, finished_at cleared."""
        ...

    async def fail_job(self, job_id: str, error: str, finished_at: datetime) -> bool:
        """running -> failed."""
        ...

    async def cancel_job(self, job_id: str, reason: str, finished_at: datetime) -> bool:
        """running -> cancelled."""
        ...

    async def running_jobs_started_before(self, cutoff: datetime) -> list[AgentJob]:
        """Running jobs whose started_at <= cutoff, oldest first."""
        ...

    async def get_job(self, job_id: str) -> AgentJob | None:
        ...

    async def list_jobs(self, agent_id: str, limit: int = 20) -> list[AgentJob]:
        """Most recently scheduled first."""
        ...


@runtime_checkable
class AgentLogSink(Protocol):
    async def append_log(
        self,
        agent_id: str,
        job_id: str | None,
        level: LogLevel,
        message: str,
        context: dict[str, Any] | None = None,
    ) -> None:
        ...


@runtime_checkable
class SchedulerStore(AgentStore, JobStore, AgentLogSink, Protocol):
    """Everything the enqueue and worker steps need from storage."""


# =============================================================================
# In-memory implementation
# =============================================================================


class InMemorySchedulerStore:
    """AgentStore + JobStore + AgentLogSink kept in process memory.

    A single asyncio.Lock serializes every mutation, which makes create
    and claim atomic with respect to other coroutines on the same loop.
    Models are frozen, so callers only ever see snapshots.
    """

    def __init__(self, clock: Clock | None = None):
        self._clock = clock or SystemClock()
        self._lock = asyncio.Lock()
        self.agents: dict[str, AgentConfig] = {}
        self.jobs: dict[str, AgentJob] = {}
        self.logs: list[AgentLog] = []
        # (job_id, status) in the order transitions happened
        self.history: list[tuple[str, JobStatus]] = []

    # -------------------------------------------------------------------------
    # Agents
    # -------------------------------------------------------------------------

    async def due_agents(self, now: datetime) -> list[AgentConfig]:
        return [a for a in self.agents.values() if a.is_due(now)]

    async def get_agent(self, agent_id: str) -> AgentConfig | None:
        return self.agents.get(agent_id)

    async def list_agents(self, owner_id: str) -> list[AgentConfig]:
        return [a for a in self.agents.values() if a.owner_id == owner_id]

    async def save_agent(self, agent: AgentConfig) -> AgentConfig:
        async with self._lock:
            self.agents[agent.id] = agent
        return agent

    async def update_agent_fields(
        self, agent_id: str, values: dict[str, Any]
    ) -> AgentConfig | None:
        async with self._lock:
            agent = self.agents.get(agent_id)
            if agent is None:
                return None
            updated = agent.model_copy(update=values)
            self.agents[agent_id] = updated
            return updated

    async def delete_agent(self, agent_id: str) -> bool:
        async with self._lock:
            if self.agents.pop(agent_id, None) is None:
                return False
            # Mirrors ON DELETE CASCADE
            for job_id in [j.id for j in self.jobs.values() if j.agent_id == agent_id]:
                del self.jobs[job_id]
            self.logs = [log for log in self.logs if log.agent_id != agent_id]
        return True

    async def mark_agent_run(
        self, agent_id: str, last_run_at: datetime | None, next_run_at: datetime
    ) -> None:
        async with self._lock:
            agent = self.agents.get(agent_id)
            if agent is None:
                return
            update: dict[str, Any] = {"next_run_at": next_run_at}
            if last_run_at is not None:
                update["last_run_at"] = last_run_at
            self.agents[agent_id] = agent.model_copy(update=update)

    # -------------------------------------------------------------------------
    # Jobs
    # -------------------------------------------------------------------------

    def live_jobs(self, agent_id: str) -> list[AgentJob]:
        return [
            j for j in self.jobs.values()
            if j.agent_id == agent_id and j.status in LIVE_STATUSES
        ]

    async def create_job_if_idle(
        self, agent_id: str, scheduled_for: datetime, run_context: dict[str, Any]
    ) -> AgentJob | None:
        async with self._lock:
            if self.live_jobs(agent_id):
                return None
            job = AgentJob(
                agent_id=agent_id,
                scheduled_for=scheduled_for,
                run_context=dict(run_context),
            )
            self.jobs[job.id] = job
            self.history.append((job.id, job.status))
            return job

    async def claim_pending_jobs(self, limit: int, now: datetime) -> list[AgentJob]:
        async with self._lock:
            due = sorted(
                (
                    j for j in self.jobs.values()
                    if j.status == JobStatus.PENDING and j.scheduled_for <= now
                ),
                key=lambda j: j.scheduled_for,
            )
            claimed = []
            for job in due[:limit]:
                running = job.model_copy(
                    update={
                        "status": JobStatus.RUNNING,
                        "attempts": job.attempts + 1,
                        "started_at": now,
                    }
                )
                self.jobs[job.id] = running
                self.history.append((job.id, running.status))
                claimed.append(running)
            return claimed

    async def _transition(
        self, job_id: str, expected: JobStatus, **changes: Any
    ) -> bool:
        async with self._lock:
            job = self.jobs.get(job_id)
            if job is None or job.status != expected:
                logger.warning(
                    f"Job {job_id} transition to {changes.get('status')} skipped: "
                    f"expected {expected.value}, found {job.status.value if job else 'missing'}"
                )
                return False
            updated = job.model_copy(update=changes)
            self.jobs[job_id] = updated
            self.history.append((job_id, updated.status))
            return True

    async def complete_job(self, job_id: str, finished_at: datetime) -> bool:
        return await self._transition(
            job_id, JobStatus.RUNNING,
            status=JobStatus.SUCCEEDED, finished_at=finished_at, error=None,
        )

    async def requeue_job(self, job_id: str, scheduled_for: datetime) -> bool:
        return await self._transition(
            job_id, JobStatus.RUNNING,
            status=JobStatus.PENDING, scheduled_for=scheduled_for, finished_at=None,
        )

    async def fail_job(self, job_id: str, error: str, finished_at: datetime) -> bool:
        return await self._transition(
            job_id, JobStatus.RUNNING,
            status=JobStatus.FAILED, error=error, finished_at=finished_at,
        )

    async def cancel_job(self, job_id: str, reason: str, finished_at: datetime) -> bool:
        return await self._transition(
            job_id, JobStatus.RUNNING,
            status=JobStatus.CANCELLED, error=reason, finished_at=finished_at,
        )

    async def running_jobs_started_before(self, cutoff: datetime) -> list[AgentJob]:
        stale = [
            j for j in self.jobs.values()
            if j.status == JobStatus.RUNNING and j.started_at is not None and j.started_at <= cutoff
        ]
        return sorted(stale, key=lambda j: j.started_at)

    async def get_job(self, job_id: str) -> AgentJob | None:
        return self.jobs.get(job_id)

    async def list_jobs(self, agent_id: str, limit: int = 20) -> list[AgentJob]:
        jobs = [j for j in self.jobs.values() if j.agent_id == agent_id]
        jobs.sort(key=lambda j: j.scheduled_for, reverse=True)
        return jobs[:limit]

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
        self.logs.append(
            AgentLog(
                agent_id=agent_id,
                job_id=job_id,
                level=level,
                message=message,
                context=context or {},
                created_at=self._clock.now(),
            )
        )
