"""Worker step: claim pending jobs and drive them to a terminal state.

State machine per claimed job:

    running -> succeeded                 processing returned
    running -> pending                   processing raised, attempts < max_attempts
    running -> failed                    processing raised on the last attempt,
                                         or exceeded max_runtime_seconds
    running -> cancelled                 agent deleted or paused
    running -> pending | failed          still running STALE_GRACE past its
                                         max runtime (abandoned)

A job is abandoned when the worker dies or the store fails while
finalizing it. Because an agent has at most one live job, such a job
would block the agent for good; run_once() reclaims them before
claiming new work.

run_once() never raises for a single job; errors end up on the job
record and in the agent log.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta
from typing import Any, Protocol

from scheduler.backoff import retry_delay
from scheduler.clock import Clock, SystemClock
from scheduler.models import AgentConfig, AgentJob, JobStatus, LogLevel
from scheduler.store import SchedulerStore

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 5
STALE_GRACE = timedelta(seconds=60)


class JobProcessor(Protocol):
    async def process(self, agent: AgentConfig, job: AgentJob) -> Any:
        ...


@dataclass
class WorkerResult:
    claimed: int = 0
    succeeded: int = 0
    requeued: int = 0
    failed: int = 0
    cancelled: int = 0
    reclaimed: int = 0

    def to_dict(self) -> dict[str, int]:
        return {"processed": self.claimed, **asdict(self)}


class AgentWorker:
    """Claims a bounded batch of jobs and processes them sequentially."""

    def __init__(
        self,
        store: SchedulerStore,
        processor: JobProcessor,
        clock: Clock | None = None,
    ):
        self._store = store
        self._processor = processor
        self._clock = clock or SystemClock()

    async def run_once(self, limit: int = DEFAULT_BATCH_SIZE) -> WorkerResult:
        """Claim up to ``limit`` due jobs and process each one.

        Returns:
            Counts of claimed jobs and of each terminal or requeued outcome.
        """
        reclaimed = await self.reclaim_stale_jobs()
        jobs = await self._store.claim_pending_jobs(limit, self._clock.now())
        result = WorkerResult(claimed=len(jobs), reclaimed=reclaimed)

        for job in jobs:
            try:
                status = await self._run_job(job)
            except Exception:
                # Store failure mid-transition; the job stays running until
                # reclaim_stale_jobs() picks it up
                logger.error(f"Job {job.id} could not be finalized", exc_info=True)
                continue

            if status == JobStatus.SUCCEEDED:
                result.succeeded += 1
            elif status == JobStatus.PENDING:
                result.requeued += 1
            elif status == JobStatus.FAILED:
                result.failed += 1
            elif status == JobStatus.CANCELLED:
                result.cancelled += 1

        if jobs or reclaimed:
            logger.info(
                f"Worker: claimed={result.claimed} succeeded={result.succeeded} "
                f"requeued={result.requeued} failed={result.failed} cancelled={result.cancelled} "
                f"reclaimed={result.reclaimed}"
            )
        return result

    async def reclaim_stale_jobs(self) -> int:
        """Requeue or fail running jobs past max_runtime_seconds + STALE_GRACE.

        An abandoned job counts as a failed attempt: it is requeued with
        backoff while attempts remain, otherwise failed.

        Returns:
            Number of jobs moved out of running.
        """
        now = self._clock.now()
        reclaimed = 0
        for job in await self._store.running_jobs_started_before(now - STALE_GRACE):
            try:
                status = await self._reclaim(job, now)
            except Exception:
                logger.error(f"Job {job.id} could not be reclaimed", exc_info=True)
                continue
            if status is not None:
                reclaimed += 1
        return reclaimed

    async def _reclaim(self, job: AgentJob, now: datetime) -> JobStatus | None:
        agent = await self._store.get_agent(job.agent_id)
        if agent is None:
            applied = await self._store.cancel_job(job.id, "Agent not found", now)
            return JobStatus.CANCELLED if applied else None

        deadline = job.started_at + timedelta(seconds=agent.max_runtime_seconds) + STALE_GRACE
        if deadline > now:
            return None

        logger.warning(f"Job {job.id} abandoned while running since {job.started_at:%H:%M:%S}")
        await self._store.append_log(
            agent.id,
            job.id,
            LogLevel.WARN,
            "Job abandoned while running",
            {"started_at": job.started_at.isoformat(), "attempt": job.attempts},
        )
        if job.attempts < agent.max_attempts:
            return await self._requeue(job)
        return await self._fail(agent, job, "Job abandoned after exceeding max runtime")

    async def _run_job(self, job: AgentJob) -> JobStatus | None:
        """Process one running job. Returns the status it ended in, if applied."""
        agent = await self._store.get_agent(job.agent_id)
        if agent is None or not agent.is_active:
            reason = "Agent not found" if agent is None else "Agent is inactive"
            applied = await self._store.cancel_job(job.id, reason, self._clock.now())
            if agent is not None:
                await self._store.append_log(agent.id, job.id, LogLevel.INFO, f"Job cancelled: {reason}")
            logger.info(f"Job {job.id} cancelled: {reason}")
            return JobStatus.CANCELLED if applied else None

        logger.info(f"Job {job.id} started for agent {agent.id} (attempt {job.attempts}/{agent.max_attempts})")
        try:
            summary = await asyncio.wait_for(
                self._processor.process(agent, job),
                timeout=agent.max_runtime_seconds,
            )
        except asyncio.TimeoutError:
            error = f"Job exceeded max runtime of {agent.max_runtime_seconds}s"
            logger.warning(f"Job {job.id}: {error}")
            await self._store.append_log(agent.id, job.id, LogLevel.ERROR, error)
            return await self._fail(agent, job, error)
        except Exception as e:
            logger.error(f"Job {job.id} failed on attempt {job.attempts}: {e}", exc_info=True)
            await self._store.append_log(
                agent.id,
                job.id,
                LogLevel.ERROR,
                "Job failed with unhandled error",
                {"error": str(e), "attempt": job.attempts},
            )
            if job.attempts < agent.max_attempts:
                return await self._requeue(job)
            return await self._fail(agent, job, str(e) or type(e).__name__)

        finished = self._clock.now()
        if not await self._store.complete_job(job.id, finished):
            return None
        await self._store.mark_agent_run(agent.id, job.started_at, finished + agent.interval)

        context = summary.as_context() if hasattr(summary, "as_context") else {}
        await self._store.append_log(agent.id, job.id, LogLevel.INFO, "Job succeeded", context)
        return JobStatus.SUCCEEDED

    async def _requeue(self, job: AgentJob) -> JobStatus | None:
        scheduled_for = self._clock.now() + retry_delay(job.attempts)
        if not await self._store.requeue_job(job.id, scheduled_for):
            return None
        logger.info(f"Job {job.id} requeued for {scheduled_for:%H:%M:%S}")
        return JobStatus.PENDING

    async def _fail(self, agent: AgentConfig, job: AgentJob, error: str) -> JobStatus | None:
        finished = self._clock.now()
        if not await self._store.fail_job(job.id, error, finished):
            return None
        # The agent stays on its cadence even when a run is lost
        await self._store.mark_agent_run(agent.id, None, finished + agent.interval)
        return JobStatus.FAILED
