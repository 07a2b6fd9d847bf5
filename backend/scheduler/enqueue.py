"""Enqueue step: turn due agents into pending jobs.

Safe to run concurrently with itself and with the worker step; an agent
that already has a pending or running job is skipped.
"""

import logging
from dataclasses import dataclass

from scheduler.clock import Clock, SystemClock
from scheduler.models import AgentJob, JobTrigger
from scheduler.store import JobStore, SchedulerStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class EnqueueResult:
    enqueued: int = 0
    skipped: int = 0


async def enqueue_due_agents(store: SchedulerStore, clock: Clock | None = None) -> EnqueueResult:
    """Create a pending job, scheduled for now, for every due agent.

    Args:
        store: Agent and job storage.
        clock: Time source (defaults to the wall clock).

    Returns:
        How many jobs were created and how many due agents were skipped
        because they already had a live job.
    """
    now = (clock or SystemClock()).now()
    agents = await store.due_agents(now)

    enqueued = skipped = 0
    for agent in agents:
        job = await store.create_job_if_idle(
            agent.id, now, {"trigger": JobTrigger.SCHEDULE.value}
        )
        if job is None:
            skipped += 1
            logger.debug(f"Agent {agent.id} already has a live job, skipping")
            continue
        enqueued += 1
        logger.info(f"Enqueued job {job.id} for agent {agent.id} ({agent.name})")

    if agents:
        logger.info(f"Enqueue: {len(agents)} due, {enqueued} enqueued, {skipped} skipped")
    return EnqueueResult(enqueued=enqueued, skipped=skipped)


async def request_manual_run(
    store: JobStore, agent_id: str, clock: Clock | None = None
) -> AgentJob | None:
    """Queue an immediate run of one agent.

    Returns:
        The new job, or None when the agent already has a live job.
    """
    now = (clock or SystemClock()).now()
    job = await store.create_job_if_idle(
        agent_id, now, {"trigger": JobTrigger.MANUAL.value}
    )
    if job is None:
        logger.info(f"Manual run for agent {agent_id} refused: job already live")
    else:
        logger.info(f"Manual job {job.id} queued for agent {agent_id}")
    return job
