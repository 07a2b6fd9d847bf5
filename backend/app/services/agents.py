"""Agent management for owners: CRUD, pause/resume and run-now."""

import logging

from pydantic import ValidationError

from app.models import AgentCreate, AgentUpdate
from scheduler.clock import Clock, SystemClock
from scheduler.enqueue import request_manual_run
from scheduler.errors import AgentNotFoundError, AgentValidationError
from scheduler.models import REACTIVATION_DELAY, AgentConfig, AgentJob
from scheduler.store import SchedulerStore

logger = logging.getLogger(__name__)


def _validation_error(e: ValidationError) -> AgentValidationError:
    errors = e.errors(include_url=False, include_context=False)
    message = "; ".join(
        f"{'.'.join(str(p) for p in err['loc']) or 'agent'}: {err['msg']}" for err in errors
    )
    return AgentValidationError(message, errors)


class AgentService:
    """Owner-scoped operations on agents. The store does the persistence."""

    def __init__(self, store: SchedulerStore, clock: Clock | None = None):
        self._store = store
        self._clock = clock or SystemClock()

    async def list_agents(self, owner_id: str) -> list[AgentConfig]:
        return await self._store.list_agents(owner_id)

    async def get_agent(self, owner_id: str, agent_id: str) -> AgentConfig:
        """Raises AgentNotFoundError for unknown ids and other owners' agents."""
        agent = await self._store.get_agent(agent_id)
        if agent is None or agent.owner_id != owner_id:
            raise AgentNotFoundError(agent_id)
        return agent

    async def create_agent(self, owner_id: str, data: AgentCreate) -> AgentConfig:
        """Create an active agent whose first run is one interval from now."""
        now = self._clock.now()
        try:
            agent = AgentConfig(owner_id=owner_id, is_active=True, **data.model_dump())
        except ValidationError as e:
            raise _validation_error(e) from e
        agent = agent.model_copy(update={"next_run_at": now + agent.interval})
        await self._store.save_agent(agent)
        logger.info(f"Agent {agent.id} ({agent.name}) created for {owner_id}")
        return agent

    async def update_agent(self, owner_id: str, agent_id: str, data: AgentUpdate) -> AgentConfig:
        """Apply a partial update. A new interval restarts the schedule from now."""
        current = await self.get_agent(owner_id, agent_id)
        patch = data.model_dump(exclude_none=True)
        try:
            agent = AgentConfig.model_validate({**current.model_dump(), **patch})
        except ValidationError as e:
            raise _validation_error(e) from e

        # Only the patched columns are written; run times belong to the scheduler
        fields = {key: getattr(agent, key) for key in patch}
        if "interval_minutes" in patch:
            fields["next_run_at"] = self._clock.now() + agent.interval
        updated = await self._store.update_agent_fields(agent_id, fields)
        if updated is None:
            raise AgentNotFoundError(agent_id)
        logger.info(f"Agent {agent_id} updated: {', '.join(sorted(patch)) or 'no changes'}")
        return updated

    async def toggle_agent(self, owner_id: str, agent_id: str, is_active: bool) -> AgentConfig:
        """Pause or resume. Resuming schedules the next run shortly after now."""
        await self.get_agent(owner_id, agent_id)
        next_run_at = self._clock.now() + REACTIVATION_DELAY if is_active else None
        updated = await self._store.update_agent_fields(
            agent_id, {"is_active": is_active, "next_run_at": next_run_at}
        )
        if updated is None:
            raise AgentNotFoundError(agent_id)
        logger.info(f"Agent {agent_id} {'resumed' if is_active else 'paused'}")
        return updated

    async def delete_agent(self, owner_id: str, agent_id: str) -> None:
        await self.get_agent(owner_id, agent_id)
        await self._store.delete_agent(agent_id)
        logger.info(f"Agent {agent_id} deleted")

    async def run_now(self, owner_id: str, agent_id: str) -> AgentJob | None:
        """Queue a manual run. None when the agent already has a live job."""
        await self.get_agent(owner_id, agent_id)
        return await request_manual_run(self._store, agent_id, self._clock)

    async def list_jobs(self, owner_id: str, agent_id: str, limit: int = 20) -> list[AgentJob]:
        await self.get_agent(owner_id, agent_id)
        return await self._store.list_jobs(agent_id, limit)
