"""Tests for AgentService and agents.yaml seeding."""

from datetime import datetime, timedelta, timezone

import pytest

from app.agents_config import AgentsFile, load_agents_config, seed_agents
from app.models import AgentCreate, AgentUpdate
from app.services.agents import AgentService
from core.models.strategy import StrategyKind
from scheduler.clock import ManualClock
from scheduler.errors import AgentNotFoundError, AgentValidationError
from scheduler.store import InMemorySchedulerStore


# ---------------------------------------------------------------------------
# Helper
# ---------------------------------------------------------------------------

NOW = datetime(2025, 1, 1, tzinfo=timezone.utc)


def make_service() -> tuple[AgentService, InMemorySchedulerStore, ManualClock]:
    clock = ManualClock(NOW)
    store = InMemorySchedulerStore(clock)
    return AgentService(store, clock), store, clock


def make_create(**overrides) -> AgentCreate:
    values = dict(
        name="ETH 4h",
        interval_minutes=240,
        instruments=["ETHUSD"],
        timeframes=["4h"],
        strategies=["bollinger-breakout"],
    )
    values.update(overrides)
    return AgentCreate(**values)


# ---------------------------------------------------------------------------
# AgentService
# ---------------------------------------------------------------------------

class TestAgentService:

    @pytest.mark.asyncio
    async def test_create_schedules_first_run(self):
        service, store, _ = make_service()

        agent = await service.create_agent("owner-1", make_create())

        assert agent.is_active
        assert agent.next_run_at == NOW + timedelta(hours=4)
        assert agent.strategies == [StrategyKind.BOLLINGER]
        assert store.agents[agent.id] == agent

    @pytest.mark.asyncio
    async def test_create_validation_error(self):
        service, _, _ = make_service()

        with pytest.raises(AgentValidationError) as exc_info:
            await service.create_agent("owner-1", make_create(concurrency=9, timeframes=["3h"]))

        fields = {err["loc"][0] for err in exc_info.value.errors}
        assert fields == {"concurrency", "timeframes"}

    @pytest.mark.asyncio
    async def test_unknown_strategy_name_becomes_default(self):
        service, _, _ = make_service()
        agent = await service.create_agent("owner-1", make_create(strategies=["whatever"]))
        assert agent.strategies == [StrategyKind.DEFAULT]

    @pytest.mark.asyncio
    async def test_get_enforces_owner(self):
        service, _, _ = make_service()
        agent = await service.create_agent("owner-1", make_create())

        with pytest.raises(AgentNotFoundError):
            await service.get_agent("owner-2", agent.id)
        with pytest.raises(AgentNotFoundError):
            await service.get_agent("owner-1", "missing")

    @pytest.mark.asyncio
    async def test_update_keeps_schedule_unless_interval_changes(self):
        service, _, clock = make_service()
        agent = await service.create_agent("owner-1", make_create())
        clock.advance(timedelta(minutes=30))

        renamed = await service.update_agent("owner-1", agent.id, AgentUpdate(name="Renamed"))
        assert renamed.name == "Renamed"
        assert renamed.next_run_at == agent.next_run_at

        faster = await service.update_agent("owner-1", agent.id, AgentUpdate(interval_minutes=5))
        assert faster.next_run_at == clock.now() + timedelta(minutes=5)
        assert faster.name == "Renamed"

    @pytest.mark.asyncio
    async def test_update_rejects_invalid_values(self):
        service, store, _ = make_service()
        agent = await service.create_agent("owner-1", make_create())

        with pytest.raises(AgentValidationError):
            await service.update_agent("owner-1", agent.id, AgentUpdate(min_confidence=150))
        assert store.agents[agent.id] == agent

    @pytest.mark.asyncio
    async def test_toggle(self):
        service, _, clock = make_service()
        agent = await service.create_agent("owner-1", make_create())

        paused = await service.toggle_agent("owner-1", agent.id, False)
        assert not paused.is_active
        assert paused.next_run_at is None

        clock.advance(timedelta(hours=10))
        resumed = await service.toggle_agent("owner-1", agent.id, True)
        assert resumed.is_active
        assert resumed.next_run_at == clock.now() + timedelta(seconds=60)

    @pytest.mark.asyncio
    async def test_run_now_and_delete(self):
        service, store, _ = make_service()
        agent = await service.create_agent("owner-1", make_create())

        job = await service.run_now("owner-1", agent.id)
        assert job is not None
        assert await service.run_now("owner-1", agent.id) is None
        assert len(await service.list_jobs("owner-1", agent.id)) == 1

        await service.delete_agent("owner-1", agent.id)
        assert store.agents == {}
        assert store.jobs == {}


# ---------------------------------------------------------------------------
# Seeding
# ---------------------------------------------------------------------------

AGENTS_YAML = """
default_owner: owner-seed
agents:
  - name: BTC hourly
    interval_minutes: 60
    instruments: [XBTUSD]
    strategies: [macd-crossover, trend-following]
  - name: Other owner
    owner_id: owner-x
    interval_minutes: 15
    instruments: [SOLUSD]
    strategies: [default]
"""


class TestAgentSeeding:

    def test_missing_file_has_no_agents(self, tmp_path):
        config = load_agents_config(tmp_path / "agents.yaml")
        assert config.agents == []

    def test_load(self, tmp_path):
        path = tmp_path / "agents.yaml"
        path.write_text(AGENTS_YAML)

        config = load_agents_config(path)

        assert [a.name for a in config.agents] == ["BTC hourly", "Other owner"]
        assert config.owner_for(config.agents[0]) == "owner-seed"
        assert config.owner_for(config.agents[1]) == "owner-x"

    def test_owner_from_env(self, monkeypatch):
        monkeypatch.setenv("SEED_OWNER", "env-owner")
        config = AgentsFile(default_owner="fallback", default_owner_env="SEED_OWNER")
        assert config.owner == "env-owner"

    def test_duplicate_names_rejected(self):
        seed = dict(name="Dup", interval_minutes=60, instruments=["XBTUSD"], strategies=["default"])
        with pytest.raises(ValueError):
            AgentsFile(agents=[seed, seed])

    def test_no_owner_rejected(self):
        config = AgentsFile(
            agents=[dict(name="Orphan", interval_minutes=60, instruments=["XBTUSD"], strategies=["default"])]
        )
        with pytest.raises(ValueError, match="no owner_id"):
            config.owner_for(config.agents[0])

    @pytest.mark.asyncio
    async def test_seed_is_idempotent(self, tmp_path):
        path = tmp_path / "agents.yaml"
        path.write_text(AGENTS_YAML)
        config = load_agents_config(path)
        service, store, _ = make_service()

        assert await seed_agents(service, config) == 2
        assert await seed_agents(service, config) == 0
        assert len(store.agents) == 2
        assert {a.owner_id for a in store.agents.values()} == {"owner-seed", "owner-x"}


# ---------------------------------------------------------------------------
# Scheduler writes racing owner edits
# ---------------------------------------------------------------------------

class RunRecordingStore(InMemorySchedulerStore):
    """Records a finished run right after the service has read the agent."""

    def __init__(self, clock):
        super().__init__(clock)
        self.pending_run: tuple | None = None

    async def get_agent(self, agent_id):
        agent = await super().get_agent(agent_id)
        if self.pending_run is not None:
            last_run_at, next_run_at = self.pending_run
            self.pending_run = None
            await self.mark_agent_run(agent_id, last_run_at, next_run_at)
        return agent


def make_racing_service() -> tuple[AgentService, RunRecordingStore]:
    clock = ManualClock(NOW)
    store = RunRecordingStore(clock)
    return AgentService(store, clock), store


class TestRunTimesSurviveOwnerEdits:

    @pytest.mark.asyncio
    async def test_rename_keeps_recorded_run(self):
        service, store = make_racing_service()
        agent = await service.create_agent("owner-1", make_create())
        store.pending_run = (NOW, NOW + timedelta(hours=1))

        renamed = await service.update_agent("owner-1", agent.id, AgentUpdate(name="Renamed"))

        assert renamed.name == "Renamed"
        assert renamed.last_run_at == NOW
        assert renamed.next_run_at == NOW + timedelta(hours=1)
        assert store.agents[agent.id] == renamed

    @pytest.mark.asyncio
    async def test_interval_change_reschedules_but_keeps_last_run(self):
        service, store = make_racing_service()
        agent = await service.create_agent("owner-1", make_create())
        store.pending_run = (NOW, NOW + timedelta(hours=1))

        faster = await service.update_agent("owner-1", agent.id, AgentUpdate(interval_minutes=15))

        assert faster.last_run_at == NOW
        assert faster.next_run_at == NOW + timedelta(minutes=15)

    @pytest.mark.asyncio
    async def test_pause_keeps_last_run(self):
        service, store = make_racing_service()
        agent = await service.create_agent("owner-1", make_create())
        store.pending_run = (NOW, NOW + timedelta(hours=1))

        paused = await service.toggle_agent("owner-1", agent.id, False)

        assert not paused.is_active
        assert paused.next_run_at is None
        assert paused.last_run_at == NOW
