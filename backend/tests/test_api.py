"""Tests for the REST API: cron auth, worker trigger and agent management."""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from app.api.deps import (
    get_clock,
    get_job_processor,
    get_scanner,
    get_signal_repo,
    get_store,
)
from app.config import Settings, get_settings
from app.main import create_app
from app.services.scanner import MarketScanner
from scheduler.clock import ManualClock
from scheduler.models import JobStatus
from scheduler.processor import JobRunSummary
from scheduler.store import InMemorySchedulerStore


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

NOW = datetime(2025, 1, 1, tzinfo=timezone.utc)
SECRET = "cron-secret-123"
OWNER = {"X-Owner-Id": "owner-1"}
CRON = {"Authorization": f"Bearer {SECRET}"}

AGENT_BODY = {
    "name": "BTC hourly",
    "interval_minutes": 60,
    "instruments": ["XBTUSD"],
    "strategies": ["macd-crossover", "rsi-oversold-overbought"],
}


class Harness:
    def __init__(self, cron_secret: str = SECRET, **settings):
        self.clock = ManualClock(NOW)
        self.store = InMemorySchedulerStore(self.clock)
        self.processor = AsyncMock()
        self.processor.process.return_value = JobRunSummary(pairs_analyzed=1)
        self.signal_repo = AsyncMock()
        self.signal_repo.get_recent.return_value = []
        self.fetcher = AsyncMock()
        self.fetcher.fetch_candles.return_value = []

        app = create_app(with_lifespan=False)
        app.dependency_overrides[get_settings] = lambda: Settings(cron_secret=cron_secret, **settings)
        app.dependency_overrides[get_store] = lambda: self.store
        app.dependency_overrides[get_clock] = lambda: self.clock
        app.dependency_overrides[get_job_processor] = lambda: self.processor
        app.dependency_overrides[get_signal_repo] = lambda: self.signal_repo
        app.dependency_overrides[get_scanner] = lambda: MarketScanner(
            self.fetcher, ["XBTUSD", "ETHUSD"], self.clock
        )
        self.client = TestClient(app)


@pytest.fixture
def harness():
    return Harness()


# ---------------------------------------------------------------------------
# Cron auth
# ---------------------------------------------------------------------------

class TestCronAuth:

    @pytest.mark.parametrize("path", ["/api/cron/agents", "/api/agents/worker"])
    def test_missing_token(self, harness, path):
        response = harness.client.post(path)
        assert response.status_code == 401

    @pytest.mark.parametrize("path", ["/api/cron/agents", "/api/agents/worker"])
    def test_wrong_token(self, harness, path):
        response = harness.client.post(path, headers={"Authorization": "Bearer nope"})
        assert response.status_code == 401

    def test_unset_secret_rejects_everything(self):
        harness = Harness(cron_secret="")
        response = harness.client.post("/api/cron/agents", headers={"Authorization": "Bearer "})
        assert response.status_code == 401

    def test_rejected_call_touches_nothing(self, harness):
        harness.client.post("/api/agents", json=AGENT_BODY, headers=OWNER)
        harness.clock.advance(timedelta(hours=2))

        harness.client.post("/api/cron/agents", headers={"Authorization": "Bearer nope"})

        assert harness.store.jobs == {}


# ---------------------------------------------------------------------------
# Cron flow
# ---------------------------------------------------------------------------

class TestCronFlow:

    def test_enqueue_then_work(self, harness):
        created = harness.client.post("/api/agents", json=AGENT_BODY, headers=OWNER).json()
        harness.clock.advance(timedelta(hours=1))

        response = harness.client.post("/api/cron/agents", headers=CRON)
        assert response.status_code == 200
        assert response.json() == {"enqueued": 1, "skipped": 0}

        response = harness.client.post("/api/cron/agents", headers=CRON)
        assert response.json() == {"enqueued": 0, "skipped": 1}

        response = harness.client.post("/api/agents/worker", headers=CRON)
        assert response.status_code == 200
        body = response.json()
        assert body["processed"] == 1
        assert body["succeeded"] == 1

        jobs = harness.client.get(f"/api/agents/{created['id']}/jobs", headers=OWNER).json()
        assert [j["status"] for j in jobs] == [JobStatus.SUCCEEDED.value]

    def test_worker_limit(self, harness):
        for i in range(3):
            harness.client.post("/api/agents", json={**AGENT_BODY, "name": f"Agent {i}"}, headers=OWNER)
        harness.clock.advance(timedelta(hours=1))
        harness.client.post("/api/cron/agents", headers=CRON)

        response = harness.client.post("/api/agents/worker?limit=2", headers=CRON)

        assert response.json()["claimed"] == 2


# ---------------------------------------------------------------------------
# Agent management
# ---------------------------------------------------------------------------

class TestAgents:

    def test_requires_owner_header(self, harness):
        assert harness.client.get("/api/agents").status_code == 401

    def test_create_and_list(self, harness):
        response = harness.client.post("/api/agents", json=AGENT_BODY, headers=OWNER)
        assert response.status_code == 201
        agent = response.json()
        assert agent["owner_id"] == "owner-1"
        assert agent["is_active"] is True
        assert agent["next_run_at"].startswith("2025-01-01T01:00:00")

        listed = harness.client.get("/api/agents", headers=OWNER).json()
        assert [a["id"] for a in listed] == [agent["id"]]
        assert harness.client.get("/api/agents", headers={"X-Owner-Id": "other"}).json() == []

    def test_invalid_agent_is_422(self, harness):
        response = harness.client.post(
            "/api/agents", json={**AGENT_BODY, "interval_minutes": 7}, headers=OWNER
        )
        assert response.status_code == 422

    def test_other_owner_gets_404(self, harness):
        agent = harness.client.post("/api/agents", json=AGENT_BODY, headers=OWNER).json()
        response = harness.client.get(f"/api/agents/{agent['id']}", headers={"X-Owner-Id": "other"})
        assert response.status_code == 404

    def test_update_and_toggle(self, harness):
        agent = harness.client.post("/api/agents", json=AGENT_BODY, headers=OWNER).json()

        updated = harness.client.patch(
            f"/api/agents/{agent['id']}", json={"interval_minutes": 15}, headers=OWNER
        ).json()
        assert updated["interval_minutes"] == 15
        assert updated["next_run_at"].startswith("2025-01-01T00:15:00")

        paused = harness.client.post(
            f"/api/agents/{agent['id']}/toggle", json={"is_active": False}, headers=OWNER
        ).json()
        assert paused["is_active"] is False
        assert paused["next_run_at"] is None

        resumed = harness.client.post(
            f"/api/agents/{agent['id']}/toggle", json={"is_active": True}, headers=OWNER
        ).json()
        assert resumed["next_run_at"].startswith("2025-01-01T00:01:00")

    def test_run_now_conflict(self, harness):
        agent = harness.client.post("/api/agents", json=AGENT_BODY, headers=OWNER).json()

        first = harness.client.post(f"/api/agents/{agent['id']}/run", headers=OWNER)
        second = harness.client.post(f"/api/agents/{agent['id']}/run", headers=OWNER)

        assert first.status_code == 202
        assert first.json()["run_context"] == {"trigger": "manual"}
        assert second.status_code == 409

    def test_delete(self, harness):
        agent = harness.client.post("/api/agents", json=AGENT_BODY, headers=OWNER).json()

        response = harness.client.delete(f"/api/agents/{agent['id']}", headers=OWNER)
        assert response.status_code == 204
        assert harness.client.get(f"/api/agents/{agent['id']}", headers=OWNER).status_code == 404


# ---------------------------------------------------------------------------
# Signals and scanner
# ---------------------------------------------------------------------------

class TestReadEndpoints:

    def test_health(self, harness):
        assert harness.client.get("/api/health").json() == {"status": "ok", "version": "0.1.0"}

    def test_signals_scoped_to_owner(self, harness):
        response = harness.client.get("/api/signals?instrument=XBTUSD&limit=5", headers=OWNER)
        assert response.status_code == 200
        harness.signal_repo.get_recent.assert_awaited_once_with(
            "owner-1", limit=5, instrument="XBTUSD", direction=None
        )

    def test_scanner_with_no_data(self, harness):
        response = harness.client.get("/api/scanner?min_confidence=50")
        assert response.status_code == 200
        body = response.json()
        assert body["opportunities"] == []
        assert body["skipped"] == ["XBTUSD", "ETHUSD"]

    def test_scanner_rejects_bad_timeframe(self, harness):
        assert harness.client.get("/api/scanner?timeframe=7m").status_code == 422

    def test_scanner_timeframe_defaults_to_setting(self):
        harness = Harness(scanner_timeframe="4h")

        harness.client.get("/api/scanner")
        harness.client.get("/api/scanner?timeframe=15m")

        timeframes = [c.args[1] for c in harness.fetcher.fetch_candles.await_args_list]
        assert timeframes == ["4h", "4h", "15m", "15m"]
