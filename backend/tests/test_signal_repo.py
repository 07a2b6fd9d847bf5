"""Tests for SignalRepository statement flow (no database needed)."""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest
from sqlalchemy.dialects import postgresql

from app.storage.signal_repo import SignalRepository, dedup_key
from core.models.signal import Direction, Risk, TradingSignal
from core.models.strategy import StrategyKind
from scheduler.clock import ManualClock
from scheduler.models import PersistOutcome


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------

NOW = datetime(2025, 1, 1, tzinfo=timezone.utc)


class RecordingSession:
    """Records executed statements; the dedup lookup returns ``existing_id``."""

    def __init__(self, existing_id: str | None = None):
        self.existing_id = existing_id
        self.statements: list = []

    async def execute(self, stmt):
        self.statements.append(stmt)
        result = MagicMock()
        result.scalar_one_or_none.return_value = self.existing_id
        return result

    def compiled(self, index: int):
        return self.statements[index].compile(dialect=postgresql.dialect())


class RecordingDatabase:
    def __init__(self, session: RecordingSession):
        self._session = session

    @asynccontextmanager
    async def session(self):
        yield self._session


def make_signal(direction: Direction = Direction.BUY) -> TradingSignal:
    return TradingSignal(
        direction=direction,
        confidence=80.0,
        risk=Risk.LOW,
        entry_price=100.0,
        stop_loss=95.0,
        take_profit=110.0,
        reason="RSI oversold at 22.00",
        strategy=StrategyKind.RSI,
    )


async def persist(session: RecordingSession, direction: Direction = Direction.BUY) -> PersistOutcome:
    repo = SignalRepository(RecordingDatabase(session), ManualClock(NOW))
    return await repo.persist_signal(
        make_signal(direction), owner_id="owner-1", instrument="XBTUSD", timeframe="1h"
    )


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------

class TestPersistSignal:

    @pytest.mark.asyncio
    async def test_new_key_locks_then_inserts(self):
        session = RecordingSession()

        assert await persist(session) == PersistOutcome.CREATED

        lock = session.compiled(0)
        assert "pg_advisory_xact_lock(hashtext(" in str(lock)
        assert "signal:owner-1:XBTUSD:1h:BUY" in lock.params.values()
        assert str(session.compiled(1)).lstrip().startswith("SELECT")
        assert str(session.compiled(2)).lstrip().startswith("INSERT INTO signals")
        assert len(session.statements) == 3

    @pytest.mark.asyncio
    async def test_existing_key_is_refreshed(self):
        session = RecordingSession(existing_id="sig-1")

        assert await persist(session) == PersistOutcome.UPDATED

        assert "pg_advisory_xact_lock" in str(session.compiled(0))
        assert str(session.compiled(2)).lstrip().startswith("UPDATE signals")

    def test_lock_key_is_per_direction_and_owner(self):
        buy = dedup_key("owner-1", "XBTUSD", "1h", Direction.BUY)
        assert buy != dedup_key("owner-1", "XBTUSD", "1h", Direction.SELL)
        assert buy != dedup_key("owner-2", "XBTUSD", "1h", Direction.BUY)
