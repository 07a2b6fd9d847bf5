"""Scheduler data models: agents, jobs, logs and the alert hand-off."""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from core.models.signal import Direction, TradingSignal
from core.models.strategy import StrategyKind
from core.models.timeframe import timeframe_minutes

# Minute-based run intervals an agent may use
ALLOWED_INTERVALS = (1, 5, 15, 30, 60, 240, 1440)

# Toggling an agent back on schedules its first run this far out
REACTIVATION_DELAY = timedelta(seconds=60)


def new_id() -> str:
    return str(uuid.uuid4())


class JobStatus(str, Enum):
    """Agent job lifecycle."""

    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"


# At most one job per agent may be in one of these states
LIVE_STATUSES = frozenset({JobStatus.PENDING, JobStatus.RUNNING})


class JobTrigger(str, Enum):
    """What created a job."""

    SCHEDULE = "schedule"
    MANUAL = "manual"


class LogLevel(str, Enum):
    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"


class PersistOutcome(str, Enum):
    """Result of persisting a signal: new row or refreshed existing one."""

    CREATED = "created"
    UPDATED = "updated"


class AgentConfig(BaseModel):
    """A user-defined recurring analysis.

    Owners edit everything except last_run_at/next_run_at, which only the
    scheduler writes.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_id)
    owner_id: str
    name: str = Field(min_length=2)
    is_active: bool = True
    interval_minutes: int
    instruments: list[str] = Field(min_length=1)
    timeframes: list[str] = Field(default_factory=lambda: ["1h"], min_length=1)
    strategies: list[StrategyKind] = Field(min_length=1)
    min_confidence: float = Field(default=60.0, ge=0, le=100)
    concurrency: int = Field(default=1, ge=1, le=5)
    max_runtime_seconds: int = Field(default=60, ge=10, le=300)
    max_attempts: int = Field(default=3, ge=1, le=10)
    timezone: str = "UTC"
    last_run_at: datetime | None = None
    next_run_at: datetime | None = None

    @field_validator("interval_minutes")
    @classmethod
    def _check_interval(cls, value: int) -> int:
        if value not in ALLOWED_INTERVALS:
            allowed = ", ".join(str(i) for i in ALLOWED_INTERVALS)
            raise ValueError(f"interval_minutes must be one of {allowed}")
        return value

    @field_validator("strategies", mode="before")
    @classmethod
    def _parse_strategies(cls, value):
        if isinstance(value, (list, tuple)):
            return [StrategyKind.parse(v) for v in value]
        return value

    @field_validator("timeframes")
    @classmethod
    def _check_timeframes(cls, value: list[str]) -> list[str]:
        for tf in value:
            timeframe_minutes(tf)
        return value

    @property
    def interval(self) -> timedelta:
        return timedelta(minutes=self.interval_minutes)

    def is_due(self, now: datetime) -> bool:
        return self.is_active and self.next_run_at is not None and self.next_run_at <= now


class AgentJob(BaseModel):
    """One scheduled execution attempt of an agent."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_id)
    agent_id: str
    status: JobStatus = JobStatus.PENDING
    attempts: int = 0
    scheduled_for: datetime
    started_at: datetime | None = None
    finished_at: datetime | None = None
    error: str | None = None
    run_context: dict[str, Any] = Field(default_factory=dict)

    @property
    def trigger(self) -> JobTrigger | None:
        raw = self.run_context.get("trigger")
        return JobTrigger(raw) if raw else None

    @property
    def is_live(self) -> bool:
        return self.status in LIVE_STATUSES


class AgentLog(BaseModel):
    """Append-only diagnostic record."""

    model_config = ConfigDict(frozen=True)

    agent_id: str
    job_id: str | None = None
    level: LogLevel = LogLevel.INFO
    message: str
    context: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime


class SignalAlert(BaseModel):
    """Data handed to the alerting collaborator for a newly stored signal."""

    model_config = ConfigDict(frozen=True)

    owner_id: str
    agent_id: str | None = None
    instrument: str
    timeframe: str
    strategy: StrategyKind
    direction: Direction
    confidence: float
    entry_price: float
    stop_loss: float | None = None
    take_profit: float | None = None
    reason: str

    @classmethod
    def from_signal(
        cls,
        signal: TradingSignal,
        *,
        owner_id: str,
        instrument: str,
        timeframe: str,
        agent_id: str | None = None,
    ) -> SignalAlert:
        return cls(
            owner_id=owner_id,
            agent_id=agent_id,
            instrument=instrument,
            timeframe=timeframe,
            strategy=signal.strategy,
            direction=signal.direction,
            confidence=signal.confidence,
            entry_price=signal.entry_price,
            stop_loss=signal.stop_loss,
            take_profit=signal.take_profit,
            reason=signal.reason,
        )
