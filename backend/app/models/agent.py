"""Agent management request bodies.

Field names follow AgentConfig; range checks are applied when the
service builds the AgentConfig, so errors come back in one place.
"""

from pydantic import BaseModel, ConfigDict


class AgentCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str
    interval_minutes: int
    instruments: list[str]
    timeframes: list[str] = ["1h"]
    strategies: list[str]
    min_confidence: float = 60.0
    concurrency: int = 1
    max_runtime_seconds: int = 60
    max_attempts: int = 3
    timezone: str = "UTC"


class AgentUpdate(BaseModel):
    """Partial update; omitted fields keep their value."""

    model_config = ConfigDict(extra="forbid")

    name: str | None = None
    interval_minutes: int | None = None
    instruments: list[str] | None = None
    timeframes: list[str] | None = None
    strategies: list[str] | None = None
    min_confidence: float | None = None
    concurrency: int | None = None
    max_runtime_seconds: int | None = None
    max_attempts: int | None = None
    timezone: str | None = None


class AgentToggle(BaseModel):
    is_active: bool
