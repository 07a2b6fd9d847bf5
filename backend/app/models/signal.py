"""Persisted signal model."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from core.models.signal import Direction, Risk, SignalStatus
from core.models.strategy import StrategyKind


class StoredSignal(BaseModel):
    """A TradingSignal as stored for its owner."""

    model_config = ConfigDict(frozen=True)

    id: str
    owner_id: str
    agent_id: str | None = None
    instrument: str
    timeframe: str
    strategy: StrategyKind
    direction: Direction
    status: SignalStatus = SignalStatus.ACTIVE
    confidence: float = Field(ge=0, le=100)
    risk: Risk
    entry_price: float
    current_price: float | None = None
    stop_loss: float | None = None
    take_profit: float | None = None
    reason: str
    indicators: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime
    updated_at: datetime
