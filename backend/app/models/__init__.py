"""Data models."""

from app.models.agent import AgentCreate, AgentToggle, AgentUpdate
from app.models.signal import StoredSignal

__all__ = [
    "AgentCreate",
    "AgentToggle",
    "AgentUpdate",
    "StoredSignal",
]
