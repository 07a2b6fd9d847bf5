"""Storage layer."""

from app.storage.agent_repo import PostgresSchedulerStore
from app.storage.database import Database, get_database, init_database
from app.storage.signal_repo import SignalRepository

__all__ = [
    "Database",
    "get_database",
    "init_database",
    "PostgresSchedulerStore",
    "SignalRepository",
]
