"""Database connection and table definitions."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    text,
)
from sqlalchemy.dialects.postgresql import ARRAY, JSONB
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import declarative_base

from app.config import get_settings

Base = declarative_base()


class ScheduledAgentTable(Base):
    """User-defined recurring analysis agents."""

    __tablename__ = "scheduled_agents"

    id = Column(String(36), primary_key=True)
    owner_id = Column(String(256), nullable=False)
    name = Column(Text, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    interval_minutes = Column(Integer, nullable=False)
    instruments = Column(ARRAY(String(32)), nullable=False)
    timeframes = Column(ARRAY(String(8)), nullable=False)
    strategies = Column(JSONB, nullable=False)
    min_confidence = Column(Numeric(5, 2), nullable=False, default=60)
    concurrency = Column(Integer, nullable=False, default=1)
    max_runtime_seconds = Column(Integer, nullable=False, default=60)
    max_attempts = Column(Integer, nullable=False, default=3)
    timezone = Column(String(64), nullable=False, default="UTC")
    last_run_at = Column(DateTime(timezone=True), nullable=True)
    next_run_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=text("NOW()"))
    updated_at = Column(DateTime(timezone=True), server_default=text("NOW()"), onupdate=text("NOW()"))

    __table_args__ = (
        Index("idx_scheduled_agents_owner", "owner_id"),
        Index("idx_scheduled_agents_active_next_run", "is_active", "next_run_at"),
    )


class AgentJobTable(Base):
    """Agent job queue.

    The partial unique index allows at most one pending/running job per
    agent; inserts rely on it with ON CONFLICT DO NOTHING.
    """

    __tablename__ = "scheduled_agent_jobs"

    id = Column(String(36), primary_key=True)
    agent_id = Column(
        String(36),
        ForeignKey("scheduled_agents.id", ondelete="CASCADE"),
        nullable=False,
    )
    status = Column(String(16), nullable=False, default="pending")
    attempts = Column(Integer, nullable=False, default=0)
    scheduled_for = Column(DateTime(timezone=True), nullable=False)
    started_at = Column(DateTime(timezone=True), nullable=True)
    finished_at = Column(DateTime(timezone=True), nullable=True)
    run_context = Column(JSONB, nullable=True)
    error = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=text("NOW()"))
    updated_at = Column(DateTime(timezone=True), server_default=text("NOW()"), onupdate=text("NOW()"))

    __table_args__ = (
        Index("idx_agent_jobs_agent", "agent_id"),
        Index("idx_agent_jobs_status_scheduled", "status", "scheduled_for"),
        Index(
            "uq_agent_jobs_live",
            "agent_id",
            unique=True,
            postgresql_where=text("status IN ('pending', 'running')"),
        ),
    )


class AgentLogTable(Base):
    """Append-only agent diagnostics."""

    __tablename__ = "scheduled_agent_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    agent_id = Column(
        String(36),
        ForeignKey("scheduled_agents.id", ondelete="CASCADE"),
        nullable=False,
    )
    job_id = Column(
        String(36),
        ForeignKey("scheduled_agent_jobs.id", ondelete="SET NULL"),
        nullable=True,
    )
    level = Column(String(8), nullable=False, default="info")
    message = Column(Text, nullable=False)
    context = Column(JSONB, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=text("NOW()"))

    __table_args__ = (
        Index("idx_agent_logs_agent", "agent_id"),
        Index("idx_agent_logs_job", "job_id"),
    )


class SignalTable(Base):
    """Persisted trading signals."""

    __tablename__ = "signals"

    id = Column(String(36), primary_key=True)
    owner_id = Column(String(256), nullable=False)
    agent_id = Column(
        String(36),
        ForeignKey("scheduled_agents.id", ondelete="SET NULL"),
        nullable=True,
    )
    instrument = Column(String(32), nullable=False)
    timeframe = Column(String(8), nullable=False)
    strategy = Column(String(50), nullable=False)
    direction = Column(String(4), nullable=False)
    status = Column(String(10), nullable=False, default="active")
    confidence = Column(Numeric(5, 2), nullable=False)
    risk = Column(String(8), nullable=False)
    entry_price = Column(Numeric(20, 8), nullable=False)
    current_price = Column(Numeric(20, 8), nullable=True)
    stop_loss = Column(Numeric(20, 8), nullable=True)
    take_profit = Column(Numeric(20, 8), nullable=True)
    reason = Column(Text, nullable=False)
    indicators = Column(JSONB, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("idx_signals_owner_created", "owner_id", "created_at"),
        Index(
            "idx_signals_dedup",
            "instrument", "timeframe", "direction", "status", "created_at",
        ),
    )


class Database:
    """Database connection manager."""

    def __init__(self, database_url: str | None = None):
        settings = get_settings()
        url = database_url or settings.database_url

        # Convert postgresql:// to postgresql+asyncpg://
        if url.startswith("postgresql://"):
            url = url.replace("postgresql://", "postgresql+asyncpg://", 1)

        self.engine = create_async_engine(
            url,
            echo=settings.debug,
            pool_size=10,
            max_overflow=10,
            pool_pre_ping=True,    # Validate before use
            pool_recycle=3600,     # Recycle every hour
            pool_timeout=30,
            connect_args={
                "timeout": 10,
                "command_timeout": 60,
            },
        )
        self.session_factory = async_sessionmaker(
            self.engine, class_=AsyncSession, expire_on_commit=False
        )

    async def create_tables(self) -> None:
        """Create all tables and indexes that do not exist yet."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Get a database session."""
        async with self.session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def close(self) -> None:
        """Close database connection."""
        await self.engine.dispose()


# Global database instance
_db: Database | None = None


def get_database() -> Database:
    """Get the global database instance."""
    global _db
    if _db is None:
        _db = Database()
    return _db


async def init_database() -> Database:
    """Initialize the database and create tables."""
    db = get_database()
    await db.create_tables()
    return db
