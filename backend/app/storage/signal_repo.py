"""Signal repository.

persist_signal is idempotent per owner within a 24h window: a second
active signal with the same instrument, timeframe and direction refreshes
the existing row instead of inserting a duplicate. A transaction-scoped
advisory lock on that key serializes concurrent persists, so two agents
racing on a key that has no row yet cannot both insert.
"""

import logging
from datetime import timedelta

from sqlalchemy import func, select, update
from sqlalchemy.dialects.postgresql import insert

from app.models import StoredSignal
from app.storage.database import Database, SignalTable, get_database
from core.models.signal import Direction, SignalStatus, TradingSignal
from scheduler.clock import Clock, SystemClock
from scheduler.models import PersistOutcome, new_id

logger = logging.getLogger(__name__)

DEDUP_WINDOW = timedelta(hours=24)


def dedup_key(owner_id: str, instrument: str, timeframe: str, direction: Direction) -> str:
    return f"signal:{owner_id}:{instrument}:{timeframe}:{direction.value}"


class SignalRepository:
    """Repository for persisted trading signals."""

    def __init__(self, db: Database | None = None, clock: Clock | None = None):
        self._db = db
        self._clock = clock or SystemClock()

    @property
    def db(self) -> Database:
        return self._db or get_database()

    async def persist_signal(
        self,
        signal: TradingSignal,
        *,
        owner_id: str,
        instrument: str,
        timeframe: str,
        agent_id: str | None = None,
    ) -> PersistOutcome:
        """Insert a new active signal or refresh the matching recent one."""
        now = self._clock.now()
        indicators = signal.indicators.model_dump(mode="json", exclude_none=True)
        key = dedup_key(owner_id, instrument, timeframe, signal.direction)

        async with self.db.session() as session:
            # Held until commit
            await session.execute(select(func.pg_advisory_xact_lock(func.hashtext(key))))

            stmt = (
                select(SignalTable.id)
                .where(
                    SignalTable.owner_id == owner_id,
                    SignalTable.instrument == instrument,
                    SignalTable.timeframe == timeframe,
                    SignalTable.direction == signal.direction.value,
                    SignalTable.status == SignalStatus.ACTIVE.value,
                    SignalTable.created_at >= now - DEDUP_WINDOW,
                )
                .order_by(SignalTable.created_at.desc())
                .limit(1)
            )
            existing_id = (await session.execute(stmt)).scalar_one_or_none()

            if existing_id is not None:
                await session.execute(
                    update(SignalTable)
                    .where(SignalTable.id == existing_id)
                    .values(
                        confidence=signal.confidence,
                        current_price=signal.entry_price,
                        stop_loss=signal.stop_loss,
                        take_profit=signal.take_profit,
                        indicators=indicators,
                        reason=signal.reason,
                        updated_at=now,
                    )
                )
                logger.debug(f"Refreshed signal {existing_id} for {instrument} {timeframe}")
                return PersistOutcome.UPDATED

            await session.execute(
                insert(SignalTable).values(
                    id=new_id(),
                    owner_id=owner_id,
                    agent_id=agent_id,
                    instrument=instrument,
                    timeframe=timeframe,
                    strategy=signal.strategy.value,
                    direction=signal.direction.value,
                    status=SignalStatus.ACTIVE.value,
                    confidence=signal.confidence,
                    risk=signal.risk.value,
                    entry_price=signal.entry_price,
                    current_price=signal.entry_price,
                    stop_loss=signal.stop_loss,
                    take_profit=signal.take_profit,
                    reason=signal.reason,
                    indicators=indicators,
                    created_at=now,
                    updated_at=now,
                )
            )
        logger.info(
            f"New {signal.direction.value} signal {instrument} {timeframe} "
            f"({signal.strategy.value}, {signal.confidence:.0f}%)"
        )
        return PersistOutcome.CREATED

    async def get_recent(
        self,
        owner_id: str,
        limit: int = 50,
        instrument: str | None = None,
        direction: Direction | None = None,
    ) -> list[StoredSignal]:
        """Most recent signals for an owner."""
        async with self.db.session() as session:
            stmt = select(SignalTable).where(SignalTable.owner_id == owner_id)
            if instrument:
                stmt = stmt.where(SignalTable.instrument == instrument)
            if direction:
                stmt = stmt.where(SignalTable.direction == direction.value)
            stmt = stmt.order_by(SignalTable.created_at.desc()).limit(limit)

            result = await session.execute(stmt)
            return [self._row_to_signal(row) for row in result.scalars().all()]

    @staticmethod
    def _row_to_signal(row: SignalTable) -> StoredSignal:
        """Convert database row to StoredSignal."""
        return StoredSignal(
            id=row.id,
            owner_id=row.owner_id,
            agent_id=row.agent_id,
            instrument=row.instrument,
            timeframe=row.timeframe,
            strategy=row.strategy,
            direction=Direction(row.direction),
            status=SignalStatus(row.status),
            confidence=float(row.confidence),
            risk=row.risk,
            entry_price=float(row.entry_price),
            current_price=float(row.current_price) if row.current_price is not None else None,
            stop_loss=float(row.stop_loss) if row.stop_loss is not None else None,
            take_profit=float(row.take_profit) if row.take_profit is not None else None,
            reason=row.reason,
            indicators=row.indicators or {},
            created_at=row.created_at,
            updated_at=row.updated_at,
        )
