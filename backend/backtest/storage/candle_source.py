"""Candle data sources for backtesting.

All sources share the CandleSource protocol. The runner loads every
instrument's history up front through it, then simulates in memory.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Awaitable, Callable, Protocol

import asyncpg

from core.models.candle import Candle

logger = logging.getLogger(__name__)

# (instrument, timeframe, since) -> candles, as exposed by the Kraken client
FetchCandles = Callable[[str, str, datetime | None], Awaitable[list[Candle]]]


class CandleSource(Protocol):
    """Protocol for candle data access."""

    async def get_range(
        self, instrument: str, timeframe: str, start: datetime, end: datetime
    ) -> list[Candle]: ...


class PostgresCandleSource:
    """Read cached candles from PostgreSQL via the shared asyncpg pool."""

    def __init__(self, pool: asyncpg.Pool):
        self._pool = pool

    async def get_range(
        self, instrument: str, timeframe: str, start: datetime, end: datetime
    ) -> list[Candle]:
        """Fetch candles in ascending time order."""
        async with self._pool.acquire() as conn:
            rows = await conn.fetch(
                """SELECT timestamp, open, high, low, close, volume
                   FROM candles
                   WHERE instrument=$1 AND timeframe=$2
                     AND timestamp >= $3 AND timestamp <= $4
                   ORDER BY timestamp ASC""",
                instrument,
                timeframe,
                start,
                end,
            )
        return [
            Candle(
                timestamp=row["timestamp"],
                open=row["open"],
                high=row["high"],
                low=row["low"],
                close=row["close"],
                volume=row["volume"],
            )
            for row in rows
        ]


class FetcherCandleSource:
    """Adapt a live fetch function (e.g. KrakenRestClient.fetch_candles).

    The exchange returns its most recent window; candles outside
    [start, end] are dropped here.
    """

    def __init__(self, fetch: FetchCandles):
        self._fetch = fetch

    async def get_range(
        self, instrument: str, timeframe: str, start: datetime, end: datetime
    ) -> list[Candle]:
        candles = await self._fetch(instrument, timeframe, start)
        return [c for c in candles if start <= c.timestamp <= end]


class InMemoryCandleSource:
    """Serve candles from a dict. Used by tests and offline runs."""

    def __init__(self, data: dict[str, list[Candle]] | None = None):
        self._data = data or {}

    async def get_range(
        self, instrument: str, timeframe: str, start: datetime, end: datetime
    ) -> list[Candle]:
        return [
            c for c in self._data.get(instrument, [])
            if start <= c.timestamp <= end
        ]
