"""Historical candle downloader.

Pulls OHLC candles from Kraken through KrakenRestClient and caches them
in the PostgreSQL candles table, so repeated backtests over the same
range do not hit the exchange again.

- executemany with ON CONFLICT upsert for idempotency
"""

from __future__ import annotations

import logging
from datetime import datetime

import asyncpg

from app.clients.kraken_rest import KrakenRestClient
from core.models.candle import Candle

logger = logging.getLogger(__name__)


class CandleDownloader:
    """Sync Kraken candles into the backtest candle cache."""

    def __init__(self, pool: asyncpg.Pool, client: KrakenRestClient):
        self._pool = pool
        self._client = client

    async def sync(
        self,
        instrument: str,
        timeframe: str,
        since: datetime | None = None,
    ) -> int:
        """Fetch candles after ``since`` and upsert them. Returns rows written."""
        candles = await self._client.fetch_candles(instrument, timeframe, since)
        if not candles:
            logger.warning(f"[{instrument}] Kraken returned no {timeframe} candles")
            return 0
        count = await self._save(instrument, timeframe, candles)
        logger.info(
            f"[{instrument}] Cached {count} {timeframe} candles "
            f"({candles[0].timestamp:%Y-%m-%d %H:%M} → {candles[-1].timestamp:%Y-%m-%d %H:%M})"
        )
        return count

    async def _save(self, instrument: str, timeframe: str, candles: list[Candle]) -> int:
        """Batch upsert candles via asyncpg executemany."""
        records = [
            (instrument, timeframe, c.timestamp, c.open, c.high, c.low, c.close, c.volume)
            for c in candles
        ]
        async with self._pool.acquire() as conn:
            await conn.executemany(
                """INSERT INTO candles
                       (instrument, timeframe, timestamp, open, high, low, close, volume)
                   VALUES ($1,$2,$3,$4,$5,$6,$7,$8)
                   ON CONFLICT (instrument, timeframe, timestamp) DO UPDATE SET
                       open=EXCLUDED.open, high=EXCLUDED.high,
                       low=EXCLUDED.low, close=EXCLUDED.close,
                       volume=EXCLUDED.volume""",
                records,
            )
        return len(records)
