"""Kraken public REST API client for OHLC candles and asset pairs."""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any

import httpx

from core.models.candle import Candle
from core.models.timeframe import timeframe_minutes

logger = logging.getLogger(__name__)


class MarketDataError(Exception):
    """Upstream market data could not be fetched or parsed."""


class RateLimiter:
    """Simple rate limiter for API calls."""

    def __init__(self, calls_per_minute: int = 60):
        self.calls_per_minute = calls_per_minute
        self.interval = 60.0 / calls_per_minute
        self.last_call = 0.0
        self._lock = asyncio.Lock()

    async def acquire(self) -> None:
        """Wait if necessary to respect rate limit."""
        async with self._lock:
            loop = asyncio.get_running_loop()
            wait_time = self.last_call + self.interval - loop.time()
            if wait_time > 0:
                await asyncio.sleep(wait_time)
            self.last_call = loop.time()


class KrakenRestClient:
    """Kraken public market data client."""

    BASE_URL = "https://api.kraken.com"

    def __init__(
        self,
        base_url: str | None = None,
        calls_per_minute: int = 60,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url or self.BASE_URL
        self.rate_limiter = RateLimiter(calls_per_minute)
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=30.0,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def _request(self, endpoint: str, params: dict[str, Any] | None = None) -> Any:
        """GET a public endpoint and unwrap Kraken's {error, result} envelope."""
        await self.rate_limiter.acquire()
        client = await self._get_client()
        try:
            response = await client.get(endpoint, params=params)
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise MarketDataError(f"Kraken request {endpoint} failed: {e}") from e

        errors = payload.get("error") or []
        if errors:
            raise MarketDataError(f"Kraken API error: {', '.join(errors)}")
        return payload.get("result", {})

    async def get_ohlc(
        self,
        pair: str,
        timeframe: str,
        since: datetime | None = None,
    ) -> list[Candle]:
        """
        Fetch OHLC candles for a pair.

        Args:
            pair: Kraken pair name (e.g. "XBTUSD")
            timeframe: Candle timeframe (e.g. "1h", "4h")
            since: Only candles after this time (Kraken returns at most 720)

        Returns:
            Candles in ascending time order; empty when Kraken has no data

        Raises:
            MarketDataError: On transport errors or a Kraken error response
        """
        params: dict[str, Any] = {
            "pair": pair,
            "interval": timeframe_minutes(timeframe),
        }
        if since is not None:
            params["since"] = int(since.timestamp())

        result = await self._request("/0/public/OHLC", params)
        rows = next((v for k, v in result.items() if k != "last"), [])

        candles = []
        for row in rows:
            try:
                candles.append(
                    Candle(
                        timestamp=datetime.fromtimestamp(int(row[0]), tz=timezone.utc),
                        open=float(row[1]),
                        high=float(row[2]),
                        low=float(row[3]),
                        close=float(row[4]),
                        volume=float(row[6]),
                    )
                )
            except (IndexError, TypeError, ValueError) as e:
                raise MarketDataError(f"Malformed OHLC row for {pair}: {row!r}") from e

        candles.sort(key=lambda c: c.timestamp)
        logger.debug(f"Fetched {len(candles)} {timeframe} candles for {pair}")
        return candles

    async def fetch_candles(
        self, instrument: str, timeframe: str, since: datetime | None = None
    ) -> list[Candle]:
        """fetch_candles interface used by the scheduler and backtest loaders."""
        return await self.get_ohlc(instrument, timeframe, since)
