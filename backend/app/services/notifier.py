"""Alert hand-off for newly created signals.

notify_new_signal() only schedules delivery and returns; the webhook POST
runs in a background task and its failures are logged, never raised.
"""

import asyncio
import logging

import httpx
import orjson

from scheduler.models import SignalAlert

logger = logging.getLogger(__name__)


class SignalNotifier:
    """POST alert payloads to a webhook in the background."""

    def __init__(
        self,
        webhook_url: str = "",
        min_confidence: float = 70.0,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.webhook_url = webhook_url
        self.min_confidence = min_confidence
        self._timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._tasks: set[asyncio.Task] = set()
        self.sent = 0
        self.failed = 0

    @property
    def enabled(self) -> bool:
        return bool(self.webhook_url)

    def notify_new_signal(self, alert: SignalAlert) -> None:
        """Schedule delivery of one alert. Returns immediately."""
        if not self.enabled:
            return
        if alert.confidence < self.min_confidence:
            logger.debug(
                f"Alert for {alert.instrument} below min confidence "
                f"({alert.confidence:.0f} < {self.min_confidence:.0f})"
            )
            return

        task = asyncio.get_running_loop().create_task(self._send(alert))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    @staticmethod
    def build_payload(alert: SignalAlert) -> dict:
        return {
            "event": "signal.created",
            "title": f"{alert.direction.value.upper()} Signal: {alert.instrument}",
            "signal": alert.model_dump(mode="json"),
        }

    async def _send(self, alert: SignalAlert) -> None:
        try:
            client = await self._get_client()
            response = await client.post(
                self.webhook_url,
                content=orjson.dumps(self.build_payload(alert)),
                headers={"Content-Type": "application/json"},
            )
            response.raise_for_status()
            self.sent += 1
            logger.info(f"Alert sent for {alert.instrument} {alert.direction.value}")
        except Exception as e:
            self.failed += 1
            logger.warning(f"Alert delivery failed for {alert.instrument}: {e}")

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self._timeout, transport=self._transport)
        return self._client

    async def drain(self) -> None:
        """Wait for in-flight deliveries."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def close(self) -> None:
        await self.drain()
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None
