"""Delivery of log entries to the metrics collector."""

import asyncio
import logging
from typing import List, Optional

import httpx

from har_metrics.config.settings import DEFAULT_METRICS_API_URL, Settings
from har_metrics.exceptions import ConfigurationError, DeliveryError
from har_metrics.har.models import LogEntry

logger = logging.getLogger(__name__)

REQUEST_PATH = "/v1/request"


class MetricsClient:
    """
    Buffers log entries and posts them to the collector as a JSON array.

    Delivery failures are logged and never raised to the caller, so they cannot
    affect the HTTP cycle that produced the entry. In fire-and-forget mode a full
    buffer is sent from a background task and ``enqueue`` returns immediately.

    Attributes:
        api_key (str): The collector key, sent as the Basic auth username with a blank password.
        base_url (str): The collector base URL.
        buffer_length (int): How many entries are collected before a batch is sent.
        fire_and_forget (bool): Whether ``enqueue`` waits for the collector.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_METRICS_API_URL,
        buffer_length: int = 1,
        timeout: float = 3.0,
        fire_and_forget: bool = True,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        if not api_key:
            raise ConfigurationError("A collector API key is required to send metrics.", option="api_key")
        if buffer_length < 1:
            raise ValueError("buffer_length must be at least 1")
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.buffer_length = buffer_length
        self.fire_and_forget = fire_and_forget
        self._owns_client = http_client is None
        self._http_client = http_client or httpx.AsyncClient(timeout=timeout)
        self._buffer: List[LogEntry] = []
        self._lock = asyncio.Lock()
        self._tasks: set[asyncio.Task] = set()

    @classmethod
    def from_settings(cls, settings: Settings, http_client: Optional[httpx.AsyncClient] = None) -> "MetricsClient":
        return cls(
            api_key=settings.require_readme_api_key(),
            base_url=settings.get_metrics_api_url(),
            buffer_length=settings.get_buffer_length(),
            timeout=settings.get_timeout(),
            fire_and_forget=settings.fire_and_forget(),
            http_client=http_client,
        )

    @property
    def pending(self) -> int:
        """Number of buffered entries not yet sent."""
        return len(self._buffer)

    async def enqueue(self, entry: LogEntry) -> None:
        """Buffers an entry and sends the batch once the buffer is full."""
        async with self._lock:
            self._buffer.append(entry)
            if len(self._buffer) < self.buffer_length:
                return
            batch, self._buffer = self._buffer, []

        if self.fire_and_forget:
            task = asyncio.create_task(self._deliver(batch))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
        else:
            await self._deliver(batch)

    async def flush(self) -> bool:
        """Sends whatever is buffered now. Returns False if delivery failed."""
        async with self._lock:
            batch, self._buffer = self._buffer, []
        if not batch:
            return True
        return await self._deliver(batch)

    async def send_batch(self, batch: List[LogEntry]) -> httpx.Response:
        """Posts a batch to the collector.

        Raises:
            DeliveryError: If the collector answers with an error status.
            httpx.HTTPError: On transport failures.
        """
        response = await self._http_client.post(
            f"{self.base_url}{REQUEST_PATH}",
            json=[entry.to_wire() for entry in batch],
            auth=(self.api_key, ""),
        )
        if response.is_error:
            raise DeliveryError(
                f"Metrics collector rejected {len(batch)} log entries: {response.status_code} {response.text}",
                status_code=response.status_code,
            )
        return response

    async def _deliver(self, batch: List[LogEntry]) -> bool:
        try:
            await self.send_batch(batch)
        except DeliveryError as e:
            logger.error(str(e))
            return False
        except httpx.HTTPError as e:
            logger.error(f"Failed to send {len(batch)} log entries to {self.base_url}: {e!r}")
            return False
        logger.debug(f"Sent {len(batch)} log entries to {self.base_url}")
        return True

    async def aclose(self) -> None:
        """Flushes the buffer, waits for background deliveries and closes an owned HTTP client."""
        await self.flush()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        if self._owns_client:
            await self._http_client.aclose()
