"""
Batch sender: one JSON POST per drained batch, fire-and-forget.

A batch counts as sent once its request task is started. Outcomes are only
observed for diagnostics and metrics: failures are never retried, never
requeued and never raised to whoever wrote the records.
"""

from __future__ import annotations

import asyncio
import time
from typing import TYPE_CHECKING, Any, Mapping, Sequence

import httpx

from .._version import __version__
from ..core import diagnostics
from ..core.errors import SerializationError, TransmissionError
from ..core.serialization import SerializedView, serialize_batch
from ..metrics.metrics import MetricsCollector
from .pool import ConnectionPool

if TYPE_CHECKING:
    from .https import TransportConfig

CONTENT_TYPE = "application/json"
USER_AGENT = f"logship-python/{__version__}"


def endpoint_url(config: TransportConfig) -> str:
    return f"https://{config.host_name}:{config.port}{config.path}"


def build_request(body: SerializedView, *, config: TransportConfig) -> httpx.Request:
    """Build the POST for one serialized batch, Basic-auth'd with the API key."""
    request = httpx.Request(
        "POST",
        endpoint_url(config),
        content=body.data,
        headers={
            "Content-Type": CONTENT_TYPE,
            "Content-Length": str(len(body)),
            "User-Agent": USER_AGENT,
        },
    )
    # BasicAuth only touches headers; an empty password is encoded as "key:"
    return next(httpx.BasicAuth(config.api_key, "").auth_flow(request))


class BatchSender:
    """Serializes batches and issues detached, bounded-concurrency requests."""

    def __init__(
        self,
        *,
        config: TransportConfig,
        pool: ConnectionPool,
        metrics: MetricsCollector | None = None,
    ) -> None:
        self._config = config
        self._pool = pool
        self._metrics = metrics
        self._endpoint = endpoint_url(config)
        self._semaphore = asyncio.Semaphore(config.max_in_flight)
        self._in_flight: set[asyncio.Task[None]] = set()
        self._last_status: int | None = None
        self._last_error: str | None = None

    @property
    def in_flight(self) -> int:
        return len(self._in_flight)

    @property
    def last_status(self) -> int | None:
        return self._last_status

    @property
    def last_error(self) -> str | None:
        return self._last_error

    def dispatch(
        self, records: Sequence[Mapping[str, Any]]
    ) -> asyncio.Task[None] | None:
        """Start sending ``records``; returns the detached task, if any.

        Must be called on the transport's event loop.
        """
        if not records:
            return None
        try:
            body = serialize_batch(records)
        except SerializationError as exc:
            self._warn_drop(exc, batch_size=len(records))
            self._track(
                asyncio.get_running_loop().create_task(
                    self._record_failure(len(records), reason="serialization")
                )
            )
            return None
        request = build_request(body, config=self._config)
        task = asyncio.get_running_loop().create_task(
            self._send(request, batch_size=len(records))
        )
        self._track(task)
        return task

    def _track(self, task: asyncio.Task[None]) -> None:
        # Strong references keep detached tasks alive until they finish
        self._in_flight.add(task)
        task.add_done_callback(self._in_flight.discard)

    async def wait_idle(self) -> None:
        """Wait for every request started so far to complete."""
        while self._in_flight:
            await asyncio.gather(*list(self._in_flight), return_exceptions=True)

    async def health_check(self) -> bool:
        return (
            self._last_error is None
            and self._last_status is not None
            and self._last_status < 400
        )

    async def _send(self, request: httpx.Request, *, batch_size: int) -> None:
        if self._metrics is not None:
            await self._metrics.record_flush(batch_size=batch_size)
        async with self._semaphore:
            start = time.perf_counter()
            try:
                async with self._pool.acquire() as client:
                    response = await client.send(request)
            except Exception as exc:  # noqa: BLE001
                self._last_status = None
                self._last_error = str(exc) or type(exc).__name__
                err = TransmissionError(
                    "exception while delivering batch",
                    endpoint=self._endpoint,
                    cause=exc,
                )
                self._warn_drop(err, batch_size=batch_size)
                await self._record_failure(batch_size, reason="network")
                return
            latency = time.perf_counter() - start

        self._last_status = response.status_code
        if response.is_success:
            self._last_error = None
            if self._metrics is not None:
                await self._metrics.record_batch_sent(
                    batch_size=batch_size, latency_seconds=latency
                )
            return

        self._last_error = f"HTTP {response.status_code}"
        err = TransmissionError(
            "failed to deliver batch",
            status_code=response.status_code,
            endpoint=self._endpoint,
        )
        self._warn_drop(err, batch_size=batch_size)
        await self._record_failure(batch_size, reason="status")

    def _warn_drop(
        self, exc: SerializationError | TransmissionError, *, batch_size: int
    ) -> None:
        diagnostics.warn(
            "https-transport",
            exc.message,
            batch_size=batch_size,
            **exc.to_fields(),
        )

    async def _record_failure(self, batch_size: int, *, reason: str) -> None:
        if self._metrics is None:
            return
        try:
            await self._metrics.record_batch_failed(batch_size=batch_size, reason=reason)
        except Exception as exc:  # noqa: BLE001
            diagnostics.debug(
                "https-transport",
                "failed to record batch failure metric",
                error_type=type(exc).__name__,
                error=str(exc),
                _rate_limit_key="metrics-failure",
            )
