"""
Buffered HTTPS transport for shipping log records in batches.

Producers call ``write()``/``append()`` from any thread; records go into a
``BatchBuffer`` and are flushed by a ``FlushScheduler`` tick, by the buffer's
high-water mark, or explicitly. Each flush drains the buffer and hands the
batch to a ``BatchSender``, which POSTs it over a pooled keep-alive
connection without the producer ever waiting on the network.

Event loop ownership:
- Constructed inside a running loop: the transport binds to that loop.
- Constructed outside any loop: the transport runs its own loop on a daemon
  thread, and ``close()`` blocks until the final drain has been sent.
"""

from __future__ import annotations

import asyncio
import threading
import types
from concurrent.futures import Future as ConcurrentFuture
from typing import Any, Callable, Coroutine, Iterable, Mapping

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
)

from ..core import diagnostics, shutdown
from ..core.buffer import BatchBuffer
from ..core.errors import ConfigurationError
from ..core.scheduler import FlushScheduler
from ..core.settings import (
    DEFAULT_HOST_NAME,
    DEFAULT_PATH,
    DEFAULT_PORT,
    Settings,
)
from ..metrics.metrics import MetricsCollector
from .pool import ConnectionPool, HttpClient, HttpxConnectionPool
from .sender import BatchSender, endpoint_url

__all__ = ["HTTPSTransport", "TransportConfig"]

Record = Mapping[str, Any]
WriteCallback = Callable[[BaseException | None, bool], Any]

# Keep references to close tasks scheduled from sync close() on a bound loop
_PENDING_CLOSE_TASKS: set[asyncio.Task[None]] = set()

# Option names accepted alongside the snake_case field names
_OPTION_ALIASES = {
    "apiKey": "api_key",
    "hostName": "host_name",
    "flushInterval": "flush_interval_ms",
    "highWaterMark": "high_water_mark",
}


class TransportConfig(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid", validate_default=True, populate_by_name=True)  # fmt: skip

    api_key: str = Field(validation_alias=AliasChoices("api_key", "apiKey"))
    host_name: str = Field(
        default=DEFAULT_HOST_NAME,
        validation_alias=AliasChoices("host_name", "hostName"),
    )
    path: str = DEFAULT_PATH
    port: int = Field(default=DEFAULT_PORT, ge=1, le=65535)
    flush_interval_ms: int | None = Field(
        default=1000,
        validation_alias=AliasChoices("flush_interval_ms", "flushInterval"),
    )
    high_water_mark: int = Field(
        default=1000,
        ge=1,
        validation_alias=AliasChoices("high_water_mark", "highWaterMark"),
    )
    high_water_bytes: int | None = Field(default=None, ge=1)
    max_sockets: int = Field(default=10, ge=1)
    keep_alive_ms: int = Field(default=60_000, ge=0)
    request_timeout_seconds: float = Field(default=10.0, gt=0.0)
    max_in_flight: int = Field(default=4, ge=1)

    @field_validator("api_key")
    @classmethod
    def _ensure_api_key(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("api_key must not be empty")
        return value

    @field_validator("path")
    @classmethod
    def _ensure_leading_slash(cls, value: str) -> str:
        return value if value.startswith("/") else f"/{value}"

    @property
    def flush_interval_seconds(self) -> float | None:
        # A missing or non-positive interval disables the timer
        if not self.flush_interval_ms or self.flush_interval_ms < 0:
            return None
        return self.flush_interval_ms / 1000.0

    @property
    def url(self) -> str:
        return endpoint_url(self)

    @classmethod
    def from_settings(
        cls, settings: Settings | None = None, **overrides: Any
    ) -> TransportConfig:
        """Build a config from ``Settings().transport`` plus explicit overrides.

        Raises ``ConfigurationError`` when no API key is available or a value
        fails validation.
        """
        base: dict[str, Any] = (settings or Settings()).transport.model_dump()
        base.update({_OPTION_ALIASES.get(k, k): v for k, v in overrides.items()})
        if not base.get("api_key"):
            raise ConfigurationError(
                "An API key is required (api_key= or LOGSHIP_TRANSPORT__API_KEY)"
            )
        try:
            return cls(**base)
        except ValidationError as e:
            raise ConfigurationError(
                f"Invalid transport configuration: {e}", cause=e
            ) from e


class HTTPSTransport:
    """Batching HTTPS transport with a keep-alive connection pool."""

    name = "https"

    def __init__(
        self,
        api_key: str | None = None,
        config: TransportConfig | Mapping[str, Any] | None = None,
        *,
        pool: ConnectionPool | None = None,
        http_client: HttpClient | None = None,
        metrics: MetricsCollector | None = None,
        settings: Settings | None = None,
        **options: Any,
    ) -> None:
        # camelCase names for the injectable collaborators
        pool = options.pop("httpsAgent", pool)
        http_client = options.pop("httpsClient", http_client)
        if pool is not None and http_client is not None:
            raise ConfigurationError(
                "Pass either a connection pool or an http client, not both"
            )
        self._config = _resolve_config(api_key, config, settings, options)
        cfg = self._config
        self._metrics = metrics
        self._owns_pool = pool is None
        self._pool: ConnectionPool = pool or HttpxConnectionPool(
            max_sockets=cfg.max_sockets,
            keep_alive_seconds=cfg.keep_alive_ms / 1000.0,
            timeout_seconds=cfg.request_timeout_seconds,
            client=http_client,
        )
        self._buffer = BatchBuffer(
            high_water_mark=cfg.high_water_mark,
            high_water_bytes=cfg.high_water_bytes,
            on_high_water=self.request_flush,
        )
        self._scheduler = FlushScheduler(
            interval_seconds=cfg.flush_interval_seconds,
            on_tick=self.request_flush,
        )
        self._sender = BatchSender(config=cfg, pool=self._pool, metrics=metrics)

        self._state_lock = threading.Lock()
        # Orders producer appends against the close that performs the final drain
        self._accept_lock = threading.Lock()
        self._flush_scheduled = False
        self._closed = False
        self._started = False
        self._start_lock = asyncio.Lock()
        self._flush_tasks: set[asyncio.Task[None]] = set()
        self._shutdown_future: asyncio.Future[None] | None = None

        self._thread: threading.Thread | None = None
        try:
            running: asyncio.AbstractEventLoop | None = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is not None:
            self._loop = running
            self._owns_loop = False
            self._scheduler.arm(self._loop)
        else:
            self._loop = asyncio.new_event_loop()
            self._owns_loop = True
            self._thread = threading.Thread(
                target=self._run_loop, name="logship-https", daemon=True
            )
            self._thread.start()
            self._loop.call_soon_threadsafe(self._scheduler.arm, self._loop)

        shutdown.register_transport(self)

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def config(self) -> TransportConfig:
        return self._config

    @property
    def buffer(self) -> BatchBuffer:
        return self._buffer

    @property
    def scheduler(self) -> FlushScheduler:
        return self._scheduler

    @property
    def sender(self) -> BatchSender:
        return self._sender

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        return self._loop

    # ------------------------------------------------------------------
    # Producer API
    # ------------------------------------------------------------------

    def append(self, record: Record) -> bool:
        """Accept ``record`` for best-effort delivery; never blocks or raises."""
        # Held only for the list push, so a close cannot slip in between the
        # check and the append and leave the record behind its final drain
        with self._accept_lock:
            accepted = not self._closed
            if accepted:
                self._buffer.append(record)
        if not accepted:
            diagnostics.warn(
                "https-transport",
                "write after close ignored",
                _rate_limit_key="write-after-close",
            )
        return accepted

    def write(self, record: Record, callback: WriteCallback | None = None) -> bool:
        """Enqueue ``record`` and report acceptance (not delivery) to ``callback``."""
        accepted = self.append(record)
        if callback is not None:
            callback(None, accepted)
        return accepted

    def write_many(self, records: Iterable[Record]) -> int:
        """Append several records without a high-water flush splitting them."""
        count = 0
        with self._buffer.frozen():
            for record in records:
                if not self.append(record):
                    break
                count += 1
        return count

    def request_flush(self) -> None:
        """Ask the loop to drain and send; safe from any thread, never blocks.

        Requests made before the previous one has run are coalesced.
        """
        with self._state_lock:
            if self._flush_scheduled or self._closed:
                return
            self._flush_scheduled = True
        try:
            self._loop.call_soon_threadsafe(self._spawn_flush)
        except RuntimeError:
            # Loop already closed; the records stay buffered
            with self._state_lock:
                self._flush_scheduled = False

    async def flush(self) -> None:
        """Drain now and wait until every started request has completed."""
        await self._run_on_loop(self._flush_and_wait())

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def aclose(self) -> None:
        await self._run_on_loop(self._shutdown())
        self._stop_owned_loop()

    def close(self, timeout: float | None = None) -> None:
        """Stop the timer, send what is buffered, then release connections.

        Blocks when the transport owns its loop. On a bound loop that is
        running, the shutdown is scheduled as a task instead.
        """
        if self._owns_loop:
            if threading.current_thread() is self._thread:
                self._track_close(self._loop.create_task(self._shutdown()))
                return
            if not self._loop.is_closed():
                fut = asyncio.run_coroutine_threadsafe(self._shutdown(), self._loop)
                _wait_quietly(fut, timeout)
            self._stop_owned_loop(timeout)
            return

        if self._loop.is_closed():
            self._abandon("event loop closed before transport was closed")
            return
        if self._loop.is_running():
            self._track_close(self._loop.create_task(self._shutdown()))
            return
        self._loop.run_until_complete(self._shutdown())

    def end(self, timeout: float | None = None) -> None:
        self.close(timeout)

    async def __aenter__(self) -> HTTPSTransport:
        return self

    async def __aexit__(
        self,
        _exc_type: type[BaseException] | None,
        _exc: BaseException | None,
        _tb: types.TracebackType | None,
    ) -> None:
        await self.aclose()

    def __enter__(self) -> HTTPSTransport:
        return self

    def __exit__(
        self,
        _exc_type: type[BaseException] | None,
        _exc: BaseException | None,
        _tb: types.TracebackType | None,
    ) -> None:
        self.close()

    async def health_check(self) -> bool:
        return await self._sender.health_check()

    # ------------------------------------------------------------------
    # Loop-side internals
    # ------------------------------------------------------------------

    def _run_loop(self) -> None:
        asyncio.set_event_loop(self._loop)
        try:
            self._loop.run_forever()
        finally:
            try:
                self._loop.run_until_complete(self._loop.shutdown_asyncgens())
            finally:
                self._loop.close()

    def _spawn_flush(self) -> None:
        with self._state_lock:
            self._flush_scheduled = False
        task = self._loop.create_task(self._flush_once())
        self._flush_tasks.add(task)
        task.add_done_callback(self._flush_tasks.discard)

    async def _ensure_started(self) -> None:
        if self._started:
            return
        async with self._start_lock:
            if not self._started:
                await self._pool.start()
                self._started = True

    async def _flush_once(self) -> None:
        try:
            await self._ensure_started()
        except Exception as exc:  # noqa: BLE001
            # Records stay buffered for the next flush
            diagnostics.warn(
                "https-transport",
                "connection pool failed to start",
                error_type=type(exc).__name__,
                error=str(exc),
                _rate_limit_key="pool-start",
            )
            return
        self._sender.dispatch(self._buffer.drain())

    async def _flush_and_wait(self) -> None:
        await self._flush_once()
        await self._sender.wait_idle()

    async def _shutdown(self) -> None:
        if self._shutdown_future is None:
            self._shutdown_future = asyncio.ensure_future(self._do_shutdown())
        await asyncio.shield(self._shutdown_future)

    def _mark_closed(self) -> None:
        with self._accept_lock, self._state_lock:
            self._closed = True

    async def _do_shutdown(self) -> None:
        self._mark_closed()
        await self._scheduler.cancel()
        if self._flush_tasks:
            await asyncio.gather(*list(self._flush_tasks), return_exceptions=True)
        await self._flush_and_wait()
        if self._owns_pool:
            try:
                await self._pool.stop()
            except Exception as exc:  # noqa: BLE001
                diagnostics.warn(
                    "https-transport",
                    "connection pool stop failed",
                    error_type=type(exc).__name__,
                    error=str(exc),
                )
        shutdown.unregister_transport(self)

    async def _run_on_loop(self, coro: Coroutine[Any, Any, None]) -> None:
        try:
            current = asyncio.get_running_loop()
        except RuntimeError:
            current = None
        if current is self._loop:
            await coro
            return
        if self._loop.is_closed():
            coro.close()
            return
        fut = asyncio.run_coroutine_threadsafe(coro, self._loop)
        await asyncio.wrap_future(fut)

    def _stop_owned_loop(self, timeout: float | None = None) -> None:
        if not self._owns_loop or self._thread is None:
            return
        if threading.current_thread() is self._thread:
            return
        if not self._loop.is_closed():
            try:
                self._loop.call_soon_threadsafe(self._loop.stop)
            except RuntimeError:
                pass
        self._thread.join(timeout)

    def _track_close(self, task: asyncio.Task[None]) -> None:
        _PENDING_CLOSE_TASKS.add(task)
        task.add_done_callback(_PENDING_CLOSE_TASKS.discard)

    def _abandon(self, reason: str) -> None:
        self._mark_closed()
        dropped = len(self._buffer.drain())
        if dropped:
            diagnostics.warn(
                "https-transport",
                "buffered records dropped",
                reason=reason,
                records=dropped,
            )
        shutdown.unregister_transport(self)


def _resolve_config(
    api_key: str | None,
    config: TransportConfig | Mapping[str, Any] | None,
    settings: Settings | None,
    options: Mapping[str, Any],
) -> TransportConfig:
    if isinstance(config, TransportConfig) and api_key is None and not options:
        return config
    overrides: dict[str, Any] = {}
    if isinstance(config, TransportConfig):
        overrides.update(config.model_dump())
    elif config is not None:
        overrides.update(config)
    overrides.update(options)
    if api_key is not None:
        overrides["api_key"] = api_key
    return TransportConfig.from_settings(settings, **overrides)


def _wait_quietly(fut: ConcurrentFuture[None], timeout: float | None) -> None:
    try:
        fut.result(timeout)
    except Exception as exc:  # noqa: BLE001
        diagnostics.warn(
            "https-transport",
            "close did not complete",
            error_type=type(exc).__name__,
            error=str(exc),
        )
