"""
Connection pooling for the HTTPS transport.

The transport depends only on the ``ConnectionPool`` and ``HttpClient``
protocols below, so callers can inject their own pool or client. The default
``HttpxConnectionPool`` keeps up to ``max_sockets`` keep-alive connections to
the ingestion host inside a single ``httpx.AsyncClient``.
"""

from __future__ import annotations

from contextlib import AbstractAsyncContextManager, asynccontextmanager
from typing import AsyncIterator, Protocol, runtime_checkable

import httpx


@runtime_checkable
class HttpClient(Protocol):
    """Narrow send capability; ``httpx.AsyncClient`` satisfies it."""

    async def send(self, request: httpx.Request) -> httpx.Response:
        ...

    async def aclose(self) -> None:
        ...


@runtime_checkable
class ConnectionPool(Protocol):
    async def start(self) -> None:
        ...

    async def stop(self) -> None:
        ...

    def acquire(self) -> AbstractAsyncContextManager[HttpClient]:
        """Async context manager yielding a client bound to a pooled connection."""
        ...


class HttpxConnectionPool:
    """Keep-alive pool backed by ``httpx.AsyncClient``.

    httpx owns the sockets; this class owns the client's lifecycle and the
    pool limits. A caller-supplied ``client`` is used as-is and is never
    closed here.
    """

    def __init__(
        self,
        *,
        max_sockets: int = 10,
        keep_alive_seconds: float = 60.0,
        timeout_seconds: float = 10.0,
        client: HttpClient | None = None,
    ) -> None:
        if max_sockets <= 0:
            raise ValueError("max_sockets must be > 0")
        self._limits = httpx.Limits(
            max_connections=max_sockets,
            max_keepalive_connections=max_sockets,
            keepalive_expiry=keep_alive_seconds,
        )
        self._timeout = httpx.Timeout(timeout_seconds)
        self._client: HttpClient | None = client
        self._owns_client = client is None

    @property
    def limits(self) -> httpx.Limits:
        return self._limits

    @property
    def timeout(self) -> httpx.Timeout:
        return self._timeout

    async def start(self) -> None:
        if self._client is None:
            self._client = httpx.AsyncClient(limits=self._limits, timeout=self._timeout)

    async def stop(self) -> None:
        client = self._client
        if client is None:
            return
        if self._owns_client:
            self._client = None
            await client.aclose()

    @asynccontextmanager
    async def acquire(self) -> AsyncIterator[HttpClient]:
        if self._client is None:
            await self.start()
        assert self._client is not None
        yield self._client
