from __future__ import annotations

import json

import httpx
import pytest

from logship.core import shutdown
from logship.transport.https import HTTPSTransport


class _StubPool:
    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []

    async def start(self) -> None:
        return None

    async def stop(self) -> None:
        return None

    def acquire(self):
        return self

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False

    async def send(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(200)

    async def aclose(self) -> None:
        return None


@pytest.fixture(autouse=True)
def _fresh_shutdown_state(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(shutdown, "_shutdown_in_progress", False)


def test_transports_register_and_unregister_on_close() -> None:
    before = shutdown.registered_count()
    transport = HTTPSTransport("k", pool=_StubPool(), flush_interval_ms=0)
    assert shutdown.registered_count() == before + 1
    transport.close(timeout=5)
    assert shutdown.registered_count() == before


def test_atexit_handler_drains_open_transports() -> None:
    pool = _StubPool()
    transport = HTTPSTransport("k", pool=pool, flush_interval_ms=0)
    transport.write({"msg": "at exit"})

    shutdown._atexit_handler()

    assert transport.closed is True
    assert [json.loads(r.content) for r in pool.requests] == [[{"msg": "at exit"}]]
    # Second invocation is a no-op
    shutdown._atexit_handler()
    assert len(pool.requests) == 1


def test_atexit_drain_can_be_disabled(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("LOGSHIP_CORE__ATEXIT_DRAIN_ENABLED", "false")
    pool = _StubPool()
    transport = HTTPSTransport("k", pool=pool, flush_interval_ms=0)
    transport.write({"msg": "kept"})
    try:
        shutdown._atexit_handler()
        assert transport.closed is False
        assert pool.requests == []
    finally:
        transport.close(timeout=5)
    assert len(pool.requests) == 1
