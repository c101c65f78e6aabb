from __future__ import annotations

import asyncio
import io
import json
import threading
from pathlib import Path
from typing import Any

import httpx
import pytest

import logship.cli.main as cli
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


@pytest.fixture
def stub_pool(monkeypatch: pytest.MonkeyPatch) -> _StubPool:
    pool = _StubPool()

    def _factory(*args: Any, **kwargs: Any) -> HTTPSTransport:
        return HTTPSTransport(*args, pool=pool, **kwargs)

    monkeypatch.setattr(cli, "HTTPSTransport", _factory)
    return pool


def test_parser_maps_flags_to_options() -> None:
    args = cli.build_parser().parse_args(
        ["--api-key", "k", "--host", "h", "--port", "8443", "--high-water-mark", "5"]
    )
    assert args.api_key == "k"
    assert args.host_name == "h"
    assert args.port == 8443
    assert args.high_water_mark == 5
    assert args.flush_interval_ms is None


@pytest.mark.asyncio
async def test_ship_lines_skips_blank_lines(stub_pool: _StubPool) -> None:
    transport = cli.HTTPSTransport("k", flush_interval_ms=0)
    count = await cli.ship_lines(transport, io.StringIO("one\n\ntwo\r\n"), level="error")
    await transport.aclose()

    assert count == 2
    (body,) = [json.loads(r.content) for r in stub_pool.requests]
    assert [r["message"] for r in body] == ["one", "two"]
    assert {r["level"] for r in body} == {"error"}


@pytest.mark.asyncio
async def test_main_ships_file_and_reports_count(
    stub_pool: _StubPool, tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    source = tmp_path / "app.log"
    source.write_text("first\nsecond\nthird\n", encoding="utf-8")

    rc = await cli.main(["--api-key", "k", "--flush-interval-ms", "0", "--file", str(source)])

    assert rc == 0
    records = [r for req in stub_pool.requests for r in json.loads(req.content)]
    assert [r["message"] for r in records] == ["first", "second", "third"]
    assert "shipped 3 record(s)" in capsys.readouterr().err


@pytest.mark.asyncio
async def test_main_without_api_key_exits_with_error(
    stub_pool: _StubPool, capsys: pytest.CaptureFixture[str]
) -> None:
    rc = await cli.main(["--flush-interval-ms", "0"])
    assert rc == 2
    assert "Error:" in capsys.readouterr().err
    assert stub_pool.requests == []


class _IdleStream:
    """Yields one line, then blocks like a quiet pipe until released."""

    def __init__(self) -> None:
        self.release = threading.Event()
        self._lines = ["first\n"]

    def readline(self) -> str:
        if self._lines:
            return self._lines.pop(0)
        self.release.wait(5)
        return ""


@pytest.mark.asyncio
async def test_timer_flushes_while_input_is_idle(stub_pool: _StubPool) -> None:
    transport = cli.HTTPSTransport("k", flush_interval_ms=20)
    stream = _IdleStream()
    task = asyncio.create_task(cli.ship_lines(transport, stream))  # type: ignore[arg-type]
    try:
        for _ in range(100):
            if stub_pool.requests:
                break
            await asyncio.sleep(0.01)
        assert not task.done()
        assert [json.loads(r.content) for r in stub_pool.requests][0][0]["message"] == "first"
    finally:
        stream.release.set()
        assert await task == 1
        await transport.aclose()
