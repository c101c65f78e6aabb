"""
Structured internal diagnostics.

This is the channel delivery failures are reported on. Payloads are written
as single JSON lines to stderr rather than through ``logging`` so that a
stdlib bridge shipping the root logger cannot feed diagnostics back into the
transport.

Emission is gated by ``Settings().core.internal_logging_enabled`` (cached on
first use) and optionally rate-limited per ``_rate_limit_key``. Nothing in
this module raises into its callers.
"""

from __future__ import annotations

import sys
import threading
import time
from typing import Any, Callable

import orjson

Writer = Callable[[dict[str, Any]], None]

_internal_logging_enabled: bool | None = None
_rate_limit_seconds: float | None = None
_last_emitted: dict[str, float] = {}
_lock = threading.Lock()


def _stderr_writer(payload: dict[str, Any]) -> None:
    line = orjson.dumps(payload, default=str)
    sys.stderr.write(line.decode("utf-8") + "\n")
    sys.stderr.flush()


_writer: Writer = _stderr_writer


def _load_settings() -> None:
    global _internal_logging_enabled, _rate_limit_seconds
    try:
        from .settings import Settings

        core = Settings().core
        _internal_logging_enabled = bool(core.internal_logging_enabled)
        _rate_limit_seconds = float(core.diagnostics_rate_limit_seconds)
    except Exception:
        _internal_logging_enabled = True
        _rate_limit_seconds = 5.0


def is_enabled() -> bool:
    if _internal_logging_enabled is None:
        _load_settings()
    return bool(_internal_logging_enabled)


def _allowed(key: str | None) -> bool:
    if key is None:
        return True
    window = _rate_limit_seconds or 0.0
    now = time.monotonic()
    with _lock:
        last = _last_emitted.get(key)
        if last is not None and (now - last) < window:
            return False
        _last_emitted[key] = now
    return True


def _emit(level: str, component: str, message: str, fields: dict[str, Any]) -> None:
    if not is_enabled():
        return
    if not _allowed(fields.pop("_rate_limit_key", None)):
        return
    payload: dict[str, Any] = {
        "ts": time.time(),
        "level": level,
        "component": component,
        "message": message,
    }
    payload.update(fields)
    try:
        _writer(payload)
    except Exception:
        # A broken diagnostics writer must not take the caller down with it
        pass


def warn(component: str, message: str, **fields: Any) -> None:
    _emit("WARN", component, message, fields)


def debug(component: str, message: str, **fields: Any) -> None:
    _emit("DEBUG", component, message, fields)


def set_writer_for_tests(writer: Writer) -> None:
    global _writer
    _writer = writer


def _reset_for_tests() -> None:
    global _internal_logging_enabled, _rate_limit_seconds, _writer
    _internal_logging_enabled = None
    _rate_limit_seconds = None
    _writer = _stderr_writer
    with _lock:
        _last_emitted.clear()
