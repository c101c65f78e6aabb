"""Exit-time draining of open transports.

This module provides:
- Atexit handler that closes every registered transport
- WeakSet-based registration to avoid keeping transports alive

The handler is best-effort: it attempts one final send per transport but
never blocks longer than the configured timeout, and never raises.
"""

from __future__ import annotations

import atexit
import weakref
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from ..transport.https import HTTPSTransport


_shutdown_in_progress: bool = False
_registered_transports: weakref.WeakSet[Any] = weakref.WeakSet()


def _get_shutdown_settings() -> dict[str, Any]:
    """Get shutdown settings from Settings, with fallback defaults."""
    try:
        from .settings import Settings

        settings = Settings()
        return {
            "atexit_drain_enabled": settings.core.atexit_drain_enabled,
            "atexit_drain_timeout_seconds": settings.core.atexit_drain_timeout_seconds,
        }
    except Exception:  # pragma: no cover - defensive fallback
        return {
            "atexit_drain_enabled": True,
            "atexit_drain_timeout_seconds": 2.0,
        }


def register_transport(transport: HTTPSTransport) -> None:
    """Register a transport for automatic drain on exit."""
    _registered_transports.add(transport)


def unregister_transport(transport: HTTPSTransport) -> None:
    """Unregister a transport; called once it has been closed explicitly."""
    _registered_transports.discard(transport)


def registered_count() -> int:
    return len(_registered_transports)


def _atexit_handler() -> None:
    """Best-effort close of all transports on normal exit."""
    global _shutdown_in_progress

    if _shutdown_in_progress:
        return

    settings = _get_shutdown_settings()
    if not settings["atexit_drain_enabled"]:
        return

    _shutdown_in_progress = True
    timeout = settings["atexit_drain_timeout_seconds"]

    # Snapshot the transports (WeakSet iteration can fail if GC runs)
    try:
        transports = list(_registered_transports)
    except Exception:  # pragma: no cover - rare GC race
        return

    for transport in transports:
        try:
            transport.close(timeout=timeout)
        except Exception:
            pass  # Best effort - don't crash on exit


atexit.register(_atexit_handler)
