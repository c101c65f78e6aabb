"""
Bridge from the standard ``logging`` module into an ``HTTPSTransport``.

Each ``LogRecord`` becomes a structured record: the formatted message, the
lower-cased level name, ``extra=`` fields under ``meta`` and an optional
``event`` extra mapped to custom events. Records from ``logship.*`` loggers
are skipped so the library can never ship its own output in a loop.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Mapping

from ..core.errors import ConfigurationError
from ..core.record import build_record
from ..transport.https import HTTPSTransport

# Attributes present on every LogRecord; anything else came from ``extra=``
_RESERVED_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", (), None)).keys()
) | {"message", "asctime", "taskName"}


class LogshipHandler(logging.Handler):
    """``logging.Handler`` that writes records to a batching transport."""

    def __init__(
        self,
        transport: HTTPSTransport | None = None,
        *,
        api_key: str | None = None,
        level: int = logging.INFO,
        **transport_options: Any,
    ) -> None:
        if transport is None:
            if not api_key:
                raise ConfigurationError(
                    "LogshipHandler needs a transport or an api_key"
                )
            transport = HTTPSTransport(api_key, **transport_options)
            self._owns_transport = True
        else:
            self._owns_transport = False
        super().__init__(level)
        self._transport = transport

    @property
    def transport(self) -> HTTPSTransport:
        return self._transport

    def emit(self, record: logging.LogRecord) -> None:
        if record.name == "logship" or record.name.startswith("logship."):
            return
        try:
            self._transport.write(self.to_record(record))
        except Exception:
            self.handleError(record)

    def to_record(self, record: logging.LogRecord) -> dict[str, Any]:
        meta: dict[str, Any] = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _RESERVED_ATTRS and not key.startswith("_")
        }
        events = meta.pop("event", None)
        meta["logger"] = record.name
        if record.exc_info and record.exc_info[0] is not None:
            exc_type, exc_value, _ = record.exc_info
            meta["error"] = {
                "type": exc_type.__name__,
                "message": str(exc_value),
                "stack": self.formatException(record.exc_info),
            }
        return build_record(
            record.getMessage(),
            level=record.levelname,
            meta=meta,
            events=events if isinstance(events, Mapping) else None,
            dt=datetime.fromtimestamp(record.created, tz=timezone.utc),
        )

    def formatException(self, exc_info: Any) -> str:  # noqa: N802
        formatter = self.formatter or logging.Formatter()
        return formatter.formatException(exc_info)

    def close(self) -> None:
        try:
            if self._owns_transport:
                self._transport.close()
        finally:
            super().close()


def enable_stdlib_bridge(
    transport: HTTPSTransport,
    *,
    logger: logging.Logger | None = None,
    level: int = logging.INFO,
    remove_existing_handlers: bool = False,
) -> LogshipHandler:
    """Attach a ``LogshipHandler`` to ``logger`` (root by default)."""
    target = logger or logging.getLogger()
    if remove_existing_handlers:
        for existing in list(target.handlers):
            target.removeHandler(existing)
    handler = LogshipHandler(transport, level=level)
    target.addHandler(handler)
    if target.level == logging.NOTSET or target.level > level:
        target.setLevel(level)
    return handler
