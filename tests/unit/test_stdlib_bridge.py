from __future__ import annotations

import logging
from typing import Any

import pytest

from logship.core.errors import ConfigurationError
from logship.integrations.stdlib import LogshipHandler, enable_stdlib_bridge


class _RecordingTransport:
    def __init__(self) -> None:
        self.records: list[dict[str, Any]] = []
        self.closed = False

    def write(self, record: dict[str, Any], callback: Any = None) -> bool:
        self.records.append(record)
        return True

    def close(self, timeout: float | None = None) -> None:
        self.closed = True


def _logger(name: str, transport: _RecordingTransport) -> tuple[logging.Logger, LogshipHandler]:
    logger = logging.getLogger(name)
    logger.propagate = False
    handler = enable_stdlib_bridge(
        transport, logger=logger, level=logging.DEBUG, remove_existing_handlers=True
    )  # type: ignore[arg-type]
    return logger, handler


def test_log_record_becomes_structured_record() -> None:
    transport = _RecordingTransport()
    logger, handler = _logger("app.orders", transport)
    try:
        logger.warning(
            "order %s failed", 42, extra={"order_id": 42, "event": {"order_failed": {"id": 42}}}
        )
    finally:
        logger.removeHandler(handler)

    (record,) = transport.records
    assert record["message"] == "order 42 failed"
    assert record["level"] == "warning"
    assert record["meta"]["order_id"] == 42
    assert record["meta"]["logger"] == "app.orders"
    assert "event" not in record["meta"]
    assert record["event"] == {"custom": {"order_failed": {"id": 42}}}
    assert record["dt"].endswith("+00:00")


def test_exception_info_is_captured() -> None:
    transport = _RecordingTransport()
    logger, handler = _logger("app.errors", transport)
    try:
        try:
            raise ValueError("bad input")
        except ValueError:
            logger.exception("handler failed")
    finally:
        logger.removeHandler(handler)

    error = transport.records[0]["meta"]["error"]
    assert error["type"] == "ValueError"
    assert error["message"] == "bad input"
    assert "Traceback" in error["stack"]


def test_own_loggers_are_not_shipped() -> None:
    transport = _RecordingTransport()
    logger, handler = _logger("logship.transport", transport)
    try:
        logger.warning("internal")
    finally:
        logger.removeHandler(handler)
    assert transport.records == []


def test_level_filtering() -> None:
    transport = _RecordingTransport()
    logger = logging.getLogger("app.levels")
    logger.propagate = False
    handler = LogshipHandler(transport, level=logging.ERROR)  # type: ignore[arg-type]
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG)
    try:
        logger.info("skip me")
        logger.error("keep me")
    finally:
        logger.removeHandler(handler)
    assert [r["message"] for r in transport.records] == ["keep me"]


def test_handler_requires_transport_or_api_key() -> None:
    with pytest.raises(ConfigurationError):
        LogshipHandler()


def test_close_only_closes_owned_transport() -> None:
    transport = _RecordingTransport()
    handler = LogshipHandler(transport)  # type: ignore[arg-type]
    handler.close()
    assert transport.closed is False

    owned = LogshipHandler(api_key="k", flush_interval_ms=0)
    owned_transport = owned.transport
    owned.close()
    assert owned_transport.closed is True


def test_bridge_lowers_logger_level() -> None:
    transport = _RecordingTransport()
    logger = logging.getLogger("app.bridge-level")
    logger.setLevel(logging.ERROR)
    handler = enable_stdlib_bridge(transport, logger=logger, level=logging.INFO)  # type: ignore[arg-type]
    try:
        assert logger.level == logging.INFO
        assert handler in logger.handlers
    finally:
        logger.removeHandler(handler)
