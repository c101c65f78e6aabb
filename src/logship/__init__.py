"""
Public entrypoints for logship.

Buffered, batching HTTPS transport for shipping structured log records,
plus a ``logging`` handler that feeds it.
"""

from __future__ import annotations

from ._version import __version__
from .core.errors import (
    ConfigurationError,
    LogshipError,
    SerializationError,
    TransmissionError,
)
from .core.record import build_record
from .core.settings import Settings
from .integrations.stdlib import LogshipHandler, enable_stdlib_bridge
from .metrics.metrics import MetricsCollector
from .transport.https import HTTPSTransport, TransportConfig
from .transport.pool import HttpxConnectionPool

__all__ = [
    "ConfigurationError",
    "HTTPSTransport",
    "HttpxConnectionPool",
    "LogshipError",
    "LogshipHandler",
    "MetricsCollector",
    "SerializationError",
    "Settings",
    "TransmissionError",
    "TransportConfig",
    "VERSION",
    "__version__",
    "build_record",
    "enable_stdlib_bridge",
]

VERSION = __version__
