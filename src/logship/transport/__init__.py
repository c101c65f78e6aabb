from __future__ import annotations

from .https import HTTPSTransport, TransportConfig
from .pool import ConnectionPool, HttpClient, HttpxConnectionPool
from .sender import BatchSender, build_request

__all__ = [
    "BatchSender",
    "ConnectionPool",
    "HTTPSTransport",
    "HttpClient",
    "HttpxConnectionPool",
    "TransportConfig",
    "build_request",
]
