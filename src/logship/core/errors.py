"""
Error taxonomy for the log shipping client.

Only configuration problems are raised to callers. Transmission and
serialization failures are created so they can be reported through
``core.diagnostics``; the send path never propagates them to producers.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    CONFIGURATION = "configuration"
    TRANSMISSION = "transmission"
    SERIALIZATION = "serialization"


class LogshipError(Exception):
    """Base exception carrying a category and an optional root cause."""

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.category = category
        self.cause = cause

    def to_fields(self) -> dict[str, Any]:
        """Flatten into keyword fields suitable for ``diagnostics.warn``."""
        fields: dict[str, Any] = {
            "category": self.category.value,
            "error": self.message,
        }
        if self.cause is not None:
            fields["error_type"] = type(self.cause).__name__
            fields["cause"] = str(self.cause)
        return fields


class ConfigurationError(LogshipError):
    """Missing or invalid construction parameters. Always fatal."""

    def __init__(self, message: str, *, cause: BaseException | None = None) -> None:
        super().__init__(message, category=ErrorCategory.CONFIGURATION, cause=cause)


class TransmissionError(LogshipError):
    """A batch could not be delivered (network failure or non-2xx status)."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        endpoint: str | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message, category=ErrorCategory.TRANSMISSION, cause=cause)
        self.status_code = status_code
        self.endpoint = endpoint

    def to_fields(self) -> dict[str, Any]:
        fields = super().to_fields()
        if self.status_code is not None:
            fields["status_code"] = self.status_code
        if self.endpoint is not None:
            fields["endpoint"] = self.endpoint
        return fields


class SerializationError(LogshipError):
    """A batch could not be encoded; the batch is dropped."""

    def __init__(self, message: str, *, cause: BaseException | None = None) -> None:
        super().__init__(message, category=ErrorCategory.SERIALIZATION, cause=cause)


__all__ = [
    "ConfigurationError",
    "ErrorCategory",
    "LogshipError",
    "SerializationError",
    "TransmissionError",
]
