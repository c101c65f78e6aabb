"""
Configuration models for logship using Pydantic v2 Settings.

Values are read from ``LOGSHIP_``-prefixed environment variables with ``__``
as the nested delimiter, e.g. ``LOGSHIP_TRANSPORT__FLUSH_INTERVAL_MS=500``.
Explicit constructor arguments always win over the environment.
"""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import (  # type: ignore[import-not-found]
    BaseSettings,
    SettingsConfigDict,
)

DEFAULT_HOST_NAME = "api.timber.io"
DEFAULT_PATH = "/frames"
DEFAULT_PORT = 443


class CoreSettings(BaseModel):
    """Library-internal behavior: diagnostics and exit handling."""

    internal_logging_enabled: bool = Field(
        default=True,
        description="Emit structured diagnostics for delivery failures",
    )
    diagnostics_rate_limit_seconds: float = Field(
        default=5.0,
        ge=0.0,
        description="Minimum seconds between diagnostics sharing a rate-limit key",
    )
    atexit_drain_enabled: bool = Field(
        default=True,
        description="Flush registered transports when the interpreter exits",
    )
    atexit_drain_timeout_seconds: float = Field(
        default=2.0,
        gt=0.0,
        description="Upper bound on the exit-time drain per transport",
    )


class TransportSettings(BaseModel):
    """Defaults for ``TransportConfig``; the API key is optional at this level."""

    api_key: str | None = Field(default=None, description="Ingestion API key")
    host_name: str = Field(default=DEFAULT_HOST_NAME)
    path: str = Field(default=DEFAULT_PATH)
    port: int = Field(default=DEFAULT_PORT, ge=1, le=65535)
    flush_interval_ms: int | None = Field(
        default=1000,
        description="Milliseconds between timer flushes; 0 or less disables the timer",
    )
    high_water_mark: int = Field(
        default=1000,
        ge=1,
        description="Queued record count that forces an immediate flush",
    )
    high_water_bytes: int | None = Field(
        default=None,
        ge=1,
        description="Estimated queued bytes that force an immediate flush",
    )
    max_sockets: int = Field(default=10, ge=1)
    keep_alive_ms: int = Field(default=60_000, ge=0)
    request_timeout_seconds: float = Field(default=10.0, gt=0.0)
    max_in_flight: int = Field(default=4, ge=1)

    @field_validator("path")
    @classmethod
    def _ensure_leading_slash(cls, value: str) -> str:
        return value if value.startswith("/") else f"/{value}"


class Settings(BaseSettings):
    """Top-level configuration model."""

    core: CoreSettings = Field(default_factory=CoreSettings)
    transport: TransportSettings = Field(default_factory=TransportSettings)

    model_config = SettingsConfigDict(
        env_prefix="LOGSHIP_",
        env_nested_delimiter="__",
        extra="ignore",
        case_sensitive=False,
    )

    def to_dict(self) -> dict[str, object]:
        from typing import cast

        return cast(dict[str, object], self.model_dump(exclude_none=True))
