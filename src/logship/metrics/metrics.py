"""
Async metrics collection for the shipping path.

Implements minimal Prometheus-compatible counters and histograms for batch
delivery.

Design goals:
- Pure async/await, no blocking I/O
- Zero global state; instances are transport-scoped
- Safe no-op behavior when metrics are disabled
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any

from prometheus_client import CollectorRegistry, Counter, Histogram


@dataclass
class ShipperMetrics:
    """Captured runtime metrics for quick assertions in tests."""

    records_sent: int = 0
    batches_sent: int = 0
    batches_failed: int = 0
    records_dropped: int = 0


class MetricsCollector:
    """Transport-scoped async metrics collector.

    If metrics are disabled, all methods are safe no-ops while still tracking
    basic in-memory counters for tests.
    """

    def __init__(self, *, enabled: bool = False) -> None:
        self._enabled = bool(enabled)
        self._lock = asyncio.Lock()
        self._state = ShipperMetrics()

        self._c_records: Any | None = None
        self._c_batches: Any | None = None
        self._c_failed: Any | None = None
        self._c_dropped: Any | None = None
        self._h_batch_size: Any | None = None
        self._h_send_latency: Any | None = None
        self._registry: CollectorRegistry | None = None

        if self._enabled:
            # Isolated registry to avoid global duplication in tests
            self._registry = CollectorRegistry()
            self._c_records = Counter(
                "logship_records_sent_total",
                "Total number of records delivered",
                registry=self._registry,
            )
            self._c_batches = Counter(
                "logship_batches_sent_total",
                "Total number of batches delivered",
                registry=self._registry,
            )
            self._c_failed = Counter(
                "logship_batches_failed_total",
                "Total number of batches that failed delivery",
                ["reason"],
                registry=self._registry,
            )
            self._c_dropped = Counter(
                "logship_records_dropped_total",
                "Total number of records discarded without delivery",
                registry=self._registry,
            )
            self._h_batch_size = Histogram(
                "logship_flush_batch_size",
                "Number of records per flushed batch",
                buckets=(1, 5, 10, 25, 50, 100, 250, 500, 1000, 2500),
                registry=self._registry,
            )
            self._h_send_latency = Histogram(
                "logship_send_seconds",
                "Latency of a single batch request",
                buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0),
                registry=self._registry,
            )

    @property
    def is_enabled(self) -> bool:
        return self._enabled

    @property
    def registry(self) -> CollectorRegistry | None:
        """Expose the isolated Prometheus registry when enabled."""
        return self._registry

    async def record_flush(self, *, batch_size: int) -> None:
        if self._enabled and self._h_batch_size is not None:
            self._h_batch_size.observe(batch_size)

    async def record_batch_sent(
        self, *, batch_size: int, latency_seconds: float | None = None
    ) -> None:
        async with self._lock:
            self._state.batches_sent += 1
            self._state.records_sent += batch_size
        if not self._enabled:
            return
        if self._c_batches is not None:
            self._c_batches.inc()
        if self._c_records is not None:
            self._c_records.inc(batch_size)
        if latency_seconds is not None and self._h_send_latency is not None:
            self._h_send_latency.observe(latency_seconds)

    async def record_batch_failed(self, *, batch_size: int, reason: str) -> None:
        async with self._lock:
            self._state.batches_failed += 1
            self._state.records_dropped += batch_size
        if not self._enabled:
            return
        if self._c_failed is not None:
            self._c_failed.labels(reason=reason).inc()
        if self._c_dropped is not None:
            self._c_dropped.inc(batch_size)

    async def snapshot(self) -> ShipperMetrics:
        # Lightweight copy without exposing internals
        async with self._lock:
            return ShipperMetrics(
                records_sent=self._state.records_sent,
                batches_sent=self._state.batches_sent,
                batches_failed=self._state.batches_failed,
                records_dropped=self._state.records_dropped,
            )
