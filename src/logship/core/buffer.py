"""
In-memory batch buffer between log producers and the flush path.

Design:
- Appends take a ``threading.Lock`` only long enough to push onto a list,
  so producers on any thread never wait on network or serialization work.
- ``drain()`` swaps the pending list for a fresh one under the same lock,
  so every record lands in exactly one batch.
- OPEN / FROZEN states control only the high-water auto-flush. Explicit and
  timer flushes drain regardless of state, and a frozen buffer stays frozen
  across a drain.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from enum import Enum
from typing import Any, Callable, Iterator, Mapping

from .serialization import estimate_record_size

Record = Mapping[str, Any]


class BufferState(str, Enum):
    OPEN = "open"  # high-water mark may trigger a flush
    FROZEN = "frozen"  # appends accumulate; no size-based flush


class BatchBuffer:
    """Append-safe, drain-safe queue of pending records.

    ``on_high_water`` is invoked outside the lock, at most once per crossing
    of the mark, and must itself be non-blocking.
    """

    def __init__(
        self,
        *,
        high_water_mark: int,
        high_water_bytes: int | None = None,
        on_high_water: Callable[[], None] | None = None,
    ) -> None:
        if high_water_mark <= 0:
            raise ValueError("high_water_mark must be > 0")
        if high_water_bytes is not None and high_water_bytes <= 0:
            raise ValueError("high_water_bytes must be > 0")
        self._high_water_mark = high_water_mark
        self._high_water_bytes = high_water_bytes
        self._on_high_water = on_high_water
        self._lock = threading.Lock()
        self._pending: list[Record] = []
        self._pending_bytes = 0
        self._state = BufferState.OPEN
        # Set once the mark has been signalled for the current batch
        self._signalled = False

    @property
    def state(self) -> BufferState:
        return self._state

    @property
    def pending_bytes(self) -> int:
        return self._pending_bytes

    @property
    def high_water_mark(self) -> int:
        return self._high_water_mark

    def __len__(self) -> int:
        return len(self._pending)

    def append(self, record: Record) -> None:
        size = estimate_record_size(record) if self._high_water_bytes else 0
        with self._lock:
            self._pending.append(record)
            self._pending_bytes += size
            fire = self._should_signal_locked()
        if fire:
            self._signal()

    def drain(self) -> list[Record]:
        """Remove and return all pending records in append order."""
        # State is left as-is so a frozen buffer resumes batching frozen
        with self._lock:
            batch, self._pending = self._pending, []
            self._pending_bytes = 0
            self._signalled = False
        return batch

    def freeze(self) -> None:
        with self._lock:
            self._state = BufferState.FROZEN

    def thaw(self) -> None:
        with self._lock:
            self._state = BufferState.OPEN
            fire = self._should_signal_locked()
        if fire:
            self._signal()

    @contextmanager
    def frozen(self) -> Iterator[BatchBuffer]:
        """Suppress the high-water flush for the duration of the block.

        Nested use keeps the outer freeze in place.
        """
        with self._lock:
            already_frozen = self._state is BufferState.FROZEN
            self._state = BufferState.FROZEN
        try:
            yield self
        finally:
            if not already_frozen:
                self.thaw()

    def _over_mark_locked(self) -> bool:
        if len(self._pending) >= self._high_water_mark:
            return True
        return (
            self._high_water_bytes is not None
            and self._pending_bytes >= self._high_water_bytes
        )

    def _should_signal_locked(self) -> bool:
        if self._state is BufferState.FROZEN or self._signalled:
            return False
        if not self._over_mark_locked():
            return False
        self._signalled = True
        return True

    def _signal(self) -> None:
        if self._on_high_water is not None:
            self._on_high_water()
