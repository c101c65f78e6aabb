"""
Batch serialization for the outbound request body.

A batch is encoded as a single JSON array with orjson, producing bytes
directly (no intermediate ``str``). Record order in the array is the order
the records were drained in.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Sequence

import orjson

from .errors import SerializationError

Record = Mapping[str, Any]


def _default(obj: Any) -> Any:
    """Default serializer hook for unsupported types.

    Keep minimal; prefer upstream objects to be plain JSON types already.
    orjson only encodes real ``dict``s, so other mappings are copied.
    """
    if isinstance(obj, Mapping):
        return dict(obj)
    if hasattr(obj, "model_dump"):
        return obj.model_dump(exclude_none=True)
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


@dataclass
class SerializedView:
    """A lightweight container exposing zero-copy friendly views."""

    data: bytes

    @property
    def view(self) -> memoryview:
        return memoryview(self.data)

    def __len__(self) -> int:
        return len(self.data)

    def __bytes__(self) -> bytes:  # convenience
        return self.data


def serialize_batch(records: Sequence[Record]) -> SerializedView:
    """Serialize records as one JSON array, preserving order.

    Raises ``SerializationError`` if any record cannot be encoded; the caller
    is expected to drop the whole batch.
    """
    try:
        data = orjson.dumps(list(records), default=_default)
    except TypeError as e:
        raise SerializationError("Batch serialization failed", cause=e) from e
    return SerializedView(data=data)


def estimate_record_size(record: Record) -> int:
    """Return the encoded size of a single record in bytes.

    Records that cannot be encoded count as zero here; they are rejected
    with a ``SerializationError`` when their batch is sent.
    """
    try:
        return len(orjson.dumps(record, default=_default))
    except TypeError:
        return 0
