"""
Structured record construction for the bundled adapters.

Records are plain dicts; the transport only needs something serializable.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Mapping


def build_record(
    message: str,
    *,
    level: str = "info",
    meta: Mapping[str, Any] | None = None,
    events: Mapping[str, Any] | None = None,
    dt: datetime | None = None,
) -> dict[str, Any]:
    """Build a structured log record.

    ``events`` maps a custom event name to its data; entries with falsy data
    are skipped, and the ``event`` key is omitted when nothing is left.
    """
    stamp = dt or datetime.now(timezone.utc)
    record: dict[str, Any] = {
        "dt": stamp.isoformat(),
        "level": level.lower(),
        "message": message,
    }
    if meta:
        record["meta"] = dict(meta)
    if events:
        custom = {name: data for name, data in events.items() if data}
        if custom:
            record["event"] = {"custom": custom}
    return record
