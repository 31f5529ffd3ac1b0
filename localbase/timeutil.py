"""
Timestamp helpers.

Row timestamps are ISO-8601 strings in UTC with millisecond precision and a
trailing "Z", e.g. "2024-05-01T12:00:00.000Z".
"""

from __future__ import annotations

from datetime import datetime, timezone


def to_iso(dt: datetime) -> str:
    """Format a datetime as a row timestamp (naive values are taken as UTC)."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def now_iso() -> str:
    """Current time as a row timestamp."""
    return to_iso(datetime.now(timezone.utc))
