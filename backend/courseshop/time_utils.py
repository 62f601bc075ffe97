from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def as_utc_naive(dt: Optional[datetime]) -> Optional[datetime]:
    """
    Normalize a datetime read back from storage to UTC-naive.

    SQLite hands back naive values, PostgreSQL hands back aware ones;
    comparisons against utcnow() need both in the same shape.
    """
    if dt is None or dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Parse client-supplied ISO-8601 (coupon expiry) into UTC-naive.

    Blank input gives None. Offsets and a trailing "Z" are converted to
    UTC; a value without an offset is taken to already be UTC. Raises
    ValueError for anything fromisoformat() rejects.
    """
    text = (value or "").strip()
    if not text:
        return None
    if text[-1] in "zZ":
        text = text[:-1] + "+00:00"
    return as_utc_naive(datetime.fromisoformat(text))


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """Second-precision ISO-8601 with a trailing 'Z'; naive input counts as UTC."""
    if dt is None:
        return None
    aware = dt if dt.tzinfo is not None else dt.replace(tzinfo=timezone.utc)
    stamp = aware.astimezone(timezone.utc).replace(microsecond=0, tzinfo=None)
    return stamp.isoformat() + "Z"
