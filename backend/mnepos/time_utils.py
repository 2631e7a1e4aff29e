from __future__ import annotations

import re
from datetime import date, datetime, timezone
from typing import Optional

_CALENDAR_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_calendar_date(value: Optional[str]) -> Optional[date]:
    """
    Parse a strict YYYY-MM-DD calendar date.

    - None / "" -> None
    - anything else that is not a real calendar date raises ValueError
    """
    if value is None:
        return None
    s = str(value).strip()
    if not s:
        return None
    if not _CALENDAR_DATE.match(s):
        raise ValueError(f"Invalid date {s!r}, expected YYYY-MM-DD")
    return date.fromisoformat(s)


def compact_timestamp(dt: Optional[datetime] = None) -> str:
    """YYYYMMDDHHMMSS with no separators, used in backup file names."""
    return (dt or utcnow()).strftime("%Y%m%d%H%M%S")


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """
    Serializes datetime to ISO-8601 with trailing 'Z'.
    If dt is naive, it is treated as UTC.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt_utc = dt.astimezone(timezone.utc).replace(microsecond=0)
    return dt_utc.isoformat().replace("+00:00", "Z")


def timestamp_to_utc_z(ts: float) -> str:
    """Filesystem mtime (epoch seconds) to ISO-8601 'Z'."""
    return to_utc_z(datetime.fromtimestamp(ts, tz=timezone.utc))
