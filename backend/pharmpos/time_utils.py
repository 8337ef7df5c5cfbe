from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def today() -> date:
    """Calendar date of utcnow(); invoices are dated in UTC."""
    return utcnow().date()


def parse_iso_date(value) -> Optional[date]:
    """
    Lenient calendar-date parser for ledger text.

    Accepts date/datetime objects, "YYYY-MM-DD", "YYYY-MM" (first of the month)
    and full ISO-8601 datetimes (their written date part, offsets ignored).
    Anything else -> None, never raises.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    s = str(value).strip()
    if not s:
        return None
    try:
        if len(s) == 7:
            return date.fromisoformat(s + "-01")
        if len(s) == 10:
            return date.fromisoformat(s)
        # Wall-clock date as written; an offset does not move the calendar day
        if s.endswith("Z"):
            s = s[:-1] + "+00:00"
        return datetime.fromisoformat(s).date()
    except ValueError:
        return None


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
