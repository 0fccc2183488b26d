from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from typing import Optional

# Stored datetimes are naive and always mean UTC.


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def start_of_day(dt: datetime) -> datetime:
    return datetime.combine(dt.date(), time.min)


def days_from(dt: datetime, days: int) -> datetime:
    return dt + timedelta(days=days)


def _naive_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def parse_iso_datetime(value) -> Optional[datetime]:
    """
    Read a client-supplied date or datetime as naive UTC.

    Accepts datetime/date objects and ISO-8601 strings. A bare date means
    midnight UTC, an offset-less time is taken as UTC, and "Z" or "+HH:MM"
    suffixes are converted. Empty input gives None; anything else that
    does not parse raises ValueError.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return _naive_utc(value)
    if isinstance(value, date):
        return datetime.combine(value, time.min)
    if not isinstance(value, str):
        raise ValueError(f"cannot parse datetime from {type(value).__name__}")

    text = value.strip()
    if not text:
        return None
    if text[-1] in "zZ":
        text = f"{text[:-1]}+00:00"
    return _naive_utc(datetime.fromisoformat(text))


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """ISO-8601 in UTC, whole seconds, with a trailing 'Z'."""
    if dt is None:
        return None
    stamp = _naive_utc(dt).replace(microsecond=0)
    return f"{stamp.isoformat()}Z"
