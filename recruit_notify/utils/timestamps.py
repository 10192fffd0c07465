"""UTC time helpers shared by the domain, persistence and campaign layers."""

from datetime import datetime, timezone
from typing import Optional


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """Return ``dt`` in UTC.

    Naive datetimes are taken to already be UTC; aware ones are converted.

    Example:
        >>> ensure_utc(datetime(2025, 3, 14, 10, 30)).tzinfo == timezone.utc
        True
    """
    if dt is None:
        return None

    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)

    return dt.astimezone(timezone.utc)


def timestamp_to_unix(dt: datetime) -> int:
    """Seconds since the epoch; used to stamp campaign identifiers."""
    dt_utc = ensure_utc(dt)
    if dt_utc is None:
        return 0
    return int(dt_utc.timestamp())
