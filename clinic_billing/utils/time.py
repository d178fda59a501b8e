"""Time Utilities for UTC management"""

from datetime import date, datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo


def get_utc_now() -> datetime:
    """
    Returns a naive UTC datetime.
    Matches the DB schema (TIMESTAMP WITHOUT TIME ZONE).
    Avoids 'datetime.utcnow()' deprecation warnings.
    """
    return datetime.now(timezone.utc).replace(tzinfo=None)


def get_local_date(tz_name: str, now: Optional[datetime] = None) -> date:
    """
    Calendar date in the given timezone.

    Args:
        tz_name: IANA timezone name (e.g. "Asia/Kolkata")
        now: Optional naive UTC instant; defaults to the current time
    """
    instant = (now or get_utc_now()).replace(tzinfo=timezone.utc)
    return instant.astimezone(ZoneInfo(tz_name)).date()


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Normalize an aware datetime to naive UTC; naive values pass through."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)
