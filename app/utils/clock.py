# app/utils/clock.py
"""Time helpers. All stored timestamps are UTC; calendar dates are venue-local."""
from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

from app.core.config import settings


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes read back from drivers that drop tzinfo."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def venue_today(now: datetime | None = None) -> date:
    """The current calendar date at the venue."""
    now = now or utcnow()
    return now.astimezone(ZoneInfo(settings.VENUE_TIMEZONE)).date()


def day_of_week(d: date) -> int:
    """Day index with Sunday = 0 .. Saturday = 6."""
    return (d.weekday() + 1) % 7
