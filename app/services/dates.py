"""Date helpers shared by the schedule, exam and QA services.

Challenge days are UTC calendar dates.
"""
from datetime import date, datetime, timedelta, timezone
from typing import Iterator, Optional


def utc_today() -> date:
    """Return the current UTC calendar date."""
    return datetime.utcnow().date()


def iter_dates(start: date, end: date) -> Iterator[date]:
    """Yield every date from start to end, both inclusive."""
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def minutes_between(earlier: datetime, later: datetime) -> int:
    """Whole minutes elapsed between two timestamps, rounded."""
    return round((later - earlier).total_seconds() / 60)


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Convert an offset-aware timestamp to naive UTC; naive values are taken as UTC already."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)
