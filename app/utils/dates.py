"""
Calendar-day helpers for the configured organisation timezone.

All stored timestamps are naive UTC.
"""
from datetime import date, datetime
from typing import Optional, Tuple
import pytz

from ..config import settings


def get_timezone(tz_name: Optional[str] = None):
    return pytz.timezone(tz_name or settings.timezone)


def get_today(tz_name: Optional[str] = None) -> date:
    """Today's date in the organisation timezone"""
    return datetime.now(get_timezone(tz_name)).date()


def get_day_bounds_utc(day: date, tz_name: Optional[str] = None) -> Tuple[datetime, datetime]:
    """Start and end of a local calendar day, as naive UTC datetimes"""
    tz = get_timezone(tz_name)
    start_of_day = tz.localize(datetime.combine(day, datetime.min.time()))
    end_of_day = tz.localize(datetime.combine(day, datetime.max.time()))
    return (
        start_of_day.astimezone(pytz.UTC).replace(tzinfo=None),
        end_of_day.astimezone(pytz.UTC).replace(tzinfo=None),
    )


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Normalise an incoming datetime to naive UTC"""
    if value is None:
        return None
    if value.tzinfo is not None:
        return value.astimezone(pytz.UTC).replace(tzinfo=None)
    return value
