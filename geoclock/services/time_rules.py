"""
Time rules for the timesheet ledger.
Handles elapsed-hour rounding, calendar windows and timezone conversions.
"""
from datetime import date, datetime, timedelta, timezone
from typing import Optional, Union
import calendar
import pytz
from pydantic import BaseModel

from ..config import settings


MS_PER_HOUR = 1000 * 60 * 60


class TimeWindow(BaseModel):
    """Inclusive [start, end] interval, both ends timezone-aware."""
    start: datetime
    end: datetime

    def contains(self, moment: datetime) -> bool:
        return self.start <= ensure_utc(moment) <= self.end


def ensure_utc(dt: datetime) -> datetime:
    """
    Normalize a datetime to timezone-aware UTC.
    Naive datetimes are assumed to already be in UTC.
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=pytz.UTC)
    return dt.astimezone(pytz.UTC)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_iso_utc(dt: Optional[datetime]) -> Optional[str]:
    """ISO-8601 string in UTC with a trailing Z, as persisted."""
    if dt is None:
        return None
    return ensure_utc(dt).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def calculate_hours(clock_in: datetime, clock_out: Optional[datetime] = None, now: Optional[datetime] = None) -> float:
    """
    Elapsed hours between two instants, rounded to 2 decimals.

    Uses the raw millisecond delta; DST transitions are not special-cased.
    A missing clock_out is measured against `now` (defaults to current time).

    Args:
        clock_in: Start instant
        clock_out: End instant (optional)
        now: Reference instant used when clock_out is None

    Returns:
        Hours as float
    """
    end = clock_out if clock_out is not None else (now or utc_now())
    delta = ensure_utc(end) - ensure_utc(clock_in)
    diff_ms = delta // timedelta(milliseconds=1)
    return round(diff_ms / MS_PER_HOUR, 2)


def duration_label(clock_in: datetime, clock_out: Optional[datetime] = None, now: Optional[datetime] = None) -> str:
    """Render elapsed time as '2h 15m' or '45m'."""
    end = clock_out if clock_out is not None else (now or utc_now())
    total_minutes = int((ensure_utc(end) - ensure_utc(clock_in)).total_seconds() // 60)
    hours, minutes = divmod(max(total_minutes, 0), 60)
    if hours > 0:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"


def utc_to_local(utc_datetime: datetime, timezone_str: Optional[str] = None) -> datetime:
    """
    Convert UTC datetime to local timezone.

    Args:
        utc_datetime: UTC datetime (timezone-aware or naive UTC)
        timezone_str: Timezone string (e.g., "America/New_York"); defaults to settings

    Returns:
        Local datetime (timezone-aware)
    """
    tz = pytz.timezone(timezone_str or settings.tz_default)
    return ensure_utc(utc_datetime).astimezone(tz)


def _local_day(reference: Union[date, datetime], tz) -> date:
    if isinstance(reference, datetime):
        if reference.tzinfo is None:
            # Naive datetimes are taken as local wall time
            return reference.date()
        return reference.astimezone(tz).date()
    return reference


def _local_midnight(day: date, tz) -> datetime:
    return tz.localize(datetime(day.year, day.month, day.day))


def _local_end_of_day(day: date, tz) -> datetime:
    return tz.localize(datetime(day.year, day.month, day.day, 23, 59, 59, 999000))


def week_window(reference: Union[date, datetime], timezone_str: Optional[str] = None) -> TimeWindow:
    """
    Calendar week containing `reference`.

    Weeks start on Sunday 00:00 local time and end on the following
    Saturday 23:59:59.999 local time.
    """
    tz = pytz.timezone(timezone_str or settings.tz_default)
    day = _local_day(reference, tz)
    # date.weekday(): Monday=0 .. Sunday=6
    days_since_sunday = (day.weekday() + 1) % 7
    sunday = day - timedelta(days=days_since_sunday)
    saturday = sunday + timedelta(days=6)
    return TimeWindow(start=_local_midnight(sunday, tz), end=_local_end_of_day(saturday, tz))


def month_window(reference: Union[date, datetime], timezone_str: Optional[str] = None) -> TimeWindow:
    """First through last calendar day of the month containing `reference`, local time."""
    tz = pytz.timezone(timezone_str or settings.tz_default)
    day = _local_day(reference, tz)
    last_day = calendar.monthrange(day.year, day.month)[1]
    return TimeWindow(
        start=_local_midnight(day.replace(day=1), tz),
        end=_local_end_of_day(day.replace(day=last_day), tz),
    )
