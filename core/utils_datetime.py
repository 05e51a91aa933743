"""
DateTime utilities for the booking boundary.

The engine works on UTC instants; local wall-clock dates and times only exist
at the edges (request parsing, schedule rows, slot labels). Client offsets use
the JavaScript ``Date.getTimezoneOffset()`` convention: minutes to ADD to a
local wall-clock time to obtain UTC (UTC-6 gives 360).
"""
from datetime import datetime, timedelta, date, time, timezone
from typing import Optional, Tuple
import re
import pytz

from core.settings import settings


# Business reference timezone
TIMEZONE = pytz.timezone(settings.business_timezone)

DATE_PATTERN = re.compile(r'^(\d{4})-(\d{2})-(\d{2})$')
TIME_PATTERN = re.compile(r'^(\d{1,2}):(\d{2})$')


def get_current_datetime() -> datetime:
    """Get current datetime in UTC."""
    return datetime.now(timezone.utc)


def parse_iso_date(text: str) -> Optional[date]:
    """
    Parse a YYYY-MM-DD string.

    Args:
        text: Date string

    Returns:
        date object or None if parsing fails
    """
    if not text:
        return None

    match = DATE_PATTERN.match(text.strip())
    if not match:
        return None

    year, month, day = (int(part) for part in match.groups())
    try:
        return date(year, month, day)
    except ValueError:
        return None


def parse_hhmm(text: str) -> Optional[time]:
    """
    Parse an HH:MM (24-hour) string.

    Args:
        text: Time string such as "09:30" or "9:30"

    Returns:
        time object or None if parsing fails
    """
    if not text:
        return None

    match = TIME_PATTERN.match(text.strip())
    if not match:
        return None

    hour, minute = int(match.group(1)), int(match.group(2))
    try:
        return time(hour, minute)
    except ValueError:
        return None


def format_hhmm(value: time) -> str:
    """Format a wall-clock time as HH:MM."""
    return f"{value.hour:02d}:{value.minute:02d}"


def minutes_since_midnight(value: time) -> int:
    """Convert a wall-clock time to minutes after midnight."""
    return value.hour * 60 + value.minute


def business_utc_offset_minutes(day: date, tz: Optional[pytz.BaseTzInfo] = None) -> int:
    """
    Offset of the business timezone on a given day, in client-offset convention.

    Noon is used as the probe so DST transitions at night do not flip the
    result for the whole day.
    """
    tz = tz or TIMEZONE
    local_noon = tz.localize(datetime.combine(day, time(12, 0)))
    utcoffset = local_noon.utcoffset() or timedelta(0)
    return -int(utcoffset.total_seconds() // 60)


def resolve_utc_offset(day: date, offset_minutes: Optional[int]) -> int:
    """Use the client's offset when given, else the business timezone's."""
    if offset_minutes is None:
        return business_utc_offset_minutes(day)
    return offset_minutes


def local_to_utc(day: date, wall_time: time, offset_minutes: int) -> datetime:
    """
    Convert a local wall-clock date/time to an aware UTC datetime.

    Args:
        day: Local calendar day
        wall_time: Local wall-clock time
        offset_minutes: Client offset (UTC minus local, in minutes)

    Returns:
        Aware datetime in UTC
    """
    naive = datetime.combine(day, wall_time)
    return (naive + timedelta(minutes=offset_minutes)).replace(tzinfo=timezone.utc)


def utc_to_local(instant: datetime, offset_minutes: int) -> datetime:
    """Convert a UTC instant to a naive local wall-clock datetime."""
    return ensure_utc(instant).replace(tzinfo=None) - timedelta(minutes=offset_minutes)


def local_day_window_utc(day: date, offset_minutes: int) -> Tuple[datetime, datetime]:
    """
    UTC window covering one local calendar day, half-open.

    Returns:
        (window_start, window_end) as aware UTC datetimes
    """
    start = local_to_utc(day, time(0, 0), offset_minutes)
    return start, start + timedelta(days=1)


def ensure_utc(value: datetime) -> datetime:
    """
    Normalize a datetime to aware UTC.

    Naive values are assumed to already be UTC, which is how SQLite hands
    them back.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_business_local(instant: datetime, offset_minutes: Optional[int] = None) -> datetime:
    """
    Naive local wall-clock datetime of a UTC instant.

    Uses the client's offset when given, else the business timezone.
    """
    if offset_minutes is None:
        return ensure_utc(instant).astimezone(TIMEZONE).replace(tzinfo=None)
    return utc_to_local(instant, offset_minutes)
