"""
Helper functions for attendance and time calculations
"""
from datetime import datetime, date, time, timedelta
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from utils.validators import ValidationError

TIME_FORMAT = "%H:%M:%S"


def get_timezone(name):
    """
    Resolve the deployment time zone.

    Args:
        name: IANA zone name (e.g. "America/Mexico_City"); empty for system local time

    Returns:
        ZoneInfo instance, or None for the system local zone

    Raises:
        ValidationError: If the zone name is unknown
    """
    if not name:
        return None
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        raise ValidationError(f"Unknown time zone: {name}")


def parse_cutoff(value):
    """
    Parse a late cutoff given as "HH:MM" or "HH:MM:SS".

    Returns:
        datetime.time

    Raises:
        ValidationError: If the value is not a valid time of day
    """
    if isinstance(value, time):
        return value
    text = str(value or "").strip()
    for fmt in ("%H:%M", TIME_FORMAT):
        try:
            return datetime.strptime(text, fmt).time()
        except ValueError:
            continue
    raise ValidationError(f"Late cutoff must be in format HH:MM (got '{value}')")


def now_local(tz=None):
    """Current time as an aware datetime in the deployment zone"""
    if tz is None:
        return datetime.now().astimezone()
    return datetime.now(tz=tz)


def to_local(at, tz=None):
    """
    Convert a timestamp to the deployment zone.

    Naive datetimes are taken to already be local wall-clock time.
    """
    if at.tzinfo is None:
        return at
    if tz is None:
        return at.astimezone()
    return at.astimezone(tz)


def is_late(at, cutoff):
    """
    Check whether a check-in time is after the late cutoff.

    Args:
        at: Local datetime of the check-in
        cutoff: datetime.time; a check-in exactly at the cutoff is on time

    Returns:
        bool: True if late
    """
    return at.time().replace(tzinfo=None) > cutoff


def date_key(at):
    """Calendar date used to key the attendance day (YYYY-MM-DD)"""
    return at.date().isoformat()


def format_time(at):
    return at.strftime(TIME_FORMAT)


def date_range(start, end):
    """
    List every ISO date between start and end inclusive.

    Args:
        start: date or "YYYY-MM-DD"
        end: date or "YYYY-MM-DD"
    """
    if isinstance(start, str):
        start = date.fromisoformat(start)
    if isinstance(end, str):
        end = date.fromisoformat(end)

    days = []
    current = start
    while current <= end:
        days.append(current.isoformat())
        current += timedelta(days=1)
    return days
