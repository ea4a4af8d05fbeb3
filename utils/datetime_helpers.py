"""Timezone-aware date/time helpers for DockSlot.

Booking timestamps are stored as UTC text (``YYYY-MM-DD HH:MM:SS``) so that
SQLite string comparison matches chronological order. Captains work in
their own timezone, so conversions in and out go through these helpers.
"""

import logging
from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from flask import current_app

logger = logging.getLogger(__name__)

DB_TIMESTAMP_FORMAT = '%Y-%m-%d %H:%M:%S'


def get_timezone(tz_name: str = None) -> ZoneInfo:
    """Get a timezone by name, falling back to the configured default."""
    default_name = current_app.config.get('TIMEZONE', 'America/New_York')
    try:
        return ZoneInfo(tz_name or default_name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning('Unknown timezone %r, using %s', tz_name, default_name)
        return ZoneInfo(default_name)


def get_today(tz_name: str = None) -> date:
    """Get today's date in the given (or configured) timezone."""
    return datetime.now(get_timezone(tz_name)).date()


def utc_now() -> datetime:
    """Get current aware UTC datetime."""
    return datetime.now(timezone.utc)


def to_db_timestamp(value: datetime) -> str:
    """
    Convert a datetime to the stored UTC text form.

    Args:
        value: Aware datetime (naive values are taken as UTC)

    Returns:
        'YYYY-MM-DD HH:MM:SS' in UTC
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime(DB_TIMESTAMP_FORMAT)


def from_db_timestamp(value) -> datetime:
    """
    Parse a stored timestamp into an aware UTC datetime.

    Accepts the stored text form as well as ISO-8601 strings with offsets.

    Returns:
        Aware datetime, or None for empty input
    """
    if not value:
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(str(value).replace('Z', '+00:00'))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def parse_client_datetime(value: str, tz_name: str = None) -> datetime:
    """
    Parse a datetime submitted by a client.

    Naive values are interpreted in the captain's timezone.

    Raises:
        ValueError: If the value is not ISO-8601
    """
    if not value:
        raise ValueError('Datetime is required')
    parsed = datetime.fromisoformat(str(value).replace('Z', '+00:00'))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=get_timezone(tz_name))
    return parsed


def parse_date(value: str) -> date:
    """Parse a YYYY-MM-DD string. Raises ValueError when invalid."""
    return datetime.strptime(value, '%Y-%m-%d').date()


def combine_local(day: date, hhmm: str, tz_name: str = None) -> datetime:
    """Build an aware datetime from a local date and an 'HH:MM' time."""
    clock = datetime.strptime(hhmm[:5], '%H:%M').time()
    return datetime.combine(day, clock, tzinfo=get_timezone(tz_name))


def local_day_bounds(start_day: date, end_day: date = None, tz_name: str = None) -> tuple:
    """
    Get stored-form UTC bounds covering whole local days.

    Args:
        start_day: First local day (inclusive)
        end_day: Last local day (inclusive), defaults to start_day
        tz_name: Captain timezone

    Returns:
        Tuple (start_inclusive, end_exclusive) in stored timestamp form
    """
    tz = get_timezone(tz_name)
    end_day = end_day or start_day
    start = datetime.combine(start_day, time.min, tzinfo=tz)
    end = datetime.combine(end_day + timedelta(days=1), time.min, tzinfo=tz)
    return to_db_timestamp(start), to_db_timestamp(end)


def to_local(value, tz_name: str = None) -> datetime:
    """Convert a stored timestamp to the captain's local time."""
    parsed = from_db_timestamp(value)
    if parsed is None:
        return None
    return parsed.astimezone(get_timezone(tz_name))


def format_local(value, tz_name: str = None, fmt: str = '%A, %B %d, %Y') -> str:
    """Format a stored timestamp in the captain's timezone."""
    local = to_local(value, tz_name)
    return local.strftime(fmt) if local else ''


def sunday_based_weekday(day: date) -> int:
    """Weekday number with Sunday as 0, matching availability windows."""
    return (day.weekday() + 1) % 7
