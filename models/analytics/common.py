"""
Shared helpers for the analytics reducers.
These work without an application context so the reducers stay pure.
"""

from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

DEFAULT_TIMEZONE = 'America/New_York'
DAY_NAMES = ['Sunday', 'Monday', 'Tuesday', 'Wednesday', 'Thursday', 'Friday', 'Saturday']


def zone(tz_name: str = None) -> ZoneInfo:
    return ZoneInfo(tz_name or DEFAULT_TIMEZONE)


def local_today(tz_name: str = None) -> date:
    return datetime.now(zone(tz_name)).date()


def local_start(booking: dict, tz_name: str = None) -> datetime:
    """Trip start in the captain's timezone."""
    start = datetime.fromisoformat(str(booking['scheduled_start']).replace('Z', '+00:00'))
    if start.tzinfo is None:
        start = start.replace(tzinfo=timezone.utc)
    return start.astimezone(zone(tz_name))


def local_date(booking: dict, tz_name: str = None) -> date:
    return local_start(booking, tz_name).date()


def month_sequence(months: int, today: date = None, tz_name: str = None) -> list:
    """'YYYY-MM' keys for the trailing months ending with today's month, oldest first."""
    today = today or local_today(tz_name)
    year, month = today.year, today.month
    keys = []
    for _ in range(months):
        keys.append(f'{year:04d}-{month:02d}')
        month -= 1
        if month == 0:
            year, month = year - 1, 12
    return list(reversed(keys))


def percentage(part, whole) -> float:
    """Share as a percentage rounded to one decimal (0 when whole is 0)."""
    if not whole:
        return 0.0
    return round(part / whole * 100, 1)


def pct_change(current, previous):
    """Percentage change, or None when there is nothing to compare against."""
    if not previous:
        return None
    return round((current - previous) / previous * 100, 1)
