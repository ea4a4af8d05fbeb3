"""
Availability windows and slot computation.

A captain's weekly windows, their blackout dates and their active bookings
combine into bookable start times for a trip type on a given date.
"""

import calendar
from datetime import datetime, timedelta

from database import get_db
from models.blackout import get_blackout, get_blackout_dates
from models.booking_state import ACTIVE_STATUSES, BookingError
from models.profile import get_profile_by_id
from models.trip_type import get_trip_type_by_id
from utils.datetime_helpers import (
    combine_local, from_db_timestamp, get_timezone, local_day_bounds, parse_date,
    sunday_based_weekday, to_db_timestamp, utc_now
)
from utils.validators import validate_time_format


# =============================================================================
# CONSTANTS
# =============================================================================

SLOT_INTERVAL_MINUTES = 30

# (day_of_week with Sunday = 0, start, end, is_active); Monday is the usual day off
DEFAULT_WINDOWS = [
    (0, '06:00', '21:00', 1),
    (1, '06:00', '21:00', 0),
    (2, '06:00', '21:00', 1),
    (3, '06:00', '21:00', 1),
    (4, '06:00', '21:00', 1),
    (5, '06:00', '21:00', 1),
    (6, '06:00', '21:00', 1),
]

DAY_NAMES = ['Sunday', 'Monday', 'Tuesday', 'Wednesday', 'Thursday', 'Friday', 'Saturday']


# =============================================================================
# AVAILABILITY WINDOWS
# =============================================================================

def create_default_windows(owner_id: int, cursor=None) -> None:
    """
    Give a new captain the default weekly schedule.

    Args:
        owner_id: Captain profile ID
        cursor: Optional cursor of the caller's transaction
    """
    cursor = cursor or get_db().cursor()
    cursor.executemany('''
        INSERT INTO availability_windows (owner_id, day_of_week, start_time, end_time, is_active)
        VALUES (?, ?, ?, ?, ?)
    ''', [(owner_id, *window) for window in DEFAULT_WINDOWS])


def get_availability_windows(owner_id: int) -> list:
    """Get a captain's weekly windows ordered Sunday to Saturday."""
    db = get_db()
    cursor = db.cursor()
    cursor.execute('''
        SELECT * FROM availability_windows
        WHERE owner_id = ?
        ORDER BY day_of_week
    ''', (owner_id,))
    return [dict(row) for row in cursor.fetchall()]


def get_window_for_day(owner_id: int, day_of_week: int) -> dict:
    """
    Get the active window for a weekday.

    Returns:
        Window dict or None when the captain does not work that day
    """
    db = get_db()
    cursor = db.cursor()
    cursor.execute('''
        SELECT * FROM availability_windows
        WHERE owner_id = ? AND day_of_week = ? AND is_active = 1
    ''', (owner_id, day_of_week))
    row = cursor.fetchone()
    return dict(row) if row else None


def set_availability_windows(owner_id: int, windows: list) -> None:
    """
    Replace the captain's windows for the given weekdays.

    Args:
        owner_id: Captain profile ID
        windows: List of {day_of_week, start_time, end_time, is_active}

    Raises:
        BookingError: VALIDATION on bad weekday or times
    """
    for window in windows:
        day = window.get('day_of_week')
        if not isinstance(day, int) or not 0 <= day <= 6:
            raise BookingError('day_of_week must be 0 (Sunday) to 6 (Saturday)', 'VALIDATION')
        start, end = window.get('start_time'), window.get('end_time')
        if not validate_time_format(start) or not validate_time_format(end):
            raise BookingError('Times must be HH:MM', 'VALIDATION')
        if start >= end:
            raise BookingError(f'{DAY_NAMES[day]}: start must be before end', 'VALIDATION')

    db = get_db()
    cursor = db.cursor()
    try:
        for window in windows:
            cursor.execute('''
                INSERT INTO availability_windows (owner_id, day_of_week, start_time, end_time, is_active)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(owner_id, day_of_week) DO UPDATE SET
                    start_time = excluded.start_time,
                    end_time = excluded.end_time,
                    is_active = excluded.is_active
            ''', (owner_id, window['day_of_week'], window['start_time'],
                  window['end_time'], 1 if window.get('is_active', True) else 0))
        db.commit()
    except Exception:
        db.rollback()
        raise


# =============================================================================
# BOOKED TIME
# =============================================================================

def get_busy_ranges(captain_id: int, start_ts: str, end_ts: str,
                    exclude_booking_id: int = None, cursor=None) -> list:
    """
    Get active bookings overlapping a stored-form time range.

    Args:
        captain_id: Captain profile ID
        start_ts: Range start (stored UTC form, inclusive)
        end_ts: Range end (stored UTC form, exclusive)
        exclude_booking_id: Booking to ignore (when moving a booking)
        cursor: Optional cursor of an open write transaction

    Returns:
        List of dicts with id, scheduled_start and scheduled_end
    """
    cursor = cursor or get_db().cursor()
    placeholders = ', '.join('?' for _ in ACTIVE_STATUSES)

    query = f'''
        SELECT id, scheduled_start, scheduled_end FROM bookings
        WHERE captain_id = ?
          AND status IN ({placeholders})
          AND scheduled_start < ?
          AND scheduled_end > ?
    '''
    params = [captain_id, *ACTIVE_STATUSES, end_ts, start_ts]
    if exclude_booking_id is not None:
        query += ' AND id != ?'
        params.append(exclude_booking_id)

    cursor.execute(query, params)
    return [dict(row) for row in cursor.fetchall()]


def has_conflict(captain_id: int, start: datetime, end: datetime,
                 exclude_booking_id: int = None, cursor=None) -> bool:
    """Check whether [start, end) overlaps any active booking of the captain."""
    return bool(get_busy_ranges(
        captain_id, to_db_timestamp(start), to_db_timestamp(end),
        exclude_booking_id=exclude_booking_id, cursor=cursor
    ))


# =============================================================================
# SLOT COMPUTATION
# =============================================================================

def build_time_slots(day, window: dict, duration_minutes: int, busy: list,
                     not_before: datetime, tz_name: str = None) -> list:
    """
    Lay out candidate slots inside a window.

    Starts step every SLOT_INTERVAL_MINUTES from the window start; a slot is
    listed while it ends no later than the window end. A slot is available
    when it starts at or after ``not_before`` and overlaps no busy range.

    Args:
        day: Local date
        window: Window dict with start_time and end_time (HH:MM)
        duration_minutes: Trip length
        busy: List of (start, end) aware datetimes
        not_before: Earliest bookable start (now plus buffer)
        tz_name: Captain timezone

    Returns:
        List of {start_time, end_time, start, end, available}
    """
    duration = timedelta(minutes=duration_minutes)
    step = timedelta(minutes=SLOT_INTERVAL_MINUTES)
    slot_start = combine_local(day, window['start_time'], tz_name)
    window_end = combine_local(day, window['end_time'], tz_name)

    slots = []
    while slot_start + duration <= window_end:
        slot_end = slot_start + duration
        overlaps = any(slot_start < b_end and slot_end > b_start for b_start, b_end in busy)
        slots.append({
            'start_time': slot_start.strftime('%H:%M'),
            'end_time': slot_end.strftime('%H:%M'),
            'start': slot_start.isoformat(),
            'end': slot_end.isoformat(),
            'available': not overlaps and slot_start >= not_before
        })
        slot_start += step

    return slots


def _load_captain_and_trip(captain_id: int, trip_type_id: int) -> tuple:
    """
    Load a captain and one of their trip types.

    Raises:
        BookingError: NOT_FOUND when either is missing or the trip is not theirs
    """
    profile = get_profile_by_id(captain_id)
    if not profile or not profile.get('active'):
        raise BookingError('Captain not found', 'NOT_FOUND')

    trip_type = get_trip_type_by_id(trip_type_id)
    if not trip_type or trip_type['owner_id'] != captain_id:
        raise BookingError('Trip type not found', 'NOT_FOUND')

    return profile, trip_type


def _slots_for_day(profile: dict, trip_type: dict, day, now: datetime) -> dict:
    """Compute the day's availability payload for already-loaded rows."""
    tz_name = profile.get('timezone')
    day_str = day.isoformat()
    day_of_week = sunday_based_weekday(day)

    result = {
        'date': day_str,
        'day_of_week': day_of_week,
        'is_blackout': False,
        'blackout_reason': None,
        'time_slots': []
    }

    blackout = get_blackout(profile['id'], day_str)
    if blackout:
        result['is_blackout'] = True
        result['blackout_reason'] = blackout.get('reason')
        return result

    window = get_window_for_day(profile['id'], day_of_week)
    if not window:
        return result

    start_ts, end_ts = local_day_bounds(day, tz_name=tz_name)
    busy = [
        (from_db_timestamp(b['scheduled_start']), from_db_timestamp(b['scheduled_end']))
        for b in get_busy_ranges(profile['id'], start_ts, end_ts)
    ]

    buffer_minutes = profile.get('booking_buffer_minutes')
    if buffer_minutes is None:
        buffer_minutes = 60
    not_before = now + timedelta(minutes=buffer_minutes)

    duration_minutes = int(round(float(trip_type['duration_hours']) * 60))
    result['time_slots'] = build_time_slots(
        day, window, duration_minutes, busy, not_before, tz_name
    )
    return result


def _check_bookable_day(profile: dict, day, now: datetime) -> None:
    """
    Reject days the public flow may never offer.

    Raises:
        BookingError: HIBERNATING, or UNAVAILABLE for past days and days
            beyond the captain's advance booking window
    """
    if profile.get('is_hibernating'):
        raise BookingError('This captain is not taking bookings right now', 'HIBERNATING')

    today = now.astimezone(get_timezone(profile.get('timezone'))).date()
    if day < today:
        raise BookingError('Cannot book a date in the past', 'UNAVAILABLE')

    advance_days = profile.get('advance_booking_days') or 60
    if day > today + timedelta(days=advance_days):
        raise BookingError(
            f'Bookings open at most {advance_days} days in advance', 'UNAVAILABLE'
        )


def get_available_slots(captain_id: int, trip_type_id: int, date_str: str, now: datetime = None) -> dict:
    """
    Compute bookable slots for a trip on a date.

    Args:
        captain_id: Captain profile ID
        trip_type_id: Trip type ID (must belong to the captain)
        date_str: Local date (YYYY-MM-DD)
        now: Aware current time (defaults to UTC now)

    Returns:
        dict with date, day_of_week, is_blackout, blackout_reason, time_slots

    Raises:
        BookingError: VALIDATION, NOT_FOUND, HIBERNATING or UNAVAILABLE
    """
    try:
        day = parse_date(date_str)
    except (TypeError, ValueError):
        raise BookingError('Date must be YYYY-MM-DD', 'VALIDATION') from None

    now = now or utc_now()
    profile, trip_type = _load_captain_and_trip(captain_id, trip_type_id)
    _check_bookable_day(profile, day, now)
    return _slots_for_day(profile, trip_type, day, now)


def get_month_availability(captain_id: int, trip_type_id: int, month: str, now: datetime = None) -> dict:
    """
    Summarise availability for every day of a month.

    Days in the past, beyond the advance window, or blacked out report no
    availability instead of raising.

    Args:
        captain_id: Captain profile ID
        trip_type_id: Trip type ID
        month: Month as YYYY-MM
        now: Aware current time (defaults to UTC now)

    Returns:
        dict mapping YYYY-MM-DD to {available, slot_count, is_blackout}

    Raises:
        BookingError: VALIDATION for a bad month, NOT_FOUND, HIBERNATING
    """
    try:
        first = datetime.strptime(month, '%Y-%m').date()
    except (TypeError, ValueError):
        raise BookingError('Month must be YYYY-MM', 'VALIDATION') from None

    now = now or utc_now()
    profile, trip_type = _load_captain_and_trip(captain_id, trip_type_id)
    if profile.get('is_hibernating'):
        raise BookingError('This captain is not taking bookings right now', 'HIBERNATING')

    days_in_month = calendar.monthrange(first.year, first.month)[1]
    blackouts = {
        b['blackout_date'] for b in get_blackout_dates(
            captain_id, first.isoformat(), first.replace(day=days_in_month).isoformat()
        )
    }

    summary = {}
    for offset in range(days_in_month):
        day = first + timedelta(days=offset)
        day_str = day.isoformat()
        entry = {'available': False, 'slot_count': 0, 'is_blackout': day_str in blackouts}

        if not entry['is_blackout']:
            try:
                _check_bookable_day(profile, day, now)
            except BookingError:
                summary[day_str] = entry
                continue
            slots = _slots_for_day(profile, trip_type, day, now)['time_slots']
            entry['slot_count'] = sum(1 for s in slots if s['available'])
            entry['available'] = entry['slot_count'] > 0

        summary[day_str] = entry

    return summary


def is_slot_available(profile: dict, trip_type: dict, start: datetime, now: datetime = None) -> bool:
    """
    Check that a start time is one of the open slots for its day.

    Used by the public flow to re-validate a guest's chosen slot.

    Args:
        profile: Captain profile dict
        trip_type: Trip type dict
        start: Aware start datetime
        now: Aware current time

    Returns:
        True when the slot is listed and available
    """
    now = now or utc_now()
    local_start = start.astimezone(get_timezone(profile.get('timezone')))
    try:
        _check_bookable_day(profile, local_start.date(), now)
    except BookingError:
        return False

    day = _slots_for_day(profile, trip_type, local_start.date(), now)
    wanted = local_start.strftime('%H:%M')
    return any(s['start_time'] == wanted and s['available'] for s in day['time_slots'])


def check_captain_schedule(profile: dict, start: datetime, end: datetime, now: datetime = None) -> None:
    """
    Validate a captain-entered booking time against their own schedule.

    Captains may book any time inside their working window; slot alignment
    and the guest buffer do not apply.

    Raises:
        BookingError: HIBERNATING, VALIDATION (advance window),
            BLACKOUT or OUTSIDE_HOURS
    """
    if profile.get('is_hibernating'):
        raise BookingError('Turn off hibernation before adding bookings', 'HIBERNATING')

    tz_name = profile.get('timezone')
    tz = get_timezone(tz_name)
    now = now or utc_now()
    local_start = start.astimezone(tz)
    local_end = end.astimezone(tz)

    advance_days = profile.get('advance_booking_days') or 60
    if local_start.date() > now.astimezone(tz).date() + timedelta(days=advance_days):
        raise BookingError(
            f'Bookings can be made at most {advance_days} days in advance', 'VALIDATION'
        )

    blackout = get_blackout(profile['id'], local_start.date().isoformat())
    if blackout:
        reason = f": {blackout['reason']}" if blackout.get('reason') else ''
        raise BookingError(f'{blackout["blackout_date"]} is blacked out{reason}', 'BLACKOUT')

    window = get_window_for_day(profile['id'], sunday_based_weekday(local_start.date()))
    if not window:
        raise BookingError(
            f'You are not available on {DAY_NAMES[sunday_based_weekday(local_start.date())]}s',
            'OUTSIDE_HOURS'
        )

    window_start = combine_local(local_start.date(), window['start_time'], tz_name)
    window_end = combine_local(local_start.date(), window['end_time'], tz_name)
    if local_start < window_start or local_end > window_end:
        raise BookingError(
            f"Trip must fall within your hours ({window['start_time']} to {window['end_time']})",
            'OUTSIDE_HOURS'
        )
