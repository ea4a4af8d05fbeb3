"""
Booking model and data access functions.
Captain-side booking CRUD, filtering, search, tags, calendar and export queries.
"""

import json
import logging
from datetime import timedelta

from flask import current_app

from database import get_db, begin_immediate
from models.availability import check_captain_schedule, has_conflict
from models.booking_log import create_booking_log
from models.booking_state import (
    ACTIVE_STATUSES, BOOKING_STATUSES, PAYMENT_STATUSES, BookingError, is_terminal
)
from models.profile import get_profile_by_id
from models.trip_type import get_price_cents, get_trip_type_by_id
from models.vessel import get_vessel_by_id
from utils.datetime_helpers import (
    from_db_timestamp, local_day_bounds, parse_client_datetime, parse_date,
    to_db_timestamp, utc_now
)
from utils.helpers import generate_confirmation_code, generate_token, parse_tags
from utils.validators import (
    sanitize_input, validate_email, validate_phone, validate_positive_integer
)

logger = logging.getLogger(__name__)


# =============================================================================
# CONSTANTS
# =============================================================================

BOOKING_SELECT = '''
    SELECT b.*,
           t.title AS trip_title,
           t.duration_hours,
           v.name AS vessel_name,
           v.capacity AS vessel_capacity,
           p.timezone AS captain_timezone
    FROM bookings b
    JOIN profiles p ON b.captain_id = p.id
    LEFT JOIN trip_types t ON b.trip_type_id = t.id
    LEFT JOIN vessels v ON b.vessel_id = v.id
'''

SORT_FIELDS = ('scheduled_start', 'guest_name', 'status', 'created_at')
DEFAULT_LIST_LIMIT = 20
MAX_LIST_LIMIT = 100

SEARCH_MIN_LENGTH = 2
SEARCH_DEFAULT_LIMIT = 10
SEARCH_MAX_LIMIT = 50

# Fields a captain may edit on an open booking
UPDATABLE_FIELDS = (
    'guest_name', 'guest_email', 'guest_phone', 'party_size', 'vessel_id',
    'special_requests', 'captain_notes', 'scheduled_start', 'scheduled_end'
)


def _row_to_booking(row) -> dict:
    booking = dict(row)
    booking['tags'] = parse_tags(booking.get('tags'))
    return booking


# =============================================================================
# READ OPERATIONS
# =============================================================================

def get_booking_by_id(booking_id: int) -> dict:
    """
    Get booking by ID with trip title, vessel name and captain timezone.

    Args:
        booking_id: Booking ID

    Returns:
        Booking dict (tags decoded) or None if not found
    """
    db = get_db()
    cursor = db.cursor()
    cursor.execute(BOOKING_SELECT + ' WHERE b.id = ?', (booking_id,))
    row = cursor.fetchone()
    return _row_to_booking(row) if row else None


def get_booking_for_captain(booking_id: int, captain_id: int) -> dict:
    """Get a booking only when it belongs to the captain."""
    booking = get_booking_by_id(booking_id)
    if not booking or booking['captain_id'] != captain_id:
        return None
    return booking


def get_booking_passengers(booking_id: int) -> list:
    """Get passengers of a booking, primary contact first."""
    db = get_db()
    cursor = db.cursor()
    cursor.execute('''
        SELECT * FROM passengers
        WHERE booking_id = ?
        ORDER BY is_primary_contact DESC, id
    ''', (booking_id,))
    return [dict(row) for row in cursor.fetchall()]


def _filter_clause(
    captain_id: int,
    tz_name: str = None,
    start_date: str = None,
    end_date: str = None,
    statuses: list = None,
    payment_statuses: list = None,
    vessel_id: int = None,
    search: str = None,
    tags: list = None,
    include_historical: bool = True
) -> tuple:
    """
    Build the WHERE clause shared by the list and export queries.

    Date bounds are whole local days in the captain's timezone, both ends
    inclusive.

    Raises:
        BookingError: VALIDATION on malformed dates or unknown statuses
    """
    clauses = ['b.captain_id = ?']
    params = [captain_id]

    try:
        start_day = parse_date(start_date) if start_date else None
        end_day = parse_date(end_date) if end_date else None
    except ValueError:
        raise BookingError('Dates must be YYYY-MM-DD', 'VALIDATION') from None

    if start_day and end_day and end_day < start_day:
        raise BookingError('End date must not be before start date', 'VALIDATION')

    if start_day:
        start_ts, _ = local_day_bounds(start_day, tz_name=tz_name)
        clauses.append('b.scheduled_start >= ?')
        params.append(start_ts)
    if end_day:
        _, end_ts = local_day_bounds(end_day, tz_name=tz_name)
        clauses.append('b.scheduled_start < ?')
        params.append(end_ts)

    if statuses:
        unknown = [s for s in statuses if s not in BOOKING_STATUSES]
        if unknown:
            raise BookingError(f"Unknown status: {', '.join(unknown)}", 'VALIDATION')
        clauses.append(f"b.status IN ({', '.join('?' for _ in statuses)})")
        params.extend(statuses)
    elif not include_historical:
        clauses.append(f"b.status IN ({', '.join('?' for _ in ACTIVE_STATUSES)})")
        params.extend(ACTIVE_STATUSES)

    if payment_statuses:
        unknown = [s for s in payment_statuses if s not in PAYMENT_STATUSES]
        if unknown:
            raise BookingError(f"Unknown payment status: {', '.join(unknown)}", 'VALIDATION')
        clauses.append(f"b.payment_status IN ({', '.join('?' for _ in payment_statuses)})")
        params.extend(payment_statuses)

    if vessel_id:
        clauses.append('b.vessel_id = ?')
        params.append(vessel_id)

    if search:
        term = f'%{search.strip()}%'
        clauses.append('''(b.guest_name LIKE ? OR b.guest_email LIKE ?
                           OR b.guest_phone LIKE ? OR b.confirmation_code LIKE ?)''')
        params.extend([term, term, term, term])

    # Tags are a JSON array; every requested tag must be present
    for tag in tags or []:
        clauses.append('b.tags LIKE ?')
        params.append(f'%{json.dumps(tag)}%')

    return ' AND '.join(clauses), params


def _captain_timezone(captain_id: int) -> str:
    profile = get_profile_by_id(captain_id)
    return profile.get('timezone') if profile else None


def get_bookings_filtered(
    captain_id: int,
    start_date: str = None,
    end_date: str = None,
    statuses: list = None,
    payment_statuses: list = None,
    vessel_id: int = None,
    search: str = None,
    tags: list = None,
    include_historical: bool = False,
    sort_field: str = 'scheduled_start',
    sort_dir: str = 'asc',
    limit: int = DEFAULT_LIST_LIMIT,
    offset: int = 0
) -> dict:
    """
    Get a captain's bookings with filters and pagination.

    Terminal bookings are left out unless include_historical is set or an
    explicit status filter asks for them.

    Args:
        captain_id: Captain profile ID
        start_date: First local day (YYYY-MM-DD, inclusive)
        end_date: Last local day (YYYY-MM-DD, inclusive)
        statuses: Booking statuses to include
        payment_statuses: Payment statuses to include
        vessel_id: Only bookings on this vessel
        search: Text matched against guest name, email, phone and code
        tags: Tags every returned booking must carry
        include_historical: Include terminal bookings
        sort_field: One of SORT_FIELDS (others fall back to scheduled_start)
        sort_dir: 'asc' or 'desc'
        limit: Page size, clamped to 1..MAX_LIST_LIMIT
        offset: Rows to skip

    Returns:
        dict: {bookings: list, total: int, limit: int, offset: int}
    """
    where, params = _filter_clause(
        captain_id, _captain_timezone(captain_id), start_date, end_date, statuses,
        payment_statuses, vessel_id, search, tags, include_historical
    )

    if sort_field not in SORT_FIELDS:
        sort_field = 'scheduled_start'
    direction = 'DESC' if str(sort_dir).lower() == 'desc' else 'ASC'

    try:
        limit = int(limit)
    except (TypeError, ValueError):
        limit = DEFAULT_LIST_LIMIT
    limit = max(1, min(limit, MAX_LIST_LIMIT))
    try:
        offset = max(0, int(offset))
    except (TypeError, ValueError):
        offset = 0

    db = get_db()
    cursor = db.cursor()

    cursor.execute(f'SELECT COUNT(*) FROM bookings b WHERE {where}', params)
    total = cursor.fetchone()[0]

    cursor.execute(
        BOOKING_SELECT + f' WHERE {where} ORDER BY b.{sort_field} {direction}, b.id {direction}'
        ' LIMIT ? OFFSET ?',
        params + [limit, offset]
    )
    bookings = [_row_to_booking(row) for row in cursor.fetchall()]

    return {'bookings': bookings, 'total': total, 'limit': limit, 'offset': offset}


def get_bookings_for_export(
    captain_id: int,
    start_date: str = None,
    end_date: str = None,
    statuses: list = None,
    payment_statuses: list = None,
    tags: list = None,
    search: str = None
) -> list:
    """
    Get every matching booking for an export, oldest trip first.

    All statuses are exported unless a status filter is given.
    """
    where, params = _filter_clause(
        captain_id, _captain_timezone(captain_id), start_date, end_date,
        statuses, payment_statuses, None, search, tags, include_historical=True
    )

    db = get_db()
    cursor = db.cursor()
    cursor.execute(BOOKING_SELECT + f' WHERE {where} ORDER BY b.scheduled_start, b.id', params)
    return [_row_to_booking(row) for row in cursor.fetchall()]


def search_bookings(captain_id: int, query: str, limit: int = SEARCH_DEFAULT_LIMIT) -> list:
    """
    Quick search across a captain's bookings.

    Args:
        captain_id: Captain profile ID
        query: At least SEARCH_MIN_LENGTH characters
        limit: Result cap (default 10, at most 50)

    Returns:
        List of matches, upcoming trips first

    Raises:
        BookingError: VALIDATION for short queries
    """
    query = (query or '').strip()
    if len(query) < SEARCH_MIN_LENGTH:
        raise BookingError(
            f'Search query must be at least {SEARCH_MIN_LENGTH} characters', 'VALIDATION'
        )

    try:
        limit = int(limit)
    except (TypeError, ValueError):
        limit = SEARCH_DEFAULT_LIMIT
    limit = max(1, min(limit, SEARCH_MAX_LIMIT))

    term = f'%{query}%'
    db = get_db()
    cursor = db.cursor()
    cursor.execute(BOOKING_SELECT + '''
        WHERE b.captain_id = ?
          AND (b.guest_name LIKE ? OR b.guest_email LIKE ?
               OR b.guest_phone LIKE ? OR b.confirmation_code LIKE ?)
        ORDER BY b.scheduled_start DESC
        LIMIT ?
    ''', (captain_id, term, term, term, term, limit))

    return [_row_to_booking(row) for row in cursor.fetchall()]


def get_calendar_bookings(captain_id: int, start_date: str, end_date: str) -> list:
    """
    Get bookings shown on the calendar between two local days (inclusive).

    Cancelled, no-show and expired bookings are hidden.
    """
    where, params = _filter_clause(
        captain_id, _captain_timezone(captain_id), start_date, end_date,
        statuses=list(ACTIVE_STATUSES) + ['completed']
    )

    db = get_db()
    cursor = db.cursor()
    cursor.execute(BOOKING_SELECT + f' WHERE {where} ORDER BY b.scheduled_start', params)
    return [_row_to_booking(row) for row in cursor.fetchall()]


def get_all_tags(captain_id: int) -> list:
    """All distinct tags a captain has used, sorted case-insensitively."""
    db = get_db()
    cursor = db.cursor()
    cursor.execute('''
        SELECT tags FROM bookings
        WHERE captain_id = ? AND tags IS NOT NULL AND tags != '[]'
    ''', (captain_id,))

    found = set()
    for row in cursor.fetchall():
        found.update(parse_tags(row['tags']))
    return sorted(found, key=str.lower)


# =============================================================================
# VALIDATION
# =============================================================================

def _clean_guest_fields(data: dict, partial: bool = False) -> dict:
    """
    Validate guest fields.

    Args:
        data: Raw input
        partial: Only validate the fields present (for updates)

    Returns:
        dict of cleaned values

    Raises:
        BookingError: VALIDATION
    """
    cleaned = {}

    if not partial or 'guest_name' in data:
        name = sanitize_input(data.get('guest_name') or '', 200)
        if not name:
            raise BookingError('Guest name is required', 'VALIDATION')
        cleaned['guest_name'] = name

    if not partial or 'guest_email' in data:
        email = (data.get('guest_email') or '').strip().lower()
        if not validate_email(email):
            raise BookingError('A valid guest email is required', 'VALIDATION')
        cleaned['guest_email'] = email

    if 'guest_phone' in data:
        phone = (data.get('guest_phone') or '').strip() or None
        if phone and not validate_phone(phone):
            raise BookingError('Phone must be a US number', 'VALIDATION')
        cleaned['guest_phone'] = phone

    if not partial or 'party_size' in data:
        max_party = current_app.config.get('MAX_PARTY_SIZE', 6)
        ok, party_size, error = validate_positive_integer(
            data.get('party_size', 1), 'Party size', max_value=max_party
        )
        if not ok:
            raise BookingError(error, 'VALIDATION')
        cleaned['party_size'] = party_size

    for field in ('special_requests', 'captain_notes'):
        if field in data:
            cleaned[field] = sanitize_input(data.get(field) or '', 2000) or None

    return cleaned


def _resolve_times(data: dict, tz_name: str, trip_type: dict = None) -> tuple:
    """
    Parse scheduled_start/scheduled_end; the end defaults to start plus the
    trip duration.

    Raises:
        BookingError: VALIDATION
    """
    try:
        start = parse_client_datetime(data.get('scheduled_start'), tz_name)
        if data.get('scheduled_end'):
            end = parse_client_datetime(data['scheduled_end'], tz_name)
        elif trip_type:
            end = start + timedelta(hours=float(trip_type['duration_hours']))
        else:
            raise BookingError('End time is required', 'VALIDATION')
    except ValueError as e:
        if isinstance(e, BookingError):
            raise
        raise BookingError('Times must be ISO-8601 datetimes', 'VALIDATION') from None

    if end <= start:
        raise BookingError('End time must be after start time', 'VALIDATION')
    return start, end


def _moved_times(booking: dict, requested: dict, tz_name: str) -> tuple:
    """
    Resolve a new start/end for an existing booking.

    When only the start is given the trip keeps its length.
    """
    old_start = from_db_timestamp(booking['scheduled_start'])
    old_end = from_db_timestamp(booking['scheduled_end'])

    try:
        start = (parse_client_datetime(requested['scheduled_start'], tz_name)
                 if requested.get('scheduled_start') else old_start)
        if requested.get('scheduled_end'):
            end = parse_client_datetime(requested['scheduled_end'], tz_name)
        else:
            end = start + (old_end - old_start)
    except ValueError:
        raise BookingError('Times must be ISO-8601 datetimes', 'VALIDATION') from None

    if end <= start:
        raise BookingError('End time must be after start time', 'VALIDATION')
    return start, end


def _check_vessel(vessel_id, captain_id: int, party_size: int) -> None:
    """
    Raises:
        BookingError: NOT_FOUND for a foreign vessel, CAPACITY when full
    """
    if not vessel_id:
        return
    vessel = get_vessel_by_id(vessel_id)
    if not vessel or vessel['owner_id'] != captain_id:
        raise BookingError('Vessel not found', 'NOT_FOUND')
    if party_size > vessel['capacity']:
        raise BookingError(
            f"Party size {party_size} exceeds {vessel['name']} capacity of {vessel['capacity']}",
            'CAPACITY'
        )


# =============================================================================
# WRITE OPERATIONS
# =============================================================================

def insert_booking_row(cursor, captain_id: int, values: dict) -> int:
    """Insert a booking row plus its primary passenger on an open cursor."""
    columns = list(values.keys())
    cursor.execute(f'''
        INSERT INTO bookings (captain_id, {', '.join(columns)})
        VALUES (?, {', '.join('?' for _ in columns)})
    ''', [captain_id] + list(values.values()))
    booking_id = cursor.lastrowid

    cursor.execute('''
        INSERT INTO passengers (booking_id, full_name, email, phone, is_primary_contact)
        VALUES (?, ?, ?, ?, 1)
    ''', (booking_id, values['guest_name'], values['guest_email'], values.get('guest_phone')))

    return booking_id


def create_booking(captain_id: int, data: dict, actor_id: int = None, now=None) -> int:
    """
    Create a booking from the captain dashboard.

    The overlap check and the insert share one write transaction, so two
    concurrent requests for the same time cannot both succeed.

    Args:
        captain_id: Captain profile ID
        data: guest_name, guest_email, guest_phone, party_size,
            scheduled_start, scheduled_end, trip_type_id, vessel_id,
            total_price_cents, special_requests, captain_notes
        actor_id: Captain performing the action
        now: Aware current time (for tests)

    Returns:
        New booking ID

    Raises:
        BookingError: VALIDATION, HIBERNATING, BLACKOUT, OUTSIDE_HOURS,
            NOT_FOUND, CAPACITY or CONFLICT
    """
    profile = get_profile_by_id(captain_id)
    if not profile:
        raise BookingError('Captain not found', 'NOT_FOUND')

    values = _clean_guest_fields(data)

    trip_type = None
    if data.get('trip_type_id'):
        trip_type = get_trip_type_by_id(data['trip_type_id'])
        if not trip_type or trip_type['owner_id'] != captain_id:
            raise BookingError('Trip type not found', 'NOT_FOUND')

    start, end = _resolve_times(data, profile.get('timezone'), trip_type)
    check_captain_schedule(profile, start, end, now=now)
    _check_vessel(data.get('vessel_id'), captain_id, values['party_size'])

    if data.get('total_price_cents') is not None:
        try:
            total = int(data['total_price_cents'])
        except (TypeError, ValueError):
            raise BookingError('Total price must be a whole number of cents', 'VALIDATION') from None
        if total < 0:
            raise BookingError('Total price cannot be negative', 'VALIDATION')
    else:
        total = get_price_cents(trip_type) if trip_type else 0

    values.update({
        'trip_type_id': trip_type['id'] if trip_type else None,
        'vessel_id': data.get('vessel_id') or None,
        'scheduled_start': to_db_timestamp(start),
        'scheduled_end': to_db_timestamp(end),
        'status': 'pending_deposit',
        'payment_status': 'unpaid',
        'total_price_cents': total,
        'deposit_paid_cents': 0,
        'balance_due_cents': total,
        'confirmation_code': generate_confirmation_code(),
        'management_token': generate_token(),
    })

    db = get_db()
    try:
        begin_immediate(db)
        cursor = db.cursor()

        if has_conflict(captain_id, start, end, cursor=cursor):
            raise BookingError('This time overlaps another booking', 'CONFLICT')

        booking_id = insert_booking_row(cursor, captain_id, values)

        create_booking_log(
            booking_id, 'booking_created',
            f"Booking created by captain for {values['guest_name']}",
            new_value={'status': 'pending_deposit', 'scheduled_start': values['scheduled_start']},
            actor_type='captain',
            actor_id=actor_id,
            cursor=cursor
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info('Captain %s created booking %s', captain_id, booking_id)
    return booking_id


def update_booking(booking_id: int, captain_id: int, fields: dict, actor_id: int = None,
                   now=None) -> dict:
    """
    Edit an open booking.

    Moving the trip re-checks the captain's schedule and overlaps inside the
    write transaction.

    Args:
        booking_id: Booking ID
        captain_id: Owning captain
        fields: Subset of UPDATABLE_FIELDS (others are ignored)
        actor_id: Captain performing the edit
        now: Aware current time (for tests)

    Returns:
        dict of changed fields {field: {old, new}}

    Raises:
        BookingError: NOT_FOUND, INVALID_TRANSITION for terminal bookings,
            VALIDATION, CAPACITY, BLACKOUT, OUTSIDE_HOURS or CONFLICT
    """
    booking = get_booking_for_captain(booking_id, captain_id)
    if not booking:
        raise BookingError('Booking not found', 'NOT_FOUND')
    if is_terminal(booking['status']):
        raise BookingError(
            f"Cannot edit a booking that is {booking['status'].replace('_', ' ')}",
            'INVALID_TRANSITION'
        )

    requested = {k: v for k, v in fields.items() if k in UPDATABLE_FIELDS}
    updates = _clean_guest_fields(requested, partial=True)

    if 'vessel_id' in requested:
        updates['vessel_id'] = requested['vessel_id'] or None

    party_size = updates.get('party_size', booking['party_size'])
    vessel_id = updates.get('vessel_id', booking['vessel_id'])
    if 'party_size' in updates or 'vessel_id' in updates:
        _check_vessel(vessel_id, captain_id, party_size)

    moving = 'scheduled_start' in requested or 'scheduled_end' in requested
    start = end = None
    if moving:
        profile = get_profile_by_id(captain_id)
        start, end = _moved_times(booking, requested, profile.get('timezone'))
        check_captain_schedule(profile, start, end, now=now)
        updates['scheduled_start'] = to_db_timestamp(start)
        updates['scheduled_end'] = to_db_timestamp(end)

    changes = {
        field: {'old': booking.get(field), 'new': value}
        for field, value in updates.items()
        if booking.get(field) != value
    }
    if not changes:
        return {}

    db = get_db()
    try:
        begin_immediate(db)
        cursor = db.cursor()

        if moving and has_conflict(captain_id, start, end, exclude_booking_id=booking_id,
                                   cursor=cursor):
            raise BookingError('This time overlaps another booking', 'CONFLICT')

        assignments = ', '.join(f'{field} = ?' for field in changes)
        cursor.execute(f'''
            UPDATE bookings
            SET {assignments}, updated_at = CURRENT_TIMESTAMP
            WHERE id = ? AND status = ?
        ''', [changes[f]['new'] for f in changes] + [booking_id, booking['status']])
        if cursor.rowcount == 0:
            raise BookingError('Booking was changed by another request', 'CONFLICT')

        create_booking_log(
            booking_id, 'booking_updated',
            f"Updated {', '.join(f.replace('_', ' ') for f in changes)}",
            old_value={f: c['old'] for f, c in changes.items()},
            new_value={f: c['new'] for f, c in changes.items()},
            actor_type='captain',
            actor_id=actor_id,
            cursor=cursor
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    return changes


def duplicate_booking(booking_id: int, captain_id: int, overrides: dict = None,
                      actor_id: int = None) -> int:
    """
    Copy a booking into a new unpaid booking.

    Guest, trip, vessel, price and special requests are copied; notes, tags,
    payments and weather details are not.

    Args:
        booking_id: Source booking ID
        captain_id: Owning captain
        overrides: Optional guest_name, guest_email, guest_phone, party_size,
            scheduled_start, scheduled_end, trip_type_id, vessel_id. A new trip
            type sets the price and, without an explicit end, the length.
        actor_id: Captain performing the action

    Returns:
        New booking ID

    Raises:
        BookingError: NOT_FOUND, VALIDATION, CAPACITY or CONFLICT
    """
    source = get_booking_for_captain(booking_id, captain_id)
    if not source:
        raise BookingError('Booking not found', 'NOT_FOUND')

    overrides = {k: v for k, v in (overrides or {}).items() if v not in (None, '')}
    merged = {
        'guest_name': source['guest_name'],
        'guest_email': source['guest_email'],
        'guest_phone': source['guest_phone'],
        'party_size': source['party_size'],
        'special_requests': source['special_requests'],
        **{k: v for k, v in overrides.items() if k in (
            'guest_name', 'guest_email', 'guest_phone', 'party_size'
        )}
    }
    values = _clean_guest_fields(merged)

    trip_type_id = source['trip_type_id']
    total = source['total_price_cents']
    trip_type = None
    if overrides.get('trip_type_id'):
        trip_type = get_trip_type_by_id(overrides['trip_type_id'])
        if not trip_type or trip_type['owner_id'] != captain_id:
            raise BookingError('Trip type not found', 'NOT_FOUND')
        trip_type_id = trip_type['id']
        total = get_price_cents(trip_type)

    vessel_id = overrides.get('vessel_id') or source['vessel_id']
    _check_vessel(vessel_id, captain_id, values['party_size'])

    start, end = _moved_times(source, overrides, source.get('captain_timezone'))
    if trip_type and not overrides.get('scheduled_end'):
        end = start + timedelta(hours=float(trip_type['duration_hours']))

    values.update({
        'trip_type_id': trip_type_id,
        'vessel_id': vessel_id,
        'scheduled_start': to_db_timestamp(start),
        'scheduled_end': to_db_timestamp(end),
        'status': 'pending_deposit',
        'payment_status': 'unpaid',
        'total_price_cents': total,
        'deposit_paid_cents': 0,
        'balance_due_cents': total,
        'confirmation_code': generate_confirmation_code(),
        'management_token': generate_token(),
    })

    db = get_db()
    try:
        begin_immediate(db)
        cursor = db.cursor()

        if has_conflict(captain_id, start, end, cursor=cursor):
            raise BookingError('This time overlaps another booking', 'CONFLICT')

        new_id = insert_booking_row(cursor, captain_id, values)
        create_booking_log(
            new_id, 'booking_created',
            f"Booking duplicated from {source['guest_name']} ({booking_id})",
            new_value={'duplicated_from': booking_id},
            actor_type='captain',
            actor_id=actor_id,
            cursor=cursor
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    return new_id


def update_booking_notes(booking_id: int, captain_id: int, internal_notes: str = None,
                         captain_notes: str = None, actor_id: int = None) -> bool:
    """
    Replace a booking's internal and/or captain notes.

    Notes stay editable on terminal bookings.

    Returns:
        True if updated, False if the booking is not the captain's
    """
    booking = get_booking_for_captain(booking_id, captain_id)
    if not booking:
        return False

    updates = {}
    if internal_notes is not None:
        updates['internal_notes'] = sanitize_input(internal_notes, 5000)
    if captain_notes is not None:
        updates['captain_notes'] = sanitize_input(captain_notes, 5000)
    if not updates:
        return True

    db = get_db()
    cursor = db.cursor()
    try:
        cursor.execute(f'''
            UPDATE bookings
            SET {', '.join(f'{k} = ?' for k in updates)}, updated_at = CURRENT_TIMESTAMP
            WHERE id = ?
        ''', list(updates.values()) + [booking_id])
        create_booking_log(
            booking_id, 'notes_updated', 'Notes updated',
            actor_type='captain', actor_id=actor_id, cursor=cursor
        )
        db.commit()
    except Exception:
        db.rollback()
        raise
    return True


def set_booking_tags(booking_id: int, captain_id: int, tags, actor_id: int = None) -> list:
    """
    Replace a booking's tags.

    Args:
        booking_id: Booking ID
        captain_id: Owning captain
        tags: List of strings
        actor_id: Captain performing the action

    Returns:
        The stored tag list

    Raises:
        BookingError: NOT_FOUND, VALIDATION when tags is not a list
    """
    if not isinstance(tags, list):
        raise BookingError('Tags must be an array of strings', 'VALIDATION')

    booking = get_booking_for_captain(booking_id, captain_id)
    if not booking:
        raise BookingError('Booking not found', 'NOT_FOUND')

    cleaned = [t[:50] for t in parse_tags(tags)]

    db = get_db()
    cursor = db.cursor()
    try:
        cursor.execute('''
            UPDATE bookings SET tags = ?, updated_at = CURRENT_TIMESTAMP WHERE id = ?
        ''', (json.dumps(cleaned), booking_id))
        create_booking_log(
            booking_id, 'tags_updated', 'Tags updated',
            old_value={'tags': booking['tags']},
            new_value={'tags': cleaned},
            actor_type='captain',
            actor_id=actor_id,
            cursor=cursor
        )
        db.commit()
    except Exception:
        db.rollback()
        raise
    return cleaned


def get_upcoming_bookings(captain_id: int, days: int = 7, now=None) -> list:
    """Active bookings starting within the next ``days`` days."""
    now = now or utc_now()
    db = get_db()
    cursor = db.cursor()
    placeholders = ', '.join('?' for _ in ACTIVE_STATUSES)
    cursor.execute(BOOKING_SELECT + f'''
        WHERE b.captain_id = ? AND b.status IN ({placeholders})
          AND b.scheduled_start >= ? AND b.scheduled_start < ?
        ORDER BY b.scheduled_start
    ''', [captain_id, *ACTIVE_STATUSES, to_db_timestamp(now),
          to_db_timestamp(now + timedelta(days=days))])
    return [_row_to_booking(row) for row in cursor.fetchall()]


def get_captain_bookings(captain_id: int) -> list:
    """Every booking of a captain, used by the analytics loader."""
    db = get_db()
    cursor = db.cursor()
    cursor.execute(BOOKING_SELECT + ' WHERE b.captain_id = ? ORDER BY b.scheduled_start',
                   (captain_id,))
    return [_row_to_booking(row) for row in cursor.fetchall()]
