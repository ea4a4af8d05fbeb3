"""
Public (guest-facing) booking flow.
Captain page data, booking submission, and the token-based manage page.
"""

import logging
import sqlite3
import threading
from collections import defaultdict, deque
from datetime import timedelta

from flask import current_app

from database import get_db, begin_immediate
from models.availability import has_conflict, is_slot_available
from models.booking import get_booking_by_id, get_booking_passengers, insert_booking_row
from models.booking_log import create_booking_log
from models.booking_state import BookingError
from models.profile import get_hibernation_info, get_profile_by_id, get_public_profile
from models.reschedule import accept_reschedule_offer, get_offers_for_booking
from models.trip_type import get_deposit_cents, get_price_cents, get_trip_type_by_id, get_trip_types
from services.notifications import notify_booking_received, notify_captain_date_request
from utils.datetime_helpers import (
    combine_local, from_db_timestamp, parse_date, to_db_timestamp, utc_now
)
from utils.helpers import generate_confirmation_code, generate_token, short_booking_ref
from utils.validators import (
    sanitize_input, validate_email, validate_phone, validate_positive_integer,
    validate_time_format
)

logger = logging.getLogger(__name__)

GUEST_TOKEN_DAYS_AFTER_TRIP = 7
MIN_TOKEN_LENGTH = 6

PUBLIC_TRIP_FIELDS = ('id', 'title', 'description', 'duration_hours', 'price_total', 'deposit_amount')

# Booking columns a guest may see on the manage page
GUEST_BOOKING_FIELDS = (
    'id', 'guest_name', 'guest_email', 'guest_phone', 'party_size',
    'scheduled_start', 'scheduled_end', 'status', 'payment_status',
    'payment_method', 'total_price_cents', 'deposit_paid_cents',
    'balance_due_cents', 'weather_hold_reason', 'original_date_if_rescheduled',
    'special_requests', 'confirmation_code', 'trip_title', 'vessel_name'
)


# =============================================================================
# LOOKUP RATE LIMIT
# =============================================================================

_lookup_attempts = defaultdict(deque)
_lookup_lock = threading.Lock()


def check_lookup_rate(ip: str, now=None) -> None:
    """
    Count a token lookup for an IP and refuse it past the limit.

    The window is kept in process memory, so each worker process counts
    separately.

    Raises:
        BookingError: RATE_LIMITED
    """
    now = now or utc_now()
    limit = current_app.config.get('LOOKUP_RATE_LIMIT', 5)
    window = timedelta(minutes=current_app.config.get('LOOKUP_RATE_WINDOW_MINUTES', 15))

    with _lookup_lock:
        attempts = _lookup_attempts[ip or 'unknown']
        while attempts and attempts[0] <= now - window:
            attempts.popleft()
        if len(attempts) >= limit:
            raise BookingError('Too many attempts. Please try again later.', 'RATE_LIMITED')
        attempts.append(now)


def reset_lookup_attempts() -> None:
    """Forget all counted lookups."""
    with _lookup_lock:
        _lookup_attempts.clear()


# =============================================================================
# CAPTAIN PAGE
# =============================================================================

def get_public_captain(captain_id: int) -> dict:
    """
    Data for a captain's public booking page.

    A hibernating captain still gets a page; it shows the hibernation
    details and no trip types.

    Returns:
        dict with captain, trip_types and hibernation

    Raises:
        BookingError: NOT_FOUND
    """
    profile = get_profile_by_id(captain_id)
    if not profile or not profile.get('active'):
        raise BookingError('Captain not found', 'NOT_FOUND')

    hibernation = get_hibernation_info(profile)
    trip_types = []
    if not hibernation['is_hibernating']:
        trip_types = [
            {field: trip[field] for field in PUBLIC_TRIP_FIELDS}
            for trip in get_trip_types(captain_id, active_only=True)
        ]

    return {
        'captain': get_public_profile(profile),
        'trip_types': trip_types,
        'hibernation': hibernation,
    }


# =============================================================================
# BOOKING SUBMISSION
# =============================================================================

def _clean_passengers(raw) -> list:
    passengers = []
    for passenger in raw or []:
        if not isinstance(passenger, dict):
            continue
        name = sanitize_input(passenger.get('full_name') or '', 200)
        if not name:
            continue
        passengers.append({
            'full_name': name,
            'email': (passenger.get('email') or '').strip().lower() or None,
            'phone': (passenger.get('phone') or '').strip() or None,
        })
    return passengers


def create_public_booking(data: dict, now=None) -> dict:
    """
    Create a booking submitted from the public booking page.

    The slot is re-checked against the captain's schedule, then the overlap
    check and insert run in one write transaction so a slot taken in the
    meantime is refused instead of double booked.

    Args:
        data: captain_id, trip_type_id, scheduled_date (YYYY-MM-DD),
            scheduled_time (HH:MM), guest_name, guest_email, guest_phone,
            party_size, passengers, special_requests
        now: Aware current time (for tests)

    Returns:
        dict with booking_id, reference, confirmation_code, guest_token,
        management_token, scheduled_start, scheduled_end,
        total_price_cents, deposit_amount_cents

    Raises:
        BookingError: VALIDATION, CAPACITY, NOT_FOUND, HIBERNATING,
            UNAVAILABLE, SLOT_UNAVAILABLE or DATABASE
    """
    now = now or utc_now()

    guest_name = sanitize_input(data.get('guest_name') or '', 200)
    if not guest_name:
        raise BookingError('Guest name is required', 'VALIDATION')

    guest_email = (data.get('guest_email') or '').strip().lower()
    if not validate_email(guest_email):
        raise BookingError('Valid email is required', 'VALIDATION')

    guest_phone = (data.get('guest_phone') or '').strip() or None
    if guest_phone and not validate_phone(guest_phone):
        raise BookingError('Invalid phone number format', 'VALIDATION')

    max_party = current_app.config.get('MAX_PARTY_SIZE', 6)
    ok, party_size, _ = validate_positive_integer(data.get('party_size'), 'Party size', max_party)
    if not ok:
        raise BookingError(f'Party size must be between 1 and {max_party}', 'CAPACITY')

    try:
        day = parse_date(data.get('scheduled_date'))
    except (TypeError, ValueError):
        raise BookingError('Invalid date format', 'VALIDATION') from None
    scheduled_time = data.get('scheduled_time')
    if not validate_time_format(scheduled_time):
        raise BookingError('Invalid time format', 'VALIDATION')

    profile = get_profile_by_id(data.get('captain_id'))
    if not profile or not profile.get('active'):
        raise BookingError('Captain not found', 'NOT_FOUND')
    if profile.get('is_hibernating'):
        raise BookingError('Captain is not accepting bookings', 'HIBERNATING')

    trip_type = get_trip_type_by_id(data.get('trip_type_id'))
    if not trip_type or trip_type['owner_id'] != profile['id'] or not trip_type['is_active']:
        raise BookingError('Trip type not found', 'NOT_FOUND')

    start = combine_local(day, scheduled_time, profile.get('timezone'))
    end = start + timedelta(hours=float(trip_type['duration_hours']))

    if not is_slot_available(profile, trip_type, start, now=now):
        raise BookingError('Selected time slot is no longer available', 'UNAVAILABLE')

    total = get_price_cents(trip_type)
    values = {
        'trip_type_id': trip_type['id'],
        'guest_name': guest_name,
        'guest_email': guest_email,
        'guest_phone': guest_phone,
        'party_size': party_size,
        'scheduled_start': to_db_timestamp(start),
        'scheduled_end': to_db_timestamp(end),
        'status': 'pending_deposit',
        'payment_status': 'unpaid',
        'total_price_cents': total,
        'deposit_paid_cents': 0,
        'balance_due_cents': total,
        'special_requests': sanitize_input(data.get('special_requests') or '', 2000) or None,
        'confirmation_code': generate_confirmation_code(),
        'management_token': generate_token(),
    }
    guest_token = generate_token()

    db = get_db()
    try:
        begin_immediate(db)
        cursor = db.cursor()

        if has_conflict(profile['id'], start, end, cursor=cursor):
            raise BookingError('Selected time slot is no longer available', 'SLOT_UNAVAILABLE')

        booking_id = insert_booking_row(cursor, profile['id'], values)

        cursor.execute('''
            INSERT INTO guest_tokens (booking_id, token, expires_at)
            VALUES (?, ?, ?)
        ''', (booking_id, guest_token,
              to_db_timestamp(start + timedelta(days=GUEST_TOKEN_DAYS_AFTER_TRIP))))

        cursor.executemany('''
            INSERT INTO passengers (booking_id, full_name, email, phone, is_primary_contact)
            VALUES (?, ?, ?, ?, 0)
        ''', [(booking_id, p['full_name'], p['email'], p['phone'])
              for p in _clean_passengers(data.get('passengers'))])

        create_booking_log(
            booking_id, 'booking_created',
            'Booking created via public booking form',
            new_value={'status': 'pending_deposit', 'scheduled_start': values['scheduled_start']},
            actor_type='guest',
            cursor=cursor
        )
        db.commit()
    except BookingError:
        db.rollback()
        raise
    except sqlite3.Error as e:
        db.rollback()
        logger.error('Failed to create public booking: %s', e, exc_info=True)
        raise BookingError('Failed to create booking', 'DATABASE') from e

    logger.info('Guest booking %s created for captain %s', booking_id, profile['id'])

    booking = get_booking_by_id(booking_id)
    notify_booking_received(booking, profile)

    return {
        'booking_id': booking_id,
        'reference': short_booking_ref(booking_id),
        'confirmation_code': values['confirmation_code'],
        'guest_token': guest_token,
        'management_token': values['management_token'],
        'scheduled_start': values['scheduled_start'],
        'scheduled_end': values['scheduled_end'],
        'total_price_cents': total,
        'deposit_amount_cents': get_deposit_cents(trip_type),
    }


# =============================================================================
# MANAGE PAGE
# =============================================================================

def _resolve_token(token: str, now) -> int:
    """
    Find the booking a guest token or management token points to.

    Raises:
        BookingError: NOT_FOUND, or UNAUTHORIZED for an expired guest token
    """
    db = get_db()
    cursor = db.cursor()

    cursor.execute('SELECT booking_id, expires_at FROM guest_tokens WHERE token = ?', (token,))
    row = cursor.fetchone()
    if row:
        if from_db_timestamp(row['expires_at']) <= now:
            raise BookingError('This link has expired', 'UNAUTHORIZED')
        return row['booking_id']

    cursor.execute('SELECT id FROM bookings WHERE management_token = ?', (token,))
    row = cursor.fetchone()
    if row:
        return row['id']

    raise BookingError('Booking not found', 'NOT_FOUND')


def _booking_for_token(token: str, ip: str, now) -> dict:
    token = (token or '').strip()
    if len(token) < MIN_TOKEN_LENGTH:
        raise BookingError('Invalid booking link', 'VALIDATION')

    check_lookup_rate(ip, now)
    return get_booking_by_id(_resolve_token(token, now))


def lookup_booking_by_token(token: str, ip: str = None, now=None) -> dict:
    """
    Guest view of a booking for the manage page.

    Args:
        token: Guest token or management token (at least 6 characters)
        ip: Client IP for rate limiting
        now: Aware current time (for tests)

    Returns:
        dict with booking, reference, captain, passengers and open
        reschedule offers

    Raises:
        BookingError: VALIDATION, RATE_LIMITED, NOT_FOUND or UNAUTHORIZED
    """
    now = now or utc_now()
    booking = _booking_for_token(token, ip, now)
    profile = get_profile_by_id(booking['captain_id'])

    offers = []
    if booking['status'] == 'weather_hold':
        offers = [
            o for o in get_offers_for_booking(booking['id'])
            if not o['is_selected'] and from_db_timestamp(o['expires_at']) > now
        ]

    return {
        'booking': {field: booking.get(field) for field in GUEST_BOOKING_FIELDS},
        'reference': short_booking_ref(booking['id']),
        'captain': get_public_profile(profile),
        'passengers': [
            {'full_name': p['full_name'], 'is_primary_contact': bool(p['is_primary_contact'])}
            for p in get_booking_passengers(booking['id'])
        ],
        'reschedule_offers': offers,
        'can_pay': booking['status'] == 'pending_deposit' and booking['payment_status'] == 'unpaid',
    }


def guest_select_reschedule_offer(token: str, offer_id: int, ip: str = None, now=None) -> dict:
    """
    Let a guest pick one of the dates offered during a weather hold.

    Raises:
        BookingError: as lookup_booking_by_token, plus the reschedule errors
    """
    now = now or utc_now()
    booking = _booking_for_token(token, ip, now)
    return accept_reschedule_offer(
        offer_id, booking_id=booking['id'], actor_type='guest', now=now
    )


def guest_request_different_dates(token: str, message: str, ip: str = None, now=None) -> None:
    """
    Pass a guest's request for other dates to the captain.

    Only open for bookings on weather hold.

    Raises:
        BookingError: VALIDATION when the booking is not on hold or the
            message is empty, plus the lookup errors
    """
    now = now or utc_now()
    message = sanitize_input(message or '', 2000)
    if not message:
        raise BookingError('Please tell the captain which dates work for you', 'VALIDATION')

    booking = _booking_for_token(token, ip, now)
    if booking['status'] != 'weather_hold':
        raise BookingError('Booking is not on weather hold', 'VALIDATION')

    create_booking_log(
        booking['id'], 'guest_communication',
        'Guest requested different dates',
        new_value={'message': message},
        actor_type='guest'
    )

    profile = get_profile_by_id(booking['captain_id'])
    notify_captain_date_request(booking, profile, message)
