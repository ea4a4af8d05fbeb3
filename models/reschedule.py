"""
Weather holds and reschedule offers.
A captain puts a trip on hold and offers alternative dates; the guest (or
the captain on their behalf) picks one and the booking moves.
"""

import logging
from datetime import timedelta

from database import get_db, begin_immediate
from models.availability import has_conflict
from models.blackout import is_blackout_date
from models.booking import get_booking_by_id
from models.booking_log import create_booking_log
from models.booking_state import BookingError, set_weather_hold, transition_booking
from models.profile import get_profile_by_id
from services.notifications import notify_rescheduled, notify_weather_hold
from utils.datetime_helpers import (
    from_db_timestamp, get_timezone, parse_client_datetime, to_db_timestamp, utc_now
)

logger = logging.getLogger(__name__)

RESCHEDULE_OFFER_DAYS = 7
AUTO_OFFER_EXPIRY_DAYS = 14
AUTO_OFFER_WEEKS = 3


def get_offer_by_id(offer_id: int) -> dict:
    """Get a reschedule offer by ID, or None."""
    db = get_db()
    cursor = db.cursor()
    cursor.execute('SELECT * FROM reschedule_offers WHERE id = ?', (offer_id,))
    row = cursor.fetchone()
    return dict(row) if row else None


def get_offers_for_booking(booking_id: int) -> list:
    """Get a booking's reschedule offers, earliest proposed date first."""
    db = get_db()
    cursor = db.cursor()
    cursor.execute('''
        SELECT * FROM reschedule_offers
        WHERE booking_id = ?
        ORDER BY proposed_start
    ''', (booking_id,))
    return [dict(row) for row in cursor.fetchall()]


def _insert_offers(cursor, booking_id: int, slots: list, expires_at) -> list:
    """Insert (start, end) offers on an open cursor; returns the new IDs."""
    ids = []
    for start, end in slots:
        cursor.execute('''
            INSERT INTO reschedule_offers (booking_id, proposed_start, proposed_end, expires_at)
            VALUES (?, ?, ?, ?)
        ''', (booking_id, to_db_timestamp(start), to_db_timestamp(end), to_db_timestamp(expires_at)))
        ids.append(cursor.lastrowid)
    return ids


def _parse_slots(slots: list, tz_name: str, now) -> list:
    """
    Validate offered slots.

    Raises:
        BookingError: VALIDATION
    """
    if not slots:
        raise BookingError('At least one reschedule slot is required', 'VALIDATION')

    parsed = []
    for slot in slots:
        try:
            start = parse_client_datetime(slot.get('start'), tz_name)
            end = parse_client_datetime(slot.get('end'), tz_name)
        except (AttributeError, ValueError):
            raise BookingError('Invalid slot timestamps', 'VALIDATION') from None
        if end <= start:
            raise BookingError('Slot end must be after its start', 'VALIDATION')
        if start <= now:
            raise BookingError('Reschedule slots must be in the future', 'VALIDATION')
        parsed.append((start, end))
    return parsed


def _load_booking(booking_id: int, captain_id: int = None) -> dict:
    booking = get_booking_by_id(booking_id)
    if not booking or (captain_id is not None and booking['captain_id'] != captain_id):
        raise BookingError('Booking not found', 'NOT_FOUND')
    return booking


def create_reschedule_offers(booking_id: int, captain_id: int, slots: list,
                             actor_id: int = None, now=None) -> list:
    """
    Offer alternative dates for a booking on weather hold.

    Args:
        booking_id: Booking ID
        captain_id: Owning captain
        slots: List of {start, end} ISO datetimes (naive values are local)
        actor_id: Captain performing the action
        now: Aware current time (for tests)

    Returns:
        List of created offer dicts

    Raises:
        BookingError: NOT_FOUND or VALIDATION
    """
    now = now or utc_now()
    booking = _load_booking(booking_id, captain_id)
    if booking['status'] != 'weather_hold':
        raise BookingError(
            'Reschedule offers can only be created for bookings on weather hold', 'VALIDATION'
        )

    parsed = _parse_slots(slots, booking.get('captain_timezone'), now)

    db = get_db()
    cursor = db.cursor()
    try:
        _insert_offers(cursor, booking_id, parsed, now + timedelta(days=RESCHEDULE_OFFER_DAYS))
        create_booking_log(
            booking_id, 'reschedule_offered',
            f'{len(parsed)} reschedule options offered to guest',
            new_value={'offers': [to_db_timestamp(s) for s, _ in parsed]},
            actor_type='captain',
            actor_id=actor_id,
            cursor=cursor
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    return get_offers_for_booking(booking_id)


def suggest_offer_slots(booking: dict, now=None) -> list:
    """
    Same weekday and time over the next AUTO_OFFER_WEEKS weeks, skipping
    blacked out days and times that overlap another booking.
    """
    now = now or utc_now()
    tz = get_timezone(booking.get('captain_timezone'))
    start = from_db_timestamp(booking['scheduled_start']).astimezone(tz)
    length = from_db_timestamp(booking['scheduled_end']) - from_db_timestamp(booking['scheduled_start'])

    slots = []
    for week in range(1, AUTO_OFFER_WEEKS + 1):
        candidate = start + timedelta(weeks=week)
        if candidate <= now:
            continue
        if is_blackout_date(booking['captain_id'], candidate.date().isoformat()):
            continue
        if has_conflict(booking['captain_id'], candidate, candidate + length,
                        exclude_booking_id=booking['id']):
            continue
        slots.append((candidate, candidate + length))
    return slots


def place_weather_hold(booking_id: int, captain_id: int, reason: str,
                       proposed_dates: list = None, actor_id: int = None, now=None) -> dict:
    """
    Put a trip on weather hold and offer the guest new dates.

    Args:
        booking_id: Booking ID
        captain_id: Owning captain
        reason: Hold reason shown to the guest (required)
        proposed_dates: Optional list of {start, end}; when omitted, offers
            are generated for the same weekday and time in the coming weeks
        actor_id: Captain performing the action
        now: Aware current time (for tests)

    Returns:
        dict with booking_id, status and offers

    Raises:
        BookingError: NOT_FOUND, VALIDATION or INVALID_TRANSITION
    """
    now = now or utc_now()
    booking = _load_booking(booking_id, captain_id)

    slots = (_parse_slots(proposed_dates, booking.get('captain_timezone'), now)
             if proposed_dates else None)

    set_weather_hold(
        booking_id, reason,
        captain_id=captain_id,
        actor_id=actor_id
    )

    if slots is None:
        slots = suggest_offer_slots(booking, now)

    db = get_db()
    cursor = db.cursor()
    try:
        _insert_offers(cursor, booking_id, slots, now + timedelta(days=AUTO_OFFER_EXPIRY_DAYS))
        if slots:
            create_booking_log(
                booking_id, 'reschedule_offered',
                f'{len(slots)} reschedule options offered to guest',
                new_value={'offers': [to_db_timestamp(s) for s, _ in slots]},
                actor_type='captain',
                actor_id=actor_id,
                cursor=cursor
            )
        db.commit()
    except Exception:
        db.rollback()
        raise

    offers = [o for o in get_offers_for_booking(booking_id) if not o['is_selected']]
    profile = get_profile_by_id(booking['captain_id'])
    notify_weather_hold(booking, profile, reason.strip(), offers)

    return {'booking_id': booking_id, 'status': 'weather_hold', 'offers': offers}


def accept_reschedule_offer(offer_id: int, booking_id: int = None, captain_id: int = None,
                            actor_type: str = 'guest', actor_id: int = None, now=None) -> dict:
    """
    Move a weather-held booking to an offered date.

    The overlap check, the offer update and the status change share one
    write transaction.

    Args:
        offer_id: Reschedule offer ID
        booking_id: When given, the offer must belong to this booking
        captain_id: When given, the booking must belong to this captain
        actor_type: guest or captain
        actor_id: Captain profile ID for captain actions
        now: Aware current time (for tests)

    Returns:
        dict with booking_id, status, scheduled_start, scheduled_end

    Raises:
        BookingError: NOT_FOUND, VALIDATION (taken or expired offer),
            SLOT_UNAVAILABLE or INVALID_TRANSITION
    """
    now = now or utc_now()
    offer = get_offer_by_id(offer_id)
    if not offer or (booking_id is not None and offer['booking_id'] != booking_id):
        raise BookingError('Reschedule offer not found', 'NOT_FOUND')

    booking = _load_booking(offer['booking_id'], captain_id)
    if booking['status'] != 'weather_hold':
        raise BookingError('Booking is not on weather hold', 'VALIDATION')
    if offer['is_selected']:
        raise BookingError('This offer has already been selected', 'VALIDATION')
    if from_db_timestamp(offer['expires_at']) <= now:
        raise BookingError('This offer has expired', 'VALIDATION')

    start = from_db_timestamp(offer['proposed_start'])
    end = from_db_timestamp(offer['proposed_end'])

    db = get_db()
    try:
        begin_immediate(db)
        cursor = db.cursor()

        if has_conflict(booking['captain_id'], start, end,
                        exclude_booking_id=booking['id'], cursor=cursor):
            raise BookingError('That date is no longer available', 'SLOT_UNAVAILABLE')

        cursor.execute('''
            UPDATE reschedule_offers SET is_selected = 1, selected_at = ? WHERE id = ?
        ''', (to_db_timestamp(now), offer_id))
        cursor.execute('''
            DELETE FROM reschedule_offers WHERE booking_id = ? AND id != ? AND is_selected = 0
        ''', (booking['id'], offer_id))

        create_booking_log(
            booking['id'], 'rescheduled',
            f"Rescheduled to {offer['proposed_start']} UTC",
            old_value={'scheduled_start': booking['scheduled_start'],
                       'scheduled_end': booking['scheduled_end']},
            new_value={'scheduled_start': offer['proposed_start'],
                       'scheduled_end': offer['proposed_end']},
            actor_type=actor_type,
            actor_id=actor_id,
            cursor=cursor
        )
    except Exception:
        db.rollback()
        raise

    # Commits the offer changes together with the status change
    transition_booking(
        booking['id'], 'reschedule',
        actor_type=actor_type,
        actor_id=actor_id,
        updates={
            'scheduled_start': offer['proposed_start'],
            'scheduled_end': offer['proposed_end'],
            # A second move keeps the first original date
            'original_date_if_rescheduled': (booking['original_date_if_rescheduled']
                                             or booking['scheduled_start']),
            'weather_hold_reason': None,
        }
    )

    updated = _load_booking(booking['id'])
    notify_rescheduled(updated, get_profile_by_id(updated['captain_id']))

    return {
        'booking_id': booking['id'],
        'status': updated['status'],
        'scheduled_start': updated['scheduled_start'],
        'scheduled_end': updated['scheduled_end'],
    }
