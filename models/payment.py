"""
Payment tracking and verification.

Venmo/Zelle payments are declared by the guest and verified by the captain;
card deposits arrive through the Stripe webhook; cash and refunds are
recorded by hand. ``deposit_paid_cents`` holds everything paid toward the
trip price so far.
"""

import logging
from datetime import timedelta

from database import get_db
from models.booking import get_booking_by_id, get_booking_for_captain
from models.booking_log import create_booking_log
from models.booking_state import (
    ACTIVE_STATUSES, BookingError, cancel_booking, is_terminal, transition_booking
)
from models.profile import get_profile_by_id
from models.trip_type import get_deposit_cents, get_trip_type_by_id
from services import IntegrationError
from services.notifications import (
    notify_alt_payment_submitted, notify_payment_confirmed, notify_payment_reminder
)
from utils.datetime_helpers import to_db_timestamp, utc_now
from utils.helpers import format_cents, payment_method_label

logger = logging.getLogger(__name__)

MAX_PAYMENT_REMINDERS = 2
REMINDER_INTERVAL_HOURS = 24
VERIFY_ACTIONS = ('confirm', 'remind', 'cancel')
ALT_PAYMENT_METHODS = ('venmo', 'zelle')
MANUAL_PAYMENT_TYPES = ('deposit', 'balance', 'tip')


# =============================================================================
# HELPERS
# =============================================================================

def required_deposit_cents(booking: dict) -> int:
    """Deposit owed for a booking: the trip deposit, or the full price without a trip."""
    trip_type = get_trip_type_by_id(booking['trip_type_id']) if booking.get('trip_type_id') else None
    if trip_type:
        return get_deposit_cents(trip_type)
    return booking['total_price_cents']


def _paid_fields(booking: dict, paid_cents: int, now) -> dict:
    """Column values for a booking once paid_cents has been received."""
    total = booking['total_price_cents']
    balance = max(0, total - paid_cents)
    fields = {
        'deposit_paid_cents': paid_cents,
        'balance_due_cents': balance,
        'payment_status': 'fully_paid' if paid_cents >= total else 'deposit_paid',
    }
    if not booking.get('deposit_paid_at'):
        fields['deposit_paid_at'] = to_db_timestamp(now)
    if balance == 0 and not booking.get('balance_paid_at'):
        fields['balance_paid_at'] = to_db_timestamp(now)
    return fields


def _update_fields(cursor, booking: dict, fields: dict) -> None:
    """
    Write columns on a booking whose status has not moved since it was read.

    Raises:
        BookingError: CONFLICT when the status changed meanwhile
    """
    assignments = ', '.join(f'{column} = ?' for column in fields)
    cursor.execute(f'''
        UPDATE bookings
        SET {assignments}, updated_at = CURRENT_TIMESTAMP
        WHERE id = ? AND status = ?
    ''', list(fields.values()) + [booking['id'], booking['status']])
    if cursor.rowcount == 0:
        raise BookingError('Booking was changed by another request', 'CONFLICT')


def _insert_payment(cursor, booking_id: int, amount_cents: int, payment_type: str,
                    notes: str = None) -> int:
    cursor.execute('''
        INSERT INTO payments (booking_id, amount_cents, payment_type, notes)
        VALUES (?, ?, ?, ?)
    ''', (booking_id, amount_cents, payment_type, notes))
    return cursor.lastrowid


def _save_payment(booking: dict, fields: dict, log_description: str, actor_type: str,
                  actor_id: int = None, confirm: bool = False, payment: tuple = None) -> None:
    """
    Persist payment columns, an optional payments row and a payment_received
    log entry in one transaction.

    Args:
        booking: Booking as read
        fields: Column updates
        log_description: Timeline text
        actor_type: captain, guest or system
        actor_id: Captain profile ID
        confirm: Move a pending booking to confirmed in the same commit
        payment: Optional (amount_cents, payment_type, notes)
    """
    db = get_db()
    cursor = db.cursor()
    try:
        if payment and payment[0] > 0:
            _insert_payment(cursor, booking['id'], *payment)

        create_booking_log(
            booking['id'], 'payment_received', log_description,
            old_value={'payment_status': booking['payment_status']},
            new_value={k: v for k, v in fields.items() if not k.endswith('_at')},
            actor_type=actor_type,
            actor_id=actor_id,
            cursor=cursor
        )

        if confirm:
            # Commits the rows above together with the status change
            transition_booking(
                booking['id'], 'confirm',
                actor_type=actor_type,
                actor_id=actor_id,
                updates=fields
            )
            return

        _update_fields(cursor, booking, fields)
        db.commit()
    except Exception:
        db.rollback()
        raise


def _load(booking_id: int, captain_id: int) -> dict:
    booking = get_booking_for_captain(booking_id, captain_id)
    if not booking:
        raise BookingError('Booking not found', 'NOT_FOUND')
    return booking


# =============================================================================
# CAPTAIN VERIFICATION
# =============================================================================

def verify_payment(booking_id: int, captain_id: int, action: str, actor_id: int = None,
                   now=None) -> dict:
    """
    Confirm, chase or cancel a guest's Venmo/Zelle payment.

    confirm: records the deposit (trip deposit, or the full price without
        a trip) and confirms the booking; a deposit covering the price
        marks it fully paid.
    remind: emails the guest, at most MAX_PAYMENT_REMINDERS times.
    cancel: cancels the booking with a note that payment never arrived.

    Args:
        booking_id: Booking ID
        captain_id: Owning captain
        action: confirm, remind or cancel
        actor_id: Captain performing the action
        now: Aware current time (for tests)

    Returns:
        dict with action (confirmed, reminded, cancelled) and the booking

    Raises:
        BookingError: VALIDATION, NOT_FOUND, INVALID_TRANSITION or CONFLICT
        IntegrationError: When the reminder email cannot be delivered
    """
    if action not in VERIFY_ACTIONS:
        raise BookingError('Invalid action', 'VALIDATION')

    now = now or utc_now()
    booking = _load(booking_id, captain_id)
    profile = get_profile_by_id(captain_id)
    method_label = payment_method_label(booking.get('payment_method'))

    if action == 'confirm':
        deposit = required_deposit_cents(booking)
        fields = _paid_fields(booking, deposit, now)
        if booking['status'] not in ('pending_deposit', 'confirmed', 'weather_hold', 'rescheduled'):
            raise BookingError(
                f"Cannot confirm payment for a booking that is {booking['status'].replace('_', ' ')}",
                'INVALID_TRANSITION'
            )

        _save_payment(
            booking, fields,
            f'Captain confirmed {method_label} payment received.',
            actor_type='captain',
            actor_id=actor_id,
            confirm=booking['status'] != 'confirmed',
            payment=(max(0, deposit - booking['deposit_paid_cents']), 'deposit',
                     f'{method_label} payment verified')
        )

        updated = get_booking_by_id(booking_id)
        notify_payment_confirmed(updated, profile, fully_paid=fields['payment_status'] == 'fully_paid')
        return {'action': 'confirmed', 'booking': updated}

    if action == 'remind':
        if (booking['payment_reminder_count'] or 0) >= MAX_PAYMENT_REMINDERS:
            raise BookingError(
                f'Maximum reminders ({MAX_PAYMENT_REMINDERS}) already sent', 'VALIDATION'
            )
        if is_terminal(booking['status']):
            raise BookingError(
                f"Cannot remind a guest about a booking that is {booking['status'].replace('_', ' ')}",
                'INVALID_TRANSITION'
            )

        notify_payment_reminder(booking, profile)
        _record_reminder(booking, now, actor_type='captain', actor_id=actor_id)
        return {'action': 'reminded', 'booking': get_booking_by_id(booking_id)}

    cancel_booking(
        booking_id,
        captain_id=captain_id,
        reason=f'{method_label} payment not received.',
        actor_id=actor_id
    )
    return {'action': 'cancelled', 'booking': get_booking_by_id(booking_id)}


def _record_reminder(booking: dict, now, actor_type: str, actor_id: int = None) -> None:
    """
    Count a sent reminder.

    The increment is conditional on the count read, so two concurrent
    reminders cannot both be counted as the last allowed one.

    Raises:
        BookingError: CONFLICT
    """
    count = booking['payment_reminder_count'] or 0
    db = get_db()
    cursor = db.cursor()
    try:
        cursor.execute('''
            UPDATE bookings
            SET payment_reminder_count = ?, payment_reminder_last_sent = ?,
                updated_at = CURRENT_TIMESTAMP
            WHERE id = ? AND payment_reminder_count = ?
        ''', (count + 1, to_db_timestamp(now), booking['id'], count))
        if cursor.rowcount == 0:
            raise BookingError('Booking was changed by another request', 'CONFLICT')

        create_booking_log(
            booking['id'], 'guest_communication',
            'Payment reminder sent to guest via email.',
            new_value={'payment_reminder_count': count + 1},
            actor_type=actor_type,
            actor_id=actor_id,
            cursor=cursor
        )
        db.commit()
    except Exception:
        db.rollback()
        raise


# =============================================================================
# GUEST DECLARED PAYMENTS
# =============================================================================

def complete_alt_payment(booking_id: int, method: str, auto_confirm: bool = None) -> dict:
    """
    Record that a guest sent a Venmo or Zelle payment.

    The payment waits for the captain's verification. With auto-confirm
    (the captain's setting unless overridden) the booking is confirmed at
    once; otherwise it stays pending.

    Args:
        booking_id: Booking ID
        method: venmo or zelle
        auto_confirm: Override the captain's auto-confirm setting

    Returns:
        dict with booking_id, status, payment_status, auto_confirmed

    Raises:
        BookingError: VALIDATION or NOT_FOUND
    """
    if method not in ALT_PAYMENT_METHODS:
        raise BookingError('Invalid payment method', 'VALIDATION')

    booking = get_booking_by_id(booking_id)
    if not booking:
        raise BookingError('Booking not found', 'NOT_FOUND')
    if booking['status'] != 'pending_deposit' or booking['payment_status'] != 'unpaid':
        raise BookingError('Booking is not awaiting payment', 'VALIDATION')

    profile = get_profile_by_id(booking['captain_id'])
    if not profile.get(f'{method}_enabled'):
        raise BookingError(f'{payment_method_label(method)} is not accepted by this captain', 'VALIDATION')

    if auto_confirm is None:
        auto_confirm = bool(profile.get('auto_confirm_alt_payments'))

    fields = {'payment_method': method, 'payment_status': 'pending_verification'}
    _save_payment(
        booking, fields,
        f'Guest indicated {method} payment sent. Awaiting captain verification.',
        actor_type='guest',
        confirm=auto_confirm
    )

    updated = get_booking_by_id(booking_id)
    notify_alt_payment_submitted(updated, profile, auto_confirmed=auto_confirm)

    return {
        'booking_id': booking_id,
        'status': updated['status'],
        'payment_status': updated['payment_status'],
        'auto_confirmed': auto_confirm,
    }


# =============================================================================
# MANUAL PAYMENTS AND REFUNDS
# =============================================================================

def record_payment(booking_id: int, captain_id: int, amount_cents, payment_type: str,
                   notes: str = None, actor_id: int = None, now=None) -> dict:
    """
    Record a payment taken outside the app (cash, check, card reader).

    Deposit and balance payments add to the amount paid and confirm a
    pending booking; tips are recorded without touching the balance.

    Returns:
        The updated booking

    Raises:
        BookingError: VALIDATION, NOT_FOUND or INVALID_TRANSITION
    """
    if payment_type not in MANUAL_PAYMENT_TYPES:
        raise BookingError('Payment type must be deposit, balance or tip', 'VALIDATION')
    try:
        amount_cents = int(amount_cents)
    except (TypeError, ValueError):
        raise BookingError('Amount must be a whole number of cents', 'VALIDATION') from None
    if amount_cents <= 0:
        raise BookingError('Amount must be positive', 'VALIDATION')

    now = now or utc_now()
    booking = _load(booking_id, captain_id)
    if booking['status'] in ('cancelled', 'expired'):
        raise BookingError(
            f"Cannot record a payment on a booking that is {booking['status']}", 'INVALID_TRANSITION'
        )

    description = f'{payment_type.title()} payment of {format_cents(amount_cents)} recorded'
    if notes:
        description += f': {notes}'

    if payment_type == 'tip':
        db = get_db()
        cursor = db.cursor()
        try:
            _insert_payment(cursor, booking_id, amount_cents, 'tip', notes)
            create_booking_log(
                booking_id, 'payment_received', description,
                new_value={'tip_cents': amount_cents},
                actor_type='captain', actor_id=actor_id, cursor=cursor
            )
            db.commit()
        except Exception:
            db.rollback()
            raise
        return get_booking_by_id(booking_id)

    if booking['payment_status'] in ('partially_refunded', 'fully_refunded'):
        raise BookingError('Cannot record payments on a refunded booking', 'VALIDATION')

    fields = _paid_fields(booking, booking['deposit_paid_cents'] + amount_cents, now)
    _save_payment(
        booking, fields, description,
        actor_type='captain',
        actor_id=actor_id,
        confirm=booking['status'] == 'pending_deposit',
        payment=(amount_cents, payment_type, notes)
    )
    return get_booking_by_id(booking_id)


def mark_deposit_paid(booking_id: int, captain_id: int, actor_id: int = None, now=None) -> dict:
    """Mark the required deposit as received (confirms a pending booking)."""
    now = now or utc_now()
    booking = _load(booking_id, captain_id)
    if is_terminal(booking['status']):
        raise BookingError(
            f"Cannot mark a {booking['status'].replace('_', ' ')} booking as paid", 'INVALID_TRANSITION'
        )

    paid = max(booking['deposit_paid_cents'], required_deposit_cents(booking))
    _save_payment(
        booking, _paid_fields(booking, paid, now),
        'Deposit marked as paid',
        actor_type='captain',
        actor_id=actor_id,
        confirm=booking['status'] == 'pending_deposit',
        payment=(paid - booking['deposit_paid_cents'], 'deposit', 'Marked as paid')
    )
    return get_booking_by_id(booking_id)


def mark_fully_paid(booking_id: int, captain_id: int, actor_id: int = None, now=None) -> dict:
    """Mark the whole trip price as received."""
    now = now or utc_now()
    booking = _load(booking_id, captain_id)
    if booking['status'] in ('cancelled', 'expired'):
        raise BookingError(
            f"Cannot mark a {booking['status']} booking as paid", 'INVALID_TRANSITION'
        )

    outstanding = booking['total_price_cents'] - booking['deposit_paid_cents']
    _save_payment(
        booking, _paid_fields(booking, booking['total_price_cents'], now),
        'Booking marked as fully paid',
        actor_type='captain',
        actor_id=actor_id,
        confirm=booking['status'] == 'pending_deposit',
        payment=(outstanding, 'balance' if booking['deposit_paid_cents'] else 'deposit',
                 'Marked as fully paid')
    )
    return get_booking_by_id(booking_id)


def get_refunded_cents(booking_id: int) -> int:
    db = get_db()
    cursor = db.cursor()
    cursor.execute('''
        SELECT COALESCE(SUM(amount_cents), 0) FROM payments
        WHERE booking_id = ? AND payment_type = 'refund'
    ''', (booking_id,))
    return cursor.fetchone()[0]


def get_payments(booking_id: int) -> list:
    """Payment rows of a booking, oldest first."""
    db = get_db()
    cursor = db.cursor()
    cursor.execute('SELECT * FROM payments WHERE booking_id = ? ORDER BY created_at, id', (booking_id,))
    return [dict(row) for row in cursor.fetchall()]


def record_refund(booking_id: int, captain_id: int, amount_cents, reason: str = None,
                  actor_id: int = None) -> dict:
    """
    Record a refund given back to the guest.

    Refunds are bounded by what was paid. Refunding everything marks the
    booking fully refunded; anything less, partially refunded.

    Raises:
        BookingError: VALIDATION or NOT_FOUND
    """
    try:
        amount_cents = int(amount_cents)
    except (TypeError, ValueError):
        raise BookingError('Amount must be a whole number of cents', 'VALIDATION') from None
    if amount_cents <= 0:
        raise BookingError('Amount must be positive', 'VALIDATION')

    booking = _load(booking_id, captain_id)
    refunded = get_refunded_cents(booking_id)
    refundable = booking['deposit_paid_cents'] - refunded
    if amount_cents > refundable:
        raise BookingError(
            f'Refund cannot exceed the {format_cents(refundable)} still refundable', 'VALIDATION'
        )

    new_status = ('fully_refunded' if refunded + amount_cents >= booking['deposit_paid_cents']
                  else 'partially_refunded')

    db = get_db()
    cursor = db.cursor()
    try:
        _insert_payment(cursor, booking_id, amount_cents, 'refund', reason)
        _update_fields(cursor, booking, {'payment_status': new_status})
        create_booking_log(
            booking_id, 'refund_issued',
            f'Refund of {format_cents(amount_cents)} recorded' + (f': {reason}' if reason else ''),
            old_value={'payment_status': booking['payment_status']},
            new_value={'payment_status': new_status, 'refund_cents': amount_cents},
            actor_type='captain',
            actor_id=actor_id,
            cursor=cursor
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    return get_booking_by_id(booking_id)


# =============================================================================
# STRIPE
# =============================================================================

def apply_stripe_checkout_completed(booking_id: int, session_id: str, deposit_cents: int = None,
                                    now=None) -> dict:
    """
    Apply a completed Checkout session to its booking.

    Replaying the same session is a no-op.

    Args:
        booking_id: Booking ID from the session metadata
        session_id: Checkout session ID
        deposit_cents: Amount charged (defaults to the required deposit)
        now: Aware current time (for tests)

    Returns:
        dict with booking_id, duplicate flag and payment_status

    Raises:
        BookingError: NOT_FOUND
    """
    now = now or utc_now()
    booking = get_booking_by_id(booking_id)
    if not booking:
        raise BookingError('Booking not found', 'NOT_FOUND')

    if booking.get('stripe_session_id') == session_id:
        logger.info('Stripe session %s already applied to booking %s', session_id, booking_id)
        return {'booking_id': booking_id, 'duplicate': True,
                'payment_status': booking['payment_status']}

    if deposit_cents is None:
        deposit_cents = required_deposit_cents(booking)

    fields = _paid_fields(booking, booking['deposit_paid_cents'] + deposit_cents, now)
    fields.update({'payment_method': 'stripe', 'stripe_session_id': session_id})

    _save_payment(
        booking, fields,
        f'Card deposit of {format_cents(deposit_cents)} received via Stripe',
        actor_type='system',
        confirm=booking['status'] == 'pending_deposit',
        payment=(deposit_cents, 'deposit', f'Stripe session {session_id}')
    )

    updated = get_booking_by_id(booking_id)
    notify_payment_confirmed(
        updated, get_profile_by_id(updated['captain_id']),
        fully_paid=fields['payment_status'] == 'fully_paid'
    )
    return {'booking_id': booking_id, 'duplicate': False, 'payment_status': fields['payment_status']}


# =============================================================================
# SCHEDULED JOBS
# =============================================================================

def send_due_payment_reminders(now=None) -> list:
    """
    Remind guests whose Venmo/Zelle payment is still unverified.

    A booking is due when it was created over a day ago, has fewer than
    MAX_PAYMENT_REMINDERS reminders, and none was sent in the last day.

    Returns:
        List of booking IDs reminded
    """
    now = now or utc_now()
    cutoff = to_db_timestamp(now - timedelta(hours=REMINDER_INTERVAL_HOURS))
    placeholders = ', '.join('?' for _ in ACTIVE_STATUSES)

    db = get_db()
    cursor = db.cursor()
    cursor.execute(f'''
        SELECT id FROM bookings
        WHERE payment_status = 'pending_verification'
          AND status IN ({placeholders})
          AND created_at < ?
          AND payment_reminder_count < ?
          AND (payment_reminder_last_sent IS NULL OR payment_reminder_last_sent < ?)
        ORDER BY created_at
    ''', [*ACTIVE_STATUSES, cutoff, MAX_PAYMENT_REMINDERS, cutoff])
    due_ids = [row['id'] for row in cursor.fetchall()]

    reminded = []
    for booking_id in due_ids:
        booking = get_booking_by_id(booking_id)
        try:
            notify_payment_reminder(booking, get_profile_by_id(booking['captain_id']))
            _record_reminder(booking, now, actor_type='system')
            reminded.append(booking_id)
        except (IntegrationError, BookingError) as e:
            logger.warning('Payment reminder for booking %s not sent: %s', booking_id, e)

    return reminded
