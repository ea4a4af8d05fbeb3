"""
Booking status state machine.
Single transition table for the booking lifecycle, plus the status-changing
operations that every route and job goes through.
"""

import logging

from database import get_db
from models.booking_log import create_booking_log
from utils.datetime_helpers import to_db_timestamp, utc_now

logger = logging.getLogger(__name__)


# =============================================================================
# CONSTANTS
# =============================================================================

BOOKING_STATUSES = (
    'pending_deposit', 'confirmed', 'weather_hold', 'rescheduled',
    'completed', 'cancelled', 'no_show', 'expired'
)

ACTIVE_STATUSES = ('pending_deposit', 'confirmed', 'weather_hold', 'rescheduled')
TERMINAL_STATUSES = ('completed', 'cancelled', 'no_show', 'expired')

PAYMENT_STATUSES = (
    'unpaid', 'pending_verification', 'deposit_paid', 'fully_paid',
    'partially_refunded', 'fully_refunded'
)

PAYMENT_METHODS = ('stripe', 'venmo', 'zelle')

STATUS_LABELS = {
    'pending_deposit': 'Pending Deposit',
    'confirmed': 'Confirmed',
    'weather_hold': 'Weather Hold',
    'rescheduled': 'Rescheduled',
    'completed': 'Completed',
    'cancelled': 'Cancelled',
    'no_show': 'No Show',
    'expired': 'Expired',
}

# (current_status, action) -> next_status. Pairs not listed are rejected.
TRANSITIONS = {
    ('pending_deposit', 'confirm'): 'confirmed',
    ('weather_hold', 'confirm'): 'confirmed',
    ('rescheduled', 'confirm'): 'confirmed',

    ('pending_deposit', 'set_weather_hold'): 'weather_hold',
    ('confirmed', 'set_weather_hold'): 'weather_hold',
    ('rescheduled', 'set_weather_hold'): 'weather_hold',

    ('weather_hold', 'clear_weather_hold'): 'confirmed',
    ('weather_hold', 'reschedule'): 'rescheduled',

    ('confirmed', 'complete'): 'completed',
    ('rescheduled', 'complete'): 'completed',

    ('confirmed', 'mark_no_show'): 'no_show',
    ('rescheduled', 'mark_no_show'): 'no_show',

    ('pending_deposit', 'cancel'): 'cancelled',
    ('confirmed', 'cancel'): 'cancelled',
    ('weather_hold', 'cancel'): 'cancelled',
    ('rescheduled', 'cancel'): 'cancelled',

    ('pending_deposit', 'expire'): 'expired',
}

BOOKING_ACTIONS = tuple(sorted({action for _, action in TRANSITIONS}))


# =============================================================================
# ERRORS
# =============================================================================

class BookingError(ValueError):
    """
    Booking operation failure with a sentinel code.

    Codes: CONFLICT, VALIDATION, NOT_FOUND, UNAUTHORIZED, CAPACITY,
    INVALID_TRANSITION, BLACKOUT, OUTSIDE_HOURS, HIBERNATING, UNAVAILABLE,
    SLOT_UNAVAILABLE, DUPLICATE, RATE_LIMITED, DATABASE, UNKNOWN.
    """

    def __init__(self, message: str, code: str = 'UNKNOWN'):
        super().__init__(message)
        self.code = code


class InvalidTransitionError(BookingError):
    """Raised when an action is not allowed from the booking's current status."""

    def __init__(self, current_status: str, action: str):
        label = STATUS_LABELS.get(current_status, current_status)
        super().__init__(
            f"Cannot {action.replace('_', ' ')} a booking that is {label.lower()}",
            'INVALID_TRANSITION'
        )
        self.current_status = current_status
        self.action = action


# =============================================================================
# TRANSITION TABLE QUERIES
# =============================================================================

def next_status(current_status: str, action: str) -> str:
    """
    Resolve the status an action leads to.

    Args:
        current_status: Booking's current status
        action: Lifecycle action (confirm, cancel, complete, ...)

    Returns:
        The next status

    Raises:
        InvalidTransitionError: If the action is not allowed from current_status
    """
    try:
        return TRANSITIONS[(current_status, action)]
    except KeyError:
        raise InvalidTransitionError(current_status, action) from None


def can_transition(current_status: str, action: str) -> bool:
    """Check whether an action is allowed from a status."""
    return (current_status, action) in TRANSITIONS


def get_allowed_actions(current_status: str) -> list:
    """List the actions available from a status (empty for terminal states)."""
    return [action for (status, action) in TRANSITIONS if status == current_status]


def is_terminal(status: str) -> bool:
    """Terminal bookings accept no further mutation."""
    return status in TERMINAL_STATUSES


# =============================================================================
# STATUS CHANGES
# =============================================================================

def transition_booking(
    booking_id: int,
    action: str,
    actor_type: str = 'captain',
    actor_id: int = None,
    captain_id: int = None,
    reason: str = None,
    updates: dict = None,
    append_note: str = None
) -> dict:
    """
    Apply a lifecycle action to a booking.

    The status update is conditional on the status read, so a concurrent
    change makes this call fail instead of overwriting it.

    Args:
        booking_id: Booking ID
        action: Lifecycle action from the transition table
        actor_type: captain, guest or system
        actor_id: Captain profile ID for captain actions
        captain_id: When given, the booking must belong to this captain
        reason: Optional reason recorded on the timeline
        updates: Extra column values written with the status change
        append_note: Text appended to internal_notes

    Returns:
        dict with booking_id, old_status, new_status

    Raises:
        BookingError: NOT_FOUND, INVALID_TRANSITION or CONFLICT
    """
    db = get_db()
    cursor = db.cursor()

    try:
        cursor.execute('SELECT id, captain_id, status FROM bookings WHERE id = ?', (booking_id,))
        row = cursor.fetchone()
        if not row or (captain_id is not None and row['captain_id'] != captain_id):
            raise BookingError('Booking not found', 'NOT_FOUND')

        old_status = row['status']
        new_status = next_status(old_status, action)

        fields = dict(updates or {})
        fields['status'] = new_status
        assignments = [f'{column} = ?' for column in fields]
        params = list(fields.values())

        if append_note:
            assignments.append('''internal_notes = CASE
                WHEN internal_notes IS NULL OR internal_notes = '' THEN ?
                ELSE internal_notes || char(10) || ? END''')
            params.extend([append_note, append_note])

        cursor.execute(f'''
            UPDATE bookings
            SET {', '.join(assignments)}, updated_at = CURRENT_TIMESTAMP
            WHERE id = ? AND status = ?
        ''', params + [booking_id, old_status])

        if cursor.rowcount == 0:
            raise BookingError('Booking was changed by another request', 'CONFLICT')

        description = (
            f"Status changed from {STATUS_LABELS[old_status]} to {STATUS_LABELS[new_status]}"
        )
        if reason:
            description += f": {reason}"

        create_booking_log(
            booking_id,
            'status_changed',
            description,
            old_value={'status': old_status},
            new_value={'status': new_status, 'reason': reason} if reason else {'status': new_status},
            actor_type=actor_type,
            actor_id=actor_id,
            cursor=cursor
        )

        db.commit()

    except Exception:
        db.rollback()
        raise

    logger.info('Booking %s: %s -> %s (%s)', booking_id, old_status, new_status, action)
    return {'booking_id': booking_id, 'old_status': old_status, 'new_status': new_status}


def cancel_booking(booking_id: int, captain_id: int = None, reason: str = None,
                   actor_type: str = 'captain', actor_id: int = None) -> dict:
    """
    Cancel a booking.

    Rejected with INVALID_TRANSITION once the booking is terminal, so a
    second cancel never changes anything.
    """
    return transition_booking(
        booking_id, 'cancel',
        actor_type=actor_type,
        actor_id=actor_id,
        captain_id=captain_id,
        reason=reason,
        append_note=f'Cancelled: {reason}' if reason else None
    )


def complete_booking(booking_id: int, captain_id: int = None, actor_id: int = None) -> dict:
    """Mark a confirmed or rescheduled trip as completed."""
    return transition_booking(booking_id, 'complete', actor_id=actor_id, captain_id=captain_id)


def mark_no_show(booking_id: int, captain_id: int = None, actor_id: int = None) -> dict:
    """Mark that the guest did not show up."""
    return transition_booking(booking_id, 'mark_no_show', actor_id=actor_id, captain_id=captain_id)


def set_weather_hold(booking_id: int, reason: str, captain_id: int = None,
                     actor_id: int = None) -> dict:
    """
    Put a booking on weather hold.

    The scheduled date is left alone; it only becomes the original date
    once the guest accepts a new one.

    Raises:
        BookingError: VALIDATION when no reason is given
    """
    reason = (reason or '').strip()
    if not reason:
        raise BookingError('A weather hold reason is required', 'VALIDATION')

    return transition_booking(
        booking_id, 'set_weather_hold',
        actor_id=actor_id,
        captain_id=captain_id,
        reason=reason,
        updates={'weather_hold_reason': reason}
    )


def clear_weather_hold(booking_id: int, captain_id: int = None, actor_id: int = None) -> dict:
    """Lift a weather hold; the trip goes ahead as confirmed."""
    return transition_booking(
        booking_id, 'clear_weather_hold',
        actor_id=actor_id,
        captain_id=captain_id,
        updates={'weather_hold_reason': None}
    )


def expire_overdue_bookings(now=None) -> list:
    """
    Expire unpaid bookings whose trip start has passed.

    Args:
        now: Aware datetime used as the cut-off (defaults to current UTC)

    Returns:
        List of expired booking IDs
    """
    cutoff = to_db_timestamp(now or utc_now())

    db = get_db()
    cursor = db.cursor()
    cursor.execute('''
        SELECT id FROM bookings
        WHERE status = 'pending_deposit' AND scheduled_start < ?
        ORDER BY scheduled_start
    ''', (cutoff,))
    overdue_ids = [row['id'] for row in cursor.fetchall()]

    expired = []
    for booking_id in overdue_ids:
        try:
            transition_booking(
                booking_id, 'expire',
                actor_type='system',
                reason='Deposit not received before trip start'
            )
            expired.append(booking_id)
        except BookingError as e:
            # Changed by a captain between the select and the update
            logger.warning('Skipped expiring booking %s: %s', booking_id, e)

    return expired
