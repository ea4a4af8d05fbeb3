"""
Booking timeline entries.
Append-only log of human-readable events and field diffs per booking.
"""

import json
from database import get_db


def create_booking_log(
    booking_id: int,
    entry_type: str,
    description: str,
    old_value: dict = None,
    new_value: dict = None,
    actor_type: str = 'system',
    actor_id: int = None,
    cursor=None
) -> int:
    """
    Append a timeline entry for a booking.

    When a cursor is passed the insert joins the caller's transaction and is
    not committed here.

    Args:
        booking_id: Booking ID
        entry_type: booking_created, status_changed, payment_received,
            guest_communication, booking_updated, reschedule_offered, ...
        description: Human-readable text shown on the timeline
        old_value: Optional dict of previous values
        new_value: Optional dict of new values
        actor_type: captain, guest or system
        actor_id: Captain profile ID when the actor is a captain
        cursor: Optional cursor of an open transaction

    Returns:
        New log entry ID
    """
    own_transaction = cursor is None
    db = get_db()
    if own_transaction:
        cursor = db.cursor()

    cursor.execute('''
        INSERT INTO booking_logs (
            booking_id, entry_type, description, old_value, new_value,
            actor_type, actor_id
        ) VALUES (?, ?, ?, ?, ?, ?, ?)
    ''', (
        booking_id,
        entry_type,
        description,
        json.dumps(old_value) if old_value is not None else None,
        json.dumps(new_value) if new_value is not None else None,
        actor_type,
        actor_id
    ))
    log_id = cursor.lastrowid

    if own_transaction:
        db.commit()

    return log_id


def get_booking_logs(booking_id: int, entry_type: str = None) -> list:
    """
    Get the timeline for a booking, oldest first.

    Args:
        booking_id: Booking ID
        entry_type: Optional filter by entry type

    Returns:
        List of log dicts with old_value/new_value decoded
    """
    db = get_db()
    cursor = db.cursor()

    query = 'SELECT * FROM booking_logs WHERE booking_id = ?'
    params = [booking_id]
    if entry_type:
        query += ' AND entry_type = ?'
        params.append(entry_type)
    query += ' ORDER BY created_at, id'

    cursor.execute(query, params)

    logs = []
    for row in cursor.fetchall():
        entry = dict(row)
        for key in ('old_value', 'new_value'):
            if entry[key]:
                entry[key] = json.loads(entry[key])
        logs.append(entry)
    return logs
