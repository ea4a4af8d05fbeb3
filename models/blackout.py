"""
Blackout date model and data access functions.
Captain-specific dates on which no trips may be booked.
"""

import sqlite3
from datetime import timedelta

from database import get_db
from models.booking_state import BookingError
from utils.datetime_helpers import parse_date

MAX_BLACKOUT_RANGE_DAYS = 60


def get_blackout(owner_id: int, blackout_date: str) -> dict:
    """
    Get the blackout covering a date.

    Args:
        owner_id: Captain profile ID
        blackout_date: Date (YYYY-MM-DD)

    Returns:
        Blackout dict or None when the date is open
    """
    db = get_db()
    cursor = db.cursor()
    cursor.execute('''
        SELECT * FROM blackout_dates
        WHERE owner_id = ? AND blackout_date = ?
    ''', (owner_id, blackout_date))
    row = cursor.fetchone()
    return dict(row) if row else None


def is_blackout_date(owner_id: int, blackout_date: str) -> bool:
    """Check whether a date is blacked out for a captain."""
    return get_blackout(owner_id, blackout_date) is not None


def get_blackout_dates(owner_id: int, start_date: str = None, end_date: str = None) -> list:
    """
    Get a captain's blackout dates, optionally within a date range.

    Args:
        owner_id: Captain profile ID
        start_date: First date (inclusive, YYYY-MM-DD)
        end_date: Last date (inclusive, YYYY-MM-DD)

    Returns:
        List of blackout dicts ordered by date
    """
    db = get_db()
    cursor = db.cursor()

    query = 'SELECT * FROM blackout_dates WHERE owner_id = ?'
    params = [owner_id]
    if start_date:
        query += ' AND blackout_date >= ?'
        params.append(start_date)
    if end_date:
        query += ' AND blackout_date <= ?'
        params.append(end_date)
    query += ' ORDER BY blackout_date'

    cursor.execute(query, params)
    return [dict(row) for row in cursor.fetchall()]


def create_blackout_date(owner_id: int, blackout_date: str, reason: str = None) -> int:
    """
    Black out a single date.

    Args:
        owner_id: Captain profile ID
        blackout_date: Date (YYYY-MM-DD)
        reason: Optional reason shown on the calendar

    Returns:
        New blackout ID

    Raises:
        BookingError: VALIDATION for a bad date, DUPLICATE if already blacked out
    """
    try:
        parse_date(blackout_date)
    except (TypeError, ValueError):
        raise BookingError('Date must be YYYY-MM-DD', 'VALIDATION') from None

    db = get_db()
    cursor = db.cursor()
    try:
        cursor.execute('''
            INSERT INTO blackout_dates (owner_id, blackout_date, reason)
            VALUES (?, ?, ?)
        ''', (owner_id, blackout_date, reason))
        db.commit()
    except sqlite3.IntegrityError:
        db.rollback()
        raise BookingError(f'{blackout_date} is already blacked out', 'DUPLICATE') from None

    return cursor.lastrowid


def create_blackout_range(owner_id: int, start_date: str, end_date: str, reason: str = None) -> dict:
    """
    Black out every date in an inclusive range.

    Dates that are already blacked out are skipped.

    Args:
        owner_id: Captain profile ID
        start_date: First date (YYYY-MM-DD)
        end_date: Last date (YYYY-MM-DD)
        reason: Optional reason applied to each date

    Returns:
        dict with created (list of dates) and skipped (list of dates)

    Raises:
        BookingError: VALIDATION for bad or oversized ranges, DUPLICATE when
            every date in the range is already blacked out
    """
    try:
        start = parse_date(start_date)
        end = parse_date(end_date)
    except (TypeError, ValueError):
        raise BookingError('Dates must be YYYY-MM-DD', 'VALIDATION') from None

    if start > end:
        raise BookingError('Start date must be on or before end date', 'VALIDATION')

    total_days = (end - start).days + 1
    if total_days > MAX_BLACKOUT_RANGE_DAYS:
        raise BookingError(
            f'Date range cannot exceed {MAX_BLACKOUT_RANGE_DAYS} days', 'VALIDATION'
        )

    existing = {b['blackout_date'] for b in get_blackout_dates(owner_id, start_date, end_date)}
    wanted = [(start + timedelta(days=i)).isoformat() for i in range(total_days)]
    new_dates = [d for d in wanted if d not in existing]

    if not new_dates:
        raise BookingError('All dates in this range are already blacked out', 'DUPLICATE')

    db = get_db()
    cursor = db.cursor()
    try:
        cursor.executemany('''
            INSERT INTO blackout_dates (owner_id, blackout_date, reason)
            VALUES (?, ?, ?)
        ''', [(owner_id, d, reason) for d in new_dates])
        db.commit()
    except Exception:
        db.rollback()
        raise

    return {
        'created': new_dates,
        'skipped': sorted(existing)
    }


def delete_blackout_date(blackout_id: int, owner_id: int) -> bool:
    """
    Remove a blackout date owned by the captain.

    Returns:
        True if deleted, False if not found for this captain
    """
    db = get_db()
    cursor = db.cursor()
    cursor.execute('''
        DELETE FROM blackout_dates WHERE id = ? AND owner_id = ?
    ''', (blackout_id, owner_id))
    db.commit()
    return cursor.rowcount > 0
