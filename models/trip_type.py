"""
Trip type model and data access functions.
Trip offerings a captain sells: duration, price and required deposit.
"""

from database import get_db
from utils.helpers import dollars_to_cents


def get_trip_type_by_id(trip_type_id: int) -> dict:
    """
    Get trip type by ID.

    Args:
        trip_type_id: Trip type ID

    Returns:
        Trip type dict or None if not found
    """
    db = get_db()
    cursor = db.cursor()
    cursor.execute('SELECT * FROM trip_types WHERE id = ?', (trip_type_id,))
    row = cursor.fetchone()
    return dict(row) if row else None


def get_trip_types(owner_id: int, active_only: bool = False) -> list:
    """
    Get a captain's trip types.

    Args:
        owner_id: Captain profile ID
        active_only: Only return trip types open for booking

    Returns:
        List of trip type dicts ordered by title
    """
    db = get_db()
    cursor = db.cursor()

    query = 'SELECT * FROM trip_types WHERE owner_id = ?'
    if active_only:
        query += ' AND is_active = 1'
    query += ' ORDER BY title'

    cursor.execute(query, (owner_id,))
    return [dict(row) for row in cursor.fetchall()]


def get_deposit_cents(trip_type: dict) -> int:
    """Deposit required for a trip type, in cents."""
    return dollars_to_cents(trip_type.get('deposit_amount'))


def get_price_cents(trip_type: dict) -> int:
    """Total price of a trip type, in cents."""
    return dollars_to_cents(trip_type.get('price_total'))


def _validate_trip_type(data: dict) -> None:
    """
    Validate trip type input.

    Raises:
        ValueError: On missing title or invalid amounts
    """
    if not (data.get('title') or '').strip():
        raise ValueError('Title is required')

    try:
        duration = float(data.get('duration_hours'))
        price = float(data.get('price_total', 0))
        deposit = float(data.get('deposit_amount', 0))
    except (TypeError, ValueError):
        raise ValueError('Duration, price and deposit must be numbers') from None

    if duration <= 0 or duration > 24:
        raise ValueError('Duration must be between 0 and 24 hours')
    if price < 0 or deposit < 0:
        raise ValueError('Price and deposit cannot be negative')
    if deposit > price:
        raise ValueError('Deposit cannot exceed the total price')


def create_trip_type(owner_id: int, data: dict) -> int:
    """
    Create a trip type.

    Args:
        owner_id: Captain profile ID
        data: title, description, duration_hours, price_total, deposit_amount, is_active

    Returns:
        New trip type ID

    Raises:
        ValueError: If validation fails
    """
    _validate_trip_type(data)

    db = get_db()
    cursor = db.cursor()
    cursor.execute('''
        INSERT INTO trip_types (owner_id, title, description, duration_hours,
                                price_total, deposit_amount, is_active)
        VALUES (?, ?, ?, ?, ?, ?, ?)
    ''', (
        owner_id,
        data['title'].strip(),
        data.get('description'),
        float(data['duration_hours']),
        float(data.get('price_total', 0)),
        float(data.get('deposit_amount', 0)),
        1 if data.get('is_active', True) else 0
    ))
    db.commit()
    return cursor.lastrowid


def update_trip_type(trip_type_id: int, owner_id: int, data: dict) -> bool:
    """
    Update a captain's trip type.

    Args:
        trip_type_id: Trip type ID
        owner_id: Captain profile ID (ownership check)
        data: Fields to change (merged over the current values)

    Returns:
        True if updated, False if not found for this captain

    Raises:
        ValueError: If validation fails
    """
    current = get_trip_type_by_id(trip_type_id)
    if not current or current['owner_id'] != owner_id:
        return False

    merged = {**current, **{k: v for k, v in data.items() if k in (
        'title', 'description', 'duration_hours', 'price_total', 'deposit_amount', 'is_active'
    )}}
    _validate_trip_type(merged)

    db = get_db()
    db.execute('''
        UPDATE trip_types
        SET title = ?, description = ?, duration_hours = ?, price_total = ?,
            deposit_amount = ?, is_active = ?, updated_at = CURRENT_TIMESTAMP
        WHERE id = ?
    ''', (
        merged['title'].strip(),
        merged.get('description'),
        float(merged['duration_hours']),
        float(merged['price_total']),
        float(merged['deposit_amount']),
        1 if merged.get('is_active') else 0,
        trip_type_id
    ))
    db.commit()
    return True
