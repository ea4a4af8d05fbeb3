"""
Vessel model and data access functions.
A vessel only bounds the party size of the bookings assigned to it.
"""

from database import get_db


def get_vessel_by_id(vessel_id: int) -> dict:
    """Get vessel by ID, or None if not found."""
    db = get_db()
    cursor = db.cursor()
    cursor.execute('SELECT * FROM vessels WHERE id = ?', (vessel_id,))
    row = cursor.fetchone()
    return dict(row) if row else None


def get_vessels(owner_id: int) -> list:
    """Get a captain's vessels ordered by name."""
    db = get_db()
    cursor = db.cursor()
    cursor.execute('SELECT * FROM vessels WHERE owner_id = ? ORDER BY name', (owner_id,))
    return [dict(row) for row in cursor.fetchall()]


def create_vessel(owner_id: int, name: str, capacity: int, description: str = None) -> int:
    """
    Create a vessel.

    Args:
        owner_id: Captain profile ID
        name: Vessel name
        capacity: Maximum passengers
        description: Optional description

    Returns:
        New vessel ID

    Raises:
        ValueError: On missing name or non-positive capacity
    """
    if not (name or '').strip():
        raise ValueError('Vessel name is required')
    if not isinstance(capacity, int) or isinstance(capacity, bool) or capacity < 1:
        raise ValueError('Capacity must be a positive integer')

    db = get_db()
    cursor = db.cursor()
    cursor.execute('''
        INSERT INTO vessels (owner_id, name, capacity, description)
        VALUES (?, ?, ?, ?)
    ''', (owner_id, name.strip(), capacity, description))
    db.commit()
    return cursor.lastrowid


def update_vessel(vessel_id: int, owner_id: int, name: str = None,
                  capacity: int = None, description: str = None) -> bool:
    """
    Update a captain's vessel.

    Returns:
        True if updated, False if not found for this captain

    Raises:
        ValueError: On empty name or non-positive capacity
    """
    vessel = get_vessel_by_id(vessel_id)
    if not vessel or vessel['owner_id'] != owner_id:
        return False

    if name is not None and not name.strip():
        raise ValueError('Vessel name is required')
    if capacity is not None and (not isinstance(capacity, int) or capacity < 1):
        raise ValueError('Capacity must be a positive integer')

    db = get_db()
    db.execute('''
        UPDATE vessels
        SET name = COALESCE(?, name),
            capacity = COALESCE(?, capacity),
            description = COALESCE(?, description)
        WHERE id = ?
    ''', (name.strip() if name else None, capacity, description, vessel_id))
    db.commit()
    return True
