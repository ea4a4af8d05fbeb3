"""
Database seed data.
Initial data population for fresh database installations.
"""

from werkzeug.security import generate_password_hash


def seed_database(db):
    """Insert initial seed data."""
    from models.availability import DEFAULT_WINDOWS

    # 1. Demo captain
    cursor = db.execute('''
        INSERT INTO profiles (
            email, password_hash, full_name, business_name, phone, timezone,
            cancellation_policy, meeting_spot_name, meeting_spot_address,
            meeting_spot_latitude, meeting_spot_longitude,
            venmo_enabled, venmo_username, zelle_enabled, zelle_contact
        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
    ''', (
        'captain@dockslot.app',
        generate_password_hash('captain123'),
        'Jack Morrow',
        'Morrow Charters',
        '(305) 555-0142',
        'America/New_York',
        'Deposits are refundable up to 72 hours before departure.',
        'Pier 5, Slip 12',
        '401 Biscayne Blvd, Miami, FL',
        25.7781,
        -80.1867,
        1, '@morrow-charters',
        1, 'pay@morrowcharters.com'
    ))
    captain_id = cursor.lastrowid

    # 2. Weekly schedule
    for day_of_week, start_time, end_time, is_active in DEFAULT_WINDOWS:
        db.execute('''
            INSERT INTO availability_windows (owner_id, day_of_week, start_time, end_time, is_active)
            VALUES (?, ?, ?, ?, ?)
        ''', (captain_id, day_of_week, start_time, end_time, is_active))

    # 3. Vessel
    db.execute('''
        INSERT INTO vessels (owner_id, name, capacity, description)
        VALUES (?, ?, ?, ?)
    ''', (captain_id, 'Sea Breeze', 6, '32ft center console'))

    # 4. Trip types
    trip_types = [
        ('Half-Day Fishing', 'Inshore fishing for snook and tarpon', 4, 500.0, 200.0),
        ('Sunset Cruise', 'Two hours along the bay at golden hour', 2, 300.0, 100.0),
        ('Full-Day Offshore', 'Offshore trip, paid in full at booking', 8, 900.0, 900.0),
    ]

    for title, description, duration_hours, price_total, deposit_amount in trip_types:
        db.execute('''
            INSERT INTO trip_types (owner_id, title, description, duration_hours, price_total, deposit_amount)
            VALUES (?, ?, ?, ?, ?, ?)
        ''', (captain_id, title, description, duration_hours, price_total, deposit_amount))
