"""
Pytest configuration and fixtures.
Ensures tests use an isolated test database, not the production database.
"""

import os
import pytest
import tempfile
from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

# Set test database path BEFORE importing app
# This ensures all tests use an isolated database
TEST_DB_PATH = os.path.join(tempfile.gettempdir(), 'dockslot_test.db')
os.environ['DATABASE_PATH'] = TEST_DB_PATH

CAPTAIN_EMAIL = 'captain@dockslot.app'
CAPTAIN_PASSWORD = 'captain123'
CAPTAIN_TZ = 'America/New_York'

# Seeded ids
CAPTAIN_ID = 1
HALF_DAY_TRIP_ID = 1    # 4h, $500 total, $200 deposit
SUNSET_TRIP_ID = 2      # 2h, $300 total, $100 deposit
FULL_DAY_TRIP_ID = 3    # 8h, $900 total, $900 deposit
VESSEL_ID = 1           # capacity 6


@pytest.fixture(scope='session', autouse=True)
def setup_test_environment():
    """Set up test environment before any tests run."""
    os.environ['DATABASE_PATH'] = TEST_DB_PATH
    os.environ['FLASK_ENV'] = 'test'

    yield

    # Cleanup: remove test database after all tests
    for suffix in ('', '-wal', '-shm'):
        path = TEST_DB_PATH + suffix
        if os.path.exists(path):
            try:
                os.remove(path)
            except PermissionError:
                pass  # Windows may have file locked


@pytest.fixture
def app():
    """Create test application with isolated database."""
    from app import create_app
    from database import init_db
    from models.public_booking import reset_lookup_attempts

    os.environ['DATABASE_PATH'] = TEST_DB_PATH

    app = create_app('test')
    app.config['TESTING'] = True
    app.config['WTF_CSRF_ENABLED'] = False
    app.config['DATABASE_PATH'] = TEST_DB_PATH

    reset_lookup_attempts()

    with app.app_context():
        init_db()
        yield app


@pytest.fixture
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture
def authenticated_client(app, client):
    """Create a test client logged in as the seeded captain."""
    response = client.post('/api/auth/login', json={
        'email': CAPTAIN_EMAIL,
        'password': CAPTAIN_PASSWORD
    })
    assert response.status_code == 200
    return client


@pytest.fixture
def future_day():
    """
    Build a captain-local trip date that the schedule accepts.

    Returns a callable taking the minimum number of days ahead; the date
    is moved past Mondays (the seeded day off).
    """
    def _future_day(days_ahead=7):
        day = datetime.now(ZoneInfo(CAPTAIN_TZ)).date() + timedelta(days=days_ahead)
        while day.weekday() == 0:
            day += timedelta(days=1)
        return day
    return _future_day


@pytest.fixture
def make_booking(app):
    """Create a captain booking and return its dict."""
    from models.booking import create_booking, get_booking_by_id

    def _make_booking(day, time='10:00', trip_type_id=HALF_DAY_TRIP_ID, **extra):
        data = {
            'guest_name': 'Dana Reyes',
            'guest_email': 'dana@example.com',
            'guest_phone': '(305) 555-0199',
            'party_size': 4,
            'scheduled_start': f'{day.isoformat()}T{time}:00',
            'trip_type_id': trip_type_id,
        }
        data.update(extra)
        booking_id = create_booking(CAPTAIN_ID, data, actor_id=CAPTAIN_ID)
        return get_booking_by_id(booking_id)
    return _make_booking
