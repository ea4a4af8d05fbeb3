"""
Tests for guest bookings, the captain page and the token-based manage page.
"""

import pytest
from datetime import timedelta

from models.booking_state import BookingError
from tests.conftest import CAPTAIN_ID, HALF_DAY_TRIP_ID


@pytest.fixture
def booking_request(future_day):
    """Build a public booking payload for a future day."""
    def _booking_request(**overrides):
        data = {
            'captain_id': CAPTAIN_ID,
            'trip_type_id': HALF_DAY_TRIP_ID,
            'scheduled_date': future_day().isoformat(),
            'scheduled_time': '09:00',
            'guest_name': 'Morgan Lee',
            'guest_email': 'Morgan.Lee@Example.com',
            'guest_phone': '305-555-0142',
            'party_size': 3,
            'passengers': [{'full_name': 'Sam Lee'}, {'full_name': '  '}],
            'special_requests': 'Kid-size life jacket please',
        }
        data.update(overrides)
        return data
    return _booking_request


class TestCreatePublicBooking:
    """Tests for booking submission."""

    def test_creates_pending_booking(self, app, booking_request):
        from models.booking import get_booking_by_id, get_booking_passengers
        from models.public_booking import create_public_booking

        result = create_public_booking(booking_request())

        assert len(result['confirmation_code']) == 6
        assert len(result['guest_token']) == 32
        assert len(result['management_token']) == 32
        assert result['reference'] == f"DK-{result['booking_id']:04d}"
        assert result['total_price_cents'] == 50000
        assert result['deposit_amount_cents'] == 20000

        booking = get_booking_by_id(result['booking_id'])
        assert booking['status'] == 'pending_deposit'
        assert booking['payment_status'] == 'unpaid'
        assert booking['guest_email'] == 'morgan.lee@example.com'
        assert booking['balance_due_cents'] == 50000

        passengers = get_booking_passengers(result['booking_id'])
        assert [p['full_name'] for p in passengers] == ['Sam Lee']

    def test_taken_slot_refused(self, app, booking_request):
        from models.public_booking import create_public_booking

        create_public_booking(booking_request())
        with pytest.raises(BookingError) as exc:
            create_public_booking(booking_request(scheduled_time='10:00'))
        assert exc.value.code in ('UNAVAILABLE', 'SLOT_UNAVAILABLE')

    def test_party_size_out_of_range(self, app, booking_request):
        from models.public_booking import create_public_booking

        for size in (0, 7):
            with pytest.raises(BookingError) as exc:
                create_public_booking(booking_request(party_size=size))
            assert exc.value.code == 'CAPACITY'

    def test_invalid_email(self, app, booking_request):
        from models.public_booking import create_public_booking

        with pytest.raises(BookingError) as exc:
            create_public_booking(booking_request(guest_email='not-an-email'))
        assert exc.value.code == 'VALIDATION'

    def test_slot_must_be_offered(self, app, booking_request):
        from models.public_booking import create_public_booking

        with pytest.raises(BookingError) as exc:
            create_public_booking(booking_request(scheduled_time='09:15'))
        assert exc.value.code == 'UNAVAILABLE'

    def test_hibernating_captain(self, app, booking_request):
        from models.profile import set_hibernation
        from models.public_booking import create_public_booking

        set_hibernation(CAPTAIN_ID, True)
        with pytest.raises(BookingError) as exc:
            create_public_booking(booking_request())
        assert exc.value.code == 'HIBERNATING'

    def test_unknown_trip_type(self, app, booking_request):
        from models.public_booking import create_public_booking

        with pytest.raises(BookingError) as exc:
            create_public_booking(booking_request(trip_type_id=999))
        assert exc.value.code == 'NOT_FOUND'


class TestPublicCaptain:
    """Tests for the public captain page."""

    def test_page_lists_trip_types(self, app):
        from models.public_booking import get_public_captain

        page = get_public_captain(CAPTAIN_ID)

        assert sorted(t['id'] for t in page['trip_types']) == [1, 2, 3]
        assert page['hibernation']['is_hibernating'] is False
        assert 'password_hash' not in page['captain']

    def test_hibernating_page_hides_trips(self, app):
        from models.profile import set_hibernation
        from models.public_booking import get_public_captain

        set_hibernation(CAPTAIN_ID, True, message='Gone fishing')
        page = get_public_captain(CAPTAIN_ID)

        assert page['trip_types'] == []
        assert page['hibernation']['is_hibernating'] is True

    def test_unknown_captain(self, app):
        from models.public_booking import get_public_captain

        with pytest.raises(BookingError) as exc:
            get_public_captain(999)
        assert exc.value.code == 'NOT_FOUND'


class TestManageLookup:
    """Tests for token lookups and their rate limit."""

    def test_lookup_by_guest_token(self, app, booking_request):
        from models.public_booking import create_public_booking, lookup_booking_by_token

        created = create_public_booking(booking_request())
        result = lookup_booking_by_token(created['guest_token'], ip='203.0.113.5')

        assert result['booking']['id'] == created['booking_id']
        assert result['reference'] == created['reference']
        assert result['can_pay'] is True
        assert 'management_token' not in result['booking']

    def test_lookup_by_management_token(self, app, booking_request):
        from models.public_booking import create_public_booking, lookup_booking_by_token

        created = create_public_booking(booking_request())
        result = lookup_booking_by_token(created['management_token'], ip='203.0.113.6')
        assert result['booking']['confirmation_code'] == created['confirmation_code']

    def test_sixth_lookup_rate_limited(self, app):
        from models.public_booking import lookup_booking_by_token

        for _ in range(5):
            with pytest.raises(BookingError) as exc:
                lookup_booking_by_token('unknown-token', ip='198.51.100.7')
            assert exc.value.code == 'NOT_FOUND'

        with pytest.raises(BookingError) as exc:
            lookup_booking_by_token('unknown-token', ip='198.51.100.7')
        assert exc.value.code == 'RATE_LIMITED'

        # Other clients are counted separately
        with pytest.raises(BookingError) as exc:
            lookup_booking_by_token('unknown-token', ip='198.51.100.8')
        assert exc.value.code == 'NOT_FOUND'

    def test_short_token_rejected(self, app):
        from models.public_booking import lookup_booking_by_token

        with pytest.raises(BookingError) as exc:
            lookup_booking_by_token('abc', ip='198.51.100.9')
        assert exc.value.code == 'VALIDATION'

    def test_guest_token_expires_after_trip(self, app, booking_request):
        from models.public_booking import create_public_booking, lookup_booking_by_token
        from utils.datetime_helpers import from_db_timestamp

        created = create_public_booking(booking_request())
        later = from_db_timestamp(created['scheduled_start']) + timedelta(days=8)

        with pytest.raises(BookingError) as exc:
            lookup_booking_by_token(created['guest_token'], ip='203.0.113.10', now=later)
        assert exc.value.code == 'UNAUTHORIZED'

        # Management tokens do not expire
        result = lookup_booking_by_token(created['management_token'], ip='203.0.113.10', now=later)
        assert result['booking']['id'] == created['booking_id']

    def test_request_dates_requires_weather_hold(self, app, booking_request):
        from models.public_booking import create_public_booking, guest_request_different_dates

        created = create_public_booking(booking_request())
        with pytest.raises(BookingError) as exc:
            guest_request_different_dates(created['guest_token'], 'Any Saturday works', ip='203.0.113.11')
        assert str(exc.value) == 'Booking is not on weather hold'
