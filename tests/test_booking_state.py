"""
Tests for the booking status state machine.
"""

import pytest

from models.booking_state import (
    BookingError, InvalidTransitionError, TERMINAL_STATUSES, can_transition,
    get_allowed_actions, next_status
)
from tests.conftest import CAPTAIN_ID, SUNSET_TRIP_ID


class TestTransitionTable:
    """Tests for the pure transition table queries."""

    def test_confirm_from_pending(self):
        assert next_status('pending_deposit', 'confirm') == 'confirmed'

    def test_weather_hold_paths(self):
        assert next_status('confirmed', 'set_weather_hold') == 'weather_hold'
        assert next_status('pending_deposit', 'set_weather_hold') == 'weather_hold'
        assert next_status('weather_hold', 'reschedule') == 'rescheduled'
        assert next_status('weather_hold', 'clear_weather_hold') == 'confirmed'

    def test_expire_only_from_pending(self):
        assert can_transition('pending_deposit', 'expire') is True
        assert can_transition('confirmed', 'expire') is False

    def test_terminal_states_have_no_actions(self):
        for status in TERMINAL_STATUSES:
            assert get_allowed_actions(status) == []

    def test_invalid_transition_raises(self):
        with pytest.raises(InvalidTransitionError) as exc:
            next_status('completed', 'cancel')
        assert exc.value.code == 'INVALID_TRANSITION'

    def test_cannot_complete_pending_booking(self):
        assert can_transition('pending_deposit', 'complete') is False


class TestTransitionBooking:
    """Tests for applying actions to stored bookings."""

    def test_cancel_sticks(self, app, future_day, make_booking):
        from models.booking import get_booking_by_id
        from models.booking_state import cancel_booking

        booking = make_booking(future_day())
        result = cancel_booking(booking['id'], CAPTAIN_ID, reason='Guest changed plans')

        assert result['old_status'] == 'pending_deposit'
        assert result['new_status'] == 'cancelled'

        stored = get_booking_by_id(booking['id'])
        assert stored['status'] == 'cancelled'
        assert 'Cancelled: Guest changed plans' in stored['internal_notes']

    def test_cancel_rejected_from_terminal(self, app, future_day, make_booking):
        from models.booking import get_booking_by_id
        from models.booking_state import cancel_booking

        booking = make_booking(future_day())
        cancel_booking(booking['id'], CAPTAIN_ID)

        with pytest.raises(BookingError) as exc:
            cancel_booking(booking['id'], CAPTAIN_ID)
        assert exc.value.code == 'INVALID_TRANSITION'
        assert get_booking_by_id(booking['id'])['status'] == 'cancelled'

    def test_transition_logs_status_change(self, app, future_day, make_booking):
        from models.booking_log import get_booking_logs
        from models.booking_state import transition_booking

        booking = make_booking(future_day())
        transition_booking(booking['id'], 'confirm', captain_id=CAPTAIN_ID, actor_id=CAPTAIN_ID)

        logs = get_booking_logs(booking['id'], entry_type='status_changed')
        assert len(logs) == 1
        assert 'Pending Deposit to Confirmed' in logs[0]['description']

    def test_other_captains_booking_not_found(self, app, future_day, make_booking):
        from models.booking_state import transition_booking

        booking = make_booking(future_day())
        with pytest.raises(BookingError) as exc:
            transition_booking(booking['id'], 'confirm', captain_id=999)
        assert exc.value.code == 'NOT_FOUND'

    def test_weather_hold_requires_reason(self, app, future_day, make_booking):
        from models.booking_state import set_weather_hold

        booking = make_booking(future_day())
        with pytest.raises(BookingError) as exc:
            set_weather_hold(booking['id'], '  ', captain_id=CAPTAIN_ID)
        assert exc.value.code == 'VALIDATION'

    def test_expire_overdue_bookings(self, app, future_day, make_booking):
        from datetime import timedelta
        from models.booking import get_booking_by_id
        from models.booking_state import expire_overdue_bookings, transition_booking
        from utils.datetime_helpers import from_db_timestamp

        pending = make_booking(future_day())
        confirmed = make_booking(future_day(), time='16:00', trip_type_id=SUNSET_TRIP_ID)
        transition_booking(confirmed['id'], 'confirm')

        after_trips = from_db_timestamp(pending['scheduled_end']) + timedelta(hours=1)
        expired = expire_overdue_bookings(now=after_trips)

        assert expired == [pending['id']]
        assert get_booking_by_id(pending['id'])['status'] == 'expired'
        assert get_booking_by_id(confirmed['id'])['status'] == 'confirmed'
