"""
Tests for schedule windows, blackouts and slot availability.
"""

import pytest
from datetime import date, datetime, timedelta
from zoneinfo import ZoneInfo

from models.booking_state import BookingError
from tests.conftest import CAPTAIN_ID, CAPTAIN_TZ, HALF_DAY_TRIP_ID, SUNSET_TRIP_ID


def _slot(day_result, start_time):
    return next(s for s in day_result['time_slots'] if s['start_time'] == start_time)


@pytest.mark.usefixtures('app')
class TestBuildTimeSlots:
    """Tests for laying out slots inside a window."""

    def test_last_slot_may_end_at_window_close(self):
        from models.availability import build_time_slots

        day = date(2030, 6, 4)
        not_before = datetime(2030, 6, 1, tzinfo=ZoneInfo(CAPTAIN_TZ))
        slots = build_time_slots(
            day, {'start_time': '06:00', 'end_time': '10:00'}, 120, [], not_before, CAPTAIN_TZ
        )

        assert [s['start_time'] for s in slots] == ['06:00', '06:30', '07:00', '07:30', '08:00']
        assert slots[-1]['end_time'] == '10:00'
        assert all(s['available'] for s in slots)

    def test_busy_range_blocks_overlapping_slots(self):
        from models.availability import build_time_slots

        tz = ZoneInfo(CAPTAIN_TZ)
        day = date(2030, 6, 4)
        busy = [(datetime(2030, 6, 4, 7, 0, tzinfo=tz), datetime(2030, 6, 4, 8, 0, tzinfo=tz))]
        slots = build_time_slots(
            day, {'start_time': '06:00', 'end_time': '10:00'}, 120, busy,
            datetime(2030, 6, 1, tzinfo=tz), CAPTAIN_TZ
        )

        available = [s['start_time'] for s in slots if s['available']]
        assert available == ['08:00']

    def test_slots_before_buffer_unavailable(self):
        from models.availability import build_time_slots

        tz = ZoneInfo(CAPTAIN_TZ)
        day = date(2030, 6, 4)
        not_before = datetime(2030, 6, 4, 7, 15, tzinfo=tz)
        slots = build_time_slots(
            day, {'start_time': '06:00', 'end_time': '10:00'}, 120, [], not_before, CAPTAIN_TZ
        )

        assert [s['start_time'] for s in slots if s['available']] == ['07:30', '08:00']


class TestAvailableSlots:
    """Tests for a captain's slots on one day."""

    def test_open_day(self, app, future_day):
        from models.availability import get_available_slots

        day = future_day()
        result = get_available_slots(CAPTAIN_ID, HALF_DAY_TRIP_ID, day.isoformat())

        assert result['date'] == day.isoformat()
        assert result['is_blackout'] is False
        # 06:00 to 17:00 starts for a 4 hour trip in a 06:00-21:00 window
        assert len(result['time_slots']) == 23
        assert all(s['available'] for s in result['time_slots'])

    def test_booked_time_excluded(self, app, future_day, make_booking):
        from models.availability import get_available_slots

        day = future_day()
        make_booking(day, time='10:00')
        result = get_available_slots(CAPTAIN_ID, SUNSET_TRIP_ID, day.isoformat())

        assert _slot(result, '08:00')['available'] is True
        assert _slot(result, '09:00')['available'] is False
        assert _slot(result, '12:00')['available'] is False
        assert _slot(result, '14:00')['available'] is True

    def test_cancelled_booking_frees_time(self, app, future_day, make_booking):
        from models.availability import get_available_slots
        from models.booking_state import cancel_booking

        day = future_day()
        booking = make_booking(day, time='10:00')
        cancel_booking(booking['id'], CAPTAIN_ID)

        result = get_available_slots(CAPTAIN_ID, SUNSET_TRIP_ID, day.isoformat())
        assert _slot(result, '10:00')['available'] is True

    def test_blackout_day(self, app, future_day):
        from models.availability import get_available_slots
        from models.blackout import create_blackout_date

        day = future_day()
        create_blackout_date(CAPTAIN_ID, day.isoformat(), 'Haul out')

        result = get_available_slots(CAPTAIN_ID, HALF_DAY_TRIP_ID, day.isoformat())
        assert result['is_blackout'] is True
        assert result['blackout_reason'] == 'Haul out'
        assert result['time_slots'] == []

    def test_day_off_has_no_slots(self, app):
        from models.availability import get_available_slots

        day = datetime.now(ZoneInfo(CAPTAIN_TZ)).date() + timedelta(days=3)
        while day.weekday() != 0:
            day += timedelta(days=1)

        result = get_available_slots(CAPTAIN_ID, HALF_DAY_TRIP_ID, day.isoformat())
        assert result['time_slots'] == []

    def test_past_and_far_future_days_rejected(self, app):
        from models.availability import get_available_slots

        today = datetime.now(ZoneInfo(CAPTAIN_TZ)).date()
        for day in (today - timedelta(days=1), today + timedelta(days=61)):
            with pytest.raises(BookingError) as exc:
                get_available_slots(CAPTAIN_ID, HALF_DAY_TRIP_ID, day.isoformat())
            assert exc.value.code == 'UNAVAILABLE'

    def test_trip_of_other_captain_not_found(self, app, future_day):
        from models.availability import get_available_slots

        with pytest.raises(BookingError) as exc:
            get_available_slots(999, HALF_DAY_TRIP_ID, future_day().isoformat())
        assert exc.value.code == 'NOT_FOUND'

    def test_bad_date(self, app):
        from models.availability import get_available_slots

        with pytest.raises(BookingError) as exc:
            get_available_slots(CAPTAIN_ID, HALF_DAY_TRIP_ID, '06/04/2030')
        assert exc.value.code == 'VALIDATION'

    def test_hibernating_captain(self, app, future_day):
        from models.availability import get_available_slots
        from models.profile import set_hibernation

        set_hibernation(CAPTAIN_ID, True, message='Back in spring')
        with pytest.raises(BookingError) as exc:
            get_available_slots(CAPTAIN_ID, HALF_DAY_TRIP_ID, future_day().isoformat())
        assert exc.value.code == 'HIBERNATING'


class TestMonthAvailability:
    """Tests for the month summary."""

    def test_month_summary(self, app, future_day):
        from models.availability import get_month_availability

        day = future_day(14)
        summary = get_month_availability(CAPTAIN_ID, HALF_DAY_TRIP_ID, day.strftime('%Y-%m'))

        assert summary[day.isoformat()]['available'] is True
        assert summary[day.isoformat()]['slot_count'] == 23

        mondays = [d for d in summary if date.fromisoformat(d).weekday() == 0]
        assert mondays
        assert all(summary[d]['available'] is False for d in mondays)

    def test_blacked_out_day_flagged(self, app, future_day):
        from models.availability import get_month_availability
        from models.blackout import create_blackout_date

        day = future_day(14)
        create_blackout_date(CAPTAIN_ID, day.isoformat())

        summary = get_month_availability(CAPTAIN_ID, HALF_DAY_TRIP_ID, day.strftime('%Y-%m'))
        assert summary[day.isoformat()] == {'available': False, 'slot_count': 0, 'is_blackout': True}

    def test_bad_month(self, app):
        from models.availability import get_month_availability

        with pytest.raises(BookingError) as exc:
            get_month_availability(CAPTAIN_ID, HALF_DAY_TRIP_ID, '2030-13')
        assert exc.value.code == 'VALIDATION'


class TestCaptainSchedule:
    """Tests for captain-entered booking times."""

    def test_outside_hours_rejected(self, app, future_day, make_booking):
        with pytest.raises(BookingError) as exc:
            make_booking(future_day(), time='19:00')
        assert exc.value.code == 'OUTSIDE_HOURS'

    def test_unaligned_time_inside_window_allowed(self, app, future_day, make_booking):
        booking = make_booking(future_day(), time='10:15')
        assert booking['status'] == 'pending_deposit'

    def test_overlap_rejected(self, app, future_day, make_booking):
        day = future_day()
        make_booking(day, time='10:00')
        with pytest.raises(BookingError) as exc:
            make_booking(day, time='12:00')
        assert exc.value.code == 'CONFLICT'

    def test_blackout_rejected(self, app, future_day, make_booking):
        from models.blackout import create_blackout_date

        day = future_day()
        create_blackout_date(CAPTAIN_ID, day.isoformat(), 'Tournament')
        with pytest.raises(BookingError) as exc:
            make_booking(day)
        assert exc.value.code == 'BLACKOUT'

    def test_blackout_range_skips_existing(self, app, future_day):
        from models.blackout import create_blackout_date, create_blackout_range

        day = future_day()
        create_blackout_date(CAPTAIN_ID, day.isoformat())
        result = create_blackout_range(
            CAPTAIN_ID, day.isoformat(), (day + timedelta(days=2)).isoformat(), 'Vacation'
        )
        assert len(result['created']) == 2
        assert result['skipped'] == [day.isoformat()]
