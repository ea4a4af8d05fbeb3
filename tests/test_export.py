"""
Tests for booking exports.
"""

import csv
import io
from datetime import date

import pytest
from openpyxl import load_workbook

from models.booking_export import (
    EXPORT_HEADERS, booking_to_row, build_csv, build_xlsx, export_filename
)
from tests.conftest import CAPTAIN_ID, CAPTAIN_TZ, SUNSET_TRIP_ID


def _booking(**overrides):
    booking = {
        'id': 42,
        'guest_name': 'Dana Reyes',
        'guest_email': 'dana@example.com',
        'guest_phone': '+13055550199',
        'party_size': 4,
        'scheduled_start': '2030-06-04 14:00:00',
        'scheduled_end': '2030-06-04 18:00:00',
        'vessel_name': 'Reel Deal',
        'trip_title': 'Half-Day Offshore',
        'status': 'confirmed',
        'payment_status': 'deposit_paid',
        'total_price_cents': 50000,
        'deposit_paid_cents': 20000,
        'balance_due_cents': 30000,
        'tags': ['vip', 'repeat'],
        'internal_notes': 'Bring extra ice',
        'created_at': '2030-05-01 12:30:00',
    }
    booking.update(overrides)
    return booking


@pytest.mark.usefixtures('app')
class TestExportRows:
    """Tests for flattening a booking into a row."""

    def test_row_in_captain_timezone(self):
        row = dict(zip(EXPORT_HEADERS, booking_to_row(_booking(), CAPTAIN_TZ)))

        assert row['Booking ID'] == 'DK-0042'
        assert row['Date'] == '2030-06-04'
        assert row['Start Time'] == '10:00'
        assert row['End Time'] == '14:00'
        assert row['Duration (hours)'] == '4.0'
        assert row['Total ($)'] == '500.00'
        assert row['Deposit Paid ($)'] == '200.00'
        assert row['Balance Due ($)'] == '300.00'
        assert row['Tags'] == 'vip, repeat'
        assert row['Captain Notes'] == 'Bring extra ice'
        assert row['Created Date'] == '2030-05-01 08:30'

    def test_missing_optional_values_blank(self):
        row = booking_to_row(
            _booking(guest_phone=None, vessel_name=None, tags=[], internal_notes=None), CAPTAIN_TZ
        )
        values = dict(zip(EXPORT_HEADERS, row))
        assert values['Phone'] == ''
        assert values['Vessel'] == ''
        assert values['Tags'] == ''
        assert values['Captain Notes'] == ''


@pytest.mark.usefixtures('app')
class TestExportFiles:
    """Tests for CSV and Excel rendering."""

    def test_csv_header_and_rows(self):
        text = build_csv([_booking(), _booking(id=43, guest_name='Lee, Morgan')], CAPTAIN_TZ)
        rows = list(csv.reader(io.StringIO(text)))

        assert rows[0] == EXPORT_HEADERS
        assert len(rows) == 3
        assert rows[2][1] == 'Lee, Morgan'

    def test_xlsx_layout(self):
        content = build_xlsx([_booking()], CAPTAIN_TZ, title='Bookings - Test', subtitle='June')
        ws = load_workbook(io.BytesIO(content)).active

        assert ws['A1'].value == 'Bookings - Test'
        assert ws['A2'].value == 'June | Total: 1 bookings'
        assert [c.value for c in ws[4]] == EXPORT_HEADERS
        assert ws['A5'].value == 'DK-0042'
        assert ws.freeze_panes == 'A5'

    def test_filenames(self):
        assert export_filename('2030-06-01', '2030-06-30') == 'bookings_2030-06-01_to_2030-06-30.csv'
        assert export_filename(today=date(2030, 6, 4), extension='xlsx') == 'bookings_export_2030-06-04.xlsx'


class TestExportQuery:
    """Tests for selecting bookings to export."""

    def test_range_inclusive_and_all_statuses(self, app, future_day, make_booking):
        from models.booking import get_bookings_for_export
        from models.booking_state import cancel_booking

        first_day = future_day()
        last_day = future_day(9)
        outside_day = future_day(12)

        first = make_booking(first_day, time='19:00', trip_type_id=SUNSET_TRIP_ID)
        last = make_booking(last_day, time='06:00', trip_type_id=SUNSET_TRIP_ID)
        make_booking(outside_day)
        cancel_booking(last['id'], CAPTAIN_ID)

        bookings = get_bookings_for_export(
            CAPTAIN_ID, start_date=first_day.isoformat(), end_date=last_day.isoformat()
        )
        assert [b['id'] for b in bookings] == [first['id'], last['id']]

    def test_status_filter(self, app, future_day, make_booking):
        from models.booking import get_bookings_for_export
        from models.booking_state import cancel_booking

        day = future_day()
        kept = make_booking(day)
        cancelled = make_booking(future_day(9))
        cancel_booking(cancelled['id'], CAPTAIN_ID)

        bookings = get_bookings_for_export(CAPTAIN_ID, statuses=['pending_deposit'])
        assert [b['id'] for b in bookings] == [kept['id']]
