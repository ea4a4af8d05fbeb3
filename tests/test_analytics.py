"""
Tests for dashboard analytics reducers.
"""

from datetime import date, datetime, timezone

from models.analytics import (
    calculate_customer_metrics, calculate_payment_metrics, calculate_quick_stats,
    calculate_revenue_by_month, calculate_seasonal_metrics, calculate_weather_metrics,
    generate_insights
)
from tests.conftest import CAPTAIN_ID, CAPTAIN_TZ

TODAY = date(2030, 6, 15)


def _booking(start, status='confirmed', paid=0, total=50000, email='dana@example.com',
             party=4, trip='Half-Day Offshore', **extra):
    booking = {
        'scheduled_start': start,
        'status': status,
        'payment_status': 'deposit_paid' if paid else 'unpaid',
        'deposit_paid_cents': paid,
        'total_price_cents': total,
        'balance_due_cents': total - paid,
        'guest_email': email,
        'party_size': party,
        'trip_title': trip,
        'weather_hold_reason': None,
        'original_date_if_rescheduled': None,
    }
    booking.update(extra)
    return booking


class TestRevenue:
    """Tests for revenue reducers."""

    def test_revenue_bucketed_by_local_month(self):
        bookings = [
            # 2030-06-01 02:00 UTC is May 31 evening in New York
            _booking('2030-06-01 02:00:00', paid=20000),
            _booking('2030-06-10 14:00:00', paid=50000),
            _booking('2029-01-10 14:00:00', paid=90000),
        ]
        months = calculate_revenue_by_month(bookings, months=2, today=TODAY, tz_name=CAPTAIN_TZ)

        assert months == [
            {'month': '2030-05', 'label': 'May', 'revenue_cents': 20000, 'bookings': 1},
            {'month': '2030-06', 'label': 'Jun', 'revenue_cents': 50000, 'bookings': 1},
        ]

    def test_revenue_by_month_covers_year(self):
        months = calculate_revenue_by_month([], today=TODAY, tz_name=CAPTAIN_TZ)
        assert len(months) == 12
        assert months[0]['month'] == '2029-07'
        assert months[-1]['month'] == '2030-06'

    def test_seasonal_year_over_year(self):
        bookings = [
            _booking('2030-03-10 14:00:00', paid=30000),
            _booking('2029-03-10 14:00:00', paid=20000),
            # After the same day last year, so not in the comparison
            _booking('2029-08-10 14:00:00', paid=50000),
        ]
        seasonal = calculate_seasonal_metrics(bookings, today=TODAY, tz_name=CAPTAIN_TZ)

        assert seasonal['season_to_date_cents'] == 30000
        assert seasonal['same_period_last_year_cents'] == 20000
        assert seasonal['year_over_year_change'] == 50.0

    def test_no_last_year_means_no_change(self):
        seasonal = calculate_seasonal_metrics(
            [_booking('2030-03-10 14:00:00', paid=30000)], today=TODAY, tz_name=CAPTAIN_TZ
        )
        assert seasonal['year_over_year_change'] is None

    def test_payment_metrics_from_payment_rows(self):
        bookings = [
            _booking('2030-06-20 14:00:00', paid=20000),
            _booking('2030-06-21 14:00:00', status='pending_deposit', total=30000),
        ]
        payments = [
            {'payment_type': 'deposit', 'amount_cents': 20000},
            {'payment_type': 'tip', 'amount_cents': 4000},
            {'payment_type': 'refund', 'amount_cents': 5000},
        ]
        metrics = calculate_payment_metrics(bookings, payments)

        assert metrics['total_collected_cents'] == 20000
        assert metrics['total_deposits_cents'] == 20000
        assert metrics['tips_received_cents'] == 4000
        assert metrics['refunds_issued_cents'] == 5000
        assert metrics['outstanding_balance_cents'] == 30000
        assert metrics['deposits_pending'] == 1
        assert metrics['deposits_pending_cents'] == 30000
        assert metrics['average_booking_value_cents'] == 50000
        assert metrics['by_payment_status'] == {'deposit_paid': 1, 'unpaid': 1}


class TestGuests:
    """Tests for guest and weather reducers."""

    def test_repeat_customers_by_email(self):
        bookings = [
            _booking('2030-05-01 14:00:00', email='Dana@Example.com'),
            _booking('2030-06-01 14:00:00', status='completed', email='dana@example.com'),
            _booking('2030-06-02 14:00:00', status='cancelled', email='sam@example.com', party=2),
            _booking('2030-06-03 14:00:00', email='lee@example.com', party=6, trip='Sunset Cruise'),
        ]
        metrics = calculate_customer_metrics(bookings)

        assert metrics['total_unique_guests'] == 3
        assert metrics['repeat_customers'] == 1
        assert metrics['repeat_rate'] == 33.3
        assert metrics['average_party_size'] == 4.7
        assert metrics['most_popular_trip_type']['name'] == 'Half-Day Offshore'
        assert metrics['most_popular_trip_type']['count'] == 3

    def test_weather_recovery(self):
        bookings = [
            # Moved to an accepted offer: original date kept, hold reason cleared
            _booking('2030-06-05 14:00:00', status='rescheduled', paid=20000,
                     original_date_if_rescheduled='2030-05-29 14:00:00'),
            _booking('2030-06-06 14:00:00', status='cancelled', weather_hold_reason='Storm'),
            _booking('2030-06-07 14:00:00', status='weather_hold', weather_hold_reason='Fog'),
        ]
        metrics = calculate_weather_metrics(bookings, today=TODAY, tz_name=CAPTAIN_TZ)

        assert metrics['weather_holds_total'] == 3
        assert metrics['weather_holds_this_season'] == 3
        assert metrics['rescheduled_from_weather'] == 1
        assert metrics['cancelled_from_weather'] == 1
        assert metrics['recovery_rate'] == 50.0
        assert metrics['revenue_saved_cents'] == 20000


class TestDashboard:
    """Tests for quick stats and insights."""

    def test_quick_stats(self):
        now = datetime(2030, 6, 15, 12, 0, tzinfo=timezone.utc)
        bookings = [
            _booking('2030-06-15 18:00:00', paid=20000),
            _booking('2030-06-18 14:00:00', status='rescheduled',
                     original_date_if_rescheduled='2030-06-10 14:00:00'),
            _booking('2030-06-30 14:00:00', status='pending_deposit'),
            _booking('2030-05-20 14:00:00', status='completed', paid=10000),
        ]
        stats = calculate_quick_stats(bookings, now=now, tz_name=CAPTAIN_TZ)

        assert stats['todays_trips'] == 1
        assert stats['upcoming_7_days'] == 2
        assert stats['upcoming_trips'] == 2
        assert stats['pending_deposits'] == 1
        assert stats['this_month_revenue_cents'] == 20000
        assert stats['this_month_change'] == 100.0
        assert stats['trips_completed'] == 1
        assert stats['weather_saves'] == 1

    def test_insights_capped(self):
        bookings = [_booking(f'2030-06-{day:02d} 14:00:00') for day in (1, 8, 15, 22, 29)]
        weather = {'recovery_rate': 80.0, 'revenue_saved_cents': 40000, 'weather_holds_total': 2}
        customers = calculate_customer_metrics(bookings)
        seasonal = {'year_over_year_change': 25.0}

        insights = generate_insights(bookings, weather, customers, seasonal, tz_name=CAPTAIN_TZ)

        assert len(insights) == 4
        assert insights[0]['message'] == 'Your Saturday trips sell out fastest'
        assert insights[1]['metric'] == '$400.00 saved'

    def test_dashboard_loader(self, app, future_day, make_booking):
        from models.analytics import get_dashboard_analytics
        from models.payment import mark_deposit_paid

        booking = make_booking(future_day())
        mark_deposit_paid(booking['id'], CAPTAIN_ID)

        analytics = get_dashboard_analytics(CAPTAIN_ID)

        assert analytics['total_bookings'] == 1
        assert analytics['payments']['total_deposits_cents'] == 20000
        assert analytics['cancellation_rate'] == 0.0
        assert analytics['quick_stats']['upcoming_trips'] == 1
