"""
Dashboard analytics.
Quick stats, actionable insights and the loader that feeds every reducer
from a single fetch of the captain's bookings.
"""

from datetime import datetime, timedelta, timezone

from database import get_db
from models.analytics.common import DAY_NAMES, local_start, percentage, pct_change, zone
from models.analytics.guests import (
    calculate_customer_metrics, calculate_weather_metrics, is_weather_saved
)
from models.analytics.revenue import (
    calculate_payment_metrics, calculate_revenue_by_month, calculate_seasonal_metrics, collected_cents
)
from models.booking import get_captain_bookings
from models.profile import get_profile_by_id
from utils.helpers import format_cents

MAX_INSIGHTS = 4
MIN_BOOKINGS_FOR_BUSIEST_DAY = 5


def calculate_quick_stats(bookings: list, now: datetime = None, tz_name: str = None) -> dict:
    """
    Headline numbers for the top of the dashboard.

    Returns:
        dict with todays_trips, upcoming_7_days, pending_deposits,
        this_month_revenue_cents, this_month_change, trips_completed,
        upcoming_trips, weather_saves
    """
    now = (now or datetime.now(timezone.utc)).astimezone(zone(tz_name))
    today = now.date()
    week_end = now + timedelta(days=7)
    last_month = (today.replace(day=1) - timedelta(days=1))

    todays_trips = 0
    upcoming_week = 0
    upcoming = 0
    this_month = []
    previous_month = []

    for booking in bookings:
        start = local_start(booking, tz_name)
        going_ahead = booking['status'] in ('confirmed', 'rescheduled')

        if start.date() == today and booking['status'] in ('pending_deposit', 'confirmed', 'rescheduled'):
            todays_trips += 1
        if going_ahead and now < start <= week_end:
            upcoming_week += 1
        if going_ahead and start > now:
            upcoming += 1

        if (start.year, start.month) == (today.year, today.month):
            this_month.append(booking)
        elif (start.year, start.month) == (last_month.year, last_month.month):
            previous_month.append(booking)

    this_month_revenue = collected_cents(this_month)

    return {
        'todays_trips': todays_trips,
        'upcoming_7_days': upcoming_week,
        'pending_deposits': len([b for b in bookings if b['status'] == 'pending_deposit']),
        'this_month_revenue_cents': this_month_revenue,
        'this_month_change': pct_change(this_month_revenue, collected_cents(previous_month)) or 0,
        'trips_completed': len([b for b in bookings if b['status'] == 'completed']),
        'upcoming_trips': upcoming,
        'weather_saves': len([
            b for b in bookings
            if is_weather_saved(b) and b['status'] not in ('cancelled', 'no_show')
        ]),
    }


def generate_insights(bookings: list, weather: dict, customers: dict, seasonal: dict,
                      tz_name: str = None) -> list:
    """
    Short, actionable observations for the captain.

    Args:
        bookings: Booking dicts
        weather: calculate_weather_metrics() result
        customers: calculate_customer_metrics() result
        seasonal: calculate_seasonal_metrics() result
        tz_name: Captain timezone

    Returns:
        At most MAX_INSIGHTS dicts of {type: tip|alert|opportunity, message, metric?}
    """
    insights = []

    day_counts = [0] * 7
    for booking in bookings:
        day_counts[(local_start(booking, tz_name).weekday() + 1) % 7] += 1
    busiest = max(range(7), key=lambda d: day_counts[d])
    if len(bookings) >= MIN_BOOKINGS_FOR_BUSIEST_DAY and day_counts[busiest]:
        insights.append({
            'type': 'tip',
            'message': f'Your {DAY_NAMES[busiest]} trips sell out fastest',
            'metric': f'{day_counts[busiest]} bookings',
        })

    if weather['recovery_rate'] >= 70:
        insights.append({
            'type': 'tip',
            'message': (f"Great weather recovery rate! {weather['recovery_rate']:.0f}% "
                        f"of weather holds rescheduled"),
            'metric': f"{format_cents(weather['revenue_saved_cents'])} saved",
        })
    elif weather['weather_holds_total'] > 0 and weather['recovery_rate'] < 50:
        insights.append({
            'type': 'opportunity',
            'message': 'Consider offering more reschedule options to improve weather hold recovery',
            'metric': f"{weather['recovery_rate']:.0f}% recovery rate",
        })

    if customers['repeat_rate'] >= 20:
        insights.append({
            'type': 'tip',
            'message': f"Strong repeat business! {customers['repeat_rate']:.0f}% of guests book again",
            'metric': f"{customers['repeat_customers']} repeat guests",
        })

    popular = customers['most_popular_trip_type']
    if popular and len(customers['trip_type_breakdown']) > 1:
        insights.append({
            'type': 'tip',
            'message': f'"{popular["name"]}" is your most popular offering',
            'metric': f"{popular['percentage']:.0f}% of bookings",
        })

    change = seasonal['year_over_year_change']
    if change is not None:
        if change > 0:
            insights.append({
                'type': 'tip',
                'message': f'Revenue up {change:.0f}% compared to same period last year',
            })
        elif change < -10:
            insights.append({
                'type': 'alert',
                'message': f'Revenue down {abs(change):.0f}% from last year',
            })

    if customers['average_party_size'] > 0:
        insights.append({
            'type': 'tip',
            'message': f"Average group size is {customers['average_party_size']:.1f} guests",
        })

    return insights[:MAX_INSIGHTS]


def get_captain_payments(captain_id: int) -> list:
    """Payment rows across all of a captain's bookings."""
    db = get_db()
    cursor = db.cursor()
    cursor.execute('''
        SELECT p.* FROM payments p
        JOIN bookings b ON p.booking_id = b.id
        WHERE b.captain_id = ?
        ORDER BY p.created_at
    ''', (captain_id,))
    return [dict(row) for row in cursor.fetchall()]


def get_dashboard_analytics(captain_id: int, now: datetime = None) -> dict:
    """
    Every dashboard metric for a captain.

    Bookings and payments are fetched once; the reducers run over the
    in-memory rows.
    """
    profile = get_profile_by_id(captain_id) or {}
    tz_name = profile.get('timezone')
    now = now or datetime.now(timezone.utc)
    today = now.astimezone(zone(tz_name)).date()

    bookings = get_captain_bookings(captain_id)
    payments = get_captain_payments(captain_id)

    weather = calculate_weather_metrics(bookings, today=today, tz_name=tz_name)
    customers = calculate_customer_metrics(bookings)
    seasonal = calculate_seasonal_metrics(bookings, today=today, tz_name=tz_name)
    cancelled = len([b for b in bookings if b['status'] == 'cancelled'])

    return {
        'quick_stats': calculate_quick_stats(bookings, now=now, tz_name=tz_name),
        'revenue_by_month': calculate_revenue_by_month(bookings, today=today, tz_name=tz_name),
        'seasonal': seasonal,
        'weather': weather,
        'customers': customers,
        'payments': calculate_payment_metrics(bookings, payments),
        'insights': generate_insights(bookings, weather, customers, seasonal, tz_name=tz_name),
        'total_bookings': len(bookings),
        'cancellation_rate': percentage(cancelled, len(bookings)),
    }
