"""
Revenue analytics.
Monthly, seasonal and payment reducers over booking dicts. Money is
collected cents: what guests have actually paid toward each booking.
"""

from datetime import date

from models.analytics.common import local_date, local_today, month_sequence, pct_change, percentage


def collected_cents(bookings: list) -> int:
    return sum(b.get('deposit_paid_cents') or 0 for b in bookings)


def calculate_revenue_by_month(bookings: list, months: int = 12, today: date = None,
                               tz_name: str = None) -> list:
    """
    Collected revenue per month for the trailing months, oldest first.

    Args:
        bookings: Booking dicts
        months: Number of months ending with today's month
        today: Captain-local today (defaults to now)
        tz_name: Captain timezone used to bucket trips by local date

    Returns:
        list of {month: 'YYYY-MM', label: 'Jan', revenue_cents, bookings}
    """
    buckets = {key: [] for key in month_sequence(months, today, tz_name)}
    for booking in bookings:
        key = local_date(booking, tz_name).strftime('%Y-%m')
        if key in buckets:
            buckets[key].append(booking)

    result = []
    for key, month_bookings in buckets.items():
        result.append({
            'month': key,
            'label': date(int(key[:4]), int(key[5:]), 1).strftime('%b'),
            'revenue_cents': collected_cents(month_bookings),
            'bookings': len(month_bookings),
        })
    return result


def _same_day_last_year(today: date) -> date:
    try:
        return today.replace(year=today.year - 1)
    except ValueError:
        # Feb 29
        return date(today.year - 1, 2, 28)


def calculate_seasonal_metrics(bookings: list, today: date = None, tz_name: str = None) -> dict:
    """
    Season-to-date revenue against the same stretch of last year.

    The season is the calendar year. Year-over-year change is None when
    last year collected nothing.

    Returns:
        dict with revenue_by_month, season_to_date_cents,
        same_period_last_year_cents, year_over_year_change
    """
    today = today or local_today(tz_name)

    this_season = []
    last_season = []
    last_year_today = _same_day_last_year(today)
    for booking in bookings:
        day = local_date(booking, tz_name)
        if day.year == today.year:
            this_season.append(booking)
        elif day.year == today.year - 1 and day <= last_year_today:
            last_season.append(booking)

    season_to_date = collected_cents(this_season)
    same_period_last_year = collected_cents(last_season)

    return {
        'revenue_by_month': calculate_revenue_by_month(bookings, today=today, tz_name=tz_name),
        'season_to_date_cents': season_to_date,
        'same_period_last_year_cents': same_period_last_year,
        'year_over_year_change': pct_change(season_to_date, same_period_last_year),
    }


def calculate_payment_metrics(bookings: list, payments: list = None) -> dict:
    """
    Payment totals for the dashboard.

    Args:
        bookings: Booking dicts
        payments: Optional payments rows; without them deposit and balance
            totals are estimated from the bookings

    Returns:
        dict with total_collected_cents, total_deposits_cents,
        total_balance_payments_cents, refunds_issued_cents, tips_received_cents,
        outstanding_balance_cents, deposits_pending, deposits_pending_cents,
        average_booking_value_cents, deposit_percentage, by_payment_status
    """
    totals = {'deposit': 0, 'balance': 0, 'refund': 0, 'tip': 0}
    if payments:
        for payment in payments:
            if payment.get('status', 'succeeded') == 'succeeded' and payment['payment_type'] in totals:
                totals[payment['payment_type']] += payment['amount_cents']
    else:
        for booking in bookings:
            if booking['payment_status'] in ('deposit_paid', 'fully_paid'):
                totals['deposit'] += booking['deposit_paid_cents'] or 0

    outstanding = sum(
        b['balance_due_cents'] or 0 for b in bookings
        if b['status'] in ('confirmed', 'rescheduled', 'weather_hold')
        and b['payment_status'] != 'fully_paid'
    )

    pending = [b for b in bookings if b['status'] == 'pending_deposit']

    valued = [b for b in bookings if b['status'] not in ('cancelled', 'no_show', 'pending_deposit', 'expired')]
    average_value = (
        round(sum(b['total_price_cents'] for b in valued) / len(valued)) if valued else 0
    )

    by_payment_status = {}
    for booking in bookings:
        status = booking['payment_status']
        by_payment_status[status] = by_payment_status.get(status, 0) + 1

    deposit_only = by_payment_status.get('deposit_paid', 0)
    fully_paid = by_payment_status.get('fully_paid', 0)

    return {
        'total_collected_cents': collected_cents(bookings),
        'total_deposits_cents': totals['deposit'],
        'total_balance_payments_cents': totals['balance'],
        'refunds_issued_cents': totals['refund'],
        'tips_received_cents': totals['tip'],
        'outstanding_balance_cents': outstanding,
        'deposits_pending': len(pending),
        'deposits_pending_cents': sum(b['total_price_cents'] for b in pending),
        'average_booking_value_cents': average_value,
        'deposit_percentage': percentage(deposit_only, deposit_only + fully_paid),
        'by_payment_status': by_payment_status,
    }
