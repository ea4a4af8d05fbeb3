"""
Guest and weather analytics.
Repeat business, party sizes, trip popularity and how well weather holds
are recovered.
"""

from datetime import date

from models.analytics.common import local_date, local_today, percentage

REPEAT_STATUSES = ('confirmed', 'completed', 'rescheduled')
RECOVERED_STATUSES = ('rescheduled', 'confirmed', 'completed')


def is_weather_saved(booking: dict) -> bool:
    # original_date_if_rescheduled is only written when a weather offer is accepted
    return bool(booking.get('original_date_if_rescheduled'))


def was_weather_held(booking: dict) -> bool:
    return (booking['status'] == 'weather_hold' or bool(booking.get('weather_hold_reason'))
            or is_weather_saved(booking))


def calculate_customer_metrics(bookings: list) -> dict:
    """
    Guest statistics.

    Guests are grouped by lowercase email. A repeat customer has at least
    two bookings that went ahead (confirmed, completed or rescheduled).
    Average party size leaves out cancelled and no-show bookings.

    Returns:
        dict with total_unique_guests, repeat_customers, repeat_rate,
        average_party_size, trip_type_breakdown, most_popular_trip_type
    """
    by_guest = {}
    for booking in bookings:
        by_guest.setdefault((booking['guest_email'] or '').lower(), []).append(booking)

    repeat_customers = sum(
        1 for guest_bookings in by_guest.values()
        if len([b for b in guest_bookings if b['status'] in REPEAT_STATUSES]) >= 2
    )

    sized = [b for b in bookings if b['status'] not in ('cancelled', 'no_show')]
    average_party = round(sum(b['party_size'] for b in sized) / len(sized), 1) if sized else 0

    trip_counts = {}
    for booking in bookings:
        title = booking.get('trip_title')
        if title:
            trip_counts[title] = trip_counts.get(title, 0) + 1

    breakdown = sorted(
        ({'name': name, 'count': count, 'percentage': percentage(count, len(bookings))}
         for name, count in trip_counts.items()),
        key=lambda item: item['count'],
        reverse=True
    )

    return {
        'total_unique_guests': len(by_guest),
        'repeat_customers': repeat_customers,
        'repeat_rate': percentage(repeat_customers, len(by_guest)),
        'average_party_size': average_party,
        'trip_type_breakdown': breakdown,
        'most_popular_trip_type': breakdown[0] if breakdown else None,
    }


def calculate_weather_metrics(bookings: list, today: date = None, tz_name: str = None) -> dict:
    """
    Weather hold recovery.

    A hold counts while a booking is held or keeps a hold reason, and once it
    has been moved to an accepted offer. It is recovered when the booking was
    moved and went ahead; it is lost when the held booking was cancelled.
    Revenue saved is the deposit already paid on recovered bookings.

    Returns:
        dict with weather_holds_this_season, weather_holds_total,
        rescheduled_from_weather, cancelled_from_weather, recovery_rate,
        revenue_saved_cents
    """
    today = today or local_today(tz_name)

    holds = [b for b in bookings if was_weather_held(b)]
    this_season = [b for b in holds if local_date(b, tz_name).year == today.year]

    recovered = [b for b in bookings if is_weather_saved(b) and b['status'] in RECOVERED_STATUSES]
    cancelled = [b for b in bookings if b['status'] == 'cancelled' and b.get('weather_hold_reason')]

    return {
        'weather_holds_this_season': len(this_season),
        'weather_holds_total': len(holds),
        'rescheduled_from_weather': len(recovered),
        'cancelled_from_weather': len(cancelled),
        'recovery_rate': percentage(len(recovered), len(recovered) + len(cancelled)),
        'revenue_saved_cents': sum(b.get('deposit_paid_cents') or 0 for b in recovered),
    }
