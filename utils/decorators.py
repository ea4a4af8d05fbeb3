"""
Route decorators for authentication and authorization.
Provides booking ownership checks and cron-secret protection.
"""

import hmac
from functools import wraps
from flask import current_app, request
from flask_login import login_required, current_user

from utils.api_response import api_error


def booking_owner_required(func):
    """
    Decorator to load a booking owned by the logged-in captain.

    The route must take a ``booking_id`` parameter; the loaded booking dict
    is passed as the ``booking`` keyword argument. Bookings of other
    captains answer 404 so their existence is not revealed.

    Usage:
        @bp.route('/bookings/<int:booking_id>/duplicate', methods=['POST'])
        @login_required
        @booking_owner_required
        def duplicate(booking_id, booking):
            ...
    """
    @wraps(func)
    def wrapper(*args, **kwargs):
        from models.booking import get_booking_for_captain

        booking = get_booking_for_captain(kwargs.get('booking_id'), current_user.id)
        if not booking:
            return api_error('Booking not found', 404, code='NOT_FOUND')

        kwargs['booking'] = booking
        return func(*args, **kwargs)
    return wrapper


def cron_secret_required(func):
    """
    Decorator for scheduled-job endpoints.

    When CRON_SECRET is configured the request must carry
    ``Authorization: Bearer <CRON_SECRET>``.
    """
    @wraps(func)
    def wrapper(*args, **kwargs):
        secret = current_app.config.get('CRON_SECRET')
        if secret:
            supplied = request.headers.get('Authorization', '')
            if not hmac.compare_digest(supplied, f'Bearer {secret}'):
                return api_error('Unauthorized', 401)
        return func(*args, **kwargs)
    return wrapper


# Re-export login_required for convenience
__all__ = ['login_required', 'booking_owner_required', 'cron_secret_required']
