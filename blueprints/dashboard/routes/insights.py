"""
Insight API routes.
Dashboard analytics, calendar feed, marine weather and the audit trail.
"""

from flask import current_app, request
from flask_login import login_required, current_user

from blueprints.dashboard.routes.bookings import booking_payload
from models.analytics import get_dashboard_analytics
from models.audit_log import get_audit_logs
from models.booking import get_calendar_bookings, get_upcoming_bookings
from models.booking_state import BookingError
from models.profile import get_profile_by_id
from services import IntegrationError
from services.weather import check_marine_conditions
from utils.api_response import api_success, api_error, booking_error


def register_routes(bp):
    """Register insight routes on the blueprint."""

    @bp.route('/analytics')
    @login_required
    def analytics():
        """Every dashboard metric, computed from one fetch of the captain's bookings."""
        return api_success(data=get_dashboard_analytics(current_user.id))

    @bp.route('/upcoming')
    @login_required
    def upcoming():
        """Active trips over the next ?days= days (default 7)."""
        days = max(1, min(request.args.get('days', 7, type=int), 90))
        return api_success(data=[booking_payload(b) for b in get_upcoming_bookings(current_user.id, days)])

    @bp.route('/calendar')
    @login_required
    def calendar():
        """Bookings between ?start= and ?end= (local days, inclusive)."""
        start = request.args.get('start')
        end = request.args.get('end')
        if not start or not end:
            return api_error('start and end are required', 400, code='VALIDATION')

        try:
            bookings = get_calendar_bookings(current_user.id, start, end)
        except BookingError as e:
            return booking_error(e)

        return api_success(data=[booking_payload(b) for b in bookings])

    @bp.route('/weather')
    @login_required
    def weather():
        """NOAA alerts and forecast at the captain's meeting spot (or ?lat=&lon=)."""
        profile = get_profile_by_id(current_user.id)
        lat = request.args.get('lat', type=float)
        lon = request.args.get('lon', type=float)
        if lat is None or lon is None:
            lat = profile.get('meeting_spot_latitude')
            lon = profile.get('meeting_spot_longitude')

        if lat is None or lon is None:
            return api_error('Set a meeting spot location to see marine conditions', 400,
                             code='VALIDATION')

        try:
            conditions = check_marine_conditions(float(lat), float(lon))
        except IntegrationError as e:
            current_app.logger.warning('Weather lookup for captain %s failed: %s', current_user.id, e)
            return api_error(str(e), 502)

        return api_success(data=conditions)

    @bp.route('/audit-logs')
    @login_required
    def audit_logs():
        """The captain's own audit trail, newest first."""
        limit = max(1, min(request.args.get('limit', 100, type=int), 500))
        offset = max(0, request.args.get('offset', 0, type=int))

        logs = get_audit_logs(
            user_id=current_user.id,
            action=request.args.get('action') or None,
            entity_type=request.args.get('entity_type') or None,
            entity_id=request.args.get('entity_id', type=int),
            start_date=request.args.get('start_date') or None,
            end_date=request.args.get('end_date') or None,
            limit=limit,
            offset=offset
        )
        return api_success(data=logs, pagination={'limit': limit, 'offset': offset, 'count': len(logs)})
