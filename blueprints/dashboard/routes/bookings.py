"""
Booking API routes.
List, detail, create and edit bookings; notes, tags, duplicate and search.
"""

from flask import current_app, request
from flask_login import login_required, current_user

from models.booking import (
    get_bookings_filtered, get_booking_for_captain, get_booking_passengers,
    search_bookings, get_all_tags, create_booking, update_booking,
    duplicate_booking, update_booking_notes, set_booking_tags
)
from models.booking_log import get_booking_logs
from models.booking_state import BookingError, get_allowed_actions
from models.payment import get_payments
from models.reschedule import get_offers_for_booking
from utils.api_response import api_success, api_error, booking_error
from utils.audit import log_create, log_update
from utils.decorators import booking_owner_required
from utils.helpers import short_booking_ref
from utils.messages import MESSAGES


def booking_payload(booking: dict) -> dict:
    """Booking dict as returned to the dashboard."""
    payload = dict(booking)
    payload['reference'] = short_booking_ref(booking['id'])
    payload['allowed_actions'] = get_allowed_actions(booking['status'])
    return payload


def split_arg(name: str) -> list:
    """Comma-separated query argument as a list (None when absent)."""
    raw = request.args.get(name, '')
    values = [v.strip() for v in raw.split(',') if v.strip()]
    return values or None


def register_routes(bp):
    """Register booking API routes on the blueprint."""

    # ============================================================================
    # LIST AND SEARCH
    # ============================================================================

    @bp.route('/bookings')
    @login_required
    def bookings_list():
        """Filtered, paginated booking list."""
        limit = request.args.get('limit', 20, type=int)
        offset = request.args.get('offset', 0, type=int)

        try:
            result = get_bookings_filtered(
                current_user.id,
                start_date=request.args.get('startDate') or None,
                end_date=request.args.get('endDate') or None,
                statuses=split_arg('status'),
                payment_statuses=split_arg('paymentStatus'),
                vessel_id=request.args.get('vesselId', type=int),
                search=request.args.get('search') or None,
                tags=split_arg('tags'),
                include_historical=request.args.get('includeHistorical') in ('1', 'true'),
                sort_field=request.args.get('sort', 'scheduled_start'),
                sort_dir=request.args.get('dir', 'asc'),
                limit=limit,
                offset=offset
            )
        except BookingError as e:
            return booking_error(e)

        bookings = [booking_payload(b) for b in result['bookings']]

        return api_success(
            data=bookings,
            total=result['total'],
            pagination={
                'limit': result['limit'],
                'offset': result['offset'],
                'count': len(bookings),
                'has_more': result['offset'] + len(bookings) < result['total']
            }
        )

    @bp.route('/search')
    @login_required
    def bookings_search():
        """Quick search by guest name, email, phone or confirmation code."""
        try:
            results = search_bookings(
                current_user.id,
                request.args.get('q', ''),
                limit=request.args.get('limit', 10, type=int)
            )
        except BookingError as e:
            return booking_error(e)

        return api_success(data=[booking_payload(b) for b in results])

    @bp.route('/tags')
    @login_required
    def bookings_tags():
        """Every tag in use, for filter pickers."""
        return api_success(data=get_all_tags(current_user.id))

    # ============================================================================
    # SINGLE BOOKING
    # ============================================================================

    @bp.route('/bookings', methods=['POST'])
    @login_required
    def bookings_create():
        """Create a booking from the dashboard."""
        data = request.get_json(silent=True)
        if not data:
            return api_error(MESSAGES['data_required'], 400, code='VALIDATION')

        try:
            booking_id = create_booking(current_user.id, data, actor_id=current_user.id)
        except BookingError as e:
            return booking_error(e)

        booking = get_booking_for_captain(booking_id, current_user.id)
        log_create('booking', booking_id, data={
            'guest_name': booking['guest_name'],
            'scheduled_start': booking['scheduled_start'],
        })

        return api_success(
            data=booking_payload(booking),
            message=MESSAGES['booking_created'].format(code=booking['confirmation_code']),
            status=201
        )

    @bp.route('/bookings/<int:booking_id>')
    @login_required
    @booking_owner_required
    def bookings_detail(booking_id, booking):
        """Booking with passengers, timeline, offers and payments."""
        payload = booking_payload(booking)
        payload['passengers'] = get_booking_passengers(booking_id)
        payload['logs'] = get_booking_logs(booking_id)
        payload['reschedule_offers'] = get_offers_for_booking(booking_id)
        payload['payments'] = get_payments(booking_id)
        return api_success(data=payload)

    @bp.route('/bookings/<int:booking_id>', methods=['PATCH'])
    @login_required
    def bookings_update(booking_id):
        """Edit guest details, party size, vessel or trip time."""
        data = request.get_json(silent=True)
        if not data:
            return api_error(MESSAGES['data_required'], 400, code='VALIDATION')

        try:
            changes = update_booking(booking_id, current_user.id, data, actor_id=current_user.id)
        except BookingError as e:
            return booking_error(e)

        if changes:
            log_update(
                'booking', booking_id,
                before={f: c['old'] for f, c in changes.items()},
                after={f: c['new'] for f, c in changes.items()}
            )

        booking = get_booking_for_captain(booking_id, current_user.id)
        return api_success(data=booking_payload(booking), message=MESSAGES['booking_updated'])

    @bp.route('/bookings/<int:booking_id>/notes', methods=['POST'])
    @login_required
    def bookings_notes(booking_id):
        """Replace internal and/or captain notes."""
        data = request.get_json(silent=True) or {}

        updated = update_booking_notes(
            booking_id, current_user.id,
            internal_notes=data.get('internal_notes'),
            captain_notes=data.get('captain_notes'),
            actor_id=current_user.id
        )
        if not updated:
            return api_error(MESSAGES['booking_not_found'], 404, code='NOT_FOUND')

        booking = get_booking_for_captain(booking_id, current_user.id)
        return api_success(data=booking_payload(booking), message=MESSAGES['booking_updated'])

    @bp.route('/bookings/<int:booking_id>/tags', methods=['POST'])
    @login_required
    def bookings_set_tags(booking_id):
        """Replace the booking's tags."""
        data = request.get_json(silent=True) or {}

        try:
            tags = set_booking_tags(booking_id, current_user.id, data.get('tags'),
                                    actor_id=current_user.id)
        except BookingError as e:
            return booking_error(e)

        return api_success(data={'tags': tags})

    @bp.route('/bookings/<int:booking_id>/duplicate', methods=['POST'])
    @login_required
    def bookings_duplicate(booking_id):
        """Copy a booking, optionally to another date or guest."""
        data = request.get_json(silent=True) or {}

        try:
            new_id = duplicate_booking(booking_id, current_user.id, overrides=data,
                                       actor_id=current_user.id)
        except BookingError as e:
            return booking_error(e)

        current_app.logger.info('Booking %s duplicated as %s', booking_id, new_id)
        log_create('booking', new_id, data={'duplicated_from': booking_id})

        booking = get_booking_for_captain(new_id, current_user.id)
        return api_success(
            data=booking_payload(booking),
            message=MESSAGES['booking_duplicated'],
            status=201
        )
