"""
Schedule API routes.
Weekly availability windows and blackout dates.
"""

from flask import request
from flask_login import login_required, current_user

from models.availability import get_availability_windows, set_availability_windows
from models.blackout import (
    create_blackout_date, create_blackout_range, delete_blackout_date, get_blackout_dates
)
from models.booking_state import BookingError
from utils.api_response import api_success, api_error, booking_error
from utils.audit import log_create, log_delete, log_update
from utils.messages import MESSAGES


def register_routes(bp):
    """Register availability and blackout routes on the blueprint."""

    # ============================================================================
    # AVAILABILITY WINDOWS
    # ============================================================================

    @bp.route('/availability-windows')
    @login_required
    def availability_windows_list():
        """Weekly working hours, Sunday first."""
        return api_success(data=get_availability_windows(current_user.id))

    @bp.route('/availability-windows', methods=['PUT'])
    @login_required
    def availability_windows_update():
        """Replace windows: {windows: [{day_of_week, start_time, end_time, is_active}]}."""
        data = request.get_json(silent=True) or {}
        windows = data.get('windows')
        if not isinstance(windows, list) or not windows:
            return api_error('windows must be a non-empty list', 400, code='VALIDATION')

        before = get_availability_windows(current_user.id)
        try:
            set_availability_windows(current_user.id, windows)
        except BookingError as e:
            return booking_error(e)

        after = get_availability_windows(current_user.id)
        log_update('availability', current_user.id, before={'windows': before}, after={'windows': after})
        return api_success(data=after, message=MESSAGES['schedule_updated'])

    # ============================================================================
    # BLACKOUT DATES
    # ============================================================================

    @bp.route('/blackouts')
    @login_required
    def blackouts_list():
        """Blackout dates, optionally between ?start= and ?end=."""
        return api_success(data=get_blackout_dates(
            current_user.id,
            start_date=request.args.get('start') or None,
            end_date=request.args.get('end') or None
        ))

    @bp.route('/blackouts', methods=['POST'])
    @login_required
    def blackouts_create():
        """
        Black out one date ({date, reason}) or a range ({start_date, end_date, reason}).
        """
        data = request.get_json(silent=True) or {}
        reason = (data.get('reason') or '').strip() or None

        try:
            if data.get('start_date') or data.get('end_date'):
                result = create_blackout_range(
                    current_user.id, data.get('start_date'), data.get('end_date'), reason
                )
                log_create('blackout', None, data={
                    'start_date': data.get('start_date'),
                    'end_date': data.get('end_date'),
                    'created': len(result['created']),
                })
                return api_success(
                    data=result,
                    message=MESSAGES['blackout_range_created'].format(count=len(result['created'])),
                    status=201
                )

            if not data.get('date'):
                return api_error('date is required', 400, code='VALIDATION')

            blackout_id = create_blackout_date(current_user.id, data['date'], reason)
        except BookingError as e:
            return booking_error(e)

        log_create('blackout', blackout_id, data={'date': data['date'], 'reason': reason})
        return api_success(
            data={'id': blackout_id, 'blackout_date': data['date'], 'reason': reason},
            message=MESSAGES['blackout_created'],
            status=201
        )

    @bp.route('/blackouts/<int:blackout_id>', methods=['DELETE'])
    @login_required
    def blackouts_delete(blackout_id):
        """Remove a blackout date."""
        if not delete_blackout_date(blackout_id, current_user.id):
            return api_error('Blackout date not found', 404, code='NOT_FOUND')

        log_delete('blackout', blackout_id)
        return api_success(message=MESSAGES['blackout_deleted'])
