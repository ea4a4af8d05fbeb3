"""
Settings API routes.
Trip types, vessels, captain profile and hibernation.
"""

import re
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from flask import request
from flask_login import login_required, current_user

from models.profile import (
    EDITABLE_PROFILE_FIELDS, get_hibernation_info, get_profile_by_id,
    set_hibernation, update_profile
)
from models.trip_type import create_trip_type, get_trip_type_by_id, get_trip_types, update_trip_type
from models.vessel import create_vessel, get_vessel_by_id, get_vessels, update_vessel
from utils.api_response import api_success, api_error
from utils.audit import audit_action, log_create, log_update
from utils.messages import MESSAGES
from utils.validators import validate_date_format, validate_phone

HEX_COLOR = re.compile(r'^#[0-9a-fA-F]{6}$')

# Profile columns stored as 0/1
BOOLEAN_PROFILE_FIELDS = (
    'show_email_publicly', 'show_phone_publicly', 'venmo_enabled',
    'zelle_enabled', 'auto_confirm_alt_payments'
)

# Profile payload never exposes credentials
PRIVATE_PROFILE_FIELDS = ('password_hash',)


def _profile_payload(profile: dict) -> dict:
    return {k: v for k, v in profile.items() if k not in PRIVATE_PROFILE_FIELDS}


def _clean_profile_fields(data: dict) -> dict:
    """
    Validate editable profile fields.

    Raises:
        ValueError: On invalid values
    """
    fields = {k: v for k, v in data.items() if k in EDITABLE_PROFILE_FIELDS}

    if 'timezone' in fields:
        try:
            ZoneInfo(fields['timezone'])
        except (ZoneInfoNotFoundError, ValueError, TypeError):
            raise ValueError('Unknown timezone') from None

    if fields.get('brand_color') and not HEX_COLOR.match(fields['brand_color']):
        raise ValueError('Brand color must be a hex color like #06b6d4')

    if fields.get('phone') and not validate_phone(fields['phone']):
        raise ValueError('Phone must be a US number')

    for field in ('advance_booking_days', 'booking_buffer_minutes'):
        if field in fields:
            value = fields[field]
            if not isinstance(value, int) or isinstance(value, bool) or value < 0:
                raise ValueError(f"{field.replace('_', ' ').capitalize()} must be a non-negative integer")

    for field in ('meeting_spot_latitude', 'meeting_spot_longitude'):
        if fields.get(field) is not None:
            try:
                fields[field] = float(fields[field])
            except (TypeError, ValueError):
                raise ValueError('Meeting spot coordinates must be numbers') from None

    for field in BOOLEAN_PROFILE_FIELDS:
        if field in fields:
            fields[field] = 1 if fields[field] else 0

    return fields


def register_routes(bp):
    """Register settings routes on the blueprint."""

    # ============================================================================
    # TRIP TYPES
    # ============================================================================

    @bp.route('/trip-types')
    @login_required
    def trip_types_list():
        """All of the captain's trip types."""
        return api_success(data=get_trip_types(current_user.id))

    @bp.route('/trip-types', methods=['POST'])
    @login_required
    def trip_types_create():
        """Create a trip type."""
        data = request.get_json(silent=True)
        if not data:
            return api_error(MESSAGES['data_required'], 400, code='VALIDATION')

        try:
            trip_type_id = create_trip_type(current_user.id, data)
        except ValueError as e:
            return api_error(str(e), 400, code='VALIDATION')

        trip_type = get_trip_type_by_id(trip_type_id)
        log_create('trip_type', trip_type_id, data={'title': trip_type['title']})
        return api_success(data=trip_type, message=MESSAGES['trip_type_saved'], status=201)

    @bp.route('/trip-types/<int:trip_type_id>', methods=['PATCH'])
    @login_required
    @audit_action('UPDATE', 'trip_type', entity_id_param='trip_type_id')
    def trip_types_update(trip_type_id):
        """Edit a trip type; fields are merged over current values."""
        data = request.get_json(silent=True) or {}

        try:
            updated = update_trip_type(trip_type_id, current_user.id, data)
        except ValueError as e:
            return api_error(str(e), 400, code='VALIDATION')

        if not updated:
            return api_error('Trip type not found', 404, code='NOT_FOUND')
        return api_success(data=get_trip_type_by_id(trip_type_id), message=MESSAGES['trip_type_saved'])

    # ============================================================================
    # VESSELS
    # ============================================================================

    @bp.route('/vessels')
    @login_required
    def vessels_list():
        """All of the captain's vessels."""
        return api_success(data=get_vessels(current_user.id))

    @bp.route('/vessels', methods=['POST'])
    @login_required
    def vessels_create():
        """Create a vessel: {name, capacity, description}."""
        data = request.get_json(silent=True) or {}

        try:
            vessel_id = create_vessel(current_user.id, data.get('name'), data.get('capacity'),
                                      data.get('description'))
        except ValueError as e:
            return api_error(str(e), 400, code='VALIDATION')

        log_create('vessel', vessel_id, data={'name': data.get('name'), 'capacity': data.get('capacity')})
        return api_success(data=get_vessel_by_id(vessel_id), message=MESSAGES['vessel_saved'], status=201)

    @bp.route('/vessels/<int:vessel_id>', methods=['PATCH'])
    @login_required
    @audit_action('UPDATE', 'vessel', entity_id_param='vessel_id')
    def vessels_update(vessel_id):
        """Edit a vessel."""
        data = request.get_json(silent=True) or {}

        try:
            updated = update_vessel(vessel_id, current_user.id, name=data.get('name'),
                                    capacity=data.get('capacity'),
                                    description=data.get('description'))
        except ValueError as e:
            return api_error(str(e), 400, code='VALIDATION')

        if not updated:
            return api_error('Vessel not found', 404, code='NOT_FOUND')
        return api_success(data=get_vessel_by_id(vessel_id), message=MESSAGES['vessel_saved'])

    # ============================================================================
    # PROFILE
    # ============================================================================

    @bp.route('/profile')
    @login_required
    def profile_get():
        """The logged-in captain's settings."""
        return api_success(data=_profile_payload(get_profile_by_id(current_user.id)))

    @bp.route('/profile', methods=['PATCH'])
    @login_required
    def profile_update():
        """Edit business details, meeting spot, payment options and booking rules."""
        data = request.get_json(silent=True) or {}

        try:
            fields = _clean_profile_fields(data)
        except ValueError as e:
            return api_error(str(e), 400, code='VALIDATION')

        if not fields:
            return api_error('No editable fields supplied', 400, code='VALIDATION')

        before = get_profile_by_id(current_user.id)
        update_profile(current_user.id, **fields)
        after = get_profile_by_id(current_user.id)

        log_update('profile', current_user.id,
                   before={k: before.get(k) for k in fields},
                   after={k: after.get(k) for k in fields})
        return api_success(data=_profile_payload(after), message=MESSAGES['profile_updated'])

    @bp.route('/profile/hibernation')
    @login_required
    def hibernation_get():
        """Current hibernation settings as guests would see them."""
        return api_success(data=get_hibernation_info(get_profile_by_id(current_user.id)))

    @bp.route('/profile/hibernation', methods=['POST'])
    @login_required
    def hibernation_set():
        """
        Pause or resume public bookings.

        Body: {is_hibernating, message, end_date, show_return_date,
        allow_notifications, show_contact_info}
        """
        data = request.get_json(silent=True) or {}
        is_hibernating = bool(data.get('is_hibernating'))
        end_date = data.get('end_date') or None

        if end_date and not validate_date_format(end_date):
            return api_error('End date must be YYYY-MM-DD', 400, code='VALIDATION')

        set_hibernation(
            current_user.id, is_hibernating,
            message=(data.get('message') or '').strip() or None,
            end_date=end_date,
            show_return_date=bool(data.get('show_return_date')),
            allow_notifications=bool(data.get('allow_notifications')),
            show_contact_info=bool(data.get('show_contact_info'))
        )

        log_update('profile', current_user.id, after={'is_hibernating': is_hibernating, 'end_date': end_date})
        return api_success(data=get_hibernation_info(get_profile_by_id(current_user.id)),
                           message=MESSAGES['profile_updated'])
