"""
Guest messaging API routes.
"""

from flask import current_app, request
from flask_login import login_required, current_user

from models.booking_state import BookingError
from models.messaging import request_balance, send_guest_message, send_guest_sms
from services import IntegrationError
from utils.api_response import api_success, api_error, booking_error
from utils.audit import log_audit
from utils.decorators import booking_owner_required
from utils.messages import MESSAGES


def register_routes(bp):
    """Register guest messaging routes on the blueprint."""

    @bp.route('/bookings/<int:booking_id>/send-message', methods=['POST'])
    @login_required
    @booking_owner_required
    def bookings_send_message(booking_id, booking):
        """Email the guest: {subject, message}."""
        data = request.get_json(silent=True) or {}

        try:
            send_guest_message(booking, data.get('subject'), data.get('message'),
                               actor_id=current_user.id)
        except BookingError as e:
            return booking_error(e)
        except IntegrationError as e:
            current_app.logger.error('Email to guest of booking %s failed: %s', booking_id, e)
            return api_error('Failed to send email', 502)

        log_audit('sent_message', 'booking', booking_id, after={
            'to': booking['guest_email'],
            'subject': data.get('subject'),
        })
        return api_success(message=MESSAGES['message_sent'])

    @bp.route('/bookings/<int:booking_id>/send-sms', methods=['POST'])
    @login_required
    @booking_owner_required
    def bookings_send_sms(booking_id, booking):
        """Text the guest: {message}."""
        data = request.get_json(silent=True) or {}

        try:
            message_sid = send_guest_sms(booking, data.get('message'), actor_id=current_user.id)
        except BookingError as e:
            return booking_error(e)
        except IntegrationError as e:
            current_app.logger.error('SMS to guest of booking %s failed: %s', booking_id, e)
            return api_error('Failed to send SMS', 502)

        log_audit('sent_sms', 'booking', booking_id, after={
            'to': booking['guest_phone'],
            'length': len((data.get('message') or '').strip()),
            'sid': message_sid,
        })
        return api_success(data={'sid': message_sid}, message=MESSAGES['sms_sent'])

    @bp.route('/bookings/<int:booking_id>/request-balance', methods=['POST'])
    @login_required
    @booking_owner_required
    def bookings_request_balance(booking_id, booking):
        """Email the guest a request for the remaining balance."""
        try:
            request_balance(booking, actor_id=current_user.id)
        except BookingError as e:
            return booking_error(e)
        except IntegrationError as e:
            current_app.logger.error('Balance request for booking %s failed: %s', booking_id, e)
            return api_error('Failed to send email', 502)

        log_audit('request_balance', 'booking', booking_id,
                  after={'balance_due_cents': booking['balance_due_cents']})
        return api_success(message=MESSAGES['balance_requested'])
