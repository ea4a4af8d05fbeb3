"""
Payment API routes.
Manual payments, refunds and quick "mark as paid" actions.
"""

from flask import request
from flask_login import login_required, current_user

from blueprints.dashboard.routes.bookings import booking_payload
from models.booking_state import BookingError
from models.payment import (
    get_payments, mark_deposit_paid, mark_fully_paid, record_payment, record_refund
)
from utils.api_response import api_success, booking_error
from utils.audit import log_audit
from utils.decorators import booking_owner_required
from utils.messages import MESSAGES


def register_routes(bp):
    """Register payment routes on the blueprint."""

    @bp.route('/bookings/<int:booking_id>/payments')
    @login_required
    @booking_owner_required
    def bookings_payments(booking_id, booking):
        """Payment rows for a booking, oldest first."""
        return api_success(data=get_payments(booking_id))

    @bp.route('/bookings/<int:booking_id>/record-payment', methods=['POST'])
    @login_required
    def bookings_record_payment(booking_id):
        """Record cash or other offline payment: {amount_cents, payment_type, notes}."""
        data = request.get_json(silent=True) or {}

        try:
            booking = record_payment(
                booking_id, current_user.id,
                data.get('amount_cents'),
                data.get('payment_type') or 'balance',
                notes=data.get('notes'),
                actor_id=current_user.id
            )
        except BookingError as e:
            return booking_error(e)

        log_audit('record_payment', 'booking', booking_id, after={
            'amount_cents': data.get('amount_cents'),
            'payment_type': data.get('payment_type') or 'balance',
        })
        return api_success(data=booking_payload(booking), message=MESSAGES['payment_recorded'])

    @bp.route('/bookings/<int:booking_id>/refund', methods=['POST'])
    @login_required
    def bookings_refund(booking_id):
        """Record a refund: {amount_cents, reason}."""
        data = request.get_json(silent=True) or {}

        try:
            booking = record_refund(
                booking_id, current_user.id,
                data.get('amount_cents'),
                reason=data.get('reason'),
                actor_id=current_user.id
            )
        except BookingError as e:
            return booking_error(e)

        log_audit('refund', 'booking', booking_id, after={
            'amount_cents': data.get('amount_cents'),
            'reason': data.get('reason'),
        })
        return api_success(data=booking_payload(booking), message=MESSAGES['refund_recorded'])

    @bp.route('/bookings/<int:booking_id>/mark-deposit-paid', methods=['POST'])
    @login_required
    def bookings_mark_deposit_paid(booking_id):
        """Mark the deposit as received."""
        try:
            booking = mark_deposit_paid(booking_id, current_user.id, actor_id=current_user.id)
        except BookingError as e:
            return booking_error(e)

        return api_success(data=booking_payload(booking), message=MESSAGES['payment_recorded'])

    @bp.route('/bookings/<int:booking_id>/mark-fully-paid', methods=['POST'])
    @login_required
    def bookings_mark_fully_paid(booking_id):
        """Mark the whole price as received."""
        try:
            booking = mark_fully_paid(booking_id, current_user.id, actor_id=current_user.id)
        except BookingError as e:
            return booking_error(e)

        return api_success(data=booking_payload(booking), message=MESSAGES['payment_recorded'])
