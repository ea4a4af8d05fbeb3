"""
Booking lifecycle API routes.
Status actions, weather holds, reschedule offers and Venmo/Zelle
payment verification.
"""

from flask import current_app, request
from flask_login import login_required, current_user

from blueprints.dashboard.routes.bookings import booking_payload
from models.booking import get_booking_for_captain
from models.booking_state import (
    BookingError, cancel_booking, complete_booking, mark_no_show,
    clear_weather_hold, transition_booking
)
from models.payment import verify_payment
from models.reschedule import (
    accept_reschedule_offer, create_reschedule_offers, get_offers_for_booking,
    place_weather_hold, suggest_offer_slots
)
from services import IntegrationError
from utils.api_response import api_success, api_error, booking_error
from utils.audit import log_audit
from utils.decorators import booking_owner_required
from utils.messages import MESSAGES

STATUS_ACTIONS = ('cancel', 'complete', 'mark_no_show', 'confirm', 'clear_weather_hold')

VERIFY_MESSAGES = {
    'confirmed': MESSAGES['payment_confirmed'],
    'reminded': MESSAGES['reminder_sent'],
    'cancelled': MESSAGES['booking_cancelled'],
}


def register_routes(bp):
    """Register booking lifecycle routes on the blueprint."""

    @bp.route('/bookings/<int:booking_id>/status', methods=['POST'])
    @login_required
    def bookings_status(booking_id):
        """Apply a lifecycle action: cancel, complete, mark_no_show, confirm, clear_weather_hold."""
        data = request.get_json(silent=True) or {}
        action = data.get('action')
        reason = (data.get('reason') or '').strip() or None

        if action not in STATUS_ACTIONS:
            return api_error(f'Unknown action: {action}', 400, code='VALIDATION')

        try:
            if action == 'cancel':
                cancel_booking(booking_id, current_user.id, reason=reason,
                               actor_id=current_user.id)
            elif action == 'complete':
                complete_booking(booking_id, current_user.id, actor_id=current_user.id)
            elif action == 'mark_no_show':
                mark_no_show(booking_id, current_user.id, actor_id=current_user.id)
            elif action == 'clear_weather_hold':
                clear_weather_hold(booking_id, current_user.id, actor_id=current_user.id)
            else:
                transition_booking(booking_id, 'confirm', actor_id=current_user.id,
                                   captain_id=current_user.id, reason=reason)
        except BookingError as e:
            return booking_error(e)

        booking = get_booking_for_captain(booking_id, current_user.id)
        log_audit('status_change', 'booking', booking_id,
                  after={'action': action, 'status': booking['status']})
        return api_success(data=booking_payload(booking))

    # ============================================================================
    # WEATHER HOLD AND RESCHEDULE
    # ============================================================================

    @bp.route('/bookings/<int:booking_id>/weather-hold', methods=['POST'])
    @login_required
    def bookings_weather_hold(booking_id):
        """
        Put a trip on weather hold.

        Body: {reason, proposed_dates?: [{start, end}]}. Without proposed
        dates, open slots over the next weeks are offered automatically.
        """
        data = request.get_json(silent=True) or {}

        try:
            result = place_weather_hold(
                booking_id, current_user.id,
                reason=data.get('reason'),
                proposed_dates=data.get('proposed_dates'),
                actor_id=current_user.id
            )
        except BookingError as e:
            return booking_error(e)

        log_audit('weather_hold', 'booking', booking_id,
                  after={'reason': data.get('reason'), 'offers': len(result['offers'])})
        return api_success(data=result, message=MESSAGES['weather_hold_set'])

    @bp.route('/bookings/<int:booking_id>/reschedule-offers')
    @login_required
    @booking_owner_required
    def bookings_offers_list(booking_id, booking):
        """Offers made so far, plus suggested open slots."""
        return api_success(data={
            'offers': get_offers_for_booking(booking_id),
            'suggestions': [
                {'start': start.isoformat(), 'end': end.isoformat()}
                for start, end in suggest_offer_slots(booking)
            ],
        })

    @bp.route('/bookings/<int:booking_id>/reschedule-offers', methods=['POST'])
    @login_required
    def bookings_offers_create(booking_id):
        """Offer alternative dates: {slots: [{start, end}]}."""
        data = request.get_json(silent=True) or {}

        try:
            offers = create_reschedule_offers(
                booking_id, current_user.id, data.get('slots') or [],
                actor_id=current_user.id
            )
        except BookingError as e:
            return booking_error(e)

        pending = [o for o in offers if not o['is_selected']]
        return api_success(
            data=offers,
            message=MESSAGES['offers_created'].format(count=len(pending)),
            status=201
        )

    @bp.route('/bookings/<int:booking_id>/reschedule-offers/<int:offer_id>/accept', methods=['POST'])
    @login_required
    def bookings_offer_accept(booking_id, offer_id):
        """Move the trip to an offered date on the guest's behalf."""
        try:
            accept_reschedule_offer(
                offer_id, booking_id=booking_id, captain_id=current_user.id,
                actor_type='captain', actor_id=current_user.id
            )
        except BookingError as e:
            return booking_error(e)

        booking = get_booking_for_captain(booking_id, current_user.id)
        return api_success(
            data=booking_payload(booking),
            message=MESSAGES['offer_accepted']
        )

    # ============================================================================
    # PAYMENT VERIFICATION
    # ============================================================================

    @bp.route('/bookings/verify-payment', methods=['POST'])
    @login_required
    def bookings_verify_payment():
        """Confirm, remind or cancel a pending Venmo/Zelle payment."""
        data = request.get_json(silent=True) or {}
        booking_id = data.get('booking_id') or data.get('bookingId')
        action = data.get('action')

        if not booking_id or not action:
            return api_error('Missing required fields', 400, code='VALIDATION')

        try:
            result = verify_payment(int(booking_id), current_user.id, action,
                                    actor_id=current_user.id)
        except BookingError as e:
            return booking_error(e)
        except ValueError:
            return api_error('Invalid booking id', 400, code='VALIDATION')
        except IntegrationError as e:
            current_app.logger.error('Payment reminder for booking %s failed: %s', booking_id, e)
            return api_error('Failed to send reminder email', 502, code='UNKNOWN')

        log_audit('verify_payment', 'booking', int(booking_id), after={'action': action})

        return api_success(
            data={'action': result['action'], 'booking': booking_payload(result['booking'])},
            message=VERIFY_MESSAGES[result['action']]
        )
