"""
Public (guest-facing) routes.
Captain page, availability, booking submission, payment and the
token-based manage page. No login; CSRF exempt.
"""

from flask import Blueprint, current_app, request

from models.availability import get_available_slots, get_month_availability
from models.booking import get_booking_by_id
from models.booking_state import BookingError
from models.payment import (
    ALT_PAYMENT_METHODS, apply_stripe_checkout_completed, complete_alt_payment,
    required_deposit_cents
)
from models.public_booking import (
    create_public_booking, get_public_captain, guest_request_different_dates,
    guest_select_reschedule_offer, lookup_booking_by_token
)
from services import IntegrationError
from services.stripe_checkout import SignatureError, construct_event, create_checkout_session
from utils.api_response import api_success, api_error, booking_error
from utils.messages import MESSAGES

public_bp = Blueprint('public', __name__)


def client_ip() -> str:
    """Client address, trusting the first X-Forwarded-For hop from the proxy."""
    forwarded = request.headers.get('X-Forwarded-For', '')
    if forwarded:
        return forwarded.split(',')[0].strip()
    return request.remote_addr or 'unknown'


# =============================================================================
# CAPTAIN PAGE AND AVAILABILITY
# =============================================================================

@public_bp.route('/public/captains/<int:captain_id>')
def captain_page(captain_id):
    """Public profile, bookable trip types and hibernation notice."""
    try:
        return api_success(data=get_public_captain(captain_id))
    except BookingError as e:
        return booking_error(e)


@public_bp.route('/availability/<int:captain_id>/<int:trip_type_id>')
def availability(captain_id, trip_type_id):
    """Open start times for ?date=YYYY-MM-DD, or a day summary for ?month=YYYY-MM."""
    date_str = request.args.get('date')
    month = request.args.get('month')

    if not date_str and not month:
        return api_error('date or month is required', 400, code='VALIDATION')

    try:
        if date_str:
            result = get_available_slots(captain_id, trip_type_id, date_str)
        else:
            result = get_month_availability(captain_id, trip_type_id, month)
    except BookingError as e:
        return booking_error(e)

    return api_success(data=result)


# =============================================================================
# BOOKING AND PAYMENT
# =============================================================================

@public_bp.route('/public/bookings', methods=['POST'])
def public_booking_create():
    """Submit a booking; the slot is re-checked on the server."""
    data = request.get_json(silent=True)
    if not data:
        return api_error(MESSAGES['data_required'], 400, code='VALIDATION')

    try:
        result = create_public_booking(data)
    except BookingError as e:
        current_app.logger.info('Public booking refused (%s): %s', e.code, e)
        return booking_error(e)

    return api_success(data=result, status=201)


@public_bp.route('/bookings/complete-alt-payment', methods=['POST'])
def complete_alt_payment_route():
    """Guest reports a Venmo or Zelle payment: {bookingId, paymentMethod}."""
    data = request.get_json(silent=True) or {}
    booking_id = data.get('bookingId') or data.get('booking_id')
    method = data.get('paymentMethod') or data.get('payment_method')

    if not booking_id or not method:
        return api_error('Missing bookingId or paymentMethod', 400, code='VALIDATION')
    if method not in ALT_PAYMENT_METHODS:
        return api_error('Invalid payment method', 400, code='VALIDATION')

    try:
        result = complete_alt_payment(int(booking_id), method)
    except BookingError as e:
        return booking_error(e)
    except ValueError:
        return api_error('Invalid booking id', 400, code='VALIDATION')

    return api_success(data=result)


@public_bp.route('/public/bookings/<int:booking_id>/checkout', methods=['POST'])
def checkout(booking_id):
    """Start a Stripe Checkout session for the deposit."""
    booking = get_booking_by_id(booking_id)
    if not booking:
        return api_error(MESSAGES['booking_not_found'], 404, code='NOT_FOUND')
    if booking['payment_status'] != 'unpaid' or booking['deposit_paid_cents']:
        return api_error('Deposit already paid', 400, code='VALIDATION')
    if booking['status'] != 'pending_deposit':
        return api_error('Booking is not awaiting payment', 400, code='VALIDATION')

    app_url = current_app.config.get('APP_URL', '').rstrip('/')
    try:
        session = create_checkout_session(
            booking,
            booking.get('trip_title') or 'Charter Trip',
            required_deposit_cents(booking),
            success_url=(f'{app_url}/payment/success?session_id={{CHECKOUT_SESSION_ID}}'
                         f'&booking_id={booking_id}'),
            cancel_url=(f"{app_url}/book/{booking['captain_id']}/{booking['trip_type_id']}"
                        f'/confirm?bookingId={booking_id}&payment=cancelled')
        )
    except IntegrationError as e:
        current_app.logger.error('Checkout for booking %s failed: %s', booking_id, e)
        return api_error('Failed to create checkout session', 502)

    return api_success(data={'session_id': session['id'], 'url': session['url']})


@public_bp.route('/stripe/webhook', methods=['POST'])
def stripe_webhook():
    """Apply completed Checkout sessions; the signature is verified first."""
    secret = current_app.config.get('STRIPE_WEBHOOK_SECRET')
    if not secret:
        current_app.logger.error('Stripe webhook received but STRIPE_WEBHOOK_SECRET is not set')
        return api_error('Webhook not configured', 500)

    try:
        event = construct_event(request.get_data(), request.headers.get('Stripe-Signature'), secret)
    except SignatureError as e:
        current_app.logger.warning('Rejected Stripe webhook: %s', e)
        return api_error('Invalid signature', 400)
    except ValueError as e:
        current_app.logger.warning('Unreadable Stripe webhook body: %s', e)
        return api_error('Invalid payload', 400)

    if event.get('type') != 'checkout.session.completed':
        return api_success(data={'received': True})

    session = (event.get('data') or {}).get('object') or {}
    metadata = session.get('metadata') or {}
    try:
        booking_id = int(metadata['bookingId'])
        deposit = int(metadata['depositAmount']) if metadata.get('depositAmount') else None
    except (KeyError, TypeError, ValueError):
        current_app.logger.error('Stripe session %s has no usable booking metadata', session.get('id'))
        return api_error('Missing booking metadata', 400)

    try:
        result = apply_stripe_checkout_completed(booking_id, session['id'], deposit_cents=deposit)
    except BookingError as e:
        current_app.logger.error('Stripe session %s for booking %s not applied: %s',
                                 session.get('id'), booking_id, e)
        return booking_error(e)

    return api_success(data={'received': True, **result})


# =============================================================================
# MANAGE PAGE
# =============================================================================

@public_bp.route('/public/manage/<token>')
def manage_lookup(token):
    """Guest view of a booking by guest or management token."""
    try:
        return api_success(data=lookup_booking_by_token(token, ip=client_ip()))
    except BookingError as e:
        return booking_error(e)


@public_bp.route('/public/manage/<token>/select-offer', methods=['POST'])
def manage_select_offer(token):
    """Pick one of the dates offered after a weather hold: {offer_id}."""
    data = request.get_json(silent=True) or {}
    offer_id = data.get('offer_id') or data.get('offerId')
    if not offer_id:
        return api_error('offer_id is required', 400, code='VALIDATION')

    try:
        result = guest_select_reschedule_offer(token, int(offer_id), ip=client_ip())
    except BookingError as e:
        return booking_error(e)
    except ValueError:
        return api_error('Invalid offer id', 400, code='VALIDATION')

    return api_success(data=result, message=MESSAGES['offer_accepted'])


@public_bp.route('/public/manage/<token>/request-dates', methods=['POST'])
def manage_request_dates(token):
    """Ask the captain for other dates: {message}."""
    data = request.get_json(silent=True) or {}

    try:
        guest_request_different_dates(token, data.get('message'), ip=client_ip())
    except BookingError as e:
        return booking_error(e)

    return api_success(message=MESSAGES['dates_requested'])
