"""
Stripe Checkout sessions and webhook verification through the Stripe SDK.
"""

import json
import logging

import stripe
from flask import current_app

from services import IntegrationError

logger = logging.getLogger(__name__)


class SignatureError(ValueError):
    """A webhook payload did not carry a valid Stripe signature."""


def create_checkout_session(booking: dict, trip_title: str, amount_cents: int,
                            success_url: str, cancel_url: str) -> dict:
    """
    Create a Checkout session for a booking deposit.

    Args:
        booking: Booking dict (id, guest_email, total_price_cents)
        trip_title: Line item name
        amount_cents: Amount to charge
        success_url: Redirect after payment
        cancel_url: Redirect when the guest backs out

    Returns:
        dict with id and url of the session

    Raises:
        IntegrationError: If Stripe is not configured or rejects the request
    """
    secret_key = current_app.config.get('STRIPE_SECRET_KEY')
    if not secret_key:
        raise IntegrationError('Card payments are not configured')

    try:
        session = stripe.checkout.Session.create(
            api_key=secret_key,
            mode='payment',
            customer_email=booking['guest_email'],
            success_url=success_url,
            cancel_url=cancel_url,
            line_items=[{
                'quantity': 1,
                'price_data': {
                    'currency': 'usd',
                    'unit_amount': amount_cents,
                    'product_data': {'name': f'{trip_title} - Deposit'},
                },
            }],
            metadata={
                'bookingId': str(booking['id']),
                'depositAmount': str(amount_cents),
                'totalAmount': str(booking['total_price_cents']),
            },
        )
    except stripe.StripeError as e:
        logger.error('Stripe checkout for booking %s failed: %s', booking['id'], e, exc_info=True)
        raise IntegrationError(f'Could not start checkout: {e}') from e

    return {'id': session.id, 'url': session.url}


def construct_event(payload: bytes, signature_header: str, secret: str) -> dict:
    """
    Verify a webhook signature and decode the event.

    Args:
        payload: Raw request body
        signature_header: Value of the Stripe-Signature header
        secret: Webhook signing secret

    Returns:
        Decoded event as a plain dict

    Raises:
        SignatureError: When the header is missing, stale or does not match
        ValueError: When a correctly signed body is not a JSON object
    """
    if not signature_header:
        raise SignatureError('Missing signature')

    try:
        stripe.Webhook.construct_event(payload, signature_header, secret)
    except stripe.SignatureVerificationError as e:
        raise SignatureError(str(e)) from e

    event = json.loads(payload)
    if not isinstance(event, dict):
        raise ValueError('Webhook payload is not a JSON object')
    return event
