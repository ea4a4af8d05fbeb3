"""
Guest and captain notifications.
Renders the email templates under templates/emails/ and hands them to the
email service.
"""

import logging
from flask import current_app, render_template

from models.profile import get_captain_name
from services import IntegrationError
from services.email import send_email
from utils.datetime_helpers import format_local
from utils.helpers import format_cents, payment_method_label, short_booking_ref

logger = logging.getLogger(__name__)


def booking_context(booking: dict, profile: dict) -> dict:
    """
    Template variables shared by every booking email.

    Args:
        booking: Booking dict (with trip_title and vessel_name when joined)
        profile: Captain profile dict

    Returns:
        dict of formatted values
    """
    tz_name = profile.get('timezone')
    manage_url = None
    if booking.get('management_token'):
        manage_url = f"{current_app.config.get('APP_URL')}/manage/{booking['management_token']}"

    return {
        'guest_name': booking['guest_name'],
        'trip_title': booking.get('trip_title') or 'Charter Trip',
        'vessel_name': booking.get('vessel_name') or 'Charter Vessel',
        'trip_date': format_local(booking['scheduled_start'], tz_name, '%A, %B %d, %Y'),
        'trip_time': format_local(booking['scheduled_start'], tz_name, '%I:%M %p').lstrip('0'),
        'party_size': booking['party_size'],
        'reference': short_booking_ref(booking['id']),
        'confirmation_code': booking.get('confirmation_code'),
        'total': format_cents(booking['total_price_cents']),
        'deposit_paid': format_cents(booking['deposit_paid_cents']),
        'balance_due': format_cents(booking['balance_due_cents']),
        'captain_name': get_captain_name(profile),
        'meeting_spot': profile.get('meeting_spot_name') or 'TBD',
        'manage_url': manage_url,
        'brand_color': profile.get('brand_color') or '#06b6d4',
    }


def payment_contact(method: str, profile: dict) -> str:
    """Where the guest sends a Venmo or Zelle payment."""
    if method == 'venmo':
        return '@' + (profile.get('venmo_username') or '').lstrip('@')
    if method == 'zelle':
        return profile.get('zelle_contact') or ''
    return ''


def _deliver(to: str, subject: str, template: str, raise_errors: bool = False,
             reply_to: str = None, **context) -> bool:
    """
    Render and send one email.

    Args:
        to: Recipient address
        subject: Subject line
        template: Template name under templates/emails/
        raise_errors: Re-raise delivery failures instead of logging them
        reply_to: Optional Reply-To address
        **context: Template variables

    Returns:
        True when sent (or skipped because email is disabled), False when
        delivery failed and raise_errors is off
    """
    html = render_template(f'emails/{template}', subject=subject, **context)
    try:
        send_email(to, subject, html, reply_to=reply_to)
        return True
    except IntegrationError:
        if raise_errors:
            raise
        logger.warning('Notification "%s" to %s was not delivered', subject, to)
        return False


# =============================================================================
# GUEST EMAILS
# =============================================================================

def notify_booking_received(booking: dict, profile: dict) -> bool:
    """Tell the guest their booking is held pending a deposit."""
    ctx = booking_context(booking, profile)
    return _deliver(
        booking['guest_email'],
        f"Booking Received - {ctx['trip_title']} with {ctx['captain_name']}",
        'booking_received.html',
        reply_to=profile.get('email'),
        cancellation_policy=profile.get('cancellation_policy'),
        **ctx
    )


def notify_payment_confirmed(booking: dict, profile: dict, fully_paid: bool) -> bool:
    """Tell the guest their payment was verified and the trip is confirmed."""
    ctx = booking_context(booking, profile)
    return _deliver(
        booking['guest_email'],
        f"Payment Confirmed - {ctx['trip_title']} on {ctx['trip_date']}",
        'payment_confirmed.html',
        reply_to=profile.get('email'),
        fully_paid=fully_paid,
        **ctx
    )


def notify_payment_reminder(booking: dict, profile: dict) -> bool:
    """
    Remind the guest to complete a Venmo/Zelle payment.

    Raises:
        IntegrationError: When delivery fails (the reminder is the action)
    """
    ctx = booking_context(booking, profile)
    method = booking.get('payment_method')
    return _deliver(
        booking['guest_email'],
        f"Payment Reminder - Your Upcoming Trip with {ctx['captain_name']}",
        'payment_reminder.html',
        raise_errors=True,
        reply_to=profile.get('email'),
        method_label=payment_method_label(method),
        payment_contact=payment_contact(method, profile),
        **ctx
    )


def notify_alt_payment_submitted(booking: dict, profile: dict, auto_confirmed: bool) -> bool:
    """Acknowledge a Venmo/Zelle payment to the guest and alert the captain."""
    ctx = booking_context(booking, profile)
    method_label = payment_method_label(booking.get('payment_method'))

    guest_sent = _deliver(
        booking['guest_email'],
        f"{'Booking Confirmed' if auto_confirmed else 'Payment Submitted'} - {ctx['trip_title']}",
        'alt_payment_guest.html',
        reply_to=profile.get('email'),
        method_label=method_label,
        auto_confirmed=auto_confirmed,
        **ctx
    )
    captain_sent = _deliver(
        profile['email'],
        f"Verify {method_label} payment from {booking['guest_name']} ({ctx['reference']})",
        'alt_payment_captain.html',
        method_label=method_label,
        auto_confirmed=auto_confirmed,
        guest_email=booking['guest_email'],
        **ctx
    )
    return guest_sent and captain_sent


def notify_balance_request(booking: dict, profile: dict) -> bool:
    """
    Ask the guest to pay the remaining balance.

    Raises:
        IntegrationError: When delivery fails
    """
    ctx = booking_context(booking, profile)
    return _deliver(
        booking['guest_email'],
        f"Balance Due - {ctx['trip_title']} on {ctx['trip_date']}",
        'balance_request.html',
        raise_errors=True,
        reply_to=profile.get('email'),
        **ctx
    )


def notify_custom_message(booking: dict, profile: dict, subject: str, message: str) -> bool:
    """
    Send a captain-written message to the guest.

    Raises:
        IntegrationError: When delivery fails
    """
    ctx = booking_context(booking, profile)
    return _deliver(
        booking['guest_email'],
        subject,
        'custom_message.html',
        raise_errors=True,
        reply_to=profile.get('email'),
        message_paragraphs=[p for p in message.split('\n') if p.strip()],
        **ctx
    )


def notify_weather_hold(booking: dict, profile: dict, reason: str, offers: list) -> bool:
    """Tell the guest the trip is on hold and list the alternative dates."""
    ctx = booking_context(booking, profile)
    tz_name = profile.get('timezone')
    offer_lines = [
        format_local(o['proposed_start'], tz_name, '%A, %B %d at %I:%M %p') for o in offers
    ]
    return _deliver(
        booking['guest_email'],
        f"Weather Update - {ctx['trip_title']} on {ctx['trip_date']}",
        'weather_hold.html',
        reply_to=profile.get('email'),
        reason=reason,
        offer_lines=offer_lines,
        **ctx
    )


def notify_rescheduled(booking: dict, profile: dict) -> bool:
    """Confirm the new date after a reschedule."""
    ctx = booking_context(booking, profile)
    return _deliver(
        booking['guest_email'],
        f"Trip Rescheduled - {ctx['trip_title']} on {ctx['trip_date']}",
        'rescheduled.html',
        reply_to=profile.get('email'),
        **ctx
    )


# =============================================================================
# CAPTAIN EMAILS
# =============================================================================

def notify_captain_date_request(booking: dict, profile: dict, message: str) -> bool:
    """Forward a guest's request for different dates to the captain."""
    ctx = booking_context(booking, profile)
    return _deliver(
        profile['email'],
        f"{booking['guest_name']} asked for different dates ({ctx['reference']})",
        'date_request_captain.html',
        reply_to=booking['guest_email'],
        guest_message=message,
        **ctx
    )
