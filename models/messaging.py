"""
Captain-to-guest messaging.
Custom emails, text messages and balance requests, each recorded on the
booking timeline.
"""

import logging

from models.booking_log import create_booking_log
from models.booking_state import BookingError
from models.profile import get_profile_by_id
from services.notifications import notify_balance_request, notify_custom_message
from services.sms import MAX_SMS_LENGTH, send_sms
from utils.helpers import format_cents
from utils.validators import normalize_phone, sanitize_input, validate_phone

logger = logging.getLogger(__name__)

MAX_SUBJECT_LENGTH = 200
MAX_MESSAGE_LENGTH = 5000


def _captain_profile(booking: dict) -> dict:
    profile = get_profile_by_id(booking['captain_id'])
    if not profile:
        raise BookingError('Captain not found', 'NOT_FOUND')
    return profile


def send_guest_message(booking: dict, subject: str, message: str, actor_id: int = None) -> None:
    """
    Email a captain-written message to the guest.

    Args:
        booking: Booking dict
        subject: Subject line
        message: Body text; blank lines separate paragraphs
        actor_id: Captain sending the message

    Raises:
        BookingError: VALIDATION when subject or message is missing
        IntegrationError: When the email could not be delivered
    """
    subject = sanitize_input(subject or '', MAX_SUBJECT_LENGTH)
    message = (message or '').strip()[:MAX_MESSAGE_LENGTH]
    if not subject or not message:
        raise BookingError('Subject and message are required', 'VALIDATION')

    notify_custom_message(booking, _captain_profile(booking), subject, message)

    create_booking_log(
        booking['id'], 'guest_communication',
        f'Sent email to guest: "{subject}"',
        new_value={'channel': 'email', 'subject': subject},
        actor_type='captain',
        actor_id=actor_id
    )


def send_guest_sms(booking: dict, message: str, actor_id: int = None) -> str:
    """
    Text the guest.

    Args:
        booking: Booking dict
        message: Text body, at most MAX_SMS_LENGTH characters
        actor_id: Captain sending the message

    Returns:
        Provider message SID

    Raises:
        BookingError: VALIDATION for a missing message, missing or non-US phone
        IntegrationError: When the text could not be delivered
    """
    message = (message or '').strip()
    if not message:
        raise BookingError('Message is required', 'VALIDATION')
    if len(message) > MAX_SMS_LENGTH:
        raise BookingError(
            f'Message must be {MAX_SMS_LENGTH} characters or fewer', 'VALIDATION'
        )

    phone = booking.get('guest_phone')
    if not phone:
        raise BookingError('Guest phone number not found', 'VALIDATION')
    if not validate_phone(phone):
        raise BookingError('Invalid phone number format', 'VALIDATION')

    to = normalize_phone(phone)
    message_sid = send_sms(to, message)

    preview = message if len(message) <= 50 else message[:50] + '...'
    create_booking_log(
        booking['id'], 'guest_communication',
        f'Sent SMS to guest: "{preview}"',
        new_value={'channel': 'sms', 'to': to, 'sid': message_sid},
        actor_type='captain',
        actor_id=actor_id
    )
    return message_sid


def request_balance(booking: dict, actor_id: int = None) -> None:
    """
    Email the guest a request for the remaining balance.

    Raises:
        BookingError: VALIDATION when nothing is owed or the booking is closed
        IntegrationError: When the email could not be delivered
    """
    if (booking.get('balance_due_cents') or 0) <= 0:
        raise BookingError('No balance due on this booking', 'VALIDATION')
    if booking['status'] in ('cancelled', 'expired', 'no_show'):
        raise BookingError('Cannot request payment for a closed booking', 'VALIDATION')

    notify_balance_request(booking, _captain_profile(booking))

    create_booking_log(
        booking['id'], 'guest_communication',
        f"Balance request sent for {format_cents(booking['balance_due_cents'])}",
        new_value={'channel': 'email', 'balance_due_cents': booking['balance_due_cents']},
        actor_type='captain',
        actor_id=actor_id
    )
    logger.info('Balance request sent for booking %s', booking['id'])
