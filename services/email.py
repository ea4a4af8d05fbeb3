"""
Transactional email delivery through the Resend HTTP API.
"""

import logging
import requests
from flask import current_app

from services import IntegrationError

logger = logging.getLogger(__name__)

RESEND_URL = 'https://api.resend.com/emails'


def resend_headers() -> dict:
    """Build Resend request headers from configuration."""
    api_key = current_app.config.get('RESEND_API_KEY')
    if not api_key:
        raise IntegrationError('RESEND_API_KEY is not configured')
    return {
        'Authorization': f'Bearer {api_key}',
        'Content-Type': 'application/json'
    }


def send_email(to: str, subject: str, html: str, reply_to: str = None) -> str:
    """
    Send one HTML email.

    Delivery is skipped (and logged) when EMAIL_ENABLED is off.

    Args:
        to: Recipient address
        subject: Subject line
        html: Rendered HTML body
        reply_to: Optional Reply-To address (the captain's email)

    Returns:
        Provider message ID, or None when delivery is disabled

    Raises:
        IntegrationError: If the API key is missing or Resend rejects the call
    """
    if not current_app.config.get('EMAIL_ENABLED', True):
        logger.info('Email disabled; skipped "%s" to %s', subject, to)
        return None

    payload = {
        'from': current_app.config.get('EMAIL_FROM'),
        'to': [to],
        'subject': subject,
        'html': html
    }
    if reply_to:
        payload['reply_to'] = reply_to

    try:
        r = requests.post(
            RESEND_URL,
            headers=resend_headers(),
            json=payload,
            timeout=current_app.config.get('HTTP_TIMEOUT', 15)
        )
        r.raise_for_status()
    except requests.RequestException as e:
        logger.error('Resend delivery of "%s" to %s failed: %s', subject, to, e, exc_info=True)
        raise IntegrationError(f'Email delivery failed: {e}') from e

    message_id = r.json().get('id')
    logger.info('Sent "%s" to %s (%s)', subject, to, message_id)
    return message_id
