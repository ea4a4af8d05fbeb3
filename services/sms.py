"""
SMS delivery through the Twilio REST API.
"""

import logging
import requests
from flask import current_app

from services import IntegrationError

logger = logging.getLogger(__name__)

TWILIO_BASE_URL = 'https://api.twilio.com/2010-04-01'
MAX_SMS_LENGTH = 1600


def is_configured() -> bool:
    """Check that Twilio credentials and a sender number are set."""
    cfg = current_app.config
    return bool(cfg.get('TWILIO_ACCOUNT_SID') and cfg.get('TWILIO_AUTH_TOKEN')
                and cfg.get('TWILIO_FROM_NUMBER'))


def send_sms(to: str, body: str) -> str:
    """
    Send a text message.

    Args:
        to: Recipient number in E.164 form (+1XXXXXXXXXX)
        body: Message text (at most MAX_SMS_LENGTH characters)

    Returns:
        Twilio message SID

    Raises:
        IntegrationError: If Twilio is not configured or rejects the message
    """
    if not is_configured():
        raise IntegrationError('SMS is not configured')

    cfg = current_app.config
    sid = cfg['TWILIO_ACCOUNT_SID']
    url = f'{TWILIO_BASE_URL}/Accounts/{sid}/Messages.json'

    try:
        r = requests.post(
            url,
            data={'To': to, 'From': cfg['TWILIO_FROM_NUMBER'], 'Body': body},
            auth=(sid, cfg['TWILIO_AUTH_TOKEN']),
            timeout=cfg.get('HTTP_TIMEOUT', 15)
        )
        r.raise_for_status()
    except requests.RequestException as e:
        logger.error('Twilio delivery to %s failed: %s', to, e, exc_info=True)
        raise IntegrationError(f'SMS delivery failed: {e}') from e

    message_sid = r.json().get('sid')
    logger.info('Sent SMS to %s (%s)', to, message_sid)
    return message_sid
