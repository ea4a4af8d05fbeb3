"""
Miscellaneous utility helper functions.
Money formatting, reference codes and tag parsing used across the application.
"""

import json
import secrets

CONFIRMATION_CODE_ALPHABET = 'ABCDEFGHJKLMNPQRSTUVWXYZ23456789'
TOKEN_ALPHABET = 'abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789'


def dollars_to_cents(amount) -> int:
    """
    Convert a dollar amount to integer cents.

    Args:
        amount: Dollar amount (float, int, or numeric string)

    Returns:
        Rounded integer cents (0 for empty input)
    """
    if amount is None or amount == '':
        return 0
    return int(round(float(amount) * 100))


def format_cents(cents: int) -> str:
    """Format integer cents as '$1,234.56'."""
    return f'${(cents or 0) / 100:,.2f}'


def cents_to_dollars(cents: int) -> str:
    """Format integer cents as a plain '1234.56' string for exports."""
    return f'{(cents or 0) / 100:.2f}'


def short_booking_ref(booking_id: int) -> str:
    """Guest-facing booking reference, e.g. 'DK-0042'."""
    return f'DK-{booking_id:04d}'


def generate_confirmation_code(length: int = 6) -> str:
    """
    Generate a guest confirmation code.

    Letters and digits that are easy to misread (I, O, 0, 1) are excluded.
    """
    return ''.join(secrets.choice(CONFIRMATION_CODE_ALPHABET) for _ in range(length))


def generate_token(length: int = 32) -> str:
    """Generate a URL-safe random alphanumeric token."""
    return ''.join(secrets.choice(TOKEN_ALPHABET) for _ in range(length))


def parse_tags(raw) -> list:
    """
    Parse stored or submitted tags into a clean, de-duplicated list.

    Args:
        raw: JSON text, comma-separated text, list, or None

    Returns:
        List of non-empty tag strings in first-seen order
    """
    if not raw:
        return []
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except ValueError:
            raw = raw.split(',')
    if isinstance(raw, str):
        raw = [raw]

    tags = []
    for tag in raw:
        cleaned = str(tag).strip()
        if cleaned and cleaned not in tags:
            tags.append(cleaned)
    return tags


def payment_method_label(method: str) -> str:
    """Human label for a payment method ('Venmo', 'Zelle', 'Payment')."""
    return {'venmo': 'Venmo', 'zelle': 'Zelle'}.get(method or '', 'Payment')
