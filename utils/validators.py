"""
Input validation helper functions.
Provides validation for common input types.
"""

import re
from datetime import datetime


def validate_email(email: str) -> bool:
    """
    Validate email format.

    Args:
        email: Email address to validate

    Returns:
        True if valid email format
    """
    if not email:
        return False

    pattern = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'
    return bool(re.match(pattern, email))


def validate_phone(phone: str) -> bool:
    """
    Validate US phone number format.
    Accepts 10 digits, or 11 digits starting with 1, with any separators.

    Args:
        phone: Phone number to validate

    Returns:
        True if valid phone format
    """
    if not phone:
        return False

    digits = re.sub(r'\D', '', phone)
    return len(digits) == 10 or (len(digits) == 11 and digits.startswith('1'))


def normalize_phone(phone: str) -> str:
    """
    Convert a US phone number to E.164 (+1XXXXXXXXXX).

    Args:
        phone: Phone number that passed validate_phone

    Returns:
        E.164 formatted number
    """
    digits = re.sub(r'\D', '', phone)
    if len(digits) == 10:
        digits = '1' + digits
    return f'+{digits}'


def validate_password(password: str, min_length: int = 8) -> tuple:
    """
    Validate password strength.

    Args:
        password: Password to validate
        min_length: Minimum password length

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not password:
        return False, 'Password is required'

    if len(password) < min_length:
        return False, f'Password must be at least {min_length} characters'

    return True, ''


def validate_date_format(date_str: str) -> bool:
    """
    Validate date is in YYYY-MM-DD format.

    Args:
        date_str: Date string to validate

    Returns:
        True if valid format
    """
    try:
        datetime.strptime(date_str, '%Y-%m-%d')
        return True
    except (ValueError, TypeError):
        return False


def validate_time_format(time_str: str) -> bool:
    """Validate a 24-hour 'HH:MM' time."""
    if not time_str or not re.match(r'^\d{2}:\d{2}$', time_str):
        return False
    try:
        datetime.strptime(time_str, '%H:%M')
        return True
    except ValueError:
        return False


def validate_positive_integer(value, field_name: str, max_value: int = None) -> tuple:
    """
    Validate and coerce a positive integer from request data.

    Args:
        value: Raw value (int or numeric string)
        field_name: Field name used in the error message
        max_value: Optional upper bound (inclusive)

    Returns:
        Tuple of (is_valid, int_value or None, error_message)
    """
    if isinstance(value, bool):
        return False, None, f'{field_name} must be a positive integer'
    try:
        number = int(value)
    except (TypeError, ValueError):
        return False, None, f'{field_name} must be a positive integer'

    if number < 1:
        return False, None, f'{field_name} must be a positive integer'
    if max_value is not None and number > max_value:
        return False, None, f'{field_name} must be at most {max_value}'
    return True, number, ''


def sanitize_input(text: str, max_length: int = None) -> str:
    """
    Sanitize text input by trimming and limiting length.

    Args:
        text: Text to sanitize
        max_length: Maximum length (optional)

    Returns:
        Sanitized text
    """
    if not text:
        return ''

    # Strip whitespace
    sanitized = str(text).strip()

    # Limit length if specified
    if max_length and len(sanitized) > max_length:
        sanitized = sanitized[:max_length]

    return sanitized
