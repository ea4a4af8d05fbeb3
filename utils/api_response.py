"""
Standardized API response helpers.

Provides consistent JSON response format across all API endpoints:

    Success:  {"success": true, "data": {...}, "message": "..."}
    Error:    {"success": false, "error": "Human readable message", "code": "SLOT_UNAVAILABLE"}

Usage:
    from utils.api_response import api_success, api_error

    return api_success(data={'id': 1}, message='Booking created')
    return api_error('Guest name is required', status=400, code='VALIDATION')
"""

from flask import jsonify
from typing import Any

# HTTP status for each booking error code; anything else is a 400
ERROR_CODE_STATUS = {
    'NOT_FOUND': 404,
    'UNAUTHORIZED': 403,
    'CONFLICT': 409,
    'SLOT_UNAVAILABLE': 409,
    'DUPLICATE': 409,
    'INVALID_TRANSITION': 409,
    'RATE_LIMITED': 429,
    'DATABASE': 500,
    'UNKNOWN': 500,
}


def api_success(
    data: dict | list | None = None,
    message: str | None = None,
    warning: str | None = None,
    status: int = 200,
    **extra_fields: Any
) -> tuple:
    """
    Build a standardized success JSON response.

    Args:
        data: Optional payload to include as 'data' key.
        message: Optional success message.
        warning: Optional warning message.
        status: HTTP status code (default 200).
        **extra_fields: Additional top-level fields to include in the response.

    Returns:
        Tuple of (Response, status_code)
    """
    response = {'success': True}

    if data is not None:
        response['data'] = data

    if message:
        response['message'] = message

    if warning:
        response['warning'] = warning

    if extra_fields:
        response.update(extra_fields)

    return jsonify(response), status


def api_error(error: str, status: int = 400, **extra_fields: Any) -> tuple:
    """
    Build a standardized error JSON response.

    Args:
        error: Error message.
        status: HTTP status code (default 400).
        **extra_fields: Additional top-level fields (e.g., code, conflicts).

    Returns:
        Tuple of (Response, status_code)
    """
    response = {'success': False, 'error': error}

    if extra_fields:
        response.update(extra_fields)

    return jsonify(response), status


def booking_error(err) -> tuple:
    """
    Build an error response from a BookingError.

    Args:
        err: BookingError carrying message and code

    Returns:
        Tuple of (Response, status_code)
    """
    code = getattr(err, 'code', 'UNKNOWN')
    return api_error(str(err), status=ERROR_CODE_STATUS.get(code, 400), code=code)
