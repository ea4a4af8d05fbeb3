"""
Audit trail helpers.
Records who changed what on the captain dashboard, with request metadata.
"""

import logging
import sqlite3
from functools import wraps

from flask import has_request_context, request
from flask_login import current_user

logger = logging.getLogger(__name__)


def _client_ip() -> str:
    """First address of X-Forwarded-For, else the peer address."""
    forwarded = request.headers.get('X-Forwarded-For', '')
    if forwarded:
        return forwarded.split(',')[0].strip()
    return request.remote_addr


def log_audit(
    action: str,
    entity_type: str,
    entity_id: int = None,
    before: dict = None,
    after: dict = None,
    user_id: int = None
) -> int:
    """
    Write one audit entry.

    The acting captain defaults to current_user. IP and user agent are taken
    from the request when there is one (cron commands run without).

    Args:
        action: CREATE, UPDATE, DELETE or a verb such as sent_sms
        entity_type: booking, trip_type, vessel, profile, blackout, availability
        entity_id: Affected row, when there is a single one
        before: State before the change
        after: State after the change
        user_id: Acting captain override

    Returns:
        New audit log ID, or None when the write failed
    """
    from models.audit_log import create_audit_log

    if user_id is None and current_user and current_user.is_authenticated:
        user_id = current_user.id

    ip_address = user_agent = None
    if has_request_context():
        ip_address = _client_ip()
        user_agent = request.headers.get('User-Agent', '')[:255]

    changes = None
    if before is not None or after is not None:
        changes = {'before': before, 'after': after}

    try:
        return create_audit_log(
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            user_id=user_id,
            changes=changes,
            ip_address=ip_address,
            user_agent=user_agent
        )
    except sqlite3.Error as e:
        # The audited operation has already succeeded
        logger.error(f"Failed to log audit entry: {e}", exc_info=True)
        return None


def audit_action(action_type: str, entity_type: str, entity_id_param: str = None):
    """
    Route decorator that audits a settings change once the view succeeds.

    UPDATE and DELETE snapshot the row first; UPDATE snapshots it again
    afterwards so the entry carries both sides. Error responses are not logged.

        @audit_action('UPDATE', 'vessel', entity_id_param='vessel_id')
        def vessels_update(vessel_id):
            ...
    """
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            entity_id = kwargs.get(entity_id_param) if entity_id_param else None
            snapshot = entity_id is not None and action_type in ('UPDATE', 'DELETE')
            before = _snapshot(entity_type, entity_id) if snapshot else None

            result = func(*args, **kwargs)
            if _status_of(result) >= 400:
                return result

            after = _snapshot(entity_type, entity_id) if snapshot and action_type == 'UPDATE' else None
            log_audit(action_type, entity_type, entity_id, before=before, after=after)
            return result

        return wrapper
    return decorator


# Columns worth keeping in an audit snapshot
_AUDITED_FIELDS = {
    'booking': (
        'id', 'guest_name', 'guest_email', 'guest_phone', 'party_size',
        'scheduled_start', 'scheduled_end', 'status', 'payment_status',
        'total_price_cents', 'deposit_paid_cents', 'balance_due_cents',
        'vessel_id', 'trip_type_id', 'special_requests'
    ),
    'trip_type': (
        'id', 'title', 'duration_hours', 'price_total', 'deposit_amount', 'is_active'
    ),
    'vessel': ('id', 'name', 'capacity'),
}


def _snapshot(entity_type: str, entity_id: int):
    """Audited columns of one row, or None when it can't be read."""
    from models.booking import get_booking_by_id
    from models.trip_type import get_trip_type_by_id
    from models.vessel import get_vessel_by_id

    loaders = {
        'booking': get_booking_by_id,
        'trip_type': get_trip_type_by_id,
        'vessel': get_vessel_by_id,
    }
    loader = loaders.get(entity_type)
    if loader is None:
        return None

    try:
        row = loader(entity_id)
    except sqlite3.Error as e:
        logger.warning(f"Could not snapshot {entity_type} {entity_id}: {e}")
        return None

    if not row:
        return None
    return {field: row.get(field) for field in _AUDITED_FIELDS[entity_type]}


def _status_of(result) -> int:
    """HTTP status of a view return value (response object or (body, status) tuple)."""
    if isinstance(result, tuple) and len(result) >= 2 and isinstance(result[1], int):
        return result[1]
    return getattr(result, 'status_code', 200)


def log_create(entity_type: str, entity_id: int, data: dict = None) -> int:
    """Audit a CREATE, recording the new values."""
    return log_audit('CREATE', entity_type, entity_id, after=data)


def log_update(entity_type: str, entity_id: int, before: dict = None, after: dict = None) -> int:
    """Audit an UPDATE with both sides of the change."""
    return log_audit('UPDATE', entity_type, entity_id, before=before, after=after)


def log_delete(entity_type: str, entity_id: int, data: dict = None) -> int:
    """Audit a DELETE, keeping what was removed."""
    return log_audit('DELETE', entity_type, entity_id, before=data)
