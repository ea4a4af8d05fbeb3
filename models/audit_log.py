"""
Audit log data access.
Append-only record of captain actions, read back by the dashboard audit view.
"""

import json
from database import get_db

# Filter name -> SQL condition on audit_logs
_FILTERS = {
    'user_id': 'al.user_id = ?',
    'action': 'al.action = ?',
    'entity_type': 'al.entity_type = ?',
    'entity_id': 'al.entity_id = ?',
    'start_date': 'date(al.created_at) >= date(?)',
    'end_date': 'date(al.created_at) <= date(?)',
}


def get_audit_logs(limit: int = 100, offset: int = 0, **filters) -> list:
    """
    Get audit logs, newest first.

    Args:
        limit: Maximum rows to return
        offset: Rows to skip
        **filters: Any of user_id, action, entity_type, entity_id,
            start_date, end_date (YYYY-MM-DD, inclusive). None values are ignored.

    Returns:
        List of audit log dicts with ``changes`` decoded
    """
    conditions = []
    params = []
    for name, value in filters.items():
        if value is None:
            continue
        if name not in _FILTERS:
            raise TypeError(f'Unknown audit log filter: {name}')
        conditions.append(_FILTERS[name])
        params.append(value)

    where = ' AND '.join(conditions) or '1=1'
    rows = get_db().execute(f'''
        SELECT al.*, p.full_name AS user_full_name
        FROM audit_logs al
        LEFT JOIN profiles p ON p.id = al.user_id
        WHERE {where}
        ORDER BY al.created_at DESC, al.id DESC
        LIMIT ? OFFSET ?
    ''', params + [limit, offset]).fetchall()

    logs = []
    for row in rows:
        entry = dict(row)
        entry['changes'] = json.loads(entry['changes']) if entry['changes'] else None
        logs.append(entry)
    return logs


def create_audit_log(
    action: str,
    entity_type: str,
    entity_id: int = None,
    user_id: int = None,
    changes: dict = None,
    ip_address: str = None,
    user_agent: str = None
) -> int:
    """
    Insert one audit entry and commit.

    ``changes`` is stored as JSON, usually ``{'before': ..., 'after': ...}``.
    User is None for system actions such as cron jobs.

    Returns:
        New audit log ID
    """
    changes_json = None
    if changes is not None:
        changes_json = json.dumps(changes, default=str, ensure_ascii=False)

    db = get_db()
    cursor = db.execute('''
        INSERT INTO audit_logs
        (user_id, action, entity_type, entity_id, changes, ip_address, user_agent)
        VALUES (?, ?, ?, ?, ?, ?, ?)
    ''', (user_id, action, entity_type, entity_id, changes_json, ip_address, user_agent))
    db.commit()
    return cursor.lastrowid
