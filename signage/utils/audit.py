"""
Signage Audit Logging Utilities.

Usage:
    from signage.utils.audit import log_action

    log_action('screen.create', 'screen', screen.id, details={'name': screen.name})
"""

import json
from typing import Any, Optional

from flask import current_app, has_request_context
from sqlalchemy.exc import SQLAlchemyError

from signage.models import db, AuditLog
from signage.utils.auth import get_current_user, get_client_ip


DEVICE_ACTOR = 'device'


def log_action(
    action: str,
    resource_type: Optional[str] = None,
    resource_id: Optional[Any] = None,
    details: Optional[dict] = None,
    user=None,
) -> Optional[AuditLog]:
    """
    Write one audit entry and commit it.

    The operator and client address come from the current request; pass
    ``user`` when the request is not authenticated yet (login). Without an
    operator the entry is attributed to the player.

    Returns:
        The AuditLog row, or None if it could not be written
    """
    ip_address = None
    if has_request_context():
        user = user or get_current_user()
        ip_address = get_client_ip()

    entry = AuditLog(
        user_id=user.id if user else None,
        actor=user.email if user else DEVICE_ACTOR,
        action=action,
        resource_type=resource_type,
        resource_id=str(resource_id) if resource_id is not None else None,
        details=json.dumps(details, default=str) if details is not None else None,
        ip_address=ip_address,
    )

    try:
        db.session.add(entry)
        db.session.commit()
    except SQLAlchemyError as e:
        # Audit failures never propagate to the caller
        db.session.rollback()
        current_app.logger.error(f'Failed to write audit log for {action}: {e}')
        return None

    return entry


def log_device_action(action: str, binding, details: Optional[dict] = None) -> Optional[AuditLog]:
    """Audit an action on a device binding, e.g. 'activate', 'bind' or 'revoke'."""
    payload = {'screen_id': binding.screen_id, 'device_info': binding.device_info}
    if details:
        payload.update(details)

    return log_action(f'device_binding.{action}', 'device_binding', binding.id, details=payload)
