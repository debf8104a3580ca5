"""Audit trail for staff actions on emergency alerts."""
import logging
from typing import Optional, Any, Dict

from django.contrib.auth import get_user_model
from django.db import Error as DBError

from broadcast.models import AuditEvent

logger = logging.getLogger(__name__)

User = get_user_model()


def log_action(*, user: Optional[User], action: str, object_type: Optional[str]=None, object_id: Optional[str]=None, detail: Optional[Dict[str, Any]]=None) -> AuditEvent:
    return AuditEvent.objects.create(
        user=user if isinstance(user, User) and getattr(user, 'pk', None) else None,
        action=action,
        object_type=object_type,
        object_id=str(object_id) if object_id is not None else None,
        detail=detail or {},
    )


def record_alert_event(user, action: str, alert, detail: Optional[Dict[str, Any]] = None) -> Optional[AuditEvent]:
    """Audit an alert transition that has already taken effect.

    The registry holds the new state by the time this runs, so a failed
    write is logged and reported as ``None`` rather than raised.
    """
    try:
        return log_action(
            user=user,
            action=action,
            object_type='alert',
            object_id=alert.id,
            detail=detail or {'status': alert.status, 'codeType': alert.code_type},
        )
    except DBError:
        logger.warning('Could not record %s for alert %s', action, alert.id, exc_info=True)
        return None
