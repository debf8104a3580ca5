"""Write-through persistence for registry alerts."""
from __future__ import annotations

import logging
from typing import List, Optional

from django.db import Error as DBError

from broadcast.errors import UpstreamUnavailable
from broadcast.models import EmergencyAlert
from broadcast.services.alerts import AUDIENCE_ALL, STATUS_RESOLVED, Alert

logger = logging.getLogger(__name__)


def _to_alert(row: EmergencyAlert) -> Alert:
    return Alert(
        id=row.id,
        code_type=row.code_type,
        department=row.department,
        location=row.location,
        severity=row.severity,
        message=row.message,
        status=row.status,
        created_at=row.created_at,
        broadcast_to=tuple(row.broadcast_to or ()) or (AUDIENCE_ALL,),
        acknowledged_at=row.acknowledged_at,
        acknowledged_by=row.acknowledged_by,
        resolved_at=row.resolved_at,
        resolved_by=row.resolved_by,
    )


class DatabaseAlertStore:
    """Mirror each alert state into ``EmergencyAlert`` so displays on any worker see it."""

    def save(self, alert: Alert) -> EmergencyAlert:
        try:
            row, _ = EmergencyAlert.objects.update_or_create(
                id=alert.id,
                defaults={
                    'code_type': alert.code_type,
                    'department': alert.department,
                    'location': alert.location,
                    'severity': alert.severity,
                    'message': alert.message,
                    'status': alert.status,
                    'broadcast_to': list(alert.broadcast_to),
                    'created_at': alert.created_at,
                    'acknowledged_at': alert.acknowledged_at,
                    'acknowledged_by': alert.acknowledged_by,
                    'resolved_at': alert.resolved_at,
                    'resolved_by': alert.resolved_by,
                },
            )
        except DBError as exc:
            logger.warning('Could not persist alert %s: %s', alert.id, exc)
            raise UpstreamUnavailable('alert storage unavailable, please retry') from exc
        return row

    def load_open(self) -> List[Alert]:
        """Alerts not yet resolved, oldest first."""
        try:
            rows = list(EmergencyAlert.objects.exclude(status=STATUS_RESOLVED).order_by('created_at', 'id'))
        except DBError as exc:
            logger.warning('Could not load open alerts: %s', exc)
            raise UpstreamUnavailable('alert storage unavailable, please retry') from exc
        return [_to_alert(row) for row in rows]

    def get(self, alert_id: str) -> Optional[Alert]:
        try:
            row = EmergencyAlert.objects.filter(id=alert_id).first()
        except DBError as exc:
            logger.warning('Could not read alert %s: %s', alert_id, exc)
            raise UpstreamUnavailable('alert storage unavailable, please retry') from exc
        return _to_alert(row) if row is not None else None
