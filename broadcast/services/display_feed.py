"""
Public display aggregation feed.

Builds the composite payload a kiosk renders: the head of the token
queue, department occupancy, active emergency alerts addressed to the
screen and drugs below their reorder level.  Reads only.  When the
database is unreachable the display gets an empty snapshot and shows
its "no data" state instead of an error screen.
"""
from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any, Dict, List

from django.conf import settings
from django.db import Error as DBError
from django.db.models import Count, F, Q
from django.utils import timezone

from broadcast.codes import EMERGENCY_CODES, SEVERITY_CRITICAL
from broadcast.models import Department, Display, DrugItem, EmergencyAlert, TokenQueueEntry
from broadcast.services.alerts import STATUS_ACTIVE, get_registry, targets_display
from broadcast.services.privacy import apply_privacy_filter, log_data_access

logger = logging.getLogger(__name__)

SNAPSHOT_KEYS = ('tokenQueue', 'departments', 'emergencyAlerts', 'drugInventory')


def empty_snapshot() -> Dict[str, List[Any]]:
    return {key: [] for key in SNAPSHOT_KEYS}


def _token_queue(limit: int) -> List[dict]:
    entries = (
        TokenQueueEntry.objects.select_related('department')
        .filter(status__in=TokenQueueEntry.OPEN_STATUSES)
        .order_by('arrived_at', 'id')[:limit]
    )
    rows = [{
        'tokenId': e.id,
        'token': e.token,
        'patient_name': e.patient_name,
        'status': e.status,
        'department': e.department.name,
        'estimatedTime': f'{e.estimated_wait} min',
        'arrivedAt': e.arrived_at.isoformat(),
    } for e in entries]
    # Unauthenticated screens: never anything but initials.
    rows = apply_privacy_filter(rows, 'PUBLIC_DISPLAY')
    for row in rows:
        row['displayName'] = row.pop('patient_name')
    return rows


def _departments() -> List[dict]:
    qs = Department.objects.annotate(
        current_tokens=Count('queue_entries', filter=Q(queue_entries__status__in=TokenQueueEntry.OPEN_STATUSES)),
    ).order_by('name')
    return [{
        'deptId': d.id,
        'departmentName': d.name,
        'location': d.location,
        'currentTokens': d.current_tokens,
        'avgWaitTime': d.avg_wait_time,
    } for d in qs]


def _alert_row(a) -> dict:
    code = EMERGENCY_CODES.get(a.code_type, {})
    return {
        'id': a.id,
        'codeType': a.code_type,
        'department': a.department,
        'location': a.location,
        'message': a.message,
        'severity': a.severity,
        'color': code.get('color'),
        'autoDisplay': code.get('auto_display', True),
        'timestamp': a.created_at.isoformat(),
    }


def _alerts_for(display_id: str, zone: str) -> List[dict]:
    if not settings.ALERT_PERSIST:
        # Nothing is stored; this process's registry is the only record.
        active = reversed(get_registry().list_active())
        return [_alert_row(a) for a in active if a.targets(display_id, zone)]
    # Non-critical alerts past the auto-acknowledge window are no longer shown,
    # even if no worker has flipped the stored row yet.
    cutoff = timezone.now() - timedelta(seconds=settings.ALERT_AUTO_ACK_SECONDS)
    rows = (
        EmergencyAlert.objects.filter(status=STATUS_ACTIVE)
        .filter(Q(severity=SEVERITY_CRITICAL) | Q(created_at__gt=cutoff))
        .order_by('-created_at')
    )
    return [_alert_row(a) for a in rows if targets_display(a.broadcast_to, display_id, zone)]


def _critical_drugs(limit: int) -> List[dict]:
    qs = DrugItem.objects.filter(stock_qty__lt=F('reorder_level')).order_by('drug_name', 'id')[:limit]
    return [{
        'drugId': d.id,
        'drugName': d.drug_name,
        'currentStock': d.stock_qty,
        'minStock': d.reorder_level,
        'status': 'critical',
    } for d in qs]


def get_display_data(display_id: str) -> Dict[str, List[Any]]:
    """Return the snapshot for ``display_id``; never raises on storage failure."""
    try:
        zone = Display.objects.filter(id=display_id).values_list('zone', flat=True).first() or ''
        snapshot = {
            'tokenQueue': _token_queue(settings.DISPLAY_QUEUE_PAGE_SIZE),
            'departments': _departments(),
            'emergencyAlerts': _alerts_for(display_id, zone),
            'drugInventory': _critical_drugs(settings.DISPLAY_DRUG_PAGE_SIZE),
        }
    except DBError as exc:
        logger.warning('Display feed for %s unavailable, serving empty snapshot: %s', display_id, exc)
        return empty_snapshot()
    log_data_access(f'display:{display_id}', 'tokenQueue', 'read')
    return snapshot
