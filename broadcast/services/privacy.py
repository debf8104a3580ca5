"""
Patient privacy rules for data leaving the staff network.

Public displays are unauthenticated and glanceable by anyone in the
corridor, so queue rows shown there carry initials only.  Staff screens
see full records; an emergency override unlocks names on public screens
for the duration of an incident.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List

from django.utils import timezone

logger = logging.getLogger('broadcast.privacy')

PRIVACY_LEVELS: Dict[str, Dict[str, bool]] = {
    'PUBLIC_DISPLAY': {
        'show_full_names': False,
        'show_patient_details': False,
        'allow_public_display': True,
        'log_access': True,
    },
    'STAFF_INTERNAL': {
        'show_full_names': True,
        'show_patient_details': True,
        'allow_public_display': False,
        'log_access': True,
    },
    'EMERGENCY_OVERRIDE': {
        'show_full_names': True,
        'show_patient_details': True,
        'allow_public_display': True,
        'log_access': True,
    },
}

SENSITIVE_FIELDS = ('phone', 'address', 'medical_history')


def anonymize_name(name: str) -> str:
    """``'John Doe'`` -> ``'J.D.'``, ``'Priya'`` -> ``'P.'``."""
    return ''.join(f'{token[0].upper()}.' for token in (name or '').split())


def apply_privacy_filter(rows: Iterable[Dict[str, Any]], level: str) -> List[Dict[str, Any]]:
    try:
        rules = PRIVACY_LEVELS[level]
    except KeyError:
        raise ValueError(f'unknown privacy level: {level}') from None

    filtered = []
    for row in rows:
        item = dict(row)
        if not rules['show_full_names'] and item.get('patient_name'):
            item['patient_name'] = anonymize_name(item['patient_name'])
        if not rules['show_patient_details']:
            for key in SENSITIVE_FIELDS:
                item.pop(key, None)
        filtered.append(item)
    return filtered


def log_data_access(actor: str, data_type: str, action: str, level: str = 'PUBLIC_DISPLAY') -> Dict[str, Any]:
    """Record who read which patient-bearing data set at which privacy level."""
    entry = {
        'actor': actor,
        'dataType': data_type,
        'action': action,
        'level': level,
        'timestamp': timezone.now().isoformat(),
    }
    if PRIVACY_LEVELS.get(level, {}).get('log_access', True):
        logger.info('data access actor=%s data=%s action=%s level=%s', actor, data_type, action, level)
    return entry
