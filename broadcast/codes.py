"""
Hospital emergency code catalogue.

Each code carries the severity it is broadcast with unless staff
override it, the canned message used when none is typed and whether
public displays should take over the screen for it.
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional

SEVERITY_CRITICAL = 'critical'
SEVERITY_HIGH = 'high'
SEVERITY_MEDIUM = 'medium'
SEVERITY_LOW = 'low'
SEVERITIES = (SEVERITY_CRITICAL, SEVERITY_HIGH, SEVERITY_MEDIUM, SEVERITY_LOW)

EMERGENCY_CODES: Dict[str, Dict[str, Any]] = {
    'Code Blue': {
        'color': '#2563eb',
        'description': 'Medical Emergency - Cardiac/Respiratory Arrest',
        'priority': SEVERITY_CRITICAL,
        'auto_display': True,
    },
    'Code Red': {
        'color': '#dc2626',
        'description': 'Fire Emergency',
        'priority': SEVERITY_CRITICAL,
        'auto_display': True,
    },
    'Code Pink': {
        'color': '#db2777',
        'description': 'Pediatric Emergency',
        'priority': SEVERITY_HIGH,
        'auto_display': True,
    },
    'Code Yellow': {
        'color': '#ca8a04',
        'description': 'Security Alert',
        'priority': SEVERITY_MEDIUM,
        'auto_display': False,
    },
    'Code Green': {
        'color': '#16a34a',
        'description': 'Emergency Activation',
        'priority': SEVERITY_HIGH,
        'auto_display': True,
    },
}


def _key(value: str) -> str:
    return ''.join(ch for ch in (value or '').lower() if ch.isalnum())


_LOOKUP = {_key(name): name for name in EMERGENCY_CODES}


def normalize_code(value: Optional[str]) -> Optional[str]:
    """Map ``'code_blue'``, ``'CodeBlue'`` or ``'Code Blue'`` to ``'Code Blue'``."""
    if not isinstance(value, str):
        return None
    return _LOOKUP.get(_key(value))


def list_emergency_codes() -> List[Dict[str, Any]]:
    """Return a JSON-serializable list of code definitions."""
    return [
        {
            'codeType': name,
            'description': info['description'],
            'severity': info['priority'],
            'color': info['color'],
            'autoDisplay': info['auto_display'],
        }
        for name, info in EMERGENCY_CODES.items()
    ]
