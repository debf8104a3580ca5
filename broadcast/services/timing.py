"""Duration based deadline checks.

Overdue and staleness decisions compare aware datetimes against a
``timedelta`` window.  Never compare wall-clock strings: they break
across midnight and between hosts with different local time.
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone as dt_timezone
from typing import Optional

from django.utils import timezone


def elapsed_since(started_at: datetime, now: Optional[datetime] = None) -> timedelta:
    now = now or timezone.now()
    return now - started_at


def is_past_deadline(started_at: Optional[datetime], window: timedelta, now: Optional[datetime] = None) -> bool:
    """True once at least ``window`` has elapsed since ``started_at``.

    A missing start time counts as overdue.
    """
    if started_at is None:
        return True
    return elapsed_since(started_at, now) >= window


def parse_timestamp(value) -> Optional[datetime]:
    """Accept a datetime or an ISO-8601 string; naive values are taken as UTC.

    Returns ``None`` for empty input and raises ``ValueError`` for
    anything unparseable.
    """
    if value in (None, ''):
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith('Z'):
            text = text[:-1] + '+00:00'
        dt = datetime.fromisoformat(text)
    else:
        raise ValueError(f'unsupported timestamp: {value!r}')
    if timezone.is_naive(dt):
        dt = timezone.make_aware(dt, dt_timezone.utc)
    return dt
