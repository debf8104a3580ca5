"""
Display heartbeat and liveness tracking.

Displays ping ``/api/displays/heartbeat`` on their own cadence; each
ping stores the reported status and moves ``last_update`` to the
server clock.
There is no background sweep: an online display whose last ping is
older than ``DISPLAY_STALE_AFTER_SECONDS`` simply reads as offline
whenever it is looked at.  Administrators can also switch a display
on or off, edit its location, content, zone or config, put it into
maintenance or restart it.
"""
from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import List, Optional

from django.conf import settings
from django.db import Error as DBError, transaction
from django.utils import timezone

from broadcast.errors import NotFoundError, UpstreamUnavailable, ValidationError
from broadcast.models import Display
from broadcast.services.timing import elapsed_since, is_past_deadline, parse_timestamp

logger = logging.getLogger(__name__)

DISPLAY_STATUSES = tuple(choice[0] for choice in Display.STATUS_CHOICES)
CONTENT_MODES = tuple(choice[0] for choice in Display.CONTENT_CHOICES)
# Statuses during which the screen is not running its content loop.
_DOWN_STATUSES = (Display.STATUS_OFFLINE, Display.STATUS_MAINTENANCE)


def stale_window() -> timedelta:
    return timedelta(seconds=settings.DISPLAY_STALE_AFTER_SECONDS)


def is_stale(display: Display, now: Optional[datetime] = None) -> bool:
    """An online display that has gone quiet for longer than the stale window."""
    return display.status == Display.STATUS_ONLINE and is_past_deadline(display.last_update, stale_window(), now)


def effective_status(display: Display, now: Optional[datetime] = None) -> str:
    return Display.STATUS_OFFLINE if is_stale(display, now) else display.status


def format_uptime(since: Optional[datetime], now: Optional[datetime] = None) -> str:
    if since is None:
        return '0m'
    minutes = max(0, int(elapsed_since(since, now).total_seconds() // 60))
    hours, days = minutes // 60, minutes // (60 * 24)
    if days > 0:
        return f'{days}d {hours % 24}h'
    if hours > 0:
        return f'{hours}h {minutes % 60}m'
    return f'{minutes}m'


def format_display(display: Display, now: Optional[datetime] = None) -> dict:
    now = now or timezone.now()
    status = effective_status(display, now)
    return {
        'id': display.id,
        'location': display.location,
        'status': status,
        'reportedStatus': display.status,
        'stale': status != display.status,
        'content': display.content,
        'zone': display.zone,
        'uptime': format_uptime(display.online_since, now) if status not in _DOWN_STATUSES else '0m',
        'lastUpdate': display.last_update.isoformat(),
        'config': display.config or {},
    }


def _validate_status(status) -> str:
    status = (status or '').strip().lower() if isinstance(status, str) else ''
    if status not in DISPLAY_STATUSES:
        raise ValidationError(f"status must be one of {', '.join(DISPLAY_STATUSES)}")
    return status


def _validate_content(content) -> str:
    if content not in CONTENT_MODES:
        raise ValidationError(f"content must be one of {', '.join(CONTENT_MODES)}")
    return content


def _apply(display: Display, status: str, now: datetime) -> None:
    if status in _DOWN_STATUSES:
        display.online_since = None
    elif display.online_since is None or display.status in _DOWN_STATUSES or is_stale(display, now):
        display.online_since = now
    display.status = status
    display.last_update = now


def _locked(display_id: str) -> Display:
    display = Display.objects.select_for_update().filter(id=display_id).first()
    if display is None:
        raise NotFoundError(f'display {display_id} not found')
    return display


def record_heartbeat(display_id, status: Optional[str] = None, timestamp=None) -> Display:
    """Apply a liveness ping.  Unknown displays are reported, never created.

    ``last_update`` always takes the server clock so a kiosk with a drifting
    clock still reads as live.  The optional device ``timestamp`` is kept in
    ``last_heartbeat_at`` and only decides whether a late ping is dropped.
    """
    display_id = display_id.strip() if isinstance(display_id, str) else ''
    if not display_id:
        raise ValidationError('displayId is required')
    status = _validate_status(status or Display.STATUS_ONLINE)
    try:
        reported_at = parse_timestamp(timestamp)
    except ValueError:
        raise ValidationError('timestamp must be an ISO-8601 date-time') from None

    now = timezone.now()
    try:
        with transaction.atomic():
            display = _locked(display_id)
            if reported_at and display.last_heartbeat_at and reported_at < display.last_heartbeat_at:
                logger.debug('Ignoring out-of-order heartbeat for %s (%s < %s)',
                             display_id, reported_at, display.last_heartbeat_at)
                return display
            _apply(display, status, now)
            if reported_at:
                # Clamped so a clock that was ahead and then corrected is not locked out.
                display.last_heartbeat_at = min(reported_at, now)
            display.save(update_fields=['status', 'online_since', 'last_update', 'last_heartbeat_at'])
    except DBError as exc:
        raise UpstreamUnavailable('display storage unavailable, please retry') from exc
    logger.debug('Heartbeat %s: %s at %s', display_id, status, now.isoformat())
    return display


def set_display_status(display_id: str, status: str) -> Display:
    """Manual turn on/off, maintenance or warning."""
    status = _validate_status(status)
    now = timezone.now()
    try:
        with transaction.atomic():
            display = _locked(display_id)
            _apply(display, status, now)
            display.save(update_fields=['status', 'online_since', 'last_update'])
    except DBError as exc:
        raise UpstreamUnavailable('display storage unavailable, please retry') from exc
    logger.info('Display %s set to %s', display_id, status)
    return display


def restart_display(display_id: str) -> Display:
    now = timezone.now()
    try:
        with transaction.atomic():
            display = _locked(display_id)
            display.status = Display.STATUS_ONLINE
            display.online_since = now
            display.last_update = now
            display.save(update_fields=['status', 'online_since', 'last_update'])
    except DBError as exc:
        raise UpstreamUnavailable('display storage unavailable, please retry') from exc
    logger.info('Display %s restarted', display_id)
    return display


def get_display(display_id: str) -> Display:
    try:
        display = Display.objects.filter(id=display_id).first()
    except DBError as exc:
        raise UpstreamUnavailable('display storage unavailable, please retry') from exc
    if display is None:
        raise NotFoundError(f'display {display_id} not found')
    return display


def update_display(display_id: str, *, location: Optional[str] = None, content: Optional[str] = None,
                   zone: Optional[str] = None, config: Optional[dict] = None,
                   status: Optional[str] = None) -> Display:
    """Edit a display's settings.  Fields left as ``None`` keep their value.

    Editing is not a heartbeat: ``last_update`` only moves when the status
    itself is changed here.
    """
    fields = []
    if location is not None:
        location = location.strip()
        if not location:
            raise ValidationError('location cannot be blank')
    if content is not None:
        content = _validate_content(content)
    if config is not None and not isinstance(config, dict):
        raise ValidationError('config must be an object')
    if status is not None:
        status = _validate_status(status)
    now = timezone.now()
    try:
        with transaction.atomic():
            display = _locked(display_id)
            if location is not None:
                display.location = location
                fields.append('location')
            if content is not None:
                display.content = content
                fields.append('content')
            if zone is not None:
                display.zone = zone.strip()
                fields.append('zone')
            if config is not None:
                display.config = config
                fields.append('config')
            if status is not None:
                _apply(display, status, now)
                fields += ['status', 'online_since', 'last_update']
            if fields:
                display.save(update_fields=fields)
    except DBError as exc:
        raise UpstreamUnavailable('display storage unavailable, please retry') from exc
    logger.info('Display %s updated: %s', display_id, ', '.join(fields) or 'no changes')
    return display


def create_display(*, location: str, content: Optional[str] = None, status: Optional[str] = None,
                   zone: str = '', config: Optional[dict] = None) -> Display:
    location = (location or '').strip()
    if not location:
        raise ValidationError('location is required')
    content = _validate_content(content or 'Token Queue')
    status = _validate_status(status or Display.STATUS_OFFLINE)
    now = timezone.now()
    try:
        with transaction.atomic():
            # Generate a simple identifier: DSP-<num> that does not collide
            existing_ids = set(Display.objects.values_list('id', flat=True))
            index = len(existing_ids) + 1
            while f'DSP-{index:03d}' in existing_ids:
                index += 1
            display = Display.objects.create(
                id=f'DSP-{index:03d}',
                location=location,
                content=content,
                status=status,
                zone=(zone or '').strip(),
                online_since=None if status in _DOWN_STATUSES else now,
                last_update=now,
                config=config or {},
            )
    except DBError as exc:
        raise UpstreamUnavailable('display storage unavailable, please retry') from exc
    return display


def list_displays(status: Optional[str] = None) -> List[dict]:
    """All displays, most recently updated first, with liveness applied."""
    now = timezone.now()
    try:
        displays = list(Display.objects.order_by('-last_update', 'id'))
    except DBError as exc:
        raise UpstreamUnavailable('display storage unavailable, please retry') from exc
    data = [format_display(d, now) for d in displays]
    if status:
        data = [d for d in data if d['status'] == status]
    return data
