"""
Emergency alert broadcast registry.

One ``AlertRegistry`` lives per process, built by the app config (see
``broadcast.apps``) and reached through :func:`get_registry`.  Tests
build their own instances.  The registry keeps the current alerts in
memory, fans every lifecycle event out to subscribed handlers and
moves non-critical alerts from ``active`` to ``acknowledged`` once the
auto-acknowledge window has passed.

The in-memory state is per process.  With a store configured the
``EmergencyAlert`` table is the shared record: a fresh registry loads the
alerts still open there on first use, and a transition on an alert
raised by another worker is applied to the stored row.
"""
from __future__ import annotations

import html
import logging
import threading
import uuid
from collections import deque
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Callable, Dict, Iterable, List, Optional, Sequence

import bleach
from django.apps import apps
from django.conf import settings
from django.utils import timezone

from broadcast.codes import EMERGENCY_CODES, SEVERITIES, SEVERITY_CRITICAL, normalize_code
from broadcast.errors import (
    BroadcastError,
    InternalInconsistency,
    NotFoundError,
    UpstreamUnavailable,
    ValidationError,
)
from broadcast.services.timing import is_past_deadline

logger = logging.getLogger(__name__)

STATUS_ACTIVE = 'active'
STATUS_ACKNOWLEDGED = 'acknowledged'
STATUS_RESOLVED = 'resolved'
_STATUS_RANK = {STATUS_ACTIVE: 0, STATUS_ACKNOWLEDGED: 1, STATUS_RESOLVED: 2}

AUTO_ACTOR = 'auto'
AUDIENCE_ALL = 'all'

Handler = Callable[['Alert'], None]


def targets_display(broadcast_to: Iterable[str], display_id: str, zone: str = '') -> bool:
    """True when an alert audience covers the given display."""
    audience = set(broadcast_to or ())
    if AUDIENCE_ALL in audience or display_id in audience:
        return True
    return bool(zone) and zone in audience


@dataclass(frozen=True)
class Alert:
    id: str
    code_type: str
    department: str
    location: str
    severity: str
    message: str
    status: str
    created_at: datetime
    broadcast_to: tuple = (AUDIENCE_ALL,)
    acknowledged_at: Optional[datetime] = None
    acknowledged_by: str = ''
    resolved_at: Optional[datetime] = None
    resolved_by: str = ''

    @property
    def is_critical(self) -> bool:
        return self.severity == SEVERITY_CRITICAL

    def targets(self, display_id: str, zone: str = '') -> bool:
        return targets_display(self.broadcast_to, display_id, zone)

    def as_dict(self) -> dict:
        return {
            'id': self.id,
            'codeType': self.code_type,
            'department': self.department,
            'location': self.location,
            'severity': self.severity,
            'message': self.message,
            'status': self.status,
            'timestamp': self.created_at.isoformat(),
            'broadcastTo': list(self.broadcast_to),
            'acknowledgedAt': self.acknowledged_at.isoformat() if self.acknowledged_at else None,
            'acknowledgedBy': self.acknowledged_by,
            'resolvedAt': self.resolved_at.isoformat() if self.resolved_at else None,
            'resolvedBy': self.resolved_by,
        }


def _clean(value) -> str:
    if value is None:
        return ''
    # Plain text only: drop every tag, then undo the entity escaping bleach applies.
    return html.unescape(bleach.clean(str(value).strip(), tags=set(), strip=True))


def _normalize_targets(broadcast_to) -> tuple:
    if isinstance(broadcast_to, str):
        broadcast_to = [broadcast_to]
    targets = []
    for item in broadcast_to or ():
        item = _clean(item)
        if item and item not in targets:
            targets.append(item)
    return tuple(targets) or (AUDIENCE_ALL,)


def _new_alert_id() -> str:
    return f"alert_{uuid.uuid4().hex}"


def _start_daemon_timer(delay: float, callback: Callable[[], None]):
    timer = threading.Timer(delay, callback)
    timer.daemon = True
    timer.start()
    return timer


def _advance(alert: Alert, target: str, actor: str, now: datetime) -> Alert:
    if _STATUS_RANK[target] <= _STATUS_RANK[alert.status]:
        raise InternalInconsistency(f'alert {alert.id} cannot move from {alert.status} to {target}')
    if target == STATUS_ACKNOWLEDGED:
        return replace(alert, status=target, acknowledged_at=now, acknowledged_by=actor)
    return replace(alert, status=target, resolved_at=now, resolved_by=actor)


class AlertRegistry:
    """Process-wide authority for emergency alert state and delivery.

    ``store`` (optional) must expose ``save(alert)``, ``load_open()`` and
    ``get(alert_id)``.  Saves happen before any in-memory change and their
    errors propagate to the caller with the registry left untouched.
    ``timer_factory(delay_seconds, callback)`` must start a timer and
    return an object with ``cancel()``.

    Subscribers see events in the order the changes were made: each change
    is queued under the state lock and one thread at a time drains the
    queue, outside that lock.
    """

    def __init__(self, *, auto_ack_after: timedelta = timedelta(minutes=5), store=None,
                 clock: Optional[Callable[[], datetime]] = None,
                 timer_factory: Optional[Callable] = None):
        self.auto_ack_after = auto_ack_after
        self._store = store
        self._clock = clock or timezone.now
        self._timer_factory = timer_factory or _start_daemon_timer
        self._lock = threading.RLock()
        self._alerts: Dict[str, Alert] = {}
        self._subscribers: List[Handler] = []
        self._timers: Dict[str, object] = {}
        self._loaded = store is None
        self._outbox = deque()
        self._dispatch_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------
    def subscribe(self, handler: Handler) -> Handler:
        with self._lock:
            self._subscribers.append(handler)
        return handler

    def unsubscribe(self, handler: Handler) -> None:
        with self._lock:
            self._subscribers = [h for h in self._subscribers if h != handler]

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------
    def broadcast(self, code_type: str, department: str, location: str, message: Optional[str] = None,
                  severity: Optional[str] = None, broadcast_to: Optional[Sequence[str]] = None,
                  actor: Optional[str] = None) -> Alert:
        code = normalize_code(code_type)
        if code is None:
            raise ValidationError(f'unknown emergency code: {code_type!r}')
        department = _clean(department)
        location = _clean(location)
        if not department:
            raise ValidationError('department is required')
        if not location:
            raise ValidationError('location is required')
        severity = _clean(severity).lower() or EMERGENCY_CODES[code]['priority']
        if severity not in SEVERITIES:
            raise ValidationError(f'unknown severity: {severity!r}')

        self._ensure_loaded()
        alert = Alert(
            id=_new_alert_id(),
            code_type=code,
            department=department,
            location=location,
            severity=severity,
            message=_clean(message) or EMERGENCY_CODES[code]['description'],
            status=STATUS_ACTIVE,
            created_at=self._clock(),
            broadcast_to=_normalize_targets(broadcast_to),
        )
        with self._lock:
            while alert.id in self._alerts:
                alert = replace(alert, id=_new_alert_id())
            self._save(alert)
            self._alerts[alert.id] = alert
            if not alert.is_critical:
                self._schedule_auto_ack(alert.id)
            self._enqueue(alert)

        logger.info('Broadcast %s (%s) for %s / %s by %s', alert.code_type, alert.severity,
                    alert.department, alert.location, actor or 'unknown')
        self._dispatch()
        return alert

    def acknowledge(self, alert_id: str, actor: Optional[str] = None) -> Alert:
        """Move an active alert to acknowledged; other states are left as they are."""
        return self._transition(alert_id, STATUS_ACKNOWLEDGED, actor or '', allowed_from=(STATUS_ACTIVE,))

    def resolve(self, alert_id: str, actor: Optional[str] = None) -> Alert:
        return self._transition(alert_id, STATUS_RESOLVED, actor or '',
                                allowed_from=(STATUS_ACTIVE, STATUS_ACKNOWLEDGED))

    def _transition(self, alert_id: str, target: str, actor: str, *, allowed_from: tuple) -> Alert:
        self._ensure_loaded()
        with self._lock:
            current = self._lookup(alert_id)
            if current.status not in allowed_from:
                return current
            updated = _advance(current, target, actor, self._clock())
            self._save(updated)
            self._alerts[alert_id] = updated
            self._cancel_timer(alert_id)
            self._enqueue(updated)

        logger.info('Alert %s %s -> %s by %s', alert_id, current.status, target, actor or 'unknown')
        self._dispatch()
        return updated

    def _lookup(self, alert_id: str) -> Alert:
        # Caller holds self._lock.  The stored row wins when another worker
        # raised the alert or has already moved it further along.
        current = self._alerts.get(alert_id)
        if self._store is not None:
            stored = self._store.get(alert_id)
            if stored is not None and (current is None
                                       or _STATUS_RANK[stored.status] > _STATUS_RANK[current.status]):
                self._adopt(stored)
                current = stored
        if current is None:
            raise NotFoundError(f'alert {alert_id} not found')
        return current

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    def get(self, alert_id: str) -> Alert:
        self._ensure_loaded()
        self._expire_overdue()
        with self._lock:
            alert = self._alerts.get(alert_id)
        if alert is None:
            raise NotFoundError(f'alert {alert_id} not found')
        return alert

    def list_active(self) -> List[Alert]:
        """Active alerts in the order they were raised."""
        self._ensure_loaded()
        self._expire_overdue()
        with self._lock:
            return [a for a in self._alerts.values() if a.status == STATUS_ACTIVE]

    def history(self) -> List[Alert]:
        self._ensure_loaded()
        self._expire_overdue()
        with self._lock:
            return list(self._alerts.values())

    # ------------------------------------------------------------------
    # Loading from the store
    # ------------------------------------------------------------------
    def _ensure_loaded(self) -> None:
        if self._loaded:
            return
        with self._lock:
            if self._loaded:
                return
            try:
                alerts = self._store.load_open()
            except UpstreamUnavailable:
                logger.warning('Open alerts could not be loaded, retrying on next use')
                return
            for alert in alerts:
                self._adopt(alert)
            self._loaded = True
        logger.info('Loaded %d open alerts from storage', len(alerts))

    def _adopt(self, alert: Alert) -> None:
        # Caller holds self._lock.
        self._alerts[alert.id] = alert
        if alert.status != STATUS_ACTIVE or alert.is_critical:
            self._cancel_timer(alert.id)
        elif alert.id not in self._timers:
            remaining = self.auto_ack_after - (self._clock() - alert.created_at)
            self._schedule_auto_ack(alert.id, max(0.0, remaining.total_seconds()))

    # ------------------------------------------------------------------
    # Auto-acknowledge
    # ------------------------------------------------------------------
    def _schedule_auto_ack(self, alert_id: str, delay: Optional[float] = None) -> None:
        if delay is None:
            delay = self.auto_ack_after.total_seconds()
        self._timers[alert_id] = self._timer_factory(delay, lambda: self._auto_acknowledge(alert_id))

    def _cancel_timer(self, alert_id: str) -> None:
        timer = self._timers.pop(alert_id, None)
        if timer is not None:
            timer.cancel()

    def _auto_acknowledge(self, alert_id: str) -> None:
        # Runs on a timer thread or lazily from a read: re-check, never overwrite.
        with self._lock:
            alert = self._alerts.get(alert_id)
            if alert is None or alert.status != STATUS_ACTIVE or alert.is_critical:
                self._timers.pop(alert_id, None)
                return
        try:
            self._transition(alert_id, STATUS_ACKNOWLEDGED, AUTO_ACTOR, allowed_from=(STATUS_ACTIVE,))
        except BroadcastError:
            logger.exception('Auto-acknowledge failed for alert %s', alert_id)

    def _expire_overdue(self) -> None:
        now = self._clock()
        with self._lock:
            due = [
                a.id for a in self._alerts.values()
                if a.status == STATUS_ACTIVE and not a.is_critical
                and is_past_deadline(a.created_at, self.auto_ack_after, now)
            ]
        for alert_id in due:
            self._auto_acknowledge(alert_id)

    def shutdown(self) -> None:
        with self._lock:
            for alert_id in list(self._timers):
                self._cancel_timer(alert_id)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _save(self, alert: Alert) -> None:
        if self._store is not None:
            self._store.save(alert)

    def _enqueue(self, alert: Alert) -> None:
        # Caller holds self._lock, so queue order is change order.
        self._outbox.append((list(self._subscribers), alert))

    def _dispatch(self) -> None:
        # Only one thread drains at a time; a thread that finds the drain
        # busy leaves its event to the current drainer.
        while self._dispatch_lock.acquire(blocking=False):
            try:
                while True:
                    with self._lock:
                        if not self._outbox:
                            break
                        subscribers, alert = self._outbox.popleft()
                    self._notify(subscribers, alert)
            finally:
                self._dispatch_lock.release()
            with self._lock:
                if not self._outbox:
                    return

    def _notify(self, subscribers: List[Handler], alert: Alert) -> None:
        for handler in subscribers:
            try:
                handler(alert)
            except Exception:
                logger.exception('Alert subscriber %r failed on %s', handler, alert.id)


def build_registry() -> AlertRegistry:
    """Create the process registry from settings with its default subscribers.

    Nothing is read here: alerts still open in the store are loaded on the
    registry's first use, once the database is reachable.
    """
    from broadcast.services.alert_store import DatabaseAlertStore
    from broadcast.services.subscribers import ChannelLayerPublisher

    registry = AlertRegistry(
        auto_ack_after=timedelta(seconds=settings.ALERT_AUTO_ACK_SECONDS),
        store=DatabaseAlertStore() if settings.ALERT_PERSIST else None,
    )
    registry.subscribe(ChannelLayerPublisher())
    return registry


def get_registry() -> AlertRegistry:
    return apps.get_app_config('broadcast').registry
