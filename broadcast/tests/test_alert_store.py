from datetime import timedelta

import pytest
from django.db import InterfaceError
from django.utils import timezone

from broadcast.errors import NotFoundError, UpstreamUnavailable
from broadcast.models import Display, EmergencyAlert
from broadcast.services.alert_store import DatabaseAlertStore
from broadcast.services.alerts import (
    AUTO_ACTOR,
    STATUS_ACKNOWLEDGED,
    STATUS_ACTIVE,
    STATUS_RESOLVED,
    AlertRegistry,
)
from broadcast.services.display_feed import get_display_data

from .conftest import FakeClock, FakeTimers

pytestmark = pytest.mark.django_db


def new_registry(clock, timers=None):
    return AlertRegistry(auto_ack_after=timedelta(minutes=5), store=DatabaseAlertStore(),
                         clock=clock, timer_factory=timers or FakeTimers())


@pytest.fixture
def clock():
    return FakeClock(timezone.now())


def test_saved_alert_round_trips(clock):
    registry = new_registry(clock)
    alert = registry.broadcast('Code Pink', 'Pediatrics', 'Ward 5', broadcast_to=['peds'])

    assert DatabaseAlertStore().get(alert.id) == alert
    assert DatabaseAlertStore().get('alert_missing') is None


def test_restarted_registry_picks_up_open_alerts(clock):
    before = new_registry(clock)
    blue = before.broadcast('Code Blue', 'ER', 'Bay 1')
    clock.advance(seconds=1)
    red = before.broadcast('Code Red', 'Kitchen', 'Block C')
    clock.advance(seconds=1)
    done = before.broadcast('Code Blue', 'ICU', 'Bed 4')
    before.resolve(done.id)
    before.acknowledge(red.id)

    after = new_registry(clock)

    assert [a.id for a in after.list_active()] == [blue.id]
    assert [a.id for a in after.history()] == [blue.id, red.id]
    assert after.get(red.id).status == STATUS_ACKNOWLEDGED


def test_critical_alert_can_be_resolved_after_restart(clock):
    Display.objects.create(id='DSP-001', location='Main Lobby', status='online', last_update=clock.now)
    blue = new_registry(clock).broadcast('Code Blue', 'ER', 'Bay 1')
    assert [a['id'] for a in get_display_data('DSP-001')['emergencyAlerts']] == [blue.id]

    resolved = new_registry(clock).resolve(blue.id, actor='dr.house')

    assert resolved.status == STATUS_RESOLVED
    assert EmergencyAlert.objects.get(id=blue.id).resolved_by == 'dr.house'
    assert get_display_data('DSP-001')['emergencyAlerts'] == []


def test_alert_raised_by_another_worker_can_be_acknowledged(clock):
    worker_a = new_registry(clock)
    worker_b = new_registry(clock)
    assert worker_b.list_active() == []

    alert = worker_a.broadcast('Code Blue', 'ER', 'Bay 1')
    acked = worker_b.acknowledge(alert.id, actor='nurse1')

    assert acked.status == STATUS_ACKNOWLEDGED
    assert EmergencyAlert.objects.get(id=alert.id).status == STATUS_ACKNOWLEDGED
    with pytest.raises(NotFoundError):
        worker_b.resolve('alert_missing')


def test_stored_state_wins_over_stale_copy(clock, recorder):
    worker_a = new_registry(clock)
    alert = worker_a.broadcast('Code Blue', 'ER', 'Bay 1')
    worker_b = new_registry(clock)
    assert [a.id for a in worker_b.list_active()] == [alert.id]

    worker_a.resolve(alert.id, actor='first')
    worker_b.subscribe(recorder)
    again = worker_b.resolve(alert.id, actor='second')

    assert again.resolved_by == 'first'
    assert recorder.events == []
    assert EmergencyAlert.objects.get(id=alert.id).resolved_by == 'first'


def test_loaded_alert_keeps_its_auto_ack_deadline(clock):
    pink = new_registry(clock).broadcast('Code Pink', 'Pediatrics', 'Ward 2')
    clock.advance(minutes=3)

    timers = FakeTimers()
    after = new_registry(clock, timers)
    assert [a.id for a in after.list_active()] == [pink.id]
    assert timers.pending[0].delay == timedelta(minutes=2).total_seconds()

    clock.advance(minutes=2)
    assert after.list_active() == []
    assert after.get(pink.id).acknowledged_by == AUTO_ACTOR
    assert EmergencyAlert.objects.get(id=pink.id).status == STATUS_ACKNOWLEDGED


def test_load_failure_is_retried(clock, monkeypatch):
    alert = new_registry(clock).broadcast('Code Blue', 'ER', 'Bay 1')
    after = new_registry(clock)
    real_load = DatabaseAlertStore.load_open

    def broken(self):
        raise UpstreamUnavailable('db down')

    monkeypatch.setattr(DatabaseAlertStore, 'load_open', broken)
    assert after.list_active() == []

    monkeypatch.setattr(DatabaseAlertStore, 'load_open', real_load)
    assert [a.id for a in after.list_active()] == [alert.id]


def test_closed_connection_maps_to_upstream_unavailable(clock, monkeypatch):
    store = DatabaseAlertStore()

    def closed(*args, **kwargs):
        raise InterfaceError('connection already closed')

    monkeypatch.setattr(EmergencyAlert.objects, 'update_or_create', closed)
    monkeypatch.setattr(EmergencyAlert.objects, 'filter', closed)
    monkeypatch.setattr(EmergencyAlert.objects, 'exclude', closed)

    registry = new_registry(clock)
    with pytest.raises(UpstreamUnavailable):
        registry.broadcast('Code Blue', 'ER', 'Bay 1')
    with pytest.raises(UpstreamUnavailable):
        store.get('alert_x')
    with pytest.raises(UpstreamUnavailable):
        store.load_open()
    assert registry.history() == []


def test_critical_alert_loaded_without_timer(clock):
    alert = new_registry(clock).broadcast('Code Blue', 'ER', 'Bay 1')
    timers = FakeTimers()
    after = new_registry(clock, timers)

    clock.advance(hours=2)

    assert after.get(alert.id).status == STATUS_ACTIVE
    assert timers.timers == []
