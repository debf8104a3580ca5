from datetime import timedelta

import pytest
from django.db import DatabaseError, InterfaceError
from django.utils import timezone

from broadcast.errors import NotFoundError, UpstreamUnavailable, ValidationError
from broadcast.models import Display
from broadcast.services import heartbeat

pytestmark = pytest.mark.django_db


def make_display(display_id='DSP-001', status=Display.STATUS_ONLINE, age=timedelta(seconds=10), **extra):
    now = timezone.now()
    defaults = {
        'location': 'Main Lobby',
        'status': status,
        'last_update': now - age,
        'online_since': None if status == Display.STATUS_OFFLINE else now - timedelta(hours=2),
    }
    defaults.update(extra)
    return Display.objects.create(id=display_id, **defaults)


def test_heartbeat_refreshes_last_update():
    display = make_display(age=timedelta(minutes=1))
    before = display.last_update

    updated = heartbeat.record_heartbeat('DSP-001')

    assert updated.status == Display.STATUS_ONLINE
    assert updated.last_update > before
    display.refresh_from_db()
    assert display.last_update == updated.last_update
    # Still the same uptime run.
    assert display.online_since < before


def test_heartbeat_brings_offline_display_online():
    make_display(status=Display.STATUS_OFFLINE, age=timedelta(hours=1))
    ts = timezone.now() - timedelta(seconds=5)

    display = heartbeat.record_heartbeat('DSP-001', status='online', timestamp=ts.isoformat())

    assert display.status == Display.STATUS_ONLINE
    assert display.last_update > ts
    assert display.online_since == display.last_update
    assert display.last_heartbeat_at == ts


def test_heartbeat_reports_warning():
    make_display()
    display = heartbeat.record_heartbeat('DSP-001', status='WARNING')
    assert display.status == Display.STATUS_WARNING
    assert display.online_since is not None


def test_unknown_display_is_not_created():
    with pytest.raises(NotFoundError):
        heartbeat.record_heartbeat('DSP-404')
    assert not Display.objects.filter(id='DSP-404').exists()


@pytest.mark.parametrize('kwargs', [
    {'display_id': ''},
    {'display_id': '   '},
    {'display_id': None},
    {'display_id': 'DSP-001', 'status': 'rebooting'},
    {'display_id': 'DSP-001', 'timestamp': 'not-a-date'},
])
def test_heartbeat_validation(kwargs):
    make_display()
    with pytest.raises(ValidationError):
        heartbeat.record_heartbeat(**kwargs)


def test_out_of_order_heartbeat_is_ignored():
    device_clock = timezone.now() - timedelta(seconds=5)
    display = make_display(status=Display.STATUS_WARNING, age=timedelta(seconds=5), last_heartbeat_at=device_clock)
    stored = display.last_update

    result = heartbeat.record_heartbeat('DSP-001', status='online',
                                        timestamp=(device_clock - timedelta(seconds=1)).isoformat())

    assert result.status == Display.STATUS_WARNING
    display.refresh_from_db()
    assert display.last_update == stored
    assert display.last_heartbeat_at == device_clock
    assert display.status == Display.STATUS_WARNING


def test_device_clock_behind_still_reads_online(settings):
    settings.DISPLAY_STALE_AFTER_SECONDS = 90
    make_display(status=Display.STATUS_OFFLINE, age=timedelta(hours=1))
    slow_clock = timezone.now() - timedelta(minutes=3)

    heartbeat.record_heartbeat('DSP-001', timestamp=slow_clock.isoformat())

    listed = heartbeat.list_displays()[0]
    assert listed['status'] == 'online'
    assert listed['stale'] is False
    # The next ping from the same slow clock is still in order.
    later = heartbeat.record_heartbeat('DSP-001', status='warning',
                                       timestamp=(slow_clock + timedelta(seconds=30)).isoformat())
    assert later.status == Display.STATUS_WARNING


def test_device_clock_ahead_does_not_lock_out_later_pings():
    make_display()
    future = timezone.now() + timedelta(hours=3)

    display = heartbeat.record_heartbeat('DSP-001', timestamp=future.isoformat())
    assert display.last_update <= timezone.now()
    assert display.last_heartbeat_at <= timezone.now()

    corrected = heartbeat.record_heartbeat('DSP-001', status='warning', timestamp=timezone.now().isoformat())
    assert corrected.status == Display.STATUS_WARNING


def test_heartbeat_storage_failure(monkeypatch):
    make_display()

    def broken(display_id):
        raise DatabaseError('connection lost')

    monkeypatch.setattr(heartbeat, '_locked', broken)
    with pytest.raises(UpstreamUnavailable):
        heartbeat.record_heartbeat('DSP-001')


def test_stale_online_display_reads_offline(settings):
    settings.DISPLAY_STALE_AFTER_SECONDS = 90
    now = timezone.now()
    fresh = make_display('DSP-001', age=timedelta(seconds=89))
    stale = make_display('DSP-002', age=timedelta(seconds=91))
    parked = make_display('DSP-003', status=Display.STATUS_MAINTENANCE, age=timedelta(days=2))

    assert heartbeat.effective_status(fresh, now) == Display.STATUS_ONLINE
    assert heartbeat.effective_status(stale, now) == Display.STATUS_OFFLINE
    assert heartbeat.is_stale(stale, now)
    assert heartbeat.effective_status(parked, now) == Display.STATUS_MAINTENANCE
    # Nothing is written back by a read.
    stale.refresh_from_db()
    assert stale.status == Display.STATUS_ONLINE


def test_heartbeat_after_going_stale_restarts_uptime():
    display = make_display(age=timedelta(minutes=10))
    old_since = display.online_since

    updated = heartbeat.record_heartbeat('DSP-001')

    assert updated.online_since > old_since
    assert heartbeat.format_display(updated)['uptime'] == '0m'


def test_set_display_status():
    make_display()

    off = heartbeat.set_display_status('DSP-001', 'offline')
    assert off.status == Display.STATUS_OFFLINE
    assert off.online_since is None

    on = heartbeat.set_display_status('DSP-001', 'online')
    assert on.status == Display.STATUS_ONLINE
    assert on.online_since == on.last_update

    with pytest.raises(ValidationError):
        heartbeat.set_display_status('DSP-001', 'sleeping')
    with pytest.raises(NotFoundError):
        heartbeat.set_display_status('DSP-404', 'offline')


def test_restart_display_resets_uptime():
    make_display(status=Display.STATUS_WARNING, age=timedelta(hours=5))

    display = heartbeat.restart_display('DSP-001')

    assert display.status == Display.STATUS_ONLINE
    assert display.online_since == display.last_update
    data = heartbeat.format_display(display)
    assert data['uptime'] == '0m'
    assert data['status'] == 'online'
    assert data['stale'] is False


def test_create_display_generates_ids():
    first = heartbeat.create_display(location='ICU Wing A', zone='icu')
    second = heartbeat.create_display(location='ICU Wing B', content='Emergency Alerts', status='online')

    assert (first.id, second.id) == ('DSP-001', 'DSP-002')
    assert first.status == Display.STATUS_OFFLINE
    assert first.online_since is None
    assert first.zone == 'icu'
    assert second.online_since is not None

    with pytest.raises(ValidationError):
        heartbeat.create_display(location='  ')
    with pytest.raises(ValidationError):
        heartbeat.create_display(location='Lobby', content='Weather')


def test_list_displays_applies_liveness():
    make_display('DSP-001', age=timedelta(seconds=5))
    make_display('DSP-002', age=timedelta(minutes=30))
    make_display('DSP-003', status=Display.STATUS_OFFLINE, age=timedelta(minutes=1))

    data = heartbeat.list_displays()
    assert [d['id'] for d in data] == ['DSP-001', 'DSP-003', 'DSP-002']
    by_id = {d['id']: d for d in data}
    assert by_id['DSP-002']['status'] == 'offline'
    assert by_id['DSP-002']['reportedStatus'] == 'online'
    assert by_id['DSP-002']['stale'] is True

    offline = heartbeat.list_displays(status='offline')
    assert {d['id'] for d in offline} == {'DSP-002', 'DSP-003'}


def test_closed_connection_is_retryable(monkeypatch):
    make_display()

    def closed(display_id):
        raise InterfaceError('connection already closed')

    monkeypatch.setattr(heartbeat, '_locked', closed)
    with pytest.raises(UpstreamUnavailable):
        heartbeat.record_heartbeat('DSP-001')
    with pytest.raises(UpstreamUnavailable):
        heartbeat.restart_display('DSP-001')


def test_get_display():
    make_display(zone='icu')
    assert heartbeat.get_display('DSP-001').zone == 'icu'
    with pytest.raises(NotFoundError):
        heartbeat.get_display('DSP-404')


def test_update_display_edits_settings_only():
    display = make_display(age=timedelta(minutes=1))
    before = display.last_update

    updated = heartbeat.update_display('DSP-001', location=' ICU Wing B ', content='Emergency Alerts',
                                       zone='icu', config={'rotateSeconds': 15})

    display.refresh_from_db()
    assert (display.location, display.content, display.zone) == ('ICU Wing B', 'Emergency Alerts', 'icu')
    assert display.config == {'rotateSeconds': 15}
    # An edit is not a sign of life.
    assert display.last_update == before
    assert updated.status == Display.STATUS_ONLINE


def test_update_display_can_change_status():
    make_display()
    display = heartbeat.update_display('DSP-001', status='maintenance')
    assert display.status == Display.STATUS_MAINTENANCE
    assert display.online_since is None


@pytest.mark.parametrize('kwargs', [
    {'location': '   '},
    {'content': 'Weather'},
    {'config': ['not', 'a', 'dict']},
    {'status': 'asleep'},
])
def test_update_display_validation(kwargs):
    make_display(location='Main Lobby')
    with pytest.raises(ValidationError):
        heartbeat.update_display('DSP-001', **kwargs)
    assert Display.objects.get(id='DSP-001').location == 'Main Lobby'


def test_update_unknown_display():
    with pytest.raises(NotFoundError):
        heartbeat.update_display('DSP-404', zone='icu')
