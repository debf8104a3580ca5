from datetime import datetime, timedelta, timezone as dt_timezone

import pytest
from django.apps import apps

from broadcast.services.alerts import AlertRegistry


class FakeTimer:
    def __init__(self, delay, callback):
        self.delay = delay
        self.callback = callback
        self.cancelled = False

    def cancel(self):
        self.cancelled = True

    def fire(self):
        if not self.cancelled:
            self.callback()


class FakeTimers:
    """Timer factory that records timers instead of starting threads."""

    def __init__(self):
        self.timers = []

    def __call__(self, delay, callback):
        timer = FakeTimer(delay, callback)
        self.timers.append(timer)
        return timer

    @property
    def pending(self):
        return [t for t in self.timers if not t.cancelled]

    def fire_all(self):
        for timer in list(self.timers):
            timer.fire()


class FakeClock:
    def __init__(self, start=None):
        self.now = start or datetime(2024, 3, 1, 8, 0, tzinfo=dt_timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


class Recorder:
    def __init__(self):
        self.events = []

    def __call__(self, alert):
        self.events.append(alert)

    @property
    def statuses(self):
        return [(a.id, a.status) for a in self.events]


@pytest.fixture
def timers():
    return FakeTimers()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def recorder():
    return Recorder()


@pytest.fixture
def registry(timers, clock):
    reg = AlertRegistry(auto_ack_after=timedelta(minutes=5), clock=clock, timer_factory=timers)
    yield reg
    reg.shutdown()


@pytest.fixture
def app_registry(monkeypatch, timers):
    """Swap the process registry for one backed by the test database and fake timers."""
    from broadcast.services.alert_store import DatabaseAlertStore

    reg = AlertRegistry(auto_ack_after=timedelta(minutes=5), store=DatabaseAlertStore(), timer_factory=timers)
    monkeypatch.setattr(apps.get_app_config('broadcast'), 'registry', reg)
    yield reg
    reg.shutdown()
