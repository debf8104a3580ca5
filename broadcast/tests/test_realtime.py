import logging
import threading

import pytest
from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from channels.testing import WebsocketCommunicator

from broadcast.realtime.consumers import AlertStreamConsumer
from broadcast.services import subscribers
from broadcast.services.subscribers import ALERTS_GROUP, ChannelLayerPublisher


class FakeLayer:
    def __init__(self):
        self.sent = []

    async def group_send(self, group, message):
        self.sent.append((group, message))


def test_publisher_relays_alert_events(registry, monkeypatch):
    layer = FakeLayer()
    monkeypatch.setattr(subscribers, 'get_channel_layer', lambda: layer)
    publisher = registry.subscribe(ChannelLayerPublisher())

    alert = registry.broadcast('Code Red', 'Kitchen', 'Block C')
    registry.resolve(alert.id, actor='fire.warden')
    publisher.close()

    assert [group for group, _ in layer.sent] == [ALERTS_GROUP, ALERTS_GROUP]
    assert [msg['type'] for _, msg in layer.sent] == ['alert.event', 'alert.event']
    assert [msg['alert']['status'] for _, msg in layer.sent] == ['active', 'resolved']
    assert layer.sent[1][1]['alert']['resolvedBy'] == 'fire.warden'


def test_publisher_without_channel_layer(registry, monkeypatch):
    monkeypatch.setattr(subscribers, 'get_channel_layer', lambda: None)
    publisher = registry.subscribe(ChannelLayerPublisher())
    assert registry.broadcast('Code Blue', 'ER', 'Bay 1').status == 'active'
    publisher.close()


def test_slow_layer_does_not_hold_up_broadcast(registry, monkeypatch):
    gate = threading.Event()

    class SlowLayer(FakeLayer):
        async def group_send(self, group, message):
            gate.wait(5)
            await super().group_send(group, message)

    layer = SlowLayer()
    monkeypatch.setattr(subscribers, 'get_channel_layer', lambda: layer)
    publisher = registry.subscribe(ChannelLayerPublisher())

    alert = registry.broadcast('Code Blue', 'ER', 'Bay 1')

    assert alert.status == 'active'
    assert layer.sent == []
    gate.set()
    publisher.close()
    assert [msg['alert']['id'] for _, msg in layer.sent] == [alert.id]


def test_layer_failure_is_logged(registry, monkeypatch, caplog):
    class BrokenLayer:
        async def group_send(self, group, message):
            raise ConnectionError('redis unreachable')

    monkeypatch.setattr(subscribers, 'get_channel_layer', lambda: BrokenLayer())
    publisher = registry.subscribe(ChannelLayerPublisher())

    with caplog.at_level(logging.ERROR, logger='broadcast.services.subscribers'):
        alert = registry.broadcast('Code Red', 'Kitchen', 'Block C')
        publisher.close()

    assert registry.get(alert.id).status == 'active'
    assert 'redis unreachable' in caplog.text


@pytest.mark.django_db(transaction=True)
def test_stream_sends_snapshot_then_events(app_registry):
    alert = app_registry.broadcast('Code Blue', 'ER', 'Bay 1')

    async def scenario():
        communicator = WebsocketCommunicator(AlertStreamConsumer.as_asgi(), '/ws/alerts/')
        connected, _ = await communicator.connect()
        assert connected
        snapshot = await communicator.receive_json_from()
        assert snapshot['type'] == 'alert.snapshot'
        assert [a['id'] for a in snapshot['alerts']] == [alert.id]

        await get_channel_layer().group_send(ALERTS_GROUP, {
            'type': 'alert.event',
            'alert': {'id': alert.id, 'status': 'acknowledged'},
        })
        event = await communicator.receive_json_from()
        assert event['alert'] == {'id': alert.id, 'status': 'acknowledged'}
        await communicator.disconnect()

    async_to_sync(scenario)()
