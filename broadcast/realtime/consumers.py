import json

from channels.db import database_sync_to_async
from channels.generic.websocket import AsyncWebsocketConsumer

from broadcast.services.alerts import get_registry
from broadcast.services.subscribers import ALERTS_GROUP


def _active_alerts():
    return [a.as_dict() for a in get_registry().list_active()]


class AlertStreamConsumer(AsyncWebsocketConsumer):
    """Pushes every alert lifecycle event to dashboards and displays."""
    GROUP = ALERTS_GROUP

    async def connect(self):
        await self.channel_layer.group_add(self.GROUP, self.channel_name)
        await self.accept()
        # Late joiners get the current picture before any new event.
        active = await database_sync_to_async(_active_alerts)()
        await self.send(json.dumps({"type": "alert.snapshot", "alerts": active}))

    async def disconnect(self, close_code):
        await self.channel_layer.group_discard(self.GROUP, self.channel_name)

    async def alert_event(self, event):
        # event: {"type": "alert.event", "alert": {...}}
        await self.send(json.dumps(event))
