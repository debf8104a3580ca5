"""
Alert subscribers wired in by the composition root.

``ChannelLayerPublisher`` relays every alert event to the ``alerts``
channel group so that dashboards, the navbar notification panel and
public displays connected over WebSocket (see
``broadcast.realtime.consumers``) receive it.
"""
from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer

logger = logging.getLogger(__name__)

ALERTS_GROUP = 'alerts'


class ChannelLayerPublisher:
    """Hand alert events to the channel layer without blocking the caller.

    Sends run on a single worker thread so a slow layer (Redis) never
    holds up a broadcast, and events still leave in the order received.
    """

    def __init__(self, group: str = ALERTS_GROUP, executor=None):
        self.group = group
        self._executor = executor or ThreadPoolExecutor(max_workers=1, thread_name_prefix='alert-publisher')

    def __call__(self, alert) -> None:
        message = {'type': 'alert.event', 'alert': alert.as_dict()}
        future = self._executor.submit(self._send, message)
        future.add_done_callback(self._log_failure)

    def _send(self, message: dict) -> None:
        channel_layer = get_channel_layer()
        if channel_layer is None:
            return
        async_to_sync(channel_layer.group_send)(self.group, message)

    def _log_failure(self, future) -> None:
        if future.cancelled():
            return
        exc = future.exception()
        if exc is not None:
            logger.error('Publishing alert event to %r failed: %s', self.group, exc, exc_info=exc)

    def close(self, wait: bool = True) -> None:
        """Stop accepting events; with ``wait`` the queued ones are sent first."""
        self._executor.shutdown(wait=wait)

    def __repr__(self) -> str:
        return f'ChannelLayerPublisher(group={self.group!r})'
