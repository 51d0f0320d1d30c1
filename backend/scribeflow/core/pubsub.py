# scribeflow/core/pubsub.py
"""
PubSub module for WebSocket draft-status broadcasting.
The auto-save controller reports every draft status change; this channel
forwards it to the status indicators subscribed to that segment.
"""
import asyncio
import json
import logging
from typing import Dict, Set

from starlette.websockets import WebSocket

logger = logging.getLogger(__name__)

class Channel:
    """
    Segment-keyed PubSub channel.

    - Router is responsible for ws.accept(); this module only routes messages
    - Messages are broadcast to every subscriber of a segment id
    - Failed sockets are dropped from the subscriber set

    Data structure:
    - _topics: Dict[segment_id, Set[WebSocket]]
    """
    def __init__(self):
        self._topics: Dict[str, Set[WebSocket]] = {}

    async def subscribe(self, segment_id: str, ws: WebSocket):
        """Register a WebSocket for status updates of one segment."""
        self._topics.setdefault(segment_id, set()).add(ws)

    def unsubscribe(self, segment_id: str, ws: WebSocket):
        """Remove a WebSocket; unknown pairs are ignored."""
        subs = self._topics.get(segment_id)
        if subs is None:
            return
        subs.discard(ws)
        if not subs:
            del self._topics[segment_id]

    def subscribers(self, segment_id: str) -> int:
        return len(self._topics.get(segment_id, ()))

    async def publish(self, segment_id: str, payload: dict):
        """
        Publish a JSON message to all subscribers of a segment.
        Sockets that fail to receive are unsubscribed.
        """
        conns = list(self._topics.get(segment_id, set()))
        msg = json.dumps(payload, ensure_ascii=False)
        for s in conns:
            try:
                await s.send_text(msg)
            except Exception as e:
                logger.info("[pubsub] dropping subscriber of %s: %r", segment_id, e)
                self.unsubscribe(segment_id, s)

    def publish_nowait(self, segment_id: str, payload: dict):
        """
        Schedule publish() on the running loop. Used from synchronous status
        listeners; does nothing when no loop is running or nobody listens.
        """
        if not self._topics.get(segment_id):
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        loop.create_task(self.publish(segment_id, payload))

# Global channel instance (singleton pattern)
channel = Channel()
