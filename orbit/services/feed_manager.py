import asyncio
import enum
import json
import uuid
from typing import Any, Dict, Optional

from fastapi import WebSocket
from fastapi.encoders import jsonable_encoder
from redis.exceptions import RedisError

from orbit.core.config import settings
from orbit.core.logger import get_logger
from orbit.services.redis import publish_message, subscribe_to_channel

logger = get_logger("orbit.feed")


class ChangeEvent(str, enum.Enum):
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


class FeedConnectionManager:
    """
    Tracks feed WebSocket subscribers and fans incident changes out to them.

    Each subscriber gets its own queue; the socket's pump task drains it and
    reloads that subscriber's feed. Changes are also published to Redis so
    subscribers connected to other instances are notified.
    """
    def __init__(self):
        self.subscribers: Dict[WebSocket, asyncio.Queue] = {}
        self.channel = settings.INCIDENT_CHANNEL
        # Lets the Redis listener skip messages this instance published itself
        self.instance_id = uuid.uuid4().hex

    def connect(self, websocket: WebSocket) -> asyncio.Queue:
        """
        Register a subscriber and return the queue its notifications arrive on.
        """
        queue: asyncio.Queue = asyncio.Queue()
        self.subscribers[websocket] = queue
        logger.info(f"Feed subscriber connected: total={len(self.subscribers)}")
        return queue

    def disconnect(self, websocket: WebSocket):
        """
        Remove a subscriber when its socket closes.
        """
        if self.subscribers.pop(websocket, None) is not None:
            logger.info(f"Feed subscriber disconnected: total={len(self.subscribers)}")

    def notify_local(self, message: dict):
        for queue in self.subscribers.values():
            queue.put_nowait(message)

    async def send_message(self, websocket: WebSocket, message: dict):
        """
        Send a message to a specific websocket.
        """
        await websocket.send_json(jsonable_encoder(message))

    async def broadcast_change(self, event: ChangeEvent, record: Any):
        """
        Notify local subscribers of an incident change and publish it to Redis
        for other instances.
        """
        message = {
            "type": "incident_change",
            "event": ChangeEvent(event).value,
            "record": jsonable_encoder(record),
            "origin": self.instance_id,
        }
        self.notify_local(message)

        if not settings.REDIS_ENABLED:
            return
        try:
            await publish_message(self.channel, message)
        except RedisError as e:
            logger.warning(f"Failed to publish incident change: event={message['event']}, error={e}")

    def handle_remote_message(self, raw: str) -> Optional[dict]:
        """
        Forward a change published by another instance. Returns the forwarded
        message, or None if it was ignored.
        """
        try:
            message = json.loads(raw)
        except (TypeError, ValueError):
            logger.warning(f"Ignoring malformed change message: {raw!r}")
            return None
        if not isinstance(message, dict) or message.get("origin") == self.instance_id:
            return None
        message.setdefault("type", "incident_change")
        self.notify_local(message)
        return message

    async def listen(self):
        """
        Relay changes from the Redis channel to local subscribers until cancelled.
        A lost connection is retried every REDIS_RETRY_SECONDS.
        """
        while True:
            try:
                pubsub = await subscribe_to_channel(self.channel)
            except RedisError as e:
                logger.error(f"Cannot subscribe to {self.channel}: error={e}")
                await asyncio.sleep(settings.REDIS_RETRY_SECONDS)
                continue

            logger.info(f"Listening for incident changes on {self.channel}")
            try:
                async for item in pubsub.listen():
                    if item.get("type") == "message":
                        self.handle_remote_message(item.get("data"))
            except RedisError as e:
                logger.error(f"Incident change listener lost Redis, resubscribing: error={e}")
            finally:
                await pubsub.aclose()
            await asyncio.sleep(settings.REDIS_RETRY_SECONDS)


# Create a singleton instance
feed_manager = FeedConnectionManager()
