import json
from typing import Any

import redis.asyncio as redis
from orbit.core.config import settings

# Connections are opened lazily on first command
redis_client = redis.Redis(
    host=settings.REDIS_HOST,
    port=settings.REDIS_PORT,
    db=settings.REDIS_DB,
    password=settings.REDIS_PASSWORD,
    decode_responses=True,
)


async def publish_message(channel: str, message: Any) -> int:
    """Publish a JSON message on a Redis channel."""
    serialized_message = json.dumps(message)
    return await redis_client.publish(channel, serialized_message)


async def subscribe_to_channel(channel: str):
    """Subscribe to a Redis channel and return the pubsub handle."""
    pubsub = redis_client.pubsub()
    await pubsub.subscribe(channel)
    return pubsub
