# chat_backend/services/redis_relay.py
from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING

import redis.asyncio as redis
from pydantic import ValidationError

from chat_backend.core.config import settings
from chat_backend.models.chat import ServerEvent

if TYPE_CHECKING:
    from chat_backend.services.connection_manager import ConnectionManager

logger = logging.getLogger(__name__)

CHANNEL_PREFIX = "chat:room:"


class AsyncRedisRelay:
    """
    Cross-instance room fan-out over Redis Pub/Sub.

    Each instance only knows its own connections. A message persisted on one
    instance is published to `chat:room:<room>`; every instance (including
    the publisher) listens on `chat:room:*` and delivers to its local members
    of that room.
    """

    def __init__(self, connections: ConnectionManager, host: str | None = None, port: int | None = None):
        self.connections = connections
        self.host = host or settings.REDIS_HOST
        self.port = port or settings.REDIS_PORT
        self.access_key = settings.REDIS_ACCESS_KEY
        self.client = None
        self.pubsub = None

    def _url(self) -> str:
        scheme = "rediss" if settings.REDIS_SSL else "redis"
        auth = f":{self.access_key}@" if self.access_key else ""
        return f"{scheme}://{auth}{self.host}:{self.port}"

    async def connect(self):
        """Establish async connection to Redis."""
        self.client = redis.from_url(self._url(), decode_responses=True)
        await self.client.ping()
        logger.info(f"✓ Connected to Redis at {self.host}:{self.port}")

    async def publish(self, room: str, event: ServerEvent):
        """
        Publish a room event to every instance.

        Args:
            room: Target room name
            event: Event to deliver to the room's members
        """
        payload = {"room": room, "event": event.model_dump(mode="json")}
        await self.client.publish(f"{CHANNEL_PREFIX}{room}", json.dumps(payload))
        logger.info(f"📤 Published to Redis channel '{CHANNEL_PREFIX}{room}'")

    async def handle(self, raw: str) -> None:
        """Deliver one relayed payload to local members of its room."""
        try:
            data = json.loads(raw)
            room = data.get("room")
            event = ServerEvent.model_validate(data.get("event"))
        except (json.JSONDecodeError, AttributeError, ValidationError) as e:
            logger.error(f"Error decoding Redis payload: {e}")
            return

        if not room:
            logger.warning("Redis payload without room - ignoring")
            return

        logger.info(f"➡ Redis: Routing to room={room}")
        await self.connections.deliver(room, event)

    async def listen(self):
        """Pattern-subscribe to all room channels and route until cancelled."""
        self.pubsub = self.client.pubsub()
        await self.pubsub.psubscribe(f"{CHANNEL_PREFIX}*")
        logger.info(f"✓ Subscribed to Redis pattern '{CHANNEL_PREFIX}*'")

        async for message in self.pubsub.listen():
            if message["type"] in ("message", "pmessage"):
                await self.handle(message["data"])

    async def close(self):
        """Close connections."""
        if self.pubsub:
            await self.pubsub.punsubscribe()
            await self.pubsub.aclose()
        if self.client:
            await self.client.aclose()
        logger.info("Redis connection closed")
