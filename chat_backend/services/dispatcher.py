# chat_backend/services/dispatcher.py

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional

from chat_backend.core.config import settings
from chat_backend.models.chat import (
    ChatMessage,
    Err,
    Ok,
    OutboundMessage,
    SendMessagePayload,
    SendResult,
    ServerEvent,
)
from chat_backend.services.connection_manager import ChatSession, ConnectionManager
from chat_backend.services.message_store import MessageStore, MessageStoreError

if TYPE_CHECKING:
    from chat_backend.services.redis_relay import AsyncRedisRelay

logger = logging.getLogger(__name__)

# ============================================================================
# BROADCAST DISPATCHER
# ============================================================================

class BroadcastDispatcher:
    """
    Persists a chat message, then fans it out to everyone in its room.

    Flow:
        1. Default the room ("general" unless configured otherwise)
        2. Insert into the store; the store assigns id and created_at
        3. On store failure: log, count, return Err, deliver nothing
        4. On success: deliver {user, message, timestamp, userId} to every
           member of the room, the sender included. A sender that never
           joined any room also gets its own default-room message, but
           stays out of the registry.

    Each call awaits the insert before delivering, so one connection's
    messages go out in the order it sent them. Nothing is retried.
    """

    def __init__(
        self,
        store: MessageStore,
        connections: ConnectionManager,
        relay: Optional[AsyncRedisRelay] = None,
        default_room: Optional[str] = None,
    ) -> None:
        self.store = store
        self.connections = connections
        self.relay = relay
        self.default_room = default_room or settings.DEFAULT_ROOM

        self.message_counter = 0
        self.failed_messages = 0

    async def send_message(self, session: Optional[ChatSession], payload: SendMessagePayload) -> SendResult:
        room = payload.room or self.default_room

        # An authenticated session's identity wins over the client-supplied one
        user_id = session.user_id if session and session.user_id is not None else payload.user_id

        try:
            record = await self.store.insert(user_id, payload.username, payload.message, room)
        except MessageStoreError as e:
            self.failed_messages += 1
            logger.error(f"Error saving chat message for room {room}: {e}")
            return Err(reason=str(e))
        except Exception as e:
            self.failed_messages += 1
            logger.exception(f"Unexpected store error for room {room}: {e}")
            return Err(reason="store error")

        self.message_counter += 1

        # A sender that never joined counts as a default-room member for this send only
        echo_to = None
        if session is not None and session.current_room is None and record.room == self.default_room:
            echo_to = session.connection_id

        await self.broadcast(record, echo_to=echo_to)
        return Ok[ChatMessage](value=record)

    async def broadcast(self, record: ChatMessage, echo_to: Optional[str] = None) -> None:
        body = OutboundMessage(user=record.username, message=record.message, userId=record.user_id)
        event = ServerEvent.message(body)

        if self.relay is not None:
            try:
                await self.relay.publish(record.room, event)
            except Exception as e:
                logger.error(f"Redis publish failed, delivering locally only: {e}")
            else:
                # The relay only reaches registered members
                if echo_to is not None:
                    await self.connections.send_to(echo_to, event)
                return

        await self.connections.deliver(record.room, event, also=echo_to)
