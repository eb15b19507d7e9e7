# chat_backend/services/connection_manager.py

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Dict, Optional

from fastapi import WebSocket

from chat_backend.core.config import settings
from chat_backend.models.chat import OutboundMessage, ServerEvent
from chat_backend.services.room_registry import RoomRegistry

logger = logging.getLogger(__name__)


@dataclass
class ChatSession:
    """Live-connection state: who is connected and which room they last joined."""

    connection_id: str
    websocket: WebSocket
    user_id: Optional[int] = None
    current_room: Optional[str] = None


# ============================================================================
# WEBSOCKET CONNECTION MANAGER
# ============================================================================

class ConnectionManager:
    """
    Owns the chat sessions of this process and delivers events to them.

    Room membership lives in the RoomRegistry (keyed by connection id); this
    class maps connection ids back to their WebSocket so a room's member set
    can be turned into actual sends.

    Lifecycle per session:
        connect -> join_room (any number of times) -> disconnect

    Membership:
        With SINGLE_ROOM_MEMBERSHIP on (default), joining a room leaves the
        previously joined room. With it off, joins accumulate.
    """

    def __init__(
        self,
        registry: RoomRegistry,
        single_room: Optional[bool] = None,
        default_room: Optional[str] = None,
    ) -> None:
        self.registry = registry
        self.single_room = settings.SINGLE_ROOM_MEMBERSHIP if single_room is None else single_room
        self.default_room = default_room or settings.DEFAULT_ROOM

        # Map: connection_id -> ChatSession
        self.sessions: Dict[str, ChatSession] = {}

    async def connect(self, websocket: WebSocket, user_id: Optional[int] = None) -> ChatSession:
        """
        Accept a new WebSocket connection and greet it.

        The welcome goes to this session only. It is not persisted and not
        broadcast. The session is not joined to any room until it asks.
        """
        await websocket.accept()

        session = ChatSession(connection_id=uuid.uuid4().hex, websocket=websocket, user_id=user_id)
        self.sessions[session.connection_id] = session

        logger.info("✓ Connection %s opened (user=%s). Total: %d", session.connection_id, user_id, len(self.sessions))

        welcome = OutboundMessage(user=settings.SYSTEM_USER, message=settings.WELCOME_MESSAGE)
        await self.send_to(session.connection_id, ServerEvent.message(welcome))
        return session

    async def join_room(self, session: ChatSession, room: Optional[str] = None) -> None:
        """
        Record `room` as the session's current room.

        Any string is accepted; rooms are created implicitly by the first join.
        """
        room = room or self.default_room

        if session.connection_id not in self.sessions:
            return  # Connection already closed

        if self.single_room:
            for previous in self.registry.rooms_of(session.connection_id) - {room}:
                self.registry.leave_room(session.connection_id, previous)
                logger.info("← %s left '%s'", session.connection_id, previous)

        self.registry.join(session.connection_id, room)
        session.current_room = room

        member_count = len(self.registry.members_of(room))
        logger.info("→ %s joined '%s' (%s members)", session.connection_id, room, member_count)

        await self.send_to(session.connection_id, ServerEvent.room_joined(room, member_count))

    def disconnect(self, session_or_id: ChatSession | str) -> None:
        """
        Remove a connection from every room and forget it.

        Safe to call more than once for the same connection.
        """
        connection_id = session_or_id if isinstance(session_or_id, str) else session_or_id.connection_id

        self.registry.leave(connection_id)
        session = self.sessions.pop(connection_id, None)

        if session is not None:
            logger.info("✗ Connection %s closed. Total: %d", connection_id, len(self.sessions))

    async def send_to(self, connection_id: str, event: ServerEvent) -> bool:
        """Send one event to one connection. Returns False if it could not be delivered."""
        session = self.sessions.get(connection_id)
        if session is None:
            return False

        try:
            await session.websocket.send_json(event.model_dump(mode="json"))
            return True
        except Exception as e:
            logger.warning(f"Send to {connection_id} failed: {e}")
            return False

    async def deliver(self, room: str, event: ServerEvent, also: Optional[str] = None) -> int:
        """
        Send an event to every connection currently in `room`.

        `also` names one extra connection that receives this event without
        being a member of the room. The registry is not touched for it.

        Connections whose send fails are treated as gone and disconnected.
        Returns the number of successful deliveries.
        """
        members = self.registry.members_of(room)
        if also is not None and also in self.sessions:
            members.add(also)
        if not members:
            logger.info("[routing] Skipped broadcast: room=%s has 0 members", room)
            return 0

        logger.info("📨 Broadcasting to room %s: %d clients", room, len(members))

        delivered = 0
        failed = set()
        for connection_id in members:
            if await self.send_to(connection_id, event):
                delivered += 1
            else:
                failed.add(connection_id)

        for connection_id in failed:
            self.disconnect(connection_id)

        return delivered

    def stats(self) -> Dict[str, int]:
        return {
            "connections": len(self.sessions),
            "active_rooms": len(self.registry.rooms),
        }
