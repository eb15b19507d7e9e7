# chat_backend/core/state.py
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from fastapi import Request, WebSocket

from chat_backend.services.connection_manager import ConnectionManager
from chat_backend.services.dispatcher import BroadcastDispatcher
from chat_backend.services.message_store import MessageStore, build_message_store
from chat_backend.services.redis_relay import AsyncRedisRelay
from chat_backend.services.room_registry import RoomRegistry


@dataclass
class ChatState:
    """App state for one application instance, kept on `app.state.chat`."""

    store: MessageStore
    registry: RoomRegistry
    connections: ConnectionManager
    dispatcher: BroadcastDispatcher
    relay: Optional[AsyncRedisRelay] = None
    app_start_time: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


def build_state(store: Optional[MessageStore] = None, use_redis: bool = False) -> ChatState:
    store = store if store is not None else build_message_store()
    registry = RoomRegistry()
    connections = ConnectionManager(registry)
    relay = AsyncRedisRelay(connections) if use_redis else None
    dispatcher = BroadcastDispatcher(store, connections, relay=relay)
    return ChatState(
        store=store,
        registry=registry,
        connections=connections,
        dispatcher=dispatcher,
        relay=relay,
    )


def get_state(request: Request) -> ChatState:
    return request.app.state.chat


def get_ws_state(websocket: WebSocket) -> ChatState:
    return websocket.app.state.chat
