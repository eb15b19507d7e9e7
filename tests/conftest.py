"""Shared fixtures for the chat service tests."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from chat_backend.main import create_app
from chat_backend.services.connection_manager import ConnectionManager
from chat_backend.services.dispatcher import BroadcastDispatcher
from chat_backend.services.message_store import InMemoryMessageStore
from chat_backend.services.room_registry import RoomRegistry


@pytest.fixture
def store() -> InMemoryMessageStore:
    return InMemoryMessageStore()


@pytest.fixture
def registry() -> RoomRegistry:
    return RoomRegistry()


@pytest.fixture
def connections(registry: RoomRegistry) -> ConnectionManager:
    return ConnectionManager(registry, single_room=True, default_room="general")


@pytest.fixture
def dispatcher(store: InMemoryMessageStore, connections: ConnectionManager) -> BroadcastDispatcher:
    return BroadcastDispatcher(store, connections, default_room="general")


@pytest.fixture
def app(store: InMemoryMessageStore):
    return create_app(store=store, use_redis=False)


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client
