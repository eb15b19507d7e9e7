from __future__ import annotations

import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from chat_backend.models.chat import OutboundMessage, ServerEvent
from chat_backend.services.redis_relay import CHANNEL_PREFIX, AsyncRedisRelay


@pytest.fixture
def connections() -> MagicMock:
    connections = MagicMock()
    connections.deliver = AsyncMock(return_value=1)
    return connections


@pytest.fixture
def relay(connections) -> AsyncRedisRelay:
    relay = AsyncRedisRelay(connections, host="redis.test", port=6380)
    relay.client = MagicMock()
    relay.client.publish = AsyncMock()
    return relay


@pytest.mark.asyncio
async def test_publish_uses_room_channel(relay):
    event = ServerEvent.message(OutboundMessage(user="alice", message="hi"))

    await relay.publish("support", event)

    channel, raw = relay.client.publish.await_args.args
    assert channel == f"{CHANNEL_PREFIX}support"
    payload = json.loads(raw)
    assert payload["room"] == "support"
    assert payload["event"]["data"]["message"] == "hi"


@pytest.mark.asyncio
async def test_handle_delivers_to_local_members(relay, connections):
    event = ServerEvent.message(OutboundMessage(user="alice", message="hi"))
    raw = json.dumps({"room": "support", "event": event.model_dump(mode="json")})

    await relay.handle(raw)

    room, delivered = connections.deliver.await_args.args
    assert room == "support"
    assert delivered.event == "message"
    assert delivered.data["user"] == "alice"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "raw",
    [
        "not json",
        json.dumps(["a", "list"]),
        json.dumps({"room": "support", "event": {"event": "bogus", "data": {}}}),
        json.dumps({"event": {"event": "message", "data": {}}}),
    ],
)
async def test_handle_skips_bad_payloads(relay, connections, raw):
    await relay.handle(raw)
    connections.deliver.assert_not_awaited()


@pytest.mark.asyncio
async def test_round_trip_through_publish_and_handle(relay, connections):
    await relay.publish("general", ServerEvent.message(OutboundMessage(user="bob", message="yo")))
    _, raw = relay.client.publish.await_args.args

    await relay.handle(raw)

    assert connections.deliver.await_args.args[0] == "general"


def test_url_without_access_key(connections):
    relay = AsyncRedisRelay(connections, host="localhost", port=6379)
    relay.access_key = ""
    assert relay._url() == "redis://localhost:6379"
