from __future__ import annotations

import pytest
from fastapi.testclient import TestClient
from jose import jwt
from starlette.websockets import WebSocketDisconnect

from chat_backend.core.config import settings

SECRET = "test-secret"


def join(ws, room):
    ws.send_json({"event": "join-room", "data": room})
    frame = ws.receive_json()
    assert frame["event"] == "room-joined"
    return frame["data"]


def send(ws, **data):
    ws.send_json({"event": "send-message", "data": data})


def receive_welcome(ws):
    frame = ws.receive_json()
    assert frame["event"] == "message"
    assert frame["data"]["user"] == settings.SYSTEM_USER
    return frame["data"]


def test_welcome_on_connect(client: TestClient):
    with client.websocket_connect("/chat/ws") as ws:
        welcome = receive_welcome(ws)
        assert welcome["message"] == settings.WELCOME_MESSAGE
        assert welcome["timestamp"]


def test_two_members_of_support_both_receive(client: TestClient, store):
    with client.websocket_connect("/chat/ws") as a, client.websocket_connect("/chat/ws") as b:
        receive_welcome(a)
        receive_welcome(b)
        assert join(a, "support")["member_count"] == 1
        assert join(b, "support")["member_count"] == 2

        send(a, username="alice", message="hi", room="support")

        for ws in (a, b):
            frame = ws.receive_json()
            assert frame["event"] == "message"
            assert frame["data"]["user"] == "alice"
            assert frame["data"]["message"] == "hi"

    rows = list(store.messages.values())
    assert len(rows) == 1
    assert (rows[0].room, rows[0].username, rows[0].message) == ("support", "alice", "hi")


def test_welcome_is_not_broadcast_to_room(client: TestClient):
    with client.websocket_connect("/chat/ws") as a:
        receive_welcome(a)
        join(a, "general")

        with client.websocket_connect("/chat/ws") as b:
            receive_welcome(b)

            send(a, username="alice", message="after b joined")
            # The next frame for A is its own echo, not B's welcome
            frame = a.receive_json()
            assert frame["data"]["message"] == "after b joined"


def test_disconnected_member_is_removed(client: TestClient, app):
    chat = app.state.chat

    with client.websocket_connect("/chat/ws") as a:
        receive_welcome(a)
        join(a, "general")
        assert len(chat.registry.members_of("general")) == 1

    with client.websocket_connect("/chat/ws") as b:
        receive_welcome(b)
        assert chat.registry.members_of("general") == set()

        send(b, username="bob", message="anyone here?")
        frame = b.receive_json()
        assert frame["data"]["message"] == "anyone here?"
        assert chat.registry.members_of("general") == set()


def test_store_failure_sends_nothing(client: TestClient, store):
    with client.websocket_connect("/chat/ws") as a:
        receive_welcome(a)
        join(a, "support")

        store.fail_with = ConnectionError("db down")
        send(a, username="alice", message="lost", room="support")

        # Frames are handled in order; the error reply means "lost" was processed
        a.send_text("sync")
        assert a.receive_json()["event"] == "error"

        store.fail_with = None
        send(a, username="alice", message="kept", room="support")

        frame = a.receive_json()
        assert frame["data"]["message"] == "kept"

    assert [m.message for m in store.messages.values()] == ["kept"]


@pytest.mark.parametrize(
    "data",
    [
        {"message": "no username"},
        {"username": "alice"},
        {"username": "alice", "message": "   "},
        {"username": "", "message": "hi"},
    ],
)
def test_malformed_payload_is_rejected(client: TestClient, store, data):
    with client.websocket_connect("/chat/ws") as ws:
        receive_welcome(ws)
        ws.send_json({"event": "send-message", "data": data})
        frame = ws.receive_json()
        assert frame["event"] == "error"
        assert frame["data"]["message"] == "Invalid event"

    assert store.messages == {}


def test_overlong_message_is_rejected(client: TestClient, store):
    with client.websocket_connect("/chat/ws") as ws:
        receive_welcome(ws)
        send(ws, username="alice", message="x" * (settings.MAX_MESSAGE_LENGTH + 1))
        assert ws.receive_json()["event"] == "error"

    assert store.messages == {}


def test_invalid_json(client: TestClient):
    with client.websocket_connect("/chat/ws") as ws:
        receive_welcome(ws)
        ws.send_text("{not json")
        frame = ws.receive_json()
        assert frame == {"event": "error", "data": {"message": "Invalid JSON"}}


def test_unknown_event(client: TestClient):
    with client.websocket_connect("/chat/ws") as ws:
        receive_welcome(ws)
        ws.send_json({"event": "shout", "data": "hello"})
        assert ws.receive_json()["event"] == "error"


def test_connection_survives_errors(client: TestClient):
    with client.websocket_connect("/chat/ws") as ws:
        receive_welcome(ws)
        ws.send_text("garbage")
        ws.receive_json()
        assert join(ws, "support")["room"] == "support"


def test_join_without_room_uses_general(client: TestClient):
    with client.websocket_connect("/chat/ws") as ws:
        receive_welcome(ws)
        ws.send_json({"event": "join-room"})
        frame = ws.receive_json()
        assert frame["data"]["room"] == "general"


def test_valid_token_sets_user_id(client: TestClient, store, monkeypatch):
    monkeypatch.setattr(settings, "JWT_SECRET", SECRET)
    token = jwt.encode({"userId": 12, "username": "alice"}, SECRET, algorithm="HS256")

    with client.websocket_connect(f"/chat/ws?token={token}") as ws:
        receive_welcome(ws)
        join(ws, "support")
        send(ws, username="alice", message="hi", room="support", userId=999)
        assert ws.receive_json()["data"]["userId"] == 12

    assert next(iter(store.messages.values())).user_id == 12


def test_invalid_token_closes_connection(client: TestClient, monkeypatch):
    monkeypatch.setattr(settings, "JWT_SECRET", SECRET)
    with pytest.raises(WebSocketDisconnect) as exc_info:
        with client.websocket_connect("/chat/ws?token=not-a-token") as ws:
            ws.receive_json()
    assert exc_info.value.code == 1008
