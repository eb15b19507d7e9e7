# chat_backend/api/websocket.py

from __future__ import annotations

import json
import logging
from typing import Optional

from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status
from pydantic import ValidationError

from chat_backend.core.state import get_ws_state
from chat_backend.models.chat import JoinRoomEvent, SendMessageEvent, ServerEvent, client_event_adapter
from chat_backend.services.auth_service import InvalidTokenError, verify_token

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/chat")

# ============================================================================
# WEBSOCKET ENDPOINT
# ============================================================================

@router.websocket("/ws")
async def chat_endpoint(websocket: WebSocket, token: Optional[str] = None):
    """
    Realtime chat channel.

    Protocol:
    =========
    Every frame is JSON: {"event": "<name>", "data": <payload>}

    Client -> Server Events:
    ------------------------
    Join Room:
        {"event": "join-room", "data": "support"}
        Response: {"event": "room-joined", "data": {"room": "support", "member_count": 2}}

    Send Message:
        {
            "event": "send-message",
            "data": {"userId": 7, "username": "alice", "message": "hi", "room": "support"}
        }
        No acknowledgement. On success every member of the room, the sender
        included, receives the message event below. If the message cannot
        be stored nobody receives anything.

    Server -> Client Events:
    ------------------------
    Message:
        {"event": "message", "data": {"user": "alice", "message": "hi",
                                      "timestamp": "...", "userId": 7}}
        Also sent once, to this connection only, as a welcome on connect.

    Error (malformed frame or payload, sender only):
        {"event": "error", "data": {"message": "..."}}

    Args:
        websocket: WebSocket connection object
        token: Optional portal token; a valid one fixes the session's userId
    """
    chat = get_ws_state(websocket)

    user_id = None
    if token:
        try:
            user_id = verify_token(token).id
        except InvalidTokenError as e:
            logger.warning(f"Rejected chat connection: {e}")
            await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
            return

    session = await chat.connections.connect(websocket, user_id=user_id)

    try:
        while True:
            data = await websocket.receive_text()

            try:
                event = client_event_adapter.validate_python(json.loads(data))
            except json.JSONDecodeError:
                await chat.connections.send_to(session.connection_id, ServerEvent.error("Invalid JSON"))
                continue
            except ValidationError as e:
                errors = e.errors(include_url=False, include_context=False, include_input=False)
                await chat.connections.send_to(
                    session.connection_id,
                    ServerEvent.error("Invalid event", errors=errors),
                )
                continue

            logger.debug(f"Websocket input from {session.connection_id}: {event.event}")

            if isinstance(event, JoinRoomEvent):
                await chat.connections.join_room(session, event.data)

            elif isinstance(event, SendMessageEvent):
                # Fire and forget: the sender learns of success through its own echo
                await chat.dispatcher.send_message(session, event.data)

    except WebSocketDisconnect:
        chat.connections.disconnect(session)
    except Exception as e:
        logger.error("WebSocket error: %s", e)
        chat.connections.disconnect(session)
