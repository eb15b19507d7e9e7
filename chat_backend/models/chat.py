# chat_backend/models/chat.py
from __future__ import annotations

from datetime import datetime, timezone
from typing import Annotated, Any, Dict, Generic, List, Literal, Optional, TypeVar, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator

from chat_backend.core.config import settings

# ============================================================================
# PERSISTED RECORD
# ============================================================================

class ChatMessage(BaseModel):
    """A chat message as stored. `id` and `created_at` come from the store."""

    id: int
    user_id: Optional[int] = None
    username: str
    message: str
    room: str = "general"
    created_at: datetime


class ChatMessageList(BaseModel):
    messages: List[ChatMessage]
    total: int
    limit: int
    offset: int


class RoomInfo(BaseModel):
    room: str
    member_count: int


# ============================================================================
# CLIENT -> SERVER PAYLOADS
# ============================================================================

class SendMessagePayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    user_id: Optional[int] = Field(default=None, alias="userId")
    username: str = Field(min_length=1)
    message: str = Field(min_length=1)
    room: Optional[str] = None

    @field_validator("username")
    @classmethod
    def _username_length(cls, value: str) -> str:
        if len(value) > settings.MAX_USERNAME_LENGTH:
            raise ValueError(f"username longer than {settings.MAX_USERNAME_LENGTH} characters")
        return value

    @field_validator("message")
    @classmethod
    def _message_length(cls, value: str) -> str:
        if len(value) > settings.MAX_MESSAGE_LENGTH:
            raise ValueError(f"message longer than {settings.MAX_MESSAGE_LENGTH} characters")
        return value

    @field_validator("room")
    @classmethod
    def _room_length(cls, value: Optional[str]) -> Optional[str]:
        if value and len(value) > settings.MAX_ROOM_LENGTH:
            raise ValueError(f"room longer than {settings.MAX_ROOM_LENGTH} characters")
        return value or None


class JoinRoomEvent(BaseModel):
    event: Literal["join-room"]
    data: Optional[str] = None

    @field_validator("data")
    @classmethod
    def _room_length(cls, value: Optional[str]) -> Optional[str]:
        if value is not None:
            value = value.strip()
            if len(value) > settings.MAX_ROOM_LENGTH:
                raise ValueError(f"room longer than {settings.MAX_ROOM_LENGTH} characters")
        return value or None


class SendMessageEvent(BaseModel):
    event: Literal["send-message"]
    data: SendMessagePayload


ClientEvent = Annotated[Union[JoinRoomEvent, SendMessageEvent], Field(discriminator="event")]

client_event_adapter: TypeAdapter[ClientEvent] = TypeAdapter(ClientEvent)


# ============================================================================
# SERVER -> CLIENT EVENTS
# ============================================================================

def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class OutboundMessage(BaseModel):
    """Body of a `message` event, as seen by every room member."""

    model_config = ConfigDict(populate_by_name=True)

    user: str
    message: str
    timestamp: datetime = Field(default_factory=utc_now)
    user_id: Optional[int] = Field(default=None, alias="userId")


class ServerEvent(BaseModel):
    event: Literal["message", "room-joined", "error"]
    data: Dict[str, Any]

    @classmethod
    def message(cls, body: OutboundMessage) -> "ServerEvent":
        return cls(event="message", data=body.model_dump(mode="json", by_alias=True))

    @classmethod
    def room_joined(cls, room: str, member_count: int) -> "ServerEvent":
        return cls(event="room-joined", data={"room": room, "member_count": member_count})

    @classmethod
    def error(cls, message: str, **details: Any) -> "ServerEvent":
        return cls(event="error", data={"message": message, **details})


# ============================================================================
# SEND OUTCOME
# ============================================================================

T = TypeVar("T")


class Ok(BaseModel, Generic[T]):
    ok: Literal[True] = True
    value: T


class Err(BaseModel):
    ok: Literal[False] = False
    reason: str


SendResult = Union[Ok[ChatMessage], Err]
