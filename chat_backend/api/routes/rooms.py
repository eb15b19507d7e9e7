# chat_backend/api/routes/rooms.py

from typing import List

from fastapi import APIRouter, Depends

from chat_backend.core.state import ChatState, get_state
from chat_backend.models.chat import RoomInfo

router = APIRouter(prefix="/chat")

# ============================================================================
# ACTIVE ROOMS
# ============================================================================

@router.get("/rooms", response_model=List[RoomInfo])
async def list_rooms(chat: ChatState = Depends(get_state)):
    """
    List rooms that currently have members on this instance.

    Rooms exist only while someone is joined, so an empty list is normal
    right after startup.

    Returns:
        List[RoomInfo]: Room names with member counts, busiest first
    """
    rooms = [RoomInfo(room=room, member_count=count) for room, count in chat.registry.active_rooms().items()]
    rooms.sort(key=lambda r: (-r.member_count, r.room))
    return rooms
