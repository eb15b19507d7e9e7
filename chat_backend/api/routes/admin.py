# chat_backend/api/routes/admin.py

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from chat_backend.core.logging import get_logger
from chat_backend.core.state import ChatState, get_state
from chat_backend.models.chat import ChatMessageList
from chat_backend.services.auth_service import TokenUser, require_admin
from chat_backend.services.message_store import MessageStoreError

logger = get_logger(__name__)

router = APIRouter(prefix="/api/admin", tags=["Moderation"])

# ============================================================================
# CHAT MODERATION ENDPOINTS
# ============================================================================

@router.get("/chat-messages", response_model=ChatMessageList)
async def list_chat_messages(
    room: Optional[str] = None,
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    chat: ChatState = Depends(get_state),
    admin: TokenUser = Depends(require_admin),
):
    """
    Get chat messages for moderation, newest first.

    Args:
        room: Only messages from this room (all rooms when omitted)
        limit: Page size
        offset: Rows to skip

    Raises:
        HTTPException: 401/403 without an admin token, 500 on store errors
    """
    try:
        messages = await chat.store.list_messages(room=room, limit=limit, offset=offset)
        total = await chat.store.count_messages(room=room)
    except MessageStoreError as e:
        logger.error(f"Error fetching chat messages: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch chat messages")

    return ChatMessageList(messages=messages, total=total, limit=limit, offset=offset)


@router.delete("/chat-messages/{message_id}")
async def delete_chat_message(
    message_id: int,
    chat: ChatState = Depends(get_state),
    admin: TokenUser = Depends(require_admin),
):
    """
    Delete a chat message.

    Connected clients are not notified; messages already delivered stay on
    their screens.

    Raises:
        HTTPException: 404 if the message doesn't exist, 500 on store errors
    """
    try:
        deleted = await chat.store.delete_message(message_id)
    except MessageStoreError as e:
        logger.error(f"Error deleting chat message: {e}")
        raise HTTPException(status_code=500, detail="Failed to delete chat message")

    if not deleted:
        raise HTTPException(status_code=404, detail="Chat message not found")

    logger.info(f"Chat message {message_id} deleted by admin {admin.id}")
    return {"message": "Chat message deleted successfully", "id": message_id}
