# chat_backend/api/routes/root.py

from fastapi import APIRouter

router = APIRouter()


@router.get("/")
async def root():
    """
    Root endpoint - API information.

    Returns basic info about the chat service and its endpoints.
    """
    return {
        "message": "AletheianDocs Support Chat",
        "version": "1.0",
        "features": ["rooms", "persistent_messages", "moderation"],
        "endpoints": {
            "websocket": "/chat/ws",
            "rooms": "/chat/rooms",
            "moderation": "/api/admin/chat-messages",
            "health": "/health",
            "metrics": "/metrics",
        },
    }
