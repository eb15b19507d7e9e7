# chat_backend/api/routes/health.py

from fastapi import APIRouter, Depends

from chat_backend.core.state import ChatState, get_state

router = APIRouter()

@router.get("/health")
async def health(chat: ChatState = Depends(get_state)):
    """
    Health check endpoint.

    Returns current system status, store reachability and connection counts.
    Used by the hosting platform's health probes and monitoring.

    Returns:
        dict: Status, store status, connection count, active room count
    """
    store_ok = await chat.store.ping()
    return {
        "status": "healthy" if store_ok else "degraded",
        "store": "ok" if store_ok else "unreachable",
        "connections": len(chat.connections.sessions),
        "active_rooms_with_members": len(chat.registry.rooms),
    }
