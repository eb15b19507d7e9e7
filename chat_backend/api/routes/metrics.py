# chat_backend/api/routes/metrics.py
from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from chat_backend.core.state import ChatState, get_state

router = APIRouter()

@router.get("/metrics")
async def get_metrics(chat: ChatState = Depends(get_state)):
    """
    Chat traffic metrics for this instance.

    Returns:
        dict: Message statistics (stored, failed, messages/sec, daily
              projection) and capacity (connections, active rooms)

    Counters are per process and reset on restart.
    """
    uptime_seconds = (datetime.now(timezone.utc) - chat.app_start_time).total_seconds()
    total = chat.dispatcher.message_counter

    if uptime_seconds > 0:
        messages_per_second = total / uptime_seconds
        daily_messages = int(messages_per_second * 86400)
    else:
        messages_per_second = 0
        daily_messages = 0

    return {
        # Statistics
        "total_messages": total,
        "failed_messages": chat.dispatcher.failed_messages,
        "uptime_hours": round(uptime_seconds / 3600, 2) if uptime_seconds > 0 else 0,
        "daily_messages_projected": daily_messages,
        "messages_per_second": round(messages_per_second, 2),

        # Capacity
        "concurrent_connections": len(chat.connections.sessions),
        "active_rooms_with_members": len(chat.registry.rooms),
        "fan_out": "redis" if chat.relay is not None else "in_process",
    }
