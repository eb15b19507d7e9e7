# chat_backend/main.py

from __future__ import annotations

import asyncio
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from chat_backend.core.config import settings
from chat_backend.core.logging import setup_logging, get_logger
from chat_backend.core.state import build_state
from chat_backend.api.routes import root, health, metrics, rooms, admin
from chat_backend.api import websocket as websocket_module
from chat_backend.services.message_store import MessageStore

# Configure logging first
setup_logging()
logger = get_logger(__name__)


def create_app(store: Optional[MessageStore] = None, use_redis: Optional[bool] = None) -> FastAPI:
    """
    Build the chat application.

    Args:
        store: Message store to use; defaults to Postgres when DATABASE_URL
               is set, otherwise an in-memory store
        use_redis: Fan out through Redis; defaults to PUB_SUB_SERVICE == "redis"
    """
    if use_redis is None:
        use_redis = settings.PUB_SUB_SERVICE == "redis"

    app = FastAPI(title="AletheianDocs Support Chat")
    app.state.chat = build_state(store=store, use_redis=use_redis)
    app.state.relay_task = None

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # REST routes
    app.include_router(root.router)
    app.include_router(health.router)
    app.include_router(metrics.router)
    app.include_router(rooms.router)
    app.include_router(admin.router)

    # WebSocket routes
    app.include_router(websocket_module.router)

    def _log_listener_exit(task: asyncio.Task) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Redis listener stopped; relayed messages will not be delivered", exc_info=exc)

    @app.on_event("startup")
    async def startup_event():
        logger.info("🚀 Chat service starting")
        chat = app.state.chat

        try:
            await chat.store.initialize()
        except Exception:
            logger.exception("Failed to initialize message store")
            raise

        if chat.relay is not None:
            await chat.relay.connect()
            # Start subscriber in background
            app.state.relay_task = asyncio.create_task(chat.relay.listen())
            app.state.relay_task.add_done_callback(_log_listener_exit)

    @app.on_event("shutdown")
    async def on_shutdown():
        chat = app.state.chat

        try:
            task = app.state.relay_task
            if task is not None:
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
                except Exception as e:
                    logger.warning(f"Redis listener had already failed: {e}")

            if chat.relay is not None:
                await chat.relay.close()
        finally:
            await chat.store.close()
            logger.info("Chat service stopped")

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("chat_backend.main:app", host="0.0.0.0", port=8000)
