# chat_backend/services/message_store.py

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional, Protocol

import asyncpg
from asyncpg import Pool

from chat_backend.core.config import settings
from chat_backend.models.chat import ChatMessage

logger = logging.getLogger(__name__)


DB_ERRORS = (OSError, asyncpg.PostgresError, asyncpg.InterfaceError)


class MessageStoreError(Exception):
    """Raised when the store cannot complete an operation."""


class MessageStore(Protocol):
    """Durable storage for chat messages. Insertion order defines message order."""

    async def initialize(self) -> None: ...

    async def insert(
        self, user_id: Optional[int], username: str, message: str, room: str
    ) -> ChatMessage: ...

    async def list_messages(
        self, room: Optional[str] = None, limit: int = 100, offset: int = 0
    ) -> List[ChatMessage]: ...

    async def count_messages(self, room: Optional[str] = None) -> int: ...

    async def delete_message(self, message_id: int) -> bool: ...

    async def ping(self) -> bool: ...

    async def close(self) -> None: ...


# ============================================================================
# POSTGRES STORE
# ============================================================================

CREATE_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS chat_messages (
    id SERIAL PRIMARY KEY,
    user_id INTEGER,
    username VARCHAR(50) NOT NULL,
    message TEXT NOT NULL,
    room VARCHAR(50) NOT NULL DEFAULT 'general',
    created_at TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP
);

CREATE INDEX IF NOT EXISTS idx_chat_messages_room_created
    ON chat_messages(room, created_at DESC);
"""


INSERT_SQL = """
INSERT INTO chat_messages (user_id, username, message, room)
VALUES ($1, $2, $3, $4)
RETURNING id, user_id, username, message, room, created_at
"""


class PostgresMessageStore:
    """
    asyncpg-backed message store.

    The pool is created lazily on first use and rebuilt if the running
    event loop changes (test runners and reloaders start new loops).
    """

    def __init__(self, dsn: str | None = None, min_size: int | None = None, max_size: int | None = None):
        self.dsn = dsn or settings.DATABASE_URL
        self.min_size = settings.DB_POOL_MIN_SIZE if min_size is None else min_size
        self.max_size = settings.DB_POOL_MAX_SIZE if max_size is None else max_size
        self._pool: Pool | None = None
        self._pool_loop: asyncio.AbstractEventLoop | None = None
        self._initialized = False

    async def _get_pool(self) -> Pool:
        current_loop = asyncio.get_running_loop()

        if self._pool and self._pool_loop is current_loop and not current_loop.is_closed():
            return self._pool

        if self._pool is not None:
            # Connections bound to another loop cannot be closed gracefully from here
            logger.debug("Event loop changed, discarding previous asyncpg pool")
            self._pool.terminate()
            self._pool = None

        logger.debug("Initializing asyncpg pool for chat messages")
        try:
            self._pool = await asyncpg.create_pool(
                dsn=self.dsn,
                min_size=self.min_size,
                max_size=self.max_size,
                ssl="require" if settings.DB_SSL else None,
            )
        except DB_ERRORS as e:
            raise MessageStoreError(f"Could not connect to Postgres: {e}") from e

        self._pool_loop = current_loop
        self._initialized = False
        return self._pool

    async def initialize(self) -> None:
        """Create the chat_messages table if it doesn't exist."""
        if self._initialized:
            return

        pool = await self._get_pool()
        try:
            async with pool.acquire() as conn:
                await conn.execute(CREATE_TABLE_SQL)
        except DB_ERRORS as e:
            raise MessageStoreError(f"Failed to initialize chat schema: {e}") from e

        self._initialized = True
        logger.info("✓ Chat message schema ready")

    async def insert(self, user_id: Optional[int], username: str, message: str, room: str) -> ChatMessage:
        pool = await self._get_pool()
        try:
            async with pool.acquire() as conn:
                row = await conn.fetchrow(INSERT_SQL, user_id, username, message, room)
        except DB_ERRORS as e:
            raise MessageStoreError(f"Failed to store chat message: {e}") from e

        return ChatMessage(**dict(row))

    async def list_messages(self, room: Optional[str] = None, limit: int = 100, offset: int = 0) -> List[ChatMessage]:
        """Newest first, optionally filtered by room."""

        query = "SELECT id, user_id, username, message, room, created_at FROM chat_messages"
        params: list = []
        param_idx = 1

        if room:
            query += f" WHERE room = ${param_idx}"
            params.append(room)
            param_idx += 1

        query += f" ORDER BY created_at DESC, id DESC LIMIT ${param_idx} OFFSET ${param_idx + 1}"
        params.extend([limit, offset])

        pool = await self._get_pool()
        try:
            async with pool.acquire() as conn:
                rows = await conn.fetch(query, *params)
        except DB_ERRORS as e:
            raise MessageStoreError(f"Failed to list chat messages: {e}") from e

        return [ChatMessage(**dict(row)) for row in rows]

    async def count_messages(self, room: Optional[str] = None) -> int:
        pool = await self._get_pool()
        try:
            async with pool.acquire() as conn:
                if room:
                    count = await conn.fetchval("SELECT COUNT(*) FROM chat_messages WHERE room = $1", room)
                else:
                    count = await conn.fetchval("SELECT COUNT(*) FROM chat_messages")
        except DB_ERRORS as e:
            raise MessageStoreError(f"Failed to count chat messages: {e}") from e

        return int(count or 0)

    async def delete_message(self, message_id: int) -> bool:
        pool = await self._get_pool()
        try:
            async with pool.acquire() as conn:
                status = await conn.execute("DELETE FROM chat_messages WHERE id = $1", message_id)
        except DB_ERRORS as e:
            raise MessageStoreError(f"Failed to delete chat message {message_id}: {e}") from e

        # asyncpg returns the command tag, e.g. "DELETE 1"
        return status.split()[-1] != "0"

    async def ping(self) -> bool:
        try:
            pool = await self._get_pool()
            async with pool.acquire() as conn:
                await conn.fetchval("SELECT 1")
            return True
        except Exception as e:
            logger.warning(f"Postgres ping failed: {e}")
            return False

    async def close(self) -> None:
        if self._pool is not None:
            await self._pool.close()
            self._pool = None
            self._pool_loop = None
            logger.info("Postgres pool closed")


# ============================================================================
# IN-MEMORY STORE
# ============================================================================

class InMemoryMessageStore:
    """
    Process-local store used when DATABASE_URL is not set (local debug).

    Set `fail_with` to an exception to make every insert fail.
    """

    def __init__(self) -> None:
        self.messages: Dict[int, ChatMessage] = {}
        self._next_id = 1
        self.fail_with: Exception | None = None

    async def initialize(self) -> None:
        logger.info("Using in-memory chat message store (DATABASE_URL not set)")

    async def insert(self, user_id: Optional[int], username: str, message: str, room: str) -> ChatMessage:
        if self.fail_with is not None:
            raise MessageStoreError(str(self.fail_with)) from self.fail_with

        record = ChatMessage(
            id=self._next_id,
            user_id=user_id,
            username=username,
            message=message,
            room=room,
            created_at=datetime.now(timezone.utc),
        )
        self.messages[record.id] = record
        self._next_id += 1
        return record

    async def list_messages(self, room: Optional[str] = None, limit: int = 100, offset: int = 0) -> List[ChatMessage]:
        rows = [m for m in self.messages.values() if not room or m.room == room]
        rows.sort(key=lambda m: m.id, reverse=True)
        return rows[offset:offset + limit]

    async def count_messages(self, room: Optional[str] = None) -> int:
        return sum(1 for m in self.messages.values() if not room or m.room == room)

    async def delete_message(self, message_id: int) -> bool:
        return self.messages.pop(message_id, None) is not None

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        pass


def build_message_store() -> MessageStore:
    if settings.DATABASE_URL:
        return PostgresMessageStore()
    return InMemoryMessageStore()
