# chat_backend/services/room_registry.py

from __future__ import annotations

import logging
from typing import Dict, Set

logger = logging.getLogger(__name__)

# ============================================================================
# ROOM REGISTRY
# ============================================================================

class RoomRegistry:
    """
    Tracks which connections are members of which rooms.

    Rooms have no lifecycle of their own: a room exists while at least one
    connection is joined to it and is dropped when the last member leaves.
    Nothing here is persisted, so a restart starts from an empty registry
    and clients rebuild membership by joining again.

    Data Structures:
        rooms: Maps room -> Set of connection ids in that room
               Example: {"support": {"c1", "c2"}}

        connection_rooms: Maps connection id -> Set of rooms it joined
                          Example: {"c1": {"support"}}

    All mutation happens on the event loop thread without awaiting, so no
    lock is needed.
    """

    def __init__(self) -> None:
        self.rooms: Dict[str, Set[str]] = {}
        self.connection_rooms: Dict[str, Set[str]] = {}

    def join(self, connection_id: str, room: str) -> None:
        """Add a connection to a room. Joining twice has no further effect."""
        if not room:
            raise ValueError("room must be a non-empty string")

        self.rooms.setdefault(room, set()).add(connection_id)
        self.connection_rooms.setdefault(connection_id, set()).add(room)

    def leave_room(self, connection_id: str, room: str) -> None:
        """Remove a connection from a single room."""
        members = self.rooms.get(room)
        if members is not None:
            members.discard(connection_id)
            if not members:
                del self.rooms[room]

        joined = self.connection_rooms.get(connection_id)
        if joined is not None:
            joined.discard(room)
            if not joined:
                del self.connection_rooms[connection_id]

    def leave(self, connection_id: str) -> None:
        """Remove a connection from every room. Unknown connections are a no-op."""
        for room in self.connection_rooms.pop(connection_id, set()):
            members = self.rooms.get(room)
            if members is None:
                continue
            members.discard(connection_id)
            if not members:
                del self.rooms[room]

    def members_of(self, room: str) -> Set[str]:
        """Current members of a room; a copy, empty if nobody is joined."""
        return set(self.rooms.get(room, ()))

    def rooms_of(self, connection_id: str) -> Set[str]:
        return set(self.connection_rooms.get(connection_id, ()))

    def active_rooms(self) -> Dict[str, int]:
        """room -> member count, for rooms with at least one member."""
        return {room: len(members) for room, members in self.rooms.items()}
