"""Room-scoped fan-out of chat events to WebSocket connections.

Membership is ephemeral: nothing here is persisted, and a connection
that drops simply loses its rooms. Clients that reconnect re-join and
re-fetch history through the message store.
"""

import asyncio
import logging
from typing import Any, Dict, Set

logger = logging.getLogger(__name__)

class RoomBroker:
    """Tracks which connections are in which rooms and publishes to rooms.

    ``rooms`` maps conversation id -> connection ids and
    ``memberships`` maps connection id -> conversation ids; both are
    only mutated while holding ``lock``. Publishing works on a snapshot
    of a room and does not take the lock.
    """

    def __init__(self):
        self.connections: Dict[str, Any] = {}
        self.rooms: Dict[str, Set[str]] = {}
        self.memberships: Dict[str, Set[str]] = {}
        self.lock = asyncio.Lock()

    async def connect(self, connection_id: str, websocket) -> None:
        """Register an accepted socket under ``connection_id``."""
        async with self.lock:
            self.connections[connection_id] = websocket
            self.memberships.setdefault(connection_id, set())
        logger.info(f"Connection {connection_id} registered")

    async def join(self, connection_id: str, conversation_id: str) -> None:
        """Add a connection to a room. Joining twice is a no-op."""
        async with self.lock:
            if connection_id not in self.connections:
                raise KeyError(f"Unknown connection {connection_id}")
            self.rooms.setdefault(conversation_id, set()).add(connection_id)
            self.memberships[connection_id].add(conversation_id)

    async def leave(self, connection_id: str, conversation_id: str) -> None:
        """Remove a connection from one room."""
        async with self.lock:
            self._remove_member(connection_id, conversation_id)
            self.memberships.get(connection_id, set()).discard(conversation_id)

    async def disconnect(self, connection_id: str) -> None:
        """Forget a connection and every room membership it holds."""
        async with self.lock:
            self.connections.pop(connection_id, None)
            for conversation_id in self.memberships.pop(connection_id, set()):
                self._remove_member(connection_id, conversation_id)
        logger.info(f"Connection {connection_id} removed")

    def _remove_member(self, connection_id: str, conversation_id: str) -> None:
        members = self.rooms.get(conversation_id)
        if members is None:
            return
        members.discard(connection_id)
        if not members:
            del self.rooms[conversation_id]

    async def publish(self, conversation_id: str, event: dict) -> int:
        """Send ``event`` to every connection currently in the room.

        Connections whose send fails are disconnected; the failure is
        not raised to the publisher.

        Returns:
            Number of connections the event was delivered to
        """
        targets = [
            (connection_id, self.connections.get(connection_id))
            for connection_id in list(self.rooms.get(conversation_id, ()))
        ]

        delivered = 0
        dead = []
        for connection_id, websocket in targets:
            if websocket is None:
                continue
            try:
                await websocket.send_json(event)
                delivered += 1
            except Exception as e:
                logger.warning(f"Dropping connection {connection_id}: {e}")
                dead.append(connection_id)

        for connection_id in dead:
            await self.disconnect(connection_id)
        return delivered

    def members(self, conversation_id: str) -> Set[str]:
        """Snapshot of the connection ids in a room."""
        return set(self.rooms.get(conversation_id, ()))

    def stats(self) -> Dict[str, int]:
        return {
            'connections': len(self.connections),
            'rooms': len(self.rooms)
        }

__all__ = ['RoomBroker']
