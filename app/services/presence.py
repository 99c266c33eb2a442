from __future__ import annotations

import asyncio
from collections import defaultdict


class PresenceRegistry:
    """Tracks which accounts hold at least one live connection.

    One instance belongs to the application that owns the websocket endpoint;
    nothing else mutates it.
    """

    def __init__(self) -> None:
        self._connections: dict[int, set[str]] = defaultdict(set)
        self._lock = asyncio.Lock()

    async def connect(self, user_id: int, connection_id: str) -> bool:
        """Register a connection; returns True when the account just came online."""
        async with self._lock:
            came_online = not self._connections.get(user_id)
            self._connections[user_id].add(connection_id)
            return came_online

    async def disconnect(self, user_id: int, connection_id: str) -> bool:
        """Drop a connection; returns True when the account just went offline."""
        async with self._lock:
            connections = self._connections.get(user_id)
            if not connections:
                return False
            connections.discard(connection_id)
            if connections:
                return False
            del self._connections[user_id]
            return True

    async def is_online(self, user_id: int) -> bool:
        async with self._lock:
            return bool(self._connections.get(user_id))

    async def online_user_ids(self) -> list[int]:
        async with self._lock:
            return sorted(user_id for user_id, conns in self._connections.items() if conns)
