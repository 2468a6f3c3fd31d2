"""WebSocket connection manager for real-time events.

Each connected socket sits in its own user room and in any ad-hoc rooms the
client has joined. This state is in-memory only; it is rebuilt from the
session store when a client reconnects.
"""

import json
import logging
from typing import Any

from fastapi import WebSocket

logger = logging.getLogger(__name__)


def user_room(user_id: int) -> str:
    return f"user:{user_id}"


def report_room(report_id: int) -> str:
    return f"report:{report_id}"


class ConnectionManager:
    """Tracks active WebSocket connections and their room memberships."""

    def __init__(self) -> None:
        # room name -> set of member sockets
        self._rooms: dict[str, set[WebSocket]] = {}
        # socket -> rooms it belongs to
        self._memberships: dict[WebSocket, set[str]] = {}

    async def connect(self, websocket: WebSocket, user_id: int) -> None:
        await websocket.accept()
        self._memberships[websocket] = set()
        self.join(websocket, user_room(user_id))
        logger.info("WS connected: user=%s (total=%s)", user_id, self.total_connections)

    def disconnect(self, websocket: WebSocket, user_id: int) -> None:
        for room in self._memberships.pop(websocket, set()):
            self._discard(room, websocket)
        logger.info("WS disconnected: user=%s (total=%s)", user_id, self.total_connections)

    def join(self, websocket: WebSocket, room: str) -> None:
        self._rooms.setdefault(room, set()).add(websocket)
        self._memberships.setdefault(websocket, set()).add(room)

    def leave(self, websocket: WebSocket, room: str) -> None:
        self._discard(room, websocket)
        rooms = self._memberships.get(websocket)
        if rooms:
            rooms.discard(room)

    def _discard(self, room: str, websocket: WebSocket) -> None:
        members = self._rooms.get(room)
        if members:
            members.discard(websocket)
            if not members:
                del self._rooms[room]

    async def send_to_room(
        self,
        room: str,
        event: str,
        data: Any,
        exclude: WebSocket | None = None,
    ) -> None:
        """Send event to every socket in a room. Unknown room is a no-op."""
        members = [ws for ws in self._rooms.get(room, set()) if ws is not exclude]
        await self._send_all(members, event, data)

    async def send_to_user(self, user_id: int, event: str, data: Any) -> None:
        """Send event to all connections for a user."""
        await self.send_to_room(user_room(user_id), event, data)

    async def send_to_users(self, user_ids: list[int], event: str, data: Any) -> None:
        """Broadcast event to multiple users."""
        for uid in user_ids:
            await self.send_to_user(uid, event, data)

    async def broadcast(self, event: str, data: Any) -> None:
        """Send event to every connected socket."""
        await self._send_all(list(self._memberships), event, data)

    async def _send_all(self, sockets: list[WebSocket], event: str, data: Any) -> None:
        payload = json.dumps({"event": event, "data": data}, default=str)
        dead: list[WebSocket] = []
        for ws in sockets:
            try:
                await ws.send_text(payload)
            except Exception:
                dead.append(ws)
        for ws in dead:
            for room in self._memberships.pop(ws, set()):
                self._discard(room, ws)

    def in_room(self, websocket: WebSocket, room: str) -> bool:
        return room in self._memberships.get(websocket, set())

    def is_connected(self, user_id: int) -> bool:
        return bool(self._rooms.get(user_room(user_id)))

    @property
    def total_connections(self) -> int:
        return len(self._memberships)


# Singleton instance used across the app
ws_manager = ConnectionManager()
