"""WebSocket connection manager for chat rooms.

A room is a broadcast group named by chat ID. One socket can join any
number of rooms; on disconnect it leaves all of them.

Key features:
    - Room membership per socket
    - Broadcast to every session in a room
    - Direct send to a single session
    - Concurrent broadcasting with asyncio.gather()
    - Automatic dead connection cleanup

Thread Safety:
    This implementation is designed for async/await usage with a single event loop.
    It is NOT thread-safe for concurrent access from multiple threads.
"""
import asyncio
import logging
from typing import Any, Dict, List, Set

from fastapi import WebSocket

from .protocol import make_event

logger = logging.getLogger(__name__)


class ConnectionManager:
    """Tracks connected sockets and the rooms they joined."""

    def __init__(self) -> None:
        # room_id -> list of sockets that joined the room
        self.rooms: Dict[str, List[WebSocket]] = {}

        # socket -> room_ids it joined, for disconnect handling
        self.socket_rooms: Dict[WebSocket, Set[str]] = {}

    async def connect(self, websocket: WebSocket) -> None:
        """Accept a socket. It joins no room until it sends joinRoom."""
        await websocket.accept()
        self.socket_rooms[websocket] = set()

    def join_room(self, websocket: WebSocket, room_id: str) -> None:
        """Add a socket to a room (idempotent)."""
        members = self.rooms.setdefault(room_id, [])
        if websocket not in members:
            members.append(websocket)
        self.socket_rooms.setdefault(websocket, set()).add(room_id)
        logger.info(f"[Manager] Socket joined room {room_id} ({len(members)} member(s))")

    def leave_room(self, websocket: WebSocket, room_id: str) -> None:
        members = self.rooms.get(room_id)
        if members and websocket in members:
            members.remove(websocket)
            if not members:
                del self.rooms[room_id]
        rooms = self.socket_rooms.get(websocket)
        if rooms is not None:
            rooms.discard(room_id)

    def disconnect(self, websocket: WebSocket) -> Set[str]:
        """Remove a socket from all its rooms.

        Returns:
            The room IDs the socket had joined.
        """
        rooms = self.socket_rooms.pop(websocket, set())
        for room_id in rooms:
            members = self.rooms.get(room_id)
            if members and websocket in members:
                members.remove(websocket)
                if not members:
                    del self.rooms[room_id]
        return rooms

    async def send(self, websocket: WebSocket, event: str, data: Any) -> bool:
        """Send one event to one socket."""
        return await self._safe_send(websocket, make_event(event, data))

    async def broadcast(self, event: str, data: Any, room_id: str) -> None:
        """Broadcast an event to all sockets in a room concurrently.

        Sockets that fail to receive are removed from the room.
        """
        connections = list(self.rooms.get(room_id, []))
        if not connections:
            return

        message = make_event(event, data)
        results = await asyncio.gather(
            *[self._safe_send(conn, message) for conn in connections],
            return_exceptions=True
        )

        failed_connections = [
            conn for conn, success in zip(connections, results)
            if success is not True
        ]
        self._cleanup_connections(room_id, failed_connections)

    async def _safe_send(self, connection: WebSocket, message: dict) -> bool:
        try:
            await connection.send_json(message)
            return True
        except Exception as e:
            logger.debug(f"Failed to send to connection: {e}")
            return False

    def _cleanup_connections(self, room_id: str, failed_connections: List[WebSocket]) -> None:
        for conn in failed_connections:
            self.leave_room(conn, room_id)
            logger.debug(f"Removed dead connection from room {room_id}")

    def get_room_size(self, room_id: str) -> int:
        """Get the number of sockets in a room."""
        return len(self.rooms.get(room_id, []))

    def is_in_room(self, websocket: WebSocket, room_id: str) -> bool:
        return websocket in self.rooms.get(room_id, [])
