"""
Real-time fan-out for the stackchat application.
This module tracks open WebSocket connections and the rooms they have joined,
and emits named events to rooms.
"""
import asyncio
import logging
import uuid
from contextlib import suppress
from typing import Any, Dict, Iterable, Set

from fastapi import WebSocket

logger = logging.getLogger("stackchat.realtime")


def user_room(username: str) -> str:
    """Personal room every connection of a user joins on connect."""
    return f"user:{username}"


class RoomManager:
    """Connection and room registry owned by one application instance."""

    def __init__(self):
        self.active_connections: Dict[str, WebSocket] = {}  # connectionId -> websocket
        self.connection_users: Dict[str, str] = {}  # connectionId -> username
        self.rooms: Dict[str, Set[str]] = {}  # room -> connectionIds
        self.is_shutting_down = False

    def connect(self, websocket: WebSocket, username: str) -> str:
        connection_id = str(uuid.uuid4())
        self.active_connections[connection_id] = websocket
        self.connection_users[connection_id] = username
        self.join(connection_id, user_room(username))
        logger.info(f"Registered connection {connection_id} for user {username}")
        return connection_id

    def disconnect(self, connection_id: str):
        self.active_connections.pop(connection_id, None)
        username = self.connection_users.pop(connection_id, None)
        for room in list(self.rooms):
            self._discard(connection_id, room)
        logger.info(f"Cleaned up connection {connection_id} for user {username}")

    def join(self, connection_id: str, room: str):
        self.rooms.setdefault(room, set()).add(connection_id)
        logger.debug(f"Connection {connection_id} joined room {room}")

    def leave(self, connection_id: str, room: str):
        self._discard(connection_id, room)
        logger.debug(f"Connection {connection_id} left room {room}")

    def _discard(self, connection_id: str, room: str):
        members = self.rooms.get(room)
        if members is None:
            return
        members.discard(connection_id)
        if not members:
            del self.rooms[room]

    def members(self, room: str) -> Set[str]:
        return set(self.rooms.get(room, set()))

    async def emit(self, rooms: Iterable[str], event: str, data: Any) -> int:
        """Send an event once to every connection in any of the rooms.

        Returns the number of connections the event was sent to.
        """
        if isinstance(rooms, str):
            rooms = [rooms]
        targets: Set[str] = set()
        for room in rooms:
            targets |= self.members(room)
        return await self._send(targets, event, data)

    async def broadcast(self, event: str, data: Any) -> int:
        return await self._send(set(self.active_connections), event, data)

    async def _send(self, connection_ids: Set[str], event: str, data: Any) -> int:
        payload = {"type": event, "data": data}
        sent = 0
        for connection_id in connection_ids:
            websocket = self.active_connections.get(connection_id)
            if websocket is None:
                continue
            try:
                await websocket.send_json(payload)
                sent += 1
            except Exception as e:
                logger.error(f"Error sending {event} to connection {connection_id}: {e}")
        logger.debug(f"Sent {event} to {sent} connection(s)")
        return sent

    async def close_all(self, reason: str = "Server shutting down", timeout: float = 1.0):
        """Close every connection and forget all rooms, waiting at most `timeout` seconds."""
        self.is_shutting_down = True
        connections = list(self.active_connections.items())
        logger.info(f"Closing {len(connections)} active WebSocket connections with reason: {reason}")

        # Clear state first so nothing new is sent while closing
        self.active_connections.clear()
        self.connection_users.clear()
        self.rooms.clear()

        async def close_connection(connection_id, websocket):
            with suppress(Exception):
                await websocket.close(code=1001, reason=reason)
            logger.debug(f"Closed WebSocket connection {connection_id}")

        if not connections:
            return
        try:
            await asyncio.wait_for(
                asyncio.gather(*(close_connection(cid, ws) for cid, ws in connections)),
                timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(f"Timed out after {timeout}s while waiting for WebSocket connections to close")
