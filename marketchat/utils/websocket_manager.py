import logging
from typing import Any, Dict, Iterable, List, Optional, Set
from uuid import uuid4

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class SocketConnection:

    def __init__(self, websocket: WebSocket, user_id: str, username: Optional[str] = None) -> None:
        self.id = uuid4().hex
        self.websocket = websocket
        self.user_id = user_id
        self.username = username
        self.rooms: Set[str] = set()

    async def send(self, event: str, data: Any) -> None:
        await self.websocket.send_json({"event": event, "data": data})

    def __repr__(self) -> str:
        return f"<SocketConnection {self.id} user={self.user_id}>"


class ConnectionManager:
    """Open sockets keyed by user, plus room subscriptions keyed by conversation."""

    def __init__(self) -> None:
        self.active_connections: Dict[str, List[SocketConnection]] = {}
        self.rooms: Dict[str, Set[SocketConnection]] = {}

    async def connect(self, connection: SocketConnection) -> None:
        await connection.websocket.accept()
        if connection.user_id not in self.active_connections:
            self.active_connections[connection.user_id] = []
        self.active_connections[connection.user_id].append(connection)

    def disconnect(self, connection: SocketConnection) -> bool:
        """Forget the connection; True when it was the user's last one."""
        for room in list(connection.rooms):
            self.leave(room, connection)
        user_id = connection.user_id
        if user_id in self.active_connections:
            try:
                self.active_connections[user_id].remove(connection)
            except ValueError:
                pass
            if not self.active_connections[user_id]:
                del self.active_connections[user_id]
        return user_id not in self.active_connections

    def is_online(self, user_id: str) -> bool:
        return bool(self.active_connections.get(user_id))

    def join(self, room: str, connection: SocketConnection) -> None:
        self.rooms.setdefault(room, set()).add(connection)
        connection.rooms.add(room)

    def leave(self, room: str, connection: SocketConnection) -> None:
        members = self.rooms.get(room)
        if members is not None:
            members.discard(connection)
            if not members:
                del self.rooms[room]
        connection.rooms.discard(room)

    def in_room(self, room: str, connection: SocketConnection) -> bool:
        return connection in self.rooms.get(room, ())

    async def emit(self, connection: SocketConnection, event: str, data: Any) -> None:
        await self._deliver([connection], event, data)

    async def emit_to_room(self, room: str, event: str, data: Any, skip: Optional[SocketConnection] = None) -> None:
        targets = [conn for conn in self.rooms.get(room, ()) if conn is not skip]
        await self._deliver(targets, event, data)

    async def broadcast(self, event: str, data: Any) -> None:
        targets = [conn for conns in self.active_connections.values() for conn in conns]
        await self._deliver(targets, event, data)

    async def _deliver(self, targets: Iterable[SocketConnection], event: str, data: Any) -> None:
        for conn in list(targets):
            try:
                await conn.send(event, data)
            except Exception:
                # a peer that went away must not stop delivery to the others
                logger.warning("Dropping %s for %r", event, conn, exc_info=True)
