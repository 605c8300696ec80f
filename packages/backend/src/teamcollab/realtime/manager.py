"""In-process room registry for socket connections.

A room is just a name ("workspace_<id>", "user_<id>") mapped to the set of
local connections in it. broadcast() goes through the Redis relay when one
is attached, so every server process delivers to its own connections;
without a relay delivery stays in this process.
"""

import uuid
from typing import Any, Optional

import structlog
from fastapi.encoders import jsonable_encoder

from teamcollab.auth.dependencies import CurrentIdentity

logger = structlog.get_logger()


class Connection:
    """One accepted WebSocket plus the identity and rooms attached to it."""

    def __init__(self, websocket, identity: CurrentIdentity):
        self.id = uuid.uuid4().hex
        self.websocket = websocket
        self.identity = identity
        self.rooms: set[str] = set()

    @property
    def user_id(self) -> uuid.UUID:
        return self.identity.user_id

    async def send(self, event: str, data: Any = None) -> None:
        await self.websocket.send_json({"event": event, "data": jsonable_encoder(data)})


class ConnectionManager:
    """Tracks local connections and the rooms they joined."""

    def __init__(self):
        self._connections: dict[str, Connection] = {}
        self._rooms: dict[str, set[str]] = {}
        self.relay = None  # RedisRelay, attached in the app lifespan

    def register(self, conn: Connection) -> None:
        self._connections[conn.id] = conn
        logger.info("socket.connected", connection_id=conn.id, user_id=str(conn.user_id))

    def unregister(self, conn: Connection) -> None:
        for room in list(conn.rooms):
            self.leave(conn, room)
        self._connections.pop(conn.id, None)
        logger.info("socket.disconnected", connection_id=conn.id, user_id=str(conn.user_id))

    def join(self, conn: Connection, room: str) -> None:
        self._rooms.setdefault(room, set()).add(conn.id)
        conn.rooms.add(room)

    def leave(self, conn: Connection, room: str) -> None:
        members = self._rooms.get(room)
        if members is not None:
            members.discard(conn.id)
            if not members:
                del self._rooms[room]
        conn.rooms.discard(room)

    def room_size(self, room: str) -> int:
        return len(self._rooms.get(room, ()))

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    async def broadcast(
        self,
        room: str,
        event: str,
        data: Any = None,
        exclude: Optional[str] = None,
    ) -> None:
        """Send to everyone in `room` on every process, except connection `exclude`."""
        data = jsonable_encoder(data)
        if self.relay is not None:
            try:
                await self.relay.publish(room, event, data, exclude)
                return
            except Exception as e:
                logger.warning("socket.relay_publish_failed", room=room, error=str(e))
        await self.deliver_local(room, event, data, exclude)

    async def deliver_local(
        self,
        room: str,
        event: str,
        data: Any = None,
        exclude: Optional[str] = None,
    ) -> None:
        for conn_id in list(self._rooms.get(room, ())):
            if conn_id == exclude:
                continue
            conn = self._connections.get(conn_id)
            if conn is None:
                continue
            try:
                await conn.send(event, data)
            except Exception as e:
                logger.warning(
                    "socket.send_failed", connection_id=conn_id, event=event, error=str(e)
                )


# Process-wide registry used by the /ws endpoint
manager = ConnectionManager()
