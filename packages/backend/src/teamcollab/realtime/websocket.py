"""WebSocket endpoint — room-based notifications for browser clients.

Each client connects once to /ws?token=<access JWT>. The connection then
joins rooms by emitting events:

- workspace_<id>: task updates, typing indicators, presence
- user_<id>: personal notifications (friend requests, friends' todo changes)

The socket is a relay, not a write path: clients change data over REST and
then emit an event naming what changed. The server re-checks membership,
loads the canonical record where there is one, and broadcasts it.

A handler failure is reported to the sender as an `error` event and never
closes the socket.
"""

import json
import uuid
from typing import Any, Optional

import structlog
from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from teamcollab.auth.dependencies import CurrentIdentity
from teamcollab.auth.jwt import TokenError
from teamcollab.db.engine import async_session_factory
from teamcollab.db.models import utcnow
from teamcollab.realtime import events
from teamcollab.realtime.manager import Connection, ConnectionManager, manager
from teamcollab.schemas.task import GroupTaskRead
from teamcollab.services.friend_service import FriendService
from teamcollab.services.task_service import GroupTaskService
from teamcollab.services.workspace_service import is_member

logger = structlog.get_logger()
router = APIRouter()


class SocketError(Exception):
    """Reported back to the sender as an `error` event."""


def _parse_id(value: Any, what: str) -> uuid.UUID:
    try:
        return uuid.UUID(str(value))
    except (ValueError, TypeError):
        raise SocketError(f"Invalid {what}")


def _field(data: Any, key: str) -> Any:
    return data.get(key) if isinstance(data, dict) else None


def _workspace_arg(data: Any) -> Any:
    """join/leave accept either the bare id or {"ws_id": ...}."""
    return _field(data, "ws_id") if isinstance(data, dict) else data


def _timestamp() -> str:
    return utcnow().isoformat()


class SocketSession:
    """Event handlers for one connection.

    `session_factory` opens DB sessions for the handlers that need one;
    tests pass a factory bound to their own engine.
    """

    def __init__(
        self,
        conn: Connection,
        manager: ConnectionManager,
        session_factory=None,
    ):
        self.conn = conn
        self.manager = manager
        self.session_factory = session_factory or async_session_factory
        self.handlers = {
            events.JOIN_WORKSPACE: self.on_join_workspace,
            events.LEAVE_WORKSPACE: self.on_leave_workspace,
            events.TASK_UPDATE: self.on_task_update,
            events.TODO_UPDATE: self.on_todo_update,
            events.FRIEND_REQUEST: self.on_friend_request,
            events.JOIN_PERSONAL_CHANNEL: self.on_join_personal_channel,
            events.TYPING_START: self.on_typing_start,
            events.TYPING_STOP: self.on_typing_stop,
            events.PING: self.on_ping,
        }

    @property
    def identity(self) -> CurrentIdentity:
        return self.conn.identity

    def _who(self) -> dict:
        return {"user_id": str(self.identity.user_id), "email": self.identity.email}

    async def error(self, message: str) -> None:
        await self.conn.send(events.ERROR, {"message": message})

    # ─── Frame handling ─────────────────────────────────

    async def handle_frame(self, raw: str) -> None:
        try:
            frame = json.loads(raw)
        except ValueError:
            await self.error("Malformed frame: expected JSON")
            return
        if not isinstance(frame, dict) or not isinstance(frame.get("event"), str):
            await self.error("Malformed frame: missing event name")
            return
        await self.dispatch(frame["event"], frame.get("data"))

    async def dispatch(self, event: str, data: Any = None) -> None:
        handler = self.handlers.get(event)
        if handler is None:
            await self.error(f"Unknown event: {event}")
            return
        try:
            await handler(data)
        except SocketError as e:
            await self.error(str(e))
        except Exception:
            logger.exception("socket.handler_failed", socket_event=event, connection_id=self.conn.id)
            await self.error(f"Failed to handle {event}")

    async def close(self) -> None:
        """Announce the disconnect to each workspace room, then unregister."""
        for room in list(self.conn.rooms):
            if room.startswith("workspace_"):
                await self.manager.broadcast(
                    room, events.USER_OFFLINE, self._who(), exclude=self.conn.id
                )
        self.manager.unregister(self.conn)

    # ─── Workspaces ─────────────────────────────────────

    async def _check_member(self, workspace_id: uuid.UUID) -> None:
        async with self.session_factory() as db:
            if not await is_member(db, workspace_id, self.identity.user_id):
                raise SocketError("You do not have access to this workspace")

    async def on_join_workspace(self, data: Any) -> None:
        raw_id = _workspace_arg(data)
        if not raw_id:
            return
        workspace_id = _parse_id(raw_id, "workspace id")
        await self._check_member(workspace_id)

        room = events.workspace_room(workspace_id)
        self.manager.join(self.conn, room)
        await self.conn.send(events.JOINED_WORKSPACE, str(workspace_id))
        await self.manager.broadcast(room, events.USER_JOINED, self._who(), exclude=self.conn.id)

    async def on_leave_workspace(self, data: Any) -> None:
        raw_id = _workspace_arg(data)
        if not raw_id:
            return
        workspace_id = _parse_id(raw_id, "workspace id")

        room = events.workspace_room(workspace_id)
        self.manager.leave(self.conn, room)
        await self.conn.send(events.LEFT_WORKSPACE, str(workspace_id))
        await self.manager.broadcast(room, events.USER_LEFT, self._who(), exclude=self.conn.id)

    async def on_task_update(self, data: Any) -> None:
        raw_ws, raw_task = _field(data, "ws_id"), _field(data, "task_id")
        if not raw_ws or not raw_task:
            raise SocketError("ws_id and task_id are required")
        workspace_id = _parse_id(raw_ws, "workspace id")
        task_id = _parse_id(raw_task, "task id")

        async with self.session_factory() as db:
            if not await is_member(db, workspace_id, self.identity.user_id):
                raise SocketError("You do not have access to this workspace")
            task = await GroupTaskService(db).find_task(workspace_id, task_id)
            if not task:
                raise SocketError("Task not found")
            canonical = GroupTaskRead.model_validate(task).model_dump(mode="json")

        await self.manager.broadcast(
            events.workspace_room(workspace_id),
            events.TASK_UPDATED,
            {
                "task_id": str(task_id),
                "action": _field(data, "action") or "updated",
                "user_id": str(self.identity.user_id),
                "task_data": _field(data, "task_data") or canonical,
                "timestamp": _timestamp(),
            },
        )

    # ─── Personal notifications ─────────────────────────

    async def on_todo_update(self, data: Any) -> None:
        todo_id = _field(data, "todo_id")
        if not todo_id:
            raise SocketError("todo_id is required")

        async with self.session_factory() as db:
            friend_ids = await FriendService(db).accepted_friend_ids(self.identity.user_id)

        payload = {
            "todo_id": str(todo_id),
            "action": _field(data, "action") or "updated",
            "user_id": str(self.identity.user_id),
            "todo_data": _field(data, "todo_data"),
            "timestamp": _timestamp(),
        }
        for friend_id in friend_ids:
            await self.manager.broadcast(
                events.user_room(friend_id), events.FRIEND_TODO_UPDATED, payload
            )

    async def on_friend_request(self, data: Any) -> None:
        target = _field(data, "target_user_id")
        if not target:
            raise SocketError("target_user_id is required")
        target_id = _parse_id(target, "user id")

        await self.manager.broadcast(
            events.user_room(target_id),
            events.FRIEND_REQUEST_RECEIVED,
            {
                "from_user_id": str(self.identity.user_id),
                "from_user_email": self.identity.email,
                "action": _field(data, "action") or "sent",
                "timestamp": _timestamp(),
            },
        )

    async def on_join_personal_channel(self, data: Any) -> None:
        self.manager.join(self.conn, events.user_room(self.identity.user_id))
        await self.conn.send(events.JOINED_PERSONAL_CHANNEL, str(self.identity.user_id))

    # ─── Presence ───────────────────────────────────────

    async def _typing(self, data: Any, is_typing: bool) -> None:
        raw_ws = _field(data, "ws_id")
        if not raw_ws:
            return
        workspace_id = _parse_id(raw_ws, "workspace id")
        await self.manager.broadcast(
            events.workspace_room(workspace_id),
            events.USER_TYPING,
            {**self._who(), "is_typing": is_typing},
            exclude=self.conn.id,
        )

    async def on_typing_start(self, data: Any) -> None:
        await self._typing(data, True)

    async def on_typing_stop(self, data: Any) -> None:
        await self._typing(data, False)

    async def on_ping(self, data: Any) -> None:
        await self.conn.send(events.PONG, {"timestamp": _timestamp()})


def _token_from(websocket: WebSocket) -> Optional[str]:
    token = websocket.query_params.get("token")
    if token:
        return token
    authorization = websocket.headers.get("authorization", "")
    if authorization.startswith("Bearer "):
        return authorization[7:]
    return None


@router.websocket("/ws")
async def socket_endpoint(websocket: WebSocket):
    """Authenticate, accept, then feed frames to a SocketSession until disconnect."""
    token = _token_from(websocket)
    if not token:
        await websocket.close(code=4001, reason="Authentication required")
        return
    try:
        identity = CurrentIdentity.from_token(token)
    except TokenError:
        await websocket.close(code=4001, reason="Invalid or expired token")
        return

    await websocket.accept()
    conn = Connection(websocket, identity)
    manager.register(conn)
    session = SocketSession(conn, manager)

    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
            raw = message.get("text")
            if raw is None:
                try:
                    raw = (message.get("bytes") or b"").decode("utf-8")
                except UnicodeDecodeError:
                    await session.error("Malformed frame: expected UTF-8 text")
                    continue
            await session.handle_frame(raw)
    except WebSocketDisconnect:
        pass
    finally:
        await session.close()
