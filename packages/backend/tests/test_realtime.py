"""Real-time layer tests — socket sessions, rooms, relay.

SocketSession is driven directly with an in-memory websocket so every
handler can be exercised without a server; the /ws endpoint itself is hit
through Starlette's TestClient for the handshake rules.
"""

import json
import uuid
from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from starlette.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from teamcollab.auth.jwt import create_access_token
from teamcollab.db.models import Friend, GroupTask, Workspace, WorkspaceMember
from teamcollab.main import app
from teamcollab.realtime import events
from teamcollab.realtime.manager import Connection, ConnectionManager
from teamcollab.realtime.pubsub import RedisRelay
from teamcollab.realtime.websocket import SocketSession


class FakeWebSocket:
    """Collects every frame the server sends."""

    def __init__(self):
        self.sent: list[dict] = []

    async def send_json(self, data):
        self.sent.append(data)

    def events(self) -> list[str]:
        return [frame["event"] for frame in self.sent]

    def last(self, event: str):
        for frame in reversed(self.sent):
            if frame["event"] == event:
                return frame["data"]
        raise AssertionError(f"no {event!r} frame in {self.events()}")


@pytest.fixture()
def rooms():
    return ConnectionManager()


@pytest_asyncio.fixture()
async def connect(rooms, session_factory):
    """Factory: `await connect(account)` → (SocketSession, FakeWebSocket)."""

    async def _connect(account):
        ws = FakeWebSocket()
        conn = Connection(ws, account.identity)
        rooms.register(conn)
        return SocketSession(conn, rooms, session_factory=session_factory), ws

    return _connect


@pytest_asyncio.fixture()
async def world(session_factory, alice, make_user):
    """Alice owns a workspace with Bob as member and one task; Carol is
    Alice's friend; Eve is nobody."""
    bob = await make_user("Bob")
    carol = await make_user("Carol")
    eve = await make_user("Eve")
    now = datetime.now(timezone.utc)
    async with session_factory() as db:
        ws = Workspace(name="Apollo", owner_id=alice.id)
        db.add(ws)
        await db.flush()
        db.add(WorkspaceMember(workspace_id=ws.id, user_id=bob.id, accepted=True))
        task = GroupTask(
            workspace_id=ws.id,
            title="Ship it",
            department="BE",
            start_date=now,
            due_date=now + timedelta(days=2),
        )
        db.add(task)
        db.add(Friend(user_id=carol.id, friend_id=alice.id, status="accepted"))
        db.add(Friend(user_id=alice.id, friend_id=eve.id, status="pending"))
        await db.commit()
        return {
            "ws_id": ws.id,
            "task_id": task.id,
            "alice": alice,
            "bob": bob,
            "carol": carol,
            "eve": eve,
        }


# ═══════════════════════════════════════════════════════════
# Frames
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_ping_pong(connect, alice):
    session, ws = await connect(alice)
    await session.handle_frame(json.dumps({"event": "ping"}))
    assert ws.events() == ["pong"]
    assert "timestamp" in ws.last("pong")


@pytest.mark.asyncio
@pytest.mark.parametrize("raw", ["not json", "[1, 2]", '{"data": 1}'])
async def test_malformed_frames(connect, alice, raw):
    """Bad frames produce an error event and leave the session usable."""
    session, ws = await connect(alice)
    await session.handle_frame(raw)
    assert ws.events() == ["error"]

    await session.handle_frame('{"event": "ping"}')
    assert ws.events() == ["error", "pong"]


@pytest.mark.asyncio
async def test_unknown_event(connect, alice):
    session, ws = await connect(alice)
    await session.dispatch("teleport", {})
    assert ws.last("error") == {"message": "Unknown event: teleport"}


# ═══════════════════════════════════════════════════════════
# Workspace rooms
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_join_workspace(connect, rooms, world):
    """Joining confirms to the sender and announces to the room."""
    ws_id = world["ws_id"]
    alice_session, alice_ws = await connect(world["alice"])
    bob_session, bob_ws = await connect(world["bob"])

    await alice_session.dispatch("join_workspace", str(ws_id))
    await bob_session.dispatch("join_workspace", {"ws_id": str(ws_id)})

    assert rooms.room_size(events.workspace_room(ws_id)) == 2
    assert bob_ws.last("joined_workspace") == str(ws_id)
    assert alice_ws.last("user_joined")["user_id"] == str(world["bob"].id)
    assert "user_joined" not in bob_ws.events()


@pytest.mark.asyncio
async def test_join_workspace_denied(connect, rooms, world):
    session, ws = await connect(world["eve"])
    await session.dispatch("join_workspace", str(world["ws_id"]))
    assert ws.last("error") == {"message": "You do not have access to this workspace"}
    assert rooms.room_size(events.workspace_room(world["ws_id"])) == 0


@pytest.mark.asyncio
async def test_join_workspace_bad_id(connect, alice):
    session, ws = await connect(alice)
    await session.dispatch("join_workspace", "not-a-uuid")
    assert ws.last("error") == {"message": "Invalid workspace id"}


@pytest.mark.asyncio
async def test_leave_workspace(connect, rooms, world):
    ws_id = world["ws_id"]
    alice_session, alice_ws = await connect(world["alice"])
    bob_session, bob_ws = await connect(world["bob"])
    await alice_session.dispatch("join_workspace", str(ws_id))
    await bob_session.dispatch("join_workspace", str(ws_id))

    await bob_session.dispatch("leave_workspace", str(ws_id))

    assert rooms.room_size(events.workspace_room(ws_id)) == 1
    assert bob_ws.last("left_workspace") == str(ws_id)
    assert alice_ws.last("user_left")["user_id"] == str(world["bob"].id)


@pytest.mark.asyncio
async def test_task_update_broadcasts_canonical_task(connect, world):
    """The whole room, sender included, gets the stored task."""
    ws_id, task_id = world["ws_id"], world["task_id"]
    alice_session, alice_ws = await connect(world["alice"])
    bob_session, bob_ws = await connect(world["bob"])
    await alice_session.dispatch("join_workspace", str(ws_id))
    await bob_session.dispatch("join_workspace", str(ws_id))

    await bob_session.dispatch(
        "task_update", {"ws_id": str(ws_id), "task_id": str(task_id), "action": "moved"}
    )

    for sock in (alice_ws, bob_ws):
        payload = sock.last("task_updated")
        assert payload["task_id"] == str(task_id)
        assert payload["action"] == "moved"
        assert payload["user_id"] == str(world["bob"].id)
        assert payload["task_data"]["title"] == "Ship it"


@pytest.mark.asyncio
async def test_task_update_errors(connect, world):
    session, ws = await connect(world["bob"])

    await session.dispatch("task_update", {"ws_id": str(world["ws_id"])})
    assert ws.last("error") == {"message": "ws_id and task_id are required"}

    await session.dispatch(
        "task_update", {"ws_id": str(world["ws_id"]), "task_id": str(uuid.uuid4())}
    )
    assert ws.last("error") == {"message": "Task not found"}

    outsider, outsider_ws = await connect(world["eve"])
    await outsider.dispatch(
        "task_update", {"ws_id": str(world["ws_id"]), "task_id": str(world["task_id"])}
    )
    assert outsider_ws.last("error") == {"message": "You do not have access to this workspace"}


@pytest.mark.asyncio
async def test_typing_reaches_others_only(connect, world):
    ws_id = world["ws_id"]
    alice_session, alice_ws = await connect(world["alice"])
    bob_session, bob_ws = await connect(world["bob"])
    await alice_session.dispatch("join_workspace", str(ws_id))
    await bob_session.dispatch("join_workspace", str(ws_id))

    await bob_session.dispatch("typing_start", {"ws_id": str(ws_id)})
    assert alice_ws.last("user_typing")["is_typing"] is True
    assert "user_typing" not in bob_ws.events()

    await bob_session.dispatch("typing_stop", {"ws_id": str(ws_id)})
    assert alice_ws.last("user_typing")["is_typing"] is False


# ═══════════════════════════════════════════════════════════
# Personal channels
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_todo_update_reaches_accepted_friends(connect, world):
    """Carol (accepted) hears about Alice's todo; Eve (pending) doesn't."""
    alice_session, _ = await connect(world["alice"])
    carol_session, carol_ws = await connect(world["carol"])
    eve_session, eve_ws = await connect(world["eve"])
    await carol_session.dispatch("join_personal_channel")
    await eve_session.dispatch("join_personal_channel")

    await alice_session.dispatch("todo_update", {"todo_id": "42", "todo_data": {"title": "x"}})

    payload = carol_ws.last("friend_todo_updated")
    assert payload["todo_id"] == "42"
    assert payload["user_id"] == str(world["alice"].id)
    assert payload["todo_data"] == {"title": "x"}
    assert "friend_todo_updated" not in eve_ws.events()


@pytest.mark.asyncio
async def test_todo_update_requires_id(connect, alice):
    session, ws = await connect(alice)
    await session.dispatch("todo_update", {})
    assert ws.last("error") == {"message": "todo_id is required"}


@pytest.mark.asyncio
async def test_friend_request_notification(connect, world):
    alice_session, _ = await connect(world["alice"])
    eve_session, eve_ws = await connect(world["eve"])
    await eve_session.dispatch("join_personal_channel")
    assert eve_ws.last("joined_personal_channel") == str(world["eve"].id)

    await alice_session.dispatch("friend_request", {"target_user_id": str(world["eve"].id)})

    payload = eve_ws.last("friend_request_received")
    assert payload["from_user_id"] == str(world["alice"].id)
    assert payload["from_user_email"] == world["alice"].email
    assert payload["action"] == "sent"


# ═══════════════════════════════════════════════════════════
# Disconnect + manager
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_close_announces_offline(connect, rooms, world):
    ws_id = world["ws_id"]
    alice_session, alice_ws = await connect(world["alice"])
    bob_session, _ = await connect(world["bob"])
    await alice_session.dispatch("join_workspace", str(ws_id))
    await bob_session.dispatch("join_workspace", str(ws_id))

    await bob_session.close()

    assert alice_ws.last("user_offline")["user_id"] == str(world["bob"].id)
    assert rooms.room_size(events.workspace_room(ws_id)) == 1
    assert rooms.connection_count == 1


class RecordingRelay:
    def __init__(self, fail=False):
        self.published = []
        self.fail = fail

    async def publish(self, room, event, data, exclude=None):
        if self.fail:
            raise ConnectionError("redis down")
        self.published.append((room, event, data, exclude))


@pytest.mark.asyncio
async def test_broadcast_goes_through_relay(rooms, connect, alice):
    """With a relay attached nothing is delivered locally until it comes back."""
    session, ws = await connect(alice)
    rooms.join(session.conn, "user_x")
    relay = RecordingRelay()
    rooms.relay = relay

    await rooms.broadcast("user_x", "hello", {"n": 1})

    assert relay.published == [("user_x", "hello", {"n": 1}, None)]
    assert ws.sent == []


@pytest.mark.asyncio
async def test_broadcast_falls_back_when_relay_fails(rooms, connect, alice):
    session, ws = await connect(alice)
    rooms.join(session.conn, "user_x")
    rooms.relay = RecordingRelay(fail=True)

    await rooms.broadcast("user_x", "hello", {"n": 1})
    assert ws.sent == [{"event": "hello", "data": {"n": 1}}]


@pytest.mark.asyncio
async def test_relay_delivers_incoming_payloads(rooms, connect, alice):
    session, ws = await connect(alice)
    rooms.join(session.conn, "workspace_1")
    relay = RedisRelay(redis=None, manager=rooms)

    await relay.handle_message(json.dumps(
        {"room": "workspace_1", "event": "user_typing", "data": {"is_typing": True}, "exclude": None}
    ))
    await relay.handle_message("{broken")
    await relay.handle_message(json.dumps({"event": "no room"}))

    assert ws.sent == [{"event": "user_typing", "data": {"is_typing": True}}]


@pytest.mark.asyncio
async def test_relay_respects_exclude(rooms, connect, alice):
    session, ws = await connect(alice)
    rooms.join(session.conn, "workspace_1")
    relay = RedisRelay(redis=None, manager=rooms)

    await relay.handle_message(json.dumps(
        {"room": "workspace_1", "event": "user_left", "data": {}, "exclude": session.conn.id}
    ))
    assert ws.sent == []


# ═══════════════════════════════════════════════════════════
# /ws handshake
# ═══════════════════════════════════════════════════════════


def test_socket_rejects_missing_token():
    client = TestClient(app)
    with pytest.raises(WebSocketDisconnect) as exc:
        with client.websocket_connect("/ws"):
            pass
    assert exc.value.code == 4001


def test_socket_rejects_bad_token():
    client = TestClient(app)
    with pytest.raises(WebSocketDisconnect) as exc:
        with client.websocket_connect("/ws?token=garbage"):
            pass
    assert exc.value.code == 4001


def test_socket_accepts_valid_token():
    """A valid access token in the query string opens the socket."""
    token = create_access_token(str(uuid.uuid4()), "someone@example.com")
    client = TestClient(app)
    with client.websocket_connect(f"/ws?token={token}") as sock:
        sock.send_text(json.dumps({"event": "ping"}))
        frame = sock.receive_json()
    assert frame["event"] == "pong"


def test_socket_accepts_binary_frames():
    """Binary frames are decoded as UTF-8; undecodable ones get an error and the socket stays open."""
    token = create_access_token(str(uuid.uuid4()), "someone@example.com")
    client = TestClient(app)
    with client.websocket_connect(f"/ws?token={token}") as sock:
        sock.send_bytes(json.dumps({"event": "ping"}).encode())
        decoded = sock.receive_json()
        sock.send_bytes(b"\xff\xfe")
        rejected = sock.receive_json()
        sock.send_text(json.dumps({"event": "ping"}))
        after = sock.receive_json()

    assert decoded["event"] == "pong"
    assert rejected["event"] == "error"
    assert "Malformed frame" in rejected["data"]["message"]
    assert after["event"] == "pong"
