"""Socket event names.

Frames in both directions are JSON objects: {"event": <name>, "data": <payload>}.
"""

# ─── Client → server ─────────────────────────────────────

JOIN_WORKSPACE = "join_workspace"
LEAVE_WORKSPACE = "leave_workspace"
TASK_UPDATE = "task_update"
TODO_UPDATE = "todo_update"
FRIEND_REQUEST = "friend_request"
JOIN_PERSONAL_CHANNEL = "join_personal_channel"
TYPING_START = "typing_start"
TYPING_STOP = "typing_stop"
PING = "ping"

# ─── Server → client ─────────────────────────────────────

JOINED_WORKSPACE = "joined_workspace"
LEFT_WORKSPACE = "left_workspace"
USER_JOINED = "user_joined"
USER_LEFT = "user_left"
USER_OFFLINE = "user_offline"
TASK_UPDATED = "task_updated"
FRIEND_TODO_UPDATED = "friend_todo_updated"
FRIEND_REQUEST_RECEIVED = "friend_request_received"
JOINED_PERSONAL_CHANNEL = "joined_personal_channel"
USER_TYPING = "user_typing"
PONG = "pong"
ERROR = "error"


def workspace_room(workspace_id) -> str:
    return f"workspace_{workspace_id}"


def user_room(user_id) -> str:
    return f"user_{user_id}"
