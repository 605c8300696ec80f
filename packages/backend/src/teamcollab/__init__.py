"""TeamCollab — team collaboration backend.

User accounts, friendships, personal to-dos, workspaces with invitations,
group tasks, per-workspace chat with unread counters, and a WebSocket
notification layer that relays task/todo/friend changes to interested
clients.
"""

__version__ = "0.1.0"
