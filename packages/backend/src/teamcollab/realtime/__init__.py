"""Real-time infrastructure — WebSocket rooms + Redis relay.

Clients mutate data over REST, then emit a socket event naming what changed.
The server re-checks access, loads the canonical record and broadcasts it to
the matching room:

1. SocketSession handler → ConnectionManager.broadcast()
2. broadcast → Redis PUBLISH (when configured) → relay in every process
3. relay → local WebSocket connections in that room
"""
