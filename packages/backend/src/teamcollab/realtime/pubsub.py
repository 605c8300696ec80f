"""Redis connection + room fan-out relay.

Redis pub/sub is fire-and-forget: a broadcast published while a process is
not subscribed is simply lost, which is fine for UI notifications (clients
re-fetch over REST).

Channel: teamcollab:rooms. Payload: {"room", "event", "data", "exclude"}.
Every process subscribes and hands each payload to its local
ConnectionManager.
"""

import asyncio
import json
from typing import Any, Optional

import redis.asyncio as aioredis
import structlog

from teamcollab.config import settings

logger = structlog.get_logger()

ROOM_CHANNEL = "teamcollab:rooms"

# Global Redis connection pool (initialized in lifespan)
_redis: Optional[aioredis.Redis] = None


async def init_redis(url: Optional[str] = None) -> aioredis.Redis:
    """Initialize the Redis connection pool. Raises if Redis is unreachable."""
    global _redis
    client = aioredis.from_url(
        url or settings.redis_url,
        encoding="utf-8",
        decode_responses=True,
    )
    try:
        await client.ping()
    except Exception:
        await client.aclose()
        raise
    _redis = client
    return _redis


async def close_redis() -> None:
    """Close the Redis connection pool."""
    global _redis
    if _redis:
        await _redis.aclose()
        _redis = None


def get_redis() -> aioredis.Redis:
    """Get the Redis connection (must be initialized first)."""
    if _redis is None:
        raise RuntimeError("Redis not initialized. Call init_redis() first.")
    return _redis


class RedisRelay:
    """Publishes room broadcasts to Redis and delivers them back locally.

    Usage:
        relay = RedisRelay(get_redis(), manager)
        manager.relay = relay
        task = asyncio.create_task(relay.run())
    """

    def __init__(self, redis: aioredis.Redis, manager, channel: str = ROOM_CHANNEL):
        self.redis = redis
        self.manager = manager
        self.channel = channel

    async def publish(
        self, room: str, event: str, data: Any, exclude: Optional[str] = None
    ) -> None:
        payload = json.dumps(
            {"room": room, "event": event, "data": data, "exclude": exclude}
        )
        await self.redis.publish(self.channel, payload)

    async def handle_message(self, raw: str) -> None:
        try:
            payload = json.loads(raw)
            room = payload["room"]
            event = payload["event"]
        except (ValueError, KeyError, TypeError):
            logger.warning("relay.bad_payload")
            return
        await self.manager.deliver_local(
            room, event, payload.get("data"), payload.get("exclude")
        )

    async def run(self) -> None:
        """Subscribe and deliver until cancelled."""
        pubsub = self.redis.pubsub()
        await pubsub.subscribe(self.channel)
        logger.info("relay.subscribed", channel=self.channel)
        try:
            async for message in pubsub.listen():
                if message["type"] == "message":
                    await self.handle_message(message["data"])
        except asyncio.CancelledError:
            pass
        finally:
            await pubsub.unsubscribe(self.channel)
            await pubsub.aclose()
