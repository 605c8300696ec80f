"""Health check endpoint.

Reports whether the database and Redis are reachable. Redis being down
only degrades the service (no rate limiting, no cross-process socket
fan-out), so the endpoint still answers 200.
"""

from fastapi import APIRouter
from sqlalchemy import text

from teamcollab import __version__
from teamcollab.config import settings
from teamcollab.db.engine import engine
from teamcollab.realtime.manager import manager

router = APIRouter()


@router.get("/health")
async def health_check():
    """Check server health and dependency connectivity."""
    checks = {"server": "ok", "version": __version__}

    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        checks["database"] = "ok"
    except Exception as e:
        checks["database"] = f"error: {e}"

    try:
        from redis.asyncio import from_url

        r = from_url(settings.redis_url, socket_connect_timeout=1)
        await r.ping()
        await r.aclose()
        checks["redis"] = "ok"
    except Exception as e:
        checks["redis"] = f"error: {e}"

    status = "healthy" if all(
        v == "ok" for k, v in checks.items() if k != "version"
    ) else "degraded"

    return {"status": status, **checks, "sockets": manager.connection_count}
