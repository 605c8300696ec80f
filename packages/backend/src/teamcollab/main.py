"""FastAPI application factory.

create_app() returns a configured FastAPI instance. The lifespan manages
startup/shutdown: logging, optional table creation and seeding, Redis and
the socket relay, and the cleanup worker. Middleware, CORS, error mapping
and routers are all registered here.
"""

import asyncio
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from teamcollab import __version__
from teamcollab.api import api_router
from teamcollab.config import settings
from teamcollab.errors import ServiceError
from teamcollab.logging_config import configure_logging

logger = structlog.get_logger()


async def _stop_task(task: asyncio.Task) -> None:
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle.

    Anything before `yield` runs at startup, after `yield` runs at shutdown.
    """
    configure_logging(settings.log_level, settings.log_json)
    logger.info(
        "teamcollab.starting",
        version=__version__,
        environment=settings.environment,
        port=settings.port,
    )

    from teamcollab.db.engine import async_session_factory, create_tables, engine

    if settings.auto_create_tables:
        await create_tables()
        logger.info("teamcollab.tables_created")

    if settings.seed_default_users:
        from teamcollab.services.auth_service import seed_default_users
        async with async_session_factory() as db:
            await seed_default_users(db)

    # Redis is optional: without it sockets only reach this process
    from teamcollab.realtime.manager import manager
    from teamcollab.realtime.pubsub import RedisRelay, close_redis, init_redis
    relay_task = None
    try:
        redis = await init_redis()
        logger.info("teamcollab.redis_connected", url=settings.redis_url)
        relay = RedisRelay(redis, manager)
        manager.relay = relay
        relay_task = asyncio.create_task(relay.run())
    except Exception as e:
        logger.warning("teamcollab.redis_unavailable", error=str(e))

    from teamcollab.services.cleanup_worker import CleanupWorker
    cleanup_worker = CleanupWorker(interval=settings.cleanup_interval_seconds)
    cleanup_task = asyncio.create_task(cleanup_worker.run_loop())

    yield

    logger.info("teamcollab.shutdown")

    cleanup_worker.stop()
    await _stop_task(cleanup_task)

    manager.relay = None
    if relay_task is not None:
        await _stop_task(relay_task)
    await close_redis()

    await engine.dispose()


async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


def create_app() -> FastAPI:
    """Build and return the FastAPI application."""
    app = FastAPI(
        title="TeamCollab",
        description="Team collaboration backend — todos, workspaces, group tasks and chat",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_exception_handler(ServiceError, service_error_handler)

    # ── Middleware stack ──────────────────────────────────────
    # Starlette middleware executes in reverse order of registration.
    # Request flow: CORS → RateLimit → Security → RequestId → handler

    from teamcollab.middleware.rate_limit import RateLimitMiddleware
    from teamcollab.middleware.request_id import RequestIdMiddleware
    from teamcollab.middleware.security import SecurityHeadersMiddleware

    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        RateLimitMiddleware,
        default_rpm=settings.rate_limit_rpm,
        auth_rpm=settings.rate_limit_auth_rpm,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(api_router)

    from teamcollab.realtime.websocket import router as ws_router
    app.include_router(ws_router)

    return app


# Default app instance (used by uvicorn: teamcollab.main:app)
app = create_app()
