"""Cleanup worker — periodic removal of expired refresh tokens.

Runs as a background task in the FastAPI lifespan. Each pass opens its own
DB session; a failing pass is logged and retried on the next interval.

Usage:
    worker = CleanupWorker(interval=3600)
    asyncio.create_task(worker.run_loop())
"""

import asyncio

import structlog

from teamcollab.db.engine import async_session_factory
from teamcollab.services.admin_service import delete_expired_tokens

logger = structlog.get_logger()


class CleanupWorker:
    """Background worker that deletes expired refresh tokens."""

    def __init__(self, interval: float = 3600.0, session_factory=None):
        self.interval = interval
        self.session_factory = session_factory or async_session_factory
        self._running = False

    async def run_loop(self) -> None:
        self._running = True
        logger.info("cleanup_worker.started", interval=self.interval)

        while self._running:
            try:
                await self.run_once()
            except Exception:
                logger.exception("cleanup_worker.error")
            await asyncio.sleep(self.interval)

    async def run_once(self) -> int:
        """One cleanup pass. Returns the number of tokens removed."""
        async with self.session_factory() as db:
            removed = await delete_expired_tokens(db)
            await db.commit()
        if removed:
            logger.info("cleanup_worker.tokens_removed", count=removed)
        return removed

    def stop(self) -> None:
        """Signal the worker to stop."""
        self._running = False
        logger.info("cleanup_worker.stopping")
