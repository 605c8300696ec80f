"""TeamCollab CLI — run the server and do database maintenance.

Usage:
    teamcollab serve --reload                    # Run the API with uvicorn
    teamcollab init-db                           # Create missing tables
    teamcollab seed                              # Create the default admin/test users
    teamcollab cleanup                           # Drop expired tokens + stale blocks
    teamcollab stats                             # Row counts per table
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import json

import click

from teamcollab import __version__
from teamcollab.config import settings

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _run(coro):
    """Run an async coroutine from a synchronous Click handler.

    Handles nested event loops (e.g. when invoked via Click CliRunner
    inside an existing async context like tests) by offloading to a thread.
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)
    else:
        with concurrent.futures.ThreadPoolExecutor(max_workers=1) as pool:
            return pool.submit(asyncio.run, coro).result()


def _pretty_json(data: dict | list) -> str:
    return json.dumps(data, indent=2, default=str)


async def _dispose() -> None:
    from teamcollab.db.engine import engine
    await engine.dispose()


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(version=__version__, prog_name="teamcollab")
def cli():
    """TeamCollab — team collaboration backend."""
    from teamcollab.logging_config import configure_logging
    configure_logging(settings.log_level, settings.log_json)


@cli.command()
@click.option("--host", default=None, help="Bind address (default: TEAMCOLLAB_HOST)")
@click.option("--port", type=int, default=None, help="Port (default: TEAMCOLLAB_PORT)")
@click.option("--reload", is_flag=True, help="Restart on code changes")
def serve(host: str | None, port: int | None, reload: bool):
    """Run the API server."""
    import uvicorn

    uvicorn.run(
        "teamcollab.main:app",
        host=host or settings.host,
        port=port or settings.port,
        reload=reload,
    )


@cli.command("init-db")
def init_db():
    """Create every table that doesn't exist yet.

    Production deployments should run `alembic upgrade head` instead.
    """
    _run(_init_db_impl())
    click.secho("Tables created.", fg="green")


async def _init_db_impl():
    from teamcollab.db.engine import create_tables
    try:
        await create_tables()
    finally:
        await _dispose()


@cli.command()
@click.option("--password", default=None, help="Password for the seeded accounts")
def seed(password: str | None):
    """Create the default admin and test accounts if they are missing."""
    created = _run(_seed_impl(password))
    if created:
        for email in created:
            click.secho(f"Created {email}", fg="green")
    else:
        click.echo("Default users already exist.")


async def _seed_impl(password: str | None) -> list[str]:
    from teamcollab.db.engine import async_session_factory
    from teamcollab.services.auth_service import DEFAULT_PASSWORD, seed_default_users
    try:
        async with async_session_factory() as db:
            return await seed_default_users(db, password or DEFAULT_PASSWORD)
    finally:
        await _dispose()


@cli.command()
def cleanup():
    """Delete expired refresh tokens and month-old blocked friendships."""
    result = _run(_cleanup_impl())
    click.echo(_pretty_json(result["results"]))


async def _cleanup_impl() -> dict:
    from teamcollab.db.engine import async_session_factory
    from teamcollab.services.admin_service import AdminService
    try:
        async with async_session_factory() as db:
            return await AdminService(db).cleanup()
    finally:
        await _dispose()


@cli.command()
def stats():
    """Print row counts per table."""
    click.echo(_pretty_json(_run(_stats_impl())))


async def _stats_impl() -> dict:
    from teamcollab.db.engine import async_session_factory
    from teamcollab.services.admin_service import AdminService
    try:
        async with async_session_factory() as db:
            return await AdminService(db).database_stats()
    finally:
        await _dispose()


if __name__ == "__main__":
    cli()
