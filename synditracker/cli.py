"""
Command-line interface for the Synditracker hub.

Usage:
    synditracker serve                  # Run the API server
    synditracker init-db                # Create tables
    synditracker keys generate "Site"   # Issue a site key
    synditracker keys list              # Show issued keys
    synditracker heartbeat              # Run one heartbeat evaluation
    synditracker health                 # Check dependencies
"""

import asyncio
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

import click

from synditracker.config.settings import get_settings
from synditracker.observability.logging import setup_logging
from synditracker.observability.metrics import get_metrics

if TYPE_CHECKING:
    from synditracker.api.dependencies import HubServices


@asynccontextmanager
async def _services() -> AsyncIterator["HubServices"]:
    """Service graph with an open database pool; no background tasks."""
    from synditracker.api.dependencies import HubServices

    services = HubServices.build(get_settings())
    await services.database.connect()
    try:
        yield services
    finally:
        try:
            await services.redis.aclose()
        finally:
            await services.database.close()


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
def main(debug: bool) -> None:
    """Synditracker Hub - syndication ingestion and spike alerting."""
    if debug:
        import os
        os.environ["LOG_LEVEL"] = "DEBUG"
        get_settings.cache_clear()

    setup_logging()


@main.command()
@click.option("--host", default=None, help="API server host")
@click.option("--port", default=None, type=int, help="API server port")
@click.option("--reload", is_flag=True, help="Enable auto-reload (dev only)")
@click.option("--metrics-port", default=None, type=int, help="Metrics server port")
@click.option("--workers", default=1, help="Number of uvicorn worker processes")
def serve(
    host: str | None,
    port: int | None,
    reload: bool,
    metrics_port: int | None,
    workers: int,
) -> None:
    """Start the API server."""
    import uvicorn

    settings = get_settings()
    host = host or settings.api_host
    port = port or settings.api_port
    metrics_port = metrics_port or settings.metrics_port

    get_metrics().start_server(port=metrics_port)

    click.echo(f"Starting API server on {host}:{port}")
    click.echo(f"Metrics available on http://localhost:{metrics_port}/metrics")
    click.echo(f"API docs available on http://localhost:{port}/docs")

    uvicorn.run(
        "synditracker.api.app:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        workers=workers,
        log_level="info",
    )


@main.command("init-db")
def init_db() -> None:
    """Initialize the database schema."""

    async def run():
        async with _services() as services:
            await services.ensure_schema()
        click.echo("Database initialized successfully")

    asyncio.run(run())


@main.group()
def keys() -> None:
    """Manage site keys."""


@keys.command("generate")
@click.argument("site_name")
def keys_generate(site_name: str) -> None:
    """Issue a new key for SITE_NAME."""

    async def run():
        async with _services() as services:
            key = await services.keys.generate(site_name)
        click.echo(f"Key #{key.id} for {key.site_name}:")
        click.echo(click.style(f"  {key.key_value}", fg="green", bold=True))

    asyncio.run(run())


@keys.command("list")
def keys_list() -> None:
    """List issued keys."""

    async def run():
        async with _services() as services:
            items = await services.keys.list_keys()

        if not items:
            click.echo("No keys issued")
            return

        click.echo(f"\n{'ID':>5}  {'STATUS':<8}  {'SITE':<30}  LAST SEEN")
        click.echo("-" * 70)
        for k in items:
            color = "green" if k.is_active else "red"
            last_seen = k.last_seen.isoformat() if k.last_seen else "never"
            click.echo(click.style(
                f"{k.id:>5}  {k.status:<8}  {k.site_name[:30]:<30}  {last_seen}",
                fg=color,
            ))

    asyncio.run(run())


@keys.command("revoke")
@click.argument("key_id", type=int)
def keys_revoke(key_id: int) -> None:
    """Revoke key KEY_ID (the row is kept)."""

    async def run():
        async with _services() as services:
            ok = await services.keys.revoke(key_id)
        if not ok:
            click.echo(click.style(f"Key {key_id} not found", fg="red"))
            sys.exit(1)
        click.echo(f"Key {key_id} revoked")

    asyncio.run(run())


@keys.command("delete")
@click.argument("key_id", type=int)
@click.confirmation_option(prompt="Delete this key permanently?")
def keys_delete(key_id: int) -> None:
    """Delete key KEY_ID."""

    async def run():
        async with _services() as services:
            ok = await services.keys.delete(key_id)
        if not ok:
            click.echo(click.style(f"Key {key_id} not found", fg="red"))
            sys.exit(1)
        click.echo(f"Key {key_id} deleted")

    asyncio.run(run())


@main.command()
def heartbeat() -> None:
    """Evaluate the heartbeat once and dispatch a summary if above threshold."""

    async def run():
        async with _services() as services:
            sent = await services.detector.evaluate_heartbeat()
        if sent:
            click.echo("Heartbeat summary dispatched")
        else:
            click.echo("Below threshold, nothing sent")

    asyncio.run(run())


@main.command()
def health() -> None:
    """Check health of all dependencies."""
    import structlog
    logger = structlog.get_logger()

    async def check():
        import redis.asyncio as redis

        from synditracker.storage.database import Database

        results: dict[str, bool] = {}
        settings = get_settings()

        try:
            client = redis.from_url(str(settings.redis_url))
            results["redis"] = bool(await client.ping())
            await client.aclose()
        except Exception as e:
            results["redis"] = False
            logger.error("Redis health check failed", error=str(e))

        try:
            db = Database()
            await db.connect()
            results["postgres"] = await db.health_check()
            await db.close()
        except Exception as e:
            results["postgres"] = False
            logger.error("Postgres health check failed", error=str(e))

        results["smtp_configured"] = bool(settings.smtp_host)
        results["admin_keys_configured"] = bool(settings.admin_keys)

        click.echo("\nHealth Check Results:")
        click.echo("-" * 40)

        all_healthy = True
        for name, status in results.items():
            icon = "✓" if status else "✗"
            color = "green" if status else "red"
            click.echo(click.style(f"  {icon} {name}: {status}", fg=color))
            if name in ("redis", "postgres") and not status:
                all_healthy = False

        click.echo("-" * 40)

        if all_healthy:
            click.echo(click.style("All core services healthy!", fg="green"))
            sys.exit(0)
        else:
            click.echo(click.style("Some services unhealthy!", fg="red"))
            sys.exit(1)

    asyncio.run(check())


if __name__ == "__main__":
    main()
