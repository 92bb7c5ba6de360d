"""
Command-line interface for feed-aggregator.

Usage:
    feed-aggregator serve          # API server + periodic scheduler
    feed-aggregator scrape         # One merge cycle, then exit
    feed-aggregator scrape --mock  # One cycle against synthetic sources
    feed-aggregator init-db        # Create the mirror table
    feed-aggregator health         # Check configuration and connectivity
"""

import asyncio
import os
import sys

import click

from feed_aggregator.config.settings import get_settings
from feed_aggregator.observability.logging import setup_logging
from feed_aggregator.observability.metrics import get_metrics


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
def main(debug: bool) -> None:
    """Feed Aggregator - merged Twitter, Reddit and GitHub feed."""
    setup_logging(level="DEBUG" if debug else None)


@main.command()
@click.option("--host", default=None, help="API server host")
@click.option("--port", default=None, type=int, help="API server port")
@click.option("--reload", is_flag=True, help="Enable auto-reload (dev only)")
@click.option("--metrics/--no-metrics", default=True, help="Enable metrics server")
def serve(host: str | None, port: int | None, reload: bool, metrics: bool) -> None:
    """Start the API server with the periodic scheduler."""
    import uvicorn

    settings = get_settings()
    host = host or settings.api_host
    port = port or settings.api_port

    if metrics:
        get_metrics().start_server(port=settings.metrics_port)
        click.echo(f"Metrics available on http://localhost:{settings.metrics_port}/metrics")

    click.echo(f"Starting API server on {host}:{port}")
    click.echo(f"Polling every {settings.poll_interval_minutes} minutes")
    click.echo(f"API docs available on http://localhost:{port}/docs")

    uvicorn.run(
        "feed_aggregator.api.app:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        log_level="info",
    )


@main.command()
@click.option("--mock", is_flag=True, help="Use mock adapters")
def scrape(mock: bool) -> None:
    """Run one merge cycle and exit (exit code 1 if the cycle fails)."""
    from feed_aggregator.services.feed_service import FeedService
    from feed_aggregator.services.scheduler import FeedScheduler
    from feed_aggregator.storage.database import Database
    from feed_aggregator.storage.repository import PostRepository

    async def run() -> int:
        settings = get_settings()
        db = None
        repository = None

        if settings.database_configured and not mock:
            db = Database()
            try:
                await db.connect()
                repository = PostRepository(db)
            except Exception as e:
                click.echo(click.style(f"  ✗ Mirror unavailable: {e}", fg="yellow"))
                db = None

        try:
            service = FeedService.from_settings(settings, use_mock=mock, repository=repository)
            scheduler = FeedScheduler(
                service.run_cycle,
                interval_seconds=settings.poll_interval_seconds,
                manual_cooldown_seconds=settings.manual_refresh_cooldown_seconds,
            )
            cycle = await scheduler.trigger().task
        finally:
            if db is not None:
                await db.close()

        if cycle is None:
            click.echo(click.style(f"  ✗ Cycle failed: {scheduler.last_error}", fg="red"))
            return 1

        click.echo(f"\nCycle {cycle.cycle_id} finished in {cycle.duration_seconds:.2f}s")
        click.echo("-" * 40)
        for source, count in cycle.fetched.items():
            error = cycle.source_errors.get(source)
            if error:
                click.echo(click.style(f"  ✗ {source}: {error}", fg="yellow"))
            else:
                click.echo(click.style(f"  ✓ {source}: {count} fetched", fg="green"))
        click.echo("-" * 40)
        click.echo(f"  New items:  {cycle.admitted}")
        click.echo(f"  Feed size:  {cycle.feed_size}")
        if cycle.mirror is not None:
            status = "ok" if cycle.mirror.success else f"failed ({cycle.mirror.error})"
            click.echo(f"  Mirror:     {status}")
        return 0

    sys.exit(asyncio.run(run()))


@main.command("init-db")
def init_db() -> None:
    """Initialize the mirror database schema."""
    from feed_aggregator.storage.database import Database
    from feed_aggregator.storage.repository import PostRepository

    settings = get_settings()
    if not settings.database_configured:
        click.echo(click.style("DATABASE_URL is not set", fg="red"))
        sys.exit(1)

    async def run():
        async with Database() as db:
            await PostRepository(db).create_tables()
        click.echo("Database initialized successfully")

    asyncio.run(run())


@main.command()
def health() -> None:
    """Check configuration and connectivity."""
    import structlog
    logger = structlog.get_logger()

    async def check() -> bool:
        settings = get_settings()
        results: dict[str, bool] = {}

        if settings.database_configured:
            try:
                from feed_aggregator.storage.database import Database
                async with Database() as db:
                    results["postgres"] = await db.health_check()
            except Exception as e:
                results["postgres"] = False
                logger.error("Postgres health check failed", error=str(e))

        results["data_dir_writable"] = _dir_writable(settings.data_dir)
        results["apify_configured"] = settings.apify_configured
        results["github_configured"] = settings.github_configured
        results["slack_configured"] = settings.slack_configured

        click.echo("\nHealth Check Results:")
        click.echo("-" * 40)

        all_healthy = True
        for name, status in results.items():
            icon = "✓" if status else "✗"
            color = "green" if status else "red"
            click.echo(click.style(f"  {icon} {name}: {status}", fg=color))
            if name in ("postgres", "data_dir_writable") and not status:
                all_healthy = False

        click.echo("-" * 40)
        return all_healthy

    if asyncio.run(check()):
        click.echo(click.style("All core services healthy!", fg="green"))
        sys.exit(0)
    click.echo(click.style("Some services unhealthy!", fg="red"))
    sys.exit(1)


def _dir_writable(path) -> bool:
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError:
        return False
    return os.access(path, os.W_OK)


if __name__ == "__main__":
    main()
