from __future__ import annotations

import asyncio
import json
import sys
from typing import Optional

import typer
from loguru import logger

from reminder_engine.errors import ConfigError

from .config import get_settings
from .log import configure_logging
from .runtime import ReminderRuntime
from .scheduler import ReminderScheduler, build_trigger

app = typer.Typer(help="Reminder bot CLI (serve, one-off runs, config checks)")


def _setup():
    settings = get_settings()
    configure_logging(
        settings.LOG_LEVEL, settings.LOG_DIR, settings.LOG_ROTATION, settings.LOG_RETENTION
    )
    return settings


@app.command()
def serve(
    host: str = typer.Option("0.0.0.0", "--host", help="Bind address"),
    port: Optional[int] = typer.Option(None, "--port", help="Port (defaults to PORT)"),
):
    """Run the status server with the cron scheduler."""
    import uvicorn

    from .app import create_app

    settings = _setup()
    try:
        runtime = ReminderRuntime.from_settings(settings)
    except ConfigError as e:
        logger.error(f"Fatal startup error: {e}")
        sys.exit(1)

    scheduler = ReminderScheduler(
        runtime.guard,
        settings.CRON_SCHEDULE,
        settings.TIMEZONE,
        run_on_startup=settings.RUN_ON_STARTUP,
    )
    logger.info("Reminder Bot is starting")
    uvicorn.run(create_app(runtime, scheduler), host=host, port=port or settings.PORT)


@app.command("run-once")
def run_once():
    """Execute a single guarded run and print its summary as JSON."""
    settings = _setup()

    async def _main():
        runtime = ReminderRuntime.from_settings(settings)
        try:
            return await runtime.run_once()
        finally:
            await runtime.shutdown()

    try:
        result = asyncio.run(_main())
    except ConfigError as e:
        logger.error(f"Configuration error: {e}")
        sys.exit(1)
    except Exception as e:
        logger.error(f"Run failed: {e}")
        sys.exit(1)

    typer.echo(json.dumps(result.to_dict(), indent=2, default=str))


@app.command("check-config")
def check_config():
    """Validate settings and print the resolved source groups and schedule."""
    settings = get_settings()
    try:
        groups = settings.source_groups
        build_trigger(settings.CRON_SCHEDULE, settings.TIMEZONE)
    except ConfigError as e:
        typer.echo(f"invalid: {e}", err=True)
        raise typer.Exit(code=1)

    typer.echo(
        json.dumps(
            {
                "groups": [{"document_id": g.document_id, "sheet": g.name} for g in groups],
                "cron_schedule": settings.CRON_SCHEDULE,
                "timezone": settings.TIMEZONE,
                "skip_weekends": settings.SKIP_WEEKENDS,
                "dedup_same_day": settings.DEDUP_SAME_DAY,
                "concurrency": settings.QUEUE_CONCURRENCY,
                "page_size": settings.SHEET_BATCH_SIZE,
                "write_chunk_size": settings.SHEET_WRITE_BATCH_SIZE,
            },
            indent=2,
        )
    )


if __name__ == "__main__":
    app()
