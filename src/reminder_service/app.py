"""
Status service: health checks, scheduler/queue status, manual trigger, metrics.
"""

from __future__ import annotations

import asyncio
import time
from contextlib import asynccontextmanager
from dataclasses import asdict
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, Response
from fastapi.responses import JSONResponse
from loguru import logger
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from .runtime import ReminderRuntime
from .scheduler import ReminderScheduler

SERVICE_NAME = "reminder-bot"


def create_app(runtime: ReminderRuntime, scheduler: Optional[ReminderScheduler] = None) -> FastAPI:
    started_at = time.monotonic()
    background: set[asyncio.Task] = set()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Reminder service starting")
        if scheduler is not None:
            scheduler.start()

        yield

        logger.info("Reminder service shutting down")
        if scheduler is not None:
            scheduler.stop()
        drained = await runtime.shutdown()
        if not drained:
            logger.warning("Shutdown grace period expired before deliveries settled")

    app = FastAPI(title="Reminder Bot", version="1.0.0", lifespan=lifespan)

    def _uptime() -> float:
        return round(time.monotonic() - started_at, 3)

    @app.get("/")
    @app.get("/health")
    async def health():
        return {
            "status": "ok",
            "service": SERVICE_NAME,
            "uptime": _uptime(),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    @app.get("/status")
    async def status():
        if scheduler is not None:
            sched = scheduler.status()
        else:
            last = runtime.guard.last_result
            sched = {
                "running": runtime.guard.busy,
                "last_run": runtime.guard.last_run,
                "last_result": last.to_dict() if last is not None else None,
                "last_error": runtime.guard.last_error,
            }
        return {
            "status": "ok",
            "scheduler": sched,
            "queue": asdict(runtime.queue_stats()),
            "uptime": _uptime(),
        }

    @app.post("/trigger", status_code=202)
    async def trigger():
        logger.info("Manual trigger received via /trigger endpoint")
        task = asyncio.get_running_loop().create_task(_guarded_run(runtime))
        background.add(task)
        task.add_done_callback(background.discard)
        return {"message": "Reminder run triggered"}

    @app.get("/trigger")
    async def trigger_wrong_method():
        return JSONResponse(status_code=405, content={"error": "Use POST to trigger a run"})

    @app.get("/metrics")
    async def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    return app


async def _guarded_run(runtime: ReminderRuntime) -> None:
    try:
        await runtime.run_once()
    except Exception as e:
        logger.error(f"Manual trigger error: {e}")
