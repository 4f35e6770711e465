"""Cron trigger for guarded reminder runs (APScheduler)."""

from __future__ import annotations

import asyncio
from typing import Any, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from loguru import logger

from reminder_engine.dispatch import OverlapGuard
from reminder_engine.errors import ConfigError, describe_error

JOB_ID = "reminders"


def build_trigger(schedule: str, timezone: str) -> CronTrigger:
    try:
        return CronTrigger.from_crontab(schedule, timezone=timezone)
    except ValueError as e:
        raise ConfigError(f'Invalid cron expression "{schedule}": {e}') from e


class ReminderScheduler:
    def __init__(
        self,
        guard: OverlapGuard,
        schedule: str = "0 9 * * 1-5",
        timezone: str = "Asia/Kolkata",
        *,
        run_on_startup: bool = False,
    ):
        self._guard = guard
        self._schedule = schedule
        self._timezone = timezone
        self._run_on_startup = run_on_startup
        self._scheduler: Optional[AsyncIOScheduler] = None
        self._startup_task: Optional[asyncio.Task] = None

    @property
    def started(self) -> bool:
        return self._scheduler is not None

    def start(self) -> None:
        if self._scheduler is not None:
            return

        trigger = build_trigger(self._schedule, self._timezone)
        logger.info(f'Scheduling reminder job: "{self._schedule}" (tz: {self._timezone})')

        scheduler = AsyncIOScheduler(timezone=self._timezone)
        # Two instances may overlap so the guard, not APScheduler, reports the skip.
        scheduler.add_job(
            self.tick,
            trigger=trigger,
            id=JOB_ID,
            replace_existing=True,
            max_instances=2,
            coalesce=True,
        )
        scheduler.start()
        self._scheduler = scheduler

        if self._run_on_startup:
            logger.info("RUN_ON_STARTUP=true; triggering immediate run")
            self._startup_task = asyncio.get_running_loop().create_task(self.tick())

    def stop(self) -> None:
        if self._startup_task is not None and not self._startup_task.done():
            self._startup_task.cancel()
        self._startup_task = None
        if self._scheduler is None:
            return
        self._scheduler.shutdown(wait=False)
        self._scheduler = None
        logger.info("Scheduler stopped")

    async def tick(self) -> None:
        """Scheduled entry point: crashes are logged, never raised into APScheduler."""
        try:
            await self._guard.run_once()
        except Exception as e:
            logger.error(f"Unhandled scheduler error: {describe_error(e)}")

    def next_run(self) -> Optional[str]:
        if self._scheduler is None:
            return None
        job = self._scheduler.get_job(JOB_ID)
        if job is None or job.next_run_time is None:
            return None
        return job.next_run_time.isoformat()

    def status(self) -> dict[str, Any]:
        last = self._guard.last_result
        return {
            "running": self._guard.busy,
            "last_run": self._guard.last_run,
            "last_result": last.to_dict() if last is not None else None,
            "last_error": self._guard.last_error,
            "cron_schedule": self._schedule,
            "timezone": self._timezone,
            "next_run": self.next_run(),
        }
