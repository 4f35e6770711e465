"""
Demo script for the reminder engine.

Runs one guarded pass over an in-memory task sheet with a flaky mail
transport, then a second overlapping call to show the single-flight skip.

Also usable as a collaborator factory for the service:
    REMINDER_COLLABORATORS=examples.run_reminders_demo:build_collaborators
"""

import asyncio
import random
from datetime import timedelta
from typing import Sequence

from loguru import logger

from reminder_engine import (
    BoundedWorkQueue,
    OverlapGuard,
    RetryPolicy,
    RunOptions,
    RunOrchestrator,
)
from reminder_engine.dates import today_in
from reminder_engine.dispatch import WriteBackUnit
from reminder_engine.errors import TransientError
from reminder_engine.models import ReminderMessage, SourceGroup
from reminder_service.runtime import Collaborators


class InMemorySheet:
    """Header row plus generated task rows, one table per sheet name."""

    def __init__(self, rows_per_sheet: int = 40):
        today = today_in("Asia/Kolkata")
        self.tables: dict[str, list[list[str]]] = {}
        for name in ("Tasks", "Ops"):
            rows = []
            for i in range(rows_per_sheet):
                due = today - timedelta(days=i % 4) + timedelta(days=1 if i % 9 == 0 else 0)
                status = "Completed" if i % 7 == 0 else "In progress"
                owner = f"owner{i}@example.com"
                rows.append([f"{name} task {i}", owner, due.strftime("%m/%d/%Y"), status, ""])
            self.tables[name] = rows

    async def fetch_total_count(self, group: SourceGroup):
        rows = self.tables.get(group.name)
        return None if rows is None else len(rows) + 1

    async def fetch_page(self, group: SourceGroup, start: int, end: int):
        await asyncio.sleep(0.01)
        return self.tables[group.name][start - 2 : end - 1]

    async def write_batch(self, group: SourceGroup, units: Sequence[WriteBackUnit]) -> None:
        rows = self.tables[group.name]
        for unit in units:
            rows[unit.position - 2][4] = unit.value
        logger.info(f"Sheet {group.name}: wrote {len(units)} markers")


class FlakyMailer:
    """Fails roughly one send in five with a transient error."""

    def __init__(self, failure_rate: float = 0.2, seed: int = 1):
        self._rng = random.Random(seed)
        self._failure_rate = failure_rate

    async def send(self, message: ReminderMessage) -> None:
        await asyncio.sleep(0.02)
        if self._rng.random() < self._failure_rate:
            raise TransientError("421 service not available")
        cc = f" (cc {message.cc})" if message.cc else ""
        logger.info(f"📧 {message.to}{cc}: {message.subject}")


def build_collaborators(settings=None) -> Collaborators:
    sheet = InMemorySheet()
    return Collaborators(source=sheet, notifier=FlakyMailer(), writer=sheet)


async def main():
    collaborators = build_collaborators()
    queue = BoundedWorkQueue(concurrency=5, name="email")
    orchestrator = RunOrchestrator(
        source=collaborators.source,
        notifier=collaborators.notifier,
        writer=collaborators.writer,
        queue=queue,
        options=RunOptions(
            groups=[
                SourceGroup(document_id="demo-sheet", name="Tasks"),
                SourceGroup(document_id="demo-sheet", name="Ops"),
                SourceGroup(document_id="demo-sheet", name="Missing"),
            ],
            page_size=15,
            chunk_size=10,
            skip_weekends=False,
            manager_email="manager@example.com",
        ),
        delivery_policy=RetryPolicy(max_retries=3, base_delay_ms=50, max_delay_ms=400),
    )
    guard = OverlapGuard(orchestrator.run_once)

    logger.info("🚀 Starting reminder demo")
    first = asyncio.create_task(guard.run_once())
    await asyncio.sleep(0)
    overlap = await guard.run_once()
    logger.info(f"Overlapping call returned: {overlap}")

    summary = await first
    logger.info(f"Summary: {summary.to_dict()}")

    logger.info("⏳ Second run: every eligible row now carries today's marker")
    again = await guard.run_once()
    logger.info(
        f"Second run skipped_by_reason={dict(again.skipped_by_reason)} delivered={again.delivered}"
    )

    await queue.stop(timeout=5)
    logger.info("✅ Reminder demo complete")


if __name__ == "__main__":
    asyncio.run(main())
