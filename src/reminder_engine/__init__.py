"""
Reminder Engine

Turns a paginated task sheet into at-most-once-per-day reminder deliveries
with a bounded worker queue, retry/backoff, same-day dedup and batched
write-back of the "last reminded" marker.

Usage:
    from reminder_engine import BoundedWorkQueue, RunOrchestrator, RunOptions, OverlapGuard

    queue = BoundedWorkQueue[DeliveryJob](concurrency=5, name="email")
    orchestrator = RunOrchestrator(
        source=source, notifier=notifier, writer=writer, queue=queue,
        options=RunOptions(groups=[SourceGroup(document_id="abc", name="Tasks")]),
    )
    guard = OverlapGuard(orchestrator.run_once)
    summary = await guard.run_once()
"""

from .dispatch import (
    BoundedWorkQueue,
    DeliveryJob,
    OverlapGuard,
    RetryPolicy,
    RunOptions,
    RunOrchestrator,
    RunSummary,
    SkippedRun,
)
from .dates import parse_date
from .models import ColumnLayout, Record, ReminderMessage, SourceGroup

__version__ = "1.0.0"
__all__ = [
    "BoundedWorkQueue",
    "DeliveryJob",
    "OverlapGuard",
    "RetryPolicy",
    "RunOptions",
    "RunOrchestrator",
    "RunSummary",
    "SkippedRun",
    "parse_date",
    "ColumnLayout",
    "Record",
    "ReminderMessage",
    "SourceGroup",
]
