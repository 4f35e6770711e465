"""Reminder dispatch engine

Scan -> classify -> queue -> drain -> write-back pipeline with:
- BoundedWorkQueue (fixed worker budget, transactional drain)
- RetryPolicy with exponential backoff and jitter
- PaginatedScanner over header-prefixed tabular sources
- WriteBackBatcher with sequential, fault-isolated chunks
- RunOrchestrator classification, dedup and run summaries
- OverlapGuard single-flight protection for scheduled runs
"""

from .types import (
    PageSource,
    Notifier,
    BatchWriter,
    QueueState,
    JobOutcome,
    Page,
    PositionedRow,
    SkipReason,
    Skip,
    Eligible,
    Classification,
    DeliveryJob,
    WriteBackUnit,
    WriteBackReport,
    ChunkFailure,
    DeliveryFailure,
    GroupFailure,
    RunSummary,
    SkippedRun,
    RunResult,
)
from .policy import RetryPolicy, default_retry_classifier
from .queue import BoundedWorkQueue
from .scanner import PaginatedScanner, FIRST_DATA_POSITION
from .writeback import WriteBackBatcher
from .orchestrator import RunOrchestrator, RunOptions
from .guard import OverlapGuard

__all__ = [
    # collaborators
    "PageSource",
    "Notifier",
    "BatchWriter",
    # types
    "QueueState",
    "JobOutcome",
    "Page",
    "PositionedRow",
    "SkipReason",
    "Skip",
    "Eligible",
    "Classification",
    "DeliveryJob",
    "WriteBackUnit",
    "WriteBackReport",
    "ChunkFailure",
    "DeliveryFailure",
    "GroupFailure",
    "RunSummary",
    "SkippedRun",
    "RunResult",
    # policies
    "RetryPolicy",
    "default_retry_classifier",
    # runtime
    "BoundedWorkQueue",
    "PaginatedScanner",
    "FIRST_DATA_POSITION",
    "WriteBackBatcher",
    "RunOrchestrator",
    "RunOptions",
    "OverlapGuard",
]
