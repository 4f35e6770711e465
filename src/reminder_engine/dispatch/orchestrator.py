from __future__ import annotations

import asyncio
from collections import Counter
from dataclasses import dataclass, field
from functools import partial
from datetime import date, datetime, timezone
from time import monotonic
from typing import TYPE_CHECKING, Callable, Optional, Sequence

from loguru import logger

from ..dates import (
    DateParser,
    format_marker,
    is_weekend,
    overdue_days,
    parse_date as default_parse_date,
    parse_marker,
    today_in,
)
from ..errors import describe_error
from ..messages import build_reminder_message
from ..metrics.registry import DELIVERIES_TOTAL, RECORDS_CLASSIFIED_TOTAL, RUN_DURATION_SECONDS
from ..models import ColumnLayout, Record, SourceGroup
from .policy import RetryPolicy
from .queue import BoundedWorkQueue
from .scanner import PaginatedScanner
from .types import (
    BatchWriter,
    Classification,
    DeliveryFailure,
    DeliveryJob,
    Eligible,
    GroupFailure,
    JobOutcome,
    Notifier,
    PageSource,
    QueueState,
    RunResult,
    RunSummary,
    Skip,
    SkippedRun,
    SkipReason,
    WriteBackReport,
    WriteBackUnit,
)
from .writeback import WriteBackBatcher

if TYPE_CHECKING:
    from loguru import Logger

Clock = Callable[[], datetime]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class RunOptions:
    """What a run scans and how records are classified."""

    groups: Sequence[SourceGroup] = ()
    timezone: str = "Asia/Kolkata"
    last_action_timezone: str = "Asia/Kolkata"
    done_status: str = "Completed"
    dedup_same_day: bool = True
    skip_weekends: bool = True
    page_size: int = 5000
    chunk_size: int = 500
    columns: ColumnLayout = field(default_factory=ColumnLayout)
    manager_email: Optional[str] = None
    signature: str = "Reminder Bot"


@dataclass
class _GroupScan:
    group: SourceGroup
    units: list[WriteBackUnit] = field(default_factory=list)


class RunOrchestrator:
    """Scans every source group, queues eligible reminders, then writes back.

    Order within one run: scan/classify/submit per group (sequential), one
    global ``drain()`` over all groups, then write-back per group. A failing
    group is logged and recorded; the run continues with the next one.
    """

    def __init__(
        self,
        *,
        source: PageSource,
        notifier: Notifier,
        writer: BatchWriter,
        queue: BoundedWorkQueue[DeliveryJob],
        options: RunOptions,
        delivery_policy: Optional[RetryPolicy] = None,
        source_policy: Optional[RetryPolicy] = None,
        parse_date: Optional[DateParser] = None,
        clock: Clock = _utc_now,
        log: Optional["Logger"] = None,
    ):
        self._notifier = notifier
        self._queue = queue
        self._options = options
        self._delivery_policy = delivery_policy or RetryPolicy()
        self._parse_date = parse_date or partial(default_parse_date, timezone=options.timezone)
        self._clock = clock
        self._log = (log or logger).bind(component="orchestrator")

        source_policy = source_policy or self._delivery_policy.with_retries(3)
        self._scanner = PaginatedScanner(source, options.page_size, source_policy, log=self._log)
        self._batcher = WriteBackBatcher(writer, options.chunk_size, source_policy, log=self._log)
        self._queue.process(self._deliver)

    @property
    def options(self) -> RunOptions:
        return self._options

    def queue_stats(self) -> QueueState:
        return self._queue.stats()

    # --------------------------- classification

    def classify(self, record: Record, today: date) -> Classification:
        """Pure, synchronous decision for one record."""
        if not record.name or not record.recipient:
            return Skip(SkipReason.MALFORMED, "blank task name or recipient")

        if record.status.casefold() == self._options.done_status.casefold():
            return Skip(SkipReason.COMPLETE)

        due = self._parse_date(record.due)
        if due is None:
            return Skip(SkipReason.MALFORMED, f'unparseable due date "{record.due}"')

        if due > today:
            return Skip(SkipReason.FUTURE)

        if self._options.dedup_same_day and record.last_action:
            if self._last_action_day(record.last_action) == today:
                return Skip(SkipReason.DUPLICATE)

        days = overdue_days(due, today)
        message = build_reminder_message(
            task_name=record.name,
            recipient=record.recipient,
            due_date=due,
            overdue_days=days,
            manager_email=self._options.manager_email,
            signature=self._options.signature,
        )
        return Eligible(message=message, overdue_days=days)

    def _last_action_day(self, text: str) -> Optional[date]:
        """Run-timezone date of a last-action value; unparseable values give None."""
        instant = parse_marker(text, self._options.last_action_timezone)
        if instant is not None:
            return today_in(self._options.timezone, instant)
        return self._parse_date(text)

    # --------------------------- run

    async def run_once(self) -> RunResult:
        started = monotonic()
        now = self._clock()
        today = today_in(self._options.timezone, now)
        marker = format_marker(now, self._options.last_action_timezone)

        if self._options.skip_weekends and is_weekend(today):
            self._log.info(f"Weekend detected ({today.isoformat()}); skipping reminders")
            return SkippedRun(reason="weekend")

        groups = list(self._options.groups)
        self._log.info(
            f"Starting reminder run for {today.isoformat()} across {len(groups)} group(s)"
        )
        self._queue.reset_stats()

        counts: Counter[str] = Counter()
        futures: list[asyncio.Future] = []
        scans: list[_GroupScan] = []
        group_failures: list[GroupFailure] = []

        for group in groups:
            scan = _GroupScan(group)
            scans.append(scan)
            try:
                await self._scan_group(scan, today, marker, counts, futures)
            except Exception as exc:
                self._log.error(f"Error processing group {group.label}: {describe_error(exc)}")
                group_failures.append(GroupFailure(group=group.label, error=describe_error(exc)))

        self._log.info(
            f"Scan complete: {counts['scanned']} scanned, {counts['eligible']} queued, "
            + ", ".join(f"{counts[r.value]} {r.value}" for r in SkipReason)
        )

        if futures:
            self._log.info(f"Waiting for {len(futures)} deliveries to settle")
        await self._queue.drain()

        delivered, failures = self._collect(futures)
        self._log.info(f"Deliveries done: {delivered} sent, {len(failures)} failed")

        writebacks: list[WriteBackReport] = []
        for scan in scans:
            if scan.units:
                writebacks.append(await self._batcher.flush(scan.group, scan.units))

        duration = monotonic() - started
        RUN_DURATION_SECONDS.observe(duration)
        summary = RunSummary(
            date=today.isoformat(),
            groups=len(groups),
            scanned=counts["scanned"],
            eligible=counts["eligible"],
            skipped_by_reason={r.value: counts[r.value] for r in SkipReason},
            delivered=delivered,
            failed=len(failures),
            failures=tuple(failures),
            group_failures=tuple(group_failures),
            writebacks=tuple(writebacks),
            duration_sec=duration,
        )
        self._log.info(f"Run summary: {summary.to_dict()}")
        return summary

    async def _scan_group(
        self,
        scan: _GroupScan,
        today: date,
        marker: str,
        counts: Counter[str],
        futures: list[asyncio.Future],
    ) -> None:
        group = scan.group
        columns = self._options.columns
        self._log.info(f"Processing group {group.label}")

        async for page in self._scanner.pages(group):
            self._log.info(f"[{group.label}] processing page {page.number} ({len(page)} rows)")
            for item in page.rows:
                counts["scanned"] += 1
                record = Record.from_row(list(item.row), item.position, columns)
                result = self.classify(record, today)

                if isinstance(result, Skip):
                    counts[result.reason.value] += 1
                    RECORDS_CLASSIFIED_TOTAL.labels(outcome=result.reason.value).inc()
                    if result.detail and result.reason is SkipReason.MALFORMED:
                        self._log.warning(f"[{group.label}] row {record.position}: {result.detail}")
                    continue

                counts["eligible"] += 1
                RECORDS_CLASSIFIED_TOTAL.labels(outcome="eligible").inc()
                job = DeliveryJob(group=group, position=record.position, message=result.message)
                futures.append(self._queue.submit(job))
                scan.units.append(WriteBackUnit(position=record.position, value=marker))

    def _collect(self, futures: list[asyncio.Future]) -> tuple[int, list[DeliveryFailure]]:
        delivered = 0
        failures: list[DeliveryFailure] = []
        for fut in futures:
            outcome: JobOutcome[DeliveryJob] = fut.result()
            if outcome.ok:
                delivered += 1
                continue
            job = outcome.job
            failures.append(
                DeliveryFailure(
                    group=job.group.label,
                    position=job.position,
                    recipient=job.message.to,
                    error=describe_error(outcome.error),
                )
            )
        return delivered, failures

    async def _deliver(self, job: DeliveryJob) -> None:
        message = job.message
        try:
            await self._delivery_policy.run(
                lambda: self._notifier.send(message),
                label=f"email->{message.to}",
                log=self._log,
            )
        except Exception:
            DELIVERIES_TOTAL.labels(outcome="failed").inc()
            self._log.error(
                f"Reminder permanently failed for {message.to} "
                f"({job.group.label} row {job.position})"
            )
            raise
        DELIVERIES_TOTAL.labels(outcome="sent").inc()
        self._log.info(
            f"Reminder sent to {message.to}: {message.subject} "
            f"(kind={message.kind}, overdue={message.overdue_days})"
        )
