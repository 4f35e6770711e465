from __future__ import annotations

import asyncio
from collections import deque
from typing import TYPE_CHECKING, Any, Deque, Generic, Iterable, Optional, TypeVar

from loguru import logger

from ..errors import QueueClosedError, describe_error
from ..metrics.registry import QUEUE_ACTIVE, QUEUE_PENDING
from .types import JobOutcome, QueueState, Worker

if TYPE_CHECKING:
    from loguru import Logger

T = TypeVar("T")


class BoundedWorkQueue(Generic[T]):
    """In-process job queue running at most ``concurrency`` workers at once.

    ``submit()`` never blocks: it returns a future that resolves to a
    ``JobOutcome`` once the job completes or fails. ``drain()`` resolves when
    nothing is pending or active.

    All bookkeeping happens in synchronous sections on the event loop, so a
    job completion and the drain check that follows it cannot interleave with
    another coroutine.

    Usage:
        queue = BoundedWorkQueue[Message](concurrency=5, name="email")
        queue.process(send_with_retry)
        futures = queue.submit_many(messages)
        await queue.drain()
    """

    def __init__(
        self,
        concurrency: int = 5,
        name: str = "queue",
        worker: Optional[Worker[T, Any]] = None,
        *,
        log: Optional["Logger"] = None,
    ):
        if concurrency <= 0:
            raise ValueError("concurrency must be > 0")

        self._concurrency = concurrency
        self._name = name
        self._worker = worker
        self._log = (log or logger).bind(queue=name)

        self._pending: Deque[tuple[T, asyncio.Future]] = deque()
        self._active = 0
        self._tasks: set[asyncio.Task] = set()
        self._drain_waiters: list[asyncio.Future] = []
        self._paused = False
        self._closed = False

        self._total_enqueued = 0
        self._total_completed = 0
        self._total_failed = 0

    @property
    def name(self) -> str:
        return self._name

    @property
    def concurrency(self) -> int:
        return self._concurrency

    @property
    def pending(self) -> int:
        return len(self._pending)

    @property
    def active(self) -> int:
        return self._active

    @property
    def closed(self) -> bool:
        return self._closed

    # --------------------------- public API

    def process(self, worker: Worker[T, Any]) -> None:
        """Register the worker coroutine; jobs submitted earlier start now."""
        if not callable(worker):
            raise TypeError("worker must be callable")
        self._worker = worker
        self._tick()

    def submit(self, job: T) -> "asyncio.Future[JobOutcome[T]]":
        """Enqueue ``job``; returns a future resolving to its outcome."""
        if self._closed:
            raise QueueClosedError(f"queue '{self._name}' is stopped")
        fut: asyncio.Future = asyncio.get_running_loop().create_future()
        self._pending.append((job, fut))
        self._total_enqueued += 1
        self._tick()
        self._publish()
        return fut

    def submit_many(self, jobs: Iterable[T]) -> list["asyncio.Future[JobOutcome[T]]"]:
        return [self.submit(job) for job in jobs]

    def drain(self) -> "asyncio.Future[None]":
        """Future that resolves once pending and active are both zero."""
        fut: asyncio.Future = asyncio.get_running_loop().create_future()
        if self._idle():
            fut.set_result(None)
        else:
            self._drain_waiters.append(fut)
        return fut

    def pause(self) -> None:
        """Active jobs finish; no new ones start until ``resume()``."""
        self._paused = True

    def resume(self) -> None:
        self._paused = False
        self._tick()

    def stats(self) -> QueueState:
        return QueueState(
            name=self._name,
            concurrency=self._concurrency,
            pending=len(self._pending),
            active=self._active,
            total_enqueued=self._total_enqueued,
            total_completed=self._total_completed,
            total_failed=self._total_failed,
            paused=self._paused,
            closed=self._closed,
        )

    def reset_stats(self) -> None:
        """Zero the cumulative totals (pending/active are live values)."""
        self._total_enqueued = 0
        self._total_completed = 0
        self._total_failed = 0

    async def stop(self, timeout: Optional[float] = None) -> bool:
        """Refuse new jobs and wait up to ``timeout`` for in-flight ones.

        Returns True if the queue drained; otherwise remaining jobs are
        cancelled and False is returned.
        """
        self._closed = True
        self.resume()
        try:
            await asyncio.wait_for(asyncio.shield(self.drain()), timeout=timeout)
            return True
        except asyncio.TimeoutError:
            self._log.warning(
                f"[Queue:{self._name}] grace period expired with "
                f"{len(self._pending)} pending / {self._active} active jobs; cancelling"
            )

        while self._pending:
            job, fut = self._pending.popleft()
            if not fut.done():
                fut.set_result(JobOutcome(job=job, error=QueueClosedError("queue stopped")))
            self._total_failed += 1
        for task in list(self._tasks):
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._check_drain()
        return False

    # --------------------------- internals

    def _idle(self) -> bool:
        return not self._pending and self._active == 0

    def _tick(self) -> None:
        if self._worker is None or self._paused or not self._pending:
            return
        loop = asyncio.get_running_loop()
        while self._active < self._concurrency and self._pending:
            job, fut = self._pending.popleft()
            self._active += 1
            task = loop.create_task(self._run(job, fut))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

    async def _run(self, job: T, fut: asyncio.Future) -> None:
        try:
            value = await self._worker(job)
        except asyncio.CancelledError:
            self._total_failed += 1
            if not fut.done():
                fut.set_result(JobOutcome(job=job, error=QueueClosedError("job cancelled")))
            raise
        except Exception as exc:
            self._total_failed += 1
            self._log.error(f"[Queue:{self._name}] Job failed: {describe_error(exc)}")
            if not fut.done():
                fut.set_result(JobOutcome(job=job, error=exc))
        else:
            self._total_completed += 1
            if not fut.done():
                fut.set_result(JobOutcome(job=job, value=value))
        finally:
            self._active -= 1
            self._tick()
            self._check_drain()
            self._publish()

    def _check_drain(self) -> None:
        if not self._idle():
            return
        waiters, self._drain_waiters = self._drain_waiters, []
        for waiter in waiters:
            if not waiter.done():
                waiter.set_result(None)

    def _publish(self) -> None:
        QUEUE_PENDING.labels(queue=self._name).set(len(self._pending))
        QUEUE_ACTIVE.labels(queue=self._name).set(self._active)
