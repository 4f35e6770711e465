"""
Unit tests for BoundedWorkQueue.
"""

import asyncio

import pytest

from reminder_engine.dispatch import BoundedWorkQueue
from reminder_engine.errors import QueueClosedError


class ConcurrencyTracker:
    """Worker that records the highest number of jobs running at once."""

    def __init__(self, delay: float = 0.001):
        self.delay = delay
        self.running = 0
        self.max_running = 0
        self.seen = []

    async def __call__(self, job):
        self.running += 1
        self.max_running = max(self.max_running, self.running)
        try:
            await asyncio.sleep(self.delay)
            self.seen.append(job)
            return job * 10
        finally:
            self.running -= 1


@pytest.mark.asyncio
@pytest.mark.parametrize("concurrency", [1, 3, 5])
@pytest.mark.parametrize("jobs", [1, 7, 40])
async def test_active_never_exceeds_concurrency(concurrency, jobs):
    tracker = ConcurrencyTracker()
    q = BoundedWorkQueue[int](concurrency=concurrency, name="tracked", worker=tracker)

    observed = []
    futures = q.submit_many(range(jobs))
    observed.append(q.stats().active)
    while not all(f.done() for f in futures):
        observed.append(q.stats().active)
        await asyncio.sleep(0)
    await q.drain()

    assert max(observed) <= concurrency
    assert tracker.max_running == min(concurrency, jobs)
    assert sorted(tracker.seen) == list(range(jobs))


@pytest.mark.asyncio
async def test_drain_with_no_jobs_resolves_immediately():
    q = BoundedWorkQueue[int](concurrency=2, worker=ConcurrencyTracker())
    fut = q.drain()
    assert fut.done()
    await fut


@pytest.mark.asyncio
async def test_drain_resolves_only_when_idle():
    q = BoundedWorkQueue[int](concurrency=2, worker=ConcurrencyTracker(delay=0.005))
    q.submit_many(range(9))

    drain = q.drain()
    assert not drain.done()

    await drain
    stats = q.stats()
    assert stats.pending == 0
    assert stats.active == 0
    assert stats.total_enqueued == 9
    assert stats.total_completed == 9


@pytest.mark.asyncio
async def test_outcomes_carry_values_and_errors():
    async def worker(job: int) -> int:
        await asyncio.sleep(0)
        if job % 2:
            raise RuntimeError(f"odd {job}")
        return job + 100

    q = BoundedWorkQueue[int](concurrency=3, worker=worker)
    futures = q.submit_many(range(6))
    await q.drain()

    outcomes = [f.result() for f in futures]
    assert [o.ok for o in outcomes] == [True, False, True, False, True, False]
    assert outcomes[0].value == 100
    assert outcomes[4].value == 104
    assert "odd 3" in str(outcomes[3].error)
    assert q.stats().total_failed == 3
    assert q.stats().total_completed == 3


@pytest.mark.asyncio
async def test_failing_job_does_not_block_others():
    release = asyncio.Event()

    async def worker(job: str) -> None:
        if job == "boom":
            raise ValueError("boom")
        await release.wait()

    q = BoundedWorkQueue[str](concurrency=1, worker=worker)
    futures = q.submit_many(["boom", "a", "b"])
    await asyncio.sleep(0.01)
    assert futures[0].done()
    assert not futures[0].result().ok

    release.set()
    await q.drain()
    assert all(f.result().ok for f in futures[1:])


@pytest.mark.asyncio
async def test_jobs_wait_for_worker_registration():
    q = BoundedWorkQueue[int](concurrency=2)
    futures = q.submit_many([1, 2, 3])
    await asyncio.sleep(0.01)
    assert q.stats().pending == 3
    assert not any(f.done() for f in futures)

    tracker = ConcurrencyTracker()
    q.process(tracker)
    await q.drain()
    assert sorted(tracker.seen) == [1, 2, 3]


@pytest.mark.asyncio
async def test_pause_and_resume():
    tracker = ConcurrencyTracker()
    q = BoundedWorkQueue[int](concurrency=2, worker=tracker)
    q.pause()
    q.submit_many(range(4))
    await asyncio.sleep(0.01)
    assert tracker.seen == []
    assert q.stats().paused

    q.resume()
    await q.drain()
    assert len(tracker.seen) == 4


@pytest.mark.asyncio
async def test_queue_is_reusable_across_runs():
    tracker = ConcurrencyTracker()
    q = BoundedWorkQueue[int](concurrency=2, worker=tracker)

    q.submit_many(range(3))
    await q.drain()
    assert q.stats().total_completed == 3

    q.reset_stats()
    q.submit_many(range(5))
    await q.drain()
    stats = q.stats()
    assert stats.total_enqueued == 5
    assert stats.total_completed == 5
    assert len(tracker.seen) == 8


@pytest.mark.asyncio
async def test_stop_waits_for_in_flight_jobs():
    tracker = ConcurrencyTracker(delay=0.01)
    q = BoundedWorkQueue[int](concurrency=2, worker=tracker)
    q.submit_many(range(4))

    drained = await q.stop(timeout=2.0)

    assert drained
    assert len(tracker.seen) == 4
    with pytest.raises(QueueClosedError):
        q.submit(99)


@pytest.mark.asyncio
async def test_stop_cancels_after_grace_period():
    async def stuck(job: int) -> None:
        await asyncio.sleep(10)

    q = BoundedWorkQueue[int](concurrency=1, worker=stuck)
    futures = q.submit_many([1, 2])
    await asyncio.sleep(0)

    drained = await q.stop(timeout=0.05)

    assert not drained
    assert all(f.done() for f in futures)
    assert all(isinstance(f.result().error, QueueClosedError) for f in futures)
    stats = q.stats()
    assert stats.pending == 0
    assert stats.active == 0


def test_invalid_concurrency():
    with pytest.raises(ValueError):
        BoundedWorkQueue[int](concurrency=0)
