from __future__ import annotations

from datetime import datetime, timezone
from time import monotonic
from typing import TYPE_CHECKING, Awaitable, Callable, Optional

from loguru import logger

from ..errors import describe_error
from ..metrics.registry import RUNS_TOTAL
from .types import RunResult, SkippedRun

if TYPE_CHECKING:
    from loguru import Logger

RunFn = Callable[[], Awaitable[RunResult]]


class OverlapGuard:
    """Single-flight wrapper around a run function.

    While a run is in progress further calls return ``SkippedRun("overlap")``
    immediately. The busy flag is checked and set with no suspension point in
    between, and is always cleared when the run ends, including on error.
    """

    def __init__(self, run: RunFn, *, log: Optional["Logger"] = None):
        self._run = run
        self._log = log or logger
        self._busy = False
        self._last_run: Optional[str] = None
        self._last_result: Optional[RunResult] = None
        self._last_error: Optional[str] = None

    @property
    def busy(self) -> bool:
        return self._busy

    @property
    def last_run(self) -> Optional[str]:
        return self._last_run

    @property
    def last_result(self) -> Optional[RunResult]:
        return self._last_result

    @property
    def last_error(self) -> Optional[str]:
        return self._last_error

    async def run_once(self) -> RunResult:
        if self._busy:
            self._log.warning("Previous run still in progress; skipping overlapping invocation")
            RUNS_TOTAL.labels(outcome="overlap").inc()
            return SkippedRun(reason="overlap")

        self._busy = True
        started = monotonic()
        try:
            self._log.info("Reminder job started")
            result = await self._run()
        except Exception as exc:
            self._last_error = describe_error(exc)
            self._last_result = None
            RUNS_TOTAL.labels(outcome="crashed").inc()
            self._log.exception(f"Reminder job crashed: {describe_error(exc)}")
            raise
        finally:
            self._busy = False

        self._last_result = result
        self._last_error = None
        self._last_run = datetime.now(timezone.utc).isoformat()
        outcome = result.reason if isinstance(result, SkippedRun) else "completed"
        RUNS_TOTAL.labels(outcome=outcome).inc()
        self._log.info(f"Reminder job finished in {monotonic() - started:.1f}s")
        return result
