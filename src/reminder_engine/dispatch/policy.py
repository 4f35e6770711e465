from __future__ import annotations

import asyncio
import random
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Awaitable, Callable, Optional, TypeVar

from loguru import logger

from ..errors import PermanentError, RetriesExhausted

if TYPE_CHECKING:
    from loguru import Logger

R = TypeVar("R")

Sleep = Callable[[float], Awaitable[None]]


def default_retry_classifier(exc: BaseException) -> bool:
    """Everything is retried except errors a collaborator marked permanent."""
    return not isinstance(exc, PermanentError)


@dataclass
class RetryPolicy:
    """Exponential backoff with additive jitter.

    ``delay(attempt) = min(base * multiplier**attempt + uniform(0, base), max)``

    ``rng`` and ``sleep`` are injectable so tests get deterministic, instant
    backoff.
    """

    max_retries: int = 5
    base_delay_ms: int = 1000
    max_delay_ms: int = 60_000
    backoff_multiplier: float = 2.0
    jitter: bool = True
    classify_retryable: Callable[[BaseException], bool] = default_retry_classifier
    rng: random.Random = field(default_factory=random.Random, repr=False)
    sleep: Sleep = field(default=asyncio.sleep, repr=False)

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if self.base_delay_ms < 0 or self.max_delay_ms < 0:
            raise ValueError("delays must be >= 0")

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    def next_backoff_ms(self, attempt: int) -> float:
        """Delay to wait after the failed 0-based ``attempt``."""
        exponential = self.base_delay_ms * (self.backoff_multiplier**attempt)
        jitter = self.rng.uniform(0, self.base_delay_ms) if self.jitter else 0.0
        return min(exponential + jitter, float(self.max_delay_ms))

    async def run(
        self,
        op: Callable[[], Awaitable[R]],
        *,
        label: str = "operation",
        log: Optional["Logger"] = None,
    ) -> R:
        """Run ``op`` until it succeeds or attempts run out.

        Raises ``RetriesExhausted`` (a ``PermanentError``) wrapping the last
        error. Errors the classifier rejects are re-raised at once.
        """
        log = log or logger
        for attempt in range(self.max_attempts):
            try:
                return await op()
            except Exception as exc:
                if not self.classify_retryable(exc):
                    log.error(f"[Retry] {label} failed permanently: {exc}")
                    raise
                if attempt == self.max_retries:
                    log.error(f"[Retry] {label} failed after {self.max_attempts} attempts: {exc}")
                    raise RetriesExhausted(label, self.max_attempts, exc) from exc

                delay_ms = self.next_backoff_ms(attempt)
                log.warning(
                    f"[Retry] {label} attempt {attempt + 1}/{self.max_attempts} failed, "
                    f"retrying in {round(delay_ms)}ms: {exc}"
                )
                await self.sleep(delay_ms / 1000.0)

        raise AssertionError("unreachable")  # pragma: no cover

    def with_retries(self, max_retries: int) -> "RetryPolicy":
        """Same curve and hooks with a different attempt budget."""
        return RetryPolicy(
            max_retries=max_retries,
            base_delay_ms=self.base_delay_ms,
            max_delay_ms=self.max_delay_ms,
            backoff_multiplier=self.backoff_multiplier,
            jitter=self.jitter,
            classify_retryable=self.classify_retryable,
            rng=self.rng,
            sleep=self.sleep,
        )
