from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum
from types import MappingProxyType
from typing import (
    Any,
    Awaitable,
    Callable,
    Generic,
    Mapping,
    Optional,
    Protocol,
    Sequence,
    TypeVar,
    Union,
)

from ..models import ReminderMessage, SourceGroup

T = TypeVar("T")
R = TypeVar("R")

Worker = Callable[[T], Awaitable[R]]


# --- collaborators -----------------------------------------------------------


class PageSource(Protocol):
    """Tabular source read in position ranges (position 1 is the header row)."""

    async def fetch_total_count(self, group: SourceGroup) -> Optional[int]:
        """Total rows including the header, or ``None`` if the group does not exist."""
        ...

    async def fetch_page(self, group: SourceGroup, start: int, end: int) -> Sequence[Sequence[Any]]:
        """Rows for the inclusive range ``start..end``; may be shorter or empty."""
        ...


class Notifier(Protocol):
    """Notification transport. Raises ``PermanentError`` for non-retryable rejections."""

    async def send(self, message: ReminderMessage) -> None: ...


class BatchWriter(Protocol):
    """Persists per-row values back to the source in one call."""

    async def write_batch(self, group: SourceGroup, units: Sequence["WriteBackUnit"]) -> None: ...


# --- queue -------------------------------------------------------------------


@dataclass(frozen=True)
class QueueState:
    """Point-in-time snapshot of a BoundedWorkQueue."""

    name: str
    concurrency: int
    pending: int
    active: int
    total_enqueued: int
    total_completed: int
    total_failed: int
    paused: bool = False
    closed: bool = False


@dataclass(frozen=True)
class JobOutcome(Generic[T]):
    """Terminal result of one job: ``ok`` with a value, or the error that ended it."""

    job: T
    value: Any = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None


# --- scanning ----------------------------------------------------------------


@dataclass(frozen=True)
class PositionedRow:
    row: Sequence[Any]
    position: int


@dataclass(frozen=True)
class Page:
    number: int
    start: int
    end: int
    rows: list[PositionedRow]

    def __len__(self) -> int:
        return len(self.rows)


# --- classification ----------------------------------------------------------


class SkipReason(str, Enum):
    MALFORMED = "malformed"
    COMPLETE = "already_complete"
    FUTURE = "future_dated"
    DUPLICATE = "duplicate_today"


@dataclass(frozen=True)
class Skip:
    reason: SkipReason
    detail: str = ""


@dataclass(frozen=True)
class Eligible:
    message: ReminderMessage
    overdue_days: int


Classification = Union[Skip, Eligible]


@dataclass(frozen=True)
class DeliveryJob:
    """A queued delivery, attributed back to its group and row."""

    group: SourceGroup
    position: int
    message: ReminderMessage


# --- write-back --------------------------------------------------------------


@dataclass(frozen=True)
class WriteBackUnit:
    position: int
    value: str


@dataclass(frozen=True)
class ChunkFailure:
    chunk: int
    first_position: int
    size: int
    error: str


@dataclass(frozen=True)
class WriteBackReport:
    group: SourceGroup
    units: int
    chunks: int
    written: int
    failures: tuple[ChunkFailure, ...] = ()

    @property
    def complete(self) -> bool:
        return not self.failures


# --- run results -------------------------------------------------------------


@dataclass(frozen=True)
class DeliveryFailure:
    group: str
    position: int
    recipient: str
    error: str


@dataclass(frozen=True)
class GroupFailure:
    group: str
    error: str


@dataclass(frozen=True)
class RunSummary:
    """Aggregated, immutable outcome of one run."""

    date: str
    groups: int
    scanned: int
    eligible: int
    skipped_by_reason: Mapping[str, int]
    delivered: int
    failed: int
    failures: tuple[DeliveryFailure, ...] = ()
    group_failures: tuple[GroupFailure, ...] = ()
    writebacks: tuple[WriteBackReport, ...] = ()
    duration_sec: float = 0.0

    def __post_init__(self):
        counts = MappingProxyType(dict(self.skipped_by_reason))
        object.__setattr__(self, "skipped_by_reason", counts)

    @property
    def skipped(self) -> bool:
        return False

    def to_dict(self) -> dict[str, Any]:
        return {
            "skipped": False,
            "date": self.date,
            "groups": self.groups,
            "scanned": self.scanned,
            "eligible": self.eligible,
            "skipped_by_reason": dict(self.skipped_by_reason),
            "delivered": self.delivered,
            "failed": self.failed,
            "failures": [asdict(f) for f in self.failures],
            "group_failures": [asdict(g) for g in self.group_failures],
            "writebacks": [
                {
                    "group": w.group.label,
                    "units": w.units,
                    "chunks": w.chunks,
                    "written": w.written,
                    "failed_chunks": len(w.failures),
                }
                for w in self.writebacks
            ],
            "duration_sec": round(self.duration_sec, 3),
        }


@dataclass(frozen=True)
class SkippedRun:
    """Sentinel returned instead of a summary when nothing was run."""

    reason: str  # "overlap" | "weekend"
    skipped: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {"skipped": True, "reason": self.reason}


RunResult = Union[RunSummary, SkippedRun]
