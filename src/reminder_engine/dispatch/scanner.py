from __future__ import annotations

from typing import TYPE_CHECKING, AsyncIterator, Optional

from loguru import logger

from ..errors import ScanError, describe_error
from ..models import SourceGroup
from .policy import RetryPolicy
from .types import Page, PageSource, PositionedRow

if TYPE_CHECKING:
    from loguru import Logger

# Position 1 is the header row.
FIRST_DATA_POSITION = 2


class PaginatedScanner:
    """Reads a source group in fixed-size position ranges.

    ``pages(group)`` is a lazy, finite async generator; each call starts a new
    scan, an exhausted generator cannot be restarted. Ranges that come back
    empty are skipped without being yielded. Fetches are retried with the
    given policy; once retries run out the scan ends with ``ScanError``.
    """

    def __init__(
        self,
        source: PageSource,
        page_size: int = 5000,
        retry_policy: Optional[RetryPolicy] = None,
        *,
        log: Optional["Logger"] = None,
    ):
        if page_size <= 0:
            raise ValueError("page_size must be > 0")
        self._source = source
        self._page_size = page_size
        self._retry = retry_policy or RetryPolicy(max_retries=3)
        self._log = log or logger

    @property
    def page_size(self) -> int:
        return self._page_size

    async def total_count(self, group: SourceGroup) -> Optional[int]:
        try:
            return await self._retry.run(
                lambda: self._source.fetch_total_count(group),
                label=f"source.count [{group.label}]",
                log=self._log,
            )
        except Exception as exc:
            raise ScanError(
                f"total count lookup failed for {group.label}: {describe_error(exc)}"
            ) from exc

    async def pages(self, group: SourceGroup) -> AsyncIterator[Page]:
        total = await self.total_count(group)
        if total is None:
            self._log.warning(f"Group {group.label} not found in source; skipping")
            return

        self._log.info(f"Group {group.label} has {total} rows")

        start = FIRST_DATA_POSITION
        number = 0
        while start <= total:
            end = min(start + self._page_size - 1, total)
            number += 1
            raw = await self._fetch(group, start, end, number)

            if raw:
                rows = [PositionedRow(row=row, position=start + i) for i, row in enumerate(raw)]
                self._log.debug(
                    f"[{group.label}] page {number}: read {len(rows)} rows ({start}-{end})"
                )
                yield Page(number=number, start=start, end=end, rows=rows)
            else:
                self._log.debug(f"[{group.label}] page {number}: empty range {start}-{end}")

            start = end + 1

    async def _fetch(self, group: SourceGroup, start: int, end: int, number: int) -> list:
        try:
            rows = await self._retry.run(
                lambda: self._source.fetch_page(group, start, end),
                label=f"source.read [{group.label}] page {number}",
                log=self._log,
            )
        except Exception as exc:
            raise ScanError(
                f"page {number} ({start}-{end}) of {group.label} failed: {describe_error(exc)}"
            ) from exc
        return list(rows or [])
