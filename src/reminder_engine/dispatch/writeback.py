from __future__ import annotations

from typing import TYPE_CHECKING, Optional, Sequence

from loguru import logger

from ..errors import describe_error
from ..metrics.registry import WRITEBACK_CHUNKS_TOTAL
from ..models import SourceGroup
from .policy import RetryPolicy
from .types import BatchWriter, ChunkFailure, WriteBackReport, WriteBackUnit

if TYPE_CHECKING:
    from loguru import Logger


class WriteBackBatcher:
    """Writes per-row values back to the source in sequential chunks.

    Chunks are written one after another, never in parallel. A chunk that
    still fails after retries is logged and abandoned; later chunks are still
    attempted and the report carries the partial outcome.
    """

    def __init__(
        self,
        writer: BatchWriter,
        chunk_size: int = 500,
        retry_policy: Optional[RetryPolicy] = None,
        *,
        log: Optional["Logger"] = None,
    ):
        if chunk_size <= 0:
            raise ValueError("chunk_size must be > 0")
        self._writer = writer
        self._chunk_size = chunk_size
        self._retry = retry_policy or RetryPolicy(max_retries=3)
        self._log = log or logger

    @property
    def chunk_size(self) -> int:
        return self._chunk_size

    def chunks(self, units: Sequence[WriteBackUnit]) -> list[Sequence[WriteBackUnit]]:
        size = self._chunk_size
        return [units[i : i + size] for i in range(0, len(units), size)]

    async def flush(self, group: SourceGroup, units: Sequence[WriteBackUnit]) -> WriteBackReport:
        chunks = self.chunks(units)
        written = 0
        failures: list[ChunkFailure] = []

        for number, chunk in enumerate(chunks, start=1):
            try:
                await self._retry.run(
                    lambda chunk=chunk: self._writer.write_batch(group, chunk),
                    label=f"source.write [{group.label}] chunk {number}",
                    log=self._log,
                )
            except Exception as exc:
                WRITEBACK_CHUNKS_TOTAL.labels(outcome="failed").inc()
                failures.append(
                    ChunkFailure(
                        chunk=number,
                        first_position=chunk[0].position,
                        size=len(chunk),
                        error=describe_error(exc),
                    )
                )
                self._log.error(
                    f"[{group.label}] write-back chunk {number}/{len(chunks)} abandoned "
                    f"({len(chunk)} rows from {chunk[0].position}): {describe_error(exc)}"
                )
                continue

            WRITEBACK_CHUNKS_TOTAL.labels(outcome="written").inc()
            written += len(chunk)
            self._log.info(
                f"[{group.label}] write-back: updated {len(chunk)} rows "
                f"(chunk {number}/{len(chunks)})"
            )

        return WriteBackReport(
            group=group,
            units=len(units),
            chunks=len(chunks),
            written=written,
            failures=tuple(failures),
        )
