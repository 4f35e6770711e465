from .registry import (
    DELIVERIES_TOTAL,
    QUEUE_ACTIVE,
    QUEUE_PENDING,
    RECORDS_CLASSIFIED_TOTAL,
    RUN_DURATION_SECONDS,
    RUNS_TOTAL,
    WRITEBACK_CHUNKS_TOTAL,
)

__all__ = [
    "RECORDS_CLASSIFIED_TOTAL",
    "DELIVERIES_TOTAL",
    "WRITEBACK_CHUNKS_TOTAL",
    "RUNS_TOTAL",
    "RUN_DURATION_SECONDS",
    "QUEUE_PENDING",
    "QUEUE_ACTIVE",
]
