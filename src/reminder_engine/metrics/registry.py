"""
Reminder engine metrics, registered in the Prometheus global REGISTRY.
Simply import this module at app startup.
"""

from prometheus_client import Counter, Gauge, Histogram


# --- Classification / delivery ---

RECORDS_CLASSIFIED_TOTAL = Counter(
    "reminder_records_classified_total",
    "Source records classified, by outcome",
    ["outcome"],
)

DELIVERIES_TOTAL = Counter(
    "reminder_deliveries_total",
    "Reminder deliveries by terminal outcome",
    ["outcome"],
)

WRITEBACK_CHUNKS_TOTAL = Counter(
    "reminder_writeback_chunks_total",
    "Write-back chunks by outcome",
    ["outcome"],
)

# --- Runs ---

RUNS_TOTAL = Counter(
    "reminder_runs_total",
    "Reminder runs by outcome",
    ["outcome"],
)

RUN_DURATION_SECONDS = Histogram(
    "reminder_run_duration_seconds",
    "Wall time of completed reminder runs",
    buckets=[1, 5, 15, 30, 60, 120, 300, 600, 1800, 3600],
)

# --- Queue ---

QUEUE_PENDING = Gauge(
    "reminder_queue_pending",
    "Jobs waiting for a worker",
    ["queue"],
)

QUEUE_ACTIVE = Gauge(
    "reminder_queue_active",
    "Jobs currently running",
    ["queue"],
)
