"""Prometheus metrics for migrun.

Tracks operator requests against the dispatcher and the outcome of
batch runs started by the engine.
"""

from prometheus_client import Counter, Gauge, Histogram

OPERATIONS_DISPATCHED = Counter(
    "migrun_operations_dispatched_total",
    "Operations received by the dispatcher",
    labelnames=["operation", "outcome"],
)

DISPATCH_LATENCY = Histogram(
    "migrun_dispatch_latency_seconds",
    "Time spent inside dispatch (excludes the background run)",
    labelnames=["operation"],
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0),
)

RUNS_FINISHED = Counter(
    "migrun_runs_finished_total",
    "Batch runs that reached a terminal result",
    labelnames=["operation", "result"],
)

RECORDS_PROCESSED = Counter(
    "migrun_records_processed_total",
    "Records processed by batch runs",
    labelnames=["operation", "outcome"],
)

ACTIVE_RUNS = Gauge(
    "migrun_active_runs",
    "Batch runs currently executing in this process",
)

RUN_DURATION = Histogram(
    "migrun_run_duration_seconds",
    "Wall-clock duration of batch runs",
    labelnames=["operation"],
    buckets=(0.1, 1.0, 5.0, 30.0, 60.0, 300.0, 900.0, 3600.0),
)
