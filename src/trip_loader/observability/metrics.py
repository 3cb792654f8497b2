"""
Prometheus metrics collection for trip-loader

Counters and histograms for record outcomes, batch loads and
duplicate reconciliation.
"""
import os
from typing import Optional

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

# Global registry for metrics
REGISTRY = CollectorRegistry()


# =======================
# RECORD METRICS
# =======================

# status: accepted, malformed, rejected
records_total = Counter(
    name="pipeline_records_total",
    documentation="Source records by outcome of transform and validation",
    labelnames=["status"],
    registry=REGISTRY,
)

# =======================
# LOAD METRICS
# =======================

# status: success, failure
batches_total = Counter(
    name="pipeline_batches_total",
    documentation="Batches submitted to the loader",
    labelnames=["status"],
    registry=REGISTRY,
)

# scope: batch (within the staged batch), store (already committed)
duplicates_total = Counter(
    name="pipeline_duplicates_total",
    documentation="Rows quarantined as duplicates",
    labelnames=["scope"],
    registry=REGISTRY,
)

committed_rows_total = Counter(
    name="pipeline_committed_rows_total",
    documentation="Rows promoted into the committed table",
    registry=REGISTRY,
)

load_duration_seconds = Histogram(
    name="pipeline_load_duration_seconds",
    documentation="Time spent staging, reconciling and promoting one batch",
    buckets=[0.05, 0.1, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0, 60.0],
    registry=REGISTRY,
)


# =======================
# HELPER FUNCTIONS
# =======================

def generate_metrics() -> bytes:
    """
    Generate Prometheus metrics in text format

    Returns:
        Metrics in Prometheus text format
    """
    return generate_latest(REGISTRY)


def get_content_type() -> str:
    return CONTENT_TYPE_LATEST


def start_metrics_server(port: Optional[int] = None) -> None:
    """
    Start HTTP server for Prometheus metrics

    Args:
        port: Port to listen on (defaults to env var METRICS_PORT or 8000)
    """
    # Lazy import: avoids binding a port on import
    from prometheus_client import start_http_server

    metrics_port = port or int(os.getenv("METRICS_PORT", "8000"))
    start_http_server(metrics_port, registry=REGISTRY)


def record_outcome(status: str) -> None:
    """Count one source record as accepted, malformed or rejected."""
    records_total.labels(status=status).inc()


def record_batch_load(
    success: bool,
    committed: int = 0,
    duplicates_in_batch: int = 0,
    duplicates_in_store: int = 0,
) -> None:
    """
    Record the result of one loader call.

    Args:
        success: Whether the batch was committed
        committed: Rows promoted into the committed table
        duplicates_in_batch: Rows quarantined as in-batch duplicates
        duplicates_in_store: Rows quarantined as duplicates of committed rows
    """
    batches_total.labels(status="success" if success else "failure").inc()
    if committed:
        committed_rows_total.inc(committed)
    if duplicates_in_batch:
        duplicates_total.labels(scope="batch").inc(duplicates_in_batch)
    if duplicates_in_store:
        duplicates_total.labels(scope="store").inc(duplicates_in_store)
