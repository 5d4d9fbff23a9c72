"""
Prometheus metrics for the ingestion worker.

Counts records through each stage of a cycle (consumed, malformed, indexed,
rejected), transport failures and commits, plus flush latency and the loop's
current state. Exposed over HTTP by ``start_metrics_server`` when enabled.
"""

import logging

from prometheus_client import Counter, Gauge, Histogram, start_http_server

logger = logging.getLogger(__name__)

records_consumed_total = Counter(
    "ingest_records_consumed",
    "Records fetched from the stream",
    ["topic"],
)

records_malformed_total = Counter(
    "ingest_records_malformed",
    "Records skipped because the payload or its identity field was unusable",
    ["topic"],
)

documents_indexed_total = Counter(
    "ingest_documents_indexed",
    "Documents acknowledged by the search engine",
    ["index"],
)

document_failures_total = Counter(
    "ingest_document_failures",
    "Documents rejected individually inside a bulk request",
    ["index", "error_type"],
)

transport_failures_total = Counter(
    "ingest_transport_failures",
    "Bulk requests that failed as a whole",
    ["index"],
)

commits_total = Counter(
    "ingest_commits",
    "Cycles whose stream position was committed",
    ["topic"],
)

flush_duration_seconds = Histogram(
    "ingest_flush_duration_seconds",
    "Time spent in one bulk flush",
    ["index"],
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
)

flush_batch_size = Histogram(
    "ingest_flush_batch_size",
    "Documents submitted per bulk flush",
    ["index"],
    buckets=(1, 5, 10, 25, 50, 100, 250, 500, 1000),
)

loop_state = Gauge(
    "ingest_loop_state",
    "1 for the ingestion loop's current state, 0 for the others",
    ["state"],
)


def record_flush(index: str, batch_size: int, duration_seconds: float) -> None:
    flush_batch_size.labels(index=index).observe(batch_size)
    flush_duration_seconds.labels(index=index).observe(duration_seconds)


def set_loop_state(state: str, all_states: list[str]) -> None:
    for name in all_states:
        loop_state.labels(state=name).set(1 if name == state else 0)


def start_metrics_server(port: int) -> None:
    """Expose the default registry on ``port`` (0.0.0.0)."""
    start_http_server(port)
    logger.info("Prometheus metrics server started", extra={"port": port})
