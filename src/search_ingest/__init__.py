"""Kafka change-event stream to OpenSearch ingestion worker.

Packages:
    common   - stream records, Kafka subscription, health, metrics, signals
    indexing - OpenSearch client, index provisioning, transformer, bulk writer
    workers  - the ingestion loop and the worker that wires it together
    runners  - startup retry and shutdown orchestration

Run with ``python -m search_ingest --help``.
"""

__version__ = "0.1.0"
