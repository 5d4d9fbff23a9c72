"""Infrastructure shared by the ingestion components.

This package provides:
- StreamSource: Kafka subscription with explicit commit and rewind
- Stream and index data types (StreamRecord, IndexDocument, BatchResult, CommitCursor)
- HealthCheckServer, Prometheus metrics and signal handling

Import classes directly from submodules to avoid loading heavy dependencies:
    from search_ingest.common.stream import StreamSource
    from search_ingest.common.types import CommitCursor
"""

# Don't import concrete implementations here to avoid loading
# heavy dependencies (aiokafka, aiohttp, etc.) at package import time.

__all__: list[str] = []
