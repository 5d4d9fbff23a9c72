"""Ingestion loop and the worker that wires it to Kafka and OpenSearch."""

from search_ingest.workers.indexer_worker import IndexerWorker
from search_ingest.workers.ingestion_loop import IngestionLoop, LoopState

__all__ = [
    "IndexerWorker",
    "IngestionLoop",
    "LoopState",
]
