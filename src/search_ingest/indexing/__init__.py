"""Search-side components: index provisioning, event transformation, bulk writes."""

from search_ingest.indexing.bulk_writer import BulkIndexWriter
from search_ingest.indexing.index_manager import IndexLifecycleManager
from search_ingest.indexing.transformer import DocumentTransformer

__all__ = [
    "BulkIndexWriter",
    "DocumentTransformer",
    "IndexLifecycleManager",
]
