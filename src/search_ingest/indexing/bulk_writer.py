"""Batched upsert-by-id writes to the destination index.

Every pending document becomes an ``index`` action keyed by its id, so writing
the same event twice leaves a single stored document. A flush is one bulk
request: its outcome is reported per item, in input order, unless the request
itself fails, in which case one transport failure covers the whole batch.
Nothing is retried here; redelivery is the ingestion loop's decision.
"""

import json
import logging
import time

from opensearchpy import exceptions as opensearch_exceptions

from core.errors.exceptions import IndexWriteItemError, TransportError
from search_ingest.common import metrics
from search_ingest.common.types import BatchResult, IndexDocument

logger = logging.getLogger(__name__)

# Bulk action types whose item results we read back
_ITEM_ACTIONS = ("index", "create", "update", "delete")


def _single_line(body: str) -> str:
    # Raw newlines are only legal as JSON whitespace, so replacing them keeps the document intact
    return body.replace("\r", " ").replace("\n", " ")


class BulkIndexWriter:
    """Accumulates documents for one cycle and writes them in a single bulk request."""

    def __init__(self, client, index_name: str, refresh: bool | str = False):
        """
        Args:
            client: AsyncOpenSearch instance
            index_name: Destination index for every document
            refresh: Passed through to the bulk API; False leaves refresh to the engine
        """
        self.client = client
        self.index_name = index_name
        self.refresh = refresh
        self._pending: list[IndexDocument] = []

    @property
    def pending(self) -> int:
        return len(self._pending)

    def add(self, document: IndexDocument) -> None:
        self._pending.append(document)

    def _build_body(self, documents: list[IndexDocument]) -> str:
        lines = []
        for doc in documents:
            lines.append(json.dumps({"index": {"_index": self.index_name, "_id": doc.doc_id}}))
            lines.append(_single_line(doc.body))
        return "\n".join(lines) + "\n"

    async def flush(self) -> list[BatchResult]:
        """Send all pending documents; the pending set is empty afterwards."""
        if not self._pending:
            return []

        documents, self._pending = self._pending, []
        doc_ids = tuple(doc.doc_id for doc in documents)
        start = time.perf_counter()

        try:
            kwargs = {"body": self._build_body(documents)}
            if self.refresh:
                kwargs["refresh"] = "true" if self.refresh is True else self.refresh
            response = await self.client.bulk(**kwargs)
        except opensearch_exceptions.TransportError as e:
            return [self._transport_failure(doc_ids, f"Bulk request failed: {type(e).__name__}", e)]
        finally:
            metrics.record_flush(self.index_name, len(documents), time.perf_counter() - start)

        items = response.get("items") or []
        if len(items) != len(documents):
            return [
                self._transport_failure(
                    doc_ids,
                    f"Bulk response has {len(items)} items for {len(documents)} documents",
                )
            ]

        results = [self._item_result(doc.doc_id, item) for doc, item in zip(documents, items)]

        failed = sum(1 for r in results if not r.succeeded)
        indexed = len(results) - failed
        if indexed:
            metrics.documents_indexed_total.labels(index=self.index_name).inc(indexed)

        logger.info(
            f"Flushed {len(documents)} document(s) to {self.index_name}",
            extra={
                "index": self.index_name,
                "batch_size": len(documents),
                "documents_indexed": indexed,
                "documents_failed": failed,
                "duration_ms": round((time.perf_counter() - start) * 1000, 2),
            },
        )
        return results

    def _item_result(self, doc_id: str, item: dict) -> BatchResult:
        outcome = next((item[action] for action in _ITEM_ACTIONS if action in item), {})
        status = outcome.get("status")
        if isinstance(status, int) and 200 <= status < 300:
            return BatchResult(document_ids=(doc_id,))

        error = outcome.get("error") or {}
        if isinstance(error, str):
            error_type, reason = error, error
        else:
            error_type = error.get("type", "unknown")
            reason = error.get("reason", "no reason given")

        metrics.document_failures_total.labels(index=self.index_name, error_type=error_type).inc()
        return BatchResult(
            document_ids=(doc_id,),
            error=IndexWriteItemError(
                f"Document {doc_id} rejected: {reason}",
                doc_id=doc_id,
                status=status if isinstance(status, int) else None,
                error_type=error_type,
                context={"index": self.index_name, "error_reason": reason},
            ),
        )

    def _transport_failure(
        self,
        doc_ids: tuple[str, ...],
        message: str,
        cause: Exception | None = None,
    ) -> BatchResult:
        metrics.transport_failures_total.labels(index=self.index_name).inc()
        logger.error(
            message,
            extra={
                "index": self.index_name,
                "batch_size": len(doc_ids),
                "error": str(cause) if cause else message,
                "error_type": type(cause).__name__ if cause else "ResponseMismatch",
            },
        )
        return BatchResult(
            document_ids=doc_ids,
            error=TransportError(message, cause=cause, context={"index": self.index_name}),
        )
