"""
Pull loop that moves change events from the stream into the search index.

Each cycle walks an explicit state machine:

    IDLE -> FETCHING -> TRANSFORMING -> FLUSHING -> COMMITTING -> IDLE

and ends in STOPPED once shutdown is signalled. Fetching is the only step a
shutdown interrupts; a flush or commit already under way always completes, so
a batch that reached the index is never left uncommitted.

Delivery guarantees:
- Malformed records are logged and skipped; the rest of the batch proceeds
- Item-level rejections are logged and do not hold back the commit
- A transport failure leaves the cursor where it was and rewinds the stream,
  so the same records are fetched again (at-least-once, made safe by upsert-by-id)
"""

import asyncio
import logging
import time
from enum import Enum

from core.errors.exceptions import MalformedEventError, classify_exception
from core.logging.context import set_log_context
from core.logging.setup import generate_cycle_id
from search_ingest.common import metrics
from search_ingest.common.types import BatchResult, CommitCursor, IndexDocument, StreamRecord

logger = logging.getLogger(__name__)

# Delay before the next cycle after an unexpected error
ERROR_BACKOFF_SECONDS = 1.0


class LoopState(Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    TRANSFORMING = "transforming"
    FLUSHING = "flushing"
    COMMITTING = "committing"
    STOPPED = "stopped"


_STATE_NAMES = [state.value for state in LoopState]


class IngestionLoop:
    """
    Drives fetch, transform, flush and commit for one stream subscription.

    Collaborators are injected so the loop owns no connections:
        stream: object with async fetch(), commit(cursor) and rewind(records)
        transformer: DocumentTransformer
        writer: BulkIndexWriter, exclusively owned by this loop
        cursor: CommitCursor, only ever advanced here

    Usage:
        loop = IngestionLoop(stream, transformer, writer, shutdown_event=event)
        await loop.run()
    """

    def __init__(
        self,
        stream,
        transformer,
        writer,
        cursor: CommitCursor | None = None,
        shutdown_event: asyncio.Event | None = None,
        pacing_delay_seconds: float = 1.0,
        max_cycles: int | None = None,
    ):
        self.stream = stream
        self.transformer = transformer
        self.writer = writer
        self.cursor = cursor if cursor is not None else CommitCursor()
        self.shutdown_event = shutdown_event or asyncio.Event()
        self.pacing_delay_seconds = pacing_delay_seconds
        self.max_cycles = max_cycles

        self.cycles_completed = 0
        self.records_skipped = 0
        self._state = LoopState.IDLE

    @property
    def state(self) -> LoopState:
        return self._state

    def _set_state(self, state: LoopState) -> None:
        self._state = state
        metrics.set_loop_state(state.value, _STATE_NAMES)

    def stop(self) -> None:
        """Request shutdown. Takes effect at the next fetch or pacing wait."""
        self.shutdown_event.set()

    def _reached_max_cycles(self) -> bool:
        if self.max_cycles is not None and self.cycles_completed >= self.max_cycles:
            logger.info(
                "Reached max_cycles limit, stopping ingestion",
                extra={"cycles": self.cycles_completed},
            )
            return True
        return False

    async def run(self) -> None:
        """Run cycles until shutdown is signalled or max_cycles is reached."""
        logger.info(
            "Starting ingestion loop",
            extra={
                "index": self.writer.index_name,
                "batch_size": getattr(self.stream, "batch_size", None),
            },
        )
        try:
            while not self.shutdown_event.is_set():
                if self._reached_max_cycles():
                    return
                try:
                    await self.run_cycle()
                except asyncio.CancelledError:
                    logger.info("Ingestion loop cancelled")
                    raise
                except Exception as e:
                    logger.error(
                        "Error in ingestion cycle",
                        extra={
                            "error": str(e),
                            "error_type": type(e).__name__,
                            "error_category": classify_exception(e).value,
                        },
                        exc_info=True,
                    )
                    self._set_state(LoopState.IDLE)
                    await self._wait_or_shutdown(ERROR_BACKOFF_SECONDS)
        finally:
            self._set_state(LoopState.STOPPED)
            logger.info(
                "Ingestion loop stopped",
                extra={"cycles": self.cycles_completed, "records_skipped": self.records_skipped},
            )

    async def run_cycle(self) -> bool:
        """Run one fetch-to-commit cycle.

        Returns:
            True if the commit cursor advanced
        """
        set_log_context(cycle_id=generate_cycle_id())

        self._set_state(LoopState.FETCHING)
        records = await self._fetch()
        if records is None:
            self._set_state(LoopState.STOPPED)
            return False
        if not records:
            self._set_state(LoopState.IDLE)
            return False

        self.cycles_completed += 1
        metrics.records_consumed_total.labels(topic=records[0].topic).inc(len(records))

        try:
            self._set_state(LoopState.TRANSFORMING)
            documents = self._transform(records)

            self._set_state(LoopState.FLUSHING)
            results = await self._flush(documents)
        except Exception:
            await self.stream.rewind(records)
            raise

        self._set_state(LoopState.COMMITTING)
        advanced = await self._commit(records, results)

        self._set_state(LoopState.IDLE)
        if documents:
            await self._wait_or_shutdown(self.pacing_delay_seconds)
        return advanced

    async def _fetch(self) -> list[StreamRecord] | None:
        """Fetch the next batch, or None if shutdown arrived first."""
        fetch_task = asyncio.ensure_future(self.stream.fetch())
        shutdown_task = asyncio.ensure_future(self.shutdown_event.wait())
        try:
            done, _ = await asyncio.wait(
                {fetch_task, shutdown_task}, return_when=asyncio.FIRST_COMPLETED
            )
        except asyncio.CancelledError:
            fetch_task.cancel()
            shutdown_task.cancel()
            raise

        if fetch_task in done:
            shutdown_task.cancel()
            return fetch_task.result()

        fetch_task.cancel()
        try:
            await fetch_task
        except asyncio.CancelledError:
            pass
        logger.info("Shutdown signalled during fetch, nothing committed for this cycle")
        return None

    def _transform(self, records: list[StreamRecord]) -> list[IndexDocument]:
        documents = []
        for record in records:
            try:
                documents.append(self.transformer.transform(record.value))
            except MalformedEventError as e:
                self.records_skipped += 1
                metrics.records_malformed_total.labels(topic=record.topic).inc()
                logger.warning(
                    "Skipping malformed event",
                    extra={
                        "message_topic": record.topic,
                        "message_partition": record.partition,
                        "message_offset": record.offset,
                        "error": str(e),
                        "error_category": e.category.value,
                    },
                )
        return documents

    async def _flush(self, documents: list[IndexDocument]) -> list[BatchResult]:
        if not documents:
            logger.debug("No documents in cycle, skipping flush")
            return []

        for document in documents:
            self.writer.add(document)
        return await self.writer.flush()

    async def _commit(self, records: list[StreamRecord], results: list[BatchResult]) -> bool:
        transport_failure = next((r for r in results if r.is_transport_failure), None)
        if transport_failure is not None:
            logger.warning(
                "Bulk write failed, records will be redelivered",
                extra={
                    "records_fetched": len(records),
                    "documents_failed": len(transport_failure.document_ids),
                    "error": str(transport_failure.error),
                },
            )
            await self.stream.rewind(records)
            return False

        for result in results:
            if not result.succeeded:
                error = result.error
                logger.warning(
                    "Document rejected by index",
                    extra={
                        "doc_id": getattr(error, "doc_id", None),
                        "status_code": getattr(error, "status", None),
                        "error_type": getattr(error, "error_type", None),
                        "error": str(error),
                    },
                )

        start = time.perf_counter()
        self.cursor.advance(records)
        await self.stream.commit(self.cursor)
        metrics.commits_total.labels(topic=records[0].topic).inc()

        logger.info(
            "Cycle committed",
            extra={
                "records_fetched": len(records),
                "documents_indexed": sum(1 for r in results if r.succeeded),
                "documents_failed": sum(1 for r in results if not r.succeeded),
                "duration_ms": round((time.perf_counter() - start) * 1000, 2),
            },
        )
        return True

    async def _wait_or_shutdown(self, seconds: float) -> None:
        if seconds <= 0:
            return
        try:
            await asyncio.wait_for(self.shutdown_event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass
