"""
Indexer Worker - Streams change events from Kafka into an OpenSearch index.

Startup order:
1. Health server, so liveness answers immediately
2. Destination index check (fatal on IndexProvisioningError)
3. Kafka subscription
4. Ingestion loop, which blocks until shutdown or max_cycles

Shutdown lets the loop finish any flush or commit in progress before the
Kafka consumer and the OpenSearch client are closed.
"""

import asyncio
import logging

from config.config import IngestConfig
from core.logging.context import set_log_context
from core.utils.worker_id import generate_worker_id
from search_ingest.common.health import HealthCheckServer
from search_ingest.common.stream import StreamSource
from search_ingest.common.types import CommitCursor
from search_ingest.indexing.bulk_writer import BulkIndexWriter
from search_ingest.indexing.index_manager import IndexLifecycleManager
from search_ingest.indexing.opensearch_client import build_opensearch_client
from search_ingest.indexing.transformer import DocumentTransformer
from search_ingest.workers.ingestion_loop import IngestionLoop

logger = logging.getLogger(__name__)


class IndexerWorker:
    """
    Composes the stream source, index components and ingestion loop.

    Clients are created once here and handed to the components that use
    them; tests can inject their own via ``stream`` and ``search_client``.

    Usage:
        >>> config = load_config()
        >>> worker = IndexerWorker(config, shutdown_event=event)
        >>> await worker.start()
    """

    WORKER_NAME = "search-indexer"

    def __init__(
        self,
        config: IngestConfig,
        shutdown_event: asyncio.Event | None = None,
        stream=None,
        search_client=None,
        worker_id: str | None = None,
    ):
        self.config = config
        self.shutdown_event = shutdown_event or asyncio.Event()
        self.worker_id = worker_id or generate_worker_id("indexer")

        self.search_client = search_client or build_opensearch_client(config)
        self.cursor = CommitCursor()
        self.stream = stream or StreamSource(config, client_id=self.worker_id, cursor=self.cursor)

        self.index_manager = IndexLifecycleManager(self.search_client, config.index_settings)
        self.loop = IngestionLoop(
            stream=self.stream,
            transformer=DocumentTransformer(config.identity_field),
            writer=BulkIndexWriter(self.search_client, config.index_name),
            cursor=self.cursor,
            shutdown_event=self.shutdown_event,
            pacing_delay_seconds=config.pacing_delay_seconds,
            max_cycles=config.max_cycles,
        )

        self.health_server = HealthCheckServer(
            port=config.health_port,
            worker_name=self.WORKER_NAME,
            enabled=config.health_enabled,
        )

        self._loop_task: asyncio.Task | None = None
        self._startup_settled = asyncio.Event()
        self._startup_settled.set()
        self._stopped = False

        logger.info(
            "Initialized IndexerWorker",
            extra={
                "worker_id": self.worker_id,
                "message_topic": config.topic,
                "index": config.index_name,
                "batch_size": config.batch_size,
            },
        )

    async def start(self) -> None:
        """
        Start the worker and run until shutdown.

        Startup stops at the first step that finds shutdown already
        requested, so nothing is started after stop() has begun.

        Raises:
            IndexProvisioningError: Destination index could not be confirmed
            Exception: Kafka consumer failed to start
        """
        if self._stopped:
            logger.info("IndexerWorker already stopped, not starting")
            return

        set_log_context(worker_id=self.worker_id, index_name=self.config.index_name)
        logger.info("Starting IndexerWorker", extra={"index": self.config.index_name})

        self._startup_settled.clear()
        try:
            started = await self._start_components()
        finally:
            self._startup_settled.set()

        if not started:
            logger.info("Shutdown requested during startup, not consuming")
            return

        self._loop_task = asyncio.create_task(self.loop.run())
        await self._loop_task

    async def _start_components(self) -> bool:
        """Bring up health, index and stream in order. False if shutdown interrupted."""
        await self.health_server.start()
        if self.shutdown_event.is_set():
            return False

        await self.index_manager.ensure_index(self.config.index_name)
        self.health_server.set_ready(index_ready=True)
        if self.shutdown_event.is_set():
            return False

        await self.stream.start()
        self.health_server.set_ready(stream_connected=True)
        return not self.shutdown_event.is_set()

    async def stop(self) -> None:
        """Stop after the current flush or commit completes. Safe to call more than once.

        A start() still bringing components up is allowed to settle first, so
        every component it started is closed here.
        """
        if self._stopped:
            return
        self._stopped = True

        logger.info("Stopping IndexerWorker")
        self.loop.stop()
        if not self._startup_settled.is_set():
            logger.info("Waiting for startup to settle before stopping")
            await self._startup_settled.wait()
        if self._loop_task is not None and not self._loop_task.done():
            await asyncio.wait({self._loop_task})

        self.health_server.set_ready(stream_connected=False)
        try:
            await self.stream.stop()
        finally:
            await self.search_client.close()
            await self.health_server.stop()

        logger.info(
            "IndexerWorker stopped",
            extra={
                "cycles": self.loop.cycles_completed,
                "records_skipped": self.loop.records_skipped,
            },
        )
