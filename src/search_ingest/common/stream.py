"""Kafka subscription for the change-event topic.

Wrapper around AIOKafkaConsumer exposing the three operations the ingestion
loop needs: fetch a batch, commit an explicit cursor, and rewind a batch that
could not be written so it is fetched again.

Commit Strategy:
- Auto-commit is always disabled
- Offsets are committed only from a CommitCursor, after a successful flush
- Only partitions currently assigned to this consumer are committed
- Partitions revoked in a rebalance are dropped from the cursor, so a stale
  position is never committed over the new owner's progress
- stop() never commits: anything past the cursor is redelivered on restart
"""

import logging

from aiokafka import AIOKafkaConsumer
from aiokafka.abc import ConsumerRebalanceListener
from aiokafka.structs import TopicPartition

from config.config import IngestConfig
from search_ingest.common.kafka_config import build_kafka_security_config
from search_ingest.common.types import (
    CommitCursor,
    PartitionInfo,
    StreamRecord,
    from_consumer_record,
)

logger = logging.getLogger(__name__)


def _format_partitions(partitions) -> list[str]:
    return sorted(f"{tp.topic}:{tp.partition}" for tp in partitions)


class CursorRebalanceListener(ConsumerRebalanceListener):
    """Prunes revoked partitions from the commit cursor during a rebalance."""

    def __init__(self, cursor: CommitCursor | None, group_id: str):
        self.cursor = cursor
        self.group_id = group_id

    def on_partitions_revoked(self, revoked) -> None:
        if self.cursor is not None:
            self.cursor.discard(PartitionInfo(tp.topic, tp.partition) for tp in revoked)
        logger.info(
            "Partitions revoked",
            extra={
                "group_id": self.group_id,
                "partitions": _format_partitions(revoked),
                "partition_count": len(revoked),
            },
        )

    def on_partitions_assigned(self, assigned) -> None:
        logger.info(
            "Partition assignment received",
            extra={
                "group_id": self.group_id,
                "partitions": _format_partitions(assigned),
                "partition_count": len(assigned),
            },
        )


class StreamSource:
    """Subscription to one topic within one consumer group.

    When ``cursor`` is given, partitions revoked from this consumer are
    removed from it as part of the rebalance.
    """

    # Consumer config keys forwarded to AIOKafkaConsumer when present
    _FORWARDED_CONSUMER_KEYS = (
        "heartbeat_interval_ms",
        "fetch_min_bytes",
        "fetch_max_wait_ms",
        "max_partition_fetch_bytes",
    )

    def __init__(
        self,
        config: IngestConfig,
        client_id: str | None = None,
        cursor: CommitCursor | None = None,
    ):
        self.config = config
        self.topic = config.topic
        self.group_id = config.group_id
        self.client_id = client_id or f"search-ingest-{config.group_id}"
        self.batch_size = config.batch_size
        self.batch_timeout_ms = config.batch_timeout_ms
        self.listener = CursorRebalanceListener(cursor, self.group_id)
        self._consumer: AIOKafkaConsumer | None = None
    @property
    def is_running(self) -> bool:
        return self._consumer is not None

    def _build_kafka_config(self) -> dict:
        """Build the AIOKafkaConsumer configuration dict."""
        consumer_config = self.config.get_consumer_config()

        cfg = {
            "bootstrap_servers": self.config.bootstrap_servers,
            "group_id": self.group_id,
            "client_id": self.client_id,
            "request_timeout_ms": self.config.request_timeout_ms,
            "metadata_max_age_ms": self.config.metadata_max_age_ms,
            "connections_max_idle_ms": self.config.connections_max_idle_ms,
            "enable_auto_commit": False,
            "auto_offset_reset": consumer_config["auto_offset_reset"],
            "max_poll_records": self.batch_size,
            "max_poll_interval_ms": consumer_config["max_poll_interval_ms"],
            "session_timeout_ms": consumer_config["session_timeout_ms"],
        }

        for key in self._FORWARDED_CONSUMER_KEYS:
            if key in consumer_config:
                cfg[key] = consumer_config[key]

        cfg.update(build_kafka_security_config(self.config))
        return cfg

    async def start(self) -> None:
        """Connect and subscribe. Partition assignment completes on the first fetch."""
        if self._consumer is not None:
            logger.warning("Stream source already started, ignoring duplicate start call")
            return

        logger.info(
            "Starting stream consumer",
            extra={"message_topic": self.topic, "batch_size": self.batch_size},
        )
        consumer = AIOKafkaConsumer(**self._build_kafka_config())
        consumer.subscribe([self.topic], listener=self.listener)
        await consumer.start()
        self._consumer = consumer

        logger.info(
            f"Subscribed to {self.topic} as group {self.group_id}",
            extra={"message_topic": self.topic},
        )

    async def stop(self) -> None:
        """Leave the group and close the connection. Safe to call multiple times."""
        if self._consumer is None:
            logger.debug("Stream source not running or already stopped")
            return

        consumer, self._consumer = self._consumer, None
        await consumer.stop()
        logger.info("Stream consumer stopped")

    def _require_consumer(self) -> AIOKafkaConsumer:
        if self._consumer is None:
            raise RuntimeError("Stream source is not started")
        return self._consumer

    async def fetch(self) -> list[StreamRecord]:
        """Wait up to batch_timeout_ms for records; returns [] when none arrived.

        Records keep per-partition order; partitions are concatenated in the
        order the broker returned them.
        """
        consumer = self._require_consumer()
        data = await consumer.getmany(timeout_ms=self.batch_timeout_ms, max_records=self.batch_size)

        records: list[StreamRecord] = []
        for partition_records in data.values():
            records.extend(from_consumer_record(record) for record in partition_records)
        return records

    async def commit(self, cursor: CommitCursor) -> None:
        """Commit the cursor's positions for partitions currently assigned.

        Positions for partitions no longer assigned are dropped from the cursor.
        """
        consumer = self._require_consumer()
        assigned = consumer.assignment()

        stale = [tp for tp in cursor.snapshot() if TopicPartition(tp.topic, tp.partition) not in assigned]
        if stale:
            cursor.discard(stale)
            logger.info(
                "Dropped positions for unassigned partitions",
                extra={"group_id": self.group_id, "partitions": _format_partitions(stale)},
            )

        positions = cursor.snapshot()
        if not positions:
            return

        offsets = {TopicPartition(tp.topic, tp.partition): offset for tp, offset in positions.items()}
        await consumer.commit(offsets)
        logger.debug(
            "Committed offsets",
            extra={"offsets": {f"{tp.topic}:{tp.partition}": off for tp, off in positions.items()}},
        )

    async def rewind(self, records: list[StreamRecord]) -> None:
        """Seek each assigned partition in ``records`` back to its first record.

        The next fetch returns the same records again. Partitions revoked in
        the meantime are skipped; their new owner resumes from the last commit.
        """
        consumer = self._require_consumer()
        assigned = consumer.assignment()

        earliest: dict[TopicPartition, int] = {}
        for record in records:
            tp = TopicPartition(record.topic, record.partition)
            if tp not in assigned:
                continue
            earliest[tp] = min(earliest.get(tp, record.offset), record.offset)

        for tp, offset in earliest.items():
            consumer.seek(tp, offset)

        logger.info(
            "Rewound partitions for redelivery",
            extra={"offsets": {f"{tp.topic}:{tp.partition}": off for tp, off in earliest.items()}},
        )
