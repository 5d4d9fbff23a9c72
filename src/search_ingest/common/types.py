"""Stream and index data types shared by the ingestion pipeline."""

from collections.abc import Iterable
from dataclasses import dataclass

from core.errors.exceptions import PipelineError, TransportError

__all__ = [
    "StreamRecord",
    "PartitionInfo",
    "IndexDocument",
    "BatchResult",
    "CommitCursor",
    "from_consumer_record",
]


@dataclass(frozen=True)
class StreamRecord:
    """One record received from the change-event topic."""

    topic: str
    partition: int
    offset: int
    timestamp: int
    key: bytes | None = None
    value: bytes | None = None

    @property
    def partition_info(self) -> "PartitionInfo":
        return PartitionInfo(self.topic, self.partition)


@dataclass(frozen=True)
class PartitionInfo:
    """Transport-agnostic partition identifier."""

    topic: str
    partition: int


@dataclass(frozen=True)
class IndexDocument:
    """A document to upsert: stable id plus the event payload exactly as received."""

    doc_id: str
    body: str


@dataclass(frozen=True)
class BatchResult:
    """Outcome of one entry of a bulk flush.

    A completed bulk request yields one result per document, in input order.
    A request that never completed yields a single result whose
    ``document_ids`` covers every pending document and whose error is a
    TransportError.
    """

    document_ids: tuple[str, ...]
    error: PipelineError | None = None

    @property
    def succeeded(self) -> bool:
        return self.error is None

    @property
    def is_transport_failure(self) -> bool:
        return isinstance(self.error, TransportError)


class CommitCursor:
    """Next offset to commit for each partition this worker has processed.

    Offsets follow the Kafka convention: the committed value is the offset of
    the next record to read, i.e. last processed offset + 1.
    """

    def __init__(self) -> None:
        self._positions: dict[PartitionInfo, int] = {}

    def advance(self, records: Iterable[StreamRecord]) -> dict[PartitionInfo, int]:
        """Move each touched partition past its highest record offset.

        Returns the positions that changed. Never moves a partition backwards.
        """
        highest: dict[PartitionInfo, int] = {}
        for record in records:
            tp = record.partition_info
            highest[tp] = max(highest.get(tp, -1), record.offset + 1)

        changed = {
            tp: offset for tp, offset in highest.items() if offset > self._positions.get(tp, -1)
        }
        self._positions.update(changed)
        return changed

    def discard(self, partitions: Iterable[PartitionInfo]) -> list[PartitionInfo]:
        """Forget partitions this worker no longer owns. Returns the ones removed."""
        removed = []
        for tp in partitions:
            if self._positions.pop(tp, None) is not None:
                removed.append(tp)
        return removed

    def position(self, topic: str, partition: int) -> int | None:
        return self._positions.get(PartitionInfo(topic, partition))

    def snapshot(self) -> dict[PartitionInfo, int]:
        return dict(self._positions)

    def __len__(self) -> int:
        return len(self._positions)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, CommitCursor):
            return NotImplemented
        return self._positions == other._positions

    def __repr__(self) -> str:
        positions = ", ".join(
            f"{tp.topic}:{tp.partition}={offset}" for tp, offset in sorted(
                self._positions.items(), key=lambda item: (item[0].topic, item[0].partition)
            )
        )
        return f"CommitCursor({positions})"


def from_consumer_record(record) -> StreamRecord:
    """Convert aiokafka ConsumerRecord to StreamRecord."""
    return StreamRecord(
        topic=record.topic,
        partition=record.partition,
        offset=record.offset,
        timestamp=record.timestamp,
        key=record.key,
        value=record.value,
    )
