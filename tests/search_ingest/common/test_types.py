"""Tests for stream and index data types."""

import dataclasses

import pytest
from aiokafka.structs import ConsumerRecord

from core.errors.exceptions import IndexWriteItemError, TransportError
from search_ingest.common.types import (
    BatchResult,
    CommitCursor,
    IndexDocument,
    PartitionInfo,
    StreamRecord,
    from_consumer_record,
)


def _record(offset, partition=0, topic="events"):
    return StreamRecord(topic=topic, partition=partition, offset=offset, timestamp=0, value=b"{}")


class TestStreamRecord:
    def test_is_frozen(self):
        record = _record(1)
        with pytest.raises(dataclasses.FrozenInstanceError):
            record.offset = 2

    def test_partition_info(self):
        assert _record(1, partition=3).partition_info == PartitionInfo("events", 3)

    def test_from_consumer_record(self):
        consumer_record = ConsumerRecord(
            topic="events",
            partition=1,
            offset=42,
            timestamp=1000,
            timestamp_type=0,
            key=b"k",
            value=b'{"meta": {"id": "a"}}',
            headers=[],
            checksum=None,
            serialized_key_size=1,
            serialized_value_size=21,
        )
        record = from_consumer_record(consumer_record)

        assert record == StreamRecord(
            topic="events",
            partition=1,
            offset=42,
            timestamp=1000,
            key=b"k",
            value=b'{"meta": {"id": "a"}}',
        )


class TestBatchResult:
    def test_success(self):
        result = BatchResult(document_ids=("a",))
        assert result.succeeded is True
        assert result.is_transport_failure is False

    def test_item_failure_is_not_transport_failure(self):
        result = BatchResult(document_ids=("a",), error=IndexWriteItemError("x", doc_id="a"))
        assert result.succeeded is False
        assert result.is_transport_failure is False

    def test_transport_failure(self):
        result = BatchResult(document_ids=("a", "b"), error=TransportError("down"))
        assert result.succeeded is False
        assert result.is_transport_failure is True


class TestIndexDocument:
    def test_equality_by_value(self):
        assert IndexDocument("a", "{}") == IndexDocument("a", "{}")


class TestCommitCursor:
    def test_empty(self):
        cursor = CommitCursor()
        assert len(cursor) == 0
        assert cursor.position("events", 0) is None
        assert cursor.snapshot() == {}

    def test_advance_to_last_offset_plus_one(self):
        cursor = CommitCursor()
        changed = cursor.advance([_record(5), _record(6), _record(7)])

        assert changed == {PartitionInfo("events", 0): 8}
        assert cursor.position("events", 0) == 8

    def test_advance_tracks_partitions_independently(self):
        cursor = CommitCursor()
        cursor.advance([_record(3, partition=0), _record(10, partition=1), _record(4, partition=0)])

        assert cursor.position("events", 0) == 5
        assert cursor.position("events", 1) == 11
        assert len(cursor) == 2

    def test_never_moves_backwards(self):
        cursor = CommitCursor()
        cursor.advance([_record(10)])
        changed = cursor.advance([_record(4)])

        assert changed == {}
        assert cursor.position("events", 0) == 11

    def test_empty_advance_is_noop(self):
        cursor = CommitCursor()
        assert cursor.advance([]) == {}
        assert len(cursor) == 0

    def test_snapshot_is_a_copy(self):
        cursor = CommitCursor()
        cursor.advance([_record(1)])
        snapshot = cursor.snapshot()
        snapshot[PartitionInfo("events", 0)] = 999
        assert cursor.position("events", 0) == 2

    def test_equality(self):
        a, b = CommitCursor(), CommitCursor()
        a.advance([_record(1)])
        assert a != b
        b.advance([_record(1)])
        assert a == b

    def test_repr(self):
        cursor = CommitCursor()
        cursor.advance([_record(1, partition=1), _record(4, partition=0)])
        assert repr(cursor) == "CommitCursor(events:0=5, events:1=2)"

    def test_discard_forgets_partitions(self):
        cursor = CommitCursor()
        cursor.advance([_record(3, partition=0), _record(8, partition=1)])

        removed = cursor.discard([PartitionInfo("events", 1), PartitionInfo("events", 7)])

        assert removed == [PartitionInfo("events", 1)]
        assert cursor.snapshot() == {PartitionInfo("events", 0): 4}

    def test_discarded_partition_restarts_from_new_records(self):
        cursor = CommitCursor()
        cursor.advance([_record(40)])
        cursor.discard([PartitionInfo("events", 0)])

        cursor.advance([_record(12)])

        assert cursor.position("events", 0) == 13
