"""In-memory stand-ins for OpenSearch and Kafka shared by the ingestion tests."""

import asyncio
import json
from unittest.mock import AsyncMock, Mock

import pytest
from opensearchpy import exceptions as opensearch_exceptions

from search_ingest.common.types import CommitCursor, StreamRecord

TOPIC = "wikimedia.recentchange"


class FakeSearchEngine:
    """In-memory stand-in for the bulk and indices APIs of AsyncOpenSearch.

    Stores documents by index and id, so an ``index`` action with an existing
    id replaces the stored document.
    """

    def __init__(self):
        self.indices_created: dict[str, dict | None] = {}
        self.documents: dict[str, dict[str, dict]] = {}
        self.bulk_calls: list[dict] = []
        self.reject_ids: dict[str, tuple[int, str, str]] = {}
        self.unreachable = False
        self.bulk_gate: asyncio.Event | None = None

        self.indices = Mock()
        self.indices.exists = AsyncMock(side_effect=self._exists)
        self.indices.create = AsyncMock(side_effect=self._create)
        self.close = AsyncMock()

    def bulk_ids(self, call_index: int = -1) -> list[str]:
        lines = self.bulk_calls[call_index]["body"].strip("\n").split("\n")
        return [json.loads(line)["index"]["_id"] for line in lines[::2]]

    async def _exists(self, index):
        if self.unreachable:
            raise opensearch_exceptions.ConnectionError("N/A", "Connection refused", None)
        return index in self.indices_created

    async def _create(self, index, body=None):
        if index in self.indices_created:
            raise opensearch_exceptions.RequestError(
                400,
                "resource_already_exists_exception",
                {"error": {"type": "resource_already_exists_exception"}},
            )
        self.indices_created[index] = body
        self.documents.setdefault(index, {})

    async def bulk(self, body, **kwargs):
        self.bulk_calls.append({"body": body, **kwargs})
        if self.bulk_gate is not None:
            await self.bulk_gate.wait()
        if self.unreachable:
            raise opensearch_exceptions.ConnectionError("N/A", "Connection refused", None)

        lines = body.strip("\n").split("\n")
        items = []
        for action_line, source_line in zip(lines[::2], lines[1::2]):
            meta = json.loads(action_line)["index"]
            doc_id = meta["_id"]
            if doc_id in self.reject_ids:
                status, error_type, reason = self.reject_ids[doc_id]
                items.append(
                    {
                        "index": {
                            "_id": doc_id,
                            "status": status,
                            "error": {"type": error_type, "reason": reason},
                        }
                    }
                )
                continue
            store = self.documents.setdefault(meta["_index"], {})
            status = 200 if doc_id in store else 201
            store[doc_id] = json.loads(source_line)
            items.append({"index": {"_index": meta["_index"], "_id": doc_id, "status": status}})

        return {"took": 1, "errors": any("error" in i["index"] for i in items), "items": items}


class FakeStream:
    """Partitioned log with a read position per partition, like a Kafka consumer.

    fetch() reads forward from the position, rewind() seeks back, and
    commit() records the cursor the way the broker would.
    """

    def __init__(self, topic: str = TOPIC, batch_size: int = 100):
        self.topic = topic
        self.batch_size = batch_size
        self.log: dict[int, list[StreamRecord]] = {}
        self.positions: dict[int, int] = {}
        self.committed: dict[tuple[str, int], int] = {}
        self.commit_calls = 0
        self.rewind_calls: list[list[StreamRecord]] = []
        self.fetch_calls = 0
        self.block_when_empty = False
        self.fetch_error: Exception | None = None
        self.on_commit = None

    def append(self, value: bytes | str, partition: int = 0) -> StreamRecord:
        if isinstance(value, str):
            value = value.encode("utf-8")
        records = self.log.setdefault(partition, [])
        record = StreamRecord(
            topic=self.topic,
            partition=partition,
            offset=len(records),
            timestamp=0,
            value=value,
        )
        records.append(record)
        return record

    def append_event(self, event_id: str, partition: int = 0, **fields) -> StreamRecord:
        return self.append(json.dumps({"meta": {"id": event_id}, **fields}), partition)

    async def fetch(self) -> list[StreamRecord]:
        self.fetch_calls += 1
        if self.fetch_error is not None:
            error, self.fetch_error = self.fetch_error, None
            raise error

        records: list[StreamRecord] = []
        for partition in sorted(self.log):
            position = self.positions.get(partition, 0)
            taken = self.log[partition][position:][: self.batch_size - len(records)]
            records.extend(taken)
            self.positions[partition] = position + len(taken)

        if not records and self.block_when_empty:
            await asyncio.Event().wait()
        return records

    async def commit(self, cursor: CommitCursor) -> None:
        self.commit_calls += 1
        if self.on_commit is not None:
            self.on_commit()
        for tp, offset in cursor.snapshot().items():
            self.committed[(tp.topic, tp.partition)] = offset

    async def rewind(self, records: list[StreamRecord]) -> None:
        self.rewind_calls.append(list(records))
        for record in records:
            self.positions[record.partition] = min(
                self.positions.get(record.partition, 0), record.offset
            )


@pytest.fixture
def engine():
    return FakeSearchEngine()


@pytest.fixture
def stream():
    return FakeStream()
