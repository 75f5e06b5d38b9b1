"""
In-memory shard backend for testing.

This module provides an in-memory ShardBackend for:
- Unit tests
- Integration tests
- Local development without Kinesis or LocalStack

Invariants:
    - All data is lost on process exit
    - Sequence numbers are large, strictly increasing and non-contiguous,
      like Kinesis sequence numbers
    - Cursors are snapshots of a starting index, like shard iterators

How to change safely:
    - This is test-only code, changes don't affect production
    - Keep interface compatible with the ShardBackend protocol
    - Add features to help with testing scenarios
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .base import (
    ACTIVE_STREAM_STATUS,
    BackendRecord,
    CursorMode,
    CursorRequest,
    StreamTopology,
    WalConnectionError,
    WalError,
    WalThroughputExceededError,
)

logger = logging.getLogger(__name__)

# Same magnitude as real Kinesis sequence numbers (well beyond 64 bits)
FIRST_SEQUENCE_NUMBER = 49_590_338_271_490_256_608_559_692_538_361_571_095_921_575_989_136_588_898
SEQUENCE_STEP = 1_000_003


@dataclass
class InMemoryShard:
    """In-memory shard storage."""
    shard_id: str
    records: List[BackendRecord] = field(default_factory=list)
    next_sequence_number: int = FIRST_SEQUENCE_NUMBER


class InMemoryShardBackend:
    """In-memory implementation of ShardBackend for testing.

    Besides the protocol, it offers knobs to reproduce backend behaviour:
    stream status, shard count, throttled reads, trimming of old records,
    failing publishes, and per-operation call counters.

    Example:
        >>> backend = InMemoryShardBackend("orders")
        >>> await backend.connect()
        >>> await backend.publish(b"payload", "key")
        >>> backend.calls["publish"]
        1
    """

    def __init__(
        self,
        stream_name: str = "shardlog-test",
        shard_count: int = 1,
        status: Optional[str] = ACTIVE_STREAM_STATUS,
    ) -> None:
        """Initialize the in-memory backend.

        Args:
            stream_name: Stream name reported by describe_topology()
            shard_count: Number of shards to simulate
            status: Stream status reported by describe_topology()
        """
        self._stream_name = stream_name
        self.status = status
        self._shards: Dict[str, InMemoryShard] = {}
        for i in range(shard_count):
            shard_id = f"shardId-{i:012d}"
            self._shards[shard_id] = InMemoryShard(shard_id=shard_id)
        self._cursors: Dict[str, tuple[str, int]] = {}
        self._connected = False
        self._lock = asyncio.Lock()

        self.calls: Counter[str] = Counter()
        self._throttled_reads = 0
        self._publish_error: Optional[Exception] = None
        self._oversized_reads = False

    @property
    def stream_name(self) -> str:
        return self._stream_name

    @property
    def is_connected(self) -> bool:
        """Whether connected (always true after connect())."""
        return self._connected

    async def connect(self) -> None:
        """Connect (no-op for in-memory)."""
        self._connected = True
        logger.debug("InMemoryShardBackend connected", extra={"stream": self._stream_name})

    async def close(self) -> None:
        """Close and forget outstanding cursors."""
        self._connected = False
        self._cursors.clear()
        logger.debug("InMemoryShardBackend closed", extra={"stream": self._stream_name})

    async def describe_topology(self) -> StreamTopology:
        self._require_connected()
        self.calls["describe_topology"] += 1
        return StreamTopology(
            stream_name=self._stream_name,
            status=self.status,
            shard_ids=tuple(self._shards),
        )

    async def acquire_cursor(self, shard_id: str, request: CursorRequest) -> str:
        self._require_connected()
        self.calls["acquire_cursor"] += 1
        shard = self._get_shard(shard_id)

        if request.mode is CursorMode.TRIM_HORIZON:
            start = 0
        else:
            after = int(request.sequence_number)
            start = len(shard.records)
            for index, record in enumerate(shard.records):
                if int(record.sequence_number) > after:
                    start = index
                    break

        # Shard iterators pin an absolute position, not a list index
        start_sequence = (
            int(shard.records[start].sequence_number)
            if start < len(shard.records)
            else shard.next_sequence_number
        )
        cursor = uuid.uuid4().hex
        self._cursors[cursor] = (shard_id, start_sequence)
        return cursor

    async def read_records(self, cursor: str, limit: int) -> list[BackendRecord]:
        self._require_connected()
        self.calls["read_records"] += 1

        if self._throttled_reads > 0:
            self._throttled_reads -= 1
            self.calls["throttled_reads"] += 1
            raise WalThroughputExceededError("Rate exceeded for shard")

        try:
            shard_id, start_sequence = self._cursors[cursor]
        except KeyError:
            raise WalError(f"Unknown or expired cursor: {cursor}") from None

        shard = self._shards[shard_id]
        available = [r for r in shard.records if int(r.sequence_number) >= start_sequence]
        if self._oversized_reads:
            return available[: limit + 1]
        return available[:limit]

    async def publish(self, data: bytes, partition_key: str) -> BackendRecord:
        self._require_connected()
        self.calls["publish"] += 1

        if self._publish_error is not None:
            error, self._publish_error = self._publish_error, None
            raise error

        # Single-shard streams are the only ones this adapter reads; route
        # every record to the first shard.
        async with self._lock:
            shard = next(iter(self._shards.values()))
            record = BackendRecord(
                sequence_number=str(shard.next_sequence_number),
                data=bytes(data),
                partition_key=partition_key,
                shard_id=shard.shard_id,
            )
            shard.records.append(record)
            shard.next_sequence_number += SEQUENCE_STEP

        logger.debug(
            "Record appended to in-memory shard",
            extra={"stream": self._stream_name, "sequence": record.sequence_number},
        )
        return record

    def _require_connected(self) -> None:
        if not self._connected:
            raise WalConnectionError("Not connected")

    def _get_shard(self, shard_id: str) -> InMemoryShard:
        try:
            return self._shards[shard_id]
        except KeyError:
            raise WalError(f"Shard {shard_id} not found in stream {self._stream_name}") from None

    # Testing helpers

    def throttle_next_reads(self, count: int) -> None:
        """Make the next `count` read_records() calls raise throughput exceeded."""
        self._throttled_reads = count

    def fail_next_publish(self, error: Exception) -> None:
        """Make the next publish() raise `error`."""
        self._publish_error = error

    def return_oversized_reads(self, enabled: bool = True) -> None:
        """Make read_records() return one record more than requested."""
        self._oversized_reads = enabled

    def trim(self, count: int) -> None:
        """Drop the `count` oldest records, moving the trim horizon forward."""
        for shard in self._shards.values():
            del shard.records[:count]

    def get_all_records(self) -> List[BackendRecord]:
        """Get all retained records across shards (testing helper)."""
        records: List[BackendRecord] = []
        for shard_id in sorted(self._shards):
            records.extend(self._shards[shard_id].records)
        return records

    def get_record_count(self) -> int:
        """Get retained record count (testing helper)."""
        return sum(len(shard.records) for shard in self._shards.values())
