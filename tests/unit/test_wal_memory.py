"""
Unit tests for the in-memory shard backend.

Tests cover:
- Connection lifecycle
- Topology reporting
- Cursor modes and ordering
- Testing helpers (throttling, trimming, failures)
"""

import pytest

from shardlog.wal.base import (
    CursorMode,
    CursorRequest,
    ShardBackend,
    WalConnectionError,
    WalError,
    WalThroughputExceededError,
)
from shardlog.wal.memory import InMemoryShardBackend


class TestInMemoryShardBackend:
    """Tests for InMemoryShardBackend."""

    @pytest.fixture
    def backend(self):
        """Create a fresh single-shard backend."""
        return InMemoryShardBackend("orders")

    def test_implements_protocol(self, backend):
        """The fake satisfies the backend protocol."""
        assert isinstance(backend, ShardBackend)

    @pytest.mark.asyncio
    async def test_connect_disconnect(self, backend):
        """Test connection lifecycle."""
        assert not backend.is_connected

        await backend.connect()
        assert backend.is_connected

        await backend.close()
        assert not backend.is_connected

    @pytest.mark.asyncio
    async def test_publish_requires_connection(self, backend):
        """Publish fails if not connected."""
        with pytest.raises(WalConnectionError):
            await backend.publish(b"value", "key")

    @pytest.mark.asyncio
    async def test_describe_topology(self):
        """Topology reflects status and shard count."""
        backend = InMemoryShardBackend("orders", shard_count=3, status="UPDATING")
        await backend.connect()

        topology = await backend.describe_topology()

        assert topology.stream_name == "orders"
        assert topology.status == "UPDATING"
        assert not topology.is_active
        assert list(topology.shard_ids) == [
            "shardId-000000000000",
            "shardId-000000000001",
            "shardId-000000000002",
        ]

    @pytest.mark.asyncio
    async def test_publish_assigns_increasing_sequence_numbers(self, backend):
        """Sequence numbers increase with each publish."""
        await backend.connect()

        first = await backend.publish(b"A", "key")
        second = await backend.publish(b"B", "key")

        assert int(second.sequence_number) > int(first.sequence_number)
        # Kinesis sequence numbers do not fit in 64 bits
        assert int(first.sequence_number) > 2**64
        assert first.shard_id == "shardId-000000000000"

    @pytest.mark.asyncio
    async def test_trim_horizon_reads_oldest(self, backend):
        """Trim horizon cursors start at the oldest record."""
        await backend.connect()
        await backend.publish(b"A", "key")
        await backend.publish(b"B", "key")

        cursor = await backend.acquire_cursor(
            "shardId-000000000000", CursorRequest(CursorMode.TRIM_HORIZON)
        )
        records = await backend.read_records(cursor, limit=10)

        assert [r.data for r in records] == [b"A", b"B"]

    @pytest.mark.asyncio
    async def test_after_sequence_number_is_exclusive(self, backend):
        """After-sequence cursors skip the named record."""
        await backend.connect()
        first = await backend.publish(b"A", "key")
        await backend.publish(b"B", "key")

        cursor = await backend.acquire_cursor(
            "shardId-000000000000",
            CursorRequest(CursorMode.AFTER_SEQUENCE_NUMBER, first.sequence_number),
        )
        records = await backend.read_records(cursor, limit=1)

        assert [r.data for r in records] == [b"B"]

    @pytest.mark.asyncio
    async def test_cursor_sees_records_appended_later(self, backend):
        """Cursors see records published after acquisition."""
        await backend.connect()
        cursor = await backend.acquire_cursor(
            "shardId-000000000000", CursorRequest(CursorMode.TRIM_HORIZON)
        )

        assert await backend.read_records(cursor, limit=1) == []

        await backend.publish(b"late", "key")
        records = await backend.read_records(cursor, limit=1)
        assert [r.data for r in records] == [b"late"]

    @pytest.mark.asyncio
    async def test_unknown_shard(self, backend):
        """Unknown shards are rejected."""
        await backend.connect()
        with pytest.raises(WalError):
            await backend.acquire_cursor("shardId-999", CursorRequest(CursorMode.TRIM_HORIZON))

    @pytest.mark.asyncio
    async def test_unknown_cursor(self, backend):
        """Unknown cursors are rejected."""
        await backend.connect()
        with pytest.raises(WalError):
            await backend.read_records("nope", limit=1)

    @pytest.mark.asyncio
    async def test_throttle_next_reads_helper(self, backend):
        """Throttled reads raise and are counted."""
        await backend.connect()
        await backend.publish(b"A", "key")
        cursor = await backend.acquire_cursor(
            "shardId-000000000000", CursorRequest(CursorMode.TRIM_HORIZON)
        )
        backend.throttle_next_reads(2)

        for _ in range(2):
            with pytest.raises(WalThroughputExceededError):
                await backend.read_records(cursor, limit=1)

        records = await backend.read_records(cursor, limit=1)
        assert [r.data for r in records] == [b"A"]
        assert backend.calls["throttled_reads"] == 2
        assert backend.calls["read_records"] == 3

    @pytest.mark.asyncio
    async def test_trim_helper_moves_trim_horizon(self, backend):
        """Trimming drops the oldest records."""
        await backend.connect()
        for payload in (b"A", b"B", b"C"):
            await backend.publish(payload, "key")

        backend.trim(2)

        cursor = await backend.acquire_cursor(
            "shardId-000000000000", CursorRequest(CursorMode.TRIM_HORIZON)
        )
        records = await backend.read_records(cursor, limit=10)
        assert [r.data for r in records] == [b"C"]
        assert backend.get_record_count() == 1

    @pytest.mark.asyncio
    async def test_fail_next_publish_helper(self, backend):
        """An injected publish failure is raised once."""
        await backend.connect()
        backend.fail_next_publish(WalThroughputExceededError("slow down"))

        with pytest.raises(WalThroughputExceededError):
            await backend.publish(b"A", "key")

        await backend.publish(b"B", "key")
        assert [r.data for r in backend.get_all_records()] == [b"B"]

    @pytest.mark.asyncio
    async def test_close_forgets_cursors(self, backend):
        """Cursors do not survive close."""
        await backend.connect()
        cursor = await backend.acquire_cursor(
            "shardId-000000000000", CursorRequest(CursorMode.TRIM_HORIZON)
        )

        await backend.close()
        await backend.connect()

        with pytest.raises(WalError):
            await backend.read_records(cursor, limit=1)


class TestCursorRequest:
    """Tests for CursorRequest validation."""

    def test_after_requires_sequence_number(self):
        """After-sequence requests need a sequence number."""
        with pytest.raises(ValueError):
            CursorRequest(CursorMode.AFTER_SEQUENCE_NUMBER)

    def test_trim_horizon_rejects_sequence_number(self):
        """Trim horizon requests take no sequence number."""
        with pytest.raises(ValueError):
            CursorRequest(CursorMode.TRIM_HORIZON, "123")
