"""
Unit tests for TransactionOutput.
"""

import asyncio

import pytest

from shardlog.appender import DEFAULT_PARTITION_KEY, TransactionOutput
from shardlog.errors import TransactionOutputClosedError
from shardlog.wal.base import WalThroughputExceededError
from shardlog.wal.memory import InMemoryShardBackend


class TestTransactionOutput:
    """Tests for the buffered append sink."""

    @pytest.fixture
    def backend(self):
        return InMemoryShardBackend("orders")

    @pytest.mark.asyncio
    async def test_nothing_published_before_close(self, backend):
        """Writes are buffered and published once on close."""
        await backend.connect()
        output = TransactionOutput(backend)

        output.write(b"part1-")
        output.write(b"part2")
        assert backend.calls["publish"] == 0

        position = await output.close()

        records = backend.get_all_records()
        assert [r.data for r in records] == [b"part1-part2"]
        assert position == int(records[0].sequence_number)
        assert output.transaction_id == position

    @pytest.mark.asyncio
    async def test_uses_constant_partition_key(self, backend):
        """Records use the fixed partition key."""
        await backend.connect()

        async with TransactionOutput(backend) as output:
            output.write(b"A")

        assert backend.get_all_records()[0].partition_key == DEFAULT_PARTITION_KEY

    @pytest.mark.asyncio
    async def test_empty_transaction_is_published(self, backend):
        """Closing without writes still publishes an empty record."""
        await backend.connect()

        async with TransactionOutput(backend):
            pass

        assert [r.data for r in backend.get_all_records()] == [b""]

    @pytest.mark.asyncio
    async def test_write_after_close_fails(self, backend):
        """A closed output rejects writes and a second close."""
        await backend.connect()
        output = TransactionOutput(backend)
        await output.close()

        with pytest.raises(TransactionOutputClosedError):
            output.write(b"late")
        with pytest.raises(TransactionOutputClosedError):
            await output.close()
        assert backend.calls["publish"] == 1

    @pytest.mark.asyncio
    async def test_exception_in_body_discards(self, backend):
        """An exception inside async with discards the buffer."""
        await backend.connect()

        with pytest.raises(RuntimeError):
            async with TransactionOutput(backend) as output:
                output.write(b"half")
                raise RuntimeError("boom")

        assert output.closed
        assert backend.calls["publish"] == 0

    @pytest.mark.asyncio
    async def test_publish_errors_propagate_without_retry(self, backend):
        """Publish failures reach the writer after one attempt."""
        await backend.connect()
        backend.fail_next_publish(WalThroughputExceededError("slow down"))
        output = TransactionOutput(backend)
        output.write(b"A")

        with pytest.raises(WalThroughputExceededError):
            await output.close()

        assert backend.calls["publish"] == 1
        assert backend.get_record_count() == 0

    @pytest.mark.asyncio
    async def test_concurrent_writers_are_independent(self, backend):
        """Concurrent outputs each publish their own record."""
        await backend.connect()

        async def write(payload):
            async with TransactionOutput(backend) as output:
                output.write(payload)
            return output.transaction_id

        positions = await asyncio.gather(*(write(f"tx-{i}".encode()) for i in range(20)))

        assert len(set(positions)) == 20
        assert sorted(r.data for r in backend.get_all_records()) == sorted(
            f"tx-{i}".encode() for i in range(20)
        )
