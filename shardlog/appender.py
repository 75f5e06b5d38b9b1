"""
Append engine: one buffered write per transaction.

A TransactionOutput collects bytes in memory and publishes them as a
single record when closed. Nothing reaches the backend before close().

Invariants:
    - One output publishes at most one record
    - Publish failures propagate unchanged and are not retried
    - Outputs are independent; concurrent writers need no locking
"""

from __future__ import annotations

import logging
from types import TracebackType
from typing import Optional, Type

from .codec import encode_payload, parse_sequence_number
from .errors import TransactionOutputClosedError
from .wal.base import ShardBackend

logger = logging.getLogger(__name__)

# The shard is fixed, so routing by key is irrelevant; PutRecord still needs one.
DEFAULT_PARTITION_KEY = "uselessPartitionKey"


class TransactionOutput:
    """Write-once byte sink for a single transaction.

    Example:
        >>> async with store.create_transaction_output() as out:
        ...     out.write(b'{"op": "create"}')
        >>> out.transaction_id
        49590338271490256608559692538361571095921575989136588898
    """

    def __init__(
        self,
        backend: ShardBackend,
        partition_key: str = DEFAULT_PARTITION_KEY,
    ) -> None:
        self._backend = backend
        self._partition_key = partition_key
        self._buffer = bytearray()
        self._closed = False
        self.transaction_id: Optional[int] = None

    @property
    def closed(self) -> bool:
        return self._closed

    def write(self, data: bytes) -> int:
        """Buffer bytes for the transaction.

        Returns:
            Number of bytes buffered
        """
        if self._closed:
            raise TransactionOutputClosedError(self._backend.stream_name)
        self._buffer.extend(data)
        return len(data)

    async def close(self) -> int:
        """Publish the buffered bytes as one record.

        Returns:
            The sequence position assigned by the backend
        """
        if self._closed:
            raise TransactionOutputClosedError(self._backend.stream_name)
        self._closed = True

        payload = encode_payload(self._buffer)
        self._buffer = bytearray()
        record = await self._backend.publish(payload, self._partition_key)
        self.transaction_id = parse_sequence_number(record.sequence_number)

        logger.debug(
            "Transaction appended",
            extra={
                "stream": self._backend.stream_name,
                "sequence": record.sequence_number,
                "size": len(payload),
            },
        )
        return self.transaction_id

    def discard(self) -> None:
        """Drop the buffer without publishing."""
        self._closed = True
        self._buffer = bytearray()

    async def __aenter__(self) -> TransactionOutput:
        return self

    async def __aexit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc: Optional[BaseException],
        tb: Optional[TracebackType],
    ) -> None:
        if exc_type is not None:
            self.discard()
            return
        if not self._closed:
            await self.close()
