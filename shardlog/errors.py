"""
Error types for the transaction store.

This module defines the exceptions raised by the store itself:
- TransactionStoreError: Base exception
- StreamNotActiveError: Stream is missing or not ACTIVE at open time
- ShardTopologyError: Stream does not have exactly one shard
- WalInterruptedError: Cancelled while backing off from throttling
- ShardInvariantError: Backend returned more records than requested
- TransactionOutputClosedError: Append sink used after close

Backend failures (WalError and subclasses) are not wrapped; they reach
the caller unchanged.

Invariants:
    - All store errors inherit from TransactionStoreError
    - Errors carry stream name and shard id where they are known
    - None of these errors is retryable
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class TransactionStoreError(Exception):
    """Base exception for all transaction store errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or "TRANSACTION_STORE_ERROR"
        self.details = details or {}


class StreamNotActiveError(TransactionStoreError):
    """The stream does not exist or is not in the ACTIVE state."""

    def __init__(self, stream_name: str, status: Optional[str]) -> None:
        super().__init__(
            f"Stream does not exist or is not active: {stream_name} (status={status})",
            code="STREAM_NOT_ACTIVE",
            details={"stream_name": stream_name, "status": status},
        )
        self.stream_name = stream_name
        self.status = status


class ShardTopologyError(TransactionStoreError):
    """The stream does not contain exactly one shard."""

    def __init__(self, stream_name: str, shard_count: int) -> None:
        super().__init__(
            f"Stream {stream_name} should contain a single shard, "
            f"but it contains {shard_count} shards",
            code="SHARD_TOPOLOGY",
            details={"stream_name": stream_name, "shard_count": shard_count},
        )
        self.stream_name = stream_name
        self.shard_count = shard_count


class WalInterruptedError(TransactionStoreError):
    """Cancelled while waiting for read throughput to recover."""

    def __init__(self, stream_name: str, shard_id: str) -> None:
        super().__init__(
            "Interrupted while waiting for provisioned throughput to recover",
            code="INTERRUPTED",
            details={"stream_name": stream_name, "shard_id": shard_id},
        )
        self.stream_name = stream_name
        self.shard_id = shard_id


class ShardInvariantError(TransactionStoreError):
    """The backend returned more records than a single-record read allows."""

    def __init__(self, stream_name: str, shard_id: str, record_count: int) -> None:
        super().__init__(
            f"Backend should not return more than one record, and returned {record_count}",
            code="SHARD_INVARIANT",
            details={
                "stream_name": stream_name,
                "shard_id": shard_id,
                "record_count": record_count,
            },
        )
        self.record_count = record_count


class TransactionOutputClosedError(TransactionStoreError):
    """A transaction output was written to or closed after being closed."""

    def __init__(self, stream_name: str) -> None:
        super().__init__(
            "Transaction output is already closed",
            code="OUTPUT_CLOSED",
            details={"stream_name": stream_name},
        )
