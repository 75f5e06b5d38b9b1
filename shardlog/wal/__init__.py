"""
Stream backend abstraction for shardlog.

This module provides a pluggable single-shard backend interface supporting:
- AWS Kinesis Data Streams (production)
- In-memory (for testing)

The backend stream is the source of truth for every transaction. The
transaction store only keeps a cursor into it.

Invariants:
    - publish() returns only after durable storage is confirmed
    - Records are totally ordered within the shard by sequence number
    - Throttling is reported as WalThroughputExceededError

How to change safely:
    - New backends must implement the ShardBackend protocol
    - Verify sequence number ordering matches Kinesis semantics
"""

from .base import (
    ACTIVE_STREAM_STATUS,
    BackendRecord,
    CursorMode,
    CursorRequest,
    ShardBackend,
    StreamTopology,
    WalConnectionError,
    WalError,
    WalThroughputExceededError,
    WalTimeoutError,
    create_shard_backend,
)
from .kinesis import KinesisShardBackend
from .memory import InMemoryShardBackend

__all__ = [
    # Protocol and types
    "ShardBackend",
    "StreamTopology",
    "CursorMode",
    "CursorRequest",
    "BackendRecord",
    "ACTIVE_STREAM_STATUS",
    # Errors
    "WalError",
    "WalConnectionError",
    "WalTimeoutError",
    "WalThroughputExceededError",
    # Factory
    "create_shard_backend",
    # Implementations
    "KinesisShardBackend",
    "InMemoryShardBackend",
]
