"""
Base protocol and types for the single-shard stream backend.

This module defines the ShardBackend protocol that every stream backend
must implement, along with the request/response types and the backend
error family.

The protocol is deliberately narrow. It exposes exactly what the
transaction store needs from a stream:
    - describe_topology(): stream status and shard ids
    - acquire_cursor(): a read cursor at the trim horizon or after a position
    - read_records(): up to N records from a cursor
    - publish(): append one record

Invariants:
    - Sequence numbers are non-negative integers, totally ordered per shard
    - Sequence numbers travel as decimal strings, like Kinesis sends them
    - read_records() raises WalThroughputExceededError on throttling,
      never returns a partial error result

How to change safely:
    - Protocol changes require updating every implementation
    - Keep vendor-specific shapes inside the implementations
"""

from __future__ import annotations

from abc import abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Optional, Protocol, Sequence, runtime_checkable
import logging

if TYPE_CHECKING:
    from ..config import KinesisConfig

logger = logging.getLogger(__name__)

ACTIVE_STREAM_STATUS = "ACTIVE"


class WalError(Exception):
    """Base exception for stream backend operations."""
    pass


class WalConnectionError(WalError):
    """Connection to the stream backend failed."""
    pass


class WalTimeoutError(WalError):
    """Stream backend operation timed out."""
    pass


class WalThroughputExceededError(WalError):
    """The backend rejected a request because the request rate is too high.

    This is a transient condition. The read path retries it; the write
    path propagates it to the caller.
    """
    pass


class CursorMode(Enum):
    """Where a read cursor starts."""

    TRIM_HORIZON = "TRIM_HORIZON"
    AFTER_SEQUENCE_NUMBER = "AFTER_SEQUENCE_NUMBER"


@dataclass(frozen=True)
class CursorRequest:
    """A request for a read cursor.

    Attributes:
        mode: Starting mode
        sequence_number: Decimal sequence number, required for
            AFTER_SEQUENCE_NUMBER and absent for TRIM_HORIZON
    """
    mode: CursorMode
    sequence_number: Optional[str] = None

    def __post_init__(self) -> None:
        if self.mode is CursorMode.AFTER_SEQUENCE_NUMBER and not self.sequence_number:
            raise ValueError("AFTER_SEQUENCE_NUMBER requires a sequence number")
        if self.mode is CursorMode.TRIM_HORIZON and self.sequence_number is not None:
            raise ValueError("TRIM_HORIZON does not take a sequence number")


@dataclass(frozen=True)
class StreamTopology:
    """Description of a stream as reported by the backend.

    Attributes:
        stream_name: Stream name
        status: Stream status (ACTIVE, CREATING, UPDATING, DELETING, ...)
        shard_ids: Ids of the shards currently in the stream
    """
    stream_name: str
    status: Optional[str]
    shard_ids: Sequence[str]

    @property
    def is_active(self) -> bool:
        return self.status == ACTIVE_STREAM_STATUS


@dataclass(frozen=True)
class BackendRecord:
    """A record as returned by the backend.

    Attributes:
        sequence_number: Decimal sequence number assigned on append
        data: Record payload
        partition_key: Partition key it was published with
        shard_id: Shard the record was written to (set by publish only)
    """
    sequence_number: str
    data: bytes
    partition_key: str = ""
    shard_id: Optional[str] = None

    def __str__(self) -> str:
        return f"BackendRecord(seq={self.sequence_number}, size={len(self.data)})"


@runtime_checkable
class ShardBackend(Protocol):
    """Protocol for single-shard stream backends.

    Example:
        >>> backend = KinesisShardBackend(config)
        >>> await backend.connect()
        >>> topology = await backend.describe_topology()
        >>> cursor = await backend.acquire_cursor(
        ...     topology.shard_ids[0], CursorRequest(CursorMode.TRIM_HORIZON)
        ... )
        >>> records = await backend.read_records(cursor, limit=1)
    """

    @property
    @abstractmethod
    def stream_name(self) -> str:
        """Name of the stream this backend is bound to."""
        ...

    @property
    @abstractmethod
    def is_connected(self) -> bool:
        """Whether currently connected to the backend."""
        ...

    @abstractmethod
    async def connect(self) -> None:
        """Connect to the backend.

        Raises:
            WalConnectionError: If connection fails
        """
        ...

    @abstractmethod
    async def close(self) -> None:
        """Release backend resources."""
        ...

    @abstractmethod
    async def describe_topology(self) -> StreamTopology:
        """Describe the stream status and its shards.

        Raises:
            WalConnectionError: If the stream does not exist or is unreachable
        """
        ...

    @abstractmethod
    async def acquire_cursor(self, shard_id: str, request: CursorRequest) -> str:
        """Obtain an opaque read cursor for a shard.

        Args:
            shard_id: Shard to read
            request: Where the cursor starts

        Returns:
            Opaque cursor token
        """
        ...

    @abstractmethod
    async def read_records(self, cursor: str, limit: int) -> list[BackendRecord]:
        """Read up to `limit` records from a cursor.

        Raises:
            WalThroughputExceededError: If the read rate is too high
        """
        ...

    @abstractmethod
    async def publish(self, data: bytes, partition_key: str) -> BackendRecord:
        """Append one record to the stream.

        Returns only after the backend acknowledged the write.

        Returns:
            The record with its assigned sequence number

        Raises:
            WalThroughputExceededError: If the write rate is too high
            WalError: For other write failures
        """
        ...


def create_shard_backend(config: "KinesisConfig") -> ShardBackend:
    """Factory function to create a Kinesis backend from configuration.

    Args:
        config: Kinesis configuration

    Returns:
        An unconnected KinesisShardBackend
    """
    from .kinesis import KinesisShardBackend

    return KinesisShardBackend(config)
