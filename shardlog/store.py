"""
Transaction store over a single-shard stream.

The TransactionStore turns an append-only, single-shard stream into a
linearizable transaction log:
- Writers append opaque transactions through create_transaction_output()
- One reader replays them in order through poll_next_transaction()
- seek_transaction_poll() sets the resume point, e.g. from a checkpoint

Invariants:
    - The stream is ACTIVE and has exactly one shard when the store opens;
      this is not re-checked afterwards
    - Delivered positions are strictly increasing
    - Seeking to P resumes strictly after P; seeking to None/0 resumes at
      the oldest retained record
    - The resume position is not persisted; the caller owns checkpoints

How to change safely:
    - Never create, wait for or reshard the stream here
    - Keep the read path retry (throttling) and the write path (no retry)
      asymmetric unless a caller needs otherwise
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional

from .appender import DEFAULT_PARTITION_KEY, TransactionOutput
from .codec import TransactionInput
from .config import PollConfig, StoreConfig
from .cursor import ShardCursor
from .errors import ShardTopologyError, StreamNotActiveError
from .poller import PollEngine, PollState
from .rate_limiter import MinIntervalRateLimiter
from .wal.base import ShardBackend, create_shard_backend

logger = logging.getLogger(__name__)


class TransactionStore:
    """Linearizable transaction log backed by one stream shard.

    Use TransactionStore.open() rather than the constructor; it performs the
    topology check.

    Attributes:
        backend: Connected shard backend
        shard_id: The stream's only shard

    Example:
        >>> backend = InMemoryShardBackend("orders")
        >>> await backend.connect()
        >>> store = await TransactionStore.open(backend)
        >>> async with store.create_transaction_output() as out:
        ...     out.write(b"A")
        >>> tx = await store.poll_next_transaction()
        >>> tx.open().read()
        b'A'
    """

    def __init__(
        self,
        backend: ShardBackend,
        shard_id: str,
        poll_config: Optional[PollConfig] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        poll_config = poll_config or PollConfig()
        self.backend = backend
        self.shard_id = shard_id
        self._partition_key = poll_config.partition_key or DEFAULT_PARTITION_KEY
        self._poller = PollEngine(
            backend,
            shard_id,
            cursor=ShardCursor(),
            rate_limiter=MinIntervalRateLimiter(poll_config.min_cursor_interval_seconds, clock),
            throttle_backoff=poll_config.throttle_backoff_seconds,
        )

    @classmethod
    async def open(
        cls,
        backend: ShardBackend,
        poll_config: Optional[PollConfig] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> TransactionStore:
        """Open a store on an already active, single-shard stream.

        Args:
            backend: Connected backend bound to the stream
            poll_config: Read/write tuning
            clock: Monotonic clock for the cursor rate limiter

        Returns:
            A ready TransactionStore

        Raises:
            StreamNotActiveError: If the stream is not ACTIVE
            ShardTopologyError: If the stream does not have exactly one shard
            WalConnectionError: If the stream cannot be described
        """
        topology = await backend.describe_topology()
        if not topology.is_active:
            raise StreamNotActiveError(backend.stream_name, topology.status)
        if len(topology.shard_ids) != 1:
            raise ShardTopologyError(backend.stream_name, len(topology.shard_ids))

        shard_id = topology.shard_ids[0]
        logger.info(
            "Transaction store opened",
            extra={"stream": backend.stream_name, "shard": shard_id},
        )
        return cls(backend, shard_id, poll_config=poll_config, clock=clock)

    @property
    def stream_name(self) -> str:
        return self.backend.stream_name

    @property
    def last_transaction_id(self) -> Optional[int]:
        """Last delivered or seeked position, None if unset."""
        return self._poller.cursor.position

    @property
    def poll_state(self) -> PollState:
        """Where the last poll ended up."""
        return self._poller.state

    def create_transaction_output(self) -> TransactionOutput:
        """Create a buffered sink that publishes one transaction on close."""
        return TransactionOutput(self.backend, partition_key=self._partition_key)

    def seek_transaction_poll(self, latest_processed_transaction_id: Optional[int]) -> None:
        """Set the resume point for the next poll.

        Args:
            latest_processed_transaction_id: Last transaction the caller has
                processed; None or 0 restarts from the oldest retained record
        """
        self._poller.cursor.seek(latest_processed_transaction_id)
        logger.debug(
            "Transaction poll seeked",
            extra={
                "stream": self.stream_name,
                "position": str(latest_processed_transaction_id),
            },
        )

    async def poll_next_transaction(
        self, timeout: Optional[float] = None
    ) -> Optional[TransactionInput]:
        """Return the next transaction, or None if none is available now.

        Args:
            timeout: Accepted for interface compatibility, in seconds. A poll
                is bounded by backend latency plus throttling backoff, not by
                this value; callers re-poll to wait longer.

        Raises:
            WalInterruptedError: If cancelled while backing off from throttling
            ShardInvariantError: If the backend returned more than one record
            WalError: For other backend failures
        """
        return await self._poller.poll()

    async def close(self) -> None:
        """Close the underlying backend."""
        await self.backend.close()


async def create_transaction_store(config: StoreConfig) -> TransactionStore:
    """Connect a Kinesis backend from configuration and open a store on it.

    Raises:
        WalConnectionError: If Kinesis is unreachable or the stream is missing
        StreamNotActiveError: If the stream is not ACTIVE
        ShardTopologyError: If the stream does not have exactly one shard
    """
    backend = create_shard_backend(config.kinesis)
    await backend.connect()
    try:
        return await TransactionStore.open(backend, poll_config=config.poll)
    except BaseException:
        await backend.close()
        raise
