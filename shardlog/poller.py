"""
Poll engine: ordered, one-at-a-time replay of the shard.

Each poll:
    1. asks the rate limiter for a cursor-acquisition slot, and returns
       None without touching the backend if it is declined
    2. acquires a cursor at the trim horizon or after the last delivered
       position
    3. reads at most one record, retrying forever on throughput exceeded
       with a fixed backoff
    4. advances the shard cursor only when a record is delivered

State transitions:
    IDLE -> RATE_LIMITED
    IDLE -> CURSOR_ACQUIRED -> RETRIEVING -> DELIVERED | EMPTY
                                RETRIEVING -> THROTTLED -> RETRIEVING

Invariants:
    - At most one record is delivered per poll
    - The cursor moves exactly once per delivered record, never on EMPTY
    - Throughput exceeded never reaches the caller; cancellation during the
      backoff does, as WalInterruptedError
    - Not safe for concurrent polls; one engine per logical reader

How to change safely:
    - Keep the rate limiter in front of every acquire_cursor() call
    - Batch reads must still deliver and advance one record per poll
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Awaitable, Callable, Optional

from .codec import TransactionInput, decode_record
from .cursor import ShardCursor
from .errors import ShardInvariantError, WalInterruptedError
from .rate_limiter import MinIntervalRateLimiter
from .wal.base import BackendRecord, ShardBackend, WalThroughputExceededError

logger = logging.getLogger(__name__)

DEFAULT_THROTTLE_BACKOFF_SECONDS = 0.1

# TODO: fetch several records per GetRecords call and serve them from a
# local buffer; one record per call wastes the GetRecords budget.
RECORDS_PER_READ = 1


class PollState(Enum):
    """Where the last poll ended up."""

    IDLE = "idle"
    RATE_LIMITED = "rate_limited"
    CURSOR_ACQUIRED = "cursor_acquired"
    RETRIEVING = "retrieving"
    THROTTLED = "throttled"
    DELIVERED = "delivered"
    EMPTY = "empty"


class PollEngine:
    """Pulls transactions from a single shard in order.

    Attributes:
        backend: Connected shard backend
        shard_id: The stream's only shard
        cursor: Last delivered position
        rate_limiter: Guard for cursor acquisition
        throttle_backoff: Seconds to wait after a throttled read
    """

    def __init__(
        self,
        backend: ShardBackend,
        shard_id: str,
        cursor: Optional[ShardCursor] = None,
        rate_limiter: Optional[MinIntervalRateLimiter] = None,
        throttle_backoff: float = DEFAULT_THROTTLE_BACKOFF_SECONDS,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.backend = backend
        self.shard_id = shard_id
        self.cursor = cursor or ShardCursor()
        self.rate_limiter = rate_limiter or MinIntervalRateLimiter()
        self.throttle_backoff = throttle_backoff
        self._sleep = sleep
        self._state = PollState.IDLE
        self.throttled_reads = 0

    @property
    def state(self) -> PollState:
        return self._state

    async def poll(self) -> Optional[TransactionInput]:
        """Deliver the next transaction, or None if none is available now.

        Raises:
            WalInterruptedError: If cancelled while backing off
            ShardInvariantError: If the backend returned several records
            WalError: For non-throttling backend failures
        """
        self._state = PollState.IDLE
        if not self.rate_limiter.try_acquire():
            self._state = PollState.RATE_LIMITED
            return None

        request = self.cursor.next_request()
        cursor_token = await self.backend.acquire_cursor(self.shard_id, request)
        self._state = PollState.CURSOR_ACQUIRED

        records = await self._read_with_backoff(cursor_token)
        if not records:
            self._state = PollState.EMPTY
            return None
        if len(records) > RECORDS_PER_READ:
            raise ShardInvariantError(self.backend.stream_name, self.shard_id, len(records))

        transaction = decode_record(records[0])
        self.cursor.advance(transaction.transaction_id)
        self._state = PollState.DELIVERED

        logger.debug(
            "Transaction delivered",
            extra={
                "stream": self.backend.stream_name,
                "shard": self.shard_id,
                "sequence": transaction.sequence_number,
                "mode": request.mode.value,
            },
        )
        return transaction

    async def _read_with_backoff(self, cursor_token: str) -> list[BackendRecord]:
        while True:
            self._state = PollState.RETRIEVING
            try:
                return await self.backend.read_records(cursor_token, RECORDS_PER_READ)
            except WalThroughputExceededError:
                self._state = PollState.THROTTLED
                self.throttled_reads += 1
                logger.debug(
                    "Read throughput exceeded, backing off",
                    extra={
                        "stream": self.backend.stream_name,
                        "shard": self.shard_id,
                        "backoff_seconds": self.throttle_backoff,
                    },
                )

            try:
                await self._sleep(self.throttle_backoff)
            except asyncio.CancelledError as e:
                raise WalInterruptedError(self.backend.stream_name, self.shard_id) from e
