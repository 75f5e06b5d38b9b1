"""
shardlog - a linearizable transaction log over a single-shard stream.

Producers append opaque transactions; a single consumer replays them in
order from any resume point. The stream (AWS Kinesis, or an in-memory
stand-in for tests) is the only storage.

Architecture:
    ┌──────────┐  TransactionOutput   ┌───────────────────────┐
    │ Writers  │─────────────────────▶│                       │
    └──────────┘   (PutRecord)        │  Single-shard stream  │
                                      │   (Kinesis / memory)  │
    ┌──────────┐  poll_next_          │                       │
    │  Reader  │◀─────────────────────│                       │
    └──────────┘  transaction()       └───────────────────────┘
         │          GetShardIterator (rate limited)
         │          GetRecords (retried when throttled)
         ▼
    caller-owned checkpoint ──▶ seek_transaction_poll()

Invariants:
    - The stream has exactly one shard and is ACTIVE when the store opens
    - Transactions are delivered in sequence order, one per poll
    - The store never persists its resume position
"""

from ._version import __version__
from .appender import TransactionOutput
from .codec import TransactionInput
from .config import KinesisConfig, ObservabilityConfig, PollConfig, StoreConfig
from .errors import (
    ShardInvariantError,
    ShardTopologyError,
    StreamNotActiveError,
    TransactionOutputClosedError,
    TransactionStoreError,
    WalInterruptedError,
)
from .poller import PollState
from .store import TransactionStore, create_transaction_store

__all__ = [
    "__version__",
    # Store
    "TransactionStore",
    "TransactionInput",
    "TransactionOutput",
    "PollState",
    "create_transaction_store",
    # Configuration
    "StoreConfig",
    "KinesisConfig",
    "PollConfig",
    "ObservabilityConfig",
    # Errors
    "TransactionStoreError",
    "StreamNotActiveError",
    "ShardTopologyError",
    "WalInterruptedError",
    "ShardInvariantError",
    "TransactionOutputClosedError",
]
