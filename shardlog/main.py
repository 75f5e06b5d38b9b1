"""
shardlog command line entry point.

Usage:
    python -m shardlog.main append "payload"
    python -m shardlog.main tail [--after SEQUENCE] [--count N] [--idle-seconds S]

Configuration is entirely via environment variables.
See config.py for all available settings.

Invariants:
    - The stream must already exist, be ACTIVE and have a single shard
    - tail never persists its position; pass --after to resume
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
import time
from typing import Optional

import json_log_formatter

from .codec import parse_sequence_number
from .config import StoreConfig
from .errors import TransactionStoreError
from .store import TransactionStore, create_transaction_store
from .wal.base import WalError

logger = logging.getLogger(__name__)


def setup_logging(config: StoreConfig, verbose: bool = False) -> None:
    """Configure logging based on configuration.

    Args:
        config: Store configuration
        verbose: Force DEBUG level
    """
    level_name = "DEBUG" if verbose else config.observability.log_level.upper()
    level = getattr(logging, level_name, logging.INFO)

    if config.observability.log_format == "json":
        formatter: logging.Formatter = json_log_formatter.JSONFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [handler]

    # Reduce noise from libraries
    logging.getLogger("botocore").setLevel(logging.WARNING)
    logging.getLogger("aiobotocore").setLevel(logging.WARNING)


async def append(store: TransactionStore, payload: bytes) -> int:
    """Publish one transaction and return its position."""
    async with store.create_transaction_output() as output:
        output.write(payload)
    return output.transaction_id


async def tail(
    store: TransactionStore,
    after: Optional[int] = None,
    count: Optional[int] = None,
    idle_seconds: float = 5.0,
    poll_interval: float = 0.25,
) -> int:
    """Print transactions in order until `count` are read or the shard stays idle.

    Returns:
        Number of transactions printed
    """
    store.seek_transaction_poll(after)
    delivered = 0
    last_delivery = time.monotonic()

    while count is None or delivered < count:
        transaction = await store.poll_next_transaction()
        if transaction is None:
            if time.monotonic() - last_delivery >= idle_seconds:
                break
            await asyncio.sleep(poll_interval)
            continue

        delivered += 1
        last_delivery = time.monotonic()
        with transaction.open() as body:
            text = body.read().decode("utf-8", errors="replace")
        print(f"{transaction.sequence_number}\t{text}")

    logger.info(
        "Tail finished",
        extra={
            "stream": store.stream_name,
            "delivered": delivered,
            "last_position": str(store.last_transaction_id),
        },
    )
    return delivered


async def run(args: argparse.Namespace, config: StoreConfig) -> int:
    store = await create_transaction_store(config)
    try:
        if args.command == "append":
            position = await append(store, args.payload.encode("utf-8"))
            print(position)
        else:
            await tail(store, after=args.after, count=args.count, idle_seconds=args.idle_seconds)
    finally:
        await store.close()
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Append to or tail a single-shard transaction log")
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")
    subparsers = parser.add_subparsers(dest="command", required=True)

    append_parser = subparsers.add_parser("append", help="Append one transaction")
    append_parser.add_argument("payload", help="Transaction body (UTF-8 text)")

    tail_parser = subparsers.add_parser("tail", help="Replay transactions in order")
    tail_parser.add_argument(
        "--after", type=parse_sequence_number, help="Resume after this sequence number"
    )
    tail_parser.add_argument("--count", type=int, help="Stop after N transactions")
    tail_parser.add_argument(
        "--idle-seconds", type=float, default=5.0, help="Stop after this long without data"
    )
    return parser


def main() -> None:
    """CLI entry point."""
    args = build_parser().parse_args()

    try:
        config = StoreConfig.from_env()
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(2)

    setup_logging(config, verbose=args.verbose)
    config.log_config()

    try:
        sys.exit(asyncio.run(run(args, config)))
    except (TransactionStoreError, WalError) as e:
        logger.error(f"shardlog {args.command} failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
