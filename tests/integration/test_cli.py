"""
Integration tests for the command line helpers.
"""

import logging

import json_log_formatter
import pytest

from shardlog.config import ObservabilityConfig, StoreConfig
from shardlog.main import append, build_parser, setup_logging, tail
from shardlog.store import TransactionStore
from shardlog.wal.memory import InMemoryShardBackend


class TestCli:
    """Tests for append/tail and logging setup."""

    @pytest.fixture
    def backend(self):
        return InMemoryShardBackend("orders")

    @pytest.mark.asyncio
    async def test_append_then_tail(self, backend, capsys):
        """tail prints appended transactions in order."""
        await backend.connect()
        store = await TransactionStore.open(backend)
        first = await append(store, b"A")
        await append(store, b"B")

        delivered = await tail(store, count=2, idle_seconds=2.0, poll_interval=0.05)

        assert delivered == 2
        lines = capsys.readouterr().out.splitlines()
        assert lines[0] == f"{first}\tA"
        assert lines[1].endswith("\tB")

    @pytest.mark.asyncio
    async def test_tail_resumes_after_position(self, backend, capsys):
        """tail --after skips up to the given position."""
        await backend.connect()
        store = await TransactionStore.open(backend)
        first = await append(store, b"A")
        await append(store, b"B")

        delivered = await tail(store, after=first, idle_seconds=0.5, poll_interval=0.05)

        assert delivered == 1
        assert capsys.readouterr().out.splitlines()[0].endswith("\tB")

    @pytest.mark.asyncio
    async def test_tail_stops_when_idle(self, backend):
        """tail stops once the shard stays idle."""
        await backend.connect()
        store = await TransactionStore.open(backend)

        assert await tail(store, idle_seconds=0.1, poll_interval=0.05) == 0

    def test_setup_logging_json(self):
        """JSON logging is the default."""
        root = logging.getLogger()
        saved = (root.level, root.handlers[:])
        try:
            setup_logging(StoreConfig(), verbose=True)

            assert root.level == logging.DEBUG
            assert isinstance(root.handlers[0].formatter, json_log_formatter.JSONFormatter)
            assert logging.getLogger("botocore").level == logging.WARNING
        finally:
            root.setLevel(saved[0])
            root.handlers = saved[1]

    def test_setup_logging_text(self):
        """Text logging uses a plain formatter."""
        root = logging.getLogger()
        saved = (root.level, root.handlers[:])
        try:
            config = StoreConfig(observability=ObservabilityConfig(log_level="WARNING", log_format="text"))
            setup_logging(config)

            assert root.level == logging.WARNING
            assert not isinstance(root.handlers[0].formatter, json_log_formatter.JSONFormatter)
        finally:
            root.setLevel(saved[0])
            root.handlers = saved[1]

    def test_parser_parses_after_position(self):
        """--after is converted to an integer position."""
        position = "49590338271490256608559692538361571095921575989136588898"

        args = build_parser().parse_args(["tail", "--after", position])

        assert args.after == int(position)

    def test_parser_rejects_invalid_after(self, capsys):
        """A malformed --after exits with a usage error, not a traceback."""
        with pytest.raises(SystemExit) as exc_info:
            build_parser().parse_args(["tail", "--after", "abc"])

        assert exc_info.value.code == 2
        assert "--after" in capsys.readouterr().err
