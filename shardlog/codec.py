"""
Conversion between backend records and transactions.

Invariants:
    - Sequence positions are non-negative ints of unbounded size
    - The textual form is the plain decimal string Kinesis uses
    - A delivered transaction body is immutable; every open() returns a
      fresh stream positioned at the start
"""

from __future__ import annotations

import io
from dataclasses import dataclass
from typing import BinaryIO, Optional

from .wal.base import BackendRecord


def parse_sequence_number(text: str) -> int:
    """Parse a backend sequence number.

    Raises:
        ValueError: If the text is not a non-negative decimal integer
    """
    if not text or not text.isdigit():
        raise ValueError(f"Invalid sequence number: {text!r}")
    return int(text)


def format_sequence_number(position: int) -> str:
    if position < 0:
        raise ValueError(f"Sequence number must be non-negative: {position}")
    return str(position)


def is_unset(position: Optional[int]) -> bool:
    """Whether a position means "nothing consumed yet"."""
    return position is None or position == 0


@dataclass(frozen=True)
class TransactionInput:
    """A delivered transaction.

    Attributes:
        transaction_id: Sequence position assigned by the backend
        data: Transaction body

    Example:
        >>> tx = await store.poll_next_transaction()
        >>> with tx.open() as stream:
        ...     body = stream.read()
    """
    transaction_id: int
    data: bytes

    @property
    def sequence_number(self) -> str:
        """Transaction id in the backend's textual form."""
        return format_sequence_number(self.transaction_id)

    def open(self) -> BinaryIO:
        """Open a new read-only binary stream over the body."""
        return io.BufferedReader(_BodyReader(self.data))

    def __str__(self) -> str:
        return f"TransactionInput(id={self.transaction_id}, size={len(self.data)})"


def decode_record(record: BackendRecord) -> TransactionInput:
    """Turn a backend record into a transaction."""
    return TransactionInput(
        transaction_id=parse_sequence_number(record.sequence_number),
        data=bytes(record.data),
    )


def encode_payload(buffer: bytearray) -> bytes:
    """Freeze an append buffer into a record payload."""
    return bytes(buffer)


class _BodyReader(io.RawIOBase):
    """Raw read-only stream over an immutable body."""

    def __init__(self, data: bytes) -> None:
        self._view = memoryview(data)
        self._pos = 0

    def readable(self) -> bool:
        return True

    def seekable(self) -> bool:
        return True

    def readinto(self, buffer) -> int:
        chunk = self._view[self._pos : self._pos + len(buffer)]
        size = len(chunk)
        buffer[:size] = chunk
        self._pos += size
        return size

    def seek(self, offset: int, whence: int = io.SEEK_SET) -> int:
        if whence == io.SEEK_SET:
            position = offset
        elif whence == io.SEEK_CUR:
            position = self._pos + offset
        elif whence == io.SEEK_END:
            position = len(self._view) + offset
        else:
            raise ValueError(f"Invalid whence: {whence}")
        if position < 0:
            raise ValueError(f"Negative seek position: {position}")
        self._pos = position
        return position

    def tell(self) -> int:
        return self._pos
