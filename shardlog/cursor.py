"""
Shard cursor: where the next read starts.

The cursor holds the last delivered sequence position. It never talks
to the backend; it only decides which cursor request the next poll makes.
"""

from __future__ import annotations

import logging
from typing import Optional

from .codec import format_sequence_number, is_unset
from .wal.base import CursorMode, CursorRequest

logger = logging.getLogger(__name__)


class ShardCursor:
    """Tracks the last delivered position within the shard.

    Attributes:
        position: Last delivered sequence position, or None when unset
    """

    def __init__(self, position: Optional[int] = None) -> None:
        self.position: Optional[int] = None
        self.seek(position)

    def seek(self, position: Optional[int]) -> None:
        """Set the last delivered position.

        None or 0 resets the cursor so the next read starts at the trim
        horizon.

        Raises:
            ValueError: If position is negative
        """
        if position is not None and position < 0:
            raise ValueError(f"Sequence position must be non-negative: {position}")
        self.position = position

    def advance(self, position: int) -> None:
        """Record a delivered position."""
        if not is_unset(self.position) and position <= self.position:
            # Backend ordering guarantees this cannot happen
            logger.warning(
                "Cursor moved backwards",
                extra={"previous": str(self.position), "position": str(position)},
            )
        self.position = position

    def next_request(self) -> CursorRequest:
        if is_unset(self.position):
            return CursorRequest(CursorMode.TRIM_HORIZON)
        return CursorRequest(
            CursorMode.AFTER_SEQUENCE_NUMBER,
            sequence_number=format_sequence_number(self.position),
        )

    def __repr__(self) -> str:
        return f"ShardCursor(position={self.position})"
