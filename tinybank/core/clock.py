# MIT License
# Copyright (c) 2025 Hashborn

"""
Block clock.

The only notion of time the contracts see. Height starts at the genesis block
and only ever moves forward, one block per mined call or empty block.
"""

from contextlib import contextmanager
from typing import Iterator, Optional


class BlockClock:
    def __init__(self, height: int = 0):
        if height < 0:
            raise ValueError(f"Block height cannot be negative: {height}")
        self._height = height
        self._pending: Optional[int] = None

    @property
    def height(self) -> int:
        """Height of the last committed block."""
        return self._height

    @property
    def current(self) -> int:
        """Block number visible to running code: the open block if any, else the last committed one."""
        return self._pending if self._pending is not None else self._height

    @property
    def is_open(self) -> bool:
        return self._pending is not None

    @contextmanager
    def open_block(self) -> Iterator[int]:
        """
        Opens the next block for the duration of the context.

        The height is committed only if the body completes; on any exception
        the block is discarded and the height is unchanged.
        """
        if self._pending is not None:
            raise RuntimeError(f"Block {self._pending} is already open")

        self._pending = self._height + 1
        try:
            yield self._pending
            self._height = self._pending
        finally:
            self._pending = None
