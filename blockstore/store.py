"""Common interface shared by every block store layer."""

from __future__ import annotations

import abc

BLOCK_SIZE = 512
"""Size of one block in bytes."""

ZERO_BLOCK = bytes(BLOCK_SIZE)
"""A block filled with null bytes."""


class BlockStoreError(Exception):
    """Raised when a block store operation fails."""


def check_block(block) -> bytes:
    """Return ``block`` as immutable bytes, insisting it is exactly one block long."""
    if not isinstance(block, (bytes, bytearray, memoryview)):
        raise TypeError(f"block must be bytes-like, not {type(block).__name__}")
    data = bytes(block)
    if len(data) != BLOCK_SIZE:
        raise ValueError(f"block must be {BLOCK_SIZE} bytes, got {len(data)}")
    return data


class BlockStore(abc.ABC):
    """An array of fixed-size blocks.

    Every failing operation raises :class:`BlockStoreError`.
    """

    @abc.abstractmethod
    def nblocks(self) -> int:
        """Return the number of blocks in the store."""

    @abc.abstractmethod
    def setsize(self, nblocks: int) -> int:
        """Change the size of the store and return the old size."""

    @abc.abstractmethod
    def read(self, offset: int) -> bytes:
        """Return the block at ``offset``."""

    @abc.abstractmethod
    def write(self, offset: int, block) -> None:
        """Store ``block`` at ``offset``."""

    def close(self) -> None:
        """Release resources held by this layer (not the layers below)."""

    def __enter__(self):
        return self

    def __exit__(self, *args) -> None:
        self.close()