"""A write-through block cache over another block store."""

from __future__ import annotations

from .store import ZERO_BLOCK, BlockStore, check_block


class CacheDisk(BlockStore):
    """Mirrors ``below`` through a write-through cache of ``ncache`` slots.

    Each slot has a tag naming the block it holds. A slot whose tag is
    ``None`` holds nothing that lookups can find.
    """

    def __init__(self, below: BlockStore, ncache: int):
        if ncache < 0:
            raise ValueError("ncache must not be negative")
        self._below = below
        self._tags: list[int | None] = [None] * ncache
        self._blocks: list[bytes] = [ZERO_BLOCK] * ncache
        self.read_hit = 0
        self.read_miss = 0
        self.write_hit = 0
        self.write_miss = 0

    def nblocks(self) -> int:
        return self._below.nblocks()

    def setsize(self, nblocks: int) -> int:
        return self._below.setsize(nblocks)

    def _lookup(self, offset: int) -> int | None:
        return next(
            (slot for slot, tag in enumerate(self._tags) if tag == offset), None
        )

    def read(self, offset: int) -> bytes:
        slot = self._lookup(offset)
        if slot is not None:
            return self._blocks[slot]
        self.read_miss += 1
        return self._below.read(offset)

    def write(self, offset: int, block) -> None:
        data = check_block(block)
        slot = self._lookup(offset)
        if slot is None:
            free = [index for index, tag in enumerate(self._tags) if tag is None]
            if free:
                self._blocks[free[-1]] = data
            self.write_miss += 1
        else:
            self._blocks[slot] = data
        self._below.write(offset, data)

    def close(self) -> None:
        self._tags.clear()
        self._blocks.clear()

    def dump_stats(self) -> str:
        """Print the cache statistics and return the printed text."""
        text = (
            f"!$CACHE: #read hits:    {self.read_hit}\n"
            f"!$CACHE: #read misses:  {self.read_miss}\n"
            f"!$CACHE: #write hits:   {self.write_hit}\n"
            f"!$CACHE: #write misses: {self.write_miss}\n"
        )
        print(text, end="")
        return text