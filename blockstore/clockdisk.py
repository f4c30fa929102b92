"""A write-through block cache using the CLOCK replacement policy."""

from __future__ import annotations

import enum
from dataclasses import dataclass

from .store import ZERO_BLOCK, BlockStore, check_block


class EntryStatus(enum.Enum):
    """State of one cache entry."""

    EMPTY = 0
    UNUSED = 1
    USED = 2


@dataclass
class _Entry:
    status: EntryStatus = EntryStatus.EMPTY
    offset: int = 0
    data: bytes = ZERO_BLOCK


class ClockDisk(BlockStore):
    """Mirrors ``below`` through a write-through cache of ``ncache`` blocks.

    Victims are chosen with the CLOCK algorithm, an approximation of LRU.
    """

    def __init__(self, below: BlockStore, ncache: int):
        if ncache < 1:
            raise ValueError("ncache must be at least 1")
        self._below = below
        self._entries = [_Entry() for _ in range(ncache)]
        self._hand = 0
        self.read_hit = 0
        self.read_miss = 0
        self.write_hit = 0
        self.write_miss = 0

    @property
    def entries(self) -> tuple[tuple[EntryStatus, int], ...]:
        """Status and cached block offset of every cache entry."""
        return tuple((entry.status, entry.offset) for entry in self._entries)

    def _find(self, offset: int) -> _Entry | None:
        return next(
            (
                entry
                for entry in self._entries
                if entry.offset == offset and entry.status is not EntryStatus.EMPTY
            ),
            None,
        )

    def _update(self, offset: int, data: bytes) -> None:
        size = len(self._entries)
        if self._hand > size:
            self._hand %= size
        while True:
            entry = self._entries[self._hand % size]
            self._hand += 1
            if entry.status is EntryStatus.USED:
                entry.status = EntryStatus.UNUSED
                continue
            entry.status = EntryStatus.USED
            entry.offset = offset
            entry.data = data
            return

    def nblocks(self) -> int:
        return self._below.nblocks()

    def setsize(self, nblocks: int) -> int:
        for entry in self._entries:
            if entry.status is not EntryStatus.EMPTY and entry.offset >= nblocks:
                entry.status = EntryStatus.EMPTY
        return self._below.setsize(nblocks)

    def read(self, offset: int) -> bytes:
        entry = self._find(offset)
        if entry is not None:
            entry.status = EntryStatus.USED
            self.read_hit += 1
            return entry.data
        self.read_miss += 1
        data = self._below.read(offset)
        self._update(offset, data)
        return data

    def write(self, offset: int, block) -> None:
        data = check_block(block)
        entry = self._find(offset)
        if entry is not None:
            entry.status = EntryStatus.USED
        self._below.write(offset, data)
        if entry is None:
            self.write_miss += 1
            self._update(offset, data)
        else:
            self.write_hit += 1
            entry.data = data

    def close(self) -> None:
        self._entries = [_Entry() for _ in self._entries]

    def dump_stats(self) -> str:
        """Print the cache statistics and return the printed text."""
        text = (
            f"!$CLOCK: #read hits:    {self.read_hit}\n\r"
            f"!$CLOCK: #read misses:  {self.read_miss}\n\r"
            f"!$CLOCK: #write hits:   {self.write_hit}\n\r"
            f"!$CLOCK: #write misses: {self.write_miss}\n\r"
        )
        print(text, end="")
        return text