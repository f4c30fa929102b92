"""A pass-through block store that counts operations."""

from __future__ import annotations

from .store import BlockStore


class StatDisk(BlockStore):
    """Forwards to ``below`` and counts each kind of operation."""

    def __init__(self, below: BlockStore):
        self._below = below
        self.nnblocks = 0
        self.nsetsize = 0
        self.nread = 0
        self.nwrite = 0

    def nblocks(self) -> int:
        self.nnblocks += 1
        return self._below.nblocks()

    def setsize(self, nblocks: int) -> int:
        self.nsetsize += 1
        return self._below.setsize(nblocks)

    def read(self, offset: int) -> bytes:
        self.nread += 1
        return self._below.read(offset)

    def write(self, offset: int, block) -> None:
        self.nwrite += 1
        self._below.write(offset, block)

    def dump_stats(self) -> str:
        """Print the counters and return the printed text."""
        text = (
            f"!$STAT: #nnblocks:  {self.nnblocks}\n"
            f"!$STAT: #nsetsize:  {self.nsetsize}\n"
            f"!$STAT: #nread:     {self.nread}\n"
            f"!$STAT: #nwrite:    {self.nwrite}\n"
        )
        print(text, end="")
        return text