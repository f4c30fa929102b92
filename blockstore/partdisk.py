"""A block store that is a partition of the store below it."""

from __future__ import annotations

from .store import BlockStore, BlockStoreError


class PartDisk(BlockStore):
    """Exposes ``nblocks`` blocks of ``below`` starting at block ``delta``."""

    def __init__(self, below: BlockStore, delta: int, nblocks: int):
        self._below = below
        self._delta = delta
        self._nblocks = nblocks

    def nblocks(self) -> int:
        return self._nblocks

    def setsize(self, nblocks: int) -> int:
        before = self._nblocks
        self._nblocks = nblocks
        return before

    def _check_offset(self, offset: int, op: str) -> None:
        if not 0 <= offset < self._nblocks:
            raise BlockStoreError(f"partdisk_{op}: offset too large")

    def read(self, offset: int) -> bytes:
        self._check_offset(offset, "read")
        return self._below.read(self._delta + offset)

    def write(self, offset: int, block) -> None:
        self._check_offset(offset, "write")
        self._below.write(self._delta + offset, block)