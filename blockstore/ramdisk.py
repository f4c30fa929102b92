"""A block store kept in memory."""

from __future__ import annotations

from .store import ZERO_BLOCK, BlockStore, BlockStoreError, check_block


class RamDisk(BlockStore):
    """Block store held in a list of in-memory blocks, initially zeroed."""

    def __init__(self, nblocks: int):
        if nblocks < 0:
            raise ValueError("nblocks must not be negative")
        self._nblocks = nblocks
        self._blocks = [ZERO_BLOCK] * nblocks

    def nblocks(self) -> int:
        return self._nblocks

    def setsize(self, nblocks: int) -> int:
        if nblocks < 0:
            raise BlockStoreError(f"ramdisk_setsize: bad size {nblocks}")
        before = self._nblocks
        missing = nblocks - len(self._blocks)
        if missing > 0:
            self._blocks.extend([ZERO_BLOCK] * missing)
        self._nblocks = nblocks
        return before

    def _check_offset(self, offset: int, op: str) -> None:
        if not 0 <= offset < self._nblocks:
            raise BlockStoreError(f"ramdisk_{op}: bad offset {offset}")

    def read(self, offset: int) -> bytes:
        self._check_offset(offset, "read")
        return self._blocks[offset]

    def write(self, offset: int, block) -> None:
        data = check_block(block)
        self._check_offset(offset, "write")
        self._blocks[offset] = data