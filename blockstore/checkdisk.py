"""A pass-through block store that checks reads against prior writes."""

from __future__ import annotations

from .store import BlockStore, check_block


class CorruptionError(Exception):
    """Raised when a block reads back different from what was seen before."""


class CheckDisk(BlockStore):
    """Forwards to ``below`` and remembers every block read or written.

    A later read that returns different contents raises :class:`CorruptionError`.
    """

    def __init__(self, below: BlockStore, descr: str):
        self._below = below
        self._descr = descr
        self._seen: dict[int, bytes] = {}

    def nblocks(self) -> int:
        return self._below.nblocks()

    def setsize(self, nblocks: int) -> int:
        self._seen = {
            offset: data for offset, data in self._seen.items() if offset < nblocks
        }
        return self._below.setsize(nblocks)

    def read(self, offset: int) -> bytes:
        data = self._below.read(offset)
        known = self._seen.get(offset)
        if known is None:
            self._seen[offset] = data
        elif known != data:
            raise CorruptionError(f"!!CHKDISK {self._descr}: checkdisk_read: corrupted")
        return data

    def write(self, offset: int, block) -> None:
        data = check_block(block)
        self._below.write(offset, data)
        self._seen[offset] = data

    def close(self) -> None:
        self._seen.clear()