"""Striping (RAID 0) and mirroring (RAID 1) over several block stores."""

from __future__ import annotations

from typing import Sequence

from .store import BlockStore, BlockStoreError


def _stores(below: Sequence[BlockStore]) -> tuple[BlockStore, ...]:
    stores = tuple(below)
    if not stores:
        raise ValueError("at least one underlying store is required")
    return stores


class Raid0Disk(BlockStore):
    """Stripes blocks round-robin over stores assumed to be the same size."""

    def __init__(self, below: Sequence[BlockStore]):
        self._below = _stores(below)

    def nblocks(self) -> int:
        # All stores are assumed equal in size, so the first one stands for all.
        return sum(self._below[0].nblocks() for _ in self._below)

    def setsize(self, nblocks: int) -> int:
        raise BlockStoreError("raid0disk_setsize: not yet implemented")

    def _locate(self, offset: int) -> tuple[BlockStore, int]:
        index, inner = offset % len(self._below), offset // len(self._below)
        return self._below[index], inner

    def read(self, offset: int) -> bytes:
        store, inner = self._locate(offset)
        return store.read(inner)

    def write(self, offset: int, block) -> None:
        store, inner = self._locate(offset)
        store.write(inner, block)


class Raid1Disk(BlockStore):
    """Mirrors every block over stores assumed to be the same size.

    A store that fails a write, a resize or a size query is marked broken
    and is no longer used.
    """

    def __init__(self, below: Sequence[BlockStore]):
        self._below = _stores(below)
        self._broken = [False] * len(self._below)

    @property
    def broken(self) -> tuple[bool, ...]:
        """Which of the underlying stores have been marked broken."""
        return tuple(self._broken)

    def _working(self):
        return (
            (index, store)
            for index, store in enumerate(self._below)
            if not self._broken[index]
        )

    def nblocks(self) -> int:
        for index, _ in self._working():
            try:
                return self._below[0].nblocks()
            except BlockStoreError:
                self._broken[index] = True
        raise BlockStoreError("raid1disk_nblocks: no working store")

    def setsize(self, nblocks: int) -> int:
        oldsize = None
        for index, store in enumerate(self._below):
            try:
                oldsize = store.setsize(nblocks)
            except BlockStoreError:
                self._broken[index] = True
        if oldsize is None:
            raise BlockStoreError("raid1disk_setsize: no working store")
        return oldsize

    def read(self, offset: int) -> bytes:
        for _, store in self._working():
            try:
                return store.read(offset)
            except BlockStoreError:
                continue
        raise BlockStoreError(f"raid1disk_read: no store could read block {offset}")

    def write(self, offset: int, block) -> None:
        written = False
        for index, store in list(self._working()):
            try:
                store.write(offset, block)
            except BlockStoreError:
                self._broken[index] = True
            else:
                written = True
        if not written:
            raise BlockStoreError(f"raid1disk_write: no store could write block {offset}")