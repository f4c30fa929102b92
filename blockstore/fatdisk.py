"""Many virtual block stores kept as chains in a file allocation table.

The underlying store is laid out as a superblock, then ``n_inodeblocks``
inode blocks, then ``n_fatblocks`` FAT blocks, then the data blocks. FAT
entry ``n`` describes data block ``n``. An entry of 0 is free. A used entry
holds the next entry of its file, or :data:`FAT_EOF` at the end of a chain.
All numbers are 32-bit little-endian unsigned integers.
"""

from __future__ import annotations

import logging
import struct
from dataclasses import dataclass
from typing import Iterable

from .store import BLOCK_SIZE, ZERO_BLOCK, BlockStore, BlockStoreError, check_block
from .treelayout import pack_refs, unpack_refs

_log = logging.getLogger(__name__)

_SUPER = struct.Struct("<III")
_INODE = struct.Struct("<II")
_ENTRY_SIZE = 4

INODES_PER_BLOCK = BLOCK_SIZE // _INODE.size
FAT_PER_BLOCK = BLOCK_SIZE // _ENTRY_SIZE
FAT_EOF = 0xFFFFFFFF
"""FAT entry value marking a used entry with no successor."""


@dataclass
class FatSuperBlock:
    """Numbers of inode and FAT blocks, and the first free FAT entry."""

    n_inodeblocks: int = 0
    n_fatblocks: int = 0
    fat_free_list: int = 0

    @classmethod
    def unpack(cls, block) -> "FatSuperBlock":
        data = check_block(block)
        return cls(*_SUPER.unpack_from(data))

    def pack(self) -> bytes:
        packed = _SUPER.pack(self.n_inodeblocks, self.n_fatblocks, self.fat_free_list)
        return packed.ljust(BLOCK_SIZE, b"\0")


@dataclass
class _FatInode:
    head: int = 0
    nblocks: int = 0


def _unpack_inodes(block: bytes) -> list[_FatInode]:
    return [_FatInode(head, nblocks) for head, nblocks in _INODE.iter_unpack(block)]


def _pack_inodes(inodes: Iterable[_FatInode]) -> bytes:
    data = b"".join(_INODE.pack(inode.head, inode.nblocks) for inode in inodes)
    return data.ljust(BLOCK_SIZE, b"\0")


@dataclass
class _Snapshot:
    superblock: FatSuperBlock
    inodes: list[_FatInode]
    inode_blockno: int
    inode: _FatInode

    def inode_block(self) -> bytes:
        return _pack_inodes(self.inodes)


def _superblock(below: BlockStore) -> FatSuperBlock:
    return FatSuperBlock.unpack(below.read(0))


def _snapshot(below: BlockStore, inode_no: int) -> _Snapshot:
    superblock = _superblock(below)
    if not 0 <= inode_no < superblock.n_inodeblocks * INODES_PER_BLOCK:
        raise BlockStoreError(
            f"!!TDERR: inode number too large {inode_no} {superblock.n_inodeblocks}"
        )
    inode_blockno = 1 + inode_no // INODES_PER_BLOCK
    inodes = _unpack_inodes(below.read(inode_blockno))
    return _Snapshot(superblock, inodes, inode_blockno, inodes[inode_no % INODES_PER_BLOCK])


def _data_blockno(below: BlockStore, entry: int) -> int:
    superblock = _superblock(below)
    return superblock.n_inodeblocks + 1 + superblock.n_fatblocks + entry


def _fat_blockno(below: BlockStore, entry: int) -> int:
    return _superblock(below).n_inodeblocks + entry // FAT_PER_BLOCK + 1


def _next_entry(below: BlockStore, entry: int) -> int:
    refs = unpack_refs(below.read(_fat_blockno(below, entry)))
    return refs[entry % FAT_PER_BLOCK]


def _set_entry(below: BlockStore, entry: int, value: int) -> None:
    blockno = _fat_blockno(below, entry)
    refs = unpack_refs(below.read(blockno))
    refs[entry % FAT_PER_BLOCK] = value
    below.write(blockno, pack_refs(refs))


def _find_free_entry(below: BlockStore, blockno: int) -> int:
    """Scan the FAT from ``blockno`` (wrapping around) for a free entry."""
    superblock = _superblock(below)
    first = 1 + superblock.n_inodeblocks
    start = superblock.fat_free_list % FAT_PER_BLOCK
    for _ in range(superblock.n_fatblocks):
        refs = unpack_refs(below.read(blockno))
        for index in range(start, FAT_PER_BLOCK):
            if refs[index] == 0:
                return (blockno - first) * FAT_PER_BLOCK + index
        blockno += 1
        start = 0
        if blockno >= first + superblock.n_fatblocks:
            blockno = first
    raise BlockStoreError("fatdisk_find_free_entry: The disk is full")


def _alloc(below: BlockStore, snapshot: _Snapshot) -> int:
    entry = snapshot.superblock.fat_free_list
    blockno = _fat_blockno(below, entry)
    refs = unpack_refs(below.read(blockno))
    refs[entry % FAT_PER_BLOCK] = FAT_EOF
    below.write(blockno, pack_refs(refs))
    snapshot.superblock.fat_free_list = _find_free_entry(below, blockno)
    below.write(0, snapshot.superblock.pack())
    return entry


def _free_file(below: BlockStore, snapshot: _Snapshot) -> None:
    inode = snapshot.inode
    if inode.nblocks == 0:
        return
    entry = inode.head
    for _ in range(inode.nblocks):
        blockno = _fat_blockno(below, entry)
        _log.debug("fatdisk_freefile: fatblock number is %d", blockno)
        refs = unpack_refs(below.read(blockno))
        below.write(_data_blockno(below, entry), ZERO_BLOCK)
        following = refs[entry % FAT_PER_BLOCK]
        refs[entry % FAT_PER_BLOCK] = 0
        below.write(blockno, pack_refs(refs))
        entry = following
    inode.nblocks = 0
    inode.head = 0
    below.write(snapshot.inode_blockno, snapshot.inode_block())


class FatDisk(BlockStore):
    """The virtual block store at ``inode_no`` of a FAT file system on ``below``."""

    def __init__(self, below: BlockStore, inode_no: int):
        _snapshot(below, inode_no)
        self._below = below
        self._inode_no = inode_no

    def _snapshot(self) -> _Snapshot:
        return _snapshot(self._below, self._inode_no)

    def _traverse(self, offset: int) -> int:
        """Return the FAT entry of the block at ``offset`` in this file."""
        snapshot = self._snapshot()
        if not 0 <= offset < snapshot.inode.nblocks:
            raise BlockStoreError("!!TDERR: fatdisk_read offset too large")
        entry = snapshot.inode.head
        for _ in range(offset):
            entry = _next_entry(self._below, entry)
        return entry

    def nblocks(self) -> int:
        return self._snapshot().inode.nblocks

    def setsize(self, nblocks: int) -> int:
        snapshot = self._snapshot()
        if nblocks == snapshot.inode.nblocks:
            return nblocks
        if nblocks > 0:
            raise BlockStoreError("!!TDERR: nblocks > 0 not supported")
        _free_file(self._below, snapshot)
        return 0

    def read(self, offset: int) -> bytes:
        entry = self._traverse(offset)
        return self._below.read(_data_blockno(self._below, entry))

    def write(self, offset: int, block) -> None:
        data = check_block(block)
        if offset < 0:
            raise BlockStoreError(f"fatdisk_write: bad offset {offset}")
        below = self._below
        snapshot = self._snapshot()
        inode = snapshot.inode

        missing = max(0, offset + 1 - inode.nblocks)
        last = self._traverse(inode.nblocks - 1) if inode.nblocks > 0 else 0
        dirty_inode = False
        for _ in range(missing):
            entry = _alloc(below, snapshot)
            if inode.nblocks == 0:
                inode.head = entry
                dirty_inode = True
            else:
                _set_entry(below, last, entry)
            if offset >= inode.nblocks:
                inode.nblocks = offset + 1
                dirty_inode = True
            if dirty_inode:
                below.write(snapshot.inode_blockno, snapshot.inode_block())
            last = entry

        below.write(_data_blockno(below, self._traverse(offset)), data)


def setup_fat(below: BlockStore, next_free: int, nblocks: int) -> int:
    """Write the FAT for blocks ``next_free`` up to ``nblocks``.

    Each FAT block covers the data blocks that follow; entries beyond the
    end of the store are marked :data:`FAT_EOF`. Returns the number of FAT
    blocks written, starting at block ``next_free``.
    """
    fat_blockno = next_free
    count = 0
    while next_free < nblocks:
        used = min(FAT_PER_BLOCK, nblocks - next_free)
        next_free += used
        refs = [0] * used + [FAT_EOF] * (FAT_PER_BLOCK - used)
        next_free += 1
        below.write(fat_blockno, pack_refs(refs))
        fat_blockno += 1
        count += 1
    return count


def create_fatdisk(below: BlockStore, n_inodes: int) -> FatSuperBlock:
    """Lay out a FAT file system on ``below`` unless one is already there.

    Returns the superblock in effect afterwards.
    """
    n_inodeblocks = (n_inodes + INODES_PER_BLOCK - 1) // INODES_PER_BLOCK
    nblocks = below.nblocks()
    if nblocks < n_inodeblocks + 2:
        raise BlockStoreError("fatdisk_create: too few blocks")

    existing = _superblock(below)
    if existing.n_inodeblocks != 0:
        if existing.n_inodeblocks != n_inodeblocks:
            raise BlockStoreError(
                "fatdisk_create: existing file system has "
                f"{existing.n_inodeblocks} inode blocks, expected {n_inodeblocks}"
            )
        return existing

    n_fatblocks = setup_fat(below, n_inodeblocks + 1, nblocks)
    superblock = FatSuperBlock(
        n_inodeblocks=n_inodeblocks, n_fatblocks=n_fatblocks, fat_free_list=0
    )
    below.write(0, superblock.pack())
    for blockno in range(1, n_inodeblocks + 1):
        below.write(blockno, ZERO_BLOCK)
    return superblock