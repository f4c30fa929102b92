"""Many virtual block stores kept as trees inside one underlying store.

Each virtual store is named by an inode number. An inode records the size
of its store and the root of a complete tree whose fan-out is the number of
block references that fit in a block. All data blocks sit at the bottom
level. A reference of 0 is a hole and reads back as zeros.
"""

from __future__ import annotations

from dataclasses import dataclass

from .store import ZERO_BLOCK, BlockStore, BlockStoreError, check_block
from .treelayout import (
    INODES_PER_BLOCK,
    REFS_PER_BLOCK,
    Inode,
    SuperBlock,
    pack_inodes,
    pack_refs,
    unpack_inodes,
    unpack_refs,
)

_REF_BITS = 32
_LOG_RPB = max(1, (REFS_PER_BLOCK - 1).bit_length())


def _shift_right(value: int, nbits: int) -> int:
    if nbits >= _REF_BITS:
        return 0
    return value >> nbits


def _levels(nblocks: int) -> int:
    """Number of indirect levels in a tree holding ``nblocks`` blocks."""
    if nblocks == 0:
        return 0
    levels = 0
    while _shift_right(nblocks - 1, levels * _LOG_RPB) != 0:
        levels += 1
    return levels


def _index(offset: int, level: int) -> int:
    return _shift_right(offset, level * _LOG_RPB) % REFS_PER_BLOCK


@dataclass
class _Snapshot:
    superblock: SuperBlock
    inodes: list[Inode]
    inode_blockno: int
    inode: Inode

    def inode_block(self) -> bytes:
        return pack_inodes(self.inodes)


def _snapshot(below: BlockStore, inode_no: int) -> _Snapshot:
    superblock = SuperBlock.unpack(below.read(0))
    if not 0 <= inode_no < superblock.n_inodeblocks * INODES_PER_BLOCK:
        raise BlockStoreError(
            f"!!TDERR: inode number too large {inode_no} {superblock.n_inodeblocks}"
        )
    inode_blockno = 1 + inode_no // INODES_PER_BLOCK
    inodes = unpack_inodes(below.read(inode_blockno))
    return _Snapshot(superblock, inodes, inode_blockno, inodes[inode_no % INODES_PER_BLOCK])


def _alloc_block(below: BlockStore, snapshot: _Snapshot) -> int:
    head = snapshot.superblock.free_list
    if head == 0:
        raise BlockStoreError("treedisk_alloc_block: block store is full")
    refs = unpack_refs(below.read(head))
    slot = next((i for i in range(REFS_PER_BLOCK - 1, 0, -1) if refs[i] != 0), 0)
    if slot == 0:
        # The free-list block itself is handed out; its successor becomes the head.
        snapshot.superblock.free_list = refs[0]
        below.write(0, snapshot.superblock.pack())
        return head
    free_blockno = refs[slot]
    refs[slot] = 0
    below.write(head, pack_refs(refs))
    return free_blockno


def _free_block(below: BlockStore, snapshot: _Snapshot, target: int) -> None:
    below.write(target, ZERO_BLOCK)
    head = snapshot.superblock.free_list
    if head == 0:
        snapshot.superblock.free_list = target
        below.write(0, snapshot.superblock.pack())
        return
    refs = unpack_refs(below.read(head))
    slot = next((i for i in range(1, REFS_PER_BLOCK) if refs[i] == 0), None)
    if slot is not None:
        refs[slot] = target
        below.write(head, pack_refs(refs))
        return
    # The head is full: the freed block becomes the new head of the free list.
    snapshot.superblock.free_list = target
    below.write(0, snapshot.superblock.pack())
    below.write(target, pack_refs([head]))


def _free_tree(below: BlockStore, snapshot: _Snapshot, block: int, levels: int) -> None:
    if levels > 0:
        for ref in unpack_refs(below.read(block)):
            if ref != 0:
                _free_tree(below, snapshot, ref, levels - 1)
    _free_block(below, snapshot, block)


def _free_file(below: BlockStore, snapshot: _Snapshot) -> None:
    inode = snapshot.inode
    if inode.nblocks == 0:
        return
    if inode.nblocks == 1:
        _free_block(below, snapshot, inode.root)
        return
    levels, capacity = 1, REFS_PER_BLOCK
    while capacity < inode.nblocks:
        levels += 1
        capacity *= REFS_PER_BLOCK
    _free_tree(below, snapshot, inode.root, levels)


class TreeDisk(BlockStore):
    """The virtual block store at ``inode_no`` of a tree file system on ``below``."""

    def __init__(self, below: BlockStore, inode_no: int):
        _snapshot(below, inode_no)
        self._below = below
        self._inode_no = inode_no

    def _snapshot(self) -> _Snapshot:
        return _snapshot(self._below, self._inode_no)

    def nblocks(self) -> int:
        return self._snapshot().inode.nblocks

    def setsize(self, nblocks: int) -> int:
        snapshot = self._snapshot()
        if nblocks == snapshot.inode.nblocks:
            return nblocks
        if nblocks > 0:
            raise BlockStoreError("!!TDERR: nblocks > 0 not supported")
        _free_file(self._below, snapshot)
        snapshot.inode.nblocks = 0
        snapshot.inode.root = 0
        self._below.write(snapshot.inode_blockno, snapshot.inode_block())
        return 0

    def read(self, offset: int) -> bytes:
        snapshot = self._snapshot()
        if not 0 <= offset < snapshot.inode.nblocks:
            raise BlockStoreError("!!TDERR: offset too large")
        levels = _levels(snapshot.inode.nblocks)
        block = snapshot.inode.root
        while True:
            if block == 0:
                return ZERO_BLOCK
            data = self._below.read(block)
            if levels == 0:
                return data
            levels -= 1
            block = unpack_refs(data)[_index(offset, levels)]

    def write(self, offset: int, block) -> None:
        data = check_block(block)
        if offset < 0:
            raise BlockStoreError(f"treedisk_write: bad offset {offset}")
        below = self._below
        snapshot = self._snapshot()
        inode = snapshot.inode

        levels = _levels(inode.nblocks)
        dirty_inode = False
        if offset >= inode.nblocks:
            inode.nblocks = offset + 1
            dirty_inode = True
            levels_after = _levels(offset + 1)
        else:
            levels_after = levels

        # Grow the tree upwards by inserting indirect blocks above the root.
        while levels_after > levels:
            indirect = _alloc_block(below, snapshot)
            below.write(indirect, pack_refs([inode.root]))
            inode.root = indirect
            dirty_inode = True
            levels += 1

        if dirty_inode:
            below.write(snapshot.inode_blockno, snapshot.inode_block())

        # Walk down the tree, allocating missing blocks along the way.
        parent_refs: list[int] | None = None
        parent_index = 0
        parent_off = snapshot.inode_blockno
        while True:
            current = inode.root if parent_refs is None else parent_refs[parent_index]
            if current == 0:
                current = _alloc_block(below, snapshot)
                if parent_refs is None:
                    inode.root = current
                    below.write(parent_off, snapshot.inode_block())
                else:
                    parent_refs[parent_index] = current
                    below.write(parent_off, pack_refs(parent_refs))
                if levels == 0:
                    break
                refs = [0] * REFS_PER_BLOCK
            else:
                if levels == 0:
                    break
                refs = unpack_refs(below.read(current))
            levels -= 1
            parent_refs = refs
            parent_index = _index(offset, levels)
            parent_off = current
        below.write(current, data)


def setup_freelist(below: BlockStore, next_free: int, nblocks: int) -> int:
    """Chain blocks ``next_free`` up to ``nblocks`` into a free list; return its head."""
    head = 0
    while next_free < nblocks:
        refs = [head]
        head = next_free
        next_free += 1
        while len(refs) < REFS_PER_BLOCK and next_free < nblocks:
            refs.append(next_free)
            next_free += 1
        below.write(head, pack_refs(refs))
    return head


def create_treedisk(below: BlockStore, n_inodes: int) -> SuperBlock:
    """Lay out a tree file system on ``below`` unless one is already there.

    Returns the superblock in effect afterwards.
    """
    n_inodeblocks = (n_inodes + INODES_PER_BLOCK - 1) // INODES_PER_BLOCK
    nblocks = below.nblocks()
    if nblocks < n_inodeblocks + 2:
        raise BlockStoreError("treedisk_create: too few blocks")

    existing = SuperBlock.unpack(below.read(0))
    if existing.n_inodeblocks != 0:
        if existing.n_inodeblocks != n_inodeblocks:
            raise BlockStoreError(
                "treedisk_create: existing file system has "
                f"{existing.n_inodeblocks} inode blocks, expected {n_inodeblocks}"
            )
        return existing

    superblock = SuperBlock(
        n_inodeblocks=n_inodeblocks,
        free_list=setup_freelist(below, n_inodeblocks + 1, nblocks),
    )
    below.write(0, superblock.pack())
    for blockno in range(1, n_inodeblocks + 1):
        below.write(blockno, ZERO_BLOCK)
    return superblock