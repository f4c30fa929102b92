"""Integrity check of a tree file system."""

from __future__ import annotations

import enum
import logging

from .store import BlockStore, BlockStoreError
from .treelayout import REFS_PER_BLOCK, SuperBlock, unpack_inodes, unpack_refs

_log = logging.getLogger(__name__)

_REF_BITS = 32
_LOG_RPB = max(1, (REFS_PER_BLOCK - 1).bit_length())


class TreeCheckError(BlockStoreError):
    """Raised when a tree file system is found to be inconsistent."""


class _Kind(enum.Enum):
    UNKNOWN = 0
    SUPER = 1
    INODE = 2
    INDIR = 3
    DATA = 4
    FREELIST = 5
    FREE = 6


def _shift_right(value: int, nbits: int) -> int:
    if nbits >= _REF_BITS:
        return 0
    return value >> nbits


def _levels(nblocks: int) -> int:
    levels = 0
    while _shift_right(nblocks - 1, levels * _LOG_RPB) != 0:
        levels += 1
    return levels


def _check_tree(
    below: BlockStore,
    nblocks: int,
    node: int,
    levels: int,
    offset: int,
    kinds: list[_Kind],
) -> None:
    if node == 0:
        return
    if node >= len(kinds):
        raise TreeCheckError(
            f"!!TDCHK: block off the underlying file system ({node} {len(kinds)} {offset})"
        )
    if kinds[node] is not _Kind.UNKNOWN:
        raise TreeCheckError("!!TDCHK: data block already used")
    if levels == 0:
        kinds[node] = _Kind.DATA
        return

    kinds[node] = _Kind.INDIR
    refs = unpack_refs(below.read(node))
    levels -= 1
    size = 1 << (levels * _LOG_RPB)
    for ref in refs:
        _check_tree(below, nblocks, ref, levels, offset, kinds)
        offset += size
        if offset >= nblocks:
            break


def check_treedisk(below: BlockStore) -> int | None:
    """Check the tree file system on ``below``.

    Raises :class:`TreeCheckError` on an inconsistency. Returns the first
    block that nothing accounts for (a leak), or ``None`` if there is none.
    """
    fs_nblocks = below.nblocks()
    if fs_nblocks == 0:
        raise TreeCheckError("!!TDCHK: empty underlying storage")

    superblock = SuperBlock.unpack(below.read(0))
    if 1 + superblock.n_inodeblocks > fs_nblocks:
        raise TreeCheckError(
            f"!!TDCHK: not enough room for inode blocks "
            f"({superblock.n_inodeblocks} {fs_nblocks})"
        )
    if superblock.free_list >= fs_nblocks:
        raise TreeCheckError("!!TDCHK: free list ref in superblock too large")

    kinds = [_Kind.UNKNOWN] * fs_nblocks
    kinds[0] = _Kind.SUPER
    inode_blocks = range(1, superblock.n_inodeblocks + 1)
    for blockno in inode_blocks:
        kinds[blockno] = _Kind.INODE

    for blockno in inode_blocks:
        for inode in unpack_inodes(below.read(blockno)):
            if inode.nblocks != 0:
                _check_tree(
                    below, inode.nblocks, inode.root, _levels(inode.nblocks), 0, kinds
                )

    freelist = superblock.free_list
    while freelist != 0:
        if freelist >= fs_nblocks:
            raise TreeCheckError("!!TDCHK: free list block number too large")
        if kinds[freelist] is not _Kind.UNKNOWN:
            raise TreeCheckError("!!TDCHK: free list block already in use")
        kinds[freelist] = _Kind.FREELIST
        refs = unpack_refs(below.read(freelist))
        for ref in refs[1:]:
            if ref == 0 or ref >= fs_nblocks:
                continue
            if kinds[ref] is not _Kind.UNKNOWN:
                raise TreeCheckError(
                    f"!!TDCHK: duplicate block in free list ({freelist} {ref})"
                )
            kinds[ref] = _Kind.FREE
        freelist = refs[0]

    leaked = next(
        (blockno for blockno, kind in enumerate(kinds) if kind is _Kind.UNKNOWN), None
    )
    if leaked is not None:
        _log.warning("!!TDLEAK: unaccounted for block %u", leaked)
    return leaked