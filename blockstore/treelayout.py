"""On-disk layout of a tree file system.

Block 0 is the superblock. The next ``n_inodeblocks`` blocks hold inodes.
Every other block is a data block, an indirect block, or part of the free
list. Block numbers are 32-bit little-endian unsigned integers, and block
number 0 stands for a hole (or, in the free list, for the end).
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import Iterable

from .store import BLOCK_SIZE, check_block

_REF = struct.Struct("<I")
_SUPER = struct.Struct("<II")
_INODE = struct.Struct("<II")

INODES_PER_BLOCK = BLOCK_SIZE // _INODE.size
REFS_PER_BLOCK = BLOCK_SIZE // _REF.size


def inodes_per_block() -> int:
    """Number of inodes that fit in one block."""
    return INODES_PER_BLOCK


def refs_per_block() -> int:
    """Number of block references that fit in one block."""
    return REFS_PER_BLOCK


@dataclass
class SuperBlock:
    """Number of inode blocks and the head of the free list."""

    n_inodeblocks: int = 0
    free_list: int = 0

    @classmethod
    def unpack(cls, block) -> "SuperBlock":
        data = check_block(block)
        n_inodeblocks, free_list = _SUPER.unpack_from(data)
        return cls(n_inodeblocks, free_list)

    def pack(self) -> bytes:
        return _SUPER.pack(self.n_inodeblocks, self.free_list).ljust(BLOCK_SIZE, b"\0")


@dataclass
class Inode:
    """Root block of a file's tree and the file's size in blocks."""

    root: int = 0
    nblocks: int = 0


def unpack_inodes(block) -> list[Inode]:
    """Decode an inode block into its inodes."""
    data = check_block(block)
    return [Inode(root, nblocks) for root, nblocks in _INODE.iter_unpack(data)]


def pack_inodes(inodes: Iterable[Inode]) -> bytes:
    """Encode inodes into one block, zero-filling any unused slots."""
    items = list(inodes)
    if len(items) > INODES_PER_BLOCK:
        raise ValueError(f"at most {INODES_PER_BLOCK} inodes fit in a block")
    data = b"".join(_INODE.pack(inode.root, inode.nblocks) for inode in items)
    return data.ljust(BLOCK_SIZE, b"\0")


def unpack_refs(block) -> list[int]:
    """Decode a free-list or indirect block into its block references."""
    data = check_block(block)
    return [ref for (ref,) in _REF.iter_unpack(data)]


def pack_refs(refs: Iterable[int]) -> bytes:
    """Encode block references into one block, zero-filling unused slots."""
    items = list(refs)
    if len(items) > REFS_PER_BLOCK:
        raise ValueError(f"at most {REFS_PER_BLOCK} references fit in a block")
    data = b"".join(_REF.pack(ref) for ref in items)
    return data.ljust(BLOCK_SIZE, b"\0")