"""A block server that answers read, write and size requests on numbered inodes."""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Callable, Iterable, Iterator, Sequence

from .clockdisk import ClockDisk
from .fatdisk import FatDisk, create_fatdisk
from .partdisk import PartDisk
from .store import BLOCK_SIZE, BlockStore, BlockStoreError
from .treedisk import TreeDisk, create_treedisk

_log = logging.getLogger(__name__)

MAX_INODES = 128
"""Number of virtual stores a virtual block server exposes."""

DISK_SIZE = 16 * 1024
"""Size of the physical disk in blocks."""

NCACHE_BLOCKS = 20
"""Number of blocks cached by a virtual block server."""


class RequestType(enum.Enum):
    """Kinds of request a block server understands."""

    READ = "read"
    WRITE = "write"
    GETSIZE = "getsize"
    SETSIZE = "setsize"


class ReplyStatus(enum.Enum):
    """Outcome of a request."""

    OK = "ok"
    ERROR = "error"


class Partition(enum.IntEnum):
    """Inodes of a physical block server."""

    PAGE = 0
    FILE = 1


@dataclass(frozen=True)
class BlockRequest:
    """A request naming an inode and a block offset (or size, for SETSIZE)."""

    type: RequestType
    ino: int
    offset_nblock: int = 0
    data: bytes = b""


@dataclass(frozen=True)
class BlockReply:
    """A reply carrying a status, a block count and possibly a block."""

    status: ReplyStatus
    size_nblock: int = 0
    data: bytes = b""


_ERROR = BlockReply(ReplyStatus.ERROR)
_OK = BlockReply(ReplyStatus.OK)


class BlockServer:
    """Serves requests on a set of block stores indexed by inode number."""

    def __init__(self, kind: str, inodes: Sequence[BlockStore]):
        self.kind = kind
        self._inodes: list[BlockStore] = list(inodes)
        self._handlers: dict[RequestType, Callable[[BlockStore, BlockRequest], BlockReply]] = {
            RequestType.READ: self._do_read,
            RequestType.WRITE: self._do_write,
            RequestType.GETSIZE: self._do_getsize,
            RequestType.SETSIZE: self._do_setsize,
        }

    @classmethod
    def physical(cls, disk: BlockStore, page_blocks: int) -> "BlockServer":
        """Split ``disk`` into a paging partition and a file partition."""
        total = disk.nblocks()
        if not 0 <= page_blocks <= total:
            raise ValueError(f"paging partition of {page_blocks} blocks does not fit in {total}")
        inodes = [
            PartDisk(disk, 0, page_blocks),
            PartDisk(disk, page_blocks, total - page_blocks),
        ]
        return cls("PHYS", inodes)

    @classmethod
    def virtual(
        cls, below: BlockStore, ncache: int = NCACHE_BLOCKS, use_fat: bool = False
    ) -> "BlockServer":
        """Cache ``below`` and put a file system of MAX_INODES virtual stores on it."""
        cache = ClockDisk(below, ncache)
        if use_fat:
            create_fatdisk(cache, MAX_INODES)
            inodes: list[BlockStore] = [FatDisk(cache, ino) for ino in range(MAX_INODES)]
        else:
            create_treedisk(cache, MAX_INODES)
            inodes = [TreeDisk(cache, ino) for ino in range(MAX_INODES)]
        return cls("VIRT", inodes)

    def handle(self, request: BlockRequest) -> BlockReply:
        """Answer one request. Raises ValueError for an unknown request type."""
        kind = RequestType(request.type)
        if not 0 <= request.ino < len(self._inodes):
            _log.warning("block_do_%s: bad inode: %s", kind.value, request.ino)
            return _ERROR
        store = self._inodes[request.ino]
        try:
            return self._handlers[kind](store, request)
        except BlockStoreError as exc:
            _log.warning(
                "block_do_%s: inode %s, offset %s: %s",
                kind.value,
                request.ino,
                request.offset_nblock,
                exc,
            )
            return _ERROR

    def serve(self, requests: Iterable[BlockRequest]) -> Iterator[BlockReply]:
        """Answer each request in turn until the requests run out."""
        for request in requests:
            yield self.handle(request)

    def close(self) -> None:
        """Release every inode store; later requests fail as bad inodes."""
        _log.info("block server: cleaning up")
        inodes, self._inodes = self._inodes, []
        for store in inodes:
            store.close()

    def __enter__(self) -> "BlockServer":
        return self

    def __exit__(self, *args) -> None:
        self.close()

    @staticmethod
    def _do_read(store: BlockStore, request: BlockRequest) -> BlockReply:
        data = store.read(request.offset_nblock)
        return BlockReply(ReplyStatus.OK, size_nblock=1, data=data)

    @staticmethod
    def _do_write(store: BlockStore, request: BlockRequest) -> BlockReply:
        nblock = len(request.data) // BLOCK_SIZE
        if nblock != 1:
            raise BlockStoreError(f"size mismatch 1 {nblock}")
        store.write(request.offset_nblock, request.data[:BLOCK_SIZE])
        return _OK

    @staticmethod
    def _do_getsize(store: BlockStore, request: BlockRequest) -> BlockReply:
        return BlockReply(ReplyStatus.OK, size_nblock=store.nblocks())

    @staticmethod
    def _do_setsize(store: BlockStore, request: BlockRequest) -> BlockReply:
        store.setsize(request.offset_nblock)
        return _OK