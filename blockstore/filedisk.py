"""A block store kept in a file of the host file system."""

from __future__ import annotations

import logging
import os

from .store import BLOCK_SIZE, BlockStore, BlockStoreError, check_block

_log = logging.getLogger(__name__)


class FileDisk(BlockStore):
    """Block store backed by a host file, created if it does not exist."""

    def __init__(self, path, nblocks: int, sync: bool = False):
        _log.warning("filedisk_init: use of this device is now discouraged")
        flags = os.O_RDWR | os.O_CREAT | getattr(os, "O_BINARY", 0)
        try:
            self._fd: int | None = os.open(path, flags, 0o600)
        except OSError as exc:
            raise BlockStoreError(f"filedisk_init: {path}: {exc}") from exc
        self._nblocks = nblocks
        self._sync = sync

    def _handle(self) -> int:
        if self._fd is None:
            raise BlockStoreError("filedisk: store is closed")
        return self._fd

    def _seek(self, offset: int) -> int:
        fd = self._handle()
        if not 0 <= offset < self._nblocks:
            raise BlockStoreError(
                f"filedisk_seek: offset too large ({offset} >= {self._nblocks})"
            )
        os.lseek(fd, offset * BLOCK_SIZE, os.SEEK_SET)
        return fd

    def nblocks(self) -> int:
        return self._nblocks

    def setsize(self, nblocks: int) -> int:
        fd = self._handle()
        before = self._nblocks
        self._nblocks = nblocks
        os.ftruncate(fd, nblocks * BLOCK_SIZE)
        return before

    def read(self, offset: int) -> bytes:
        fd = self._seek(offset)
        try:
            data = os.read(fd, BLOCK_SIZE)
        except OSError as exc:
            raise BlockStoreError(f"filedisk_read: {exc}") from exc
        return data.ljust(BLOCK_SIZE, b"\0")

    def write(self, offset: int, block) -> None:
        data = check_block(block)
        fd = self._seek(offset)
        try:
            written = os.write(fd, data)
        except OSError as exc:
            raise BlockStoreError(f"filedisk_write: {exc}") from exc
        if written != BLOCK_SIZE:
            raise BlockStoreError(f"filedisk_write: wrote only {written} bytes")
        if self._sync:
            os.fsync(fd)

    def close(self) -> None:
        if self._fd is not None:
            os.close(self._fd)
            self._fd = None