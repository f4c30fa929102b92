"""A pass-through block store that traces every call."""

from __future__ import annotations

import sys
from typing import Callable, TextIO, TypeVar

from .store import BlockStore, BlockStoreError

_T = TypeVar("_T")


class DebugDisk(BlockStore):
    """Forwards to ``below`` and writes each invocation and its result to ``stream``."""

    def __init__(self, below: BlockStore, descr: str, stream: TextIO | None = None):
        self._below = below
        self._descr = descr
        self._stream = stream

    def _say(self, text: str) -> None:
        print(f"{self._descr}: {text}", file=self._stream or sys.stderr)

    def _traced(self, call: str, action: Callable[[], _T], shown: Callable[[_T], object]) -> _T:
        self._say(f"invoke {call}")
        try:
            result = action()
        except BlockStoreError:
            self._say(f"{call} --> -1")
            raise
        self._say(f"{call} --> {shown(result)}")
        return result

    def nblocks(self) -> int:
        return self._traced("nblocks()", self._below.nblocks, lambda r: r)

    def setsize(self, nblocks: int) -> int:
        return self._traced(
            f"setsize({nblocks})", lambda: self._below.setsize(nblocks), lambda r: r
        )

    def read(self, offset: int) -> bytes:
        return self._traced(
            f"read(offset = {offset})", lambda: self._below.read(offset), lambda r: 0
        )

    def write(self, offset: int, block) -> None:
        self._traced(
            f"write(offset = {offset})",
            lambda: self._below.write(offset, block),
            lambda r: 0,
        )

    def close(self) -> None:
        self._say("destroy()")