"""Stackable block stores, tree and FAT file systems built on them, and an in-process block server."""

__version__ = "0.1.0"