# blockstore

A small library of stackable block stores. Every store implements the same
interface, `blockstore.store.BlockStore`. You can put one store on top of
another to add caching, operation counts, consistency checks, mirroring, or
a whole file system of virtual disks.

## Installation

```
pip install .
```

To install the test dependencies as well:

```
pip install .[test]
```

## The block store interface

A store is an array of blocks of `BLOCK_SIZE` (512) bytes. It has these methods:

- `nblocks()` returns the number of blocks in the store.
- `setsize(nblocks)` changes the size of the store and returns the old size.
- `read(offset)` returns the block at `offset` as `bytes`.
- `write(offset, block)` stores one block at `offset`.
- `close()` releases what this layer holds. It does not close the layers below.

Stores can also be used as context managers, and `close()` is called on exit.
A failing operation raises `BlockStoreError`. `check_block(block)` returns a
bytes-like value as `bytes`. It raises `TypeError` or `ValueError` if the value
is not exactly one block long. `ZERO_BLOCK` is a block of null bytes.

## Available stores

| Module | Class | Behaviour |
|---|---|---|
| `blockstore.ramdisk` | `RamDisk(nblocks)` | Blocks kept in memory and zeroed at start. |
| `blockstore.filedisk` | `FileDisk(path, nblocks, sync)` | Blocks kept in a host file, which is created if missing. With `sync=True` it calls fsync after every write. Opening one logs a warning that its use is discouraged. |
| `blockstore.partdisk` | `PartDisk(below, delta, nblocks)` | A window of `nblocks` blocks of `below`, starting at block `delta`. |
| `blockstore.debugdisk` | `DebugDisk(below, descr, stream)` | Writes every call and its result to `stream` (standard error by default). |
| `blockstore.statdisk` | `StatDisk(below)` | Counts operations in `nnblocks`, `nsetsize`, `nread` and `nwrite`. `dump_stats()` prints the counts. |
| `blockstore.raid` | `Raid0Disk(below)` | Stripes blocks round-robin over the stores in `below`. Its size is the first store's size times the number of stores. `setsize` is not supported. |
| `blockstore.raid` | `Raid1Disk(below)` | Mirrors writes to every working store and reads from the first one that succeeds. A store that fails a write, a resize or a size query is marked broken and shows up in `broken`. |
| `blockstore.cachedisk` | `CacheDisk(below, ncache)` | A write-through layer with `ncache` slots. It counts `read_miss` and `write_miss`. Its slots are never tagged with a block number, so every read goes to the store below. |
| `blockstore.clockdisk` | `ClockDisk(below, ncache)` | A write-through cache that evicts with the CLOCK algorithm. It counts hits and misses, and `entries` shows the status (`EntryStatus`) and offset of each slot. |
| `blockstore.checkdisk` | `CheckDisk(below, descr)` | Remembers every block it reads or writes. A later read that returns different contents raises `CorruptionError`. |
| `blockstore.treedisk` | `TreeDisk(below, inode_no)` | One virtual disk per inode, with its blocks kept in a tree. Block 0 of the tree is a hole and reads as zeros. |
| `blockstore.fatdisk` | `FatDisk(below, inode_no)` | One virtual disk per inode, with its blocks kept in FAT-linked chains. |

`ClockDisk.dump_stats()` and `CacheDisk.dump_stats()` print their counters
and also return the printed text.

## File systems

`create_treedisk(below, n_inodes)` lays out a tree file system on `below`.
The layout is a superblock, then the inode blocks, then a free list. If a file
system is already there, it is left as it is. The function returns the
resulting `SuperBlock`. It raises `BlockStoreError` if the store is too small,
or if an existing file system has a different number of inode blocks. The
on-disk records are in `blockstore.treelayout`:

- `SuperBlock` and `Inode`
- `pack_inodes` and `unpack_inodes`
- `pack_refs` and `unpack_refs`
- `inodes_per_block()` and `refs_per_block()`

`check_treedisk(below)` in `blockstore.treecheck` walks every inode tree and
the free list. It raises `TreeCheckError` on an inconsistency. If a block is
not accounted for, it logs a warning and returns the number of the first such
block. Otherwise it returns `None`.

`create_fatdisk(below, n_inodes)` in `blockstore.fatdisk` does the same job
for the FAT layout. It returns a `FatSuperBlock`.

For both `TreeDisk` and `FatDisk`, `setsize` accepts only the current size or
0. Setting the size to 0 frees all of the file's blocks.

```python
from blockstore.ramdisk import RamDisk
from blockstore.clockdisk import ClockDisk
from blockstore.store import BLOCK_SIZE
from blockstore.treedisk import TreeDisk, create_treedisk
from blockstore.treecheck import check_treedisk

disk = RamDisk(1024)
cached = ClockDisk(disk, 16)
create_treedisk(cached, 128)

with TreeDisk(cached, 3) as file3:
    file3.write(10, b"x" * BLOCK_SIZE)
    assert file3.read(10) == b"x" * BLOCK_SIZE
    assert file3.read(2) == bytes(BLOCK_SIZE)   # a hole
    assert file3.nblocks() == 11

assert check_treedisk(disk) is None   # raises TreeCheckError if damaged
cached.dump_stats()
```

## Block server

`blockstore.server.BlockServer` answers `BlockRequest` values with
`BlockReply` values. A request has a `RequestType`: `READ`, `WRITE`,
`GETSIZE` or `SETSIZE`. A reply has a `ReplyStatus`: `OK` or `ERROR`.

- `BlockServer.physical(disk, page_blocks)` splits `disk` into a paging
  partition and a file partition. They are inodes `Partition.PAGE` and
  `Partition.FILE`.
- `BlockServer.virtual(below, ncache=NCACHE_BLOCKS, use_fat=False)` puts a
  `ClockDisk` on `below` and creates a tree (or FAT) file system on it with
  `MAX_INODES` (128) virtual stores.
- `handle(request)` answers one request. A bad inode or a failed store
  operation gives an `ERROR` reply. A write must carry exactly one block.
- `serve(requests)` yields one reply for each request.
- `close()` closes every inode store. The server is also a context manager.

## What this package does not do

The block server is an ordinary in-process object. It has no processes,
message passing or network transport, and the package provides no
command-line program. Requests have to be delivered to `handle` or `serve`
by the caller.

## Running the tests

```
pytest
```