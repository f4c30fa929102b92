import pytest

from blockstore.ramdisk import RamDisk
from blockstore.statdisk import StatDisk
from blockstore.store import BLOCK_SIZE, BlockStoreError


def test_counts_each_operation():
    disk = StatDisk(RamDisk(4))
    block = b"s" * BLOCK_SIZE
    disk.write(0, block)
    disk.write(1, block)
    assert disk.read(0) == block
    disk.nblocks()
    assert (disk.nnblocks, disk.nsetsize, disk.nread, disk.nwrite) == (1, 0, 1, 2)


def test_setsize_forwarded_and_counted():
    disk = StatDisk(RamDisk(4))
    assert disk.setsize(3) == 4
    assert disk.nsetsize == 1
    assert disk.nblocks() == 3


def test_failed_operation_still_counted():
    disk = StatDisk(RamDisk(1))
    with pytest.raises(BlockStoreError):
        disk.read(5)
    assert disk.nread == 1


def test_dump_stats_format(capsys):
    disk = StatDisk(RamDisk(2))
    disk.read(0)
    text = disk.dump_stats()
    assert text.splitlines() == [
        "!$STAT: #nnblocks:  0",
        "!$STAT: #nsetsize:  0",
        "!$STAT: #nread:     1",
        "!$STAT: #nwrite:    0",
    ]
    assert capsys.readouterr().out == text