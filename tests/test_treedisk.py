import pytest

from blockstore.ramdisk import RamDisk
from blockstore.store import BLOCK_SIZE, ZERO_BLOCK, BlockStoreError
from blockstore.treecheck import check_treedisk
from blockstore.treedisk import TreeDisk, create_treedisk, setup_freelist
from blockstore.treelayout import (
    REFS_PER_BLOCK,
    SuperBlock,
    inodes_per_block,
    unpack_refs,
)


def _block(tag: int) -> bytes:
    return bytes([tag % 256]) * BLOCK_SIZE


@pytest.fixture
def disk():
    ram = RamDisk(600)
    create_treedisk(ram, 64)
    return ram


def test_write_then_read_round_trip(disk):
    tree = TreeDisk(disk, 0)
    tree.write(0, _block(7))
    assert tree.read(0) == _block(7)
    assert tree.nblocks() == 1


def test_size_grows_to_last_written_offset(disk):
    tree = TreeDisk(disk, 3)
    tree.write(5, _block(1))
    assert tree.nblocks() == 6


def test_holes_read_as_zeros(disk):
    tree = TreeDisk(disk, 0)
    tree.write(10, _block(9))
    assert tree.read(3) == ZERO_BLOCK
    assert tree.read(10) == _block(9)


def test_read_beyond_size_raises(disk):
    tree = TreeDisk(disk, 0)
    tree.write(0, _block(1))
    with pytest.raises(BlockStoreError):
        tree.read(1)


def test_many_blocks_need_indirect_levels(disk):
    tree = TreeDisk(disk, 0)
    count = REFS_PER_BLOCK + 20
    for offset in range(count):
        tree.write(offset, _block(offset))
    assert tree.nblocks() == count
    assert all(tree.read(offset) == _block(offset) for offset in range(count))
    assert check_treedisk(disk) is None


def test_inodes_are_independent(disk):
    first, second = TreeDisk(disk, 0), TreeDisk(disk, 1)
    first.write(0, _block(1))
    second.write(0, _block(2))
    second.write(1, _block(3))
    assert first.read(0) == _block(1)
    assert second.read(0) == _block(2)
    assert first.nblocks() == 1
    assert second.nblocks() == 2


def test_overwrite_keeps_size(disk):
    tree = TreeDisk(disk, 0)
    tree.write(2, _block(1))
    tree.write(0, _block(5))
    tree.write(2, _block(6))
    assert tree.nblocks() == 3
    assert tree.read(2) == _block(6)
    assert tree.read(0) == _block(5)


def test_data_persists_across_reopen(disk):
    TreeDisk(disk, 4).write(1, _block(42))
    reopened = TreeDisk(disk, 4)
    assert reopened.read(1) == _block(42)
    assert reopened.nblocks() == 2


def test_setsize_zero_frees_everything(disk):
    tree = TreeDisk(disk, 0)
    for offset in range(REFS_PER_BLOCK * 2):
        tree.write(offset, _block(offset))
    assert tree.setsize(0) == 0
    assert tree.nblocks() == 0
    assert check_treedisk(disk) is None
    tree.write(0, _block(8))
    assert tree.read(0) == _block(8)
    assert check_treedisk(disk) is None


def test_setsize_same_size_returns_it(disk):
    tree = TreeDisk(disk, 0)
    tree.write(3, _block(1))
    assert tree.setsize(4) == 4
    assert tree.read(3) == _block(1)


def test_setsize_other_positive_size_rejected(disk):
    tree = TreeDisk(disk, 0)
    tree.write(3, _block(1))
    with pytest.raises(BlockStoreError):
        tree.setsize(2)


def test_inode_number_out_of_range(disk):
    with pytest.raises(BlockStoreError):
        TreeDisk(disk, inodes_per_block())


def test_create_on_too_small_disk():
    with pytest.raises(BlockStoreError):
        create_treedisk(RamDisk(2), 1)


def test_create_records_inode_blocks():
    ram = RamDisk(100)
    superblock = create_treedisk(ram, inodes_per_block() * 2)
    assert superblock.n_inodeblocks == 2
    assert SuperBlock.unpack(ram.read(0)) == superblock
    assert check_treedisk(ram) is None


def test_create_again_keeps_existing(disk):
    TreeDisk(disk, 0).write(0, _block(3))
    create_treedisk(disk, 64)
    assert TreeDisk(disk, 0).read(0) == _block(3)


def test_create_with_mismatched_inode_count(disk):
    with pytest.raises(BlockStoreError):
        create_treedisk(disk, inodes_per_block() * 3)


def test_full_store_raises():
    ram = RamDisk(4)
    create_treedisk(ram, 1)
    tree = TreeDisk(ram, 0)
    tree.write(0, _block(1))
    with pytest.raises(BlockStoreError):
        tree.write(1, _block(2))


def test_setup_freelist_single_block():
    ram = RamDisk(10)
    head = setup_freelist(ram, 2, 10)
    assert head == 2
    refs = unpack_refs(ram.read(head))
    assert refs[0] == 0
    assert refs[1:8] == list(range(3, 10))
    assert all(ref == 0 for ref in refs[8:])


def test_setup_freelist_chains_blocks():
    ram = RamDisk(400)
    head = setup_freelist(ram, 1, 400)
    seen = set()
    block = head
    while block != 0:
        refs = unpack_refs(ram.read(block))
        seen.add(block)
        seen.update(ref for ref in refs[1:] if ref != 0)
        block = refs[0]
    assert seen == set(range(1, 400))


def test_setup_freelist_empty_range():
    assert setup_freelist(RamDisk(5), 5, 5) == 0