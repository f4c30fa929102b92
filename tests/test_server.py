import pytest

from blockstore.partdisk import PartDisk
from blockstore.ramdisk import RamDisk
from blockstore.server import (
    MAX_INODES,
    BlockReply,
    BlockRequest,
    BlockServer,
    Partition,
    ReplyStatus,
    RequestType,
)
from blockstore.store import BLOCK_SIZE, ZERO_BLOCK, BlockStore, BlockStoreError
from blockstore.treecheck import check_treedisk


def _block(byte: int) -> bytes:
    return bytes([byte]) * BLOCK_SIZE


class _Remote(BlockStore):
    """Forwards block operations to an inode of a block server."""

    def __init__(self, server, ino):
        self._server = server
        self._ino = ino

    def _ask(self, request):
        reply = self._server.handle(request)
        if reply.status is not ReplyStatus.OK:
            raise BlockStoreError("remote request failed")
        return reply

    def nblocks(self):
        return self._ask(BlockRequest(RequestType.GETSIZE, self._ino)).size_nblock

    def setsize(self, nblocks):
        raise BlockStoreError("not supported")

    def read(self, offset):
        return self._ask(BlockRequest(RequestType.READ, self._ino, offset)).data

    def write(self, offset, block):
        self._ask(BlockRequest(RequestType.WRITE, self._ino, offset, bytes(block)))


@pytest.fixture
def phys():
    disk = RamDisk(100)
    return disk, BlockServer.physical(disk, 10)


def test_physical_partition_sizes(phys):
    disk, server = phys
    page = server.handle(BlockRequest(RequestType.GETSIZE, Partition.PAGE))
    files = server.handle(BlockRequest(RequestType.GETSIZE, Partition.FILE))
    assert page == BlockReply(ReplyStatus.OK, size_nblock=10)
    assert page.size_nblock + files.size_nblock == disk.nblocks()


def test_physical_file_partition_maps_after_paging(phys):
    disk, server = phys
    reply = server.handle(BlockRequest(RequestType.WRITE, Partition.FILE, 0, _block(7)))
    assert reply.status is ReplyStatus.OK
    assert disk.read(10) == _block(7)
    assert disk.read(0) == ZERO_BLOCK


def test_physical_read_back(phys):
    _, server = phys
    server.handle(BlockRequest(RequestType.WRITE, Partition.PAGE, 3, _block(9)))
    reply = server.handle(BlockRequest(RequestType.READ, Partition.PAGE, 3))
    assert reply == BlockReply(ReplyStatus.OK, size_nblock=1, data=_block(9))


def test_physical_rejects_oversized_paging():
    with pytest.raises(ValueError):
        BlockServer.physical(RamDisk(5), 6)


@pytest.mark.parametrize("ino", [2, -1, MAX_INODES])
def test_bad_inode_is_error(phys, ino):
    _, server = phys
    reply = server.handle(BlockRequest(RequestType.GETSIZE, ino))
    assert reply.status is ReplyStatus.ERROR


def test_read_out_of_range_is_error(phys):
    _, server = phys
    reply = server.handle(BlockRequest(RequestType.READ, Partition.PAGE, 10))
    assert reply.status is ReplyStatus.ERROR
    assert reply.data == b""


@pytest.mark.parametrize("size", [0, BLOCK_SIZE - 1, 2 * BLOCK_SIZE])
def test_write_size_mismatch_is_error(phys, size):
    disk, server = phys
    reply = server.handle(BlockRequest(RequestType.WRITE, Partition.PAGE, 0, b"\1" * size))
    assert reply.status is ReplyStatus.ERROR
    assert disk.read(0) == ZERO_BLOCK


def test_unknown_request_type_raises(phys):
    _, server = phys
    with pytest.raises(ValueError):
        server.handle(BlockRequest("bogus", 0))


def test_serve_answers_in_order(phys):
    _, server = phys
    requests = [
        BlockRequest(RequestType.WRITE, Partition.PAGE, 1, _block(4)),
        BlockRequest(RequestType.READ, Partition.PAGE, 1),
        BlockRequest(RequestType.READ, Partition.PAGE, 99),
    ]
    replies = list(server.serve(requests))
    assert [r.status for r in replies] == [
        ReplyStatus.OK,
        ReplyStatus.OK,
        ReplyStatus.ERROR,
    ]
    assert replies[1].data == _block(4)


def test_close_makes_inodes_unavailable(phys):
    _, server = phys
    with server:
        assert server.handle(BlockRequest(RequestType.GETSIZE, 0)).status is ReplyStatus.OK
    assert server.handle(BlockRequest(RequestType.GETSIZE, 0)).status is ReplyStatus.ERROR


@pytest.mark.parametrize("use_fat", [False, True])
def test_virtual_write_read_and_size(use_fat):
    server = BlockServer.virtual(RamDisk(256), use_fat=use_fat)
    assert server.kind == "VIRT"
    empty = server.handle(BlockRequest(RequestType.GETSIZE, 5))
    assert empty == BlockReply(ReplyStatus.OK, size_nblock=0)

    assert server.handle(BlockRequest(RequestType.WRITE, 5, 3, _block(1))).status is ReplyStatus.OK
    assert server.handle(BlockRequest(RequestType.GETSIZE, 5)).size_nblock == 4
    assert server.handle(BlockRequest(RequestType.READ, 5, 3)).data == _block(1)
    assert server.handle(BlockRequest(RequestType.READ, 5, 1)).data == ZERO_BLOCK
    assert server.handle(BlockRequest(RequestType.GETSIZE, 6)).size_nblock == 0


@pytest.mark.parametrize("use_fat", [False, True])
def test_virtual_setsize(use_fat):
    server = BlockServer.virtual(RamDisk(256), use_fat=use_fat)
    server.handle(BlockRequest(RequestType.WRITE, 2, 1, _block(8)))
    grow = server.handle(BlockRequest(RequestType.SETSIZE, 2, 5))
    assert grow.status is ReplyStatus.ERROR
    shrink = server.handle(BlockRequest(RequestType.SETSIZE, 2, 0))
    assert shrink.status is ReplyStatus.OK
    assert server.handle(BlockRequest(RequestType.GETSIZE, 2)).size_nblock == 0
    assert server.handle(BlockRequest(RequestType.READ, 2, 0)).status is ReplyStatus.ERROR


def test_virtual_inode_count():
    server = BlockServer.virtual(RamDisk(256))
    last = server.handle(BlockRequest(RequestType.GETSIZE, MAX_INODES - 1))
    beyond = server.handle(BlockRequest(RequestType.GETSIZE, MAX_INODES))
    assert last.status is ReplyStatus.OK
    assert beyond.status is ReplyStatus.ERROR


def test_virtual_persists_across_servers():
    disk = RamDisk(256)
    first = BlockServer.virtual(disk)
    first.handle(BlockRequest(RequestType.WRITE, 9, 0, _block(3)))
    second = BlockServer.virtual(disk)
    assert second.handle(BlockRequest(RequestType.READ, 9, 0)).data == _block(3)


def test_virtual_over_physical_keeps_tree_consistent():
    disk = RamDisk(300)
    phys = BlockServer.physical(disk, 20)
    virt = BlockServer.virtual(_Remote(phys, Partition.FILE))
    for offset in range(3):
        reply = virt.handle(BlockRequest(RequestType.WRITE, 5, offset, _block(offset + 1)))
        assert reply.status is ReplyStatus.OK
    assert virt.handle(BlockRequest(RequestType.READ, 5, 2)).data == _block(3)
    assert check_treedisk(PartDisk(disk, 20, 280)) is None
    assert disk.read(0) == ZERO_BLOCK