import pytest

from blockstore.store import (
    BLOCK_SIZE,
    ZERO_BLOCK,
    BlockStore,
    BlockStoreError,
    check_block,
)


class _Dummy(BlockStore):
    def __init__(self):
        self.closed = False

    def nblocks(self):
        return 1

    def setsize(self, nblocks):
        raise BlockStoreError("no resize")

    def read(self, offset):
        return ZERO_BLOCK

    def write(self, offset, block):
        check_block(block)

    def close(self):
        self.closed = True


def test_block_size_matches_layout():
    assert BLOCK_SIZE == 512
    assert check_block(ZERO_BLOCK) == b"\0" * 512


def test_check_block_returns_bytes_from_bytearray():
    data = bytearray(b"x" * BLOCK_SIZE)
    result = check_block(data)
    assert isinstance(result, bytes)
    assert result == bytes(data)


def test_check_block_accepts_memoryview():
    data = b"q" * BLOCK_SIZE
    assert check_block(memoryview(data)) == data


def test_check_block_rejects_wrong_size():
    with pytest.raises(ValueError):
        check_block(b"short")


def test_check_block_rejects_non_bytes():
    with pytest.raises(TypeError):
        check_block("a" * BLOCK_SIZE)


def test_abstract_store_cannot_be_instantiated():
    with pytest.raises(TypeError):
        BlockStore()


def test_context_manager_closes():
    store = _Dummy()
    entered = BlockStore.__enter__(store)
    assert entered is store
    assert store.closed is False
    BlockStore.__exit__(store, None, None, None)
    assert store.closed is True


def test_error_is_exception_subclass():
    error = BlockStoreError("no resize")
    assert isinstance(error, Exception)
    assert str(error) == "no resize"