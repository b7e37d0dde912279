import pytest

from teachos.bufcache import BufferCache
from teachos.disk import MemoryDisk
from teachos.layout import BSIZE, Panic


@pytest.fixture
def disk():
    d = MemoryDisk(bytes(8 * BSIZE))
    for n in range(8):
        d.write_block(n, bytes([n]) * BSIZE)
    d.reads = 0
    d.writes = 0
    return d


def test_read_returns_block_contents(disk):
    cache = BufferCache(disk)
    buf = cache.read(5)
    assert bytes(buf.data) == bytes([5]) * BSIZE
    assert buf.valid
    assert buf.lock.locked()
    cache.release(buf)


def test_cached_block_not_reread(disk):
    cache = BufferCache(disk)
    cache.release(cache.read(3))
    buf = cache.read(3)
    assert disk.reads == 1
    assert buf.data[0] == 3
    cache.release(buf)


def test_write_reaches_disk(disk):
    cache = BufferCache(disk)
    with cache.block(2) as buf:
        buf.data[:] = b"z" * BSIZE
        cache.write(buf)
        assert not buf.dirty
        assert buf.valid
    assert disk.read_block(2) == b"z" * BSIZE


def test_write_unlocked_panics(disk):
    cache = BufferCache(disk)
    buf = cache.read(1)
    cache.release(buf)
    with pytest.raises(Panic):
        cache.write(buf)


def test_double_release_panics(disk):
    cache = BufferCache(disk)
    buf = cache.read(1)
    cache.release(buf)
    with pytest.raises(Panic):
        cache.release(buf)


def test_no_free_buffers(disk):
    cache = BufferCache(disk, nbuf=2)
    cache.read(0)
    cache.read(1)
    with pytest.raises(Panic):
        cache.read(2)


def test_dirty_buffer_not_recycled(disk):
    cache = BufferCache(disk, nbuf=1)
    buf = cache.read(0)
    buf.dirty = True
    cache.release(buf)
    with pytest.raises(Panic):
        cache.read(1)


def test_least_recently_used_is_recycled(disk):
    cache = BufferCache(disk, nbuf=2)
    cache.release(cache.read(0))
    cache.release(cache.read(1))
    cache.release(cache.read(2))  # evicts block 0
    reads_before = disk.reads
    cache.release(cache.read(1))
    assert disk.reads == reads_before
    buf = cache.read(0)
    assert disk.reads == reads_before + 1
    assert buf.data[0] == 0
    cache.release(buf)


def test_block_context_releases(disk):
    cache = BufferCache(disk)
    with cache.block(4) as buf:
        assert buf.refcnt == 1
    assert buf.refcnt == 0
    assert not buf.lock.locked()


def test_out_of_range_block_panics(disk):
    cache = BufferCache(disk)
    with pytest.raises(Panic):
        cache.read(8)