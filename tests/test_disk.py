import pytest

from teachos.disk import BufferCache, MemDisk
from teachos.layout import BSIZE, KernelPanic


def make_cache(nblocks=8, nbuf=4):
    return BufferCache(MemDisk(bytes(BSIZE * nblocks)), nbuf)


def test_memdisk_round_trip():
    disk = MemDisk(bytes(BSIZE * 2))
    disk.write_block(1, b"\x07" * BSIZE)
    assert disk.read_block(1) == b"\x07" * BSIZE
    assert disk.read_block(0) == bytes(BSIZE)


def test_memdisk_out_of_range():
    disk = MemDisk(bytes(BSIZE * 2))
    with pytest.raises(KernelPanic):
        disk.read_block(2)


def test_bread_reads_disk():
    disk = MemDisk(b"\x00" * BSIZE + b"\x05" * BSIZE)
    cache = BufferCache(disk, 2)
    buf = cache.bread(1, 1)
    assert bytes(buf.data) == b"\x05" * BSIZE
    assert buf.valid and buf.locked


def test_bwrite_persists():
    cache = make_cache()
    buf = cache.bread(1, 3)
    buf.data[:3] = b"abc"
    cache.bwrite(buf)
    cache.brelse(buf)
    assert cache.disk.read_block(3)[:3] == b"abc"
    assert not buf.dirty


def test_cached_buffer_reused():
    cache = make_cache()
    first = cache.bread(1, 2)
    cache.brelse(first)
    second = cache.bread(1, 2)
    assert second is first
    assert second.refcnt == 1


def test_release_requires_lock():
    cache = make_cache()
    buf = cache.bread(1, 0)
    cache.brelse(buf)
    with pytest.raises(KernelPanic):
        cache.brelse(buf)


def test_runs_out_of_buffers():
    cache = make_cache(nbuf=2)
    cache.bread(1, 0)
    cache.bread(1, 1)
    with pytest.raises(KernelPanic):
        cache.bread(1, 2)


def test_wrong_device():
    cache = make_cache()
    with pytest.raises(KernelPanic):
        cache.bread(0, 0)