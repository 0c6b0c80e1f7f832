import io

import pytest

from teachos.disk import DISK_DEV, BufferCache, MemDisk
from teachos.file import File, FileKind, FileTable
from teachos.fs import FileSystem
from teachos.layout import InodeType, KernelPanic, Superblock
from teachos.log import Log
from teachos.mkfs import ImageBuilder

CONTENT = b"hello world\n"


def _mount(data):
    disk = MemDisk(data)
    cache = BufferCache(disk)
    sb = Superblock.unpack(disk.read_block(1))
    log = Log(cache, DISK_DEV, sb)
    return FileSystem(cache, log, dev=DISK_DEV)


@pytest.fixture
def fs():
    image = io.BytesIO()
    builder = ImageBuilder(image)
    builder.add_file("hello", CONTENT)
    builder.finish()
    return _mount(image.getvalue())


def _open(ft, fs, path, readable=True, writable=True):
    ip = fs.namei(path)
    assert ip is not None
    f = ft.alloc()
    f.kind = FileKind.INODE
    f.ip = ip
    f.readable = readable
    f.writable = writable
    return f


def _create(fs, name):
    with fs.log.transaction():
        ip = fs.ialloc(InodeType.FILE)
        fs.ilock(ip)
        ip.nlink = 1
        fs.iupdate(ip)
        fs.iunlock(ip)
        root = fs.namei("/")
        fs.ilock(root)
        fs.dirlink(root, name, ip.inum)
        fs.iunlockput(root)
        fs.iput(ip)


def test_read_advances_offset(fs):
    ft = FileTable(fs)
    f = _open(ft, fs, "/hello")
    assert ft.read(f, 5) == CONTENT[:5]
    assert f.off == 5
    assert ft.read(f, 100) == CONTENT[5:]
    assert ft.read(f, 100) == b""


def test_write_large_round_trip_and_persists(fs):
    ft = FileTable(fs)
    _create(fs, "big")
    data = bytes(range(256)) * 16
    f = _open(ft, fs, "/big")
    assert ft.write(f, data) == len(data)
    assert f.off == len(data)
    assert ft.stat(f).size == len(data)
    f.off = 0
    assert ft.read(f, len(data) + 10) == data
    ft.close(f)

    fresh = _mount(fs.cache.disk.data)
    ft2 = FileTable(fresh)
    g = _open(ft2, fresh, "/big", writable=False)
    assert ft2.read(g, len(data)) == data


def test_overwrite_in_place(fs):
    ft = FileTable(fs)
    f = _open(ft, fs, "/hello")
    ft.write(f, b"HELLO")
    f.off = 0
    assert ft.read(f, 100) == b"HELLO" + CONTENT[5:]


def test_stat_inode(fs):
    ft = FileTable(fs)
    f = _open(ft, fs, "/hello")
    st = ft.stat(f)
    assert st.type == InodeType.FILE
    assert st.size == len(CONTENT)
    assert st.ino == f.ip.inum


def test_stat_pipe_fails(fs):
    ft = FileTable(fs)
    rf, _ = ft.pipe()
    with pytest.raises(OSError):
        ft.stat(rf)


def test_permissions(fs):
    ft = FileTable(fs)
    ro = _open(ft, fs, "/hello", readable=True, writable=False)
    wo = _open(ft, fs, "/hello", readable=False, writable=True)
    with pytest.raises(OSError):
        ft.write(ro, b"x")
    with pytest.raises(OSError):
        ft.read(wo, 1)


def test_alloc_exhausts(fs):
    ft = FileTable(fs, nfile=2)
    a = ft.alloc()
    b = ft.alloc()
    assert a is not b
    with pytest.raises(OSError):
        ft.alloc()
    ft.close(a)
    assert ft.alloc() is a


def test_dup_and_close(fs):
    ft = FileTable(fs)
    f = ft.alloc()
    assert ft.dup(f) is f
    assert f.ref == 2
    ft.close(f)
    assert f.ref == 1
    ft.close(f)
    assert f.ref == 0
    assert f.kind is FileKind.NONE
    with pytest.raises(KernelPanic):
        ft.close(f)
    with pytest.raises(KernelPanic):
        ft.dup(f)


def test_close_releases_inode(fs):
    ft = FileTable(fs)
    f = _open(ft, fs, "/hello")
    ip = f.ip
    assert ip.ref == 1
    ft.close(f)
    assert ip.ref == 0
    assert f.ip is None


def test_pipe_round_trip(fs):
    ft = FileTable(fs)
    rf, wf = ft.pipe()
    assert rf.readable and not rf.writable
    assert wf.writable and not wf.readable
    assert rf.pipe is wf.pipe
    assert ft.write(wf, b"abc") == 3
    assert ft.read(rf, 10) == b"abc"
    ft.close(wf)
    assert ft.read(rf, 10) == b""


def test_pipe_without_reader(fs):
    ft = FileTable(fs)
    rf, wf = ft.pipe()
    ft.close(rf)
    with pytest.raises(BrokenPipeError):
        ft.write(wf, b"abc")


def test_pipe_table_full_frees_first(fs):
    ft = FileTable(fs, nfile=1)
    with pytest.raises(OSError):
        ft.pipe()
    f = ft.alloc()
    assert f.ref == 1


def test_read_unknown_kind_panics(fs):
    ft = FileTable(fs)
    f = ft.alloc()
    f.readable = True
    with pytest.raises(KernelPanic):
        ft.read(f, 1)
    assert isinstance(f, File)