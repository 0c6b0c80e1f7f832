import io

import pytest

from teachos.disk import DISK_DEV, BufferCache, MemDisk
from teachos.fs import FileSystem
from teachos.layout import DIRSIZ, ROOTINO, InodeType, Superblock
from teachos.log import Log
from teachos.mkfs import ImageBuilder
from teachos.userland import cat, echo, fmtname, ls

CONTENT = b"hello world\n"


@pytest.fixture
def fs():
    image = io.BytesIO()
    builder = ImageBuilder(image)
    builder.add_file("hello", CONTENT)
    builder.add_file("_cat", b"binary")
    builder.finish()
    disk = MemDisk(image.getvalue())
    cache = BufferCache(disk)
    sb = Superblock.unpack(disk.read_block(1))
    log = Log(cache, DISK_DEV, sb)
    return FileSystem(cache, log, dev=DISK_DEV)


def _parse(text):
    rows = {}
    for line in text.splitlines():
        name, type_, ino, size = line.rsplit(" ", 3)
        rows[name.strip()] = (int(type_), int(ino), int(size))
    return rows


def test_echo_joins_arguments():
    out = io.StringIO()
    echo(["hello", "world"], out)
    assert out.getvalue() == "hello world\n"


def test_echo_no_arguments_prints_nothing():
    out = io.StringIO()
    echo([], out)
    assert out.getvalue() == ""


def test_cat_concatenates():
    out = io.BytesIO()
    cat([io.BytesIO(b"abc"), io.BytesIO(b"def")], out)
    assert out.getvalue() == b"abcdef"


def test_cat_large_stream_round_trip():
    data = bytes(range(256)) * 10
    out = io.BytesIO()
    cat([io.BytesIO(data)], out)
    assert out.getvalue() == data


def test_fmtname_pads_short_names():
    name = fmtname("a/b/cat")
    assert len(name) == DIRSIZ
    assert name.rstrip() == "cat"


def test_fmtname_keeps_long_names():
    long_name = "x" * (DIRSIZ + 3)
    assert fmtname("/dir/" + long_name) == long_name


def test_fmtname_plain_name():
    assert fmtname("README").rstrip() == "README"
    assert fmtname("/") == " " * DIRSIZ


def test_ls_root(fs):
    out = io.StringIO()
    ls(fs, "/", out)
    rows = _parse(out.getvalue())
    assert set(rows) == {".", "..", "hello", "cat"}
    assert rows["."] == (InodeType.DIR, ROOTINO, rows["."][2])
    assert rows[".."][1] == ROOTINO
    assert rows["hello"][0] == InodeType.FILE
    assert rows["hello"][2] == len(CONTENT)
    assert rows["cat"][2] == len(b"binary")


def test_ls_relative_dot_matches_root(fs):
    a, b = io.StringIO(), io.StringIO()
    ls(fs, ".", a)
    ls(fs, "/", b)
    assert _parse(a.getvalue()) == _parse(b.getvalue())


def test_ls_single_file(fs):
    out = io.StringIO()
    ls(fs, "/hello", out)
    lines = out.getvalue().splitlines()
    assert len(lines) == 1
    assert _parse(out.getvalue())["hello"][2] == len(CONTENT)


def test_ls_missing(fs):
    with pytest.raises(FileNotFoundError):
        ls(fs, "/nope", io.StringIO())


def test_ls_path_too_long(fs):
    out = io.StringIO()
    ls(fs, "/" * 500, out)
    assert out.getvalue() == "ls: path too long\n"


def test_ls_leaves_log_idle(fs):
    ls(fs, "/", io.StringIO())
    assert fs.log.outstanding == 0
    assert fs.namei("/hello").ref == 1