"""Open file objects shared between descriptors: pipes and inodes."""

from __future__ import annotations

import errno
from dataclasses import dataclass
from enum import Enum

from .layout import BSIZE, KernelPanic
from .log import MAXOPBLOCKS
from .pipe import Pipe

NFILE = 100


class FileKind(Enum):
    """What an open file refers to."""

    NONE = 0
    PIPE = 1
    INODE = 2


@dataclass(eq=False)
class File:
    """One entry of the open file table."""

    kind: FileKind = FileKind.NONE
    ref: int = 0
    readable: bool = False
    writable: bool = False
    pipe: Pipe | None = None
    ip: object = None
    off: int = 0


class FileTable:
    """System-wide table of open files."""

    def __init__(self, fs, nfile: int = NFILE, maxopblocks: int = MAXOPBLOCKS):
        self.fs = fs
        self.maxopblocks = maxopblocks
        self.files = [File() for _ in range(nfile)]

    def alloc(self) -> File:
        """Take a free entry with one reference; OSError if the table is full."""
        for f in self.files:
            if f.ref == 0:
                f.ref = 1
                return f
        raise OSError(errno.ENFILE, "file table overflow")

    def dup(self, f: File) -> File:
        """Add a reference to ``f``."""
        if f.ref < 1:
            raise KernelPanic("filedup")
        f.ref += 1
        return f

    def close(self, f: File) -> None:
        """Drop a reference; release what the file refers to on the last one."""
        if f.ref < 1:
            raise KernelPanic("fileclose")
        f.ref -= 1
        if f.ref > 0:
            return
        kind, pipe, ip, writable = f.kind, f.pipe, f.ip, f.writable
        f.kind = FileKind.NONE
        f.pipe = None
        f.ip = None
        f.off = 0
        f.readable = f.writable = False
        if kind is FileKind.PIPE:
            pipe.close(writable)
        elif kind is FileKind.INODE:
            with self.fs.log.transaction():
                self.fs.iput(ip)

    def stat(self, f: File):
        """Metadata of an inode-backed file."""
        if f.kind is not FileKind.INODE:
            raise OSError(errno.EINVAL, "not an inode-backed file")
        self.fs.ilock(f.ip)
        try:
            return self.fs.stati(f.ip)
        finally:
            self.fs.iunlock(f.ip)

    def read(self, f: File, n: int) -> bytes:
        """Read up to ``n`` bytes at the file's offset."""
        if not f.readable:
            raise OSError(errno.EBADF, "file not open for reading")
        if f.kind is FileKind.PIPE:
            return f.pipe.read(n)
        if f.kind is FileKind.INODE:
            self.fs.ilock(f.ip)
            try:
                data = self.fs.readi(f.ip, f.off, n)
                f.off += len(data)
            finally:
                self.fs.iunlock(f.ip)
            return data
        raise KernelPanic("fileread")

    def write(self, f: File, data) -> int:
        """Write all of ``data`` at the file's offset."""
        if not f.writable:
            raise OSError(errno.EBADF, "file not open for writing")
        data = bytes(data)
        if f.kind is FileKind.PIPE:
            return f.pipe.write(data)
        if f.kind is FileKind.INODE:
            # A few blocks per transaction so one write never overflows the log:
            # room for the inode, an indirect block, allocation blocks and
            # two blocks of slop for unaligned writes.
            max_chunk = ((self.maxopblocks - 1 - 1 - 2) // 2) * BSIZE
            n = len(data)
            i = 0
            while i < n:
                n1 = min(n - i, max_chunk)
                with self.fs.log.transaction():
                    self.fs.ilock(f.ip)
                    try:
                        r = self.fs.writei(f.ip, data[i:i + n1], f.off)
                        f.off += r
                    finally:
                        self.fs.iunlock(f.ip)
                if r != n1:
                    raise KernelPanic("short filewrite")
                i += r
            return n
        raise KernelPanic("filewrite")

    def pipe(self) -> tuple[File, File]:
        """Create a pipe; return its read end and its write end."""
        rf = self.alloc()
        try:
            wf = self.alloc()
        except OSError:
            self.close(rf)
            raise
        p = Pipe()
        rf.kind, rf.readable, rf.writable, rf.pipe = FileKind.PIPE, True, False, p
        wf.kind, wf.readable, wf.writable, wf.pipe = FileKind.PIPE, False, True, p
        return rf, wf