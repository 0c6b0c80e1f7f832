"""On-disk file system format shared by the kernel and the image builder."""

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from enum import IntEnum

ROOTINO = 1
BSIZE = 512
NDIRECT = 12
NINDIRECT = BSIZE // 4
MAXFILE = NDIRECT + NINDIRECT
DIRSIZ = 14

_SUPERBLOCK = struct.Struct("<7I")
_DINODE = struct.Struct(f"<4hI{NDIRECT + 1}I")
_DIRENT = struct.Struct(f"<H{DIRSIZ}s")

SUPERBLOCK_SIZE = _SUPERBLOCK.size
DINODE_SIZE = _DINODE.size
DIRENT_SIZE = _DIRENT.size

# Inodes per block.
IPB = BSIZE // DINODE_SIZE
# Bitmap bits per block.
BPB = BSIZE * 8


class KernelPanic(Exception):
    """An unrecoverable inconsistency inside the kernel."""


class InodeType(IntEnum):
    """Kinds of file an inode can describe."""

    DIR = 1
    FILE = 2
    DEV = 3


@dataclass
class Superblock:
    """Describes the disk layout."""

    size: int = 0
    nblocks: int = 0
    ninodes: int = 0
    nlog: int = 0
    logstart: int = 0
    inodestart: int = 0
    bmapstart: int = 0

    def pack(self) -> bytes:
        return _SUPERBLOCK.pack(
            self.size,
            self.nblocks,
            self.ninodes,
            self.nlog,
            self.logstart,
            self.inodestart,
            self.bmapstart,
        )

    @classmethod
    def unpack(cls, data) -> "Superblock":
        return cls(*_SUPERBLOCK.unpack_from(bytes(data)))


def _zero_addrs() -> list[int]:
    return [0] * (NDIRECT + 1)


@dataclass
class Dinode:
    """On-disk inode."""

    type: int = 0
    major: int = 0
    minor: int = 0
    nlink: int = 0
    size: int = 0
    addrs: list[int] = field(default_factory=_zero_addrs)

    def pack(self) -> bytes:
        if len(self.addrs) != NDIRECT + 1:
            raise ValueError(f"inode needs {NDIRECT + 1} block addresses")
        return _DINODE.pack(
            int(self.type), self.major, self.minor, self.nlink, self.size, *self.addrs
        )

    @classmethod
    def unpack(cls, data) -> "Dinode":
        values = _DINODE.unpack_from(bytes(data))
        type_, major, minor, nlink, size = values[:5]
        return cls(type_, major, minor, nlink, size, list(values[5:]))


@dataclass
class Dirent:
    """Directory entry: an inode number and a name of at most DIRSIZ bytes."""

    inum: int = 0
    name: str = ""

    def pack(self) -> bytes:
        raw = self.name.encode("utf-8", "surrogateescape")[:DIRSIZ]
        return _DIRENT.pack(self.inum, raw)

    @classmethod
    def unpack(cls, data) -> "Dirent":
        inum, raw = _DIRENT.unpack_from(bytes(data))
        name = raw.split(b"\0", 1)[0].decode("utf-8", "surrogateescape")
        return cls(inum, name)


def inode_block(inum: int, sb: Superblock) -> int:
    """Block that holds inode ``inum``."""
    return inum // IPB + sb.inodestart


def bitmap_block(b: int, sb: Superblock) -> int:
    """Block of the free map that holds the bit for block ``b``."""
    return b // BPB + sb.bmapstart