"""Build an initial file system image."""

from __future__ import annotations

import os
import struct
import sys
from pathlib import Path

from .layout import (
    BPB,
    BSIZE,
    DINODE_SIZE,
    IPB,
    MAXFILE,
    NDIRECT,
    NINDIRECT,
    ROOTINO,
    Dinode,
    Dirent,
    InodeType,
    Superblock,
    inode_block,
)

FSSIZE = 1000
LOGSIZE = 30
NINODES = 200

_INDIRECT = struct.Struct(f"<{NINDIRECT}I")


def _check_name(name: str) -> None:
    if "/" in name:
        raise ValueError(f"file name may not contain '/': {name!r}")


class ImageBuilder:
    """Writes a fresh file system into a seekable binary file."""

    def __init__(self, image, size=FSSIZE, nlog=LOGSIZE, ninodes=NINODES):
        self._image = image
        self.size = size
        self.nlog = nlog
        self.ninodes = ninodes
        self.nbitmap = size // BPB + 1
        self.ninodeblocks = ninodes // IPB + 1
        self.nmeta = 2 + nlog + self.ninodeblocks + self.nbitmap
        self.nblocks = size - self.nmeta
        self.sb = Superblock(
            size=size,
            nblocks=self.nblocks,
            ninodes=ninodes,
            nlog=nlog,
            logstart=2,
            inodestart=2 + nlog,
            bmapstart=2 + nlog + self.ninodeblocks,
        )
        self.freeinode = 1
        self.freeblock = self.nmeta

        zeroes = bytes(BSIZE)
        for sec in range(size):
            self._wsect(sec, zeroes)
        self._wsect(1, self.sb.pack())

        self.root = self.ialloc(InodeType.DIR)
        self.iappend(self.root, Dirent(self.root, ".").pack())
        self.iappend(self.root, Dirent(self.root, "..").pack())

    def _wsect(self, sec: int, data) -> None:
        self._image.seek(sec * BSIZE)
        self._image.write(bytes(data).ljust(BSIZE, b"\0")[:BSIZE])

    def _rsect(self, sec: int) -> bytes:
        self._image.seek(sec * BSIZE)
        data = self._image.read(BSIZE)
        if len(data) != BSIZE:
            raise OSError(f"short read of sector {sec}")
        return data

    def _winode(self, inum: int, din: Dinode) -> None:
        bn = inode_block(inum, self.sb)
        buf = bytearray(self._rsect(bn))
        off = (inum % IPB) * DINODE_SIZE
        buf[off:off + DINODE_SIZE] = din.pack()
        self._wsect(bn, buf)

    def _rinode(self, inum: int) -> Dinode:
        buf = self._rsect(inode_block(inum, self.sb))
        off = (inum % IPB) * DINODE_SIZE
        return Dinode.unpack(buf[off:off + DINODE_SIZE])

    def _take_block(self) -> int:
        block = self.freeblock
        self.freeblock += 1
        return block

    def ialloc(self, type_) -> int:
        """Allocate the next inode with the given type; return its number."""
        inum = self.freeinode
        self.freeinode += 1
        self._winode(inum, Dinode(type=int(type_), nlink=1, size=0))
        return inum

    def iappend(self, inum: int, data) -> None:
        """Append ``data`` to the end of inode ``inum``."""
        data = bytes(data)
        din = self._rinode(inum)
        off = din.size
        pos = 0
        while pos < len(data):
            fbn = off // BSIZE
            if fbn >= MAXFILE:
                raise ValueError("file too large for the file system")
            if fbn < NDIRECT:
                if din.addrs[fbn] == 0:
                    din.addrs[fbn] = self._take_block()
                block = din.addrs[fbn]
            else:
                if din.addrs[NDIRECT] == 0:
                    din.addrs[NDIRECT] = self._take_block()
                indirect = list(_INDIRECT.unpack(self._rsect(din.addrs[NDIRECT])))
                if indirect[fbn - NDIRECT] == 0:
                    indirect[fbn - NDIRECT] = self._take_block()
                    self._wsect(din.addrs[NDIRECT], _INDIRECT.pack(*indirect))
                block = indirect[fbn - NDIRECT]
            n1 = min(len(data) - pos, (fbn + 1) * BSIZE - off)
            buf = bytearray(self._rsect(block))
            start = off - fbn * BSIZE
            buf[start:start + n1] = data[pos:pos + n1]
            self._wsect(block, buf)
            pos += n1
            off += n1
        din.size = off
        self._winode(inum, din)

    def add_file(self, name: str, data) -> int:
        """Add a file to the root directory; a leading '_' is dropped from the name."""
        _check_name(name)
        if name.startswith("_"):
            name = name[1:]
        inum = self.ialloc(InodeType.FILE)
        self.iappend(self.root, Dirent(inum, name).pack())
        self.iappend(inum, data)
        return inum

    def finish(self) -> int:
        """Round up the root directory size and write the free bitmap.

        Returns the number of blocks marked as in use.
        """
        din = self._rinode(self.root)
        din.size = (din.size // BSIZE + 1) * BSIZE
        self._winode(self.root, din)

        used = self.freeblock
        if used >= BPB:
            raise ValueError("too many blocks in use for one bitmap block")
        bitmap = bytearray(BSIZE)
        for i in range(used):
            bitmap[i // 8] |= 1 << (i % 8)
        self._wsect(self.sb.bmapstart, bitmap)
        return used


def build_image(path, files, size=FSSIZE, nlog=LOGSIZE, ninodes=NINODES) -> ImageBuilder:
    """Create the image at ``path`` holding the given host files."""
    names = [os.fspath(f) for f in files]
    for name in names:
        _check_name(name)
    with open(path, "w+b") as image:
        builder = ImageBuilder(image, size, nlog, ninodes)
        for name in names:
            builder.add_file(name, Path(name).read_bytes())
        builder.finish()
    return builder


def main(argv=None) -> int:
    args = sys.argv[1:] if argv is None else list(argv)
    if not args:
        print("Usage: mkfs fs.img files...", file=sys.stderr)
        return 1
    try:
        builder = build_image(args[0], args[1:])
    except OSError as exc:
        print(f"{exc.filename or args[0]}: {exc.strerror or exc}", file=sys.stderr)
        return 1
    except ValueError as exc:
        print(f"mkfs: {exc}", file=sys.stderr)
        return 1
    print(
        f"nmeta {builder.nmeta} (boot, super, log blocks {builder.nlog} "
        f"inode blocks {builder.ninodeblocks}, bitmap blocks {builder.nbitmap}) "
        f"blocks {builder.nblocks} total {builder.size}"
    )
    print(f"balloc: first {builder.freeblock} blocks have been allocated")
    print(f"balloc: write bitmap block at sector {builder.sb.bmapstart}")
    return 0