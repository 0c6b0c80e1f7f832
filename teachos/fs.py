"""File system: block allocation, inodes, directories and path names."""

from __future__ import annotations

import errno
import struct
from dataclasses import dataclass, field

from .disk import BufferCache
from .layout import (
    BPB,
    BSIZE,
    DINODE_SIZE,
    DIRENT_SIZE,
    DIRSIZ,
    IPB,
    MAXFILE,
    NDIRECT,
    NINDIRECT,
    ROOTINO,
    Dinode,
    Dirent,
    InodeType,
    KernelPanic,
    Superblock,
    bitmap_block,
    inode_block,
)
from .log import Log

NDEV = 10
NINODE = 50
ROOTDEV = 1

_UINT = struct.Struct("<I")


def skipelem(path: str):
    """Split off the first element of ``path``.

    Returns ``(name, rest)`` where ``rest`` has no leading slashes, or None
    when there is no element left.  Names are cut to DIRSIZ characters.
    """
    path = path.lstrip("/")
    if not path:
        return None
    name, _, rest = path.partition("/")
    return name[:DIRSIZ], rest.lstrip("/")


def _name_bytes(s) -> bytes:
    raw = s.encode("utf-8", "surrogateescape") if isinstance(s, str) else bytes(s)
    return raw.split(b"\0", 1)[0][:DIRSIZ]


def namecmp(s, t) -> int:
    """Compare two directory entry names over at most DIRSIZ bytes."""
    a, b = _name_bytes(s), _name_bytes(t)
    return (a > b) - (a < b)


@dataclass
class Stat:
    """Metadata about a file."""

    dev: int
    ino: int
    type: int
    nlink: int
    size: int


def _zero_addrs() -> list[int]:
    return [0] * (NDIRECT + 1)


@dataclass(eq=False)
class Inode:
    """In-memory copy of an inode plus cache bookkeeping."""

    dev: int = 0
    inum: int = 0
    ref: int = 0
    locked: bool = False
    valid: bool = False
    type: int = 0
    major: int = 0
    minor: int = 0
    nlink: int = 0
    size: int = 0
    addrs: list[int] = field(default_factory=_zero_addrs)


class FileSystem:
    """Inode cache and file system operations on one device."""

    def __init__(self, cache: BufferCache, log: Log, dev: int = ROOTDEV,
                 ninode: int = NINODE, devsw=None):
        self.cache = cache
        self.log = log
        self.dev = dev
        self.devsw = {} if devsw is None else devsw
        self._inodes = [Inode() for _ in range(ninode)]
        self.sb = self._readsb()

    def _readsb(self) -> Superblock:
        bp = self.cache.bread(self.dev, 1)
        sb = Superblock.unpack(bp.data)
        self.cache.brelse(bp)
        return sb

    # Blocks.

    def _bzero(self, bno: int) -> None:
        bp = self.cache.bread(self.dev, bno)
        bp.data[:] = bytes(BSIZE)
        self.log.log_write(bp)
        self.cache.brelse(bp)

    def _balloc(self) -> int:
        for b in range(0, self.sb.size, BPB):
            bp = self.cache.bread(self.dev, bitmap_block(b, self.sb))
            for bi in range(min(BPB, self.sb.size - b)):
                m = 1 << (bi % 8)
                if not bp.data[bi // 8] & m:
                    bp.data[bi // 8] |= m
                    self.log.log_write(bp)
                    self.cache.brelse(bp)
                    self._bzero(b + bi)
                    return b + bi
            self.cache.brelse(bp)
        raise KernelPanic("balloc: out of blocks")

    def _bfree(self, b: int) -> None:
        bp = self.cache.bread(self.dev, bitmap_block(b, self.sb))
        bi = b % BPB
        m = 1 << (bi % 8)
        if not bp.data[bi // 8] & m:
            self.cache.brelse(bp)
            raise KernelPanic("freeing free block")
        bp.data[bi // 8] &= ~m & 0xFF
        self.log.log_write(bp)
        self.cache.brelse(bp)

    # Inodes.

    @staticmethod
    def _slot(inum: int) -> slice:
        start = (inum % IPB) * DINODE_SIZE
        return slice(start, start + DINODE_SIZE)

    def ialloc(self, type_) -> Inode:
        """Allocate an on-disk inode of the given type; return it unlocked."""
        for inum in range(1, self.sb.ninodes):
            bp = self.cache.bread(self.dev, inode_block(inum, self.sb))
            slot = self._slot(inum)
            if Dinode.unpack(bp.data[slot]).type == 0:
                bp.data[slot] = Dinode(type=int(type_)).pack()
                self.log.log_write(bp)
                self.cache.brelse(bp)
                return self.iget(inum)
            self.cache.brelse(bp)
        raise KernelPanic("ialloc: no inodes")

    def iupdate(self, ip: Inode) -> None:
        """Copy a modified in-memory inode to disk."""
        bp = self.cache.bread(ip.dev, inode_block(ip.inum, self.sb))
        bp.data[self._slot(ip.inum)] = Dinode(
            int(ip.type), ip.major, ip.minor, ip.nlink, ip.size, list(ip.addrs)
        ).pack()
        self.log.log_write(bp)
        self.cache.brelse(bp)

    def iget(self, inum: int) -> Inode:
        """Return the cached inode for ``inum``, neither locked nor read."""
        empty = None
        for ip in self._inodes:
            if ip.ref > 0 and ip.dev == self.dev and ip.inum == inum:
                ip.ref += 1
                return ip
            if empty is None and ip.ref == 0:
                empty = ip
        if empty is None:
            raise KernelPanic("iget: no inodes")
        empty.dev = self.dev
        empty.inum = inum
        empty.ref = 1
        empty.valid = False
        return empty

    def idup(self, ip: Inode) -> Inode:
        ip.ref += 1
        return ip

    def ilock(self, ip: Inode) -> None:
        """Lock the inode, reading it from disk if necessary."""
        if ip is None or ip.ref < 1:
            raise KernelPanic("ilock")
        if ip.locked:
            raise KernelPanic("ilock: already locked")
        ip.locked = True
        if not ip.valid:
            bp = self.cache.bread(ip.dev, inode_block(ip.inum, self.sb))
            din = Dinode.unpack(bp.data[self._slot(ip.inum)])
            self.cache.brelse(bp)
            ip.type, ip.major, ip.minor = din.type, din.major, din.minor
            ip.nlink, ip.size, ip.addrs = din.nlink, din.size, list(din.addrs)
            ip.valid = True
            if ip.type == 0:
                raise KernelPanic("ilock: no type")

    def iunlock(self, ip: Inode) -> None:
        if ip is None or not ip.locked or ip.ref < 1:
            raise KernelPanic("iunlock")
        ip.locked = False

    def iput(self, ip: Inode) -> None:
        """Drop a reference; free the inode on disk if nothing refers to it."""
        if ip.locked:
            raise KernelPanic("iput: inode locked")
        ip.locked = True
        try:
            if ip.valid and ip.nlink == 0 and ip.ref == 1:
                self._itrunc(ip)
                ip.type = 0
                self.iupdate(ip)
                ip.valid = False
        finally:
            ip.locked = False
        ip.ref -= 1

    def iunlockput(self, ip: Inode) -> None:
        self.iunlock(ip)
        self.iput(ip)

    # Inode content.

    def _bmap(self, ip: Inode, bn: int) -> int:
        if bn < NDIRECT:
            if ip.addrs[bn] == 0:
                ip.addrs[bn] = self._balloc()
            return ip.addrs[bn]
        bn -= NDIRECT
        if bn < NINDIRECT:
            if ip.addrs[NDIRECT] == 0:
                ip.addrs[NDIRECT] = self._balloc()
            bp = self.cache.bread(ip.dev, ip.addrs[NDIRECT])
            (addr,) = _UINT.unpack_from(bp.data, bn * 4)
            if addr == 0:
                addr = self._balloc()
                _UINT.pack_into(bp.data, bn * 4, addr)
                self.log.log_write(bp)
            self.cache.brelse(bp)
            return addr
        raise KernelPanic("bmap: out of range")

    def _itrunc(self, ip: Inode) -> None:
        for i in range(NDIRECT):
            if ip.addrs[i]:
                self._bfree(ip.addrs[i])
                ip.addrs[i] = 0
        if ip.addrs[NDIRECT]:
            bp = self.cache.bread(ip.dev, ip.addrs[NDIRECT])
            entries = struct.unpack_from(f"<{NINDIRECT}I", bp.data)
            self.cache.brelse(bp)
            for addr in entries:
                if addr:
                    self._bfree(addr)
            self._bfree(ip.addrs[NDIRECT])
            ip.addrs[NDIRECT] = 0
        ip.size = 0
        self.iupdate(ip)

    def stati(self, ip: Inode) -> Stat:
        return Stat(ip.dev, ip.inum, ip.type, ip.nlink, ip.size)

    def _device(self, ip: Inode, op: str):
        device = self.devsw.get(ip.major) if 0 <= ip.major < NDEV else None
        handler = getattr(device, op, None) if device is not None else None
        if handler is None:
            raise OSError(errno.ENODEV, f"no device for major {ip.major}")
        return handler

    def readi(self, ip: Inode, off: int, n: int) -> bytes:
        """Read up to ``n`` bytes at ``off``.  Caller holds the inode lock."""
        if ip.type == InodeType.DEV:
            return bytes(self._device(ip, "read")(n))
        if off < 0 or n < 0 or off > ip.size:
            raise OSError(errno.EINVAL, "read offset beyond end of file")
        n = min(n, ip.size - off)
        out = bytearray()
        while len(out) < n:
            bp = self.cache.bread(ip.dev, self._bmap(ip, off // BSIZE))
            start = off % BSIZE
            m = min(n - len(out), BSIZE - start)
            out += bp.data[start:start + m]
            self.cache.brelse(bp)
            off += m
        return bytes(out)

    def writei(self, ip: Inode, data, off: int) -> int:
        """Write ``data`` at ``off``.  Caller holds the inode lock."""
        data = bytes(data)
        if ip.type == InodeType.DEV:
            return self._device(ip, "write")(data)
        n = len(data)
        if off < 0 or off > ip.size:
            raise OSError(errno.EINVAL, "write offset beyond end of file")
        if off + n > MAXFILE * BSIZE:
            raise OSError(errno.EFBIG, "file too large")
        pos = 0
        while pos < n:
            bp = self.cache.bread(ip.dev, self._bmap(ip, off // BSIZE))
            start = off % BSIZE
            m = min(n - pos, BSIZE - start)
            bp.data[start:start + m] = data[pos:pos + m]
            self.log.log_write(bp)
            self.cache.brelse(bp)
            pos += m
            off += m
        if n > 0 and off > ip.size:
            ip.size = off
            self.iupdate(ip)
        return n

    # Directories.

    def dirlookup(self, dp: Inode, name: str):
        """Find ``name`` in directory ``dp``; return ``(inode, offset)`` or None."""
        if dp.type != InodeType.DIR:
            raise KernelPanic("dirlookup not DIR")
        for off in range(0, dp.size, DIRENT_SIZE):
            raw = self.readi(dp, off, DIRENT_SIZE)
            if len(raw) != DIRENT_SIZE:
                raise KernelPanic("dirlookup read")
            de = Dirent.unpack(raw)
            if de.inum != 0 and namecmp(name, de.name) == 0:
                return self.iget(de.inum), off
        return None

    def dirlink(self, dp: Inode, name: str, inum: int) -> None:
        """Add the entry ``(name, inum)`` to directory ``dp``."""
        found = self.dirlookup(dp, name)
        if found is not None:
            self.iput(found[0])
            raise FileExistsError(errno.EEXIST, "name already in directory", name)
        for off in range(0, dp.size, DIRENT_SIZE):
            raw = self.readi(dp, off, DIRENT_SIZE)
            if len(raw) != DIRENT_SIZE:
                raise KernelPanic("dirlink read")
            if Dirent.unpack(raw).inum == 0:
                break
        else:
            off = dp.size
        if self.writei(dp, Dirent(inum, name).pack(), off) != DIRENT_SIZE:
            raise KernelPanic("dirlink")

    # Paths.

    def _namex(self, path: str, parent: bool, cwd):
        if path.startswith("/") or cwd is None:
            ip = self.iget(ROOTINO)
        else:
            ip = self.idup(cwd)
        name = ""
        while (elem := skipelem(path)) is not None:
            name, path = elem
            self.ilock(ip)
            if ip.type != InodeType.DIR:
                self.iunlockput(ip)
                return None
            if parent and path == "":
                self.iunlock(ip)
                return ip, name
            found = self.dirlookup(ip, name)
            if found is None:
                self.iunlockput(ip)
                return None
            self.iunlockput(ip)
            ip = found[0]
        if parent:
            self.iput(ip)
            return None
        return ip, name

    def namei(self, path: str, cwd=None):
        """Inode for ``path`` or None; relative paths start at ``cwd`` (root if None)."""
        found = self._namex(path, False, cwd)
        return None if found is None else found[0]

    def nameiparent(self, path: str, cwd=None):
        """``(parent inode, final name)`` for ``path``, or None."""
        return self._namex(path, True, cwd)