"""An in-memory disk and the block buffer cache that sits on top of it."""

from __future__ import annotations

from dataclasses import dataclass, field

from .layout import BSIZE, KernelPanic

DISK_DEV = 1
NBUF = 30


class MemDisk:
    """A disk whose blocks live in memory."""

    dev = DISK_DEV

    def __init__(self, data=b""):
        self.data = bytearray(data)
        self.nblocks = len(self.data) // BSIZE

    def _check(self, blockno: int) -> int:
        if not 0 <= blockno < self.nblocks:
            raise KernelPanic("iderw: block out of range")
        return blockno * BSIZE

    def read_block(self, blockno: int) -> bytes:
        start = self._check(blockno)
        return bytes(self.data[start:start + BSIZE])

    def write_block(self, blockno: int, data) -> None:
        start = self._check(blockno)
        block = bytes(data)
        if len(block) != BSIZE:
            raise ValueError(f"a block holds exactly {BSIZE} bytes")
        self.data[start:start + BSIZE] = block


@dataclass(eq=False)
class Buf:
    """A cached copy of one disk block."""

    dev: int = -1
    blockno: int = -1
    valid: bool = False
    dirty: bool = False
    refcnt: int = 0
    locked: bool = False
    data: bytearray = field(default_factory=lambda: bytearray(BSIZE))


class BufferCache:
    """Fixed set of buffers recycled in least-recently-used order."""

    def __init__(self, disk: MemDisk, nbuf: int = NBUF):
        self.disk = disk
        # Most recently used first.
        self._lru = [Buf() for _ in range(nbuf)]

    def _lock(self, buf: Buf) -> Buf:
        if buf.locked:
            raise KernelPanic("buffer already locked")
        buf.locked = True
        return buf

    def _get(self, dev: int, blockno: int) -> Buf:
        for buf in self._lru:
            if buf.dev == dev and buf.blockno == blockno:
                buf.refcnt += 1
                return self._lock(buf)
        for buf in reversed(self._lru):
            # A dirty buffer with no references is still pinned by the log.
            if buf.refcnt == 0 and not buf.dirty:
                buf.dev, buf.blockno = dev, blockno
                buf.valid = buf.dirty = False
                buf.refcnt = 1
                return self._lock(buf)
        raise KernelPanic("bget: no buffers")

    def _sync(self, buf: Buf) -> None:
        if not buf.locked:
            raise KernelPanic("iderw: buf not locked")
        if buf.valid and not buf.dirty:
            raise KernelPanic("iderw: nothing to do")
        if buf.dev != self.disk.dev:
            raise KernelPanic("iderw: request not for disk 1")
        if buf.dirty:
            self.disk.write_block(buf.blockno, buf.data)
            buf.dirty = False
        else:
            buf.data[:] = self.disk.read_block(buf.blockno)
        buf.valid = True

    def bread(self, dev: int, blockno: int) -> Buf:
        """Return a locked buffer holding the contents of the block."""
        buf = self._get(dev, blockno)
        if not buf.valid:
            self._sync(buf)
        return buf

    def bwrite(self, buf: Buf) -> None:
        """Write a locked buffer's contents to disk."""
        if not buf.locked:
            raise KernelPanic("bwrite")
        buf.dirty = True
        self._sync(buf)

    def brelse(self, buf: Buf) -> None:
        """Release a locked buffer, making it the most recently used."""
        if not buf.locked:
            raise KernelPanic("brelse")
        buf.locked = False
        buf.refcnt -= 1
        if buf.refcnt == 0:
            self._lru.remove(buf)
            self._lru.insert(0, buf)