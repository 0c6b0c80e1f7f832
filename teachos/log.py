"""Write-ahead redo log giving file system operations crash atomicity."""

from __future__ import annotations

import struct
from contextlib import contextmanager

from .disk import Buf, BufferCache
from .layout import BSIZE, KernelPanic, Superblock

LOGSIZE = 30
MAXOPBLOCKS = 10


class Log:
    """Groups block writes into transactions committed through the log area."""

    def __init__(self, cache: BufferCache, dev: int, sb: Superblock,
                 logsize: int = LOGSIZE, maxopblocks: int = MAXOPBLOCKS):
        self._header = struct.Struct(f"<i{logsize}i")
        if self._header.size >= BSIZE:
            raise KernelPanic("initlog: too big logheader")
        self.cache = cache
        self.dev = dev
        self.start = sb.logstart
        self.size = sb.nlog
        self.logsize = logsize
        self.maxopblocks = maxopblocks
        self.outstanding = 0
        self.committing = False
        self.blocks: list[int] = []
        self.recover()

    def _read_head(self) -> None:
        buf = self.cache.bread(self.dev, self.start)
        values = self._header.unpack_from(buf.data)
        self.blocks = list(values[1:1 + values[0]])
        self.cache.brelse(buf)

    def _write_head(self) -> None:
        buf = self.cache.bread(self.dev, self.start)
        padded = self.blocks + [0] * (self.logsize - len(self.blocks))
        self._header.pack_into(buf.data, 0, len(self.blocks), *padded)
        self.cache.bwrite(buf)
        self.cache.brelse(buf)

    def _copy(self, pairs) -> None:
        for src_no, dst_no in pairs:
            src = self.cache.bread(self.dev, src_no)
            dst = self.cache.bread(self.dev, dst_no)
            dst.data[:] = src.data
            self.cache.bwrite(dst)
            self.cache.brelse(src)
            self.cache.brelse(dst)

    def _install(self) -> None:
        self._copy((self.start + i + 1, b) for i, b in enumerate(self.blocks))

    def _write_log(self) -> None:
        self._copy((b, self.start + i + 1) for i, b in enumerate(self.blocks))

    def recover(self) -> None:
        """Install any committed transaction found on disk, then clear the log."""
        self._read_head()
        self._install()
        self.blocks = []
        self._write_head()

    def _commit(self) -> None:
        if self.blocks:
            self._write_log()
            self._write_head()
            self._install()
            self.blocks = []
            self._write_head()

    def begin_op(self) -> None:
        """Mark the start of a file system operation."""
        if self.committing:
            raise KernelPanic("begin_op during commit")
        if len(self.blocks) + (self.outstanding + 1) * self.maxopblocks > self.logsize:
            raise KernelPanic("begin_op: log space exhausted")
        self.outstanding += 1

    def end_op(self) -> None:
        """Mark the end of an operation; the last one out commits."""
        if self.outstanding < 1:
            raise KernelPanic("end_op outside of trans")
        self.outstanding -= 1
        if self.committing:
            raise KernelPanic("log.committing")
        if self.outstanding == 0:
            self.committing = True
            try:
                self._commit()
            finally:
                self.committing = False

    @contextmanager
    def transaction(self):
        """Run the enclosed block as one operation."""
        self.begin_op()
        try:
            yield self
        finally:
            self.end_op()

    def log_write(self, buf: Buf) -> None:
        """Record a modified buffer in the current transaction and pin it."""
        if len(self.blocks) >= self.logsize or len(self.blocks) >= self.size - 1:
            raise KernelPanic("too big a transaction")
        if self.outstanding < 1:
            raise KernelPanic("log_write outside of trans")
        if buf.blockno not in self.blocks:
            self.blocks.append(buf.blockno)
        buf.dirty = True