"""A bounded in-memory pipe between a writer and a reader."""

from __future__ import annotations

import threading

PIPESIZE = 512


class Pipe:
    """Byte pipe holding at most PIPESIZE unread bytes; both ends may block."""

    def __init__(self):
        self._data = bytearray()
        self._cond = threading.Condition()
        self.readopen = True
        self.writeopen = True

    def write(self, data) -> int:
        """Write all of ``data``, waiting for room; BrokenPipeError if no reader."""
        data = bytes(data)
        pos = 0
        with self._cond:
            while pos < len(data):
                while len(self._data) == PIPESIZE:
                    if not self.readopen:
                        raise BrokenPipeError("pipe has no reader")
                    self._cond.notify_all()
                    self._cond.wait()
                if not self.readopen:
                    raise BrokenPipeError("pipe has no reader")
                room = PIPESIZE - len(self._data)
                chunk = data[pos:pos + room]
                self._data += chunk
                pos += len(chunk)
            self._cond.notify_all()
        return len(data)

    def read(self, n: int) -> bytes:
        """Read up to ``n`` bytes, waiting for data; b"" once the writer is gone."""
        with self._cond:
            while not self._data and self.writeopen:
                self._cond.wait()
            out = bytes(self._data[:n])
            del self._data[:n]
            self._cond.notify_all()
        return out

    def close(self, writable: bool) -> None:
        """Close the write end if ``writable``, else the read end."""
        with self._cond:
            if writable:
                self.writeopen = False
            else:
                self.readopen = False
            self._cond.notify_all()