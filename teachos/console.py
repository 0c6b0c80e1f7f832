"""Console: line-edited keyboard input and output to the screen and serial port."""

from __future__ import annotations

from .layout import KernelPanic

BACKSPACE = 0x100
INPUT_BUF = 128
COLS = 80
ROWS = 25
_DIGITS = "0123456789abcdef"


def _ctrl(x: str) -> int:
    return ord(x) - ord("@")


class CgaScreen:
    """An 80x25 text-mode display with a cursor."""

    def __init__(self):
        self.cells = [0] * (COLS * ROWS)
        self.pos = 0

    def putc(self, c: int) -> None:
        pos = self.pos
        if c == ord("\n"):
            pos += COLS - pos % COLS
        elif c == BACKSPACE:
            if pos > 0:
                pos -= 1
        else:
            self.cells[pos] = (c & 0xFF) | 0x0700
            pos += 1
        if pos < 0 or pos > ROWS * COLS:
            raise KernelPanic("pos under/overflow")
        if pos // COLS >= 24:
            self.cells[:23 * COLS] = self.cells[COLS:24 * COLS]
            pos -= COLS
            self.cells[pos:24 * COLS] = [0] * (24 * COLS - pos)
        self.pos = pos
        self.cells[pos] = ord(" ") | 0x0700

    def text(self) -> str:
        """The screen contents, trailing blanks removed."""
        rows = []
        for r in range(ROWS):
            row = self.cells[r * COLS:(r + 1) * COLS]
            rows.append("".join(chr(cell & 0xFF) if cell & 0xFF else " " for cell in row).rstrip())
        return "\n".join(rows).rstrip("\n")


def _printint(value: int, base: int, signed: bool) -> str:
    x = int(value) & 0xFFFFFFFF
    negative = signed and bool(x & 0x80000000)
    if negative:
        x = (-x) & 0xFFFFFFFF
    digits = []
    while True:
        digits.append(_DIGITS[x % base])
        x //= base
        if x == 0:
            break
    if negative:
        digits.append("-")
    return "".join(reversed(digits))


class Console:
    """Echoes input, edits lines and hands completed lines to readers."""

    def __init__(self, output):
        self.output = output
        self.screen = CgaScreen()
        self.procdump = None
        self._buf = [0] * INPUT_BUF
        self._r = self._w = self._e = 0

    def _putc(self, c: int) -> None:
        if c == BACKSPACE:
            self.output.write("\b \b")
        else:
            self.output.write(chr(c & 0xFF))
        self.screen.putc(c)

    def intr(self, chars) -> None:
        """Handle typed characters (ints or a string)."""
        dump = False
        for c in chars:
            c = ord(c) if isinstance(c, str) else int(c)
            if c == _ctrl("P"):
                dump = True
            elif c == _ctrl("U"):
                while self._e != self._w and self._buf[(self._e - 1) % INPUT_BUF] != ord("\n"):
                    self._e -= 1
                    self._putc(BACKSPACE)
            elif c in (_ctrl("H"), 0x7F):
                if self._e != self._w:
                    self._e -= 1
                    self._putc(BACKSPACE)
            elif c != 0 and self._e - self._r < INPUT_BUF:
                if c == ord("\r"):
                    c = ord("\n")
                self._buf[self._e % INPUT_BUF] = c
                self._e += 1
                self._putc(c)
                if c in (ord("\n"), _ctrl("D")) or self._e == self._r + INPUT_BUF:
                    self._w = self._e
        if dump and self.procdump is not None:
            self.procdump()

    def read(self, n: int) -> bytes:
        """Read up to one completed line; raises BlockingIOError if none is ready."""
        if self._r == self._w:
            raise BlockingIOError("no console input ready")
        target = n
        out = bytearray()
        while n > 0 and self._r != self._w:
            c = self._buf[self._r % INPUT_BUF]
            self._r += 1
            if c == _ctrl("D"):
                if n < target:
                    # Keep ^D so the next read returns nothing.
                    self._r -= 1
                break
            out.append(c)
            n -= 1
            if c == ord("\n"):
                break
        return bytes(out)

    def write(self, data) -> int:
        data = data.encode("latin-1") if isinstance(data, str) else bytes(data)
        for c in data:
            self._putc(c)
        return len(data)

    def cprintf(self, fmt: str, *args) -> None:
        """Print; understands %d, %x, %p, %s and %%."""
        if fmt is None:
            raise KernelPanic("null fmt")
        remaining = iter(args)
        out = []
        chars = iter(fmt)
        for c in chars:
            if c != "%":
                out.append(c)
                continue
            c = next(chars, "")
            if not c:
                break
            if c == "d":
                out.append(_printint(next(remaining), 10, True))
            elif c in "xp":
                out.append(_printint(next(remaining), 16, False))
            elif c == "s":
                s = next(remaining)
                out.append("(null)" if s is None else str(s))
            elif c == "%":
                out.append("%")
            else:
                out.append("%" + c)
        for ch in "".join(out):
            self._putc(ord(ch) & 0xFF)