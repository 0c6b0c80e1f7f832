"""Formatted output for user programs."""

from __future__ import annotations

_DIGITS = "0123456789ABCDEF"


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


def _as_text(value) -> str:
    if value is None:
        return "(null)"
    if isinstance(value, (bytes, bytearray)):
        value = bytes(value).decode("latin-1")
    return str(value).split("\0", 1)[0]


def format_printf(fmt: str, *args) -> str:
    """Format like the user-level printf: understands %d, %x, %p, %s, %c and %%."""
    remaining = iter(args)

    def next_arg():
        try:
            return next(remaining)
        except StopIteration:
            raise TypeError("not enough arguments for format string") from None

    out = []
    pending = False
    for c in fmt.split("\0", 1)[0]:
        if not pending:
            if c == "%":
                pending = True
            else:
                out.append(c)
            continue
        pending = False
        if c == "d":
            out.append(_printint(next_arg(), 10, True))
        elif c in "xp":
            out.append(_printint(next_arg(), 16, False))
        elif c == "s":
            out.append(_as_text(next_arg()))
        elif c == "c":
            arg = next_arg()
            out.append(arg[:1] if isinstance(arg, str) else chr(int(arg) & 0xFF))
        elif c == "%":
            out.append("%")
        else:
            # Unknown sequence: print it to draw attention.
            out.append("%" + c)
    return "".join(out)


def fprintf(stream, fmt: str, *args) -> None:
    """Write formatted text to a text stream."""
    stream.write(format_printf(fmt, *args))