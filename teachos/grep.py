"""A small grep supporting only the ^ . * $ operators."""

from __future__ import annotations

import sys

_BUF_SIZE = 1024


def _matchhere(re: str, ri: int, text: str, ti: int) -> bool:
    while True:
        if ri == len(re):
            return True
        if ri + 1 < len(re) and re[ri + 1] == "*":
            return _matchstar(re[ri], re, ri + 2, text, ti)
        if re[ri] == "$" and ri + 1 == len(re):
            return ti == len(text)
        if ti < len(text) and (re[ri] == "." or re[ri] == text[ti]):
            ri += 1
            ti += 1
            continue
        return False


def _matchstar(c: str, re: str, ri: int, text: str, ti: int) -> bool:
    while True:
        if _matchhere(re, ri, text, ti):
            return True
        if ti < len(text) and (text[ti] == c or c == "."):
            ti += 1
            continue
        return False


def match(re: str, text: str) -> bool:
    """Whether the pattern ``re`` matches anywhere in ``text``."""
    if re.startswith("^"):
        return _matchhere(re, 1, text, 0)
    return any(_matchhere(re, 0, text, ti) for ti in range(len(text) + 1))


def grep(pattern: str, stream, out) -> None:
    """Copy to ``out`` each newline-terminated line of ``stream`` that matches.

    Lines are read through a fixed buffer: a final line without a newline is
    not examined, and a buffer full of text without any newline is dropped.
    """
    buf = b""
    while True:
        chunk = stream.read(_BUF_SIZE - len(buf) - 1)
        if not chunk:
            break
        buf += chunk
        *lines, rest = buf.split(b"\n")
        for line in lines:
            if match(pattern, line.decode("latin-1")):
                out.write(line + b"\n")
        buf = rest if lines else b""


def main(argv=None) -> int:
    args = sys.argv[1:] if argv is None else list(argv)
    if not args:
        print("usage: grep pattern [file ...]", file=sys.stderr)
        return 1
    pattern, files = args[0], args[1:]
    out = sys.stdout.buffer
    if not files:
        grep(pattern, sys.stdin.buffer, out)
        out.flush()
        return 0
    for name in files:
        try:
            stream = open(name, "rb")
        except OSError:
            out.write(f"grep: cannot open {name}\n".encode())
            out.flush()
            return 1
        with stream:
            grep(pattern, stream, out)
    out.flush()
    return 0