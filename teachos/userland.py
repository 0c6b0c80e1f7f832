"""Small user programs: cat, echo and ls."""

from __future__ import annotations

import errno

from .layout import DIRENT_SIZE, DIRSIZ, Dirent, InodeType

_CHUNK = 512
_PATH_BUF = 512


def cat(streams, out) -> None:
    """Copy each binary stream in turn to ``out``."""
    for stream in streams:
        while chunk := stream.read(_CHUNK):
            written = out.write(chunk)
            if written is not None and written != len(chunk):
                raise OSError(errno.EIO, "cat: write error")


def echo(args, out) -> None:
    """Write the arguments separated by spaces and ended by a newline."""
    args = list(args)
    if args:
        out.write(" ".join(args) + "\n")


def fmtname(path: str) -> str:
    """Final element of ``path``, blank-padded to DIRSIZ unless longer."""
    name = path.rsplit("/", 1)[-1]
    if len(name) >= DIRSIZ:
        return name
    return name.ljust(DIRSIZ)


def _line(path: str, st) -> str:
    return f"{fmtname(path)} {int(st.type)} {st.ino} {st.size}\n"


def _stat(fs, path: str):
    ip = fs.namei(path)
    if ip is None:
        return None
    fs.ilock(ip)
    st = fs.stati(ip)
    fs.iunlockput(ip)
    return st


def _dirents(fs, ip):
    off = 0
    while True:
        raw = fs.readi(ip, off, DIRENT_SIZE)
        if len(raw) != DIRENT_SIZE:
            return
        yield Dirent.unpack(raw)
        off += DIRENT_SIZE


def ls(fs, path: str, out) -> None:
    """List a file or the entries of a directory on the file system ``fs``."""
    with fs.log.transaction():
        ip = fs.namei(path)
        if ip is None:
            raise FileNotFoundError(errno.ENOENT, f"ls: cannot open {path}", path)
        fs.ilock(ip)
        try:
            st = fs.stati(ip)
            entries = list(_dirents(fs, ip)) if st.type == InodeType.DIR else []
        finally:
            fs.iunlockput(ip)

        if st.type == InodeType.FILE:
            out.write(_line(path, st))
        elif st.type == InodeType.DIR:
            if len(path) + 1 + DIRSIZ + 1 > _PATH_BUF:
                out.write("ls: path too long\n")
                return
            for de in entries:
                if de.inum == 0:
                    continue
                entry = f"{path}/{de.name}"
                est = _stat(fs, entry)
                if est is None:
                    out.write(f"ls: cannot stat {entry}\n")
                    continue
                out.write(_line(entry, est))