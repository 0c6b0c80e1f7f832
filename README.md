# teachos

`teachos` holds the storage and I/O layers of a small teaching operating
system as a plain Python library. It builds disk images in the system's
on-disk format, then reads and changes them through a buffer cache, a
write-ahead log and an inode layer. It also has a line-editing console,
PC keyboard scan-code decoding, a reader for MultiProcessor configuration
tables, and a few user programs.

## Modules

- `teachos.layout`: the on-disk format. `Superblock`, `Dinode` and `Dirent`
  records convert to and from bytes with `pack()` and `unpack()`.
  `InodeType` lists the kinds of inode (`DIR`, `FILE`, `DEV`).
  `inode_block()` and `bitmap_block()` give the block that holds an inode or
  a free-map bit. `KernelPanic` is raised wherever the kernel would panic.
- `teachos.mkfs`: `ImageBuilder` writes a fresh file system into a seekable
  binary file. Use `ialloc()`, `iappend()`, `add_file()` and `finish()`.
  `build_image()` creates an image file from host files, with 1000 blocks,
  30 log blocks and 200 inodes by default.
- `teachos.disk`: `MemDisk` is a block device kept in a `bytearray`.
  `BufferCache` is a fixed set of `Buf` buffers recycled in LRU order, with
  `bread()`, `bwrite()` and `brelse()`.
- `teachos.log`: `Log` is the redo log. Group updates in
  `with log.transaction():`, or use `begin_op()` / `end_op()`. When the last
  operation ends, the log commits. `log_write()` records a changed buffer.
  `recover()` installs a committed transaction found on disk and runs when
  the log is created.
- `teachos.fs`: `FileSystem` keeps an inode cache and provides `ialloc`,
  `iget`, `idup`, `ilock`, `iunlock`, `iput`, `iunlockput`, `iupdate`,
  `stati`, `readi`, `writei`, `dirlookup`, `dirlink`, `namei` and
  `nameiparent`. `skipelem()` splits off the first path element. `namecmp()`
  compares entry names. `Stat` holds file metadata.
- `teachos.pipe`: `Pipe` is a byte pipe holding at most 512 unread bytes.
  Readers and writers block on a condition variable. Writing with no reader
  raises `BrokenPipeError`.
- `teachos.file`: `FileTable` holds reference-counted `File` entries backed
  by an inode or a pipe (`FileKind`). It provides `alloc`, `dup`, `close`,
  `stat`, `read`, `write` and `pipe`. Writes to an inode are split into
  chunks small enough for one log transaction each.
- `teachos.console`: `Console` echoes typed characters and edits lines:
  backspace, ^U kills the line, ^D marks end of input, and ^P calls the
  optional `procdump` callback. `read()` hands out completed lines.
  `write()` and `cprintf()` produce output (`%d %x %p %s %%`). The output
  goes both to a text stream and to a `CgaScreen`, an 80x25 text screen
  whose contents `text()` returns.
- `teachos.keyboard`: `Keyboard.feed()` turns PC scan codes into character
  codes. It tracks shift, control, caps lock and the E0 escape prefix.
- `teachos.mp`: `parse_mp()` finds the MP floating pointer and configuration
  table in a memory image. It returns an `MPInfo` with the local APIC
  address, the processors' APIC ids (at most 8), the I/O APIC id and the
  IMCR flag. Otherwise it raises `MPError`. The helpers are `checksum()`,
  `search_floating()` and `find_config()`.
- `teachos.uprintf`: `format_printf()` and `fprintf()` implement the
  user-level printf (`%d %x %p %s %c %%`, with hex digits in upper case).
- `teachos.grep`: `match()` is a regular-expression matcher supporting only
  `^ . * $`. `grep()` copies matching lines from one binary stream to
  another.
- `teachos.userland`: `cat()`, `echo()`, `fmtname()` and `ls()`. `ls()`
  lists a path on a `FileSystem`.

## Installing

```
pip install .
```

## Command-line tools

Build a file system image from files in the current directory:

```
teachos-mkfs fs.img README _cat _ls
```

A leading underscore is dropped from each name stored in the image, so
`_cat` is stored as `cat`. Names must not contain `/`. The tool prints the
layout it chose and how many blocks it used.

Print the lines of files that match a pattern:

```
teachos-grep '^ab*c$' notes.txt
```

With no file arguments, `teachos-grep` reads standard input. It only looks
at newline-terminated lines, so a final line without a newline is not
examined.

## Using the library

```python
from teachos.grep import match
from teachos.uprintf import format_printf

match("^ab*c$", "abbbc")                    # True
format_printf("%d %x %s", -5, 255, "hi")    # '-5 FF hi'
```

To open an image and work with it:

```python
import sys
from pathlib import Path

from teachos.disk import BufferCache, MemDisk
from teachos.fs import FileSystem
from teachos.log import Log
from teachos.mkfs import build_image
from teachos.userland import ls

builder = build_image("fs.img", ["README"])
disk = MemDisk(Path("fs.img").read_bytes())
cache = BufferCache(disk)
log = Log(cache, disk.dev, builder.sb)
fs = FileSystem(cache, log)

with log.transaction():
    ip = fs.namei("/README")
    fs.ilock(ip)
    data = fs.readi(ip, 0, ip.size)
    fs.iunlockput(ip)

ls(fs, "/", sys.stdout)
```

`MemDisk` works on its own copy of the bytes. To keep changes, write
`disk.data` back to a file.

## What the package does not do

There is no kernel here to boot or run. The package has no processes,
scheduler, system calls, program loading, virtual memory or shell, and it
does not talk to real disks, screens, serial ports or interrupt controllers.
Each piece runs on one thread as an ordinary object. The exception is
`Pipe`, which blocks with threads. `Log.begin_op()` raises `KernelPanic`
where the kernel would sleep, either during a commit or when the log is out
of room. `Console.read()` raises `BlockingIOError` when no line is ready.

## Running the tests

```
pip install .[test]
pytest
```