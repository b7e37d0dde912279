# teachos

`teachos` models the parts of a small Unix-like teaching operating system in
plain Python. It uses only the standard library.

## What is in it

- **`teachos.layout`** is the on-disk format. It has `Superblock`, `DInode`
  and `Dirent`, and each of them has `pack()` and `unpack()`. It also has the
  helpers `iblock()` and `bblock()`, the `InodeType` enum (`DIR`, `FILE`,
  `DEVICE`), and `Panic`. `Panic` is raised whenever a kernel invariant is
  broken.
- **`teachos.disk.MemoryDisk`** is a block device held in memory. It has
  `read_block()` and `write_block()`. `from_file()` loads an image file and
  `save()` writes the image back. It counts its reads and writes.
- **`teachos.bufcache`** is a fixed pool of `Buffer`s held by a
  `BufferCache`. Buffers are recycled in least-recently-used order, and a
  dirty buffer is never recycled. It has `read()`, `write()`, `release()`,
  and a `block()` context manager.
- **`teachos.mkfs`** builds a fresh file system image. The image has a root
  directory (with `.` and `..`) and the files you give it. Use
  `build_image()` to get the image as bytes, or `write_image()` to write it
  to a file.
- **`teachos.log.Log`** is a redo log in the log region of the disk.
  - Group updates with `begin_op()`/`end_op()` or with the `transaction()`
    context manager.
  - Call `log_write()` to record each modified buffer.
  - The last operation to end commits the log.
  - `recover()` installs any transaction that was committed but not yet
    installed.
- **`teachos.fs.FileSystem`** is the file system itself:
  - an inode cache (`iget`, `idup`, `ilock`, `iunlock`, `iput`,
    `iunlockput`, `ialloc`, `iupdate`);
  - content access with `readi()`/`writei()`, using direct and
    single-indirect blocks;
  - directories, with `dirlookup()` and `dirlink()`;
  - path lookup, with `namei()` and `nameiparent()`;
  - `stati()`, which returns a `Stat`.

  Device inodes are served by objects in `devsw` that have `read`/`write`.
- **`teachos.file`** holds open files:
  - `File` is a reference-counted open file with `read()`, `write()`,
    `stat()`, `dup()` and `close()`. A write to an inode file is done in
    pieces, each of them small enough for one log transaction.
  - `Pipe` is a 512-byte blocking pipe.
  - `FileTable` hands out files with `alloc()`, `pipe()` and `open_inode()`.
- **`teachos.kbd.KeyboardDecoder`** turns PC scan codes into character codes
  with `feed()`. It tracks Shift, Ctrl and Alt, Caps Lock, and the extended
  keys.
- **`teachos.console`** is the console:
  - `Console` handles line-edited input through `interrupt()`: kill line
    (^U), backspace, end of input (^D), and ^P for a process dump.
  - `read()` returns input a line at a time.
  - `write()` and `putc()` echo output to a serial byte buffer and to a
    `CgaScreen`.
  - `CgaScreen` is an 80×25 text screen that scrolls.
- **`teachos.proc.ProcessTable`** is the process table:
  - process life cycle with `allocproc`, `fork`, `exit`, `wait` and `kill`;
  - `sleep`/`wakeup` on arbitrary channels;
  - `setprio()`;
  - `ps()` and `procdump()` listings.

  `schedule_round()` makes one scheduler pass. Each runnable process gets a
  share of a ten-slot round in proportion to its priority, and leftover
  fractions of a share are carried to the next round.
- **`teachos.fmt`** is a small printf:
  - `printf_format()` understands `%d %x %p %s %c %%` and writes hex in
    upper case.
  - `cprintf_format()` understands `%d %x %p %s %%` and writes hex in lower
    case.
  - `format_int()` renders a value as a 32-bit integer.
- **`teachos.grep`** is a line matcher that supports `^ . * $`. It provides
  `match()`, `match_here()`, `match_star()` and `grep_lines()`.

## Installing

```
pip install .
```

## Commands

Build a file system image from files on the host:

```
teachos-mkfs fs.img README notes.txt
```

- The first argument is the image to create.
- Every other argument is copied into the image's root directory.
- A leading `_` is dropped from each name.
- File names may not contain `/`, so run the command from the directory
  that holds the files.

Look inside an image, or echo arguments:

```
teachos ls fs.img [path ...]
teachos cat fs.img [path ...]
teachos echo hello world
```

- `ls` lists a file, or every entry of a directory. For each one it prints
  the name (padded), the type, the inode number and the size. With no path
  it lists the root directory.
- `cat` copies files out of the image. With no path it copies standard
  input.

Search text for matching lines:

```
teachos-grep 'ab*c$' notes.txt
```

With no file names, `teachos-grep` reads standard input. Only lines that end
in a newline are reported.

## Using the library

```python
import io

from teachos.bufcache import BufferCache
from teachos.cli import cat
from teachos.disk import MemoryDisk
from teachos.fmt import printf_format
from teachos.fs import FileSystem
from teachos.grep import match
from teachos.mkfs import build_image

fs = FileSystem(BufferCache(MemoryDisk(build_image([("hello.txt", b"hi\n")]))))
out = io.BytesIO()
cat(fs, "/hello.txt", out)
assert out.getvalue() == b"hi\n"

assert match("^a.c", "abcdef")
assert printf_format("%d items in %s\n", 3, "box") == "3 items in box\n"
```

## What it does not do

`teachos` models the parts of the system one at a time. It does not boot or
run programs:

- There are no system calls and no program loading.
- There is no virtual memory and no hardware access.
- `ProcessTable` keeps track of processes, but it only runs them through the
  `runner` callback you give it.
- The `teachos` command only reads images. It cannot create, remove or
  rename files inside them. To change an image, call the `FileSystem`
  methods (`ialloc`, `writei`, `dirlink`) inside a log transaction, then
  save the `MemoryDisk`.

## Running the tests

```
pip install .[test]
pytest
```