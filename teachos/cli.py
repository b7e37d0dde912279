"""Small user programs working on a file system image: ls, cat and echo."""

from __future__ import annotations

import sys
from collections.abc import Iterator
from typing import BinaryIO, TextIO

from .bufcache import BufferCache
from .disk import MemoryDisk
from .fs import FileSystem, Inode, Stat
from .layout import DIRENT_SIZE, DIRSIZ, Dirent, InodeType

_BUFSIZE = 512

_USAGE = "usage: teachos {echo args... | ls image [path...] | cat image [path...]}"


def fmtname(path: str) -> str:
    """Last path element, blank-padded to DIRSIZ unless it is that long already."""
    name = path.rpartition("/")[2]
    if len(name) >= DIRSIZ:
        return name
    return name.ljust(DIRSIZ)


def _lookup(fs: FileSystem, path: str) -> Inode:
    ip = fs.namei(path)
    if ip is None:
        raise FileNotFoundError(2, "cannot open", path)
    return ip


def _stat(fs: FileSystem, path: str) -> Stat:
    with fs.log.transaction():
        ip = _lookup(fs, path)
        fs.ilock(ip)
        try:
            return fs.stati(ip)
        finally:
            fs.iunlockput(ip)


def _dirents(raw: bytes) -> Iterator[Dirent]:
    for off in range(0, len(raw) - DIRENT_SIZE + 1, DIRENT_SIZE):
        yield Dirent.unpack(raw[off : off + DIRENT_SIZE])


def _line(path: str, st: Stat) -> str:
    return f"{fmtname(path)} {st.type} {st.ino} {st.size}\n"


def ls(fs: FileSystem, path: str, out: TextIO) -> None:
    """List a file, or every entry of a directory, with type, inode and size."""
    with fs.log.transaction():
        ip = _lookup(fs, path)
        fs.ilock(ip)
        try:
            st = fs.stati(ip)
            raw = fs.readi(ip, 0, ip.size) if st.type == InodeType.DIR else b""
        finally:
            fs.iunlockput(ip)

    if st.type == InodeType.FILE:
        out.write(_line(path, st))
    elif st.type == InodeType.DIR:
        if len(path) + 1 + DIRSIZ + 1 > _BUFSIZE:
            out.write("ls: path too long\n")
            return
        for de in _dirents(raw):
            if de.inum == 0:
                continue
            child = f"{path}/{de.name}"
            try:
                child_st = _stat(fs, child)
            except FileNotFoundError:
                out.write(f"ls: cannot stat {child}\n")
                continue
            out.write(_line(child, child_st))


def cat(fs: FileSystem, path: str, out: BinaryIO) -> None:
    """Copy the contents of a file to out."""
    with fs.log.transaction():
        ip = _lookup(fs, path)
    try:
        off = 0
        while True:
            fs.ilock(ip)
            try:
                chunk = fs.readi(ip, off, _BUFSIZE)
            finally:
                fs.iunlock(ip)
            if not chunk:
                break
            out.write(chunk)
            off += len(chunk)
    finally:
        with fs.log.transaction():
            fs.iput(ip)


def echo(args: list[str], out: TextIO) -> None:
    """Write the arguments separated by blanks and ended by a newline."""
    if args:
        out.write(" ".join(args) + "\n")


def _open_image(path: str) -> FileSystem:
    return FileSystem(BufferCache(MemoryDisk.from_file(path)))


def main(argv: list[str] | None = None) -> int:
    args = sys.argv[1:] if argv is None else list(argv)
    if not args:
        print(_USAGE, file=sys.stderr)
        return 1
    cmd, rest = args[0], args[1:]
    if cmd == "echo":
        echo(rest, sys.stdout)
        return 0
    if cmd not in ("ls", "cat") or not rest:
        print(_USAGE, file=sys.stderr)
        return 1
    try:
        fs = _open_image(rest[0])
    except OSError as exc:
        print(f"{rest[0]}: {exc.strerror}", file=sys.stderr)
        return 1
    paths = rest[1:]

    if cmd == "ls":
        for path in paths or ["."]:
            try:
                ls(fs, path, sys.stdout)
            except FileNotFoundError:
                print(f"ls: cannot open {path}", file=sys.stderr)
        return 0

    sys.stdout.flush()
    out = sys.stdout.buffer
    if not paths:
        while chunk := sys.stdin.buffer.read(_BUFSIZE):
            out.write(chunk)
        out.flush()
        return 0
    for path in paths:
        try:
            cat(fs, path, out)
        except FileNotFoundError:
            out.flush()
            print(f"cat: cannot open {path}")
            return 1
        except OSError:
            out.flush()
            print("cat: read error")
            return 1
    out.flush()
    return 0