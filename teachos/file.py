"""Open files: reference-counted handles on inodes and pipes."""

from __future__ import annotations

import enum
import errno
import threading
from dataclasses import dataclass, field

from .fs import FileSystem, Inode, Stat
from .layout import MAXOPBLOCKS, Panic

NFILE = 100  # open files per system
PIPESIZE = 512

# Write a few blocks at a time so one write never exceeds the maximum log
# transaction size: inode, indirect block, allocation blocks and two blocks
# of slop for unaligned writes.
_MAX_WRITE = ((MAXOPBLOCKS - 1 - 1 - 2) // 2) * 512


class FileType(enum.Enum):
    """What an open file refers to."""

    NONE = 0
    PIPE = 1
    INODE = 2


class Pipe:
    """A bounded byte channel with a read end and a write end."""

    def __init__(self) -> None:
        self._cond = threading.Condition()
        self._data = bytearray(PIPESIZE)
        self.nread = 0  # bytes read so far
        self.nwrite = 0  # bytes written so far
        self.readopen = True
        self.writeopen = True

    def write(self, data: bytes) -> int:
        """Write all of data, waiting while the pipe is full."""
        with self._cond:
            for byte in data:
                while self.nwrite == self.nread + PIPESIZE:
                    if not self.readopen:
                        raise BrokenPipeError(errno.EPIPE, "pipe has no reader")
                    self._cond.notify_all()
                    self._cond.wait()
                self._data[self.nwrite % PIPESIZE] = byte
                self.nwrite += 1
            self._cond.notify_all()
        return len(data)

    def read(self, n: int) -> bytes:
        """Read up to n bytes, waiting while empty; b"" once the writer is gone."""
        with self._cond:
            while self.nread == self.nwrite and self.writeopen:
                self._cond.wait()
            out = bytearray()
            while len(out) < n and self.nread != self.nwrite:
                out.append(self._data[self.nread % PIPESIZE])
                self.nread += 1
            self._cond.notify_all()
        return bytes(out)

    def close(self, writable: bool) -> None:
        """Close the write end if writable is true, else the read end."""
        with self._cond:
            if writable:
                self.writeopen = False
            else:
                self.readopen = False
            self._cond.notify_all()

    @property
    def closed(self) -> bool:
        return not self.readopen and not self.writeopen


@dataclass(eq=False)
class File:
    """One slot of the file table."""

    type: FileType = FileType.NONE
    ref: int = 0
    readable: bool = False
    writable: bool = False
    pipe: Pipe | None = None
    ip: Inode | None = None
    off: int = 0
    table: FileTable | None = field(default=None, repr=False)

    def _fs(self) -> FileSystem:
        if self.table is None or self.table.fs is None:
            raise Panic("file without a file system")
        return self.table.fs

    def _lock(self) -> threading.Lock:
        if self.table is None:
            raise Panic("file outside a file table")
        return self.table._lock

    def read(self, n: int) -> bytes:
        """Read up to n bytes, advancing the offset of an inode file."""
        if not self.readable:
            raise OSError(errno.EBADF, "file not open for reading")
        if self.type is FileType.PIPE:
            return self.pipe.read(n)
        if self.type is FileType.INODE:
            fs = self._fs()
            fs.ilock(self.ip)
            try:
                data = fs.readi(self.ip, self.off, n)
                self.off += len(data)
            finally:
                fs.iunlock(self.ip)
            return data
        raise Panic("fileread")

    def write(self, data: bytes) -> int:
        """Write all of data; an inode file is written in log-sized pieces."""
        if not self.writable:
            raise OSError(errno.EBADF, "file not open for writing")
        if self.type is FileType.PIPE:
            return self.pipe.write(data)
        if self.type is FileType.INODE:
            fs = self._fs()
            done = 0
            while done < len(data):
                chunk = data[done : done + _MAX_WRITE]
                with fs.log.transaction():
                    fs.ilock(self.ip)
                    try:
                        r = fs.writei(self.ip, self.off, chunk)
                        self.off += r
                    finally:
                        fs.iunlock(self.ip)
                if r != len(chunk):
                    raise Panic("short filewrite")
                done += r
            return len(data)
        raise Panic("filewrite")

    def stat(self) -> Stat:
        """Metadata of the inode behind this file."""
        if self.type is not FileType.INODE:
            raise OSError(errno.EINVAL, "file has no inode")
        fs = self._fs()
        fs.ilock(self.ip)
        try:
            return fs.stati(self.ip)
        finally:
            fs.iunlock(self.ip)

    def dup(self) -> File:
        """Add a reference and return the same file."""
        with self._lock():
            if self.ref < 1:
                raise Panic("filedup")
            self.ref += 1
        return self

    def close(self) -> None:
        """Drop a reference; the last one closes the pipe end or inode."""
        with self._lock():
            if self.ref < 1:
                raise Panic("fileclose")
            self.ref -= 1
            if self.ref > 0:
                return
            kind, pipe, ip, writable = self.type, self.pipe, self.ip, self.writable
            self.type = FileType.NONE
            self.pipe = None
            self.ip = None
        if kind is FileType.PIPE:
            pipe.close(writable)
        elif kind is FileType.INODE:
            fs = self._fs()
            with fs.log.transaction():
                fs.iput(ip)


class FileTable:
    """System-wide table of open files."""

    def __init__(self, fs: FileSystem | None = None, nfile: int = NFILE) -> None:
        self.fs = fs
        self._lock = threading.Lock()
        self.files = [File(table=self) for _ in range(nfile)]

    def alloc(self) -> File:
        """Claim a free slot with one reference."""
        with self._lock:
            for f in self.files:
                if f.ref == 0:
                    f.ref = 1
                    f.type = FileType.NONE
                    f.readable = f.writable = False
                    f.pipe = None
                    f.ip = None
                    f.off = 0
                    return f
        raise OSError(errno.ENFILE, "file table full")

    def pipe(self) -> tuple[File, File]:
        """Create a pipe; return its read end and its write end."""
        f0 = self.alloc()
        try:
            f1 = self.alloc()
        except OSError:
            f0.close()
            raise
        p = Pipe()
        f0.type, f0.readable, f0.writable, f0.pipe = FileType.PIPE, True, False, p
        f1.type, f1.readable, f1.writable, f1.pipe = FileType.PIPE, False, True, p
        return f0, f1

    def open_inode(self, ip: Inode, readable: bool, writable: bool) -> File:
        """Open a referenced inode; the file takes over that reference."""
        if self.fs is None:
            raise ValueError("file table has no file system")
        f = self.alloc()
        f.type = FileType.INODE
        f.ip = ip
        f.off = 0
        f.readable = bool(readable)
        f.writable = bool(writable)
        return f