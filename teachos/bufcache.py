"""Buffer cache: cached copies of disk blocks, recycled least recently used first.

Only one holder at a time may use a buffer; each buffer carries its own lock.
A dirty buffer is never recycled, even with no references, since the log has
modified it but not yet committed it.
"""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field

from .disk import MemoryDisk
from .layout import BSIZE, NBUF, Panic


@dataclass(eq=False)
class Buffer:
    """One cached disk block."""

    blockno: int | None = None
    data: bytearray = field(default_factory=lambda: bytearray(BSIZE))
    valid: bool = False  # data has been read from disk
    dirty: bool = False  # data has been modified and must be written
    refcnt: int = 0
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False)


class BufferCache:
    """A fixed set of buffers in most-recently-used order."""

    def __init__(self, disk: MemoryDisk, nbuf: int = NBUF) -> None:
        self.disk = disk
        self._lock = threading.Lock()
        self._mru: list[Buffer] = [Buffer() for _ in range(nbuf)]

    def _get(self, blockno: int) -> Buffer:
        with self._lock:
            found = next((b for b in self._mru if b.blockno == blockno), None)
            if found is not None:
                found.refcnt += 1
            else:
                found = next(
                    (b for b in reversed(self._mru) if b.refcnt == 0 and not b.dirty),
                    None,
                )
                if found is None:
                    raise Panic("bget: no buffers")
                found.blockno = blockno
                found.valid = False
                found.dirty = False
                found.refcnt = 1
        found.lock.acquire()
        return found

    def _sync(self, buf: Buffer) -> None:
        if buf.valid and not buf.dirty:
            raise Panic("iderw: nothing to do")
        if buf.dirty:
            self.disk.write_block(buf.blockno, bytes(buf.data))
            buf.dirty = False
        else:
            buf.data[:] = self.disk.read_block(buf.blockno)
        buf.valid = True

    def read(self, blockno: int) -> Buffer:
        """Return a locked buffer holding the contents of the block."""
        buf = self._get(blockno)
        if not buf.valid:
            self._sync(buf)
        return buf

    def write(self, buf: Buffer) -> None:
        """Write a locked buffer's contents to disk."""
        if not buf.lock.locked():
            raise Panic("bwrite")
        buf.dirty = True
        self._sync(buf)

    def release(self, buf: Buffer) -> None:
        """Unlock a buffer; with no references left it becomes most recently used."""
        if not buf.lock.locked():
            raise Panic("brelse")
        buf.lock.release()
        with self._lock:
            buf.refcnt -= 1
            if buf.refcnt == 0:
                self._mru.remove(buf)
                self._mru.insert(0, buf)

    @contextmanager
    def block(self, blockno: int) -> Iterator[Buffer]:
        """Hold the buffer for a block for the duration of a with-block."""
        buf = self.read(blockno)
        try:
            yield buf
        finally:
            self.release(buf)