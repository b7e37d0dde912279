"""Write-ahead log that makes multi-block file system updates atomic.

A transaction groups the updates of several concurrent file system calls.
The log only commits when no call is in progress, so a commit never writes
a half-finished call's updates to disk.

On-disk format: a header block holding the count and the block numbers of
the logged blocks, followed by copies of those blocks.
"""

from __future__ import annotations

import struct
import threading
from collections.abc import Iterator
from contextlib import contextmanager

from .bufcache import Buffer, BufferCache
from .layout import BSIZE, LOGSIZE, MAXOPBLOCKS, Panic, Superblock

_INT = struct.Struct("<i")
_HEADER_SIZE = _INT.size * (1 + LOGSIZE)


class Log:
    """Redo log stored in the log region of the disk."""

    def __init__(self, cache: BufferCache, sb: Superblock) -> None:
        if _HEADER_SIZE >= BSIZE:
            raise Panic("initlog: too big logheader")
        self.cache = cache
        self.start = sb.logstart
        self.size = sb.nlog
        self.outstanding = 0  # file system calls in progress
        self.committing = False
        self.blocks: list[int] = []  # home locations of logged blocks
        self._cond = threading.Condition()
        self.recover()

    def _read_head(self) -> None:
        with self.cache.block(self.start) as buf:
            (n,) = _INT.unpack_from(buf.data, 0)
            self.blocks = [
                _INT.unpack_from(buf.data, _INT.size * (1 + i))[0] for i in range(n)
            ]

    def _write_head(self) -> None:
        # Writing the header is the point at which a transaction commits.
        with self.cache.block(self.start) as buf:
            _INT.pack_into(buf.data, 0, len(self.blocks))
            for i, blockno in enumerate(self.blocks):
                _INT.pack_into(buf.data, _INT.size * (1 + i), blockno)
            self.cache.write(buf)

    def _install(self) -> None:
        """Copy committed blocks from the log to their home locations."""
        for tail, blockno in enumerate(self.blocks):
            with self.cache.block(self.start + tail + 1) as lbuf:
                with self.cache.block(blockno) as dbuf:
                    dbuf.data[:] = lbuf.data
                    self.cache.write(dbuf)

    def _write_log(self) -> None:
        """Copy modified blocks from the cache into the log."""
        for tail, blockno in enumerate(self.blocks):
            with self.cache.block(self.start + tail + 1) as to:
                with self.cache.block(blockno) as source:
                    to.data[:] = source.data
                self.cache.write(to)

    def _commit(self) -> None:
        if self.blocks:
            self._write_log()
            self._write_head()
            self._install()
            self.blocks = []
            self._write_head()

    def recover(self) -> None:
        """Install any committed transaction left in the log, then clear it."""
        self._read_head()
        self._install()
        self.blocks = []
        self._write_head()

    def begin_op(self) -> None:
        """Start a file system call, waiting while a commit runs or space is short."""
        with self._cond:
            self._cond.wait_for(
                lambda: not self.committing
                and len(self.blocks) + (self.outstanding + 1) * MAXOPBLOCKS
                <= LOGSIZE
            )
            self.outstanding += 1

    def end_op(self) -> None:
        """Finish a file system call; the last one out commits."""
        with self._cond:
            self.outstanding -= 1
            if self.committing:
                raise Panic("log.committing")
            do_commit = self.outstanding == 0
            if do_commit:
                self.committing = True
            else:
                self._cond.notify_all()
        if do_commit:
            try:
                self._commit()
            finally:
                with self._cond:
                    self.committing = False
                    self._cond.notify_all()

    def log_write(self, buf: Buffer) -> None:
        """Record a modified buffer and pin it in the cache until commit."""
        if len(self.blocks) >= LOGSIZE or len(self.blocks) >= self.size - 1:
            raise Panic("too big a transaction")
        if self.outstanding < 1:
            raise Panic("log_write outside of trans")
        with self._cond:
            if buf.blockno not in self.blocks:
                self.blocks.append(buf.blockno)
            buf.dirty = True

    @contextmanager
    def transaction(self) -> Iterator[Log]:
        """Run the body of a with-block as one file system call."""
        self.begin_op()
        try:
            yield self
        finally:
            self.end_op()