"""File system: block allocation, inodes, directories and path names.

File system code may only examine or modify an inode's contents after
locking it with ilock. Calls that may free an inode (iput) must run inside a
log transaction.
"""

from __future__ import annotations

import errno
import struct
import threading
from dataclasses import dataclass, field
from typing import Any

from .bufcache import BufferCache
from .layout import (
    BPB,
    BSIZE,
    DINODE_SIZE,
    DIRENT_SIZE,
    DIRSIZ,
    IPB,
    MAXFILE,
    NDIRECT,
    NINDIRECT,
    ROOTDEV,
    ROOTINO,
    DInode,
    Dirent,
    InodeType,
    Panic,
    Superblock,
    bblock,
    iblock,
)
from .log import Log

NINODE = 50  # default number of in-memory inode slots

_ADDR = struct.Struct("<I")


@dataclass
class Stat:
    """Metadata reported about an inode."""

    dev: int
    ino: int
    type: int
    nlink: int
    size: int


@dataclass(eq=False)
class Inode:
    """In-memory copy of an inode plus cache bookkeeping."""

    dev: int = ROOTDEV
    inum: int = 0
    ref: int = 0
    valid: bool = False  # has been read from disk
    type: int = 0
    major: int = 0
    minor: int = 0
    nlink: int = 0
    size: int = 0
    addrs: list[int] = field(default_factory=lambda: [0] * (NDIRECT + 1))
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False)


def namecmp(s: str, t: str) -> int:
    """Compare two names on their first DIRSIZ characters."""
    a, b = s[:DIRSIZ], t[:DIRSIZ]
    return (a > b) - (a < b)


def skipelem(path: str) -> tuple[str, str] | None:
    """Split off the first path element.

    Returns the element (cut to DIRSIZ) and the rest of the path without
    leading slashes, or None when no element is left.
    """
    path = path.lstrip("/")
    if not path:
        return None
    elem, _, rest = path.partition("/")
    return elem[:DIRSIZ], rest.lstrip("/")


class FileSystem:
    """File system on one device, reached through a buffer cache and a log."""

    def __init__(
        self,
        cache: BufferCache,
        log: Log | None = None,
        ninode: int = NINODE,
        devsw: dict[int, Any] | None = None,
    ) -> None:
        self.cache = cache
        with cache.block(1) as bp:
            self.sb = Superblock.unpack(bytes(bp.data))
        self.log = log if log is not None else Log(cache, self.sb)
        self.devsw: dict[int, Any] = {} if devsw is None else devsw
        self._lock = threading.Lock()
        self._icache = [Inode() for _ in range(ninode)]

    # Blocks.

    def _bzero(self, bno: int) -> None:
        with self.cache.block(bno) as bp:
            bp.data[:] = bytes(BSIZE)
            self.log.log_write(bp)

    def _take_free_bit(self, base: int) -> int | None:
        with self.cache.block(bblock(base, self.sb)) as bp:
            for bi in range(min(BPB, self.sb.size - base)):
                m = 1 << (bi % 8)
                if not bp.data[bi // 8] & m:
                    bp.data[bi // 8] |= m
                    self.log.log_write(bp)
                    return base + bi
        return None

    def _balloc(self) -> int:
        for base in range(0, self.sb.size, BPB):
            b = self._take_free_bit(base)
            if b is not None:
                self._bzero(b)
                return b
        raise Panic("balloc: out of blocks")

    def _bfree(self, b: int) -> None:
        with self.cache.block(bblock(b, self.sb)) as bp:
            bi = b % BPB
            m = 1 << (bi % 8)
            if not bp.data[bi // 8] & m:
                raise Panic("freeing free block")
            bp.data[bi // 8] &= ~m & 0xFF
            self.log.log_write(bp)

    # Inodes.

    def ialloc(self, type: int) -> Inode:
        """Allocate a disk inode of the given type; return it referenced, unlocked."""
        for inum in range(1, self.sb.ninodes):
            with self.cache.block(iblock(inum, self.sb)) as bp:
                off = (inum % IPB) * DINODE_SIZE
                if DInode.unpack(bytes(bp.data[off : off + DINODE_SIZE])).type == 0:
                    bp.data[off : off + DINODE_SIZE] = DInode(type=type).pack()
                    self.log.log_write(bp)
                    break
        else:
            raise Panic("ialloc: no inodes")
        return self.iget(inum)

    def iupdate(self, ip: Inode) -> None:
        """Copy a modified in-memory inode to disk."""
        with self.cache.block(iblock(ip.inum, self.sb)) as bp:
            off = (ip.inum % IPB) * DINODE_SIZE
            din = DInode(ip.type, ip.major, ip.minor, ip.nlink, ip.size, list(ip.addrs))
            bp.data[off : off + DINODE_SIZE] = din.pack()
            self.log.log_write(bp)

    def iget(self, inum: int) -> Inode:
        """Return the cached inode for inum, without locking or reading it."""
        with self._lock:
            empty = None
            for ip in self._icache:
                if ip.ref > 0 and ip.inum == inum:
                    ip.ref += 1
                    return ip
                if empty is None and ip.ref == 0:
                    empty = ip
            if empty is None:
                raise Panic("iget: no inodes")
            empty.dev = ROOTDEV
            empty.inum = inum
            empty.ref = 1
            empty.valid = False
            return empty

    def idup(self, ip: Inode) -> Inode:
        with self._lock:
            ip.ref += 1
        return ip

    def ilock(self, ip: Inode | None) -> None:
        """Lock an inode, reading it from disk if needed."""
        if ip is None or ip.ref < 1:
            raise Panic("ilock")
        ip.lock.acquire()
        if not ip.valid:
            with self.cache.block(iblock(ip.inum, self.sb)) as bp:
                off = (ip.inum % IPB) * DINODE_SIZE
                din = DInode.unpack(bytes(bp.data[off : off + DINODE_SIZE]))
            ip.type, ip.major, ip.minor = din.type, din.major, din.minor
            ip.nlink, ip.size, ip.addrs = din.nlink, din.size, list(din.addrs)
            ip.valid = True
            if ip.type == 0:
                raise Panic("ilock: no type")

    def iunlock(self, ip: Inode | None) -> None:
        if ip is None or not ip.lock.locked() or ip.ref < 1:
            raise Panic("iunlock")
        ip.lock.release()

    def iput(self, ip: Inode) -> None:
        """Drop a reference; free the inode on disk if it was the last and unlinked."""
        with ip.lock:
            if ip.valid and ip.nlink == 0:
                with self._lock:
                    r = ip.ref
                if r == 1:
                    self._itrunc(ip)
                    ip.type = 0
                    self.iupdate(ip)
                    ip.valid = False
        with self._lock:
            ip.ref -= 1

    def iunlockput(self, ip: Inode) -> None:
        self.iunlock(ip)
        self.iput(ip)

    # Inode content.

    def _bmap(self, ip: Inode, bn: int) -> int:
        if bn < NDIRECT:
            if ip.addrs[bn] == 0:
                ip.addrs[bn] = self._balloc()
            return ip.addrs[bn]
        bn -= NDIRECT
        if bn < NINDIRECT:
            if ip.addrs[NDIRECT] == 0:
                ip.addrs[NDIRECT] = self._balloc()
            with self.cache.block(ip.addrs[NDIRECT]) as bp:
                (addr,) = _ADDR.unpack_from(bp.data, bn * _ADDR.size)
                if addr == 0:
                    addr = self._balloc()
                    _ADDR.pack_into(bp.data, bn * _ADDR.size, addr)
                    self.log.log_write(bp)
            return addr
        raise Panic("bmap: out of range")

    def _itrunc(self, ip: Inode) -> None:
        for i in range(NDIRECT):
            if ip.addrs[i]:
                self._bfree(ip.addrs[i])
                ip.addrs[i] = 0
        if ip.addrs[NDIRECT]:
            with self.cache.block(ip.addrs[NDIRECT]) as bp:
                addrs = [a for (a,) in _ADDR.iter_unpack(bytes(bp.data))]
            for a in addrs:
                if a:
                    self._bfree(a)
            self._bfree(ip.addrs[NDIRECT])
            ip.addrs[NDIRECT] = 0
        ip.size = 0
        self.iupdate(ip)

    def stati(self, ip: Inode) -> Stat:
        return Stat(dev=ip.dev, ino=ip.inum, type=ip.type, nlink=ip.nlink, size=ip.size)

    def _device(self, ip: Inode, op: str) -> Any:
        handler = getattr(self.devsw.get(ip.major), op, None)
        if handler is None:
            raise OSError(errno.ENODEV, f"no {op} handler for device {ip.major}")
        return handler

    def readi(self, ip: Inode, off: int, n: int) -> bytes:
        """Read up to n bytes at off from a locked inode."""
        if ip.type == InodeType.DEVICE:
            return self._device(ip, "read")(n)
        if off < 0 or n < 0 or off > ip.size:
            raise ValueError(f"read at {off} of {n} bytes outside file of {ip.size}")
        n = min(n, ip.size - off)
        out = bytearray()
        while len(out) < n:
            with self.cache.block(self._bmap(ip, off // BSIZE)) as bp:
                start = off % BSIZE
                m = min(n - len(out), BSIZE - start)
                out += bp.data[start : start + m]
            off += m
        return bytes(out)

    def writei(self, ip: Inode, off: int, data: bytes) -> int:
        """Write data at off into a locked inode; return the count written."""
        if ip.type == InodeType.DEVICE:
            return self._device(ip, "write")(data)
        n = len(data)
        if off < 0 or off > ip.size:
            raise ValueError(f"write at {off} outside file of {ip.size}")
        if off + n > MAXFILE * BSIZE:
            raise ValueError("write past maximum file size")
        tot = 0
        while tot < n:
            with self.cache.block(self._bmap(ip, off // BSIZE)) as bp:
                start = off % BSIZE
                m = min(n - tot, BSIZE - start)
                bp.data[start : start + m] = data[tot : tot + m]
                self.log.log_write(bp)
            tot += m
            off += m
        if n > 0 and off > ip.size:
            ip.size = off
            self.iupdate(ip)
        return n

    # Directories.

    def _dirent_at(self, dp: Inode, off: int, what: str) -> Dirent:
        raw = self.readi(dp, off, DIRENT_SIZE)
        if len(raw) != DIRENT_SIZE:
            raise Panic(what)
        return Dirent.unpack(raw)

    def dirlookup(self, dp: Inode, name: str) -> tuple[Inode, int] | None:
        """Find name in a locked directory; return its inode and entry offset."""
        if dp.type != InodeType.DIR:
            raise Panic("dirlookup not DIR")
        for off in range(0, dp.size, DIRENT_SIZE):
            de = self._dirent_at(dp, off, "dirlookup read")
            if de.inum and namecmp(name, de.name) == 0:
                return self.iget(de.inum), off
        return None

    def dirlink(self, dp: Inode, name: str, inum: int) -> None:
        """Add an entry (name, inum) to a locked directory."""
        found = self.dirlookup(dp, name)
        if found is not None:
            self.iput(found[0])
            raise FileExistsError(errno.EEXIST, "name already in directory", name)
        off = next(
            (
                off
                for off in range(0, dp.size, DIRENT_SIZE)
                if self._dirent_at(dp, off, "dirlink read").inum == 0
            ),
            dp.size,
        )
        if self.writei(dp, off, Dirent(inum, name[:DIRSIZ]).pack()) != DIRENT_SIZE:
            raise Panic("dirlink")

    # Paths.

    def _namex(
        self, path: str, parent: bool, cwd: Inode | None
    ) -> tuple[Inode, str] | None:
        if path.startswith("/") or cwd is None:
            ip = self.iget(ROOTINO)
        else:
            ip = self.idup(cwd)
        name = ""
        while (elem := skipelem(path)) is not None:
            name, path = elem
            self.ilock(ip)
            if ip.type != InodeType.DIR:
                self.iunlockput(ip)
                return None
            if parent and path == "":
                self.iunlock(ip)
                return ip, name
            found = self.dirlookup(ip, name)
            if found is None:
                self.iunlockput(ip)
                return None
            self.iunlockput(ip)
            ip = found[0]
        if parent:
            self.iput(ip)
            return None
        return ip, name

    def namei(self, path: str, cwd: Inode | None = None) -> Inode | None:
        """Return the referenced inode for a path, or None if it does not exist."""
        found = self._namex(path, False, cwd)
        return None if found is None else found[0]

    def nameiparent(
        self, path: str, cwd: Inode | None = None
    ) -> tuple[Inode, str] | None:
        """Return the parent directory's inode and the final path element."""
        return self._namex(path, True, cwd)