"""On-disk file system format and the sizes shared by the kernel and tools."""

from __future__ import annotations

import enum
import struct
from dataclasses import dataclass, field

ROOTINO = 1  # root i-number
ROOTDEV = 1  # device holding the root file system
BSIZE = 1024  # block size

NDIRECT = 12
NINDIRECT = BSIZE // 4
MAXFILE = NDIRECT + NINDIRECT

DIRSIZ = 14

# Bitmap bits per block.
BPB = BSIZE * 8

# Default sizes of the log, the buffer cache and the file system image.
MAXOPBLOCKS = 10
LOGSIZE = MAXOPBLOCKS * 3
NBUF = MAXOPBLOCKS * 3
FSSIZE = 1000

_SUPERBLOCK = struct.Struct("<7I")
_DINODE = struct.Struct(f"<4hI{NDIRECT + 1}I")
_DIRENT = struct.Struct(f"<H{DIRSIZ}s")

SUPERBLOCK_SIZE = _SUPERBLOCK.size
DINODE_SIZE = _DINODE.size
DIRENT_SIZE = _DIRENT.size

# Inodes per block.
IPB = BSIZE // DINODE_SIZE


class Panic(RuntimeError):
    """Raised when a kernel invariant is violated."""


class InodeType(enum.IntEnum):
    """Kinds of inode stored in the type field of a disk inode."""

    DIR = 1
    FILE = 2
    DEVICE = 3


def _need(data: bytes, size: int, what: str) -> None:
    if len(data) < size:
        raise ValueError(f"{what} needs {size} bytes, got {len(data)}")


@dataclass
class Superblock:
    """Describes the disk layout: sizes and the start of each region."""

    size: int = 0  # size of file system image (blocks)
    nblocks: int = 0  # number of data blocks
    ninodes: int = 0  # number of inodes
    nlog: int = 0  # number of log blocks
    logstart: int = 0  # block number of first log block
    inodestart: int = 0  # block number of first inode block
    bmapstart: int = 0  # block number of first free map block

    def pack(self) -> bytes:
        return _SUPERBLOCK.pack(
            self.size,
            self.nblocks,
            self.ninodes,
            self.nlog,
            self.logstart,
            self.inodestart,
            self.bmapstart,
        )

    @classmethod
    def unpack(cls, data: bytes) -> Superblock:
        _need(data, _SUPERBLOCK.size, "superblock")
        return cls(*_SUPERBLOCK.unpack_from(data))


@dataclass
class DInode:
    """On-disk inode."""

    type: int = 0
    major: int = 0
    minor: int = 0
    nlink: int = 0
    size: int = 0
    addrs: list[int] = field(default_factory=lambda: [0] * (NDIRECT + 1))

    def pack(self) -> bytes:
        if len(self.addrs) != NDIRECT + 1:
            raise ValueError(f"an inode holds {NDIRECT + 1} block addresses")
        return _DINODE.pack(
            self.type, self.major, self.minor, self.nlink, self.size, *self.addrs
        )

    @classmethod
    def unpack(cls, data: bytes) -> DInode:
        _need(data, _DINODE.size, "inode")
        type_, major, minor, nlink, size, *addrs = _DINODE.unpack_from(data)
        return cls(type_, major, minor, nlink, size, list(addrs))


@dataclass
class Dirent:
    """Directory entry: an inode number and a name of at most DIRSIZ bytes."""

    inum: int = 0
    name: str = ""

    def pack(self) -> bytes:
        raw = self.name.encode("utf-8", "surrogateescape")[:DIRSIZ]
        return _DIRENT.pack(self.inum, raw)

    @classmethod
    def unpack(cls, data: bytes) -> Dirent:
        _need(data, _DIRENT.size, "directory entry")
        inum, raw = _DIRENT.unpack_from(data)
        name = raw.split(b"\0", 1)[0].decode("utf-8", "surrogateescape")
        return cls(inum, name)


def iblock(inum: int, sb: Superblock) -> int:
    """Block holding inode inum."""
    return inum // IPB + sb.inodestart


def bblock(b: int, sb: Superblock) -> int:
    """Block of the free map holding the bit for block b."""
    return b // BPB + sb.bmapstart