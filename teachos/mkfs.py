"""Build a file system image holding a root directory and a set of files.

Disk layout:
[ boot block | super block | log | inode blocks | free bit map | data blocks ]
"""

from __future__ import annotations

import os
import struct
import sys
from collections.abc import Iterable

from .layout import (
    BPB,
    BSIZE,
    DINODE_SIZE,
    FSSIZE,
    IPB,
    LOGSIZE,
    MAXFILE,
    NDIRECT,
    NINDIRECT,
    ROOTINO,
    DInode,
    Dirent,
    InodeType,
    Superblock,
    iblock,
)

NINODES = 200

_INDIRECT = struct.Struct(f"<{NINDIRECT}I")


class _ImageBuilder:
    def __init__(self, fs_size: int, ninodes: int, nlog: int) -> None:
        self.fs_size = fs_size
        self.nbitmap = fs_size // BPB + 1
        self.ninodeblocks = ninodes // IPB + 1
        self.nlog = nlog
        self.nmeta = 2 + nlog + self.ninodeblocks + self.nbitmap
        self.nblocks = fs_size - self.nmeta
        if self.nblocks < 0:
            raise ValueError("image too small for its metadata")
        self.sb = Superblock(
            size=fs_size,
            nblocks=self.nblocks,
            ninodes=ninodes,
            nlog=nlog,
            logstart=2,
            inodestart=2 + nlog,
            bmapstart=2 + nlog + self.ninodeblocks,
        )
        self.image = bytearray(fs_size * BSIZE)
        self._write(1, 0, self.sb.pack())
        self.freeinode = 1
        self.freeblock = self.nmeta
        self.rootino = self.ialloc(InodeType.DIR)
        assert self.rootino == ROOTINO
        self.iappend(self.rootino, Dirent(self.rootino, ".").pack())
        self.iappend(self.rootino, Dirent(self.rootino, "..").pack())

    def _write(self, sec: int, off: int, data: bytes) -> None:
        start = sec * BSIZE + off
        self.image[start : start + len(data)] = data

    def _read(self, sec: int, off: int, n: int) -> bytes:
        start = sec * BSIZE + off
        return bytes(self.image[start : start + n])

    def _inode_pos(self, inum: int) -> tuple[int, int]:
        return iblock(inum, self.sb), (inum % IPB) * DINODE_SIZE

    def rinode(self, inum: int) -> DInode:
        sec, off = self._inode_pos(inum)
        return DInode.unpack(self._read(sec, off, DINODE_SIZE))

    def winode(self, inum: int, din: DInode) -> None:
        sec, off = self._inode_pos(inum)
        self._write(sec, off, din.pack())

    def ialloc(self, type_: int) -> int:
        inum = self.freeinode
        if inum >= self.sb.ninodes:
            raise ValueError("out of inodes")
        self.freeinode += 1
        self.winode(inum, DInode(type=type_, nlink=1, size=0))
        return inum

    def _alloc_block(self) -> int:
        b = self.freeblock
        if b >= self.fs_size:
            raise ValueError("out of data blocks")
        self.freeblock += 1
        return b

    def iappend(self, inum: int, data: bytes) -> None:
        din = self.rinode(inum)
        off = din.size
        pos = 0
        while pos < len(data):
            fbn = off // BSIZE
            if fbn >= MAXFILE:
                raise ValueError("file too large")
            if fbn < NDIRECT:
                if din.addrs[fbn] == 0:
                    din.addrs[fbn] = self._alloc_block()
                x = din.addrs[fbn]
            else:
                if din.addrs[NDIRECT] == 0:
                    din.addrs[NDIRECT] = self._alloc_block()
                ind_block = din.addrs[NDIRECT]
                indirect = list(_INDIRECT.unpack(self._read(ind_block, 0, BSIZE)))
                if indirect[fbn - NDIRECT] == 0:
                    indirect[fbn - NDIRECT] = self._alloc_block()
                    self._write(ind_block, 0, _INDIRECT.pack(*indirect))
                x = indirect[fbn - NDIRECT]
            n1 = min(len(data) - pos, (fbn + 1) * BSIZE - off)
            self._write(x, off - fbn * BSIZE, data[pos : pos + n1])
            pos += n1
            off += n1
        din.size = off
        self.winode(inum, din)

    def add_file(self, name: str, data: bytes) -> None:
        if "/" in name:
            raise ValueError(f"file name may not contain '/': {name}")
        # Leading '_' keeps the build host from running these in place of
        # its own programs; it is dropped inside the image.
        if name.startswith("_"):
            name = name[1:]
        inum = self.ialloc(InodeType.FILE)
        self.iappend(self.rootino, Dirent(inum, name).pack())
        self.iappend(inum, data)

    def finish(self) -> bytes:
        din = self.rinode(self.rootino)
        din.size = (din.size // BSIZE + 1) * BSIZE
        self.winode(self.rootino, din)

        used = self.freeblock
        if used >= BPB:
            raise ValueError("too many blocks in use for one bitmap block")
        bitmap = bytearray(BSIZE)
        for i in range(used):
            bitmap[i // 8] |= 1 << (i % 8)
        self._write(self.sb.bmapstart, 0, bytes(bitmap))
        return bytes(self.image)


def build_image(
    files: Iterable[tuple[str, bytes]],
    fs_size: int = FSSIZE,
    ninodes: int = NINODES,
    nlog: int = LOGSIZE,
) -> bytes:
    """Return a file system image whose root directory holds the given files."""
    builder = _ImageBuilder(fs_size, ninodes, nlog)
    for name, data in files:
        builder.add_file(name, data)
    return builder.finish()


def write_image(path: str | os.PathLike[str], files: Iterable[tuple[str, bytes]]) -> None:
    """Build an image from (name, contents) pairs and write it to path."""
    image = build_image(files)
    with open(path, "wb") as f:
        f.write(image)


def main(argv: list[str] | None = None) -> int:
    args = sys.argv[1:] if argv is None else list(argv)
    if not args:
        print("Usage: mkfs fs.img files...", file=sys.stderr)
        return 1

    builder = _ImageBuilder(FSSIZE, NINODES, LOGSIZE)
    print(
        f"nmeta {builder.nmeta} (boot, super, log blocks {builder.nlog} "
        f"inode blocks {builder.ninodeblocks}, bitmap blocks {builder.nbitmap}) "
        f"blocks {builder.nblocks} total {FSSIZE}"
    )
    for name in args[1:]:
        try:
            with open(name, "rb") as f:
                data = f.read()
        except OSError as exc:
            print(f"{name}: {exc.strerror}", file=sys.stderr)
            return 1
        builder.add_file(name, data)

    used = builder.freeblock
    image = builder.finish()
    print(f"balloc: first {used} blocks have been allocated")
    print(f"balloc: write bitmap block at sector {builder.sb.bmapstart}")
    try:
        with open(args[0], "wb") as f:
            f.write(image)
    except OSError as exc:
        print(f"{args[0]}: {exc.strerror}", file=sys.stderr)
        return 1
    return 0