"""A disk whose blocks live in memory."""

from __future__ import annotations

import os

from .layout import BSIZE, Panic


class MemoryDisk:
    """Block device backed by an in-memory image of whole BSIZE blocks."""

    def __init__(self, image: bytes = b"") -> None:
        self._data = bytearray(image)
        self.nblocks = len(image) // BSIZE
        self.reads = 0
        self.writes = 0

    def _offset(self, blockno: int) -> int:
        if not 0 <= blockno < self.nblocks:
            raise Panic("iderw: block out of range")
        return blockno * BSIZE

    def read_block(self, blockno: int) -> bytes:
        off = self._offset(blockno)
        self.reads += 1
        return bytes(self._data[off : off + BSIZE])

    def write_block(self, blockno: int, data: bytes) -> None:
        if len(data) != BSIZE:
            raise ValueError(f"a block is {BSIZE} bytes, got {len(data)}")
        off = self._offset(blockno)
        self.writes += 1
        self._data[off : off + BSIZE] = data

    @classmethod
    def from_file(cls, path: str | os.PathLike[str]) -> MemoryDisk:
        with open(path, "rb") as f:
            return cls(f.read())

    def save(self, path: str | os.PathLike[str]) -> None:
        with open(path, "wb") as f:
            f.write(self._data)