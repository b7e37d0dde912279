import pytest

from teachos.layout import (
    BPB,
    BSIZE,
    DIRSIZ,
    IPB,
    NDIRECT,
    DInode,
    Dirent,
    Superblock,
    bblock,
    iblock,
)


def test_superblock_round_trip():
    sb = Superblock(1000, 941, 200, 30, 2, 32, 45)
    assert Superblock.unpack(sb.pack()) == sb


def test_superblock_ignores_trailing_bytes():
    sb = Superblock(7, 6, 5, 4, 3, 2, 1)
    assert Superblock.unpack(sb.pack() + bytes(BSIZE)) == sb


def test_superblock_too_short():
    with pytest.raises(ValueError):
        Superblock.unpack(b"\x01\x02")


def test_dinode_round_trip():
    addrs = list(range(100, 100 + NDIRECT + 1))
    din = DInode(type=2, major=1, minor=3, nlink=4, size=5000, addrs=addrs)
    assert DInode.unpack(din.pack()) == din


def test_dinodes_tile_a_block():
    size = len(DInode().pack())
    assert BSIZE % size == 0
    assert IPB * size == BSIZE


def test_dinode_wrong_address_count():
    with pytest.raises(ValueError):
        DInode(addrs=[1, 2, 3]).pack()


def test_dirents_tile_a_block():
    assert BSIZE % len(Dirent().pack()) == 0


def test_dirent_round_trip():
    de = Dirent(17, "README")
    assert Dirent.unpack(de.pack()) == de


def test_dirent_name_truncated_to_dirsiz():
    long_name = "abcdefghijklmnopqrstuvwxyz"
    back = Dirent.unpack(Dirent(3, long_name).pack())
    assert back.name == long_name[:DIRSIZ]
    assert back.inum == 3


def test_dirent_inum_little_endian():
    assert Dirent(0x0102, "a").pack()[:2] == b"\x02\x01"


def test_iblock_groups_inodes_per_block():
    sb = Superblock(inodestart=32)
    assert iblock(0, sb) == sb.inodestart
    assert iblock(IPB - 1, sb) == sb.inodestart
    assert iblock(IPB, sb) == sb.inodestart + 1


def test_bblock_groups_bits_per_block():
    sb = Superblock(bmapstart=45)
    assert bblock(0, sb) == sb.bmapstart
    assert bblock(BPB - 1, sb) == sb.bmapstart
    assert bblock(BPB * 2 + 5, sb) == sb.bmapstart + 2