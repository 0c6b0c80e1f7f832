import pytest

from teachos.layout import (
    BPB,
    BSIZE,
    DIRSIZ,
    IPB,
    NDIRECT,
    Dinode,
    Dirent,
    InodeType,
    Superblock,
    bitmap_block,
    inode_block,
)


def test_superblock_round_trip():
    sb = Superblock(1000, 941, 200, 30, 2, 32, 58)
    assert Superblock.unpack(sb.pack()) == sb


def test_superblock_is_little_endian():
    assert Superblock(size=1).pack()[:4] == b"\x01\x00\x00\x00"


def test_superblock_unpack_ignores_trailing_block_data():
    sb = Superblock(7, 6, 5, 4, 3, 2, 1)
    block = sb.pack().ljust(BSIZE, b"\xff")
    assert Superblock.unpack(block) == sb


def test_dinode_round_trip():
    addrs = list(range(1, NDIRECT + 2))
    din = Dinode(InodeType.FILE, 1, 2, 3, 4096, addrs)
    back = Dinode.unpack(din.pack())
    assert back == din
    assert back.type == InodeType.FILE


def test_dinodes_fill_a_block_exactly():
    assert len(Dinode().pack()) * IPB == BSIZE


def test_dinode_with_wrong_address_count_rejected():
    with pytest.raises(ValueError):
        Dinode(addrs=[0]).pack()


def test_dirent_wire_format():
    assert Dirent(1, ".").pack() == b"\x01\x00." + b"\0" * (DIRSIZ - 1)


def test_dirent_round_trip():
    de = Dirent(42, "README")
    assert Dirent.unpack(de.pack()) == de


def test_dirent_name_truncated_to_dirsiz():
    de = Dirent.unpack(Dirent(3, "x" * (DIRSIZ + 6)).pack())
    assert de.name == "x" * DIRSIZ
    assert BSIZE % len(Dirent().pack()) == 0


def test_inode_block():
    sb = Superblock(inodestart=32)
    assert inode_block(0, sb) == sb.inodestart
    assert inode_block(IPB - 1, sb) == sb.inodestart
    assert inode_block(IPB, sb) == sb.inodestart + 1


def test_bitmap_block():
    sb = Superblock(bmapstart=58)
    assert bitmap_block(0, sb) == sb.bmapstart
    assert bitmap_block(BPB - 1, sb) == sb.bmapstart
    assert bitmap_block(BPB, sb) == sb.bmapstart + 1