"""On-disk structures of the vsd filesystem: superblock, inodes and directory entries."""

from __future__ import annotations

import enum
import struct
from dataclasses import dataclass, field

ROOTINO = 1
BSIZE = 512
NDIRECT = 12
NINDIRECT = BSIZE // 4
MAXFILE = NINDIRECT * 12
DIRSIZ = 14

_SUPERBLOCK = struct.Struct("<11sBBB2x9I")
_DINODE = struct.Struct("<hhhhBBhI%dI" % NDIRECT)
_DIRENT = struct.Struct("<H%ds" % DIRSIZ)

SUPERBLOCK_SIZE = _SUPERBLOCK.size
DINODE_SIZE = _DINODE.size
DIRENT_SIZE = _DIRENT.size

# Inodes per block.
IPB = BSIZE // DINODE_SIZE
# Bitmap bits per block.
BPB = BSIZE * 8


class InodeType(enum.IntEnum):
    """Kind of object an inode describes; zero marks a free inode."""

    FREE = 0
    DIR = 1
    FILE = 2
    DEV = 3


def _need(data: bytes, size: int, what: str) -> None:
    if len(data) < size:
        raise ValueError(f"{what} needs {size} bytes, got {len(data)}")


def _cstring(raw: bytes) -> str:
    return raw.split(b"\0", 1)[0].decode("latin-1")


@dataclass
class Superblock:
    """Describes the disk layout; stored in block 1."""

    label: str = ""
    version: int = 0
    bootable: int = 0
    system: int = 0
    size: int = 0
    nblocks: int = 0
    ninodes: int = 0
    nlog: int = 0
    logstart: int = 0
    inodestart: int = 0
    bmapstart: int = 0
    bootinode: int = 0
    kerninode: int = 0

    def pack(self) -> bytes:
        raw_label = self.label.encode("latin-1")
        if len(raw_label) > 11:
            raise ValueError(f"label {self.label!r} longer than 11 bytes")
        return _SUPERBLOCK.pack(
            raw_label,
            self.version,
            self.bootable,
            self.system,
            self.size,
            self.nblocks,
            self.ninodes,
            self.nlog,
            self.logstart,
            self.inodestart,
            self.bmapstart,
            self.bootinode,
            self.kerninode,
        )

    @classmethod
    def unpack(cls, data: bytes) -> "Superblock":
        _need(data, SUPERBLOCK_SIZE, "superblock")
        label, *rest = _SUPERBLOCK.unpack_from(data)
        return cls(_cstring(label), *rest)


@dataclass
class DiskInode:
    """On-disk inode: metadata plus the indirect block addresses."""

    type: int = 0
    major: int = 0
    minor: int = 0
    owner: int = 0
    perms: int = 0
    attrib: int = 0
    nlink: int = 0
    size: int = 0
    addrs: list[int] = field(default_factory=lambda: [0] * NDIRECT)

    def pack(self) -> bytes:
        if len(self.addrs) != NDIRECT:
            raise ValueError(f"inode needs {NDIRECT} addresses, got {len(self.addrs)}")
        return _DINODE.pack(
            self.type,
            self.major,
            self.minor,
            self.owner,
            self.perms,
            self.attrib,
            self.nlink,
            self.size,
            *self.addrs,
        )

    @classmethod
    def unpack(cls, data: bytes) -> "DiskInode":
        _need(data, DINODE_SIZE, "inode")
        values = _DINODE.unpack_from(data)
        return cls(*values[:8], addrs=list(values[8:]))


@dataclass
class Dirent:
    """Directory entry: inode number and a name of at most DIRSIZ bytes."""

    inum: int = 0
    name: str = ""

    def pack(self) -> bytes:
        return _DIRENT.pack(self.inum, self.name.encode("latin-1")[:DIRSIZ])

    @classmethod
    def unpack(cls, data: bytes) -> "Dirent":
        _need(data, DIRENT_SIZE, "directory entry")
        inum, name = _DIRENT.unpack_from(data)
        return cls(inum, _cstring(name))


def offset2real(blockno: int) -> tuple[int, int]:
    """Map a file block number to (indirect block slot, pointer in that block)."""
    return divmod(blockno, NINDIRECT)


def inode_block(inum: int, sb: Superblock) -> int:
    """Block holding inode ``inum``."""
    return inum // IPB + sb.inodestart


def bitmap_block(blockno: int, sb: Superblock) -> int:
    """Free-map block holding the bit for ``blockno``."""
    return blockno // BPB + sb.bmapstart