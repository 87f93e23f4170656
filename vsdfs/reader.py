"""Read-only access to vsd filesystem images: inodes, file data, directories and paths."""

from __future__ import annotations

import os
import struct
from dataclasses import dataclass
from typing import BinaryIO

from .layout import (
    BSIZE,
    DINODE_SIZE,
    DIRENT_SIZE,
    DIRSIZ,
    IPB,
    MAXFILE,
    NINDIRECT,
    ROOTINO,
    DiskInode,
    Dirent,
    InodeType,
    Superblock,
    inode_block,
    offset2real,
)

_INDIRECT = struct.Struct("<%dI" % NINDIRECT)


class FsReadError(Exception):
    """Raised when an image cannot be read as asked."""


@dataclass(frozen=True)
class InodeStat:
    """Metadata of an inode, as reported by stat."""

    dev: int
    ino: int
    type: int
    nlink: int
    size: int
    owner: int
    perms: int


def skip_element(path: str) -> tuple[str, str] | None:
    """Split off the first path element.

    Returns the element (cut to DIRSIZ characters) and the rest of the path
    without leading slashes, or None if the path holds no element.
    """
    stripped = path.lstrip("/")
    if not stripped:
        return None
    element, _, rest = stripped.partition("/")
    return element[:DIRSIZ], rest.lstrip("/")


def _names_equal(a: str, b: str) -> bool:
    return a[:DIRSIZ] == b[:DIRSIZ]


class FsReader:
    """Reads a filesystem image held in a host file.

    Relative paths are resolved from ``cwd``, the root directory unless set.
    """

    def __init__(self, path: str | os.PathLike[str], *, dev: int = 0, require_system: bool = True) -> None:
        self.path = os.fspath(path)
        self.dev = dev
        self.cwd = ROOTINO
        try:
            self._handle: BinaryIO | None = open(path, "rb")
        except OSError as exc:
            raise FsReadError(f"{self.path}: {exc.strerror}") from exc
        try:
            self.sb = Superblock.unpack(self._raw_block(1))
            if require_system and not self.sb.system:
                raise FsReadError("given disk is not a system disk")
        except BaseException:
            self.close()
            raise

    def _raw_block(self, blockno: int) -> bytes:
        if self._handle is None:
            raise FsReadError(f"image {self.path} is closed")
        if blockno < 0:
            raise FsReadError(f"negative block number {blockno}")
        self._handle.seek(blockno * BSIZE)
        data = self._handle.read(BSIZE)
        if len(data) != BSIZE:
            raise FsReadError(f"short read of block {blockno}")
        return data

    def _block(self, blockno: int) -> bytes:
        if blockno >= self.sb.size:
            raise FsReadError(f"block {blockno} outside image of {self.sb.size} blocks")
        return self._raw_block(blockno)

    def read_inode(self, inum: int) -> DiskInode:
        """The on-disk inode ``inum``."""
        if not 0 <= inum < self.sb.ninodes:
            raise FsReadError(f"inode {inum} out of range")
        block = self._block(inode_block(inum, self.sb))
        offset = (inum % IPB) * DINODE_SIZE
        return DiskInode.unpack(block[offset:offset + DINODE_SIZE])

    def bmap(self, inode: DiskInode, blockno: int) -> int | None:
        """Disk address of file block ``blockno``, or None if it is not allocated."""
        if not 0 <= blockno < MAXFILE:
            raise FsReadError(f"block {blockno} out of range")
        slot, ptr = offset2real(blockno)
        indirect_addr = inode.addrs[slot]
        if indirect_addr == 0:
            return None
        addr = _INDIRECT.unpack(self._block(indirect_addr))[ptr]
        return addr or None

    def read(self, inum: int, offset: int = 0, n: int | None = None) -> bytes:
        """Up to ``n`` bytes of inode ``inum`` from ``offset``; all the rest if ``n`` is None."""
        inode = self.read_inode(inum)
        if inode.type == InodeType.DEV:
            raise FsReadError(f"inode {inum} is a device")
        if offset < 0 or offset > inode.size or (n is not None and n < 0):
            raise FsReadError(f"bad read of inode {inum} at offset {offset}")
        end = inode.size if n is None else min(offset + n, inode.size)
        chunks = []
        off = offset
        while off < end:
            fbn, boff = divmod(off, BSIZE)
            m = min(end - off, BSIZE - boff)
            addr = self.bmap(inode, fbn)
            if addr is None:
                chunks.append(bytes(m))
            else:
                chunks.append(self._block(addr)[boff:boff + m])
            off += m
        return b"".join(chunks)

    def _entries(self, inum: int) -> list[Dirent]:
        inode = self.read_inode(inum)
        if inode.type != InodeType.DIR:
            raise FsReadError(f"inode {inum} is not a directory")
        data = self.read(inum)
        if len(data) % DIRENT_SIZE:
            raise FsReadError(f"directory {inum} has a partial entry")
        return [
            Dirent.unpack(data[pos:pos + DIRENT_SIZE])
            for pos in range(0, len(data), DIRENT_SIZE)
        ]

    def lookup(self, dir_inum: int, name: str) -> int | None:
        """Inode number of ``name`` in directory ``dir_inum``, or None."""
        for entry in self._entries(dir_inum):
            if entry.inum and _names_equal(name, entry.name):
                return entry.inum
        return None

    def list_dir(self, inum: int) -> list[Dirent]:
        """The used entries of directory ``inum``, in on-disk order."""
        return [entry for entry in self._entries(inum) if entry.inum]

    def _walk(self, path: str, parent: bool) -> tuple[int, str] | None:
        ip = ROOTINO if path.startswith("/") else self.cwd
        name = ""
        while (step := skip_element(path)) is not None:
            name, path = step
            if self.read_inode(ip).type != InodeType.DIR:
                return None
            if parent and not path:
                return ip, name
            found = self.lookup(ip, name)
            if found is None:
                return None
            ip = found
        if parent:
            return None
        return ip, name

    def resolve(self, path: str) -> int | None:
        """Inode number that ``path`` names, or None if it does not exist."""
        found = self._walk(path, parent=False)
        return None if found is None else found[0]

    def resolve_parent(self, path: str) -> tuple[int, str] | None:
        """Parent directory inode of ``path`` and its final element, or None."""
        return self._walk(path, parent=True)

    def stat(self, inum: int) -> InodeStat:
        """Metadata of inode ``inum``."""
        inode = self.read_inode(inum)
        return InodeStat(
            dev=self.dev,
            ino=inum,
            type=inode.type,
            nlink=inode.nlink,
            size=inode.size,
            owner=inode.owner,
            perms=inode.perms,
        )

    def close(self) -> None:
        """Close the image file."""
        if self._handle is not None:
            self._handle.close()
            self._handle = None

    def __enter__(self) -> "FsReader":
        return self

    def __exit__(self, *args: object) -> None:
        self.close()