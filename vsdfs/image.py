"""Building vsd filesystem images: directories, files and block allocation."""

from __future__ import annotations

import os
import struct
from dataclasses import dataclass, field
from typing import BinaryIO

from .layout import (
    BPB,
    BSIZE,
    DINODE_SIZE,
    IPB,
    MAXFILE,
    NINDIRECT,
    DiskInode,
    Dirent,
    InodeType,
    Superblock,
    inode_block,
    offset2real,
)
from .perms import Perm

DIRPERMS = Perm.U_READ | Perm.U_EXEC | Perm.W_READ | Perm.W_EXEC
MAX_LABEL = 10

_INDIRECT = struct.Struct("<%dI" % NINDIRECT)


class FsImageError(Exception):
    """Raised when an image cannot be built as asked."""


def _short(value: int) -> int:
    """Truncate ``value`` to a signed 16-bit integer."""
    return ((value + 0x8000) & 0xFFFF) - 0x8000


@dataclass(eq=False)
class Directory:
    """A directory placed in the image; the root is its own parent."""

    name: str
    ino: int
    owner: int = 0
    perms: int = 0
    parent: Directory | None = field(default=None, repr=False)


@dataclass(eq=False)
class ImageFile:
    """A regular file copied into the image from a host file."""

    name: str
    source: str
    home: Directory
    ino: int
    owner: int = 0
    perms: int = 0


class FsImage:
    """A filesystem image being built on a host file."""

    def __init__(self, path: str, handle: BinaryIO, sb: Superblock, bitmap: bytearray) -> None:
        self.path = path
        self._handle: BinaryIO | None = handle
        self.sb = sb
        self.size = sb.size
        self.label = sb.label
        self._bitmap = bitmap
        self.freeinode = 1
        self.dirs: list[Directory] = []
        self.files: list[ImageFile] = []
        self.kernel: ImageFile | None = None
        self.bootloader: ImageFile | None = None

    @classmethod
    def create(
        cls,
        path: str | os.PathLike[str],
        label: str,
        size: int,
        logsize: int,
        ninodes: int | None = None,
    ) -> "FsImage":
        """Create and ream a new image holding only the root directory."""
        if ninodes is None:
            ninodes = size // 10
        if len(label) > MAX_LABEL:
            raise FsImageError(f"label {label} too long (must be <={MAX_LABEL})")
        nbitmap = size // BPB + 1
        ninodeblocks = ninodes // IPB + 1
        nmeta = 2 + logsize + ninodeblocks + nbitmap
        if size <= nmeta:
            raise FsImageError(f"size {size} leaves no room after {nmeta} metadata blocks")
        sb = Superblock(
            label=label,
            version=0,
            bootable=0,
            system=1,
            size=size,
            nblocks=size - nmeta,
            ninodes=ninodes,
            nlog=logsize,
            logstart=2,
            inodestart=2 + logsize,
            bmapstart=2 + logsize + ninodeblocks,
            bootinode=0,
            kerninode=0,
        )
        bitmap = bytearray(nbitmap * BSIZE)
        for blockno in range(nmeta):
            bitmap[blockno // 8] |= 1 << (blockno % 8)
        try:
            handle = open(path, "w+b")
        except OSError as exc:
            raise FsImageError(f"{os.fspath(path)}: {exc.strerror}") from exc
        image = cls(os.fspath(path), handle, sb, bitmap)
        try:
            handle.write(bytes(size * BSIZE))
            image._write_superblock()
            ino = image.alloc_inode(InodeType.DIR, -1, DIRPERMS)
            root = Directory("/", ino, -1, int(DIRPERMS))
            root.parent = root
            image.append(ino, Dirent(ino, ".").pack())
            image.append(ino, Dirent(ino, "..").pack())
            image.dirs.append(root)
            image.sync()
        except BaseException:
            image.close()
            raise
        return image

    @property
    def closed(self) -> bool:
        return self._handle is None

    def _io(self) -> BinaryIO:
        if self._handle is None:
            raise FsImageError(f"image {self.path} is closed")
        return self._handle

    def _check_block(self, blockno: int) -> None:
        if not 0 <= blockno < self.size:
            raise FsImageError(f"block {blockno} outside image of {self.size} blocks")

    def read_block(self, blockno: int) -> bytes:
        """Contents of block ``blockno``."""
        handle = self._io()
        self._check_block(blockno)
        handle.seek(blockno * BSIZE)
        data = handle.read(BSIZE)
        if len(data) != BSIZE:
            raise FsImageError(f"short read of block {blockno}")
        return data

    def write_block(self, blockno: int, data: bytes) -> None:
        """Overwrite block ``blockno`` with exactly BSIZE bytes."""
        if len(data) != BSIZE:
            raise ValueError(f"block data must be {BSIZE} bytes, got {len(data)}")
        handle = self._io()
        self._check_block(blockno)
        handle.seek(blockno * BSIZE)
        handle.write(data)

    def _write_superblock(self) -> None:
        self.write_block(1, self.sb.pack().ljust(BSIZE, b"\0"))

    def _inode_location(self, inum: int) -> tuple[int, int]:
        return inode_block(inum, self.sb), (inum % IPB) * DINODE_SIZE

    def read_inode(self, inum: int) -> DiskInode:
        """The on-disk inode ``inum``."""
        blockno, offset = self._inode_location(inum)
        block = self.read_block(blockno)
        return DiskInode.unpack(block[offset:offset + DINODE_SIZE])

    def write_inode(self, inum: int, inode: DiskInode) -> None:
        """Store ``inode`` as inode ``inum``."""
        blockno, offset = self._inode_location(inum)
        block = bytearray(self.read_block(blockno))
        block[offset:offset + DINODE_SIZE] = inode.pack()
        self.write_block(blockno, bytes(block))

    def alloc_inode(self, itype: int, owner: int, perms: int) -> int:
        """Allocate the next inode with one link and return its number."""
        inum = self.freeinode
        if inum >= self.sb.ninodes:
            raise FsImageError("no more inodes")
        self.freeinode += 1
        inode = DiskInode(type=int(itype), nlink=1, size=0, owner=_short(owner), perms=int(perms) & 0xFF)
        self.write_inode(inum, inode)
        return inum

    def alloc_block(self) -> int:
        """Mark the first free block in use and return its number."""
        for blockno in range(1, self.size):
            byte, bit = divmod(blockno, 8)
            if not self._bitmap[byte] & (1 << bit):
                self._bitmap[byte] |= 1 << bit
                return blockno
        raise FsImageError("unable to allocate block. filesystem full")

    def append(self, inum: int, data: bytes) -> int:
        """Append ``data`` to inode ``inum`` and return its new size."""
        inode = self.read_inode(inum)
        off = inode.size
        view = memoryview(bytes(data))
        while view:
            fbn, sboff = divmod(off, BSIZE)
            if fbn >= MAXFILE:
                raise FsImageError(f"inode {inum} would exceed the maximum file size")
            wrlen = min(len(view), BSIZE - sboff)
            slot, ptr = offset2real(fbn)
            if inode.addrs[slot] == 0:
                inode.addrs[slot] = self.alloc_block()
            indirect = list(_INDIRECT.unpack(self.read_block(inode.addrs[slot])))
            if indirect[ptr] == 0:
                indirect[ptr] = self.alloc_block()
                self.write_block(inode.addrs[slot], _INDIRECT.pack(*indirect))
            target = indirect[ptr]
            block = bytearray(self.read_block(target))
            block[sboff:sboff + wrlen] = view[:wrlen]
            self.write_block(target, bytes(block))
            view = view[wrlen:]
            off += wrlen
        inode.size = off
        self.write_inode(inum, inode)
        return off

    def make_dir(self, name: str, parent: Directory, owner: int, perms: int) -> Directory:
        """Create directory ``name`` inside ``parent``."""
        ino = self.alloc_inode(InodeType.DIR, owner, perms)
        directory = Directory(name, ino, owner, int(perms), parent)
        self.append(parent.ino, Dirent(ino, name).pack())
        self.append(ino, Dirent(ino, ".").pack())
        self.append(ino, Dirent(parent.ino, "..").pack())
        self.dirs.append(directory)
        return directory

    def add_file(
        self,
        name: str,
        home: Directory,
        source: str | os.PathLike[str],
        owner: int,
        perms: int,
    ) -> ImageFile:
        """Copy host file ``source`` into directory ``home`` as ``name``."""
        try:
            with open(source, "rb") as handle:
                data = handle.read()
        except OSError as exc:
            raise FsImageError(f"{os.fspath(source)}: {exc.strerror}") from exc
        ino = self.alloc_inode(InodeType.FILE, owner, perms)
        self.append(home.ino, Dirent(ino, name).pack())
        if data:
            self.append(ino, data)
        image_file = ImageFile(name, os.fspath(source), home, ino, owner, int(perms))
        self.files.append(image_file)
        return image_file

    def find_dir(self, name: str) -> Directory | None:
        """The directory created under ``name``, if any."""
        return next((d for d in self.dirs if d.name == name), None)

    def find_file(self, name: str) -> ImageFile | None:
        """The file created under ``name``, if any."""
        return next((f for f in self.files if f.name == name), None)

    def brand_kernel(self, file: ImageFile) -> None:
        """Record ``file`` as the kernel in the superblock."""
        self.sb.kerninode = file.ino & 0xFFFF
        self.kernel = file

    def brand_bootloader(self, file: ImageFile) -> None:
        """Record ``file`` as the boot loader and mark the image bootable."""
        self.sb.bootable = 1
        self.sb.bootinode = file.ino & 0xFFFF
        self.bootloader = file

    def sync(self) -> None:
        """Write the free-block bitmap and the superblock to the image."""
        for index in range(len(self._bitmap) // BSIZE):
            chunk = bytes(self._bitmap[index * BSIZE:(index + 1) * BSIZE])
            self.write_block(self.sb.bmapstart + index, chunk)
        self._write_superblock()

    def close(self) -> None:
        """Close the image file; unsynced changes to the bitmap are lost."""
        if self._handle is not None:
            self._handle.close()
            self._handle = None

    def blocks_used(self) -> int:
        """Number of blocks in use, counting the boot block."""
        return 1 + sum(
            1 for blockno in range(1, self.size) if self._bitmap[blockno // 8] & (1 << (blockno % 8))
        )

    def __enter__(self) -> "FsImage":
        return self

    def __exit__(self, *args: object) -> None:
        self.close()