"""Build a vsd system disk from host files with a sequential block allocator."""

from __future__ import annotations

import argparse
import os
import struct
import sys
from collections.abc import Iterable
from typing import BinaryIO

from .image import FsImageError
from .layout import (
    BPB,
    BSIZE,
    DINODE_SIZE,
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
from .perms import Perm

SYSPERMS = Perm.U_READ | Perm.W_READ
BINPERMS = Perm.U_READ | Perm.U_EXEC | Perm.W_READ | Perm.W_EXEC
ETCPERMS = Perm.U_READ | Perm.U_WRITE | Perm.W_READ
DEFAULT_PERMS = Perm.U_READ | Perm.W_READ | Perm.U_WRITE
BOOT_FILES = frozenset({"kernel.bin", "kernel.elf", "bootbin", "bootelf"})
NO_NAME = "NO NAME"

_INDIRECT = struct.Struct("<%dI" % NINDIRECT)


class VsdBuilder:
    """Lays out a system disk with /bin, /etc, /boot and /dev on an open file.

    Every append sets the inode's owner to the system and its permissions
    to the given mode.
    """

    def __init__(self, handle: BinaryIO, label: str, fs_size: int, log_size: int) -> None:
        self._handle = handle
        self.fs_size = fs_size
        ninodes = fs_size // 10
        self.nbitmap = fs_size // BPB + 1
        self.ninodeblocks = ninodes // IPB + 1
        self.nlog = log_size
        self.nmeta = 2 + log_size + self.ninodeblocks + self.nbitmap
        if self.nmeta >= fs_size:
            raise FsImageError(f"size {fs_size} leaves no room after {self.nmeta} metadata blocks")
        if len(label) > 10:
            label = NO_NAME
        self.sb = Superblock(
            label=label,
            version=0,
            bootable=0,
            system=1,
            size=fs_size,
            nblocks=fs_size - self.nmeta,
            ninodes=ninodes,
            nlog=log_size,
            logstart=2,
            inodestart=2 + log_size,
            bmapstart=2 + log_size + self.ninodeblocks,
            bootinode=0,
            kerninode=0,
        )
        self.freeblock = self.nmeta
        self._freeinode = 1

        handle.seek(0)
        handle.write(bytes(fs_size * BSIZE))
        self._write_superblock()

        root = self.alloc_inode(InodeType.DIR, BINPERMS)
        if root != ROOTINO:
            raise FsImageError(f"root directory got inode {root}")
        self.append(root, Dirent(root, ".").pack())
        self.append(root, Dirent(root, "..").pack())
        self.bin_ino = self.make_dir(root, "bin")
        self.etc_ino = self.make_dir(root, "etc")
        self.boot_ino = self.make_dir(root, "boot")
        self.dev_ino = self.make_dir(root, "dev")

    def _read_block(self, blockno: int) -> bytes:
        self._handle.seek(blockno * BSIZE)
        data = self._handle.read(BSIZE)
        if len(data) != BSIZE:
            raise FsImageError(f"short read of block {blockno}")
        return data

    def _write_block(self, blockno: int, data: bytes) -> None:
        self._handle.seek(blockno * BSIZE)
        self._handle.write(data)

    def _write_superblock(self) -> None:
        self._write_block(1, self.sb.pack().ljust(BSIZE, b"\0"))

    def _read_inode(self, inum: int) -> DiskInode:
        offset = (inum % IPB) * DINODE_SIZE
        block = self._read_block(inode_block(inum, self.sb))
        return DiskInode.unpack(block[offset:offset + DINODE_SIZE])

    def _write_inode(self, inum: int, inode: DiskInode) -> None:
        blockno = inode_block(inum, self.sb)
        offset = (inum % IPB) * DINODE_SIZE
        block = bytearray(self._read_block(blockno))
        block[offset:offset + DINODE_SIZE] = inode.pack()
        self._write_block(blockno, bytes(block))

    def _alloc_block(self) -> int:
        if self.freeblock >= self.fs_size:
            raise FsImageError("filesystem full")
        blockno = self.freeblock
        self.freeblock += 1
        return blockno

    def alloc_inode(self, itype: int, perms: int) -> int:
        """Allocate the next inode, owned by the system, and return its number."""
        inum = self._freeinode
        if inum >= self.sb.ninodes:
            raise FsImageError("no more inodes")
        self._freeinode += 1
        inode = DiskInode(type=int(itype), nlink=1, size=0, owner=-1, perms=int(perms) & 0xFF)
        self._write_inode(inum, inode)
        return inum

    def append(self, inum: int, data: bytes, perms: int = DEFAULT_PERMS) -> int:
        """Append ``data`` to inode ``inum``, setting its mode; return the new size."""
        inode = self._read_inode(inum)
        off = inode.size
        inode.owner = -1
        inode.perms = int(perms) & 0xFF
        view = memoryview(bytes(data))
        while view:
            fbn, sboff = divmod(off, BSIZE)
            if fbn >= MAXFILE:
                raise FsImageError(f"inode {inum} would exceed the maximum file size")
            wrlen = min(len(view), BSIZE - sboff)
            slot, ptr = offset2real(fbn)
            if inode.addrs[slot] == 0:
                inode.addrs[slot] = self._alloc_block()
            indirect = list(_INDIRECT.unpack(self._read_block(inode.addrs[slot])))
            if indirect[ptr] == 0:
                indirect[ptr] = self._alloc_block()
                self._write_block(inode.addrs[slot], _INDIRECT.pack(*indirect))
            target = indirect[ptr]
            block = bytearray(self._read_block(target))
            block[sboff:sboff + wrlen] = view[:wrlen]
            self._write_block(target, bytes(block))
            view = view[wrlen:]
            off += wrlen
        inode.size = off
        self._write_inode(inum, inode)
        return off

    def make_dir(self, parent: int, name: str) -> int:
        """Create directory ``name`` in directory inode ``parent``; return its inode."""
        ino = self.alloc_inode(InodeType.DIR, BINPERMS)
        self.append(parent, Dirent(ino, name).pack())
        self.append(ino, Dirent(ino, ".").pack())
        self.append(ino, Dirent(parent, "..").pack())
        return ino

    def add_source(self, name: str, data: bytes) -> int:
        """Place a file by its name and return its inode.

        ``_name`` goes to /bin, ``@name`` to /etc, kernel and boot loader
        images to /boot, and anything else to /.
        """
        if "/" in name:
            raise ValueError(f"source name {name!r} contains '/'")
        if name.startswith("_"):
            home, fsname, perms = self.bin_ino, name[1:], BINPERMS
        elif name.startswith("@"):
            home, fsname, perms = self.etc_ino, name[1:], ETCPERMS
        elif name in BOOT_FILES:
            home, fsname, perms = self.boot_ino, name, SYSPERMS
        else:
            home, fsname, perms = ROOTINO, name, DEFAULT_PERMS
        inum = self.alloc_inode(InodeType.FILE, BINPERMS)
        if name == "bootelf":
            self.sb.bootable = 1
            self.sb.bootinode = inum & 0xFFFF
        if name == "kernel.elf":
            self.sb.kerninode = inum & 0xFFFF
        self.append(home, Dirent(inum, fsname).pack(), perms)
        if data:
            self.append(inum, data, perms)
        return inum

    def finish(self) -> int:
        """Write the superblock and free-block bitmap; return the blocks used."""
        self._write_superblock()
        used = self.freeblock
        if used >= BPB:
            raise FsImageError(f"{used} blocks used do not fit one bitmap block")
        bitmap = bytearray(BSIZE)
        for blockno in range(used):
            bitmap[blockno // 8] |= 1 << (blockno % 8)
        self._write_block(self.sb.bmapstart, bytes(bitmap))
        self._handle.flush()
        return used


def build_vsd_image(
    path: str | os.PathLike[str],
    label: str,
    sources: Iterable[str | os.PathLike[str]],
    fs_size: int,
    log_size: int,
) -> VsdBuilder:
    """Build a system disk at ``path`` from host files; return the finished builder."""
    with open(path, "w+b") as handle:
        builder = VsdBuilder(handle, label, fs_size, log_size)
        for source in sources:
            with open(source, "rb") as src:
                data = src.read()
            builder.add_source(os.path.basename(os.fspath(source)), data)
        builder.finish()
    return builder


def main(argv: list[str] | None = None) -> int:
    """Command entry: ``mkfs_vsd -s size -l logsize fs.img label files...``."""
    parser = argparse.ArgumentParser(prog="mkfs_vsd", description="Build a vsd system disk image.")
    parser.add_argument("-s", "--size", type=int, required=True, help="image size in blocks")
    parser.add_argument("-l", "--log-size", type=int, required=True, help="log size in blocks")
    parser.add_argument("image")
    parser.add_argument("label")
    parser.add_argument("files", nargs="*")
    args = parser.parse_args(argv)
    try:
        builder = build_vsd_image(args.image, args.label, args.files, args.size, args.log_size)
    except (OSError, FsImageError, ValueError) as exc:
        sys.stderr.write(f"mkfs: {exc}\n")
        return 1
    sb = builder.sb
    print("mkfs: vsd new filesystem")
    print(f"mkfs: label {sb.label}, version {sb.version}")
    print(
        f"mkfs: meta {builder.nmeta} (boot, super, log {builder.nlog}, inode {builder.ninodeblocks}, "
        f"bitmap {builder.nbitmap}) blocks {sb.nblocks} total {builder.fs_size}"
    )
    print("mkfs: adding files done")
    if sb.bootable:
        print(f"mkfs: fs bootable, bootloader is inode {sb.bootinode}")
    if sb.kerninode > 0:
        print(f"mkfs: kernel is inode {sb.kerninode}")
    print(f"mkfs: first {builder.freeblock} blocks have been allocated")
    print(f"mkfs: write bitmap block at sector {sb.bmapstart}")
    return 0