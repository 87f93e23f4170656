# vsdfs

Tools for the VSD on-disk filesystem. An image is laid out as boot block,
superblock (block 1), log, inode blocks, free-block bitmap and data blocks.
Every inode holds twelve addresses of indirect blocks, and each indirect
block points at up to 128 data blocks of 512 bytes.

The package can:

- build an image from a prototype file (`vsd-mkproto`, `vsdfs.proto`),
- build a system disk from a list of files, placing them by name prefix
  (`vsd-mkfs`, `vsdfs.vsd`),
- read images back: resolve paths, list directories, read file data and
  inode metadata (`vsdfs.reader.FsReader`),
- pack and unpack the on-disk structures (`vsdfs.layout`),
- parse, combine, check and format permission bits (`vsdfs.perms`,
  `vsdfs.formatting`),
- scan simple `-abc` style options (`vsdfs.args`),
- search text with a tiny regular-expression matcher (`vsd-grep`, `vsdfs.grep`).

## Installation

```
pip install .
```

## Building an image from a prototype file

A prototype file lists one entry per line:

```
fsys  VSDSYS  newfs.img  10000
direct  bin   /  -1  u:r-x-, w:r-x-
direct  etc   /  -1  u:rwx-, w:r-x-
file  bin  cat  _cat  -1  u:r-x-, w:r-x-
file  /    kernel.elf  kernel.elf  -1  u:r---, w:r---
kernel  kernel.elf
sync
```

- `fsys NAME OUTPUT SIZE` starts a new filesystem of SIZE blocks labelled
  NAME (at most 10 characters) written to OUTPUT; `fsys_nolog` does the same
  with no log blocks. The image is created as soon as the line is read.
- `direct NAME HOME OWNER UPERMS, WPERMS` creates directory NAME inside the
  directory named HOME (`/` is the root).
- `file HOME NAME SOURCE OWNER UPERMS, WPERMS` copies the host file SOURCE
  into HOME as NAME.
- `kernel NAME` / `boot NAME` record a file as the kernel or boot loader in
  the superblock; `boot` also marks the image bootable.
- `sync` writes the bitmap and superblock and closes the image.

Permission fields are `u:` or `w:` followed by the letters `r`, `w`, `x`,
`h` in that order, with `-` allowed in place of `r`, `w` or `x`.

```
vsd-mkproto -f rootfs_proto -l 30
```

`-f` (the prototype file) and `-l` (log size in blocks) are required;
without them the usage line is printed. Other options: `-v` prints each
entry as it is carried out, `-n` only prints the entries without building
anything, `-c` keeps going past malformed lines, `-o FILE` overrides the
output file of `fsys` entries and `-s SIZE` their size in blocks.

From Python:

```python
from vsdfs.proto import ProtoBuilder

builder = ProtoBuilder(30, verbose=True)
with open("rootfs_proto") as proto:
    builder.read_proto(proto, keep_going=False)
builder.run()
```

A malformed line or an entry that names an unknown directory or file raises
`vsdfs.proto.ProtoError`; image problems raise `vsdfs.image.FsImageError`.
Images can also be built directly with `vsdfs.image.FsImage.create`,
`make_dir`, `add_file`, `brand_kernel`, `brand_bootloader` and `sync`.

## Building a system disk from a list of files

```
vsd-mkfs -s 10000 -l 30 fs.img VSDSYS _cat _sh @passwd @rc kernel.elf bootelf
```

The image gets `/bin`, `/etc`, `/boot` and `/dev`. Files whose name starts
with `_` go to `/bin` (without the `_`), names starting with `@` to `/etc`
(without the `@`), `kernel.bin`, `kernel.elf`, `bootbin` and `bootelf` to
`/boot`, and everything else to `/`. `bootelf` is recorded as the boot
loader and `kernel.elf` as the kernel. A label longer than 10 characters is
replaced by `NO NAME`. Blocks are handed out in order, and all used blocks
must fit in one bitmap block (4096 blocks).

The same is available as `vsdfs.vsd.build_vsd_image(path, label, sources,
fs_size, log_size)`, which returns the finished `VsdBuilder`.

## Reading an image

```python
from vsdfs.reader import FsReader

with FsReader("newfs.img") as fs:
    inum = fs.resolve("/bin/cat")
    info = fs.stat(inum)
    data = fs.read(inum, 0, info.size)
    for entry in fs.list_dir(fs.resolve("/")):
        print(entry.name, entry.inum)
```

`resolve` returns `None` for a path that does not exist; `resolve_parent`
returns the parent directory's inode and the final name. By default the
reader refuses images whose superblock does not mark them as system disks
(`require_system=False` lifts this). Errors raise `vsdfs.reader.FsReadError`.

## Permissions

```python
from vsdfs.perms import FileOp, check_permission, parse_perm_fields
from vsdfs.formatting import format_perms

perms = parse_perm_fields("u:rwx-", "w:r---")
print(format_perms(perms, "proto"))    # u:rwx- w:r---
print(format_perms(perms))             # U:rwx-,W:r---
check_permission(5, 5, perms, FileOp.WRITE, singleuser=False)   # True
```

The system user is uid -1; in single-user mode only it has access.

## grep

```
vsd-grep 'ab*c$' file.txt
```

Supports `^`, `.`, `*` and `$`; reads standard input when no file is given.
Only newline-terminated lines are matched.

## What the package does not do

Images are either built from scratch or read. There is no way to change an
existing image (no creating, writing or unlinking files in it), the log is
never written or replayed, and images cannot be mounted.