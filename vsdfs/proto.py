"""Build filesystem images from a prototype file describing their contents."""

from __future__ import annotations

import argparse
import enum
import os
import re
import sys
from collections.abc import Iterable
from dataclasses import dataclass
from typing import TextIO

from .formatting import format_perms
from .image import FsImage, FsImageError
from .perms import parse_perm_fields

_FIELD_DELIMS = " \t"
_PERM_DELIMS = ", \t"
_LEADING_INT = re.compile(r"\s*([+-]?\d+)")
_LEADING_UINT = re.compile(r"\s*\+?(\d+)")


class ProtoError(Exception):
    """Raised for a malformed prototype line or an entry that cannot be carried out."""


class EntryType(enum.IntEnum):
    """Kinds of prototype entries."""

    FSYS = 1
    DIRECT = 2
    FILE = 3
    KERNEL = 4
    BOOTLOADER = 5
    SYNC = 6
    FSYS_NOLOG = 7

    @property
    def keyword(self) -> str:
        return _KEYWORDS[self]


_KEYWORDS = {
    EntryType.FSYS: "fsys",
    EntryType.FSYS_NOLOG: "fsys_nolog",
    EntryType.DIRECT: "direct",
    EntryType.FILE: "file",
    EntryType.KERNEL: "kernel",
    EntryType.BOOTLOADER: "boot",
    EntryType.SYNC: "sync",
}


@dataclass(eq=False)
class Entry:
    """One line of a prototype file, bound to the filesystem active when it was read."""

    type: EntryType
    name: str = ""
    home: str = ""
    source: str = ""
    size: int = 0
    owner: int = 0
    perms: int = 0
    fs: FsImage | None = None
    label: str = ""
    active: bool = True


def _atoi(text: str) -> int:
    found = _LEADING_INT.match(text)
    return int(found.group(1)) if found else 0


def _strtoul(text: str) -> int:
    found = _LEADING_UINT.match(text)
    return int(found.group(1)) if found else 0


class _Fields:
    """Splits a line into tokens, skipping empty ones between delimiters."""

    def __init__(self, text: str) -> None:
        self._rest: str | None = text

    def next(self, delims: str = _FIELD_DELIMS) -> str | None:
        while self._rest is not None:
            cut = next((i for i, ch in enumerate(self._rest) if ch in delims), None)
            if cut is None:
                token, self._rest = self._rest, None
            else:
                token, self._rest = self._rest[:cut], self._rest[cut + 1:]
            if token:
                return token
        return None


class ProtoBuilder:
    """Reads prototype entries and builds the images they describe.

    Filesystem entries take effect as soon as they are read; all other
    entries are collected and carried out by ``run``. In neuter mode
    nothing is written and ``run`` only describes the entries.
    """

    def __init__(
        self,
        log_size: int,
        *,
        verbose: bool = False,
        debug: bool = False,
        neuter: bool = False,
        output: str | os.PathLike[str] | None = None,
        size: int | str | None = None,
        stream: TextIO | None = None,
    ) -> None:
        self.log_size = log_size
        self.verbose = verbose
        self.debug = debug
        self.neuter = neuter
        self.output = None if output is None else os.fspath(output)
        self.size = None if size is None else str(size)
        self.stream = stream if stream is not None else sys.stderr
        self.entries: list[Entry] = []
        self.active: FsImage | None = None
        self.active_label = ""
        self.kernel_ino: int | None = None
        self.boot_ino: int | None = None
        self.blocks_used = 0

    def _say(self, text: str) -> None:
        self.stream.write(text)

    def _entry(self, etype: EntryType, name: str = "", home: str = "", source: str = "",
               size: int = 0, owner: int = 0, perms: int = 0) -> Entry:
        return Entry(
            type=etype,
            name=name.strip(),
            home=home.strip(),
            source=source.strip(),
            size=size,
            owner=owner,
            perms=int(perms),
            fs=self.active,
            label=self.active_label,
        )

    def _perms(self, field1: str, field2: str) -> int:
        try:
            return int(parse_perm_fields(field1, field2))
        except ValueError as exc:
            raise ProtoError(str(exc)) from exc

    def parse_line(self, line: str) -> Entry | None:
        """Parse one prototype line and record its entry; return it, or None if it adds none."""
        trimmed = line.strip()
        fields = _Fields(trimmed)
        token = fields.next()
        if token is None:
            return None
        missing = ProtoError(f'mkproto: line missing fields "{trimmed}"')

        if token in ("fsys", "fsys_nolog"):
            name = fields.next()
            source0 = fields.next()
            size0 = fields.next()
            source = self.output if self.output is not None else source0
            size_text = self.size if self.size is not None else size0
            if not name or not source0 or not size_text:
                raise missing
            etype = EntryType.FSYS_NOLOG if token == "fsys_nolog" else EntryType.FSYS
            entry = Entry(type=etype, name=name.strip(), source=str(source).strip(),
                          size=_strtoul(size_text))
            self.active = self.run_entry(entry)
            self.active_label = self.active.label if self.active is not None else entry.name
            entry.fs, entry.label = self.active, self.active_label
        elif token == "direct":
            name, home, owner = fields.next(), fields.next(), fields.next()
            perms1, perms2 = fields.next(_PERM_DELIMS), fields.next(_PERM_DELIMS)
            if not (name and home and owner and perms1 and perms2):
                raise missing
            entry = self._entry(EntryType.DIRECT, name, home, owner=_atoi(owner),
                                perms=self._perms(perms1, perms2))
        elif token == "file":
            home, name, source, owner = fields.next(), fields.next(), fields.next(), fields.next()
            perms1, perms2 = fields.next(_PERM_DELIMS), fields.next(_PERM_DELIMS)
            if not (name and home and source and owner and perms1 and perms2):
                raise missing
            entry = self._entry(EntryType.FILE, name, home, source, owner=_atoi(owner),
                                perms=self._perms(perms1, perms2))
        elif token in ("kernel", "boot"):
            name = fields.next()
            if not name:
                raise missing
            etype = EntryType.KERNEL if token == "kernel" else EntryType.BOOTLOADER
            entry = self._entry(etype, name)
        elif token == "sync":
            entry = self._entry(EntryType.SYNC)
        else:
            self._say(f'mkproto: unknown entry type "{token}"\n')
            return None
        self.entries.append(entry)
        return entry

    def read_proto(self, lines: Iterable[str], keep_going: bool = False) -> None:
        """Parse every line; a bad line is reported and, unless ``keep_going``, raised."""
        for line in lines:
            try:
                self.parse_line(line)
            except ProtoError as exc:
                self._say(f"{exc}\n")
                if not keep_going:
                    raise

    def _require_fs(self, entry: Entry) -> FsImage:
        if entry.fs is None:
            raise ProtoError(f"mkproto: no filesystem for {entry.type.keyword} entry")
        return entry.fs

    def _make_fs(self, entry: Entry) -> FsImage | None:
        logsize = 0 if entry.type == EntryType.FSYS_NOLOG else self.log_size
        if self.neuter:
            return None
        fs = FsImage.create(entry.source, entry.name, entry.size, logsize, entry.size // 10)
        sb = fs.sb
        nmeta = sb.size - sb.nblocks
        self._say(f"mkproto: {entry.source}: vsd new filesystem\n")
        self._say(f"mkproto: {entry.source}: label {sb.label}, version {sb.version}\n")
        self._say(
            f"mkproto: {entry.source}: meta {nmeta} (boot, super, log {sb.nlog}, "
            f"inode {sb.bmapstart - sb.inodestart}, bitmap {sb.size // (512 * 8) + 1}) "
            f"blocks {sb.nblocks} total {sb.size}\n"
        )
        return fs

    def run_entry(self, entry: Entry) -> FsImage | None:
        """Carry out ``entry``; a filesystem entry returns the image it created."""
        if self.verbose:
            self._say(f"mkproto: {self.describe(entry)}\n")
        if not entry.active:
            return None
        if not self.neuter and entry.type not in (EntryType.FSYS,):
            self._say(".")
        if entry.type in (EntryType.FSYS, EntryType.FSYS_NOLOG):
            entry.active = False
            return self._make_fs(entry)
        fs = self._require_fs(entry)
        if entry.type in (EntryType.DIRECT, EntryType.FILE):
            home = fs.find_dir(entry.home)
            if home is None:
                raise ProtoError(f'mkproto: directory "{entry.home}" not defined!')
            if entry.type == EntryType.DIRECT:
                fs.make_dir(entry.name, home, entry.owner, entry.perms)
            else:
                fs.add_file(entry.name, home, entry.source, entry.owner, entry.perms)
        elif entry.type in (EntryType.KERNEL, EntryType.BOOTLOADER):
            found = fs.find_file(entry.name)
            if found is None:
                raise ProtoError(f"mkproto: file {entry.name} not defined!")
            if entry.type == EntryType.KERNEL:
                fs.brand_kernel(found)
                self.kernel_ino = found.ino
            else:
                fs.brand_bootloader(found)
                self.boot_ino = found.ino
        elif entry.type == EntryType.SYNC:
            fs.sync()
            self.blocks_used = fs.blocks_used()
            fs.close()
        entry.active = False
        return None

    def run(self) -> None:
        """Carry out every pending entry, or in neuter mode describe them all."""
        if self.neuter:
            for entry in self.entries:
                self._say(f"mkproto: {self.describe(entry)}\n")
            return
        self._say("mkproto: adding files")
        for entry in self.entries:
            self.run_entry(entry)
        self._say("done\n")
        if self.kernel_ino is not None:
            self._say(f"mkproto: kernel is inode {self.kernel_ino}\n")
        if self.boot_ino is not None:
            self._say(f"mkproto: fs bootable. bootloader is inode {self.boot_ino}\n")
        self._say(f"mkproto: first {self.blocks_used} blocks have been allocated\n")

    def describe(self, entry: Entry) -> str:
        """One-line description of ``entry``."""
        kind = entry.type.keyword
        if entry.type in (EntryType.FSYS, EntryType.FSYS_NOLOG):
            return f"{kind} {entry.name} {entry.source} {entry.size}"
        if entry.type == EntryType.DIRECT:
            perms = format_perms(entry.perms, "proto")
            return f"{entry.label}: {kind} {entry.name} {entry.home} {entry.owner} {perms}"
        if entry.type == EntryType.FILE:
            perms = format_perms(entry.perms, "proto")
            return (f"{entry.label}: {kind} {entry.home} {entry.name} {entry.source} "
                    f"{entry.owner} {perms}")
        if entry.type in (EntryType.KERNEL, EntryType.BOOTLOADER):
            return f"{entry.label}: {kind} {entry.name}"
        return f"{entry.label}: {kind}"

    def _close_all(self) -> None:
        for entry in self.entries:
            if entry.fs is not None:
                entry.fs.close()


_USAGE = "usage: mkproto [-dvnc] -f protofile -l logsize [-o output] [-s size]\n"


def main(argv: list[str] | None = None) -> int:
    """Command entry: ``mkproto [-dvnc] -f protofile -l logsize [-o output] [-s size]``."""
    parser = argparse.ArgumentParser(prog="mkproto", add_help=False)
    parser.add_argument("-d", action="store_true", dest="debug")
    parser.add_argument("-v", action="store_true", dest="verbose")
    parser.add_argument("-n", action="store_true", dest="neuter")
    parser.add_argument("-c", action="store_true", dest="keep_going")
    parser.add_argument("-f", dest="protofile")
    parser.add_argument("-o", dest="output")
    parser.add_argument("-s", dest="size")
    parser.add_argument("-l", dest="log_size", type=int)
    args = parser.parse_args(argv)
    if args.protofile is None or args.log_size is None:
        sys.stderr.write(_USAGE)
        return 0
    try:
        handle = open(args.protofile, encoding="utf-8")
    except OSError:
        sys.stderr.write(f"mkproto: unable to open proto file {args.protofile}\n")
        return 1
    builder = ProtoBuilder(
        args.log_size,
        verbose=args.verbose,
        debug=args.debug,
        neuter=args.neuter,
        output=args.output,
        size=args.size,
    )
    try:
        with handle:
            builder.read_proto(handle, keep_going=args.keep_going)
        builder.run()
    except (ProtoError, FsImageError) as exc:
        sys.stderr.write(f"{exc}\nmkproto: exiting...\n")
        return 1
    finally:
        builder._close_all()
    return 0