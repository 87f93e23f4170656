"""Permission bits, permission string parsing and access checks."""

from __future__ import annotations

import enum


class Perm(enum.IntFlag):
    """User and world permission bits stored in an inode."""

    U_READ = 1 << 0
    U_WRITE = 1 << 1
    U_EXEC = 1 << 2
    U_HIDDEN = 1 << 3
    W_READ = 1 << 4
    W_WRITE = 1 << 5
    W_EXEC = 1 << 6
    W_HIDDEN = 1 << 7


class FileOp(enum.IntEnum):
    """Operations that are checked against a file's permissions."""

    READ = 1
    WRITE = 2
    EXEC = 3
    OPEN = 4
    UNLINK = 5
    LINK = 6
    CREATE = 7


_LETTERS = "rwxh"


def _flags(world: bool) -> dict[str, Perm]:
    if world:
        bits = (Perm.W_READ, Perm.W_WRITE, Perm.W_EXEC, Perm.W_HIDDEN)
    else:
        bits = (Perm.U_READ, Perm.U_WRITE, Perm.U_EXEC, Perm.U_HIDDEN)
    return dict(zip(_LETTERS, bits))


def _parse(text: str, world: bool, dash_skips: bool) -> Perm:
    flags = _flags(world)
    perms = Perm(0)
    pos = 0
    for letter in _LETTERS:
        current = text[pos:pos + 1]
        if current == letter:
            perms |= flags[letter]
            pos += 1
        elif dash_skips and current == "-" and letter != "h":
            pos += 1
    return perms


def parse_perms(text: str, world: bool) -> Perm:
    """Parse letters ``r``, ``w``, ``x``, ``h`` given in that order, each optional."""
    return _parse(text, world, dash_skips=False)


def parse_perm_letters(text: str, world: bool) -> Perm:
    """Like parse_perms, but ``-`` may stand in place of ``r``, ``w`` or ``x``."""
    return _parse(text, world, dash_skips=True)


def parse_perm_field(field: str) -> Perm:
    """Parse a field such as ``u:rwx`` or ``w:r-x``."""
    if len(field) < 2 or field[1] != ":" or field[0] not in "uUwW":
        raise ValueError(f"bad permission field {field!r}")
    return parse_perm_letters(field[2:], world=field[0] in "wW")


def parse_perm_fields(field1: str, field2: str) -> Perm:
    """Combine two permission fields, one for the user and one for the world."""
    return parse_perm_field(field1) | parse_perm_field(field2)


def combine_perms(oldperms: int, userperms: int, worldperms: int, merge: bool) -> int:
    """New permissions: the given bits, merged into the old ones if ``merge``."""
    base = oldperms if merge else 0
    return base | userperms | worldperms


def check_permission(uid: int, owner: int, perms: int, op: int, singleuser: bool) -> bool:
    """Whether user ``uid`` may perform ``op`` on a file with ``owner`` and ``perms``.

    The system user is uid -1. In single-user mode only the system has access.
    """
    if singleuser:
        return uid == -1
    is_owner = owner == uid
    if op == FileOp.READ:
        return bool((is_owner and perms & Perm.U_READ) or perms & Perm.W_READ)
    if op == FileOp.WRITE:
        return bool((is_owner and perms & Perm.U_WRITE) or perms & Perm.W_WRITE)
    if op == FileOp.EXEC:
        user_ok = is_owner and perms & Perm.U_READ and perms & Perm.U_EXEC
        return bool(user_ok or (perms & Perm.W_READ and perms & Perm.W_EXEC))
    # Open and unlink grant the user bits whenever the file has a non-zero owner.
    if op == FileOp.OPEN:
        user_ok = owner and perms & (Perm.U_READ | Perm.U_WRITE)
        return bool(user_ok or perms & (Perm.W_READ | Perm.W_WRITE))
    if op == FileOp.UNLINK:
        user_ok = owner and perms & Perm.U_READ and perms & Perm.U_WRITE
        return bool(user_ok or (perms & Perm.W_READ and perms & Perm.W_WRITE))
    return False