"""Text formatting helpers for names, permission bits and padded fields."""

from __future__ import annotations

from .perms import Perm

_STYLES = {
    "kernel": ("U:", ",W:"),
    "proto": ("u:", " w:"),
}


def format_name(path: str, width: int) -> str:
    """Last path component, blank padded to ``width`` unless it is that long already."""
    name = path.rsplit("/", 1)[-1]
    if len(name) >= width:
        return name
    return name.ljust(width)


def _bits(perms: int, read: Perm, write: Perm, execute: Perm, hidden: Perm) -> str:
    return "".join(
        letter if perms & flag == flag else "-"
        for letter, flag in (("r", read), ("w", write), ("x", execute), ("h", hidden))
    )


def format_perms(perms: int, style: str = "kernel") -> str:
    """Render permission bits as ``U:rwxh,W:rwxh`` or, in proto style, ``u:rwxh w:rwxh``."""
    try:
        user_prefix, world_prefix = _STYLES[style]
    except KeyError:
        raise ValueError(f"unknown permission style {style!r}") from None
    user = _bits(perms, Perm.U_READ, Perm.U_WRITE, Perm.U_EXEC, Perm.U_HIDDEN)
    world = _bits(perms, Perm.W_READ, Perm.W_WRITE, Perm.W_EXEC, Perm.W_HIDDEN)
    return f"{user_prefix}{user}{world_prefix}{world}"


def format_field(data: str, fieldsize: int, filler: str = " ", bufsize: int | None = None) -> str:
    """Centre ``data`` in a field of ``fieldsize`` characters.

    Data wider than the field is returned as is. The result never exceeds
    ``bufsize`` characters (``bufsize - 1`` for over-wide data).
    """
    if len(filler) != 1:
        raise ValueError("filler must be a single character")
    if len(data) > fieldsize:
        return data if bufsize is None else data[: bufsize - 1]
    left = (fieldsize - len(data)) // 2
    right = fieldsize - len(data) - left
    text = filler * left + data + filler * right
    return text if bufsize is None else text[:bufsize]