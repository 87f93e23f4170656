"""Minimal command-line option scanning."""

from __future__ import annotations

from collections.abc import Sequence


def find_in_string(c: str, text: str) -> int:
    """Position of character ``c`` in ``text``, or -1."""
    if len(c) != 1:
        return -1
    return text.find(c)


def parse_flags(argv: Sequence[str], options: str) -> tuple[set[str], int]:
    """Collect single-letter flags from ``-abc`` style arguments.

    Returns the set of flags seen and the index of the last argument that
    held one. A ``-`` inside a flag group (as in ``--``) ends the scan and
    its index is returned. Raises ValueError on a letter not in ``options``.
    """
    flags: set[str] = set()
    last = 0
    for index, arg in enumerate(argv):
        if not arg.startswith("-"):
            continue
        for c in arg[1:]:
            if find_in_string(c, options) < 0:
                if c == "-":
                    return flags, index
                raise ValueError(f"unknown option -{c}")
            flags.add(c)
            last = index
    return flags, last


def option_argument(argv: Sequence[str], c: str) -> str | None:
    """The argument following option ``-c``, or None if absent or another option."""
    if len(c) != 1:
        raise ValueError("option must be a single character")
    for index, arg in enumerate(argv):
        if arg.startswith("--"):
            break
        if arg.startswith("-") and arg[1:2] == c:
            if index + 1 < len(argv) and not argv[index + 1].startswith("-"):
                return argv[index + 1]
            return None
    return None


def last_arg(argv: Sequence[str], opts: str) -> int:
    """Index of the last option or option argument; ``opts`` take an argument."""
    last = 0
    takes_next = False
    for index, arg in enumerate(argv):
        if arg.startswith("-"):
            last = index
            if arg[1:2] == "-":
                break
            if find_in_string(arg[1:2], opts) >= 0:
                takes_next = True
        elif takes_next:
            last = index
            takes_next = False
    return last