"""Simple grep supporting only the ^ . * $ operators."""

from __future__ import annotations

import sys
from collections.abc import Iterable, Iterator


def _match_here(re: str, i: int, text: str, j: int) -> bool:
    while True:
        if i == len(re):
            return True
        if i + 1 < len(re) and re[i + 1] == "*":
            return _match_star(re[i], re, i + 2, text, j)
        if re[i] == "$" and i + 1 == len(re):
            return j == len(text)
        if j < len(text) and (re[i] == "." or re[i] == text[j]):
            i += 1
            j += 1
            continue
        return False


def _match_star(c: str, re: str, i: int, text: str, j: int) -> bool:
    while True:
        if _match_here(re, i, text, j):
            return True
        if j < len(text) and (text[j] == c or c == "."):
            j += 1
            continue
        return False


def match(pattern: str, text: str) -> bool:
    """Whether ``pattern`` matches anywhere in ``text``."""
    if pattern.startswith("^"):
        return _match_here(pattern, 1, text, 0)
    return any(_match_here(pattern, 0, text, start) for start in range(len(text) + 1))


def grep_lines(pattern: str, lines: Iterable[str]) -> Iterator[str]:
    """Yield the newline-terminated lines that match; an unterminated last line is ignored."""
    for line in lines:
        if line.endswith("\n") and match(pattern, line[:-1]):
            yield line


def main(argv: list[str] | None = None) -> int:
    """Command entry: ``grep pattern [file ...]``."""
    if argv is None:
        argv = sys.argv[1:]
    if not argv:
        sys.stderr.write("usage: grep pattern [file ...]\n")
        return 1
    pattern, paths = argv[0], argv[1:]
    if not paths:
        sys.stdout.writelines(grep_lines(pattern, sys.stdin))
        return 0
    for path in paths:
        try:
            handle = open(path, encoding="utf-8", errors="surrogateescape", newline="")
        except OSError:
            sys.stdout.write(f"grep: cannot open {path}\n")
            return 1
        with handle:
            sys.stdout.writelines(grep_lines(pattern, handle))
    return 0