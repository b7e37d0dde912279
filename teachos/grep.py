"""A small grep supporting only the ^ . * $ operators."""

from __future__ import annotations

import sys
from collections.abc import Iterator
from typing import TextIO

_BUFSIZE = 1024


def match(re: str, text: str) -> bool:
    """Search for re anywhere in text."""
    if re.startswith("^"):
        return match_here(re[1:], text)
    return any(match_here(re, text[i:]) for i in range(len(text) + 1))


def match_here(re: str, text: str) -> bool:
    """Search for re at the beginning of text."""
    if not re:
        return True
    if len(re) > 1 and re[1] == "*":
        return match_star(re[0], re[2:], text)
    if re == "$":
        return not text
    if text and (re[0] == "." or re[0] == text[0]):
        return match_here(re[1:], text[1:])
    return False


def match_star(c: str, re: str, text: str) -> bool:
    """Search for c* followed by re at the beginning of text."""
    i = 0
    while True:
        if match_here(re, text[i:]):
            return True
        if i < len(text) and (text[i] == c or c == "."):
            i += 1
        else:
            return False


def grep_lines(pattern: str, stream: TextIO) -> Iterator[str]:
    """Yield each newline-terminated line of stream that matches pattern.

    Input is read through a buffer of fixed size: a final line without a
    newline is not reported, and text filling the buffer with no newline is
    dropped.
    """
    pending = ""
    while chunk := stream.read(_BUFSIZE - 1 - len(pending)):
        *lines, rest = (pending + chunk).split("\n")
        for line in lines:
            if match(pattern, line):
                yield line + "\n"
        pending = rest if lines else ""


def main(argv: list[str] | None = None) -> int:
    args = sys.argv[1:] if argv is None else list(argv)
    if not args:
        print("usage: grep pattern [file ...]", file=sys.stderr)
        return 1
    pattern, paths = args[0], args[1:]
    if not paths:
        sys.stdout.writelines(grep_lines(pattern, sys.stdin))
        return 0
    for path in paths:
        try:
            with open(path, encoding="utf-8", errors="surrogateescape") as f:
                sys.stdout.writelines(grep_lines(pattern, f))
        except OSError:
            print(f"grep: cannot open {path}")
            return 1
    return 0