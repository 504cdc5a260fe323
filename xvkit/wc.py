"""Counting lines, words and bytes."""

from __future__ import annotations

import sys
from dataclasses import dataclass
from typing import BinaryIO, Optional, Sequence

# NUL ends a word as well as the usual whitespace bytes.
_SEPARATORS = frozenset(b" \r\t\n\v\0")
_CHUNK = 512


@dataclass(frozen=True)
class WordCount:
    """Line, word and byte totals of one input."""

    lines: int = 0
    words: int = 0
    chars: int = 0

    def format(self, name: str) -> str:
        return f"{self.lines} {self.words} {self.chars} {name}"


def count(stream: BinaryIO) -> WordCount:
    """Count a binary stream read to its end."""
    lines = words = chars = 0
    in_word = False
    for chunk in iter(lambda: stream.read(_CHUNK), b""):
        chars += len(chunk)
        lines += chunk.count(b"\n")
        for byte in chunk:
            if byte in _SEPARATORS:
                in_word = False
            elif not in_word:
                words += 1
                in_word = True
    return WordCount(lines, words, chars)


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Print counts for each named file, or for standard input."""
    args = sys.argv[1:] if argv is None else list(argv)
    try:
        if not args:
            print(count(sys.stdin.buffer).format(""))
            return 0
        for name in args:
            try:
                handle = open(name, "rb")
            except OSError:
                print(f"wc: cannot open {name}")
                return 1
            with handle:
                result = count(handle)
            print(result.format(name))
    except OSError:
        print("wc: read error")
        return 1
    return 0