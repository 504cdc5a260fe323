"""NUL-terminated byte-string helpers with C library semantics."""

from __future__ import annotations

import itertools
import re
from typing import BinaryIO, Optional, Union

Text = Union[bytes, bytearray, memoryview, str]

_DIGITS = re.compile(rb"[0-9]*")


def _as_bytes(s: Text) -> bytes:
    if isinstance(s, str):
        return s.encode("latin-1")
    return bytes(s)


def _cstr(s: Text) -> bytes:
    """The bytes of s up to, not including, the first NUL."""
    b = _as_bytes(s)
    end = b.find(b"\0")
    return b if end < 0 else b[:end]


def _byte_at(b: bytes, i: int) -> int:
    return b[i] if i < len(b) else 0


def memcmp(a: Text, b: Text, n: int) -> int:
    """Compare the first n bytes; the sign of the result orders a and b."""
    x, y = _as_bytes(a), _as_bytes(b)
    if len(x) < n or len(y) < n:
        raise ValueError(f"memcmp of {n} bytes past the end of a buffer")
    for p, q in zip(x[:n], y[:n]):
        if p != q:
            return p - q
    return 0


def strncmp(p: Text, q: Text, n: int) -> int:
    """Compare at most n characters of two NUL-terminated strings."""
    a, b = _as_bytes(p), _as_bytes(q)
    for i in range(n):
        x, y = _byte_at(a, i), _byte_at(b, i)
        if x != y or x == 0:
            return x - y
    return 0


def strcmp(p: Text, q: Text) -> int:
    """Compare two NUL-terminated strings."""
    a, b = _as_bytes(p), _as_bytes(q)
    for i in itertools.count():
        x, y = _byte_at(a, i), _byte_at(b, i)
        if x != y or x == 0:
            return x - y
    raise AssertionError("unreachable")


def strncpy(src: Text, n: int) -> bytes:
    """The n bytes strncpy stores: the string, then NUL padding.

    The result is not NUL-terminated when the string fills all n bytes.
    """
    if n <= 0:
        return b""
    return (_cstr(src) + bytes(n))[:n]


def safestrcpy(src: Text, n: int) -> bytes:
    """The bytes stored into an n-byte buffer, always ending in NUL."""
    if n <= 0:
        return b""
    return _cstr(src)[: n - 1] + b"\0"


def strlen(s: Text) -> int:
    """Length of the string up to the first NUL."""
    return len(_cstr(s))


def strchr(s: Text, c: Union[int, Text]) -> Optional[int]:
    """Index of the first c before the terminating NUL, or None."""
    ch = c & 0xFF if isinstance(c, int) else _as_bytes(c)[0]
    if ch == 0:
        return None
    index = _cstr(s).find(bytes([ch]))
    return None if index < 0 else index


def atoi(s: Text) -> int:
    """Value of the leading decimal digits; no sign or whitespace is accepted."""
    digits = _DIGITS.match(_as_bytes(s)).group()
    return int(digits) if digits else 0


def gets(stream: BinaryIO, max: int) -> bytes:
    """Read one line of at most max - 1 bytes, keeping the line ending."""
    line = bytearray()
    while len(line) + 1 < max:
        ch = stream.read(1)
        if not ch:
            break
        line += ch
        if ch in (b"\n", b"\r"):
            break
    return bytes(line)