"""A first-fit, address-ordered free-list memory allocator."""

from __future__ import annotations

from typing import Callable, Dict, List, Optional, Tuple

HEADER_SIZE = 8
MIN_CORE_UNITS = 4096
_UINT_LIMIT = 1 << 32
_BASE = -1  # sentinel header, below every heap address


class Allocator:
    """Hands out blocks carved from memory obtained through sbrk.

    sbrk(nbytes) must return the start address of nbytes of new memory,
    or -1 (or None) when no more is available.
    """

    def __init__(self, sbrk: Callable[[int], Optional[int]]) -> None:
        self._sbrk = sbrk
        self._units: Dict[int, int] = {}  # header address -> size in units
        self._next: Dict[int, int] = {}  # free header -> next free header
        self._freep: Optional[int] = None

    def _morecore(self, units: int) -> int:
        units = max(units, MIN_CORE_UNITS)
        addr = self._sbrk(units * HEADER_SIZE)
        if addr is None or addr == -1:
            raise MemoryError("sbrk failed")
        self._units[addr] = units
        self.free(addr + HEADER_SIZE)
        assert self._freep is not None
        return self._freep

    def malloc(self, nbytes: int) -> int:
        """Address of a new block of at least nbytes bytes."""
        if not 0 <= nbytes < _UINT_LIMIT:
            raise ValueError(f"invalid allocation size {nbytes}")
        nunits = (nbytes + HEADER_SIZE - 1) // HEADER_SIZE + 1
        if self._freep is None:
            self._units[_BASE] = 0
            self._next[_BASE] = _BASE
            self._freep = _BASE
        prevp = self._freep
        p = self._next[prevp]
        while True:
            size = self._units[p]
            if size >= nunits:
                if size == nunits:
                    self._next[prevp] = self._next.pop(p)
                else:
                    self._units[p] = size - nunits
                    p += (size - nunits) * HEADER_SIZE
                    self._units[p] = nunits
                self._freep = prevp
                return p + HEADER_SIZE
            if p == self._freep:
                p = self._morecore(nunits)
            prevp, p = p, self._next[p]

    def free(self, addr: int) -> None:
        """Return a block obtained from malloc to the free list."""
        bp = addr - HEADER_SIZE
        if bp == _BASE or bp not in self._units or bp in self._next:
            raise ValueError(f"{addr:#x} is not an allocated block")
        units, nxt = self._units, self._next
        p = self._freep if self._freep is not None else _BASE
        if self._freep is None:
            units[_BASE] = 0
            nxt[_BASE] = _BASE
        while not (p < bp < nxt[p]):
            if p >= nxt[p] and (bp > p or bp < nxt[p]):
                break
            p = nxt[p]
        n = nxt[p]
        if bp + units[bp] * HEADER_SIZE == n:
            units[bp] += units.pop(n)
            nxt[bp] = nxt.pop(n)
        else:
            nxt[bp] = n
        if p + units[p] * HEADER_SIZE == bp:
            units[p] += units.pop(bp)
            nxt[p] = nxt.pop(bp)
        else:
            nxt[p] = bp
        self._freep = p

    def free_blocks(self) -> List[Tuple[int, int]]:
        """Free blocks as (header address, size in units), lowest first."""
        if self._freep is None:
            return []
        blocks = []
        p = self._next[_BASE]
        while p != _BASE:
            blocks.append((p, self._units[p]))
            p = self._next[p]
        return blocks