"""Two-level x86 page tables kept in a simulated pool of physical frames."""

from __future__ import annotations

from typing import Dict, List, Optional, Set

from .mmu import (
    EXTMEM,
    KERNBASE,
    NPDENTRIES,
    PDXSHIFT,
    PGSIZE,
    PTE_P,
    PTE_U,
    PTE_W,
    pdx,
    pg_round_down,
    pg_round_up,
    pte_addr,
    pte_flags,
    ptx,
)

_ENTRY_SIZE = 4
USER_TEXT = 0x1000  # where the first user program is loaded


class VMError(RuntimeError):
    """A page table or physical memory operation was invalid."""


class OutOfMemory(VMError):
    """No free physical frame was left."""


class PhysicalMemory:
    """A fixed pool of page-sized physical frames starting at EXTMEM."""

    def __init__(self, frames: int) -> None:
        if frames < 0:
            raise ValueError(f"negative frame count {frames}")
        self.base = EXTMEM
        self._frames: Dict[int, bytearray] = {
            self.base + i * PGSIZE: bytearray(PGSIZE) for i in range(frames)
        }
        # Popped from the end, so the lowest frame is handed out first.
        self._free: List[int] = sorted(self._frames, reverse=True)
        self._free_set: Set[int] = set(self._free)

    def alloc(self) -> int:
        """Physical address of a free frame; its contents are not cleared."""
        if not self._free:
            raise OutOfMemory("kalloc: out of physical memory")
        pa = self._free.pop()
        self._free_set.remove(pa)
        return pa

    def free(self, pa: int) -> None:
        """Return a frame to the pool."""
        if pa % PGSIZE or pa not in self._frames:
            raise VMError(f"kfree: {pa:#x} is not a frame")
        if pa in self._free_set:
            raise VMError(f"kfree: {pa:#x} is already free")
        self._free.append(pa)
        self._free_set.add(pa)

    def _locate(self, pa: int, n: int) -> tuple:
        frame = pg_round_down(pa)
        offset = pa - frame
        if n < 0 or frame not in self._frames or offset + n > PGSIZE:
            raise VMError(f"access of {n} bytes at {pa:#x} leaves its frame")
        return self._frames[frame], offset

    def read(self, pa: int, n: int) -> bytes:
        """n bytes at physical address pa, within one frame."""
        frame, offset = self._locate(pa, n)
        return bytes(frame[offset:offset + n])

    def write(self, pa: int, data: bytes) -> None:
        """Store data at physical address pa, within one frame."""
        frame, offset = self._locate(pa, len(data))
        frame[offset:offset + len(data)] = data

    def free_count(self) -> int:
        return len(self._free)


class PageTable:
    """A page directory and its page tables, stored in physical frames.

    Only user mappings are managed; the kernel half of the address
    space is left for the caller to map with map_pages.
    """

    def __init__(self, memory: PhysicalMemory) -> None:
        self.memory = memory
        pgdir = memory.alloc()
        memory.write(pgdir, bytes(PGSIZE))
        self.pgdir: Optional[int] = pgdir

    def _directory(self) -> int:
        if self.pgdir is None:
            raise VMError("freevm: no pgdir")
        return self.pgdir

    def _get(self, loc: int) -> int:
        return int.from_bytes(self.memory.read(loc, _ENTRY_SIZE), "little")

    def _set(self, loc: int, value: int) -> None:
        self.memory.write(loc, value.to_bytes(_ENTRY_SIZE, "little"))

    def walk(self, va: int, alloc: bool = False) -> Optional[int]:
        """Physical address of the PTE for va, or None if it has no page table.

        With alloc set, a missing page table is created.
        """
        pde_loc = self._directory() + _ENTRY_SIZE * pdx(va)
        pde = self._get(pde_loc)
        if pde & PTE_P:
            pgtab = pte_addr(pde)
        else:
            if not alloc:
                return None
            pgtab = self.memory.alloc()
            self.memory.write(pgtab, bytes(PGSIZE))
            # Generous permissions; the PTEs restrict them further.
            self._set(pde_loc, pgtab | PTE_P | PTE_W | PTE_U)
        return pgtab + _ENTRY_SIZE * ptx(va)

    def map_pages(self, va: int, size: int, pa: int, perm: int) -> None:
        """Map [va, va+size) to physical memory starting at pa."""
        if size <= 0:
            raise ValueError(f"cannot map {size} bytes")
        a = pg_round_down(va)
        last = pg_round_down(va + size - 1)
        while True:
            loc = self.walk(a, True)
            assert loc is not None
            if self._get(loc) & PTE_P:
                raise VMError(f"remap of {a:#x}")
            self._set(loc, pa | perm | PTE_P)
            if a == last:
                break
            a += PGSIZE
            pa += PGSIZE

    def init_user(self, code: bytes) -> None:
        """Load code, less than a page, at the first user page."""
        if len(code) >= PGSIZE:
            raise VMError("inituvm: more than a page")
        mem = self.memory.alloc()
        self.memory.write(mem, bytes(PGSIZE))
        self.map_pages(USER_TEXT, PGSIZE, mem, PTE_W | PTE_U)
        self.memory.write(mem, bytes(code))

    def alloc_user(self, old_limit: int, new_limit: int) -> int:
        """Grow user memory from old_limit to new_limit; returns the new limit."""
        if new_limit >= KERNBASE:
            raise VMError(f"user limit {new_limit:#x} reaches kernel space")
        if new_limit < old_limit:
            return old_limit
        a = pg_round_up(old_limit)
        while a < new_limit:
            try:
                mem = self.memory.alloc()
            except OutOfMemory:
                self.dealloc_user(new_limit, old_limit)
                raise
            self.memory.write(mem, bytes(PGSIZE))
            try:
                self.map_pages(a, PGSIZE, mem, PTE_W | PTE_U)
            except OutOfMemory:
                self.dealloc_user(new_limit, old_limit)
                self.memory.free(mem)
                raise
            a += PGSIZE
        return new_limit

    def dealloc_user(self, old_limit: int, new_limit: int) -> int:
        """Shrink user memory from old_limit to new_limit; returns the new limit."""
        if new_limit >= old_limit:
            return old_limit
        a = pg_round_up(new_limit)
        while a < old_limit:
            loc = self.walk(a)
            if loc is None:
                # Skip to the last page covered by this missing page table.
                a = ((pdx(a) + 1) << PDXSHIFT) - PGSIZE
            else:
                pte = self._get(loc)
                if pte & PTE_P:
                    pa = pte_addr(pte)
                    if pa == 0:
                        raise VMError("kfree")
                    self.memory.free(pa)
                    self._set(loc, 0)
            a += PGSIZE
        return new_limit

    def free(self) -> None:
        """Release all user pages, the page tables and the directory."""
        pgdir = self._directory()
        self.dealloc_user(KERNBASE, 0)
        for i in range(NPDENTRIES):
            pde = self._get(pgdir + _ENTRY_SIZE * i)
            if pde & PTE_P:
                self.memory.free(pte_addr(pde))
        self.memory.free(pgdir)
        self.pgdir = None

    def clear_user(self, va: int) -> None:
        """Make the page at va inaccessible to user code."""
        loc = self.walk(va)
        if loc is None:
            raise VMError("clearpteu")
        self._set(loc, self._get(loc) & ~PTE_U)

    def copy_user(self, limit: int) -> "PageTable":
        """A new page table holding copies of the user pages below limit."""
        child = PageTable(self.memory)
        try:
            for va in range(PGSIZE, limit, PGSIZE):
                loc = self.walk(va)
                if loc is None:
                    raise VMError("copyuvm: pte should exist")
                pte = self._get(loc)
                if not pte & PTE_P:
                    raise VMError("copyuvm: page not present")
                mem = self.memory.alloc()
                self.memory.write(mem, self.memory.read(pte_addr(pte), PGSIZE))
                try:
                    child.map_pages(va, PGSIZE, mem, pte_flags(pte))
                except VMError:
                    self.memory.free(mem)
                    raise
        except VMError:
            child.free()
            raise
        return child

    def user_to_physical(self, va: int) -> Optional[int]:
        """Physical frame of the user page holding va, or None if not user-mapped."""
        loc = self.walk(va)
        if loc is None:
            return None
        pte = self._get(loc)
        if not pte & PTE_P or not pte & PTE_U:
            return None
        return pte_addr(pte)

    def copy_out(self, va: int, data: bytes) -> None:
        """Copy data to user address va, page by page."""
        view = memoryview(bytes(data))
        while view:
            va0 = pg_round_down(va)
            pa0 = self.user_to_physical(va0)
            if pa0 is None:
                raise VMError(f"copyout: {va0:#x} is not user memory")
            n = min(PGSIZE - (va - va0), len(view))
            self.memory.write(pa0 + (va - va0), bytes(view[:n]))
            view = view[n:]
            va = va0 + PGSIZE

    def read_user(self, va: int, n: int) -> bytes:
        """n bytes read from user address va, page by page."""
        out = bytearray()
        while len(out) < n:
            va0 = pg_round_down(va)
            pa0 = self.user_to_physical(va0)
            if pa0 is None:
                raise VMError(f"read of {va0:#x}: not user memory")
            count = min(PGSIZE - (va - va0), n - len(out))
            out += self.memory.read(pa0 + (va - va0), count)
            va = va0 + PGSIZE
        return bytes(out)

    def _check_range(self, addr: int, pages: int) -> List[int]:
        locs = []
        for offset in range(0, pages * PGSIZE, PGSIZE):
            loc = self.walk(addr + offset)
            if loc is None:
                raise VMError(f"no page table for {addr + offset:#x}")
            pte = self._get(loc)
            if not pte & PTE_P and not pte & PTE_U:
                raise VMError(f"page {addr + offset:#x} is not mapped")
            locs.append(loc)
        return locs

    def set_readonly(self, addr: int, pages: int) -> None:
        """Clear the writable bit on pages pages from addr; all or none change."""
        for loc in self._check_range(addr, pages):
            self._set(loc, self._get(loc) & ~PTE_W)

    def set_writable(self, addr: int, pages: int) -> None:
        """Set the writable bit on pages pages from addr; all or none change."""
        for loc in self._check_range(addr, pages):
            self._set(loc, self._get(loc) | PTE_W)