"""System call numbers, argument fetching from user memory, and dispatch."""

from __future__ import annotations

import enum
import logging
import struct
from typing import Callable, Dict, Tuple, Union

from .mmu import PGSIZE

_MASK32 = 0xFFFFFFFF
_WORD = 4
_INT = struct.Struct("<i")

log = logging.getLogger(__name__)


class BadAddress(ValueError):
    """A system call argument lies outside the process's address space."""


class SyscallNumber(enum.IntEnum):
    """Numbers that user code places in %eax to select a system call."""

    FORK = 1
    EXIT = 2
    WAIT = 3
    PIPE = 4
    READ = 5
    KILL = 6
    EXEC = 7
    FSTAT = 8
    CHDIR = 9
    DUP = 10
    GETPID = 11
    SBRK = 12
    SLEEP = 13
    UPTIME = 14
    OPEN = 15
    WRITE = 16
    MKNOD = 17
    UNLINK = 18
    LINK = 19
    MKDIR = 20
    CLOSE = 21
    MPROTECT = 22
    MUNPROTECT = 23


class UserMemory:
    """The range [base, base + len(data)) of a process's address space."""

    def __init__(self, base: int, data: Union[bytes, bytearray]) -> None:
        self.data = bytearray(data)
        self.vbase = base & _MASK32
        self.vlimit = self.vbase + len(self.data)

    def fetch_int(self, addr: int) -> int:
        """The signed 32-bit little-endian word at addr."""
        addr &= _MASK32
        if (
            addr >= self.vlimit
            or addr + _WORD > self.vlimit
            or addr < self.vbase
            or addr + _WORD <= self.vbase
        ):
            raise BadAddress(f"word at {addr:#x} is outside user memory")
        return _INT.unpack_from(self.data, addr - self.vbase)[0]

    def fetch_str(self, addr: int) -> bytes:
        """The NUL-terminated string at addr, without its terminator."""
        addr &= _MASK32
        if addr >= self.vlimit or addr < self.vbase:
            raise BadAddress(f"string at {addr:#x} is outside user memory")
        start = addr - self.vbase
        end = self.data.find(b"\0", start)
        if end < 0:
            raise BadAddress(f"string at {addr:#x} is not NUL-terminated")
        return bytes(self.data[start:end])


class SyscallContext:
    """Access to the arguments of one system call.

    The saved user stack pointer esp points at a return address; the
    arguments follow it, one word each.
    """

    def __init__(self, memory: UserMemory, esp: int) -> None:
        self.memory = memory
        self.esp = esp & _MASK32

    def arg_int(self, n: int) -> int:
        """The nth argument as a signed 32-bit integer."""
        return self.memory.fetch_int(self.esp + _WORD + _WORD * n)

    def arg_ptr(self, n: int, size: int) -> int:
        """The nth argument as the address of size bytes of user memory."""
        addr = self.arg_int(n) & _MASK32
        mem = self.memory
        if (
            size < 0
            or addr >= mem.vlimit
            or addr + size > mem.vlimit
            or addr < mem.vbase
            or addr + size <= mem.vbase
        ):
            raise BadAddress(f"{size} bytes at {addr:#x} are outside user memory")
        return addr

    def arg_str(self, n: int) -> bytes:
        """The nth argument as a NUL-terminated string in user memory."""
        return self.memory.fetch_str(self.arg_int(n))


Handler = Callable[[SyscallContext], int]


class SyscallDispatcher:
    """Maps system call numbers to handlers and runs them."""

    def __init__(self) -> None:
        self._handlers: Dict[int, Handler] = {}

    def register(self, number: int, handler: Handler) -> None:
        """Install handler for the given positive system call number."""
        if number <= 0:
            raise ValueError(f"system call numbers start at 1, got {number}")
        self._handlers[int(number)] = handler

    def dispatch(self, number: int, context: SyscallContext) -> int:
        """Run a system call and return the value handed back to user code.

        Unknown numbers and arguments outside user memory yield -1.
        """
        handler = self._handlers.get(number) if number > 0 else None
        if handler is None:
            log.warning("unknown sys call %d", number)
            return -1
        try:
            return handler(context)
        except BadAddress as exc:
            log.debug("sys call %d: %s", number, exc)
            return -1


def protect_args(context: SyscallContext) -> Tuple[int, int]:
    """The (address, page count) arguments of mprotect and munprotect.

    The count must be positive, the pages must lie in user memory and
    the address must be page-aligned.
    """
    pages = context.arg_int(1)
    if pages <= 0:
        raise BadAddress(f"invalid page count {pages}")
    addr = context.arg_ptr(0, pages * PGSIZE)
    if addr % PGSIZE != 0:
        raise BadAddress(f"address {addr:#x} is not page-aligned")
    return addr, pages