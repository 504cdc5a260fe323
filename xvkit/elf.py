"""Reading and writing 32-bit ELF file and program headers."""

from __future__ import annotations

import struct
from dataclasses import astuple, dataclass
from typing import ClassVar, List

ELF_MAGIC = 0x464C457F  # "\x7fELF" read as a little-endian word

ELF_PROG_LOAD = 1

ELF_PROG_FLAG_EXEC = 1
ELF_PROG_FLAG_WRITE = 2
ELF_PROG_FLAG_READ = 4

_HEADER = struct.Struct("<I12sHHIIIIIHHHHHH")
_PROGHDR = struct.Struct("<8I")


class ElfFormatError(ValueError):
    """The data is not a well-formed ELF image."""


@dataclass
class ElfHeader:
    """The ELF file header."""

    magic: int = ELF_MAGIC
    ident: bytes = bytes(12)
    type: int = 0
    machine: int = 0
    version: int = 0
    entry: int = 0
    phoff: int = 0
    shoff: int = 0
    flags: int = 0
    ehsize: int = 0
    phentsize: int = 0
    phnum: int = 0
    shentsize: int = 0
    shnum: int = 0
    shstrndx: int = 0

    SIZE: ClassVar[int] = _HEADER.size

    @classmethod
    def parse(cls, data: bytes) -> "ElfHeader":
        """Decode the header at the start of data, checking the magic."""
        if len(data) < cls.SIZE:
            raise ElfFormatError(
                f"need {cls.SIZE} bytes for an ELF header, got {len(data)}"
            )
        header = cls(*_HEADER.unpack_from(data, 0))
        if header.magic != ELF_MAGIC:
            raise ElfFormatError(f"bad ELF magic {header.magic:#x}")
        return header

    def pack(self) -> bytes:
        try:
            return _HEADER.pack(*astuple(self))
        except struct.error as exc:
            raise ElfFormatError(str(exc)) from exc


@dataclass
class ProgramHeader:
    """One entry of the program header table."""

    type: int = 0
    off: int = 0
    vaddr: int = 0
    paddr: int = 0
    filesz: int = 0
    memsz: int = 0
    flags: int = 0
    align: int = 0

    SIZE: ClassVar[int] = _PROGHDR.size

    @classmethod
    def parse(cls, data: bytes, offset: int = 0) -> "ProgramHeader":
        """Decode the program header that starts at offset."""
        if offset < 0 or offset + cls.SIZE > len(data):
            raise ElfFormatError(f"program header at {offset} lies outside the image")
        return cls(*_PROGHDR.unpack_from(data, offset))

    def pack(self) -> bytes:
        try:
            return _PROGHDR.pack(*astuple(self))
        except struct.error as exc:
            raise ElfFormatError(str(exc)) from exc


def program_headers(data: bytes) -> List[ProgramHeader]:
    """All program headers of an ELF image, in table order."""
    header = ElfHeader.parse(data)
    return [
        ProgramHeader.parse(data, header.phoff + i * ProgramHeader.SIZE)
        for i in range(header.phnum)
    ]