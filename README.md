# xvkit

Python models of the core pieces of a small x86 teaching kernel and its
user-space tools. Each piece runs by itself, without an emulator, so the
rules it follows can be studied and tested directly. The package has no
dependencies beyond the standard library.

## What is inside

- `xvkit.mmu`: the memory-layout and limit constants (`KERNBASE`,
  `PGSIZE`, `NOFILE`, `MAXARG`, the `PTE_*` flags and so on) and the
  address helpers `pdx`, `ptx`, `pgaddr`, `pg_round_up`, `pg_round_down`,
  `pte_addr`, `pte_flags`, `v2p` and `p2v`, all working on 32-bit values.
  `SegmentDescriptor.normal` and `SegmentDescriptor.small` build segment
  descriptors and `GateDescriptor.make` builds interrupt and trap gates.
  Their `pack()` gives the 8-byte form, and fields that do not fit their
  bit width raise `ValueError`.
- `xvkit.elf`: `ElfHeader.parse` and `ProgramHeader.parse` decode 32-bit
  little-endian ELF headers, and `pack()` encodes them again.
  `program_headers(data)` lists all program headers of an image. Short
  data, a bad magic number or an out-of-range field raises
  `ElfFormatError`.
- `xvkit.cstring`: NUL-terminated string routines with C results:
  `memcmp`, `strncmp`, `strcmp`, `strlen`, `strchr` (an index or
  `None`) and `atoi` (leading digits only). `strncpy(src, n)` and
  `safestrcpy(src, n)` return the bytes such a copy would store, and
  `gets(stream, max)` reads one line from a binary stream.
- `xvkit.shell`: the shell's command-line parser. `parse_command` turns a
  line into a tree of `ExecCommand`, `RedirCommand`, `PipeCommand`,
  `ListCommand` and `BackCommand`, and raises `ShellSyntaxError` on bad
  input, including more than nine arguments. `Scanner` is the tokeniser
  it uses. `cd_target` picks out the directory of a built-in `cd` line.
- `xvkit.wc`: `count(stream)` returns a `WordCount` of lines, words and
  bytes. NUL, space, tab, CR, LF and VT separate words.
- `xvkit.umalloc`: a first-fit, address-ordered free-list `Allocator`.
  It grows its arena through an `sbrk` callable you supply, and
  `free_blocks()` shows the free list. `malloc` raises `MemoryError` when
  `sbrk` returns `-1` or `None`, and `free` raises `ValueError` for an
  address that is not an allocated block.
- `xvkit.locks`: `SpinLock` is owned by a thread and is not reentrant.
  Acquiring it twice from the same thread, or releasing it from a thread
  that does not hold it, raises `LockError`. It is also a context manager.
  `SleepLock` is owned by a process id, and `acquire(pid)` blocks until
  the lock is free.
- `xvkit.vm`: `PhysicalMemory` is a pool of page frames and `PageTable` a
  two-level page table stored in those frames. It can walk and map pages,
  load a first program with `init_user`, and grow and shrink user memory
  with `alloc_user` and `dealloc_user`. It can copy an address space with
  `copy_user` and move data with `copy_out` and `read_user`.
  `set_readonly` and `set_writable` change the writable bit on a run of
  pages. Errors raise `VMError`, or `OutOfMemory` when no frame is left.
- `xvkit.syscall`: the `SyscallNumber` table; `UserMemory` with
  bounds-checked `fetch_int` and `fetch_str`; `SyscallContext` for
  fetching the nth argument with `arg_int`, `arg_ptr` and `arg_str`;
  `SyscallDispatcher`, which runs registered handlers and returns `-1` for
  unknown numbers or a `BadAddress`; and `protect_args`, which checks the
  arguments of the page-protection calls.

## Installing

    pip install .

To run the tests:

    pip install .[test]
    pytest

## Examples

Parse a shell line:

```python
from xvkit.shell import parse_command

tree = parse_command("cat < in.txt | wc > out.txt\n")
```

Grow a process's address space and write into it:

```python
from xvkit.vm import PhysicalMemory, PageTable

memory = PhysicalMemory(64)
table = PageTable(memory)
table.alloc_user(0x1000, 0x3000)
table.copy_out(0x1000, b"hello")
assert table.read_user(0x1000, 5) == b"hello"
```

Allocate from a growing arena:

```python
from xvkit.umalloc import Allocator

top = 0

def sbrk(n):
    global top
    start, top = top, top + n
    return start

heap = Allocator(sbrk)
block = heap.malloc(100)
heap.free(block)
```

## Command line

`xvkit-wc` prints lines, words and bytes for each named file, or for
standard input when no file is given:

    xvkit-wc README.md

It stops with exit status 1 at the first file it cannot open.

## What it does not do

These are models, not a working kernel. There is no process table or
scheduler, no file system, no disk, console or device drivers, and no
system-call handlers beyond the argument checks in `protect_args`. You
register your own handlers with `SyscallDispatcher`. The shell parser
builds command trees but does not run them. `PageTable` manages only user
mappings and does not set up the kernel half of the address space.