import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from xvkit.mmu import EXTMEM, KERNBASE, PGSIZE, PTE_P, PTE_U, PTE_W
from xvkit.vm import OutOfMemory, PageTable, PhysicalMemory, VMError


def entry(pt, va):
    loc = pt.walk(va)
    assert loc is not None
    return int.from_bytes(pt.memory.read(loc, 4), "little")


def test_physical_alloc_and_free_counts():
    mem = PhysicalMemory(4)
    assert mem.free_count() == 4
    pa = mem.alloc()
    assert pa == EXTMEM
    assert mem.free_count() == 3
    mem.free(pa)
    assert mem.free_count() == 4


def test_physical_exhaustion_raises():
    mem = PhysicalMemory(1)
    mem.alloc()
    with pytest.raises(OutOfMemory):
        mem.alloc()


def test_physical_double_free_and_bad_address():
    mem = PhysicalMemory(2)
    pa = mem.alloc()
    mem.free(pa)
    with pytest.raises(VMError):
        mem.free(pa)
    with pytest.raises(VMError):
        mem.free(pa + 1)


def test_physical_read_write_round_trip_and_bounds():
    mem = PhysicalMemory(1)
    pa = mem.alloc()
    mem.write(pa + 10, b"hello")
    assert mem.read(pa + 10, 5) == b"hello"
    with pytest.raises(VMError):
        mem.write(pa + PGSIZE - 2, b"abc")


def test_new_table_walk_unmapped_is_none():
    mem = PhysicalMemory(4)
    pt = PageTable(mem)
    assert pt.walk(0x1000) is None
    assert pt.user_to_physical(0x1000) is None


def test_init_user_loads_code():
    mem = PhysicalMemory(8)
    pt = PageTable(mem)
    pt.init_user(b"\x90\x90\xc3")
    assert pt.read_user(0x1000, 4) == b"\x90\x90\xc3\x00"
    assert entry(pt, 0x1000) & (PTE_P | PTE_W | PTE_U) == PTE_P | PTE_W | PTE_U


def test_init_user_rejects_a_full_page():
    pt = PageTable(PhysicalMemory(8))
    with pytest.raises(VMError):
        pt.init_user(bytes(PGSIZE))


def test_map_pages_remap_raises():
    mem = PhysicalMemory(8)
    pt = PageTable(mem)
    frame = mem.alloc()
    pt.map_pages(0x5000, PGSIZE, frame, PTE_U)
    with pytest.raises(VMError):
        pt.map_pages(0x5000, PGSIZE, frame, PTE_U)


def test_alloc_then_dealloc_returns_frames():
    mem = PhysicalMemory(16)
    pt = PageTable(mem)
    pt.alloc_user(0, PGSIZE)  # ensure the page table exists
    before = mem.free_count()
    assert pt.alloc_user(PGSIZE, 4 * PGSIZE) == 4 * PGSIZE
    assert pt.read_user(PGSIZE, 3 * PGSIZE) == bytes(3 * PGSIZE)
    assert pt.dealloc_user(4 * PGSIZE, PGSIZE) == PGSIZE
    assert mem.free_count() == before
    assert pt.user_to_physical(2 * PGSIZE) is None


def test_alloc_user_shrinking_returns_old_limit():
    pt = PageTable(PhysicalMemory(4))
    assert pt.alloc_user(3 * PGSIZE, PGSIZE) == 3 * PGSIZE
    assert pt.dealloc_user(PGSIZE, 3 * PGSIZE) == PGSIZE


def test_alloc_user_into_kernel_space_raises():
    pt = PageTable(PhysicalMemory(4))
    with pytest.raises(VMError):
        pt.alloc_user(0, KERNBASE)


def test_alloc_user_out_of_memory_cleans_up():
    mem = PhysicalMemory(5)
    pt = PageTable(mem)
    with pytest.raises(OutOfMemory):
        pt.alloc_user(0, 10 * PGSIZE)
    assert all(pt.user_to_physical(i * PGSIZE) is None for i in range(10))
    assert pt.alloc_user(0, 3 * PGSIZE) == 3 * PGSIZE


def test_free_returns_everything():
    mem = PhysicalMemory(16)
    pt = PageTable(mem)
    pt.alloc_user(0, 5 * PGSIZE)
    pt.free()
    assert mem.free_count() == 16
    with pytest.raises(VMError):
        pt.free()


def test_copy_user_is_independent():
    mem = PhysicalMemory(32)
    parent = PageTable(mem)
    parent.alloc_user(0, 3 * PGSIZE)
    parent.copy_out(PGSIZE + 100, b"parent data")
    child = parent.copy_user(3 * PGSIZE)
    assert child.read_user(PGSIZE + 100, 11) == b"parent data"
    child.copy_out(PGSIZE + 100, b"child")
    assert parent.read_user(PGSIZE + 100, 11) == b"parent data"
    assert entry(child, PGSIZE) == (
        child.user_to_physical(PGSIZE) | (entry(parent, PGSIZE) & 0xFFF)
    )


def test_copy_user_missing_page_raises_and_frees():
    mem = PhysicalMemory(16)
    parent = PageTable(mem)
    before = mem.free_count()
    with pytest.raises(VMError):
        parent.copy_user(3 * PGSIZE)
    assert mem.free_count() == before


def test_clear_user_blocks_user_access():
    mem = PhysicalMemory(8)
    pt = PageTable(mem)
    pt.alloc_user(0, 2 * PGSIZE)
    pt.clear_user(PGSIZE)
    assert entry(pt, PGSIZE) & PTE_U == 0
    assert pt.user_to_physical(PGSIZE) is None
    with pytest.raises(VMError):
        pt.copy_out(PGSIZE, b"x")


def test_clear_user_without_table_raises():
    pt = PageTable(PhysicalMemory(4))
    with pytest.raises(VMError):
        pt.clear_user(0x400000)


def test_copy_out_spans_pages():
    mem = PhysicalMemory(16)
    pt = PageTable(mem)
    pt.alloc_user(0, 4 * PGSIZE)
    data = bytes(range(256)) * 20
    pt.copy_out(PGSIZE + 4000, data)
    assert pt.read_user(PGSIZE + 4000, len(data)) == data


def test_readonly_and_writable_toggle_write_bit():
    mem = PhysicalMemory(16)
    pt = PageTable(mem)
    pt.alloc_user(0, 4 * PGSIZE)
    pt.set_readonly(PGSIZE, 2)
    assert entry(pt, PGSIZE) & PTE_W == 0
    assert entry(pt, 2 * PGSIZE) & PTE_W == 0
    assert entry(pt, 3 * PGSIZE) & PTE_W == PTE_W
    pt.set_writable(PGSIZE, 2)
    assert entry(pt, PGSIZE) & PTE_W == PTE_W


def test_readonly_unmapped_raises_without_change():
    mem = PhysicalMemory(16)
    pt = PageTable(mem)
    pt.alloc_user(0, 2 * PGSIZE)
    with pytest.raises(VMError):
        pt.set_readonly(0x400000, 1)
    with pytest.raises(VMError):
        pt.set_readonly(PGSIZE, 4)
    assert entry(pt, PGSIZE) & PTE_W == PTE_W


@settings(max_examples=30, deadline=None)
@given(
    offset=st.integers(min_value=0, max_value=3 * PGSIZE),
    data=st.binary(min_size=1, max_size=PGSIZE),
)
def test_copy_out_read_user_round_trip(offset, data):
    mem = PhysicalMemory(16)
    pt = PageTable(mem)
    pt.alloc_user(0, 5 * PGSIZE)
    pt.copy_out(offset, data)
    assert pt.read_user(offset, len(data)) == data