import pytest
from hypothesis import given
from hypothesis import strategies as st

from xvkit.umalloc import HEADER_SIZE, MIN_CORE_UNITS, Allocator


class Heap:
    def __init__(self, start=0x10000, limit=None):
        self.start = self.brk = start
        self.limit = limit
        self.calls = []

    def __call__(self, n):
        if self.limit is not None and self.brk + n > self.limit:
            return -1
        old = self.brk
        self.brk += n
        self.calls.append(n)
        return old


def test_first_malloc_grows_by_minimum_core():
    heap = Heap()
    alloc = Allocator(heap)
    addr = alloc.malloc(10)
    assert heap.calls == [MIN_CORE_UNITS * HEADER_SIZE]
    assert heap.start < addr and addr + 10 <= heap.brk
    assert (addr - heap.start) % HEADER_SIZE == 0


def test_small_block_comes_from_tail():
    heap = Heap()
    alloc = Allocator(heap)
    addr = alloc.malloc(100)
    [(start, units)] = alloc.free_blocks()
    assert start == heap.start
    assert addr - HEADER_SIZE == start + units * HEADER_SIZE


def test_large_request_grows_by_request():
    heap = Heap()
    alloc = Allocator(heap)
    alloc.malloc(100000)
    assert len(heap.calls) == 1
    assert heap.calls[0] >= 100000 + HEADER_SIZE
    assert alloc.free_blocks() == []


def test_free_then_reuse_same_address():
    alloc = Allocator(Heap())
    addr = alloc.malloc(64)
    alloc.free(addr)
    assert alloc.malloc(64) == addr


def test_free_all_coalesces():
    heap = Heap()
    alloc = Allocator(heap)
    blocks = [alloc.malloc(n) for n in (5, 300, 17, 1000)]
    for addr in blocks[::2] + blocks[1::2]:
        alloc.free(addr)
    assert alloc.free_blocks() == [(heap.start, MIN_CORE_UNITS)]


def test_out_of_memory():
    heap = Heap(limit=0x10000)
    alloc = Allocator(heap)
    with pytest.raises(MemoryError):
        alloc.malloc(1)


def test_invalid_and_double_free():
    alloc = Allocator(Heap())
    addr = alloc.malloc(32)
    with pytest.raises(ValueError):
        alloc.free(addr + 8)
    alloc.free(addr)
    with pytest.raises(ValueError):
        alloc.free(addr)


def test_negative_size_rejected():
    with pytest.raises(ValueError):
        Allocator(Heap()).malloc(-1)


_ops = st.lists(
    st.one_of(
        st.tuples(st.just("alloc"), st.integers(0, 50000)),
        st.tuples(st.just("free"), st.integers(0, 1000)),
    ),
    max_size=40,
)


@given(_ops)
def test_random_sequences_keep_blocks_disjoint(ops):
    heap = Heap()
    alloc = Allocator(heap)
    live = {}
    for op, value in ops:
        if op == "alloc":
            addr = alloc.malloc(value)
            assert addr not in live
            live[addr] = value
        elif live:
            key = sorted(live)[value % len(live)]
            alloc.free(key)
            del live[key]
    spans = sorted((addr - HEADER_SIZE, addr + n) for addr, n in live.items())
    for (_, end), (start, _) in zip(spans, spans[1:]):
        assert end <= start
    for start, end in spans:
        assert heap.start <= start and end <= heap.brk
    for addr in list(live):
        alloc.free(addr)
    if heap.brk > heap.start:
        assert alloc.free_blocks() == [
            (heap.start, (heap.brk - heap.start) // HEADER_SIZE)
        ]