# SPDX-License-Identifier: MIT
"""Tests for oracleclient/chachaoracle/malloc.py and memory.py"""

import pytest

from oracleclient.chachaoracle.malloc import Heap
from oracleclient.chachaoracle.memory import AlignmentError, TargetMemory
from oracleclient.chachaoracle.state import StateBuffer


class TestHeap:
    """oracleclient.chachaoracle.Heap tests"""

    def test_malloc_free(self):
        """Test allocations are disjoint and coalesce on free"""
        heap = Heap(0x1000, 0x1100)
        a = heap.malloc(32)
        b = heap.malloc(12)
        c = heap.malloc(64)
        assert (a, b, c) == (0x1000, 0x1020, 0x1030)
        heap.free(b)
        heap.free(a)
        heap.free(c)
        assert heap.runs == [(heap.count, False)]

    def test_memalign(self):
        """Test aligned allocation pads the gap"""
        heap = Heap(0x1000, 0x1100)
        heap.malloc(16)
        addr = heap.memalign(64, 16)
        assert addr == 0x1040
        assert heap.malloc(16) == 0x1010

    def test_exhaustion(self):
        """Test running out of blocks"""
        heap = Heap(0, 64)
        heap.malloc(64)
        with pytest.raises(MemoryError):
            heap.malloc(1)

    def test_bad_free(self):
        """Test invalid frees"""
        heap = Heap(0x1000, 0x1100)
        addr = heap.malloc(16)
        with pytest.raises(ValueError):
            heap.free(addr + 1)
        with pytest.raises(ValueError):
            heap.free(0)
        with pytest.raises(ValueError):
            heap.free(0x2000)
        heap.free(addr)
        with pytest.raises(ValueError):
            heap.free(addr)

    def test_guarded_malloc(self):
        """Test guarded allocation releases on exit"""
        heap = Heap(0, 256)
        with heap.guarded_malloc(48) as addr:
            assert heap.size_of(addr) == 48
        assert heap.runs == [(heap.count, False)]

    def test_check(self):
        """Test heap statistics"""
        heap = Heap(0, 256)
        heap.malloc(32)
        lines = []
        assert heap.check(print_fn=lines.append) == (224, 32)
        assert lines[0] == "Heap stats:"

    def test_unaligned_bounds(self):
        """Test construction checks"""
        with pytest.raises(ValueError):
            Heap(1, 64)
        with pytest.raises(ValueError):
            Heap(0, 65)


class TestTargetMemory:
    """oracleclient.chachaoracle.TargetMemory tests"""

    def test_readwrite(self, fx_memory):
        """Test byte and word access"""
        base = fx_memory.base
        fx_memory.writemem(base + 8, b"\x01\x02\x03\x04")
        assert fx_memory.read32(base + 8) == 0x04030201
        fx_memory.write32(base + 12, 0xdeadbeef)
        assert fx_memory.readmem(base + 12, 4) == b"\xef\xbe\xad\xde"

    def test_alignment(self, fx_memory):
        """Test unaligned word access"""
        with pytest.raises(AlignmentError):
            fx_memory.read32(fx_memory.base + 2)
        with pytest.raises(AlignmentError):
            fx_memory.write32(fx_memory.base + 1, 0)

    def test_bounds(self):
        """Test accesses outside the address space"""
        mem = TargetMemory(size=0x100, base=0x1000)
        with pytest.raises(IndexError):
            mem.readmem(0xffc, 4)
        with pytest.raises(IndexError):
            mem.writemem(0x10fe, b"\x00" * 4)

    def test_malloc_zeroes(self, fx_memory):
        """Test allocations come back zeroed"""
        addr = fx_memory.malloc(64)
        fx_memory.writemem(addr, b"\xff" * 64)
        fx_memory.free(addr)
        addr = fx_memory.malloc(64)
        assert fx_memory.readmem(addr, 64) == bytes(64)

    def test_readstruct(self, fx_memory, fx_rfc_state):
        """Test struct access"""
        addr = fx_memory.malloc(64)
        fx_memory.writemem(addr, fx_rfc_state.build())
        s = fx_memory.readstruct(addr, StateBuffer)
        assert s.counter == 1
        assert list(s.key) == list(fx_rfc_state.key_words)
