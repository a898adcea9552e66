# SPDX-License-Identifier: MIT
import struct

from .malloc import Heap
from .utils import *

__all__ = ["AlignmentError", "TargetMemory"]

class AlignmentError(Exception):
    pass

class TargetMemory:
    """Flat little-endian address space shared by the program and the host.

    Mirrors the proxy memory accessors so host code reads the same whether
    the buffers live here or on a real target.
    """

    # GBA on-board work RAM
    BASE = 0x02000000
    SIZE = 0x40000

    def __init__(self, size=SIZE, base=BASE, heap_start=None, debug=False):
        self.base = base
        self.size = size
        self.data = bytearray(size)
        self.debug = debug
        if heap_start is None:
            heap_start = base
        self.heap = Heap(heap_start, base + size)

    def _check(self, addr, size):
        if addr < self.base or addr + size > self.base + self.size:
            raise IndexError(f"Access {addr:#x}+{size:#x} outside "
                             f"[{self.base:#x}, {self.base + self.size:#x})")
        return addr - self.base

    def readmem(self, addr, size):
        off = self._check(addr, size)
        data = bytes(self.data[off:off + size])
        if self.debug:
            print(f">> MEM {addr:#x}:")
            chexdump(data, st=addr)
        return data

    def writemem(self, addr, data):
        data = bytes(data)
        off = self._check(addr, len(data))
        if self.debug:
            print(f"<< MEM {addr:#x}:")
            chexdump(data, st=addr)
        self.data[off:off + len(data)] = data

    def read32(self, addr):
        if addr & 3:
            raise AlignmentError()
        return struct.unpack("<I", self.readmem(addr, 4))[0]

    def write32(self, addr, data):
        if addr & 3:
            raise AlignmentError()
        self.writemem(addr, struct.pack("<I", u32(data)))

    def readstruct(self, addr, stype):
        return stype.parse(self.readmem(addr, stype.sizeof()))

    def writestruct(self, addr, stype, value):
        self.writemem(addr, stype.build(value))

    def memset8(self, addr, value, size):
        self.writemem(addr, bytes([value & 0xff]) * size)

    def malloc(self, size, align=4):
        addr = self.heap.memalign(align, size)
        self.memset8(addr, 0, size)
        return addr

    def free(self, addr):
        self.heap.free(addr)
