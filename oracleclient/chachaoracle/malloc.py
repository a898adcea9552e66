# SPDX-License-Identifier: MIT
from contextlib import contextmanager

__all__ = ["Heap"]

class Heap(object):
    """First-fit block allocator for buffers inside target memory.

    Tracks a list of (blocks, used) runs covering [start, end).
    """
    def __init__(self, start, end, block=16):
        if start % block:
            raise ValueError("heap start not aligned")
        if end % block:
            raise ValueError("heap end not aligned")
        if end <= start:
            raise ValueError("empty heap")
        self.offset = start
        self.count = (end - start) // block
        self.runs = [(self.count, False)]
        self.block = block
        self.sizes = {}

    def _blocks(self, size):
        return max(1, (size + self.block - 1) // self.block)

    def memalign(self, align, size):
        if align & (align - 1):
            raise ValueError(f"alignment {align:#x} is not a power of two")
        align = max(align, self.block) // self.block
        want = self._blocks(size)
        pos = self.offset // self.block
        for i, (run, used) in enumerate(self.runs):
            if not used:
                pad = (-pos) % align
                if run >= want + pad:
                    if pad:
                        self.runs.insert(i, (pad, False))
                        i += 1
                    self.runs[i] = (want, True)
                    if run > want + pad:
                        self.runs.insert(i + 1, (run - want - pad, False))
                    addr = self.block * (pos + pad)
                    self.sizes[addr] = size
                    return addr
            pos += run
        raise MemoryError("Out of memory")

    def malloc(self, size):
        return self.memalign(self.block, size)

    def free(self, addr):
        if addr % self.block:
            raise ValueError("free address not aligned")
        if addr < self.offset:
            raise ValueError("free address before heap")
        idx = (addr - self.offset) // self.block
        if idx >= self.count:
            raise ValueError("free address after heap")
        pos = 0
        for i, (run, used) in enumerate(self.runs):
            if pos > idx:
                break
            if pos == idx:
                if not used:
                    raise ValueError("block already free")
                if i + 1 < len(self.runs) and not self.runs[i + 1][1]:
                    run += self.runs.pop(i + 1)[0]
                if i > 0 and not self.runs[i - 1][1]:
                    run += self.runs.pop(i - 1)[0]
                    i -= 1
                self.runs[i] = (run, False)
                del self.sizes[addr]
                return
            pos += run
        raise ValueError("bad free address")

    def size_of(self, addr):
        return self.sizes[addr]

    def check(self, print_fn=print):
        free = sum(run for run, used in self.runs if not used)
        inuse = sum(run for run, used in self.runs if used)
        if free + inuse != self.count:
            raise Exception("Total block size is inconsistent")
        print_fn("Heap stats:")
        print_fn(" In use: %6d bytes" % (inuse * self.block))
        print_fn(" Free:   %6d bytes" % (free * self.block))
        return free * self.block, inuse * self.block

    @contextmanager
    def guarded_malloc(self, size):
        addr = self.malloc(size)
        try:
            yield addr
        finally:
            self.free(addr)
