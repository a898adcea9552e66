# SPDX-License-Identifier: MIT
import struct

from .channel import *
from .state import *
from .utils import *

__all__ = [
    "HarnessError", "VerificationError", "OracleHarness",
    "RFC8439_KEY", "RFC8439_NONCE", "RFC8439_BLOCK",
]

# RFC 8439 section 2.3.2
RFC8439_KEY = bytes(range(32))
RFC8439_NONCE = unhex("000000090000004a00000000")
RFC8439_BLOCK = unhex("""
    10f1e7e4d13b5915500fdd1fa32071c4
    c7d1f4c733c068030422aa9ac3d46c4e
    d2826446079faa0914c2d705d98b02a2
    b5129cd1de164eb9cbd083e8a2503c4e
""")

class HarnessError(RuntimeError):
    pass

class VerificationError(HarnessError):
    pass

class OracleHarness:
    """Host side of a keystream run.

    Answers the program's signals: writes the key and nonce into the
    buffers it publishes, hands out the iteration count, and captures the
    output buffer once it is announced for the second time.
    """

    def __init__(self, mem, key=RFC8439_KEY, nonce=RFC8439_NONCE, iterations=1,
                 debug=False, print_fn=print):
        if len(key) != KEY_SIZE:
            raise ValueError(f"Key must be {KEY_SIZE} bytes, got {len(key)}")
        if len(nonce) != NONCE_SIZE:
            raise ValueError(f"Nonce must be {NONCE_SIZE} bytes, got {len(nonce)}")
        if iterations < 0:
            raise ValueError(f"Iteration count must not be negative: {iterations}")
        self.mem = mem
        self.key = bytes(key)
        self.nonce = bytes(nonce)
        self.iterations = iterations
        self.debug = debug
        self.print_fn = print_fn

        self.key_addr = None
        self.nonce_addr = None
        self.dest_addr = None
        self.announcements = 0
        self.halted = False
        self.output = None
        self.displayed = []

    def log(self, s):
        if self.debug:
            self.print_fn(s)

    def handle_signal(self, sig, value):
        if self.halted:
            raise HarnessError(f"Signal {sig} after halt")

        if sig == SIG.KEY_ADDR:
            self.key_addr = value
            self.mem.writemem(value, self.key)
            self.log(f"key @ 0x{value:08x}")
        elif sig == SIG.NONCE_ADDR:
            self.nonce_addr = value
            self.mem.writemem(value, self.nonce)
            self.log(f"nonce @ 0x{value:08x}")
        elif sig == SIG.ITERATIONS:
            self.log(f"iterations: {self.iterations}")
            return self.iterations
        elif sig == SIG.OUTPUT_ADDR:
            self.dest_addr = value
            self.announcements += 1
            if self.announcements == 2:
                self.output = self.mem.readmem(value, BLOCK_SIZE)
                self.log(f"output @ 0x{value:08x}: {hexdump(self.output, '')}")
            elif self.announcements > 2:
                raise HarnessError("Output buffer announced more than twice")
            else:
                self.log(f"output @ 0x{value:08x} (watching)")
        elif sig == SIG.DISPLAY_BYTES:
            addr, length = value & 0x00FFFFFF, value >> 24
            data = self.mem.readmem(addr | (self.mem.base & ~0x00FFFFFF), length)
            self.displayed.append(data)
            chexdump(data, st=addr, print_fn=self.print_fn)
        elif sig == SIG.DISPLAY_INTS:
            addr, length = value & 0x00FFFFFF, value >> 24
            data = self.mem.readmem(addr | (self.mem.base & ~0x00FFFFFF), length * 4)
            self.displayed.append(struct.unpack("<%dI" % length, data))
            self.print_fn(f"{addr:08x}  {hexdump32(data)}")
        else:
            raise BadSignal(f"unrecognized signal: [{int(sig)}](0x{value:08X})")
        return 0

    def handle_halt(self):
        if self.halted:
            raise HarnessError("Program halted twice")
        self.halted = True
        if self.output is None:
            raise HarnessError("Program halted before announcing its output")
        self.log("halt")

    def verify(self, expected):
        if not self.halted:
            raise HarnessError("Program main did not call halt")
        if self.output is None:
            raise HarnessError("No output captured")
        if self.output != bytes(expected):
            raise VerificationError("Keystream mismatch:\n" +
                                    chexdiff32(bytes(expected), self.output))
        return True
