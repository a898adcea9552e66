# SPDX-License-Identifier: MIT
from dataclasses import dataclass
from enum import IntEnum

from .channel import *
from .cipher import *
from .state import *

__all__ = ["RUN", "ProgramStateError", "ChaChaContext", "ChaChaProgram"]

class RUN(IntEnum):
    IDLE = 0
    KEY_PUBLISHED = 1
    NONCE_PUBLISHED = 2
    ITERATIONS_KNOWN = 3
    LOOPING = 4
    OUTPUT_ANNOUNCED = 5
    HALTED = 6

class ProgramStateError(RuntimeError):
    pass

@dataclass
class ChaChaContext:
    """Everything one run owns: buffer addresses plus the live cipher state."""
    mem: object
    key_addr: int
    nonce_addr: int
    state_addr: int
    dest_addr: int
    state: CipherState = None

    @classmethod
    def allocate(cls, mem):
        return cls(
            mem=mem,
            key_addr=mem.malloc(KEY_SIZE),
            nonce_addr=mem.malloc(NONCE_SIZE),
            state_addr=mem.malloc(BLOCK_SIZE),
            dest_addr=mem.malloc(BLOCK_SIZE),
        )

    def release(self):
        for addr in (self.key_addr, self.nonce_addr, self.state_addr, self.dest_addr):
            self.mem.free(addr)

    def load_state(self, counter=1):
        key = self.mem.readmem(self.key_addr, KEY_SIZE)
        nonce = self.mem.readmem(self.nonce_addr, NONCE_SIZE)
        self.state = CipherState.from_key_nonce(key, nonce, counter=counter)
        self.store_state()
        return self.state

    def store_state(self):
        self.mem.writemem(self.state_addr, self.state.build())

class ChaChaProgram:
    """The ChaCha20 test image, as a host-driven program.

    Publishes its key and nonce buffers, asks the host how many blocks to
    generate, runs the block function that many times into one output
    buffer, announces it before and after the loop, then halts.
    """

    def __init__(self, channel, ctx, counter=1, byteorder="little", debug=False):
        self.channel = channel
        self.ctx = ctx
        self.counter = counter
        self.byteorder = byteorder
        self.debug = debug
        self.run_state = RUN.IDLE
        self.iterations = None

    def log(self, s, print_fn=print):
        if self.debug:
            print_fn(f"[{self.run_state.name}] " + s)

    def _expect(self, expected):
        if self.run_state != expected:
            raise ProgramStateError(f"Expected {expected.name}, program is {self.run_state.name}")

    def _signal(self, sig, value):
        if self.run_state == RUN.HALTED:
            raise ProgramStateError(f"Signal {sig!s} after halt")
        return self.channel.signal(sig, value)

    def _transition(self, expected, new, sig, value):
        self._expect(expected)
        ret = self._signal(sig, value)
        self.run_state = new
        return ret

    def display_bytes(self, addr, length):
        self._signal(SIG.DISPLAY_BYTES, pack_display(addr, length))

    def display_ints(self, addr, length):
        self._signal(SIG.DISPLAY_INTS, pack_display(addr, length))

    def publish_key(self):
        self._transition(RUN.IDLE, RUN.KEY_PUBLISHED, SIG.KEY_ADDR, self.ctx.key_addr)

    def publish_nonce(self):
        self._transition(RUN.KEY_PUBLISHED, RUN.NONCE_PUBLISHED, SIG.NONCE_ADDR, self.ctx.nonce_addr)

    def request_iterations(self):
        self.iterations = self._transition(RUN.NONCE_PUBLISHED, RUN.ITERATIONS_KNOWN,
                                           SIG.ITERATIONS, 0)
        self.log(f"iterations={self.iterations}")
        return self.iterations

    def generate(self):
        self._expect(RUN.ITERATIONS_KNOWN)
        ctx = self.ctx
        state = ctx.load_state(self.counter)
        self.log(f"state {state!r}")
        self._transition(RUN.ITERATIONS_KNOWN, RUN.LOOPING, SIG.OUTPUT_ADDR, ctx.dest_addr)

        dest = bytearray(ctx.mem.readmem(ctx.dest_addr, BLOCK_SIZE))
        keystream(state, self.iterations, dest, self.byteorder)
        ctx.mem.writemem(ctx.dest_addr, dest)
        ctx.store_state()
        self.log(f"{self.iterations} blocks, counter now {state.counter:#x}")

        self._transition(RUN.LOOPING, RUN.OUTPUT_ANNOUNCED, SIG.OUTPUT_ADDR, ctx.dest_addr)
        return bytes(dest)

    def halt(self):
        self._expect(RUN.OUTPUT_ANNOUNCED)
        self.run_state = RUN.HALTED
        self.channel.halt()

    def run(self):
        self.publish_key()
        self.publish_nonce()
        self.request_iterations()
        block = self.generate()
        self.halt()
        return block
