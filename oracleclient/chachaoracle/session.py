# SPDX-License-Identifier: MIT
"""
chachaoracle: wiring of program, harness and channel for one run
"""

from .channel import LoopbackChannel
from .harness import *
from .memory import TargetMemory
from .program import ChaChaContext, ChaChaProgram
from .uart import RemoteMemory, SignalServer, UartChannel

__all__ = ["run_loopback", "run_host", "run_target"]

def run_loopback(key=RFC8439_KEY, nonce=RFC8439_NONCE, iterations=1, counter=1,
                 byteorder="little", mem=None, debug=False, print_fn=print):
    """Run program and harness in-process. Returns the harness after halt."""
    if mem is None:
        mem = TargetMemory()
    harness = OracleHarness(mem, key, nonce, iterations, debug=debug, print_fn=print_fn)
    ctx = ChaChaContext.allocate(mem)
    try:
        channel = LoopbackChannel(harness, debug=debug, print_fn=print_fn)
        program = ChaChaProgram(channel, ctx, counter=counter, byteorder=byteorder,
                                debug=debug)
        program.run()
    finally:
        ctx.release()
    return harness

def run_host(device=None, key=RFC8439_KEY, nonce=RFC8439_NONCE, iterations=1,
             debug=False, print_fn=print):
    """Drive a program on the other end of a serial link until it halts."""
    server = SignalServer(device=device, debug=debug)
    harness = OracleHarness(RemoteMemory(server), key, nonce, iterations,
                            debug=debug, print_fn=print_fn)
    server.host = harness
    server.serve()
    return harness

def run_target(device=None, counter=1, byteorder="little", mem=None, debug=False):
    """Run the program as the serial target. Returns the final block."""
    if mem is None:
        mem = TargetMemory()
    channel = UartChannel(device, mem=mem, debug=debug)
    ctx = ChaChaContext.allocate(mem)
    try:
        program = ChaChaProgram(channel, ctx, counter=counter, byteorder=byteorder,
                                debug=debug)
        return program.run()
    finally:
        ctx.release()
