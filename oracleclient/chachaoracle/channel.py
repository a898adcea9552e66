# SPDX-License-Identifier: MIT
from enum import IntEnum

__all__ = [
    "SIG", "SWI", "SignalError", "SignalTimeout", "SignalChecksumError",
    "SignalCMDError", "SignalRemoteError", "BadSignal", "HostChannel",
    "LoopbackChannel",
    "pack_display",
]

class SIG(IntEnum):
    KEY_ADDR = 0
    NONCE_ADDR = 1
    ITERATIONS = 2
    OUTPUT_ADDR = 3
    DISPLAY_BYTES = 64
    DISPLAY_INTS = 65

# Trap comment fields used by the test image
class SWI(IntEnum):
    SIGNAL = 4
    HALT = 16

class SignalError(RuntimeError):
    pass

class SignalTimeout(SignalError):
    pass

class SignalChecksumError(SignalError):
    pass

class SignalCMDError(SignalError):
    pass

class SignalRemoteError(SignalError):
    pass

# Raised by a host handler for a signal it does not know
class BadSignal(SignalError):
    pass

def pack_display(addr, length):
    return (addr & 0x00FFFFFF) | ((length & 0xFF) << 24)

class HostChannel:
    """Program-side view of the host: one blocking call/response plus halt."""

    def signal(self, sig, value):
        raise NotImplementedError()

    def halt(self):
        raise NotImplementedError()

class LoopbackChannel(HostChannel):
    """Delivers signals straight to an in-process host handler.

    The handler needs handle_signal(sig, value) -> int and handle_halt().
    """

    def __init__(self, host, debug=False, print_fn=print):
        self.host = host
        self.debug = debug
        self.print_fn = print_fn

    def signal(self, sig, value):
        if self.debug:
            self.print_fn(f"SWI {int(SWI.SIGNAL)}: signal {int(sig)} value=0x{value:08x}")
        ret = self.host.handle_signal(sig, value)
        if ret is None:
            ret = 0
        if self.debug:
            self.print_fn(f"SWI {int(SWI.SIGNAL)}: -> 0x{ret:08x}")
        return ret

    def halt(self):
        if self.debug:
            self.print_fn(f"SWI {int(SWI.HALT)}: halt")
        self.host.handle_halt()
