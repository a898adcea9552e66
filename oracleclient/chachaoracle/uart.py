# SPDX-License-Identifier: MIT
import os, struct, sys

import serial
from construct import Int32sl, Int32ul, Struct

from .channel import *
from .utils import *

__all__ = [
    "SignalRequest", "SignalReply", "MemRequest", "checksum", "open_serial",
    "SignalInterface", "UartChannel", "SignalServer", "RemoteMemory",
]

# Every frame is 16 bytes, all fields little-endian, last word a checksum
# over the first twelve bytes. Each magic starts with ff 55 aa on the wire
# so a reader can resync past console noise.
#
# program -> host   SignalRequest   (REQ_SIGNAL, REQ_HALT)
# host -> program   MemRequest      (REQ_MEMREAD, REQ_MEMWRITE), only while
#                                   the program waits for a signal reply
# either way        SignalReply     echoes the request magic; REQ_HALT gets none
#
# The program blocks on a signal reply with no timeout; only the host end
# uses the configured serial timeout.
#
# Memory writes carry `size` data bytes plus a data checksum word after the
# header; memory read replies are followed by `size` data bytes and carry
# their data checksum in `response`.

SignalRequest = Struct(
    "magic" / Int32ul,
    "sig" / Int32ul,
    "value" / Int32ul,
    "checksum" / Int32ul,
)

MemRequest = Struct(
    "magic" / Int32ul,
    "addr" / Int32ul,
    "size" / Int32ul,
    "checksum" / Int32ul,
)

SignalReply = Struct(
    "magic" / Int32ul,
    "status" / Int32sl,
    "response" / Int32ul,
    "checksum" / Int32ul,
)

FRAME_LEN = 16

def checksum(data):
    sum = 0xDEADBEEF
    for c in data:
        sum *= 31337
        sum += c ^ 0x5a
        sum &= 0xFFFFFFFF

    return (sum ^ 0xADDEDBAD) & 0xFFFFFFFF

def open_serial(device=None, timeout=None):
    if device is None:
        device = os.environ.get("CHACHA_DEVICE", "/dev/ttyACM0:115200")
    if timeout is None:
        timeout = float(os.environ.get("CHACHA_TIMEOUT", "3"))
    baud = 115200
    if ":" in device:
        device, baud = device.rsplit(":", 1)
        baud = int(baud)
    return serial.Serial(device, baud, timeout=timeout)

class SignalInterface:
    REQ_SIGNAL = 0x10AA55FF
    REQ_HALT = 0x11AA55FF
    REQ_MEMREAD = 0x12AA55FF
    REQ_MEMWRITE = 0x13AA55FF

    ST_OK = 0
    ST_BADSIG = -1
    ST_INVAL = -2
    ST_HOSTERR = -3
    ST_CSUMERR = -4

    MAX_XFER = 0x10000

    def __init__(self, device=None, debug=False):
        if device is None or isinstance(device, str):
            device = open_serial(device)
        self.dev = device
        self.debug = debug
        self.tty_enable = True
        self.pted = False

    def readfull(self, size):
        d = b''
        while len(d) < size:
            block = self.dev.read(size - len(d))
            if not block:
                raise SignalTimeout("Expected %d bytes, got %d bytes"%(size,len(d)))
            d += block
        return d

    def unkhandler(self, s):
        if not self.tty_enable:
            return
        for c in s:
            if not self.pted:
                sys.stdout.write("TTY> ")
                self.pted = True
            if c == 10:
                self.pted = False
            sys.stdout.write(chr(c))
            sys.stdout.flush()

    def sync(self):
        """Read up to and including the next frame magic."""
        hdr = b''
        while True:
            if not hdr or hdr[-1] != 255:
                hdr = self.readfull(1)
                if hdr != b"\xff":
                    self.unkhandler(hdr)
                    continue
            else:
                hdr = b'\xff'
            hdr += self.readfull(1)
            if hdr != b"\xff\x55":
                self.unkhandler(hdr)
                continue
            hdr += self.readfull(1)
            if hdr != b"\xff\x55\xaa":
                self.unkhandler(hdr)
                continue
            hdr += self.readfull(1)
            return hdr

    def read_frame(self):
        """Return (magic, raw frame) for the next checksummed frame."""
        frame = self.sync()
        frame += self.readfull(FRAME_LEN - 4)
        if self.debug:
            print(">>", hexdump(frame))
        magic, csum = struct.unpack("<I8xI", frame)
        ccsum = checksum(frame[:-4])
        if csum != ccsum:
            raise SignalChecksumError("Frame checksum error: Expected 0x%08x, got 0x%08x"%(csum, ccsum))
        return magic, frame

    def write_frame(self, stype, **fields):
        body = stype.build(dict(checksum=0, **fields))[:-4]
        frame = body + Int32ul.build(checksum(body))
        if self.debug:
            print("<<", hexdump(frame))
        self.dev.write(frame)

    def reply(self, magic, status=ST_OK, response=0):
        self.write_frame(SignalReply, magic=magic, status=status, response=u32(response))

    def check_reply(self, expected, magic, frame):
        if magic != expected:
            raise SignalCMDError("Reply command mismatch: Expected 0x%08x, got 0x%08x"%(expected, magic))
        reply = SignalReply.parse(frame)
        if reply.status != self.ST_OK:
            if reply.status == self.ST_BADSIG:
                raise SignalRemoteError("Reply error: Bad signal")
            elif reply.status == self.ST_INVAL:
                raise SignalRemoteError("Reply error: Invalid argument")
            elif reply.status == self.ST_HOSTERR:
                raise SignalRemoteError("Reply error: Host failure")
            elif reply.status == self.ST_CSUMERR:
                raise SignalRemoteError("Reply error: Data checksum failed")
            else:
                raise SignalRemoteError("Reply error: Unknown error (%d)"%reply.status)
        return reply.response

class UartChannel(SignalInterface, HostChannel):
    """Program end of the serial link.

    While waiting for a signal reply it services the host's memory requests
    against `mem`, which is how the host fills in the key and nonce.
    """

    def __init__(self, device=None, mem=None, debug=False):
        super().__init__(device, debug=debug)
        self.mem = mem

    def handle_mem(self, magic, frame):
        req = MemRequest.parse(frame)
        if req.size > self.MAX_XFER:
            self.reply(magic, self.ST_INVAL)
            return
        if magic == self.REQ_MEMWRITE:
            data = self.readfull(req.size)
            csum = struct.unpack("<I", self.readfull(4))[0]
            if csum != checksum(data):
                self.reply(magic, self.ST_CSUMERR)
                return
            try:
                self.mem.writemem(req.addr, data)
            except IndexError:
                self.reply(magic, self.ST_INVAL)
                return
            self.reply(magic)
        else:
            try:
                data = self.mem.readmem(req.addr, req.size)
            except IndexError:
                self.reply(magic, self.ST_INVAL)
                return
            self.reply(magic, response=checksum(data))
            self.dev.write(data)

    def request(self, magic, sig=0, value=0):
        self.write_frame(SignalRequest, magic=magic, sig=sig, value=value)
        # The program has nothing to do until the host answers; wait forever.
        timeout = self.dev.timeout
        self.dev.timeout = None
        try:
            while True:
                magin, frame = self.read_frame()
                if magin in (self.REQ_MEMREAD, self.REQ_MEMWRITE) and self.mem is not None:
                    self.handle_mem(magin, frame)
                    continue
                return self.check_reply(magic, magin, frame)
        finally:
            self.dev.timeout = timeout

    def signal(self, sig, value):
        return self.request(self.REQ_SIGNAL, int(sig), u32(value))

    def halt(self):
        self.write_frame(SignalRequest, magic=self.REQ_HALT, sig=0, value=0)

class SignalServer(SignalInterface):
    """Host end of the serial link; dispatches frames to a host handler."""

    def __init__(self, host=None, device=None, debug=False):
        super().__init__(device, debug=debug)
        self.host = host

    def _dispatch(self, magic, frame):
        if magic != self.REQ_SIGNAL:
            raise BadSignal(f"Unknown request 0x{magic:08x}")
        req = SignalRequest.parse(frame)
        try:
            sig = SIG(req.sig)
        except ValueError:
            sig = req.sig
        return self.host.handle_signal(sig, req.value)

    def serve_one(self):
        """Handle one request frame. Returns False once the program halted."""
        magic, frame = self.read_frame()
        # Halt has no reply; the program is gone once it sends one.
        if magic == self.REQ_HALT:
            self.host.handle_halt()
            return False
        try:
            ret = self._dispatch(magic, frame)
        except BadSignal:
            self.reply(magic, self.ST_BADSIG)
            raise
        except (ValueError, IndexError):
            self.reply(magic, self.ST_INVAL)
            raise
        except Exception:
            self.reply(magic, self.ST_HOSTERR)
            raise
        self.reply(magic, response=ret or 0)
        return True

    def serve(self):
        while self.serve_one():
            pass

class RemoteMemory:
    """Target memory seen from the host, through the program's wait loop."""

    def __init__(self, iface, base=0x02000000):
        self.iface = iface
        self.base = base

    def writemem(self, addr, data):
        data = bytes(data)
        iface = self.iface
        iface.write_frame(MemRequest, magic=iface.REQ_MEMWRITE, addr=addr, size=len(data))
        iface.dev.write(data + struct.pack("<I", checksum(data)))
        magic, frame = iface.read_frame()
        iface.check_reply(iface.REQ_MEMWRITE, magic, frame)

    def readmem(self, addr, size):
        if size == 0:
            return b""
        iface = self.iface
        iface.write_frame(MemRequest, magic=iface.REQ_MEMREAD, addr=addr, size=size)
        magic, frame = iface.read_frame()
        csum = iface.check_reply(iface.REQ_MEMREAD, magic, frame)
        data = iface.readfull(size)
        if csum != checksum(data):
            raise SignalChecksumError("Reply data checksum error: Expected 0x%08x, got 0x%08x"%(csum, checksum(data)))
        return data

    def read32(self, addr):
        return struct.unpack("<I", self.readmem(addr, 4))[0]

    def write32(self, addr, data):
        self.writemem(addr, struct.pack("<I", u32(data)))

    def readstruct(self, addr, stype):
        return stype.parse(self.readmem(addr, stype.sizeof()))
