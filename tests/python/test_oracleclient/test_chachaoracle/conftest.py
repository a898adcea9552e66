# SPDX-License-Identifier: MIT
"""chachaoracle tests common fixtures"""

import threading

import pytest

from oracleclient.chachaoracle.harness import OracleHarness
from oracleclient.chachaoracle.memory import TargetMemory
from oracleclient.chachaoracle.state import CipherState
from oracleclient.chachaoracle.utils import unhex

RFC_KEY = bytes(range(32))

RFC_NONCE = unhex("000000090000004a00000000")

# RFC 8439 2.3.2, state after setup
RFC_STATE = [
    0x61707865, 0x3320646e, 0x79622d32, 0x6b206574,
    0x03020100, 0x07060504, 0x0b0a0908, 0x0f0e0d0c,
    0x13121110, 0x17161514, 0x1b1a1918, 0x1f1e1d1c,
    0x00000001, 0x09000000, 0x4a000000, 0x00000000,
]

RFC_BLOCK = unhex("""
    10f1e7e4d13b5915500fdd1fa32071c4
    c7d1f4c733c068030422aa9ac3d46c4e
    d2826446079faa0914c2d705d98b02a2
    b5129cd1de164eb9cbd083e8a2503c4e
""")


class PipeSerial:
    """One end of an in-memory serial link with pyserial read semantics"""

    def __init__(self, timeout=2):
        self.timeout = timeout
        self.buf = bytearray()
        self.cond = threading.Condition()
        self.peer = None

    def feed(self, data):
        with self.cond:
            self.buf += data
            self.cond.notify_all()

    def write(self, data):
        self.peer.feed(bytes(data))
        return len(data)

    def read(self, size=1):
        with self.cond:
            self.cond.wait_for(lambda: self.buf, timeout=self.timeout)
            data = bytes(self.buf[:size])
            del self.buf[:size]
            return data


@pytest.fixture
def fx_rfc_key():
    """Return the RFC 8439 test key"""
    return RFC_KEY


@pytest.fixture
def fx_rfc_nonce():
    """Return the RFC 8439 test nonce"""
    return RFC_NONCE


@pytest.fixture
def fx_rfc_block():
    """Return the RFC 8439 first keystream block"""
    return RFC_BLOCK


@pytest.fixture
def fx_rfc_state():
    """Return a fresh state for the RFC 8439 key and nonce"""
    return CipherState.from_key_nonce(RFC_KEY, RFC_NONCE)


@pytest.fixture
def fx_rfc_state_words():
    """Return the expected RFC 8439 state words"""
    return list(RFC_STATE)


@pytest.fixture
def fx_memory():
    """Return an empty target memory"""
    return TargetMemory()


@pytest.fixture
def fx_harness(fx_memory):
    """Return a harness for one RFC 8439 block"""
    return OracleHarness(fx_memory, RFC_KEY, RFC_NONCE, iterations=1)


@pytest.fixture
def fx_serial_pair():
    """Return two connected in-memory serial ends"""
    a, b = PipeSerial(), PipeSerial()
    a.peer, b.peer = b, a
    return a, b


@pytest.fixture
def fx_serial_quick(fx_serial_pair):
    """Return a connected pair with a short read timeout"""
    a, b = fx_serial_pair
    a.timeout = b.timeout = 0.05
    return a, b
