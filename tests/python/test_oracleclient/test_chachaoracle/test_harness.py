# SPDX-License-Identifier: MIT
"""Tests for oracleclient/chachaoracle/harness.py and session.py"""

import pytest

from oracleclient.chachaoracle.channel import SIG, BadSignal
from oracleclient.chachaoracle.harness import (HarnessError, OracleHarness,
                                               VerificationError)
from oracleclient.chachaoracle.session import run_loopback


class TestOracleHarness:
    """oracleclient.chachaoracle.OracleHarness tests"""

    def test_key_and_nonce_written(self, fx_memory, fx_harness, fx_rfc_key, fx_rfc_nonce):
        """Test key and nonce land at the published addresses"""
        key_addr = fx_memory.malloc(32)
        nonce_addr = fx_memory.malloc(12)
        assert fx_harness.handle_signal(SIG.KEY_ADDR, key_addr) == 0
        assert fx_harness.handle_signal(SIG.NONCE_ADDR, nonce_addr) == 0
        assert fx_memory.readmem(key_addr, 32) == fx_rfc_key
        assert fx_memory.readmem(nonce_addr, 12) == fx_rfc_nonce
        assert fx_harness.handle_signal(SIG.ITERATIONS, 0) == 1

    def test_output_captured_on_second_announce(self, fx_memory, fx_harness):
        """Test only the second announcement captures the output"""
        dest = fx_memory.malloc(64)
        fx_harness.handle_signal(SIG.OUTPUT_ADDR, dest)
        assert fx_harness.output is None
        fx_memory.writemem(dest, b"\x42" * 64)
        fx_harness.handle_signal(SIG.OUTPUT_ADDR, dest)
        assert fx_harness.output == b"\x42" * 64
        with pytest.raises(HarnessError):
            fx_harness.handle_signal(SIG.OUTPUT_ADDR, dest)

    def test_unknown_signal(self, fx_harness):
        """Test unrecognized signals are refused"""
        with pytest.raises(BadSignal, match="unrecognized signal"):
            fx_harness.handle_signal(7, 0x1234)

    def test_halt_without_output(self, fx_harness):
        """Test halting before the output is announced"""
        with pytest.raises(HarnessError):
            fx_harness.handle_halt()

    def test_verify_before_halt(self, fx_harness, fx_rfc_block):
        """Test verification requires a halted program"""
        with pytest.raises(HarnessError, match="did not call halt"):
            fx_harness.verify(fx_rfc_block)

    def test_display(self, fx_memory):
        """Test display signals dump target memory"""
        lines = []
        harness = OracleHarness(fx_memory, print_fn=lines.append)
        addr = fx_memory.malloc(16)
        fx_memory.writemem(addr, bytes(range(16)))
        value = (addr & 0xffffff) | (16 << 24)
        harness.handle_signal(SIG.DISPLAY_BYTES, value)
        assert harness.displayed[-1] == bytes(range(16))
        value = (addr & 0xffffff) | (2 << 24)
        harness.handle_signal(SIG.DISPLAY_INTS, value)
        assert harness.displayed[-1] == (0x03020100, 0x07060504)
        assert len(lines) == 2

    @pytest.mark.parametrize("kwargs", [
        dict(key=bytes(31)),
        dict(nonce=bytes(8)),
        dict(iterations=-1),
    ])
    def test_bad_parameters(self, fx_memory, kwargs):
        """Test construction checks"""
        with pytest.raises(ValueError):
            OracleHarness(fx_memory, **kwargs)


class TestLoopbackRun:
    """oracleclient.chachaoracle.run_loopback tests"""

    def test_rfc_vector(self, fx_rfc_block):
        """Test a full run reproduces the RFC 8439 block"""
        harness = run_loopback()
        assert harness.halted
        assert harness.announcements == 2
        assert harness.output == fx_rfc_block
        assert harness.verify(fx_rfc_block)

    def test_mismatch(self, fx_rfc_block):
        """Test verification reports a word diff"""
        harness = run_loopback(iterations=2)
        with pytest.raises(VerificationError, match="Keystream mismatch"):
            harness.verify(fx_rfc_block)

    def test_zero_iterations(self):
        """Test N=0 yields the freshly allocated buffer"""
        harness = run_loopback(iterations=0)
        assert harness.output == bytes(64)

    def test_memory_released(self, fx_memory):
        """Test buffers are returned after the run"""
        run_loopback(mem=fx_memory)
        assert fx_memory.heap.runs == [(fx_memory.heap.count, False)]

    def test_debug(self, capsys):
        """Test debug tracing of signals"""
        run_loopback(debug=True)
        out, _ = capsys.readouterr()
        assert "SWI 4: signal" in out
        assert "SWI 16: halt" in out
