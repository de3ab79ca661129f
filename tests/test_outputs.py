"""Tests for output byte packing."""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import pytest
from nibble_cpu import NibbleCPU
from nibble_cpu.outputs import OutputPins, pack_outputs, pack_status, unpack_outputs
from nibble_cpu.state import Phase, ProcessorState


class TestPackStatus:
    """Test the status nibble layout."""

    def test_reset_status(self):
        """After reset only the zero flag is set."""
        assert pack_status(ProcessorState()) == 0b0010

    def test_each_bit(self):
        assert pack_status(ProcessorState(zero_flag=False, carry_flag=True)) == 0b0001
        assert pack_status(ProcessorState(zero_flag=False, halted=True)) == 0b0100
        assert pack_status(ProcessorState(zero_flag=False, phase=Phase.EXECUTE)) == 0b1000


class TestPackOutputs:
    """Test the full output byte."""

    def test_layout(self):
        state = ProcessorState(accumulator=0xA, carry_flag=True, zero_flag=False, halted=True)
        assert pack_outputs(state) == 0x5A

    def test_unpack(self):
        state = ProcessorState(accumulator=3, zero_flag=False, phase=Phase.EXECUTE)
        pins = unpack_outputs(pack_outputs(state), program_counter=7)
        assert pins == OutputPins(
            accumulator=3, carry=False, zero=False, halted=False,
            phase=Phase.EXECUTE, program_counter=7,
        )

    def test_halted_processor(self):
        """A halted counter loop reports acc 0, C, Z and halted."""
        cpu = NibbleCPU()
        cpu.load_program("LDI 15\nADD 1\nHLT")
        cpu.run_steps(6)
        assert pack_outputs(cpu.state) == 0x70
