"""Tests for the NibbleCPU fetch/execute controller."""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import pytest
from nibble_cpu import NibbleCPU, Opcode, Phase, ProcessorState, ProgramMemory, encode


def words(*pairs):
    """Encode (opcode, operand) pairs or bare opcodes."""
    result = []
    for item in pairs:
        if isinstance(item, tuple):
            result.append(encode(*item))
        else:
            result.append(encode(item))
    return result


class TestFetch:
    """Test the FETCH half of the cycle."""

    @pytest.fixture
    def cpu(self):
        return NibbleCPU(memory=ProgramMemory(words((Opcode.LDI, 5), Opcode.HLT)))

    def test_fetch_latches_instruction(self, cpu):
        """FETCH loads IR from memory[PC] and moves to EXECUTE."""
        cpu.step()
        assert cpu.state.instruction_register == 0x15
        assert cpu.get_phase() is Phase.EXECUTE

    def test_fetch_changes_nothing_else(self, cpu):
        """FETCH leaves accumulator, PC and flags alone."""
        before = cpu.state.copy()
        cpu.step()
        assert cpu.state.accumulator == before.accumulator
        assert cpu.state.program_counter == before.program_counter
        assert cpu.state.carry_flag == before.carry_flag
        assert cpu.state.zero_flag == before.zero_flag

    def test_fetch_issues_address_request(self, cpu):
        """Each FETCH requests the current PC from the port."""
        cpu.run_steps(4)
        assert cpu.memory.requests == [0, 1]

    def test_no_memory_attached(self):
        """Stepping without a port raises RuntimeError."""
        cpu = NibbleCPU()
        with pytest.raises(RuntimeError, match="No memory port"):
            cpu.step()

    def test_attach(self):
        """A port can be attached after construction."""
        cpu = NibbleCPU()
        cpu.attach(ProgramMemory(words((Opcode.LDI, 2))))
        cpu.step_instruction()
        assert cpu.get_accumulator() == 2


class TestExecute:
    """Test the EXECUTE half of the cycle."""

    def test_execute_commits_results(self):
        """EXECUTE commits accumulator, flags, PC and returns to FETCH."""
        cpu = NibbleCPU(memory=ProgramMemory(words((Opcode.LDI, 15), (Opcode.ADD, 1))))
        cpu.run_steps(4)
        assert cpu.get_accumulator() == 0
        assert cpu.get_flags() == {"carry": True, "zero": True}
        assert cpu.get_pc() == 2
        assert cpu.get_phase() is Phase.FETCH

    def test_phase_alternates(self):
        """Phase strictly alternates FETCH, EXECUTE, FETCH while running."""
        cpu = NibbleCPU(memory=ProgramMemory([]))
        phases = []
        for _ in range(6):
            phases.append(cpu.get_phase())
            cpu.step()
        assert phases == [Phase.FETCH, Phase.EXECUTE] * 3

    def test_input_read_only_for_in(self):
        """The input port is sampled only while executing IN."""
        memory = ProgramMemory(words((Opcode.LDI, 1), Opcode.IN, (Opcode.ADD, 1)), input_value=4)
        cpu = NibbleCPU(memory=memory)
        cpu.run_steps(2)
        assert memory.input_reads == 0
        cpu.run_steps(1)
        assert memory.input_reads == 0
        cpu.run_steps(1)
        assert memory.input_reads == 1
        assert cpu.get_accumulator() == 4
        cpu.run_steps(2)
        assert memory.input_reads == 1
        assert cpu.get_accumulator() == 5

    def test_input_sampled_fresh(self):
        """IN sees the input value present at execute time."""
        memory = ProgramMemory(words(Opcode.IN, Opcode.IN), input_value=1)
        cpu = NibbleCPU(memory=memory)
        cpu.step_instruction()
        memory.set_input(8)
        cpu.step_instruction()
        assert cpu.get_accumulator() == 8

    def test_pc_wraps_past_fifteen(self):
        """Running off address 15 continues at address 0."""
        program = [encode(Opcode.NOP)] * 15 + [encode(Opcode.ADD, 1)]
        cpu = NibbleCPU(memory=ProgramMemory(program))
        for _ in range(16):
            cpu.step_instruction()
        assert cpu.get_pc() == 0
        assert cpu.get_accumulator() == 1

    def test_state_always_valid(self):
        """State invariants hold after every step of a busy program."""
        program = words(
            (Opcode.LDI, 9), Opcode.SHL, Opcode.NOT, (Opcode.SUB, 12),
            Opcode.SHR, (Opcode.XOR, 5), (Opcode.JMP, 0),
        )
        cpu = NibbleCPU(memory=ProgramMemory(program))
        for _ in range(100):
            cpu.step()
            assert cpu.state.validate() is True

    def test_instruction_count(self):
        """Only committed EXECUTE steps count as instructions."""
        cpu = NibbleCPU(memory=ProgramMemory(words((Opcode.LDI, 1), Opcode.HLT)))
        cpu.run_steps(10)
        assert cpu.get_step_count() == 10
        assert cpu.get_instruction_count() == 2


class TestFlagTotality:
    """Test that non flag-updating opcodes leave flags alone through the controller."""

    @pytest.mark.parametrize("opcode,operand", [
        (Opcode.NOP, 0), (Opcode.JMP, 0), (Opcode.JZ, 0),
        (Opcode.JC, 0), (Opcode.JNZ, 0), (Opcode.HLT, 0),
    ])
    @pytest.mark.parametrize("setup", [
        words((Opcode.LDI, 15), (Opcode.ADD, 1)),    # C=1 Z=1
        words((Opcode.LDI, 0), (Opcode.SUB, 1)),     # C=1 Z=0
        words((Opcode.LDI, 2), (Opcode.ADD, 1)),     # C=0 Z=0
        words((Opcode.LDI, 0), (Opcode.ADD, 0)),     # C=0 Z=1
    ])
    def test_flags_unchanged(self, opcode, operand, setup):
        cpu = NibbleCPU(memory=ProgramMemory(setup + [encode(opcode, operand)]))
        cpu.run_steps(4)
        flags = cpu.get_flags()
        accumulator = cpu.get_accumulator()
        cpu.run_steps(2)
        assert cpu.get_flags() == flags
        assert cpu.get_accumulator() == accumulator


class TestHalt:
    """Test the absorbing halt latch."""

    @pytest.fixture
    def cpu(self):
        program = words((Opcode.LDI, 6), Opcode.HLT, (Opcode.LDI, 1))
        cpu = NibbleCPU(memory=ProgramMemory(program))
        cpu.run_steps(4)
        return cpu

    def test_hlt_sets_halted(self, cpu):
        """HLT latches halted, holds PC, returns phase to FETCH."""
        assert cpu.is_halted() is True
        assert cpu.get_pc() == 1
        assert cpu.get_phase() is Phase.FETCH
        assert cpu.get_accumulator() == 6

    def test_halt_is_idempotent(self, cpu):
        """Further steps change no field at all."""
        frozen = cpu.state.copy()
        for _ in range(25):
            entry = cpu.step()
            assert entry.changed is False
            assert cpu.state == frozen

    def test_halt_freezes_phase(self):
        """Phase stays put while halted."""
        cpu = NibbleCPU(memory=ProgramMemory(words(Opcode.HLT)))
        cpu.run_steps(2)
        phase = cpu.get_phase()
        cpu.run_steps(3)
        assert cpu.get_phase() is phase

    def test_halted_issues_no_requests(self, cpu):
        """A halted processor stops fetching."""
        requests = list(cpu.memory.requests)
        cpu.run_steps(10)
        assert cpu.memory.requests == requests


class TestReset:
    """Test reset priority."""

    def test_reset_releases_halt(self):
        """Reset clears halted and restarts from address 0."""
        cpu = NibbleCPU(memory=ProgramMemory(words((Opcode.LDI, 3), Opcode.HLT)))
        cpu.run_steps(4)
        assert cpu.is_halted() is True
        cpu.reset()
        assert cpu.state == ProcessorState()
        cpu.step_instruction()
        assert cpu.get_accumulator() == 3

    def test_reset_step_wins_over_execute(self):
        """Reset asserted on an EXECUTE step discards that instruction."""
        cpu = NibbleCPU(memory=ProgramMemory(words((Opcode.LDI, 9))))
        cpu.step()
        assert cpu.get_phase() is Phase.EXECUTE
        entry = cpu.step(reset=True)
        assert entry.reset is True
        assert cpu.state == ProcessorState()

    def test_reset_step_wins_over_halt(self):
        """Reset asserted while halted reinitializes the state."""
        cpu = NibbleCPU(memory=ProgramMemory(words(Opcode.HLT)))
        cpu.run_steps(2)
        cpu.step(reset=True)
        assert cpu.is_halted() is False
        assert cpu.get_phase() is Phase.FETCH

    def test_reset_keeps_state_object(self):
        """Reset reuses the same ProcessorState container."""
        cpu = NibbleCPU(memory=ProgramMemory(words((Opcode.LDI, 9))))
        state = cpu.state
        cpu.run_steps(2)
        cpu.reset()
        assert cpu.state is state


class TestMisbehavingPort:
    """Test that out-of-range port values can't break invariants."""

    class WidePort:
        def read_instruction(self, address):
            return 0x1E0  # IN, with a stray bit 8

        def read_input(self):
            return 0x3C

    def test_values_masked(self):
        cpu = NibbleCPU(memory=self.WidePort())
        cpu.step_instruction()
        assert cpu.state.instruction_register == 0xE0
        assert cpu.get_accumulator() == 0xC
        assert cpu.state.validate() is True


class TestTrace:
    """Test execution trace functionality."""

    def test_trace_records_every_step(self):
        cpu = NibbleCPU(memory=ProgramMemory(words((Opcode.LDI, 2), Opcode.HLT)))
        cpu.run_steps(5)
        trace = cpu.get_trace()
        assert len(trace) == 5
        assert [e.phase for e in trace[:4]] == ["FETCH", "EXECUTE", "FETCH", "EXECUTE"]
        assert trace[1].instruction == "LDI 2"
        assert trace[1].word == 0x12
        assert trace[1].pre_state["accumulator"] == 0
        assert trace[1].post_state["accumulator"] == 2
        assert trace[3].instruction == "HLT"

    def test_trace_disabled(self):
        cpu = NibbleCPU(memory=ProgramMemory([]), trace_enabled=False)
        entry = cpu.step()
        assert entry.phase == "FETCH"
        assert cpu.get_trace() == []

    def test_summary(self):
        cpu = NibbleCPU()
        cpu.load_program("LDI 4\nHLT")
        cpu.run_steps(4)
        summary = cpu.get_summary()
        assert summary["steps"] == 4
        assert summary["instructions"] == 2
        assert summary["halted"] is True
        assert summary["accumulator"] == 4
        assert summary["phase"] == "FETCH"

    def test_print_trace(self, capsys):
        cpu = NibbleCPU()
        cpu.load_program("LDI 4\nHLT")
        cpu.run_steps(5)
        cpu.print_trace()
        out = capsys.readouterr().out
        assert "EXECUTE LDI 4" in out
        assert "HALTED (no change)" in out
