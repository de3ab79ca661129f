"""NibbleCPU: fetch/execute controller for the Nibble 4-bit processor.

Each call to step() is one clock step:

    FETCH:   IR <- memory[PC]                      phase -> EXECUTE
    EXECUTE: decode IR -> ALU + branch unit -> commit all   phase -> FETCH

Once HLT has executed, steps change nothing at all (the phase bit included)
until reset. Reset may be asserted on any step and always wins.

The controller is the only code that mutates the ProcessorState. Decoder, ALU
and branch unit are pure and see the snapshot taken at the start of the step.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

from .state import Phase, ProcessorState, create_initial_state
from .decoder import Opcode, decode, WORD_MASK, NIBBLE_MASK
from .alu import ALU, get_alu
from .branch import next_program_counter
from .memory import ExternalMemoryPort, ProgramMemory
from .assembler import assemble

logger = logging.getLogger(__name__)


@dataclass
class StepTraceEntry:
    """Single entry in the execution trace.

    Attributes:
        step: Clock step index (0-indexed since load)
        phase: Phase at the start of the step
        pre_state: State before the step
        post_state: State after the step
        word: Instruction word executed (EXECUTE steps only)
        instruction: Disassembly of the executed word
        reset: Whether reset fired on this step
    """
    step: int
    phase: str
    pre_state: dict
    post_state: dict
    word: Optional[int] = None
    instruction: str = ""
    reset: bool = False

    @property
    def changed(self) -> bool:
        return self.pre_state != self.post_state


class NibbleCPU:
    """Cycle-accurate model of the Nibble accumulator processor.

    Attributes:
        memory: External memory port supplying instructions and input
        state: The processor's register file
        alu: Frozen ALU operation table
        trace: List of step trace entries
        trace_enabled: Whether step() records trace entries
        step_count: Clock steps processed since load
        instruction_count: Instructions committed since load
    """

    def __init__(
        self,
        memory: Optional[ExternalMemoryPort] = None,
        trace_enabled: bool = True,
    ):
        """Initialize the processor in its reset state.

        Args:
            memory: Memory port; may be attached later with attach()
            trace_enabled: Record a StepTraceEntry for every step
        """
        self.memory = memory
        self.state: ProcessorState = create_initial_state()
        self.alu: ALU = get_alu()
        self.trace: List[StepTraceEntry] = []
        self.trace_enabled = trace_enabled
        self.step_count = 0
        self.instruction_count = 0

    def attach(self, memory: ExternalMemoryPort) -> None:
        """Connect a memory port. State is left as is."""
        self.memory = memory

    def load_program(self, source: str, input_value: int = 0) -> None:
        """Assemble source into a fresh ProgramMemory and reset.

        Args:
            source: Assembly source code
            input_value: Value presented on the input port
        """
        self.load_words(assemble(source), input_value=input_value)

    def load_words(self, words: List[int], input_value: int = 0) -> None:
        """Load pre-assembled instruction words and reset.

        Args:
            words: Up to 16 instruction words
            input_value: Value presented on the input port
        """
        self.memory = ProgramMemory(words, input_value=input_value)
        self.trace = []
        self.step_count = 0
        self.instruction_count = 0
        self.reset()

    def reset(self) -> None:
        """Reinitialize the processor state in place."""
        self.state.reset()
        logger.info("Processor reset")

    def step(self, reset: bool = False) -> StepTraceEntry:
        """Process one clock step.

        Args:
            reset: Assert reset for this step; overrides halt and phase

        Returns:
            StepTraceEntry describing the step

        Raises:
            RuntimeError: If no memory port is attached
        """
        current = self.state.copy()
        pre_state = current.snapshot()
        word = None
        instruction = ""

        if reset:
            self.reset()
        elif current.halted:
            pass
        else:
            if self.memory is None:
                raise RuntimeError("No memory port attached")
            if current.phase is Phase.FETCH:
                next_state = self._fetch(current)
            else:
                word = current.instruction_register
                instruction = str(decode(word))
                next_state = self._execute(current)
                self.instruction_count += 1
            self.state.commit(next_state)

        entry = StepTraceEntry(
            step=self.step_count,
            phase=current.phase.name,
            pre_state=pre_state,
            post_state=self.state.snapshot(),
            word=word,
            instruction=instruction,
            reset=reset,
        )
        self.step_count += 1
        if self.trace_enabled:
            self.trace.append(entry)
        return entry

    def _fetch(self, current: ProcessorState) -> ProcessorState:
        word = self.memory.read_instruction(current.program_counter) & WORD_MASK
        logger.debug(f"FETCH  pc={current.program_counter:>2} word=0x{word:02X}")
        return current.evolve(instruction_register=word, phase=Phase.EXECUTE)

    def _execute(self, current: ProcessorState) -> ProcessorState:
        instruction = decode(current.instruction_register)
        opcode = instruction.opcode

        port_input = 0
        if opcode == Opcode.IN:
            port_input = self.memory.read_input() & NIBBLE_MASK

        result = self.alu.evaluate(
            current.accumulator,
            instruction.operand,
            opcode,
            current.carry_flag,
            current.zero_flag,
            port_input,
        )
        next_pc = next_program_counter(
            opcode,
            instruction.operand,
            current.program_counter,
            current.zero_flag,
            current.carry_flag,
        )
        halted = current.halted or opcode == Opcode.HLT

        logger.debug(
            f"EXEC   pc={current.program_counter:>2} {str(instruction):<7} "
            f"acc={result.accumulator:>2} c={int(result.carry)} "
            f"z={int(result.zero)} next_pc={next_pc:>2}"
        )
        if halted:
            logger.info(f"Halted at pc={current.program_counter}")

        return current.evolve(
            accumulator=result.accumulator,
            carry_flag=result.carry,
            zero_flag=result.zero,
            program_counter=next_pc,
            halted=halted,
            phase=Phase.FETCH,
        )

    def run_steps(self, count: int) -> List[StepTraceEntry]:
        """Process a fixed number of clock steps.

        No halt or loop detection happens here; halted steps are no-ops.

        Returns:
            Entries for the steps just processed
        """
        return [self.step() for _ in range(count)]

    def step_instruction(self) -> List[StepTraceEntry]:
        """Process one full instruction (two clock steps)."""
        return self.run_steps(2)

    # =========================================================================
    # Observable outputs
    # =========================================================================

    def get_accumulator(self) -> int:
        return self.state.accumulator

    def get_pc(self) -> int:
        return self.state.program_counter

    def get_flags(self) -> Dict[str, bool]:
        """Get CPU flags.

        Returns:
            Dictionary with carry and zero flags
        """
        return {"carry": self.state.carry_flag, "zero": self.state.zero_flag}

    def get_phase(self) -> Phase:
        return self.state.phase

    def is_halted(self) -> bool:
        return self.state.halted

    def get_step_count(self) -> int:
        return self.step_count

    def get_instruction_count(self) -> int:
        return self.instruction_count

    def get_trace(self) -> List[StepTraceEntry]:
        return self.trace

    def print_trace(self) -> None:
        """Print execution trace in human-readable format."""
        print("=" * 70)
        print("NIBBLE CPU EXECUTION TRACE")
        print("=" * 70)

        for entry in self.trace:
            pre = entry.pre_state
            post = entry.post_state
            if entry.reset:
                print(f"[Step {entry.step:>4}] RESET")
                continue
            if pre["halted"]:
                print(f"[Step {entry.step:>4}] HALTED (no change)")
                continue
            if entry.phase == Phase.FETCH.name:
                print(f"[Step {entry.step:>4}] FETCH   PC={pre['program_counter']:>2} "
                      f"IR=0x{post['instruction_register']:02X}")
                continue

            changes = []
            for key in ("accumulator", "carry_flag", "zero_flag", "program_counter"):
                if pre[key] != post[key]:
                    changes.append(f"{key}: {int(pre[key])} → {int(post[key])}")
            print(f"[Step {entry.step:>4}] EXECUTE {entry.instruction:<7} "
                  f"{', '.join(changes)}")

        print("\n" + "=" * 70)
        print("FINAL STATE")
        print("=" * 70)
        print(f"  {self.state}")
        print(f"  Steps: {self.step_count}")
        print(f"  Instructions: {self.instruction_count}")

    def get_summary(self) -> Dict:
        """Get execution summary.

        Returns:
            Dictionary with execution statistics and final state
        """
        return {
            "steps": self.step_count,
            "instructions": self.instruction_count,
            "halted": self.state.halted,
            "accumulator": self.state.accumulator,
            "pc": self.state.program_counter,
            "flags": self.get_flags(),
            "phase": self.state.phase.name,
            "trace_length": len(self.trace),
        }
