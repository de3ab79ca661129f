"""ProcessorState: register file for the Nibble CPU.

State Components:
    - Accumulator: 4-bit unsigned working register
    - Program counter: 4-bit address of the next instruction to fetch
    - Flags: carry and zero
    - Halted: absorbing latch set by HLT
    - Phase: FETCH or EXECUTE
    - Instruction register: 8-bit latch of the last fetched word

The controller owns the single ProcessorState instance. It builds the next
state as a separate object and commits it in one go, so no field is ever
read after being written within a clock step. reset() and commit() mutate
the container in place and never replace it.
"""

from dataclasses import dataclass, fields, replace
from enum import Enum


ACC_MASK = 0x0F
PC_MASK = 0x0F
WORD_MASK = 0xFF


class Phase(Enum):
    """Two-step instruction cycle."""
    FETCH = 0
    EXECUTE = 1


@dataclass
class ProcessorState:
    """Architectural and control state of the processor.

    Attributes:
        accumulator: Working register (0-15)
        program_counter: Address of the next fetch (0-15)
        carry_flag: Unsigned overflow/borrow/shifted-out bit
        zero_flag: Set when the last flag-updating result was zero
        halted: Whether HLT has executed since the last reset
        phase: Current half of the fetch/execute cycle
        instruction_register: Last fetched instruction word (0-255)
    """
    accumulator: int = 0
    program_counter: int = 0
    carry_flag: bool = False
    zero_flag: bool = True
    halted: bool = False
    phase: Phase = Phase.FETCH
    instruction_register: int = 0

    def reset(self) -> None:
        """Reinitialize every field to its power-on value, in place."""
        self.commit(ProcessorState())

    def copy(self) -> "ProcessorState":
        """Return an independent copy of this state."""
        return replace(self)

    def evolve(self, **changes) -> "ProcessorState":
        """Create a new state with the given fields changed.

        The receiver is left untouched; used to build next-state candidates.
        """
        return replace(self, **changes)

    def commit(self, next_state: "ProcessorState") -> None:
        """Copy every field of next_state into this container at once."""
        for f in fields(self):
            setattr(self, f.name, getattr(next_state, f.name))

    def snapshot(self) -> dict:
        """Plain-dict copy of the state for tracing.

        Returns:
            Dictionary of field values, phase as its name
        """
        return {
            "accumulator": self.accumulator,
            "program_counter": self.program_counter,
            "carry_flag": self.carry_flag,
            "zero_flag": self.zero_flag,
            "halted": self.halted,
            "phase": self.phase.name,
            "instruction_register": self.instruction_register,
        }

    def validate(self) -> bool:
        """Validate state integrity.

        Checks:
            - Accumulator and PC fit in 4 bits
            - Instruction register fits in 8 bits
            - Flags and halted are booleans
            - Phase is a Phase member

        Returns:
            True if state is valid, False otherwise
        """
        for value, mask in ((self.accumulator, ACC_MASK),
                            (self.program_counter, PC_MASK),
                            (self.instruction_register, WORD_MASK)):
            if not isinstance(value, int) or isinstance(value, bool):
                return False
            if value < 0 or value > mask:
                return False

        for flag in (self.carry_flag, self.zero_flag, self.halted):
            if not isinstance(flag, bool):
                return False

        return isinstance(self.phase, Phase)

    def __str__(self) -> str:
        """Human-readable state representation."""
        return (
            f"[{self.phase.name:<7}] PC={self.program_counter:>2} "
            f"ACC={self.accumulator:>2} C={int(self.carry_flag)} "
            f"Z={int(self.zero_flag)} IR=0x{self.instruction_register:02X}"
            f"{' HALTED' if self.halted else ''}"
        )


def create_initial_state() -> ProcessorState:
    """Create a ProcessorState holding the reset values."""
    return ProcessorState()
