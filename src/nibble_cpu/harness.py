"""Conformance harness hooks and execution watchdog.

The processor core never detects runaway programs. Test benches and tools
bound execution here instead, and query the state once per full
instruction to compare against expected traces.
"""

import logging
from dataclasses import dataclass, asdict
from typing import Dict, Iterable, List, Set

from .cpu import NibbleCPU
from .assembler import disassemble

logger = logging.getLogger(__name__)


DEFAULT_MAX_STEPS = 10000


class WatchdogTimeout(RuntimeError):
    """Raised when a program runs out of its step budget without halting."""

    def __init__(self, max_steps: int):
        self.max_steps = max_steps
        super().__init__(f"Max steps ({max_steps}) exceeded without HLT")


@dataclass
class InstructionRecord:
    """Processor state observed after one full instruction.

    Attributes:
        index: Instruction number (0-indexed)
        address: Address the instruction was fetched from
        word: Instruction word
        instruction: Disassembly of the word
        accumulator: Accumulator after the instruction
        program_counter: PC after the instruction
        carry: Carry flag after the instruction
        zero: Zero flag after the instruction
        halted: Halted flag after the instruction
        was_halted: Processor was already halted before this instruction
    """
    index: int
    address: int
    word: int
    instruction: str
    accumulator: int
    program_counter: int
    carry: bool
    zero: bool
    halted: bool
    was_halted: bool = False

    def to_dict(self) -> Dict:
        return asdict(self)


def run_until_halt(cpu: NibbleCPU, max_steps: int = DEFAULT_MAX_STEPS) -> int:
    """Step the processor until it halts.

    Args:
        cpu: Processor with a memory port attached
        max_steps: Step budget

    Returns:
        Number of steps taken

    Raises:
        WatchdogTimeout: If the budget runs out before HLT
    """
    steps = 0
    while not cpu.is_halted():
        if steps >= max_steps:
            logger.warning(f"Watchdog expired after {steps} steps at pc={cpu.get_pc()}")
            raise WatchdogTimeout(max_steps)
        cpu.step()
        steps += 1
    logger.info(f"Halted after {steps} steps, acc={cpu.get_accumulator()}")
    return steps


def run_instructions(program: List[int], count: int, input_value: int = 0) -> List[InstructionRecord]:
    """Run a program for a number of full instructions.

    Each instruction is two clock steps. After halting, the remaining
    instructions still take their two steps and report unchanged state.

    Args:
        program: Up to 16 instruction words
        count: Number of instructions to run
        input_value: Value presented on the input port

    Returns:
        One InstructionRecord per instruction
    """
    cpu = NibbleCPU(trace_enabled=False)
    cpu.load_words(program, input_value=input_value)

    records = []
    for index in range(count):
        was_halted = cpu.is_halted()
        address = cpu.get_pc()
        _, execute = cpu.step_instruction()
        word = execute.pre_state["instruction_register"]
        state = cpu.state
        records.append(InstructionRecord(
            index=index,
            address=address,
            word=word,
            instruction=disassemble(word),
            accumulator=state.accumulator,
            program_counter=state.program_counter,
            carry=state.carry_flag,
            zero=state.zero_flag,
            halted=state.halted,
            was_halted=was_halted,
        ))

    logger.info(f"Ran {count} instructions, halted={cpu.is_halted()}")
    return records


def compare_trace(records: List[InstructionRecord], expected: Iterable[Dict]) -> List[str]:
    """Compare observed records against expected field values.

    Args:
        records: Observed records from run_instructions()
        expected: One dict per instruction mapping field names to values;
            only the fields present are checked

    Returns:
        List of mismatch descriptions (empty if conformant)
    """
    mismatches = []
    expected = list(expected)

    if len(expected) > len(records):
        mismatches.append(
            f"Expected {len(expected)} instructions, observed {len(records)}"
        )

    for record, fields in zip(records, expected):
        observed = record.to_dict()
        for name, value in fields.items():
            if name not in observed:
                mismatches.append(f"Instruction {record.index}: unknown field '{name}'")
            elif observed[name] != value:
                mismatches.append(
                    f"Instruction {record.index} ({record.instruction} @ {record.address}): "
                    f"{name}={observed[name]!r}, expected {value!r}"
                )
    return mismatches


def executed_addresses(records: Iterable[InstructionRecord]) -> Set[int]:
    """Addresses of instructions executed while the processor was running."""
    return {r.address for r in records if not r.was_halted}
