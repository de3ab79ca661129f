"""Output packing at the processor's system boundary.

Internally the processor keeps named fields. The enclosing system sees one
output byte plus the program counter:

    bit  7      6       5     4       3..0
         phase  halted  zero  carry   accumulator

phase is 1 while EXECUTE is pending.
"""

from dataclasses import dataclass

from .state import Phase, ProcessorState


STATUS_CARRY = 0x1
STATUS_ZERO = 0x2
STATUS_HALTED = 0x4
STATUS_PHASE = 0x8


@dataclass(frozen=True)
class OutputPins:
    """Named view of the packed outputs."""
    accumulator: int
    carry: bool
    zero: bool
    halted: bool
    phase: Phase
    program_counter: int = 0


def pack_status(state: ProcessorState) -> int:
    """Pack flags, halt and phase into a 4-bit status nibble."""
    status = 0
    if state.carry_flag:
        status |= STATUS_CARRY
    if state.zero_flag:
        status |= STATUS_ZERO
    if state.halted:
        status |= STATUS_HALTED
    if state.phase is Phase.EXECUTE:
        status |= STATUS_PHASE
    return status


def pack_outputs(state: ProcessorState) -> int:
    """Pack status (high nibble) and accumulator (low nibble) into a byte."""
    return (pack_status(state) << 4) | (state.accumulator & 0x0F)


def unpack_outputs(byte: int, program_counter: int = 0) -> OutputPins:
    """Decode an output byte produced by pack_outputs()."""
    status = (byte >> 4) & 0x0F
    return OutputPins(
        accumulator=byte & 0x0F,
        carry=bool(status & STATUS_CARRY),
        zero=bool(status & STATUS_ZERO),
        halted=bool(status & STATUS_HALTED),
        phase=Phase.EXECUTE if status & STATUS_PHASE else Phase.FETCH,
        program_counter=program_counter & 0x0F,
    )
