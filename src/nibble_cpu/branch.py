"""Branch unit: next program counter selection."""

from .decoder import Opcode, NIBBLE_MASK


def branch_taken(opcode: Opcode, zero: bool, carry: bool) -> bool:
    """Check whether a jump opcode transfers control under the given flags."""
    return (
        opcode == Opcode.JMP
        or (opcode == Opcode.JZ and zero)
        or (opcode == Opcode.JC and carry)
        or (opcode == Opcode.JNZ and not zero)
    )


def next_program_counter(
    opcode: Opcode,
    operand: int,
    current_pc: int,
    zero: bool,
    carry: bool,
) -> int:
    """Compute the program counter for the following instruction.

    A taken branch loads the operand as an absolute address. HLT holds the
    PC on its own address. Everything else advances by one, wrapping at 16.

    Args:
        opcode: Decoded opcode
        operand: Instruction operand (jump target for branches)
        current_pc: Program counter of the executing instruction
        zero: Current zero flag
        carry: Current carry flag

    Returns:
        Next program counter (0-15)
    """
    if branch_taken(opcode, zero, carry):
        return operand & NIBBLE_MASK
    if opcode == Opcode.HLT:
        return current_pc & NIBBLE_MASK
    return (current_pc + 1) & NIBBLE_MASK
