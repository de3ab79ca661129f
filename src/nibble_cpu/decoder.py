"""Instruction decoder for the Nibble CPU.

Every instruction is a single 8-bit word:

    7   6   5   4   3   2   1   0
    [   opcode    ] [   operand   ]

The high nibble selects one of 16 operations, the low nibble is either an
immediate value or an absolute jump target. All 16 opcode values are
assigned, so decoding is total and never fails.
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import FrozenSet


WORD_MASK = 0xFF
NIBBLE_MASK = 0x0F


class Opcode(IntEnum):
    """The sixteen Nibble operations, valued by their encoding."""
    NOP = 0x0
    LDI = 0x1
    ADD = 0x2
    SUB = 0x3
    AND = 0x4
    OR = 0x5
    XOR = 0x6
    NOT = 0x7
    SHL = 0x8
    SHR = 0x9
    JMP = 0xA
    JZ = 0xB
    JC = 0xC
    JNZ = 0xD
    IN = 0xE
    HLT = 0xF


# Opcodes whose low nibble carries meaning
IMMEDIATE_OPCODES: FrozenSet[Opcode] = frozenset({
    Opcode.LDI, Opcode.ADD, Opcode.SUB, Opcode.AND, Opcode.OR, Opcode.XOR,
})
JUMP_OPCODES: FrozenSet[Opcode] = frozenset({
    Opcode.JMP, Opcode.JZ, Opcode.JC, Opcode.JNZ,
})
OPERAND_OPCODES: FrozenSet[Opcode] = IMMEDIATE_OPCODES | JUMP_OPCODES


@dataclass(frozen=True)
class Instruction:
    """A decoded instruction word.

    Attributes:
        opcode: Operation selector (high nibble)
        operand: Immediate value or jump target (low nibble)
    """
    opcode: Opcode
    operand: int

    @property
    def word(self) -> int:
        """Re-encoded 8-bit instruction word."""
        return (int(self.opcode) << 4) | self.operand

    def __str__(self) -> str:
        if self.opcode in OPERAND_OPCODES:
            return f"{self.opcode.name} {self.operand}"
        return self.opcode.name


def decode(word: int) -> Instruction:
    """Split an instruction word into opcode and operand.

    Args:
        word: Instruction word; only the low 8 bits are considered

    Returns:
        Decoded Instruction
    """
    word &= WORD_MASK
    return Instruction(opcode=Opcode(word >> 4), operand=word & NIBBLE_MASK)


def encode(opcode: Opcode, operand: int = 0) -> int:
    """Build an instruction word from an opcode and operand.

    Args:
        opcode: Operation to encode
        operand: Low nibble value (0-15)

    Returns:
        8-bit instruction word

    Raises:
        ValueError: If operand doesn't fit in 4 bits
    """
    if not 0 <= operand <= NIBBLE_MASK:
        raise ValueError(f"Operand out of range for {Opcode(opcode).name}: {operand}")
    return (int(opcode) << 4) | operand
