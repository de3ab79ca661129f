"""ALU: accumulator and flag computation for the Nibble CPU.

Each opcode maps to one frozen handler in the ALU's operation table. The
controller calls evaluate() during EXECUTE with the current accumulator and
flags and commits whatever comes back.

Flag rules:
    ADD: carry = unsigned overflow (acc + operand >= 16)
    SUB: carry = borrow (acc < operand)
    SHL: carry = bit 3 of acc before the shift
    SHR: carry = bit 0 of acc before the shift
    LDI, AND, OR, XOR, NOT, IN: carry held, zero from result
    NOP, HLT, JMP, JZ, JC, JNZ: both flags held

All arithmetic is modulo 16, never saturating.
"""

from dataclasses import dataclass
from typing import Callable, Dict, FrozenSet, Optional

from .decoder import Opcode, NIBBLE_MASK


@dataclass(frozen=True)
class AluResult:
    """Candidate next values produced by the ALU.

    Attributes:
        accumulator: Next accumulator value (0-15)
        carry: Next carry flag
        zero: Next zero flag
    """
    accumulator: int
    carry: bool
    zero: bool


Operation = Callable[[int, int, bool, bool, int], AluResult]


FLAG_UPDATING_OPCODES: FrozenSet[Opcode] = frozenset({
    Opcode.LDI, Opcode.ADD, Opcode.SUB, Opcode.AND, Opcode.OR, Opcode.XOR,
    Opcode.NOT, Opcode.SHL, Opcode.SHR, Opcode.IN,
})


def _logic(value: int, carry_in: bool) -> AluResult:
    value &= NIBBLE_MASK
    return AluResult(value, carry_in, value == 0)


class ALU:
    """Frozen table of per-opcode operations.

    Every opcode has exactly one handler; the table is locked after
    construction so the mapping can't drift at runtime.

    Attributes:
        _operations: Opcode to handler mapping
        _frozen: Whether the table is locked against modifications
    """

    def __init__(self):
        self._operations: Dict[Opcode, Operation] = {}
        self._frozen = False
        self._register_all_operations()
        self.freeze()

    def _register_all_operations(self) -> None:
        """Register a handler for every opcode."""
        # Data movement
        self.register(Opcode.LDI, self._op_ldi)
        self.register(Opcode.IN, self._op_in)

        # Arithmetic
        self.register(Opcode.ADD, self._op_add)
        self.register(Opcode.SUB, self._op_sub)

        # Logic
        self.register(Opcode.AND, self._op_and)
        self.register(Opcode.OR, self._op_or)
        self.register(Opcode.XOR, self._op_xor)
        self.register(Opcode.NOT, self._op_not)

        # Shifts
        self.register(Opcode.SHL, self._op_shl)
        self.register(Opcode.SHR, self._op_shr)

        # Control flow and special: accumulator and flags pass through
        for opcode in (Opcode.NOP, Opcode.JMP, Opcode.JZ, Opcode.JC,
                       Opcode.JNZ, Opcode.HLT):
            self.register(opcode, self._op_hold)

    def register(self, opcode: Opcode, handler: Operation) -> None:
        """Register the handler for an opcode.

        Raises:
            RuntimeError: If the table is frozen
            ValueError: If the opcode already has a handler
        """
        if self._frozen:
            raise RuntimeError("Cannot register operations: ALU is frozen")
        if opcode in self._operations:
            raise ValueError(f"Operation already registered: {opcode.name}")
        self._operations[opcode] = handler

    def freeze(self) -> None:
        """Lock the operation table."""
        self._frozen = True

    def is_frozen(self) -> bool:
        return self._frozen

    def supported_opcodes(self) -> set:
        """Get the set of opcodes with a registered handler."""
        return set(self._operations.keys())

    def evaluate(
        self,
        acc: int,
        operand: int,
        opcode: Opcode,
        carry_in: bool,
        zero_in: bool,
        port_input: int = 0,
    ) -> AluResult:
        """Compute the next accumulator and flags.

        Args:
            acc: Current accumulator (0-15)
            operand: Instruction operand (0-15)
            opcode: Decoded opcode
            carry_in: Current carry flag
            zero_in: Current zero flag
            port_input: Input port value, only consulted by IN

        Returns:
            AluResult with the candidate next values
        """
        handler = self._operations[Opcode(opcode)]
        return handler(acc & NIBBLE_MASK, operand & NIBBLE_MASK,
                       bool(carry_in), bool(zero_in), port_input & NIBBLE_MASK)

    # =========================================================================
    # Operations
    # =========================================================================

    @staticmethod
    def _op_hold(acc, operand, carry_in, zero_in, port_input) -> AluResult:
        return AluResult(acc, carry_in, zero_in)

    @staticmethod
    def _op_ldi(acc, operand, carry_in, zero_in, port_input) -> AluResult:
        return _logic(operand, carry_in)

    @staticmethod
    def _op_in(acc, operand, carry_in, zero_in, port_input) -> AluResult:
        return _logic(port_input, carry_in)

    @staticmethod
    def _op_add(acc, operand, carry_in, zero_in, port_input) -> AluResult:
        """ADD imm - acc + operand, carry out of bit 3."""
        total = acc + operand
        result = total & NIBBLE_MASK
        return AluResult(result, total > NIBBLE_MASK, result == 0)

    @staticmethod
    def _op_sub(acc, operand, carry_in, zero_in, port_input) -> AluResult:
        """SUB imm - acc - operand, carry set on borrow."""
        result = (acc - operand) & NIBBLE_MASK
        return AluResult(result, acc < operand, result == 0)

    @staticmethod
    def _op_and(acc, operand, carry_in, zero_in, port_input) -> AluResult:
        return _logic(acc & operand, carry_in)

    @staticmethod
    def _op_or(acc, operand, carry_in, zero_in, port_input) -> AluResult:
        return _logic(acc | operand, carry_in)

    @staticmethod
    def _op_xor(acc, operand, carry_in, zero_in, port_input) -> AluResult:
        return _logic(acc ^ operand, carry_in)

    @staticmethod
    def _op_not(acc, operand, carry_in, zero_in, port_input) -> AluResult:
        return _logic(~acc, carry_in)

    @staticmethod
    def _op_shl(acc, operand, carry_in, zero_in, port_input) -> AluResult:
        """SHL - shift left, bit 3 goes to carry."""
        result = (acc << 1) & NIBBLE_MASK
        return AluResult(result, bool(acc & 0x8), result == 0)

    @staticmethod
    def _op_shr(acc, operand, carry_in, zero_in, port_input) -> AluResult:
        """SHR - logical shift right, bit 0 goes to carry."""
        result = acc >> 1
        return AluResult(result, bool(acc & 0x1), result == 0)


# Singleton ALU instance
_alu: Optional[ALU] = None


def get_alu() -> ALU:
    """Get the shared frozen ALU instance."""
    global _alu
    if _alu is None:
        _alu = ALU()
    return _alu


def evaluate(
    acc: int,
    operand: int,
    opcode: Opcode,
    carry_in: bool,
    zero_in: bool,
    port_input: int = 0,
) -> AluResult:
    """Module-level shortcut for get_alu().evaluate()."""
    return get_alu().evaluate(acc, operand, opcode, carry_in, zero_in, port_input)
