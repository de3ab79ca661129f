"""External memory port for the Nibble CPU.

The processor has no program storage of its own. Instruction words and the
general-purpose input value come from a collaborator implementing
ExternalMemoryPort; ProgramMemory is the stock 16-word implementation.
"""

from typing import Iterable, List, Protocol


ADDRESS_SPACE = 16


class ExternalMemoryPort(Protocol):
    """
    Protocol defining the processor's view of the outside world.

    Both reads are synchronous: a value must be available within the
    clock step that asks for it.
    """
    def read_instruction(self, address: int) -> int:
        """Read the 8-bit instruction word at a 4-bit address."""
        ...

    def read_input(self) -> int:
        """Sample the 4-bit general-purpose input."""
        ...


class ProgramMemory:
    """
    Sixteen words of instruction memory plus a latched input value.

    Unused addresses read as 0x00 (NOP). Every instruction address request
    is recorded in `requests`, and every input sample bumps `input_reads`.

    Example:
        >>> mem = ProgramMemory([0x1F, 0xF0], input_value=3)
        >>> mem.read_instruction(0)
        31
    """

    def __init__(self, program: Iterable[int] = (), input_value: int = 0):
        words = list(program)
        if len(words) > ADDRESS_SPACE:
            raise ValueError(
                f"Program too long: {len(words)} words (max {ADDRESS_SPACE})"
            )
        for address, word in enumerate(words):
            if not 0 <= word <= 0xFF:
                raise ValueError(f"Word at address {address} out of range: {word}")

        self._words: List[int] = words + [0] * (ADDRESS_SPACE - len(words))
        self.program_length = len(words)
        self.input_value = 0
        self.set_input(input_value)
        self.requests: List[int] = []
        self.input_reads = 0

    def set_input(self, value: int) -> None:
        """Set the value presented on the input port.

        Raises:
            ValueError: If value doesn't fit in 4 bits
        """
        if not 0 <= value <= 0x0F:
            raise ValueError(f"Input value out of range: {value}")
        self.input_value = value

    def read_instruction(self, address: int) -> int:
        self.requests.append(address)
        return self._words[address]

    def read_input(self) -> int:
        self.input_reads += 1
        return self.input_value

    def dump(self) -> List[int]:
        """Copy of all sixteen words."""
        return list(self._words)

    def __len__(self) -> int:
        return ADDRESS_SPACE
