"""Assembler and disassembler for Nibble programs.

Source format:
    - One instruction per line: MNEMONIC [operand]
    - Labels: `name:` on its own line or in front of an instruction
    - Comments start with ; or #
    - Operands are decimal, 0x hex or 0b binary; jumps also take labels
    - `.word N` / `DB N` emits a raw byte

Example:
        LDI 0
    loop:
        ADD 1
        JNZ loop
        HALT
"""

import logging
import re
from typing import Dict, List, Optional, Tuple

from .decoder import Opcode, JUMP_OPCODES, OPERAND_OPCODES, decode, encode
from .memory import ADDRESS_SPACE

logger = logging.getLogger(__name__)


MNEMONIC_ALIASES = {"HALT": "HLT"}
DATA_DIRECTIVES = {".WORD", "DB"}

_LABEL_RE = re.compile(r'^([A-Za-z_]\w*)\s*:\s*(.*)$')


class AssemblyError(ValueError):
    """Raised for malformed assembly source.

    Attributes:
        line: 1-based source line number (None when not tied to a line)
    """

    def __init__(self, message: str, line: Optional[int] = None):
        self.line = line
        if line is not None:
            message = f"Line {line}: {message}"
        super().__init__(message)


def parse_program(source: str) -> Tuple[List[Tuple[int, str]], Dict[str, int]]:
    """Parse assembly source into instruction lines and labels.

    Handles:
        - Labels (`name:`, optionally followed by an instruction)
        - Comments (starting with ; or #)
        - Blank lines

    Args:
        source: Assembly source code

    Returns:
        Tuple of ([(line_number, instruction_text), ...], label-to-address dict)

    Raises:
        AssemblyError: On a duplicate label
    """
    lines = []
    labels: Dict[str, int] = {}

    for lineno, line in enumerate(source.split("\n"), start=1):
        line = re.sub(r'[;#].*$', '', line).strip()

        while line:
            match = _LABEL_RE.match(line)
            if not match:
                break
            label = match.group(1)
            if label.upper() in (name.upper() for name in labels):
                raise AssemblyError(f"Duplicate label: {label}", lineno)
            labels[label] = len(lines)
            line = match.group(2).strip()

        if line:
            lines.append((lineno, line))

    return lines, labels


def _parse_immediate(value: str) -> int:
    """Parse a numeric literal (decimal, 0x hex or 0b binary).

    Raises:
        ValueError: If value cannot be parsed
    """
    value = value.strip().upper()

    if value.startswith("0X"):
        return int(value, 16)
    if value.startswith("0B"):
        return int(value, 2)
    return int(value)


def _resolve_operand(text: str, opcode: Opcode, labels: Dict[str, int], lineno: int) -> int:
    try:
        value = _parse_immediate(text)
    except ValueError:
        if opcode not in JUMP_OPCODES:
            raise AssemblyError(f"Invalid immediate for {opcode.name}: {text}", lineno)
        for label, addr in labels.items():
            if label.upper() == text.upper():
                value = addr
                break
        else:
            raise AssemblyError(f"Unknown label: {text}", lineno)

    if not 0 <= value <= 0x0F:
        raise AssemblyError(f"Operand out of range for {opcode.name}: {text}", lineno)
    return value


def assemble_line(text: str, labels: Optional[Dict[str, int]] = None, lineno: Optional[int] = None) -> int:
    """Assemble a single instruction into an 8-bit word.

    Args:
        text: Instruction text without label or comment
        labels: Label-to-address mapping for jump targets
        lineno: Source line number for error messages

    Returns:
        Instruction word

    Raises:
        AssemblyError: On unknown mnemonic or bad operand
    """
    labels = labels or {}
    parts = text.replace(",", " ").split()
    mnemonic = parts[0].upper()
    args = parts[1:]

    if mnemonic in DATA_DIRECTIVES:
        if len(args) != 1:
            raise AssemblyError(f"{parts[0]} takes exactly one value", lineno)
        try:
            value = _parse_immediate(args[0])
        except ValueError:
            raise AssemblyError(f"Invalid data value: {args[0]}", lineno)
        if not 0 <= value <= 0xFF:
            raise AssemblyError(f"Data value out of range: {args[0]}", lineno)
        return value

    mnemonic = MNEMONIC_ALIASES.get(mnemonic, mnemonic)
    try:
        opcode = Opcode[mnemonic]
    except KeyError:
        raise AssemblyError(f"Unknown mnemonic: {parts[0]}", lineno)

    if opcode in OPERAND_OPCODES:
        if len(args) != 1:
            raise AssemblyError(f"{opcode.name} takes exactly one operand", lineno)
        return encode(opcode, _resolve_operand(args[0], opcode, labels, lineno))

    if args:
        raise AssemblyError(f"{opcode.name} takes no operand", lineno)
    return encode(opcode)


def assemble(source: str) -> List[int]:
    """Assemble a program into instruction words.

    Args:
        source: Assembly source code

    Returns:
        List of up to 16 instruction words

    Raises:
        AssemblyError: On any source error or if the program exceeds 16 words
    """
    lines, labels = parse_program(source)
    if len(lines) > ADDRESS_SPACE:
        raise AssemblyError(
            f"Program too long: {len(lines)} words (max {ADDRESS_SPACE})"
        )

    words = []
    for lineno, text in lines:
        word = assemble_line(text, labels, lineno)
        logger.debug(f"{len(words):>2}: 0x{word:02X}  {text}")
        words.append(word)
    return words


def disassemble(word: int) -> str:
    """Render an instruction word as assembly text."""
    return str(decode(word))


def disassemble_program(words: List[int]) -> List[str]:
    """Render a list of instruction words as assembly text, one per word."""
    return [disassemble(word) for word in words]


def format_listing(words: List[int]) -> str:
    """Address / hex / mnemonic listing of a program."""
    return "\n".join(
        f"{addr:>2}: 0x{word:02X}  {disassemble(word)}"
        for addr, word in enumerate(words)
    )
