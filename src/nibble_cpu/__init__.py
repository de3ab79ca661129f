"""Nibble CPU: cycle-accurate model of a 4-bit accumulator processor.

The processor runs a strict two-phase cycle per instruction:

    FETCH:   IR <- memory[PC]
    EXECUTE: decode IR -> ALU / branch unit -> commit all fields at once

Architecture:
    MEMORY PORT -> FETCH -> DECODER -> ALU + BRANCH UNIT -> COMMIT -> STATE
        |                     |              |                 |
    [16 words]         [opcode|operand] [pure functions] [single owner]

Modules:
    state: ProcessorState register file and Phase
    decoder: Opcode table, decode/encode
    alu: Per-opcode accumulator and flag computation
    branch: Next program counter selection
    memory: ExternalMemoryPort protocol and ProgramMemory
    cpu: NibbleCPU fetch/execute controller
    assembler: Text assembler and disassembler
    outputs: Output byte packing at the system boundary
    harness: Watchdog and conformance trace hooks
"""

__version__ = "0.1.0"
__author__ = "Nibble CPU Project"

from .state import Phase, ProcessorState
from .decoder import Opcode, Instruction, decode, encode
from .alu import ALU, AluResult, evaluate
from .branch import next_program_counter
from .memory import ExternalMemoryPort, ProgramMemory
from .cpu import NibbleCPU
from .assembler import AssemblyError, assemble, disassemble

__all__ = [
    "Phase", "ProcessorState",
    "Opcode", "Instruction", "decode", "encode",
    "ALU", "AluResult", "evaluate",
    "next_program_counter",
    "ExternalMemoryPort", "ProgramMemory",
    "NibbleCPU",
    "AssemblyError", "assemble", "disassemble",
]
