#!/usr/bin/env python3
"""Nibble CPU Command Line Interface.

Run assembly programs on the Nibble 4-bit CPU model.

Usage:
    python main.py --program programs/counter.asm
    python main.py --program programs/input_port.asm --input 9 --trace
"""

import argparse
import logging
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent / "src"))

from nibble_cpu import NibbleCPU, AssemblyError
from nibble_cpu.assembler import format_listing
from nibble_cpu.harness import DEFAULT_MAX_STEPS, WatchdogTimeout, run_until_halt
from nibble_cpu.outputs import pack_outputs


def main():
    parser = argparse.ArgumentParser(
        description="Nibble CPU: 4-bit accumulator processor model",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Run the counter loop
    python main.py --program programs/counter.asm

    # Run with the input port at 9 and print the step trace
    python main.py --program programs/input_port.asm --input 9 --trace

    # Run inline assembly
    python main.py --inline "LDI 7; ADD 9; HLT"
        """
    )

    parser.add_argument(
        "--program", "-p",
        type=str,
        help="Path to assembly program file (.asm)"
    )
    parser.add_argument(
        "--inline", "-i",
        type=str,
        help="Inline assembly (separate instructions with ;)"
    )
    parser.add_argument(
        "--input", "-n",
        type=int,
        default=0,
        help="Value on the input port (0-15). Default: 0"
    )
    parser.add_argument(
        "--max-steps",
        type=int,
        default=DEFAULT_MAX_STEPS,
        help=f"Watchdog step budget. Default: {DEFAULT_MAX_STEPS}"
    )
    parser.add_argument(
        "--trace", "-t",
        action="store_true",
        help="Print full step trace"
    )
    parser.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Minimal output (final accumulator only)"
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Debug logging of every fetch and execute"
    )

    args = parser.parse_args()

    if not args.program and not args.inline:
        parser.error("Either --program or --inline is required")
    if not 0 <= args.input <= 15:
        parser.error("--input must be between 0 and 15")

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if args.program:
        program_path = Path(args.program)
        if not program_path.exists():
            print(f"Error: Program file not found: {args.program}")
            return 1
        source = program_path.read_text()
        if not args.quiet:
            print(f"Loading program: {args.program}")
    else:
        # Inline assembly
        source = args.inline.replace(";", "\n")
        if not args.quiet:
            print("Running inline assembly")

    cpu = NibbleCPU(trace_enabled=args.trace)
    try:
        cpu.load_program(source, input_value=args.input)
    except AssemblyError as e:
        print(f"Assembly error: {e}")
        return 1

    if not args.quiet:
        print(format_listing(cpu.memory.dump()[:cpu.memory.program_length]))
        print("-" * 60)
        print("Executing...")
        print("-" * 60)

    exit_code = 0
    try:
        run_until_halt(cpu, max_steps=args.max_steps)
    except WatchdogTimeout as e:
        print(f"Execution error: {e}")
        exit_code = 1

    if args.trace:
        cpu.print_trace()
    elif not args.quiet:
        print()
        summary = cpu.get_summary()
        print(f"Steps: {summary['steps']}")
        print(f"Instructions: {summary['instructions']}")
        print(f"Halted: {summary['halted']}")
        print(f"Accumulator: {summary['accumulator']}")
        print(f"PC: {summary['pc']}")
        print(f"Flags: {summary['flags']}")
        print(f"Output byte: 0x{pack_outputs(cpu.state):02X}")
    else:
        print(cpu.get_accumulator())

    return exit_code


if __name__ == "__main__":
    sys.exit(main())
