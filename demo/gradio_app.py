"""Nibble CPU Interactive Demo.

A Gradio web interface for running and visualizing Nibble CPU execution.

Usage:
    cd /path/to/nibble-cpu
    python demo/gradio_app.py

Features:
    - Write or load assembly programs
    - Set the input port value
    - See the step-by-step fetch/execute trace
    - Inspect final registers, flags and the packed output byte
"""

import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import gradio as gr
from nibble_cpu import NibbleCPU, AssemblyError
from nibble_cpu.assembler import format_listing
from nibble_cpu.harness import WatchdogTimeout, run_until_halt
from nibble_cpu.outputs import pack_outputs


PROGRAMS_DIR = Path(__file__).parent.parent / "programs"


# =============================================================================
# Example Programs
# =============================================================================

EXAMPLE_PROGRAMS = {
    "Counter loop": "counter.asm",
    "Fibonacci": "fibonacci.asm",
    "Branch chain": "branch_chain.asm",
    "Input port": "input_port.asm",
    "Custom": None,
}


def load_example(example_name: str) -> str:
    """Load an example program from the programs directory."""
    filename = EXAMPLE_PROGRAMS.get(example_name)
    if filename is None:
        return ""
    path = PROGRAMS_DIR / filename
    return path.read_text() if path.exists() else ""


# =============================================================================
# Execution Functions
# =============================================================================

def run_program(program: str, input_value: int, max_steps: int) -> tuple:
    """Execute an assembly program and return results.

    Args:
        program: Assembly source code
        input_value: Value on the input port (0-15)
        max_steps: Watchdog step budget

    Returns:
        Tuple of (summary_text, trace_text, registers_text)
    """
    if not program.strip():
        return "Error: No program provided", "", ""

    cpu = NibbleCPU()
    try:
        cpu.load_program(program, input_value=int(input_value))
    except AssemblyError as e:
        return f"Assembly error: {e}", "", ""

    try:
        run_until_halt(cpu, max_steps=int(max_steps))
    except WatchdogTimeout as e:
        error_msg = str(e)
    else:
        error_msg = None

    summary = cpu.get_summary()
    summary_lines = [
        "EXECUTION SUMMARY",
        "=" * 40,
        f"Steps: {summary['steps']}",
        f"Instructions: {summary['instructions']}",
        f"Halted: {'Yes' if summary['halted'] else 'No'}",
        "",
        "PROGRAM",
        "-" * 40,
        format_listing(cpu.memory.dump()[:cpu.memory.program_length]),
    ]
    if error_msg:
        summary_lines.append(f"\nRuntime: {error_msg}")
    summary_text = "\n".join(summary_lines)

    trace_lines = [
        "EXECUTION TRACE",
        "=" * 60,
    ]
    executes = [entry for entry in cpu.get_trace() if entry.word is not None]
    for entry in executes[:100]:  # Limit to 100 instructions
        pre = entry.pre_state
        post = entry.post_state
        trace_lines.append(
            f"[Step {entry.step:>4}] PC={pre['program_counter']:>2} {entry.instruction:<7} "
            f"ACC {pre['accumulator']:>2} -> {post['accumulator']:>2}  "
            f"C={int(post['carry_flag'])} Z={int(post['zero_flag'])}"
        )
    if len(executes) > 100:
        trace_lines.append(f"\n... ({len(executes) - 100} more instructions)")
    trace_text = "\n".join(trace_lines)

    state = cpu.state
    reg_lines = [
        "FINAL REGISTERS",
        "=" * 30,
        f"  ACC:   {state.accumulator:>3}  (0b{state.accumulator:04b})",
        f"  PC:    {state.program_counter:>3}",
        f"  IR:   0x{state.instruction_register:02X}",
        f"  Phase: {state.phase.name}",
        "",
        "FLAGS",
        "-" * 30,
        f"  Carry:  {int(state.carry_flag)}",
        f"  Zero:   {int(state.zero_flag)}",
        f"  Halted: {int(state.halted)}",
        "",
        f"Output byte: 0x{pack_outputs(state):02X}",
    ]
    registers_text = "\n".join(reg_lines)

    return summary_text, trace_text, registers_text


# =============================================================================
# Gradio Interface
# =============================================================================

def create_demo():
    """Create and return the Gradio demo interface."""

    with gr.Blocks(title="Nibble CPU Demo", theme=gr.themes.Soft()) as demo:
        gr.Markdown("""
        # Nibble CPU: 4-bit Accumulator Processor

        A cycle-accurate model of a tiny processor with one 4-bit accumulator,
        carry and zero flags, and a two-step fetch/execute cycle.

        **Cycle**: `FETCH (IR <- mem[PC]) -> EXECUTE (ALU + branch, commit)`
        """)

        with gr.Row():
            with gr.Column(scale=2):
                gr.Markdown("### Assembly Program")

                example_dropdown = gr.Dropdown(
                    choices=list(EXAMPLE_PROGRAMS.keys()),
                    value="Counter loop",
                    label="Load Example"
                )

                program_input = gr.Textbox(
                    value=load_example("Counter loop"),
                    label="Source Code",
                    lines=16,
                    placeholder="Enter assembly code here..."
                )

                gr.Markdown("### Settings")

                with gr.Row():
                    input_value = gr.Slider(
                        minimum=0,
                        maximum=15,
                        value=9,
                        step=1,
                        label="Input Port"
                    )
                    max_steps = gr.Slider(
                        minimum=10,
                        maximum=10000,
                        value=1000,
                        step=10,
                        label="Max Steps"
                    )

                run_button = gr.Button("Run Program", variant="primary")

            with gr.Column(scale=3):
                with gr.Row():
                    summary_output = gr.Textbox(
                        label="Summary",
                        lines=12,
                        interactive=False
                    )
                    registers_output = gr.Textbox(
                        label="Final Registers",
                        lines=12,
                        interactive=False
                    )

                trace_output = gr.Textbox(
                    label="Execution Trace",
                    lines=20,
                    interactive=False
                )

        with gr.Accordion("ISA Reference", open=False):
            gr.Markdown("""
            | Hex | Instruction | Effect | Flags |
            |-----|-------------|--------|-------|
            | 0 | `NOP` | nothing | - |
            | 1 | `LDI n` | ACC = n | Z |
            | 2 | `ADD n` | ACC = ACC + n | C, Z |
            | 3 | `SUB n` | ACC = ACC - n | C (borrow), Z |
            | 4 | `AND n` | ACC = ACC & n | Z |
            | 5 | `OR n` | ACC = ACC \\| n | Z |
            | 6 | `XOR n` | ACC = ACC ^ n | Z |
            | 7 | `NOT` | ACC = ~ACC | Z |
            | 8 | `SHL` | ACC = ACC << 1 | C (bit 3), Z |
            | 9 | `SHR` | ACC = ACC >> 1 | C (bit 0), Z |
            | A | `JMP a` | PC = a | - |
            | B | `JZ a` | PC = a if Z | - |
            | C | `JC a` | PC = a if C | - |
            | D | `JNZ a` | PC = a if not Z | - |
            | E | `IN` | ACC = input port | Z |
            | F | `HLT` | stop until reset | - |

            **Registers**: ACC (4-bit), PC (4-bit), 16 words of program memory
            **Labels**: Use `name:` to define, reference by name in jumps
            """)

        example_dropdown.change(
            fn=load_example,
            inputs=[example_dropdown],
            outputs=[program_input]
        )

        run_button.click(
            fn=run_program,
            inputs=[program_input, input_value, max_steps],
            outputs=[summary_output, trace_output, registers_output]
        )

    return demo


# =============================================================================
# Main
# =============================================================================

if __name__ == "__main__":
    demo = create_demo()
    demo.launch(
        share=False,
        server_name="0.0.0.0",
        server_port=7861,
        show_error=True
    )
