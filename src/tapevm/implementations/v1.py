"""
Engine Revision v1 - Nearest-Bracket Scan

Loops are found at run time by scanning for the closest bracket instead of
using a precomputed jump table.
Known issues:
- '[' skips to the nearest ']' to its right, ignoring nesting depth
- ']' jumps back to the nearest '[' to its left, ignoring nesting depth
- Nested loops therefore branch to the wrong partner
- Unbalanced programs are not rejected up front; the scan fails with a
  RuntimeError only when a branch actually needs the missing bracket
"""

from typing import Optional, Sequence

from tapevm.config import DEFAULT_TAPE_LENGTH
from tapevm.engine import RunResult
from tapevm.errors import StepLimitExceeded
from tapevm.isa import Instruction


def _find_end_loop(instructions: Sequence[Instruction], start: int) -> Optional[int]:
    # BUG: nearest ']' regardless of depth
    for i in range(start, len(instructions)):
        if instructions[i] is Instruction.LOOP_CLOSE:
            return i
    return None


def _find_begin_loop(instructions: Sequence[Instruction], start: int) -> Optional[int]:
    # BUG: nearest '[' regardless of depth
    for i in range(start - 1, -1, -1):
        if instructions[i] is Instruction.LOOP_OPEN:
            return i
    return None


def execute(
    instructions: Sequence[Instruction],
    input_data: bytes = b"",
    max_steps: Optional[int] = None,
) -> RunResult:
    """
    Run a program and return the final machine state.

    Raises:
        RuntimeError: When a loop branch finds no bracket to jump to
        StepLimitExceeded: When max_steps instructions have run
    """
    tape = [0] * DEFAULT_TAPE_LENGTH
    pointer = 0
    pc = 0
    steps = 0
    output = bytearray()
    input_pos = 0

    while pc != len(instructions):
        if max_steps is not None and steps >= max_steps:
            raise StepLimitExceeded(steps, pc)
        steps += 1
        instr = instructions[pc]

        if instr is Instruction.MOVE_RIGHT:
            if pointer < DEFAULT_TAPE_LENGTH - 1:
                pointer += 1
        elif instr is Instruction.MOVE_LEFT:
            if pointer != 0:
                pointer -= 1
        elif instr is Instruction.INCREMENT:
            tape[pointer] = 0 if tape[pointer] == 255 else tape[pointer] + 1
        elif instr is Instruction.DECREMENT:
            tape[pointer] = 255 if tape[pointer] == 0 else tape[pointer] - 1
        elif instr is Instruction.LOOP_OPEN:
            if tape[pointer] == 0:
                target = _find_end_loop(instructions, pc)
                if target is None:
                    raise RuntimeError(f"No ']' after instruction {pc}")
                pc = target
                continue
        elif instr is Instruction.LOOP_CLOSE:
            if tape[pointer] != 0:
                target = _find_begin_loop(instructions, pc)
                if target is None:
                    raise RuntimeError(f"No '[' before instruction {pc}")
                pc = target
                continue
        elif instr is Instruction.WRITE_OUTPUT:
            output.append(tape[pointer])
        elif instr is Instruction.READ_INPUT:
            if input_pos < len(input_data):
                tape[pointer] = input_data[input_pos]
                input_pos += 1

        pc += 1

    return RunResult(tuple(tape), pointer, bytes(output), steps)
