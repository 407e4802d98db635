"""
Engine Revision v2 - Runtime Return-Address Stack

Entering a loop pushes the address of its '['; a taken ']' branches back
to the address on top of the stack. Skipping a loop whose guard is zero
scans forward counting bracket depth.
- Nested loops resolve correctly - IMPROVEMENT over v1
- Unbalanced programs are rejected before execution - IMPROVEMENT over v1
- Skipping a loop still costs a forward scan on every visit
"""

from typing import List, Optional, Sequence

from tapevm.config import DEFAULT_TAPE_LENGTH
from tapevm.engine import RunResult
from tapevm.errors import StepLimitExceeded, UnmatchedLoopClose, UnmatchedLoopOpen
from tapevm.isa import Instruction


def _check_balance(instructions: Sequence[Instruction]) -> None:
    opened: List[int] = []
    for i, instr in enumerate(instructions):
        if instr is Instruction.LOOP_OPEN:
            opened.append(i)
        elif instr is Instruction.LOOP_CLOSE:
            if not opened:
                raise UnmatchedLoopClose(i)
            opened.pop()
    if opened:
        raise UnmatchedLoopOpen(opened)


def _skip_loop(instructions: Sequence[Instruction], start: int) -> int:
    depth = 0
    for i in range(start, len(instructions)):
        if instructions[i] is Instruction.LOOP_OPEN:
            depth += 1
        elif instructions[i] is Instruction.LOOP_CLOSE:
            depth -= 1
            if depth == 0:
                return i
    raise RuntimeError(f"No matching ']' for instruction {start}")


def execute(
    instructions: Sequence[Instruction],
    input_data: bytes = b"",
    max_steps: Optional[int] = None,
) -> RunResult:
    """
    Run a program and return the final machine state.

    Raises:
        UnbalancedLoopError: Before execution, on unbalanced brackets
        StepLimitExceeded: When max_steps instructions have run
    """
    _check_balance(instructions)

    tape = [0] * DEFAULT_TAPE_LENGTH
    pointer = 0
    pc = 0
    steps = 0
    output = bytearray()
    input_pos = 0
    return_addresses: List[int] = []

    while pc < len(instructions):
        if max_steps is not None and steps >= max_steps:
            raise StepLimitExceeded(steps, pc)
        steps += 1
        instr = instructions[pc]

        if instr is Instruction.MOVE_RIGHT:
            pointer = min(pointer + 1, DEFAULT_TAPE_LENGTH - 1)
        elif instr is Instruction.MOVE_LEFT:
            pointer = max(pointer - 1, 0)
        elif instr is Instruction.INCREMENT:
            tape[pointer] = (tape[pointer] + 1) % 256
        elif instr is Instruction.DECREMENT:
            tape[pointer] = (tape[pointer] - 1) % 256
        elif instr is Instruction.LOOP_OPEN:
            # top of stack is pc only when a taken ']' branched back here
            if not return_addresses or return_addresses[-1] != pc:
                return_addresses.append(pc)
            if tape[pointer] == 0:
                # land on the matching ']', which falls through and pops
                pc = _skip_loop(instructions, pc)
                continue
        elif instr is Instruction.LOOP_CLOSE:
            if tape[pointer] != 0:
                pc = return_addresses[-1]
                continue
            return_addresses.pop()
        elif instr is Instruction.WRITE_OUTPUT:
            output.append(tape[pointer])
        elif instr is Instruction.READ_INPUT:
            if input_pos < len(input_data):
                tape[pointer] = input_data[input_pos]
                input_pos += 1

        pc += 1

    return RunResult(tuple(tape), pointer, bytes(output), steps)
