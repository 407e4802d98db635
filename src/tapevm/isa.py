"""Instruction set: the eight opcodes and their source-text translation."""

from enum import Enum
import pathlib
from typing import IO, Iterable, Tuple, Union

# =============================================================================
# Instruction ADT
# =============================================================================

class Instruction(Enum):
    """One opcode. The value is the source character it is written as."""
    MOVE_RIGHT = ">"
    MOVE_LEFT = "<"
    INCREMENT = "+"
    DECREMENT = "-"
    LOOP_OPEN = "["
    LOOP_CLOSE = "]"
    WRITE_OUTPUT = "."
    READ_INPUT = ","

    def __repr__(self) -> str:
        return f"Instruction.{self.name}"


Program = Tuple[Instruction, ...]

SOURCE_CHARACTERS = frozenset(i.value for i in Instruction)

_BY_CHARACTER = {i.value: i for i in Instruction}


# =============================================================================
# Translation (Text <-> Instructions)
# =============================================================================

def parse_program(text: str) -> Program:
    """
    Translate program text into an instruction sequence.

    Every character that is not one of ``> < + - [ ] . ,`` is a comment
    and is dropped.

    Args:
        text: Program source

    Returns:
        Immutable tuple of instructions, in source order
    """
    return tuple(_BY_CHARACTER[c] for c in text if c in SOURCE_CHARACTERS)


def format_program(instructions: Iterable[Instruction]) -> str:
    """Render instructions back to their canonical source characters."""
    return ''.join(instr.value for instr in instructions)


def read_program(source: Union[str, pathlib.Path, IO[str], IO[bytes]]) -> Program:
    """
    Read and parse a program from a file path or an open stream.

    Bytes are decoded as latin-1, which maps every byte to some character,
    so comments in any encoding are dropped instead of failing to decode.

    Raises:
        OSError: If the path cannot be read
    """
    if isinstance(source, (str, pathlib.Path)):
        data = pathlib.Path(source).read_bytes()
    else:
        data = source.read()
    if isinstance(data, (bytes, bytearray)):
        data = data.decode('latin-1')
    return parse_program(data)
