"""
Enumeration-based test generation for the tape machine.

This module provides exhaustive test generation by systematically enumerating
all programs within bounded model spaces. Unlike probabilistic fuzzing,
enumeration provides guaranteed coverage of the bounded model. Loop
resolution is the part worth covering exhaustively, so the bracket
enumerators yield every string of brackets up to a given length.
"""

import itertools
from typing import Iterator, Sequence

from tapevm.isa import Instruction, Program, parse_program
from .program import Op, Loop, Seq, compile_block


# ============================================================
# Configuration
# ============================================================

BRACKETS = (Instruction.LOOP_OPEN, Instruction.LOOP_CLOSE)

# Small alphabet that exercises loops, arithmetic and the pointer
CORE_ALPHABET = (
    Instruction.LOOP_OPEN,
    Instruction.LOOP_CLOSE,
    Instruction.INCREMENT,
    Instruction.DECREMENT,
    Instruction.MOVE_RIGHT,
    Instruction.MOVE_LEFT,
)

# Interesting starting values for an 8-bit cell
BOUNDARY_CELL_VALUES = [0, 1, 2, 127, 128, 254, 255]


# ============================================================
# Sequence Enumeration
# ============================================================

def enumerate_sequences(length: int, alphabet: Sequence[Instruction] = CORE_ALPHABET) -> Iterator[Program]:
    """
    Enumerate every instruction sequence of exactly the given length.

    Args:
        length: Sequence length (0 yields the empty program once)
        alphabet: Instructions to draw from

    Yields:
        Programs in lexicographic order of the alphabet
    """
    for combo in itertools.product(alphabet, repeat=length):
        yield tuple(combo)


def enumerate_bracket_sequences(max_length: int) -> Iterator[Program]:
    """
    Enumerate every string over '[' and ']' with length 0..max_length.

    Both balanced and unbalanced strings are produced; use is_balanced()
    to split them.
    """
    for length in range(max_length + 1):
        yield from enumerate_sequences(length, BRACKETS)


def is_balanced(instructions: Sequence[Instruction]) -> bool:
    """Depth-counting balance check, independent of the resolver."""
    depth = 0
    for instr in instructions:
        if instr is Instruction.LOOP_OPEN:
            depth += 1
        elif instr is Instruction.LOOP_CLOSE:
            depth -= 1
            if depth < 0:
                return False
    return depth == 0


def first_unmatched_close(instructions: Sequence[Instruction]) -> int | None:
    """Index of the first ']' at which the running depth goes negative."""
    depth = 0
    for i, instr in enumerate(instructions):
        if instr is Instruction.LOOP_OPEN:
            depth += 1
        elif instr is Instruction.LOOP_CLOSE:
            depth -= 1
            if depth < 0:
                return i
    return None


def enumerate_nested_loops(max_depth: int, body: Program = (Instruction.INCREMENT,)) -> Iterator[Program]:
    """
    Yield loops nested 1..max_depth deep around a body, e.g. '[[++]+]'.

    Each level carries an instruction after its inner loop, so skipping the
    outer loop by jumping to the nearest ']' lands inside it instead.
    """
    block = Seq(tuple(Op(i) for i in body))
    for _ in range(max_depth):
        block = Loop(Seq((block, Op(Instruction.INCREMENT))))
        yield compile_block(block)


# ============================================================
# Boundary Value Tests
# ============================================================

def enumerate_wraparound_tests() -> Iterator[Program]:
    """
    Enumerate programs that step an 8-bit cell across its numeric edges.

    Yields:
        Programs that set cell 0 to a boundary value, then apply +, - or
        both, and leave the result in cell 0
    """
    for value in BOUNDARY_CELL_VALUES:
        setup = (Instruction.INCREMENT,) * value
        yield setup + (Instruction.INCREMENT,)
        yield setup + (Instruction.DECREMENT,)
        yield setup + (Instruction.DECREMENT, Instruction.INCREMENT)


def enumerate_pointer_clamp_tests(max_moves: int = 3) -> Iterator[Program]:
    """Enumerate programs that push the pointer against the left tape edge."""
    for moves in range(1, max_moves + 1):
        yield (Instruction.MOVE_LEFT,) * moves + (Instruction.INCREMENT,)
        yield (Instruction.MOVE_RIGHT, Instruction.MOVE_LEFT) + (Instruction.MOVE_LEFT,) * moves + (Instruction.INCREMENT,)


def enumerate_loop_skip_tests() -> Iterator[Program]:
    """Loops entered with a zero guard, which must run zero times."""
    yield parse_program("[+]")
    yield parse_program("[+]-")
    yield parse_program("[[+]+]")
    yield parse_program(">[+]<+")
    yield parse_program("+-[>+<]")
    yield parse_program("[+[>+[]]]")


# ============================================================
# Comprehensive Test Suites
# ============================================================

def generate_comprehensive_suite(max_length: int = 4) -> Iterator[Program]:
    """
    Generate comprehensive exhaustive test suite with deduplication.

    Combines every CORE_ALPHABET sequence up to max_length with the targeted
    boundary tests, removing duplicates so each program appears once.

    Args:
        max_length: Longest enumerated sequence (4-5 recommended)

    Yields:
        Programs for the suite, balanced or not
    """
    seen = set()

    def sources() -> Iterator[Program]:
        for length in range(max_length + 1):
            yield from enumerate_sequences(length)
        yield from enumerate_nested_loops(4)
        yield from enumerate_wraparound_tests()
        yield from enumerate_pointer_clamp_tests()
        yield from enumerate_loop_skip_tests()

    for program in sources():
        if program not in seen:
            seen.add(program)
            yield program
