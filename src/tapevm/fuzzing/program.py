"""Structured program ADT: single ops, loops and sequences."""
from __future__ import annotations
from dataclasses import dataclass
from random import Random
from typing import List, Tuple, Union

from tapevm.isa import Instruction, Program


# Instructions that may appear outside of loop brackets
STRAIGHT_LINE_OPS = (
    Instruction.MOVE_RIGHT,
    Instruction.MOVE_LEFT,
    Instruction.INCREMENT,
    Instruction.DECREMENT,
    Instruction.WRITE_OUTPUT,
    Instruction.READ_INPUT,
)


@dataclass(frozen=True)
class Op:
    """A single non-loop instruction."""
    instruction: Instruction

    def __post_init__(self):
        if self.instruction not in STRAIGHT_LINE_OPS:
            raise ValueError(f"Op cannot hold a loop bracket, got {self.instruction!r}")


@dataclass(frozen=True)
class Loop:
    """'[' body ']'."""
    body: Block


@dataclass(frozen=True)
class Seq:
    """Blocks executed one after another."""
    items: Tuple[Block, ...]


Block = Union[Op, Loop, Seq]


# =============================================================================
# Compilation (Block -> Instructions)
# =============================================================================

def compile_block_to_list(block: Block) -> List[Instruction]:
    """
    Flatten a block into an instruction list.

    Examples:
        Op(INCREMENT)                         -> '+'
        Loop(Op(DECREMENT))                   -> '[-]'
        Seq((Op(INCREMENT), Loop(Seq(()))))   -> '+[]'
    """
    match block:
        case Op(instruction=instr):
            return [instr]
        case Loop(body=body):
            return [Instruction.LOOP_OPEN] + compile_block_to_list(body) + [Instruction.LOOP_CLOSE]
        case Seq(items=items):
            out: List[Instruction] = []
            for item in items:
                out.extend(compile_block_to_list(item))
            return out
        case _:
            raise ValueError(f"Unknown block type: {block}")


def compile_block(block: Block) -> Program:
    """Compile a block to an instruction sequence. Brackets are always balanced."""
    return tuple(compile_block_to_list(block))


def loop_depth(block: Block) -> int:
    """Deepest loop nesting inside a block."""
    match block:
        case Op():
            return 0
        case Loop(body=body):
            return 1 + loop_depth(body)
        case Seq(items=items):
            return max((loop_depth(item) for item in items), default=0)
        case _:
            raise ValueError(f"Unknown block type: {block}")


# =============================================================================
# Random Program Generation
# =============================================================================


def random_block(rng: Random, max_depth: int = 3, max_len: int = 6) -> Block:
    """
    Generate a random structured program.

    Each item of a sequence is chosen as:
    - Op (75% probability)
    - Loop (25% probability), only while max_depth > 0

    Args:
        rng: Random number generator (use Random(seed) for reproducibility)
        max_depth: Maximum loop nesting
        max_len: Maximum number of items per sequence

    Returns:
        A randomly generated block
    """
    items: List[Block] = []
    for _ in range(rng.randint(0, max_len)):
        if max_depth > 0 and rng.random() < 0.25:
            items.append(Loop(random_block(rng, max_depth - 1, max_len)))
        else:
            items.append(Op(rng.choice(STRAIGHT_LINE_OPS)))
    return Seq(tuple(items))
