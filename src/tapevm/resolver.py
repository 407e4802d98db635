"""Loop resolution: pair every '[' with its matching ']' before execution."""

import logging
from typing import Dict, List, Sequence, Tuple

from .errors import UnmatchedLoopClose, UnmatchedLoopOpen
from .isa import Instruction

logger = logging.getLogger(__name__)

JumpTable = Dict[int, int]


def resolve(instructions: Sequence[Instruction]) -> JumpTable:
    """
    Build the bidirectional jump table for a program.

    A single left-to-right pass keeps a stack of pending LOOP_OPEN indices.
    Each LOOP_CLOSE pops the innermost pending open, so nested loops pair
    by depth rather than by distance.

    Args:
        instructions: The finalized instruction sequence

    Returns:
        Mapping open -> close and close -> open for every loop

    Raises:
        UnmatchedLoopClose: At the first ']' with nothing open
        UnmatchedLoopOpen: If any '[' is still open at the end
    """
    table: JumpTable = {}
    pending: List[int] = []

    for i, instr in enumerate(instructions):
        if instr is Instruction.LOOP_OPEN:
            pending.append(i)
        elif instr is Instruction.LOOP_CLOSE:
            if not pending:
                raise UnmatchedLoopClose(i)
            j = pending.pop()
            table[j] = i
            table[i] = j

    if pending:
        raise UnmatchedLoopOpen(pending)

    logger.debug("Resolved %d loop(s) in %d instructions", len(table) // 2, len(instructions))
    return table


def loop_pairs(table: JumpTable) -> List[Tuple[int, int]]:
    """Return the (open, close) index pairs of a jump table, sorted by open index."""
    return sorted((a, b) for a, b in table.items() if a < b)
