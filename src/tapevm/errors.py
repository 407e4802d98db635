"""Exceptions raised by the tape machine.

Only the loop errors occur under the default configuration. The others are
raised when a caller opts into a strict policy through MachineConfig.
"""

from typing import Iterable, Tuple


class TapeVMError(Exception):
    """Base exception for all tapevm errors."""
    pass


# =============================================================================
# Loop resolution
# =============================================================================

class UnbalancedLoopError(TapeVMError):
    """Raised before execution when loop brackets do not pair up."""

    def __init__(self, index: int, message: str):
        super().__init__(message)
        self.index = index


class UnmatchedLoopClose(UnbalancedLoopError):
    """A ']' with no pending '[' to its left."""

    def __init__(self, index: int):
        super().__init__(index, f"Unmatched ']' at instruction {index}")


class UnmatchedLoopOpen(UnbalancedLoopError):
    """One or more '[' still open when the program ends."""

    def __init__(self, indices: Iterable[int]):
        self.indices: Tuple[int, ...] = tuple(sorted(indices))
        if not self.indices:
            raise ValueError("UnmatchedLoopOpen requires at least one index")
        positions = ', '.join(str(i) for i in self.indices)
        plural = "s" if len(self.indices) > 1 else ""
        super().__init__(self.indices[0], f"Unmatched '[' at instruction{plural} {positions}")


# =============================================================================
# Strict execution policies
# =============================================================================

class TapeBoundsError(TapeVMError):
    """Pointer would move off the tape (BoundsPolicy.ERROR only)."""

    def __init__(self, pointer: int, program_counter: int):
        super().__init__(
            f"Pointer moved out of tape bounds to {pointer} at instruction {program_counter}"
        )
        self.pointer = pointer
        self.program_counter = program_counter


class InputExhaustedError(TapeVMError):
    """Input read after end of input (EofPolicy.ERROR only)."""

    def __init__(self, program_counter: int):
        super().__init__(f"Input exhausted at instruction {program_counter}")
        self.program_counter = program_counter


class StepLimitExceeded(TapeVMError):
    """Run stopped after the configured max_steps."""

    def __init__(self, steps: int, program_counter: int):
        super().__init__(f"Step limit of {steps} reached at instruction {program_counter}")
        self.steps = steps
        self.program_counter = program_counter
