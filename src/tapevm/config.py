"""Machine configuration."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

DEFAULT_TAPE_LENGTH = 30000
DEFAULT_CELL_BITS = 8
SUPPORTED_CELL_BITS = (8, 16, 32)


class BoundsPolicy(Enum):
    """What happens when the pointer is moved past either end of the tape."""
    CLAMP = "clamp"
    ERROR = "error"


class EofPolicy(Enum):
    """What READ_INPUT does once the input is exhausted."""
    UNCHANGED = "unchanged"
    ZERO = "zero"
    ERROR = "error"


@dataclass(frozen=True)
class MachineConfig:
    """Tape geometry and edge-case policies for one machine."""
    tape_length: int = DEFAULT_TAPE_LENGTH
    cell_bits: int = DEFAULT_CELL_BITS
    bounds: BoundsPolicy = BoundsPolicy.CLAMP
    eof: EofPolicy = EofPolicy.UNCHANGED
    max_steps: Optional[int] = None

    def __post_init__(self):
        if self.tape_length < 1:
            raise ValueError(f"tape_length must be at least 1, got {self.tape_length}")
        if self.cell_bits not in SUPPORTED_CELL_BITS:
            raise ValueError(
                f"cell_bits must be one of {SUPPORTED_CELL_BITS}, got {self.cell_bits}"
            )
        if not isinstance(self.bounds, BoundsPolicy):
            raise TypeError(f"bounds must be a BoundsPolicy, got {self.bounds!r}")
        if not isinstance(self.eof, EofPolicy):
            raise TypeError(f"eof must be an EofPolicy, got {self.eof!r}")
        if self.max_steps is not None and self.max_steps < 1:
            raise ValueError(f"max_steps must be positive or None, got {self.max_steps}")

    @property
    def cell_max(self) -> int:
        return (1 << self.cell_bits) - 1


DEFAULT_CONFIG = MachineConfig()
