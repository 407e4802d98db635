"""tapevm: a virtual machine for the eight-instruction tape language."""

from .isa import (
    # Instructions
    Instruction, Program, SOURCE_CHARACTERS,
    # Translation
    parse_program, format_program, read_program,
)

from .errors import (
    TapeVMError,
    UnbalancedLoopError, UnmatchedLoopOpen, UnmatchedLoopClose,
    TapeBoundsError, InputExhaustedError, StepLimitExceeded,
)

from .config import (
    MachineConfig, BoundsPolicy, EofPolicy, DEFAULT_CONFIG,
)

from .resolver import JumpTable, resolve, loop_pairs

from .engine import (
    MachineState, Machine, RunResult,
    execute_program, execute_source,
)

from .registry import (
    Revision,
    get_available_versions,
    get_implementation,
    get_revision,
)

__version__ = "0.1.0"
