"""Execution engine: machine state and the fetch-dispatch-advance loop."""

from dataclasses import dataclass, field
import io
import logging
from typing import BinaryIO, List, Optional, Sequence, Tuple, Union

from .config import DEFAULT_CONFIG, BoundsPolicy, EofPolicy, MachineConfig
from .errors import InputExhaustedError, StepLimitExceeded, TapeBoundsError
from .isa import Instruction, Program, parse_program
from .resolver import JumpTable, resolve

logger = logging.getLogger(__name__)

InputSource = Union[bytes, bytearray, BinaryIO]

# Number of leading cells shown in a memory dump
DUMP_CELLS = 16


# =============================================================================
# Machine State and Results
# =============================================================================

@dataclass
class MachineState:
    """Mutable state of one run. Never shared between machines."""
    tape: List[int]
    pointer: int = 0
    program_counter: int = 0
    steps: int = 0
    output: bytearray = field(default_factory=bytearray)

    @classmethod
    def fresh(cls, config: MachineConfig = DEFAULT_CONFIG) -> 'MachineState':
        return cls(tape=[0] * config.tape_length)


@dataclass(frozen=True)
class RunResult:
    """Final tape, pointer and emitted output of a halted run."""
    tape: Tuple[int, ...]
    pointer: int
    output: bytes
    steps: int

    @property
    def output_text(self) -> str:
        return self.output.decode('latin-1')

    def memory_prefix(self, count: int = DUMP_CELLS) -> Tuple[int, ...]:
        return self.tape[:count]


# =============================================================================
# Machine
# =============================================================================

class Machine:
    """
    Runs one program against a fresh tape.

    Loops are resolved in the constructor, so an unbalanced program raises
    before any instruction executes. The instruction sequence itself is
    only read and may be shared between machines.

    Args:
        instructions: Program to run
        config: Tape geometry and edge-case policies
        input_data: Bytes or a binary stream consumed by READ_INPUT
        output_stream: Optional binary stream receiving each output byte

    Raises:
        UnbalancedLoopError: If the program's brackets do not pair up
        TypeError: If input_data is a str or a text stream
    """

    def __init__(
        self,
        instructions: Sequence[Instruction],
        config: MachineConfig = DEFAULT_CONFIG,
        input_data: InputSource = b"",
        output_stream: Optional[BinaryIO] = None,
    ):
        self.instructions: Program = tuple(instructions)
        self.jump_table: JumpTable = resolve(self.instructions)
        self.config = config
        self.state = MachineState.fresh(config)
        if isinstance(input_data, (bytes, bytearray)):
            input_data = io.BytesIO(bytes(input_data))
        elif isinstance(input_data, (str, io.TextIOBase)):
            raise TypeError("input_data must be bytes or a binary stream, not text")
        self._input = input_data
        self._output_stream = output_stream

    @property
    def halted(self) -> bool:
        return self.state.program_counter >= len(self.instructions)

    def step(self) -> None:
        """
        Execute the instruction at the program counter.

        Does nothing once the machine has halted. Loop branches land on the
        partner bracket itself, which is then evaluated on the next step.

        Raises:
            StepLimitExceeded: If config.max_steps steps have already run
            TapeBoundsError: Pointer overrun under BoundsPolicy.ERROR
            InputExhaustedError: Read past end of input under EofPolicy.ERROR
        """
        if self.halted:
            return

        state = self.state
        config = self.config
        pc = state.program_counter

        if config.max_steps is not None and state.steps >= config.max_steps:
            raise StepLimitExceeded(state.steps, pc)

        instr = self.instructions[pc]
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("pc=%d %s ptr=%d cell=%d",
                         pc, instr.value, state.pointer, state.tape[state.pointer])

        state.steps += 1
        tape = state.tape

        match instr:
            case Instruction.MOVE_RIGHT:
                if state.pointer < len(tape) - 1:
                    state.pointer += 1
                elif config.bounds is BoundsPolicy.ERROR:
                    raise TapeBoundsError(state.pointer + 1, pc)

            case Instruction.MOVE_LEFT:
                if state.pointer > 0:
                    state.pointer -= 1
                elif config.bounds is BoundsPolicy.ERROR:
                    raise TapeBoundsError(-1, pc)

            case Instruction.INCREMENT:
                tape[state.pointer] = (tape[state.pointer] + 1) & config.cell_max

            case Instruction.DECREMENT:
                tape[state.pointer] = (tape[state.pointer] - 1) & config.cell_max

            case Instruction.LOOP_OPEN:
                if tape[state.pointer] == 0:
                    state.program_counter = self.jump_table[pc]
                    return

            case Instruction.LOOP_CLOSE:
                if tape[state.pointer] != 0:
                    state.program_counter = self.jump_table[pc]
                    return

            case Instruction.WRITE_OUTPUT:
                self._write(tape[state.pointer] & 0xFF)

            case Instruction.READ_INPUT:
                self._read(pc)

        state.program_counter = pc + 1

    def run(self) -> RunResult:
        """Step until the program counter passes the last instruction."""
        logger.info("Running %d instructions on a %d-cell tape",
                    len(self.instructions), self.config.tape_length)
        while not self.halted:
            self.step()
        logger.info("Halted after %d steps, pointer at %d",
                    self.state.steps, self.state.pointer)
        return self.result()

    def result(self) -> RunResult:
        state = self.state
        return RunResult(
            tape=tuple(state.tape),
            pointer=state.pointer,
            output=bytes(state.output),
            steps=state.steps,
        )

    def _write(self, value: int) -> None:
        self.state.output.append(value)
        if self._output_stream is not None:
            self._output_stream.write(bytes([value]))
            self._output_stream.flush()

    def _read(self, pc: int) -> None:
        data = self._input.read(1)
        if data:
            self.state.tape[self.state.pointer] = data[0]
            return

        match self.config.eof:
            case EofPolicy.UNCHANGED:
                pass
            case EofPolicy.ZERO:
                self.state.tape[self.state.pointer] = 0
            case EofPolicy.ERROR:
                raise InputExhaustedError(pc)


# =============================================================================
# Convenience API
# =============================================================================

def execute_program(
    instructions: Sequence[Instruction],
    input_data: InputSource = b"",
    config: MachineConfig = DEFAULT_CONFIG,
    output_stream: Optional[BinaryIO] = None,
) -> RunResult:
    """Resolve and run an instruction sequence on a fresh machine."""
    return Machine(instructions, config, input_data, output_stream).run()


def execute_source(
    text: str,
    input_data: InputSource = b"",
    config: MachineConfig = DEFAULT_CONFIG,
    output_stream: Optional[BinaryIO] = None,
) -> RunResult:
    """Convenience function to parse and run program text directly."""
    return execute_program(parse_program(text), input_data, config, output_stream)
