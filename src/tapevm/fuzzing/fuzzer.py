"""
Differential fuzzer - runs engine revisions side by side with tapevm.engine.

Each test is a generated program plus a few bytes of input. Both engines
run it under the same step budget and their outcomes are compared field
by field: a halted run must agree on tape, pointer, output and step
count; a rejected program must be rejected at the same bracket.
"""

from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
import logging
import random
import sys
from typing import Callable, List, Optional, Tuple, Union

from tapevm.config import MachineConfig
from tapevm.engine import RunResult, execute_program
from tapevm.errors import StepLimitExceeded, TapeVMError, UnbalancedLoopError
from tapevm.isa import Instruction, Program, format_program
from tapevm.logging_config import setup_logging, verbosity_to_level
from tapevm.registry import describe_revisions, get_available_versions, get_revision
from .program import random_block, compile_block

logger = logging.getLogger(__name__)


# =============================================================================
# Configuration Constants
# =============================================================================

# Structure-unaware generation probabilities
PROB_LOOP_OPEN = 0.12
PROB_LOOP_CLOSE = 0.12
PROB_INCREMENT = 0.22
PROB_DECREMENT = 0.18
PROB_MOVE_RIGHT = 0.14
PROB_MOVE_LEFT = 0.12
PROB_WRITE_OUTPUT = 0.06
PROB_READ_INPUT = 0.04

# Mixed strategy probabilities
PROB_RANDOM_STRATEGY = 0.5


@dataclass
class GeneratorConfig:
    """Configuration for program generators."""
    max_length: int = 24              # For random generator
    max_items: int = 6                # For structured generator
    max_depth: int = 3                # For structured generator
    max_input: int = 4                # Bytes of input per test
    max_steps: int = 5000             # Step budget for every execution


DEFAULT_CONFIG = GeneratorConfig()


# =============================================================================
# Instruction Selection
# =============================================================================

def choose_instruction() -> Instruction:
    """Choose an instruction based on configured probabilities."""
    weights = [
        (Instruction.LOOP_OPEN, int(PROB_LOOP_OPEN * 100)),
        (Instruction.LOOP_CLOSE, int(PROB_LOOP_CLOSE * 100)),
        (Instruction.INCREMENT, int(PROB_INCREMENT * 100)),
        (Instruction.DECREMENT, int(PROB_DECREMENT * 100)),
        (Instruction.MOVE_RIGHT, int(PROB_MOVE_RIGHT * 100)),
        (Instruction.MOVE_LEFT, int(PROB_MOVE_LEFT * 100)),
        (Instruction.WRITE_OUTPUT, int(PROB_WRITE_OUTPUT * 100)),
        (Instruction.READ_INPUT, int(PROB_READ_INPUT * 100)),
    ]
    choices, probs = zip(*weights)
    return random.choices(choices, weights=probs)[0]


# =============================================================================
# Program Generators
# =============================================================================

def generate_random_program(max_length: int = DEFAULT_CONFIG.max_length) -> Program:
    """Generate a random instruction sequence - brackets may not balance."""
    length = random.randint(1, max_length)
    return tuple(choose_instruction() for _ in range(length))


def generate_structured_program(
    max_items: int = DEFAULT_CONFIG.max_items,
    max_depth: int = DEFAULT_CONFIG.max_depth,
) -> Program:
    """
    Generate a program from a random structured block.

    The block is compiled to instructions, so brackets always balance and
    every test reaches the execution stage of both engines.
    """
    rng = random.Random(random.getrandbits(64))
    return compile_block(random_block(rng, max_depth=max_depth, max_len=max_items))


def generate_mixed_strategy_program() -> Program:
    """Pick the random or the structured generator for each test."""
    if random.random() < PROB_RANDOM_STRATEGY:
        return generate_random_program()
    return generate_structured_program()


def generate_input(max_input: int = DEFAULT_CONFIG.max_input) -> bytes:
    return bytes(random.randint(0, 255) for _ in range(random.randint(0, max_input)))


# Generator registry for dispatch
GENERATORS: dict[str, Callable[[], Program]] = {
    "random": generate_random_program,
    "structured": generate_structured_program,
    "mixed": generate_mixed_strategy_program,
}



# =============================================================================
# Run Outcomes
# =============================================================================

@dataclass(frozen=True)
class Halted:
    """The program ran off the end of its instructions."""
    result: RunResult

    def __repr__(self) -> str:
        r = self.result
        return (f"Halted(pointer={r.pointer}, steps={r.steps}, "
                f"output={r.output!r}, cells={list(r.memory_prefix())})")


@dataclass(frozen=True)
class Rejected:
    """Refused before execution; index is the offending bracket."""
    index: int


@dataclass(frozen=True)
class TimedOut:
    """The step budget ran out at this program counter."""
    program_counter: int


@dataclass(frozen=True)
class Faulted:
    """Any other TapeVMError, by class name."""
    error: str


@dataclass(frozen=True)
class Crash:
    """The revision raised something that is not a TapeVMError."""
    reason: str


Outcome = Union[Halted, Rejected, TimedOut, Faulted, Crash]


class Divergence(Enum):
    """A way in which a revision's outcome differs from the reference."""
    KIND = "outcome kind"
    BRACKET = "rejected bracket"
    TAPE = "tape"
    POINTER = "pointer"
    OUTPUT = "output"
    STEPS = "step count"


def _classify(run: Callable[[], RunResult]) -> Outcome:
    try:
        return Halted(run())
    except UnbalancedLoopError as e:
        return Rejected(e.index)
    except StepLimitExceeded as e:
        return TimedOut(e.program_counter)
    except TapeVMError as e:
        return Faulted(type(e).__name__)


def execute_with_reference(
    instructions: Program,
    input_data: bytes = b"",
    max_steps: int = DEFAULT_CONFIG.max_steps,
) -> Outcome:
    """Run a program on tapevm.engine."""
    config = MachineConfig(max_steps=max_steps)
    return _classify(lambda: execute_program(instructions, input_data, config))


def execute_with_revision(
    instructions: Program,
    execute: Callable[..., RunResult],
    input_data: bytes = b"",
    max_steps: int = DEFAULT_CONFIG.max_steps,
) -> Outcome:
    """Run a program on a revision's execute(); foreign exceptions become Crash."""
    try:
        return _classify(lambda: execute(instructions, input_data, max_steps))
    except Exception as e:
        return Crash(repr(e))


def diff_outcomes(expected: Outcome, actual: Outcome) -> Tuple[Divergence, ...]:
    """
    List every way actual differs from expected; empty when they agree.

    Two timeouts or two crashes always agree, since the budget says nothing
    about where a correct engine would have stopped.
    """
    match expected, actual:
        case Halted(result=e), Halted(result=a):
            found = []
            if e.tape != a.tape:
                found.append(Divergence.TAPE)
            if e.pointer != a.pointer:
                found.append(Divergence.POINTER)
            if e.output != a.output:
                found.append(Divergence.OUTPUT)
            if e.steps != a.steps:
                found.append(Divergence.STEPS)
            return tuple(found)
        case Rejected(index=i), Rejected(index=j):
            return () if i == j else (Divergence.BRACKET,)
        case Faulted(error=e), Faulted(error=a):
            return () if e == a else (Divergence.KIND,)
        case (TimedOut(), TimedOut()) | (Crash(), Crash()):
            return ()
        case _:
            return (Divergence.KIND,)


def first_tape_difference(expected: RunResult, actual: RunResult) -> Optional[int]:
    """Index of the first cell on which two final tapes disagree."""
    for i, (e, a) in enumerate(zip(expected.tape, actual.tape)):
        if e != a:
            return i
    return None


# =============================================================================
# Statistics Tracking
# =============================================================================

@dataclass
class FuzzingStatistics:
    """Counts outcomes of the reference engine and divergences of the revision."""
    total_tests: int = 0
    rejected_programs: int = 0
    timeouts: int = 0
    crashes: int = 0
    mismatched_tests: int = 0
    divergences: Counter = field(default_factory=Counter)

    @property
    def halted_tests(self) -> int:
        return self.total_tests - self.rejected_programs - self.timeouts

    @property
    def mismatch_rate(self) -> float:
        return (self.mismatched_tests / self.total_tests * 100) if self.total_tests > 0 else 0.0

    def record_test(self, expected: Outcome, actual: Outcome,
                    divergences: Tuple[Divergence, ...]) -> None:
        self.total_tests += 1
        match expected:
            case Rejected():
                self.rejected_programs += 1
            case TimedOut():
                self.timeouts += 1
        if isinstance(actual, Crash):
            self.crashes += 1
        if divergences:
            self.mismatched_tests += 1
            self.divergences.update(divergences)

    def print_summary(self) -> None:
        print("\n" + "=" * 60)
        print("Fuzzer Summary")
        print("-" * 40)
        print(f"Programs run:              {self.total_tests}")
        print(f"  halted:                  {self.halted_tests}")
        print(f"  rejected (unbalanced):   {self.rejected_programs}")
        print(f"  out of steps:            {self.timeouts}")
        print(f"Revision crashes:          {self.crashes}")
        print(f"Mismatched programs:       {self.mismatched_tests}")

        if not self.mismatched_tests:
            print("\nRevision agrees with the reference engine.")
            return
        print(f"Mismatch rate:             {self.mismatch_rate:.1f}%")
        for divergence in Divergence:
            if self.divergences[divergence]:
                print(f"  {divergence.value + ':':<24}{self.divergences[divergence]}")


# =============================================================================
# Reporting
# =============================================================================

def report_divergence(test_num: int, instructions: Program, input_data: bytes,
                      expected: Outcome, actual: Outcome,
                      divergences: Tuple[Divergence, ...]) -> None:
    """Print the program and, per diverging field, what each engine produced."""
    print(f"\nTest {test_num}: {', '.join(d.value for d in divergences)} differ")
    print(f"  Program:  {format_program(instructions)}")
    print(f"  Input:    {input_data.hex() or '(none)'}")

    if not isinstance(expected, Halted) or not isinstance(actual, Halted):
        print(f"  Expected: {expected}")
        print(f"  Actual:   {actual}")
        return

    e, a = expected.result, actual.result
    for divergence in divergences:
        match divergence:
            case Divergence.TAPE:
                cell = first_tape_difference(e, a)
                print(f"  tape[{cell}]: {e.tape[cell]} != {a.tape[cell]}")
            case Divergence.POINTER:
                print(f"  pointer: {e.pointer} != {a.pointer}")
            case Divergence.OUTPUT:
                print(f"  output: {e.output!r} != {a.output!r}")
            case Divergence.STEPS:
                print(f"  steps: {e.steps} != {a.steps}")


# =============================================================================
# Fuzzer Main Logic
# =============================================================================

def run_single_test(
    instructions: Program,
    input_data: bytes,
    execute: Callable[..., RunResult],
    max_steps: int = DEFAULT_CONFIG.max_steps,
) -> Tuple[Outcome, Outcome, Tuple[Divergence, ...]]:
    """Run one program on both engines and return (expected, actual, divergences)."""
    expected = execute_with_reference(instructions, input_data, max_steps)
    actual = execute_with_revision(instructions, execute, input_data, max_steps)
    return expected, actual, diff_outcomes(expected, actual)


def run_fuzzer(
    num_tests: int = 1000,
    seed: Optional[int] = None,
    impl: str = "v1",
    generator: str = "random",
    verbose: bool = True,
) -> FuzzingStatistics:
    """
    Fuzz one revision against the reference engine.

    Args:
        num_tests: Number of generated programs
        seed: Random seed for reproducibility
        impl: Revision to test (see registry.get_available_versions())
        generator: "random", "structured", or "mixed"
        verbose: Print the header, each divergence and the summary

    Raises:
        ValueError: If impl or generator is unknown
    """
    if seed is not None:
        random.seed(seed)

    revision = get_revision(impl)
    if generator not in GENERATORS:
        raise ValueError(f"Unknown generator: {generator}. Available: {', '.join(GENERATORS)}")
    generator_func = GENERATORS[generator]

    stats = FuzzingStatistics()
    logger.info("Fuzzing %s with the %s generator, seed=%s", impl, generator, seed)

    if verbose:
        print(f"tapevm Fuzzer - {num_tests} programs, {generator} generator")
        print(f"Revision: {revision.summary}")
        print("=" * 60)

    for i in range(num_tests):
        instructions = generator_func()
        input_data = generate_input()
        expected, actual, divergences = run_single_test(instructions, input_data, revision.execute)
        stats.record_test(expected, actual, divergences)

        if divergences and verbose:
            report_divergence(i + 1, instructions, input_data, expected, actual, divergences)

    if verbose:
        stats.print_summary()
    return stats


# =============================================================================
# CLI Entry Point
# =============================================================================

def main(argv: Optional[List[str]] = None) -> int:
    import argparse

    versions = get_available_versions()
    parser = argparse.ArgumentParser(description="Differential fuzzer for tapevm engine revisions")
    parser.add_argument(
        "-n", "--num-tests",
        type=int,
        default=1000,
        help="Number of generated programs (default: %(default)s)"
    )
    parser.add_argument(
        "-s", "--seed",
        type=int,
        default=None,
        help="Random seed for reproducibility"
    )
    parser.add_argument(
        "-i", "--impl",
        type=str,
        default=versions[0],
        choices=versions,
        help="Revision to fuzz (default: %(default)s)"
    )
    parser.add_argument(
        "-g", "--generator",
        type=str,
        default="random",
        choices=list(GENERATORS),
        help="Program generator (default: %(default)s)"
    )
    parser.add_argument(
        "--list",
        action="store_true",
        help="List the available revisions and exit"
    )
    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Log fuzzer progress to stderr"
    )

    args = parser.parse_args(argv)
    setup_logging(verbosity_to_level(args.verbose))

    if args.list:
        for version, summary in describe_revisions():
            print(f"{version}: {summary}")
        return 0

    stats = run_fuzzer(
        num_tests=args.num_tests,
        seed=args.seed,
        impl=args.impl,
        generator=args.generator
    )
    return 1 if stats.mismatched_tests else 0


if __name__ == "__main__":
    sys.exit(main())
