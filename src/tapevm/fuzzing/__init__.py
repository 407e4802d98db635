"""Fuzzing and enumeration tooling for tapevm."""

from .fuzzer import (
    Outcome, Halted, Rejected, TimedOut, Faulted, Crash,
    Divergence, diff_outcomes,
    FuzzingStatistics,
    run_fuzzer,
)

from .program import (
    Op, Loop, Seq, Block,
    compile_block,
    loop_depth,
    random_block,
)
