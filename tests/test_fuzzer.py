"""
Tests for the differential fuzzer and the revision registry.

Run with: uv run python tests/test_fuzzer.py
"""

import contextlib
import io
import random

from tapevm import (
    parse_program, RunResult,
    Revision, get_available_versions, get_implementation, get_revision,
)
from tapevm.fuzzing import (
    Halted, Rejected, TimedOut, Faulted, Crash,
    Divergence, diff_outcomes, FuzzingStatistics, run_fuzzer,
)
from tapevm.fuzzing.enumeration import is_balanced
from tapevm.fuzzing.fuzzer import (
    GENERATORS,
    execute_with_reference,
    execute_with_revision,
    first_tape_difference,
    generate_random_program,
    generate_structured_program,
    main,
    report_divergence,
    run_single_test,
)
from tapevm.registry import describe_revisions, revision_number


def halted(tape, pointer=0, output=b"", steps=0):
    return Halted(RunResult(tuple(tape), pointer, output, steps))


def test_registry():
    print("Registry Tests")
    print("=" * 50)

    assert get_available_versions() == ["v1", "v2"]
    print("✓ Discovers v1 and v2, oldest first")

    revision = get_revision("v1")
    assert isinstance(revision, Revision)
    assert revision.number == 1
    assert revision.execute is get_implementation("v1").execute
    assert revision.summary == "Engine Revision v1 - Nearest-Bracket Scan"
    print("✓ Revision carries module, number and docstring summary")

    assert [v for v, _ in describe_revisions()] == ["v1", "v2"]
    assert revision_number("v12") == 12
    assert revision_number("helpers") is None
    print("✓ Only v<N> modules count as revisions")

    try:
        get_implementation("v99")
        assert False, "Should have raised"
    except ValueError as e:
        assert "v1, v2" in str(e)
    print("✓ Unknown revision raises ValueError")


def test_reference_outcomes():
    print("\nReference Outcome Tests")
    print("=" * 50)

    outcome = execute_with_reference(parse_program("+++."))
    assert isinstance(outcome, Halted)
    assert outcome.result.output == b"\x03"
    print("✓ Balanced program halts")

    assert execute_with_reference(parse_program("+]")) == Rejected(1)
    assert execute_with_reference(parse_program("[[]")) == Rejected(0)
    print("✓ Unbalanced program rejected at its bracket")

    outcome = execute_with_reference(parse_program("+[]"), max_steps=50)
    assert isinstance(outcome, TimedOut)
    assert outcome.program_counter in (1, 2)
    print("✓ Non-terminating program times out inside its loop")


def test_revision_outcomes():
    print("\nRevision Outcome Tests")
    print("=" * 50)

    def broken(instructions, input_data, max_steps):
        raise KeyError("boom")

    assert isinstance(execute_with_revision(parse_program("+"), broken), Crash)
    print("✓ Foreign exceptions become crashes")

    v1 = get_implementation("v1").execute
    assert isinstance(execute_with_revision(parse_program("]+"), v1), Halted)
    assert isinstance(execute_with_revision(parse_program("+]"), v1), Crash)
    print("✓ v1 only fails on a stray ']' it branches on")

    v2 = get_implementation("v2").execute
    assert execute_with_revision(parse_program("]["), v2) == Rejected(0)
    print("✓ v2 rejects unbalanced programs up front")


def test_diff_outcomes():
    print("\nDivergence Tests")
    print("=" * 50)

    base = halted((0, 1), pointer=1, output=b"a", steps=3)
    assert diff_outcomes(base, halted((0, 1), 1, b"a", 3)) == ()
    assert diff_outcomes(base, halted((0, 2), 1, b"a", 3)) == (Divergence.TAPE,)
    assert diff_outcomes(base, halted((0, 1), 0, b"a", 3)) == (Divergence.POINTER,)
    assert diff_outcomes(base, halted((0, 1), 1, b"b", 3)) == (Divergence.OUTPUT,)
    assert diff_outcomes(base, halted((0, 1), 1, b"a", 9)) == (Divergence.STEPS,)
    assert diff_outcomes(base, halted((5, 1), 0, b"", 3)) == (
        Divergence.TAPE, Divergence.POINTER, Divergence.OUTPUT,
    )
    print("✓ Halted runs are compared field by field")

    assert diff_outcomes(Rejected(2), Rejected(2)) == ()
    assert diff_outcomes(Rejected(2), Rejected(0)) == (Divergence.BRACKET,)
    print("✓ Rejections must name the same bracket")

    assert diff_outcomes(TimedOut(1), TimedOut(4)) == ()
    assert diff_outcomes(Crash("x"), Crash("y")) == ()
    assert diff_outcomes(Faulted("TapeBoundsError"), Faulted("InputExhaustedError")) == (Divergence.KIND,)
    assert diff_outcomes(base, TimedOut(0)) == (Divergence.KIND,)
    assert diff_outcomes(Rejected(0), Crash("x")) == (Divergence.KIND,)
    print("✓ Different outcome kinds diverge")

    assert first_tape_difference(base.result, halted((0, 7)).result) == 1
    assert first_tape_difference(base.result, base.result) is None
    print("✓ first_tape_difference")


def test_nested_loop_regression():
    print("\nNested Loop Regression Tests")
    print("=" * 50)

    # skipping '[[+]+]' must not land on the inner ']'
    program = parse_program("[[+]+]")
    expected, actual, divergences = run_single_test(program, b"", get_implementation("v1").execute, 1000)
    assert isinstance(expected, Halted)
    assert isinstance(actual, TimedOut)
    assert divergences == (Divergence.KIND,)
    _, _, divergences = run_single_test(program, b"", get_implementation("v2").execute, 1000)
    assert divergences == ()
    print("✓ v1 mis-resolves nested loops, v2 does not")

    # v1 skips to the inner ']', then runs the rest of the outer body once
    program = parse_program("[[]+.-]")
    expected, actual, divergences = run_single_test(program, b"", get_implementation("v1").execute, 1000)
    assert expected.result.output == b""
    assert actual.result.output == b"\x01"
    assert divergences == (Divergence.OUTPUT, Divergence.STEPS)
    print("✓ A halted v1 run is classified by output and step count")


def test_report():
    expected = halted((0, 5), pointer=1, output=b"x", steps=4)
    actual = halted((0, 6), pointer=1, output=b"y", steps=4)
    divergences = diff_outcomes(expected, actual)
    out = io.StringIO()
    with contextlib.redirect_stdout(out):
        report_divergence(3, parse_program("+."), b"", expected, actual, divergences)
    text = out.getvalue()
    assert "Test 3: tape, output differ" in text
    assert "tape[1]: 5 != 6" in text
    assert "output: b'x' != b'y'" in text
    print("✓ Reports name each diverging field")


def test_generators():
    print("\nGenerator Tests")
    print("=" * 50)

    assert set(GENERATORS) == {"random", "structured", "mixed"}

    random.seed(7)
    for _ in range(100):
        assert is_balanced(generate_structured_program())
    print("✓ Structured generator always balances")

    random.seed(7)
    programs = [generate_random_program() for _ in range(200)]
    assert all(1 <= len(p) <= 24 for p in programs)
    assert any(not is_balanced(p) for p in programs)
    print("✓ Random generator produces unbalanced programs too")


def test_statistics():
    print("\nStatistics Tests")
    print("=" * 50)

    stats = FuzzingStatistics()
    ok = halted((0,))
    stats.record_test(ok, ok, ())
    stats.record_test(Rejected(0), Crash("x"), (Divergence.KIND,))
    stats.record_test(TimedOut(3), TimedOut(3), ())
    stats.record_test(ok, halted((1,)), (Divergence.TAPE,))
    assert stats.total_tests == 4
    assert stats.rejected_programs == 1
    assert stats.timeouts == 1
    assert stats.halted_tests == 2
    assert stats.crashes == 1
    assert stats.mismatched_tests == 2
    assert stats.divergences[Divergence.KIND] == 1
    assert stats.divergences[Divergence.TAPE] == 1
    assert stats.mismatch_rate == 50.0
    assert FuzzingStatistics().mismatch_rate == 0.0
    print("✓ Reference outcomes and divergences counted separately")


def test_run_fuzzer():
    print("\nFuzzer Run Tests")
    print("=" * 50)

    stats = run_fuzzer(num_tests=300, seed=11, impl="v2", generator="mixed", verbose=False)
    assert stats.total_tests == 300
    assert stats.mismatched_tests == 0
    print("✓ v2 agrees with the reference engine")

    stats = run_fuzzer(num_tests=300, seed=11, impl="v1", generator="random", verbose=False)
    assert stats.mismatched_tests > 0
    assert stats.divergences[Divergence.KIND] > 0
    print(f"✓ v1 disagrees ({stats.mismatched_tests} programs, {dict(stats.divergences)})")

    again = run_fuzzer(num_tests=300, seed=11, impl="v1", generator="random", verbose=False)
    assert again == stats
    print("✓ Same seed, same statistics")

    try:
        run_fuzzer(num_tests=1, impl="v2", generator="grammar", verbose=False)
        assert False, "Should have raised"
    except ValueError:
        pass
    print("✓ Unknown generator raises ValueError")


def test_fuzzer_cli():
    out = io.StringIO()
    with contextlib.redirect_stdout(out):
        assert main(["--list"]) == 0
    assert "v1: Engine Revision v1 - Nearest-Bracket Scan" in out.getvalue()

    out = io.StringIO()
    with contextlib.redirect_stdout(out):
        assert main(["-n", "50", "-s", "3", "-i", "v2", "-g", "structured"]) == 0
    assert "Revision agrees with the reference engine." in out.getvalue()
    print("✓ tapevm-fuzz lists revisions and exits 0 when they agree")


if __name__ == "__main__":
    print("tapevm Fuzzer Tests")
    print("=" * 60)
    print()

    test_registry()
    test_reference_outcomes()
    test_revision_outcomes()
    test_diff_outcomes()
    test_nested_loop_regression()
    test_report()
    test_generators()
    test_statistics()
    test_run_fuzzer()
    test_fuzzer_cli()

    print("\n" + "=" * 60)
    print("All tests passed!")
