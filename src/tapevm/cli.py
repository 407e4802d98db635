"""Command-line runner: `tapevm PROGRAM [--input TEXT] ...`."""

import argparse
import sys
from typing import List, Optional

from .config import BoundsPolicy, EofPolicy, MachineConfig, SUPPORTED_CELL_BITS, DEFAULT_TAPE_LENGTH
from .engine import Machine, DUMP_CELLS
from .errors import TapeVMError
from .isa import read_program
from .logging_config import setup_logging, verbosity_to_level

EXIT_OK = 0
EXIT_PROGRAM_ERROR = 1
EXIT_IO_ERROR = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tapevm",
        description="Run a tape-machine program (> < + - [ ] . ,)"
    )
    parser.add_argument(
        "program",
        help="Path to the program file, or '-' to read it from stdin"
    )
    parser.add_argument(
        "--input",
        type=str,
        default=None,
        help="Text fed to ',' instructions (default: read from stdin unless the program is)"
    )
    parser.add_argument(
        "--tape-length",
        type=int,
        default=DEFAULT_TAPE_LENGTH,
        help="Number of cells on the tape (default: %(default)s)"
    )
    parser.add_argument(
        "--cell-bits",
        type=int,
        default=8,
        choices=SUPPORTED_CELL_BITS,
        help="Width of each cell in bits (default: %(default)s)"
    )
    parser.add_argument(
        "--strict-bounds",
        action="store_true",
        help="Fail instead of clamping when the pointer leaves the tape"
    )
    parser.add_argument(
        "--eof",
        type=str,
        default=EofPolicy.UNCHANGED.value,
        choices=[p.value for p in EofPolicy],
        help="Behaviour of ',' after end of input (default: %(default)s)"
    )
    parser.add_argument(
        "--max-steps",
        type=int,
        default=None,
        help="Abort after this many executed instructions"
    )
    parser.add_argument(
        "--dump",
        action="store_true",
        help=f"Print the pointer and first {DUMP_CELLS} cells after the run"
    )
    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Log run progress (-v) or trace every instruction (-vv) to stderr"
    )
    return parser


def config_from_args(args: argparse.Namespace) -> MachineConfig:
    return MachineConfig(
        tape_length=args.tape_length,
        cell_bits=args.cell_bits,
        bounds=BoundsPolicy.ERROR if args.strict_bounds else BoundsPolicy.CLAMP,
        eof=EofPolicy(args.eof),
        max_steps=args.max_steps,
    )


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(verbosity_to_level(args.verbose))

    try:
        config = config_from_args(args)
    except ValueError as e:
        parser.error(str(e))

    try:
        program = read_program(sys.stdin.buffer if args.program == "-" else args.program)
    except OSError as e:
        print(f"tapevm: cannot read {args.program}: {e}", file=sys.stderr)
        return EXIT_IO_ERROR

    if args.input is not None:
        input_data = args.input.encode('utf-8')
    elif args.program == "-":
        input_data = b""
    else:
        input_data = sys.stdin.buffer

    try:
        machine = Machine(program, config, input_data, sys.stdout.buffer)
        result = machine.run()
    except TapeVMError as e:
        sys.stdout.flush()
        print(f"tapevm: {e}", file=sys.stderr)
        return EXIT_PROGRAM_ERROR

    if args.dump:
        cells = ', '.join(str(c) for c in result.memory_prefix())
        print(f"\npointer={result.pointer} steps={result.steps}")
        print(cells)

    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
