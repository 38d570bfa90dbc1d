"""CLI entrypoint: solve a nonogram puzzle file with a SAT backend."""

import argparse
import logging
from pathlib import Path
from typing import List, Optional

from nonogram import format_grid, read_puzzle
from nonogram_errors import NonogramError, ParseError, UnknownBackendError
from nonogram_log import configure_logging, get_logger
from nonogram_pysat import SolveConfig, SolveStatus, puzzle_cnf, solve_nonogram

LOGGER = get_logger(__name__)

EXIT_SOLVED = 0
EXIT_UNSOLVED = 1
EXIT_BAD_INPUT = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Solve square nonograms by compiling line clues to CNF",
    )
    parser.add_argument("puzzle", type=Path, help="Puzzle file (size, column clues, row clues)")
    parser.add_argument(
        "--backend",
        type=str,
        choices=["pysat", "z3"],
        default="pysat",
        help="SAT backend",
    )
    parser.add_argument("--solver", type=str, default="g3", help="PySAT solver name (g3, cd15, m22, ...)")
    parser.add_argument(
        "--all-solutions",
        action="store_true",
        help="Enumerate solutions with blocking clauses instead of stopping at the first",
    )
    parser.add_argument("--max-solutions", type=int, default=None, help="Cap for --all-solutions")
    parser.add_argument("--timeout", type=float, default=None, help="Seconds allowed per solve call")
    parser.add_argument("--dimacs", type=Path, help="Also write the puzzle CNF to this DIMACS file")
    parser.add_argument(
        "--log-level",
        type=str,
        default="WARNING",
        help="Logging level (DEBUG, INFO, WARNING, ERROR)",
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    level = getattr(logging, args.log_level.upper(), logging.WARNING)
    configure_logging(level)

    if args.max_solutions is not None and args.max_solutions < 1:
        parser.error("--max-solutions must be at least 1")

    try:
        puzzle = read_puzzle(args.puzzle)
    except (OSError, ParseError) as exc:
        LOGGER.error("cannot read %s: %s", args.puzzle, exc)
        return EXIT_BAD_INPUT

    if args.dimacs:
        puzzle_cnf(puzzle).to_file(str(args.dimacs))
        LOGGER.info("wrote CNF to %s", args.dimacs)

    config = SolveConfig(
        backend=args.backend,
        solver_name=args.solver,
        all_solutions=args.all_solutions,
        max_solutions=args.max_solutions,
        timeout=args.timeout,
    )
    try:
        result = solve_nonogram(puzzle, config)
    except UnknownBackendError as exc:
        LOGGER.error("bad solver configuration: %s", exc)
        return EXIT_BAD_INPUT
    except NonogramError as exc:
        LOGGER.error("solve failed: %s", exc)
        return EXIT_UNSOLVED

    if result.status is SolveStatus.UNSATISFIABLE:
        print("UNSAT (no solution)")
        return EXIT_UNSOLVED
    if result.status is SolveStatus.UNKNOWN:
        print(f"UNKNOWN (timed out after {args.timeout} s)")
        return EXIT_UNSOLVED

    print(format_grid(puzzle))
    print()
    if args.all_solutions:
        more = "" if result.exhausted else "+"
        print(f"Num solutions: {len(result.solutions)}{more}")
    print("Nonogram valid:", result.valid)
    return EXIT_SOLVED if result.valid else EXIT_UNSOLVED


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
