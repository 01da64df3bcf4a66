from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Any, Sequence

from .errors import PbtRunError, format_error
from .runner import PropertyRunner
from .workspace import Workspace

logger = logging.getLogger("pbt_run")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pbt-run",
        description="Run property-based test suites and manage their counterexamples",
        argument_default=argparse.SUPPRESS,
    )
    parser.add_argument(
        "--project-dir",
        default=".",
        help="Path to the project root (defaults to the current directory).",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level for run progress.",
    )
    parser.add_argument(
        "-d", "--dir",
        help='Directory where the property tests are located (defaults to "test").',
    )
    parser.add_argument(
        "-m", "--module",
        help="Name of one or more modules to test (comma-separated).",
    )
    parser.add_argument(
        "-p", "--prop",
        dest="properties",
        help="Name of properties to test within a specified module (comma-separated).",
    )
    parser.add_argument(
        "-n", "--numtests",
        type=int,
        help="Number of tests to run when testing a given property.",
    )
    parser.add_argument(
        "-v", "--verbose",
        action=argparse.BooleanOptionalAction,
        help="Each property tested shows its output or not.",
    )
    parser.add_argument("-c", "--cover", action="store_true", help="Generate cover data.")
    parser.add_argument(
        "--retry",
        action="store_true",
        help="If failing test case counterexamples have been stored, they are retried.",
    )
    parser.add_argument(
        "--regressions",
        action="store_true",
        help="Replays the test cases stored in the regression file.",
    )
    parser.add_argument(
        "--store",
        action="store_true",
        help="Stores the last counterexamples into the regression file.",
    )
    parser.add_argument(
        "--long-result",
        action=argparse.BooleanOptionalAction,
        help="Return counterexamples on failure rather than just False.",
    )
    parser.add_argument(
        "--start-size", type=int, help="Initial value of the size parameter."
    )
    parser.add_argument(
        "--max-size", type=int, help="Maximum value of the size parameter."
    )
    parser.add_argument(
        "--max-shrinks",
        type=int,
        help="Maximum number of times a failing test case is shrunk before returning.",
    )
    parser.add_argument(
        "--noshrink",
        action=argparse.BooleanOptionalAction,
        help="Do not attempt to shrink failing test cases.",
    )
    parser.add_argument(
        "--constraint-tries",
        type=int,
        help="Maximum tries before a such_that() generator gives up on an instance.",
    )
    parser.add_argument(
        "--spec-timeout",
        type=int,
        help="Duration, in milliseconds, after which an input is considered failing.",
    )
    parser.add_argument(
        "--any-to-integer",
        action=argparse.BooleanOptionalAction,
        help="Generate integers for anything() to speed up execution.",
    )
    parser.add_argument(
        "--on-output",
        help="Output function 'namespace:symbol', called as f(format, args), for all engine output.",
    )
    parser.add_argument(
        "--sys-config",
        help="Config file(s) to load before starting tests (comma-separated).",
    )
    return parser


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    return build_parser().parse_args(argv)


def setup_logging(level: str) -> None:
    if logger.handlers:
        return
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        logging.Formatter(
            fmt="%(asctime)s [%(levelname)s] %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%SZ",
        )
    )
    logger.addHandler(handler)
    logger.setLevel(level)


def cli_opts(args: argparse.Namespace) -> dict[str, Any]:
    """Options actually given on the command line, keyed like the project config."""
    opts = dict(vars(args))
    opts.pop("project_dir", None)
    opts.pop("log_level", None)
    return opts


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    setup_logging(args.log_level)

    try:
        workspace = Workspace.from_project(Path(args.project_dir))
        PropertyRunner.from_opts(workspace, cli_opts(args)).run()
    except PbtRunError as exc:
        print(format_error(exc), file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
