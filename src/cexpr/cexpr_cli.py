"""
cexpr command line.

With no option the program starts the interactive script mode.

Example usage:
    cexpr                           # script REPL
    cexpr -e                        # equation REPL
    cexpr -s "x = 2; y = x^10;"     # script REPL with a predefined script
    cexpr -f model.cx               # same, script read from a file
    cexpr -f model.cx --run 5       # run the script 5 times and print variables

Functions:
    run_script(script, runs, ulp_tolerance) -> int:
        Non-interactive batch run; returns a process exit status.

    main(argv=None) -> int:
        Parses arguments, configures logging and dispatches.
"""

import argparse
import logging
import os
import sys

from cexpr.cexpr_constants import DEFAULT_ULP_TOLERANCE, format_number
from cexpr.cexpr_script import ScriptParser

log = logging.getLogger(__name__)

LOG_FORMAT = "%(levelname)s %(name)s: %(message)s"


def configure_logging(verbose: bool = False) -> None:
    """Sets up root logging: DEBUG with ``--verbose``, else ``CEXPR_LOGLEVEL`` or WARNING."""
    level = "DEBUG" if verbose else os.environ.get("CEXPR_LOGLEVEL", "WARNING")
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)


def run_script(
    script: str, runs: int, ulp_tolerance: int = DEFAULT_ULP_TOLERANCE
) -> int:
    """
    Loads ``script`` and evaluates it ``runs`` times in a row.

    Variables start at 0 and carry their values from one run to the next.
    After each run every variable is printed as ``name = value``.

    Returns:
        0 on success, 1 if the script does not parse (errors are printed).
    """
    parser = ScriptParser(ulp_tolerance=ulp_tolerance)
    if not parser.load(script):
        for line in parser.error_report():
            print(line)
        return 1
    log.debug("running script %d time(s)", runs)
    values = [0.0] * len(parser.variable_names)
    for run in range(1, runs + 1):
        parser.evaluate(values)
        print(f"--- run {run} ---")
        for name, value in zip(parser.variable_names, values):
            print(f"{name} = {format_number(value)}")
    return 0


def read_script_file(path: str) -> str | None:
    """
    Reads a script file as UTF-8.

    Returns:
        str | None: The file contents, or None after printing why it could not be read.
    """
    try:
        with open(path, encoding="utf-8") as f:
            return f.read()
    except OSError as e:
        print(f"Cannot open file '{path}': {e.strerror}")
        return None


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cexpr",
        description=(
            "Interprets C-like mathematical expressions and scripts. Without "
            "options it starts the interactive script mode."
        ),
    )
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        "-e",
        "--simple-mode",
        action="store_true",
        help="Interactive simple equation mode",
    )
    mode.add_argument("-s", "--script", metavar="TEXT", help="Script text to load")
    mode.add_argument("-f", "--file", metavar="PATH", help="Load the script from a file")
    parser.add_argument(
        "--run",
        type=int,
        metavar="N",
        help="Run the script N times without prompting and print the variables",
    )
    parser.add_argument(
        "--ulp",
        type=int,
        default=DEFAULT_ULP_TOLERANCE,
        metavar="N",
        help=f"ULP tolerance for comparisons (default: {DEFAULT_ULP_TOLERANCE})",
    )
    parser.add_argument(
        "--verbose", action="store_true", help="Debug logging and parse tree display"
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    """
    Entry point for the ``cexpr`` console script.

    Modes:
        - no option: script REPL
        - ``-e``: equation REPL
        - ``-s TEXT`` / ``-f PATH``: script REPL with the script loaded, or a
          batch run with ``--run N``
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose)

    from cexpr.cexpr_repl import start_equation_repl, start_script_repl

    if args.simple_mode:
        if args.run is not None:
            parser.error("--run needs a script (-s or -f)")
        start_equation_repl(ulp_tolerance=args.ulp, verbose=args.verbose)
        return 0

    script = args.script or ""
    if args.file:
        text = read_script_file(args.file)
        if text is None:
            return 1
        script = text

    if args.run is not None:
        if not script.strip():
            parser.error("--run needs a script (-s or -f)")
        if args.run < 1:
            parser.error("--run expects a positive number of runs")
        return run_script(script, args.run, args.ulp)

    start_script_repl(script, ulp_tolerance=args.ulp)
    return 0


if __name__ == "__main__" and not any("pytest" in arg for arg in sys.argv):
    sys.exit(main())
