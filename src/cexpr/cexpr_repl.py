"""
Interactive front ends.

Two read-eval-print loops share the help text and input handling:

- `start_equation_repl`: one expression per line, result printed with
  12 significant digits. Variables created by one line stay available
  (with their values) to the following lines.
- `start_script_repl`: ``start`` ... ``end`` defines a script, ``run``
  executes it against persistent values, ``variables`` lists them and
  any other line runs as a one-line script on the same variables.

Both loops read with `input()`, stop on ``exit`` / ``quit``, end of input
or Ctrl-C, and understand ``help [topic]``.
"""

import logging

from cexpr.cexpr_constants import (
    BUILTIN_CONSTANTS,
    DEFAULT_ULP_TOLERANCE,
    format_number,
)
from cexpr.cexpr_equation import Equation
from cexpr.cexpr_random import RandomState
from cexpr.cexpr_script import ScriptParser

log = logging.getLogger(__name__)

NOT_DEFINED = (
    "The script is not defined. Type 'start' to define the\n"
    "script, and 'end' when you have finished."
)

HELP_TOPICS: dict[str, str] = {
    "constants": "\n".join(
        ["The recognized constants are:"]
        + [f"  - {name:<9} {value:f}" for name, value in BUILTIN_CONSTANTS.items()]
    ),
    "functions": """\
The recognized functions are:
  - sqrt(x)       The square root of x.
  - cbrt(x)       The cubic root of x.
  - pow(x, y)     x raised to the power of y.
  - exp(x)        The exponential of x (e raised to the power of x).
  - log10(x)      The base 10 logarithm of x.
  - log(x)        The natural logarithm of x.
  - ln(x)         Same as log(x).
  - ceil(x)       Round x up.
  - floor(x)      Round x down.
  - round(x)      Round x to the nearest integer, halves away from zero.
  - fabs(x)       Absolute value of x.
  - abs(x)        Same as fabs(x).
  - sign(x)       -1 if x is negative, 1 otherwise.
  - cos(x), sin(x), tan(x), acos(x), asin(x), atan(x)
                  Trigonometric functions (radians).
  - atan2(y, x)   The arc tangent of y/x using the signs of both.
  - cosh(x), sinh(x), tanh(x), acosh(x), asinh(x), atanh(x)
                  Hyperbolic functions.
  - degToRad(x)   Convert degrees to radians.
  - radToDeg(x)   Convert radians to degrees.
  - min(x, y)     The smaller of x and y.
  - max(x, y)     The greater of x and y.
  - urand(a, b)   Uniform random number between a and b.
  - nrand(m, s)   Normal random number with mean m and standard deviation s.
  - rands(n)      Seed the random generator with n and return the seed.
  - if(x, y, z)   If x is true (not equal to zero) return y, otherwise z.
  - print(...)    Print values and "strings" separated by spaces.""",
    "operators": """\
The recognized operators are:
  - x + y     Add y to x.
  - x - y     Subtract y from x.
  - x * y     Multiply x and y.
  - x / y     Divide x by y.
  - x % y     Remainder of x divided by y.
  - x^y       Raise x to the power of y (same as pow(x, y)).
  - +x or -x  Unary plus and minus operators.
  - ++x, --x  Increment or decrement x and return the new value.
  - x && y    Logical and (1 if x and y are both non zero).
  - x || y    Logical or (1 if x or y is non zero).
  - x == y    Test equality.
  - x != y    Test inequality.
  - x < y     1 if x is smaller than y.
  - x <= y    1 if x is smaller than or equal to y.
  - x > y     1 if x is greater than y.
  - x >= y    1 if x is greater than or equal to y.
  - x = y     Assignment (set x to y and return y).
  - x += y, x -= y, x *= y, x /= y
              Compound assignment.""",
    "script": """\
A script consists of one or more mathematical expressions separated
by a ';'. It can also contain conditional statements to control the
flow of the execution. You can also use variables.
Example:
  variable1 = variable2 * 1.56325 + 17.4;
  if (variable1 >= 0) {
    variable1 = sqrt(variable1);
  }
  // This is a valid comment.
  # This is another valid comment.
  /* And so is this one. */
  variable4 = 0;
  if (variable1 > 1) {
    variable3 = 1 / sqrt(variable1 - 1);
    variable4 = variable3 + 1;
  } else if (variable1 > 0) {
    variable3 = 1 / sqrt(variable1);
    variable4 = variable3 - 1;
  } else {
    variable3 = 0;
  }
  while (variable4 > 1) {
    variable4 = variable4 / 2;
  }""",
}

EQUATION_HELP = """\
Evaluates C-like mathematical expressions.
Type 'help topic' to get help on a specific topic.
Topics are: 'constants', 'functions', 'operators'
Type 'verbose' to toggle the display of the parse tree.
Type 'quit' or 'exit' to quit the program."""

SCRIPT_HELP = """\
Evaluates C-like script.
The following commands are recognized:
  - 'start'     Start defining the script. Type 'end' to finish the script
                definition. The script will consist of everything you have
                typed between 'start' and 'end'.
  - 'script'    Print the previously defined script.
  - 'variables' Print the list of variables in the previously defined script.
  - 'run'       Run the previously defined script.
  - 'help [topic]'   Print this help or help on a specific topic. Topics are:
                     'constants', 'functions', 'operators' and 'script'.
  - 'quit' or 'exit' Quit the program.
Any other line is run as a one-line script on the script variables."""


def help_command(line: str) -> str | None:
    """Returns the topic of a ``help [topic]`` line ("" for bare help), else None."""
    parts = line.split(None, 1)
    if not parts or parts[0] != "help":
        return None
    return parts[1].strip() if len(parts) > 1 else ""


def print_help(topic: str, script_mode: bool = False) -> None:
    """
    Prints a help topic, or the mode help when the topic is unknown.

    Args:
        topic (str): Requested topic, "" for the general help.
        script_mode (bool): Use the script mode help and allow the ``script`` topic.
    """
    if topic in HELP_TOPICS and (topic != "script" or script_mode):
        print(HELP_TOPICS[topic])
    else:
        print(SCRIPT_HELP if script_mode else EQUATION_HELP)


def print_report(lines: list[str]) -> None:
    for line in lines:
        print(line)


def start_equation_repl(
    ulp_tolerance: int = DEFAULT_ULP_TOLERANCE, verbose: bool = False
) -> None:
    """
    Runs the interactive equation mode until ``exit``, ``quit``, EOF or Ctrl-C.

    Args:
        ulp_tolerance (int): ULP tolerance for comparisons.
        verbose (bool): Print the parse tree before each result.
    """
    print("Starting simple equation mode.\nType 'help' to get some help.")
    random = RandomState()
    names: list[str] = []
    values: list[float] = []

    while True:
        try:
            line = input(">>> ").strip()
        except (KeyboardInterrupt, EOFError):
            print("\nExiting.")
            return
        if not line:
            continue
        if line in ("exit", "quit"):
            print("Exiting.")
            return
        topic = help_command(line)
        if topic is not None:
            print_help(topic)
            continue
        if line == "verbose":
            verbose = not verbose
            print(f"[mode] >>> Verbose mode {'ON' if verbose else 'OFF'}")
            continue

        eq = Equation(ulp_tolerance=ulp_tolerance, random=random)
        if not eq.parse(line, names, auto_add=True):
            print_report(eq.error_report())
            continue
        if verbose:
            print(eq.root.describe())
        # earlier variables keep their slots; new ones start at 0
        current = values + [0.0] * (len(eq.variable_names) - len(values))
        print(format_number(eq.evaluate(current)))
        names, values = eq.variable_names, current
        log.debug("equation repl variables: %s", names)


class ScriptSession:
    """State behind the script REPL: the script text, its parser and values."""

    def __init__(
        self, script: str = "", ulp_tolerance: int = DEFAULT_ULP_TOLERANCE
    ) -> None:
        self.random = RandomState()
        self.parser = ScriptParser(ulp_tolerance=ulp_tolerance, random=self.random)
        self.line_parser = ScriptParser(
            ulp_tolerance=ulp_tolerance, random=self.random
        )
        self.script = ""
        self.defined = False
        self.values: list[float] = []
        if script:
            self.define(script)

    def define(self, script: str) -> bool:
        """Harvests and parses ``script``; values restart at 0."""
        self.script = script
        self.values = []
        self.defined = False
        if not script.strip():
            return False
        if not self.parser.load(script):
            print_report(self.parser.error_report())
            return False
        self.values = [0.0] * len(self.parser.variable_names)
        self.defined = True
        return True

    @property
    def variable_names(self) -> list[str]:
        return self.parser.variable_names if self.defined else []

    def run(self) -> None:
        """Evaluates the defined script once against the session values."""
        self.parser.evaluate(self.values)

    def show_variables(self) -> None:
        """Prints every variable as ``name = value``."""
        for name, value in zip(self.variable_names, self.values):
            print(f"{name} = {format_number(value)}")

    def run_line(self, line: str) -> bool:
        """Runs ``line`` as a one-line script on the session variables."""
        if not line.rstrip().endswith((";", "}")):
            line += ";"
        if not self.line_parser.parse(line, self.variable_names):
            print_report(self.line_parser.error_report("Equation contains"))
            return False
        self.line_parser.evaluate(self.values)
        return True


def start_script_repl(
    script: str = "", ulp_tolerance: int = DEFAULT_ULP_TOLERANCE
) -> None:
    """
    Runs the interactive script mode until ``exit``, ``quit``, EOF or Ctrl-C.

    Args:
        script (str): Script to define before the first prompt.
        ulp_tolerance (int): ULP tolerance for comparisons.
    """
    session = ScriptSession(script, ulp_tolerance)
    print("Starting script mode.\nType 'help' to get some help.")
    editing = False
    buffer: list[str] = []

    while True:
        try:
            raw = input("... " if editing else ">>> ")
        except (KeyboardInterrupt, EOFError):
            print("\nExiting.")
            return

        if editing:
            if raw.strip() == "end":
                editing = False
                session.define("\n".join(buffer) + "\n" if buffer else "")
            else:
                buffer.append(raw)
            continue

        line = raw.strip()
        if not line:
            continue
        if line in ("exit", "quit"):
            print("Exiting.")
            return
        topic = help_command(line)
        if topic is not None:
            print_help(topic, script_mode=True)
            continue
        if line == "start":
            editing = True
            buffer = []
            session.defined = False
            continue
        if line in ("script", "variables", "run") and not session.defined:
            print(NOT_DEFINED)
            continue
        if line == "script":
            print(session.script, end="" if session.script.endswith("\n") else "\n")
        elif line == "variables":
            session.show_variables()
        elif line == "run":
            session.run()
        else:
            session.run_line(line)
