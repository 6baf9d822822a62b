"""
Shared constants for the cexpr expression and script evaluator.

Holds the lexer character classes, the operator tables used by the parser,
the built-in function tables and the tunable defaults (ULP tolerance,
auto-add capacity, print precision).

Exports:
    - DELIMITERS, TWO_CHAR_OPERATORS
    - ASSIGNMENT_OPS, OR_OPS, AND_OPS, EQUALITY_OPS, RELATIONAL_OPS,
      ADDITIVE_OPS, MULTIPLICATIVE_OPS, POWER_OPS, INCREMENT_OPS
    - UNARY_FUNCTIONS, BINARY_FUNCTIONS, FUNCTION_ARITY
    - DEFAULT_ULP_TOLERANCE, AUTO_ADD_CAPACITY, PRINT_PRECISION
"""

import math

# Characters that end an identifier or a number.
DELIMITERS: frozenset[str] = frozenset(" +-/*^(),=!<>|&%\t\r\n\0")

# Operators made of two delimiter characters, matched greedily by the lexer.
TWO_CHAR_OPERATORS: frozenset[str] = frozenset(
    {"==", "!=", "<=", ">=", "&&", "||", "+=", "-=", "*=", "/=", "++", "--"}
)

# Precedence levels, loosest to tightest.
ASSIGNMENT_OPS: tuple[str, ...] = ("=", "+=", "-=", "*=", "/=")
OR_OPS: tuple[str, ...] = ("||",)
AND_OPS: tuple[str, ...] = ("&&",)
EQUALITY_OPS: tuple[str, ...] = ("==", "!=")
RELATIONAL_OPS: tuple[str, ...] = ("<", "<=", ">", ">=")
ADDITIVE_OPS: tuple[str, ...] = ("+", "-")
MULTIPLICATIVE_OPS: tuple[str, ...] = ("*", "/", "%")
POWER_OPS: tuple[str, ...] = ("^",)
SIGN_OPS: tuple[str, ...] = ("+", "-")
INCREMENT_OPS: tuple[str, ...] = ("++", "--")

# Compound assignment -> underlying binary operator.
COMPOUND_ASSIGNMENT: dict[str, str] = {"+=": "+", "-=": "-", "*=": "*", "/=": "/"}

# Built-in functions taking a single argument. Aliases map to one canonical name.
UNARY_FUNCTIONS: dict[str, str] = {
    "sqrt": "sqrt",
    "cbrt": "cbrt",
    "exp": "exp",
    "log": "log",
    "ln": "log",
    "log10": "log10",
    "sin": "sin",
    "cos": "cos",
    "tan": "tan",
    "asin": "asin",
    "acos": "acos",
    "atan": "atan",
    "sinh": "sinh",
    "cosh": "cosh",
    "tanh": "tanh",
    "asinh": "asinh",
    "acosh": "acosh",
    "atanh": "atanh",
    "ceil": "ceil",
    "floor": "floor",
    "fabs": "fabs",
    "abs": "fabs",
    "sign": "sign",
    "round": "round",
    "degToRad": "degToRad",
    "radToDeg": "radToDeg",
    "rands": "rands",
}

# Built-in functions taking two arguments.
BINARY_FUNCTIONS: dict[str, str] = {
    "pow": "pow",
    "atan2": "atan2",
    "min": "min",
    "max": "max",
    "urand": "urand",
    "nrand": "nrand",
}

FUNCTION_ARITY: dict[str, int] = {
    **{name: 1 for name in UNARY_FUNCTIONS},
    **{name: 2 for name in BINARY_FUNCTIONS},
    "if": 3,
}

BUILTIN_CONSTANTS: dict[str, float] = {"PI": math.pi}

DEFAULT_ULP_TOLERANCE = 100
AUTO_ADD_CAPACITY = 50
PRINT_PRECISION = 12
PRINT_FORMAT = f"%.{PRINT_PRECISION}g"


def format_number(value: float) -> str:
    """Formats a value the way ``print`` and the REPL display it."""
    return PRINT_FORMAT % value
