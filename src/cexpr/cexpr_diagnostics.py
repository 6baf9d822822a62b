"""
Diagnostics reported while lexing, parsing and splitting scripts.

Parsing never raises on bad input: every problem becomes a `Diagnostic`
appended to an ordered list owned by the parser or script object. Callers
that prefer exceptions can wrap a failed parse in `ParseError`.

Classes:
    Diagnostic: One reported problem (category, kind, message, location).
    ParseError: Raised by strict helpers when a parse produced diagnostics.

Functions:
    render_diagnostics(diagnostics) -> list[str]:
        Numbered, human-readable lines for display.
"""

from typing import Any

LEX_ERROR = "LexError"
SYNTAX_ERROR = "SyntaxError"
SCRIPT_ERROR = "ScriptStructureError"

# Lexer
INVALID_NUMBER = "INVALID_NUMBER"
UNBALANCED_QUOTES = "UNBALANCED_QUOTES"

# Expression parser
NO_EXPRESSION = "NO_EXPRESSION"
SYNTAX_ERROR_NEAR = "SYNTAX_ERROR_NEAR"
UNBALANCED_PARENTHESES = "UNBALANCED_PARENTHESES"
EMPTY_PARENTHESES = "EMPTY_PARENTHESES"
UNEXPECTED_TOKEN = "UNEXPECTED_TOKEN"
UNEXPECTED_END = "UNEXPECTED_END"
STRING_OUTSIDE_PRINT = "STRING_OUTSIDE_PRINT"
UNKNOWN_FUNCTION = "UNKNOWN_FUNCTION"
UNKNOWN_VARIABLE = "UNKNOWN_VARIABLE"
CAPACITY_EXCEEDED = "CAPACITY_EXCEEDED"
NON_ASSIGNABLE = "NON_ASSIGNABLE"
WRONG_ARGUMENT_COUNT = "WRONG_ARGUMENT_COUNT"

# Script block parser
MISSING_SEMICOLON = "MISSING_SEMICOLON"
MISSING_PARENTHESIS = "MISSING_PARENTHESIS"
MISSING_BRACE = "MISSING_BRACE"
EMPTY_CONDITION = "EMPTY_CONDITION"
UNMATCHED_BRACE = "UNMATCHED_BRACE"
UNEXPECTED_END_OF_SCRIPT = "UNEXPECTED_END_OF_SCRIPT"
INVALID_EXPRESSION = "INVALID_EXPRESSION"


class Diagnostic:
    """A single lexing, parsing or script-structure problem.

    Attributes:
        category (str): ``LexError``, ``SyntaxError`` or ``ScriptStructureError``.
        kind (str): Stable upper-case code such as ``UNKNOWN_VARIABLE``.
        message (str): Human-readable description.
        line (int | None): 1-based source line, set in script mode.
        position (int | None): 0-based character offset inside the expression.
    """

    def __init__(
        self,
        category: str,
        kind: str,
        message: str,
        line: int | None = None,
        position: int | None = None,
    ):
        self.category = category
        self.kind = kind
        self.message = message
        self.line = line
        self.position = position

    def at_line(self, line: int) -> "Diagnostic":
        """Returns this diagnostic, stamped with ``line`` unless it already has one."""
        if self.line is None:
            self.line = line
        return self

    def __str__(self) -> str:
        if self.line is not None:
            return f"line {self.line}: {self.message}"
        return self.message

    def __repr__(self) -> str:
        return f"Diagnostic({self.category}, {self.kind}, {self.message!r}, line={self.line})"

    def __eq__(self, other: Any) -> bool:
        return (
            isinstance(other, Diagnostic)
            and self.category == other.category
            and self.kind == other.kind
            and self.message == other.message
            and self.line == other.line
        )

    def __hash__(self) -> int:
        return hash((self.category, self.kind, self.message, self.line))


class ParseError(Exception):
    """Raised by strict entry points when parsing produced diagnostics.

    Attributes:
        diagnostics (list[Diagnostic]): Everything reported by the failed parse.
    """

    def __init__(self, message: str, diagnostics: list[Diagnostic] | None = None):
        super().__init__(message)
        self.diagnostics = diagnostics or []


def render_diagnostics(diagnostics: list[Diagnostic]) -> list[str]:
    """Formats diagnostics as ``"  1: message"`` lines, numbered from 1."""
    return [f"  {i}: {diag}" for i, diag in enumerate(diagnostics, start=1)]
