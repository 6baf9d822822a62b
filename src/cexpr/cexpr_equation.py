"""
Single-expression front end.

`Equation` owns a variable table, a parsed tree and the evaluation state
for one expression: parse once, then evaluate as many times as needed,
optionally copying variable values in and out.

Example:
    >>> eq = Equation()
    >>> eq.parse("a = b * 2", ["a", "b"])
    True
    >>> values = [0.0, 21.0]
    >>> eq.evaluate(values)
    42.0
    >>> values
    [42.0, 21.0]
"""

import logging
from typing import Iterable, TextIO

from cexpr.cexpr_ast import ASTNode, EvalContext, VariableTable
from cexpr.cexpr_constants import AUTO_ADD_CAPACITY, DEFAULT_ULP_TOLERANCE
from cexpr.cexpr_diagnostics import Diagnostic, ParseError, render_diagnostics
from cexpr.cexpr_lexer import CharacterStream, Lexer
from cexpr.cexpr_parser import Parser
from cexpr.cexpr_random import RandomState

log = logging.getLogger(__name__)


def parse_expression(
    text: str, variables: VariableTable, auto_add: bool = False
) -> tuple[ASTNode | None, list[Diagnostic]]:
    """Lexes and parses ``text`` against ``variables``.

    Returns the tree (None on failure) and every lex and syntax diagnostic.
    """
    lexer = Lexer(CharacterStream(text))
    tokens = lexer.tokenize()
    parser = Parser(tokens, variables, auto_add)
    root = parser.parse()
    diagnostics = lexer.diagnostics + parser.diagnostics
    if diagnostics:
        root = None
    return root, diagnostics


class Equation:
    """A parsed expression together with its variables.

    Args:
        ulp_tolerance: ULP distance under which two values compare equal.
        output: Stream written by ``print()``; standard output when None.
        random: Generator shared with other sessions, or a fresh one.
    """

    def __init__(
        self,
        ulp_tolerance: int = DEFAULT_ULP_TOLERANCE,
        output: TextIO | None = None,
        random: RandomState | None = None,
    ):
        self.text = ""
        self.root: ASTNode | None = None
        self.table = VariableTable()
        self.context = EvalContext(
            self.table.values, random or RandomState(), output, ulp_tolerance
        )
        self._diagnostics: list[Diagnostic] = []

    def parse(
        self,
        text: str,
        variable_names: Iterable[str] = (),
        auto_add: bool = False,
        strict: bool = False,
    ) -> bool:
        """Parses ``text``, replacing any previous tree and variable set.

        With ``auto_add`` the parser creates up to ``AUTO_ADD_CAPACITY``
        extra variables for unknown names. With ``strict`` a failed parse
        raises `ParseError` instead of returning False.
        """
        names = list(variable_names)
        capacity = len(names) + AUTO_ADD_CAPACITY if auto_add else len(names)
        self.text = text
        self.table = VariableTable(names, capacity)
        self.context.values = self.table.values
        self.root, self._diagnostics = parse_expression(text, self.table, auto_add)
        log.debug(
            "equation %r: %d variable(s), %d diagnostic(s)",
            text,
            len(self.table),
            len(self._diagnostics),
        )
        if strict and self.root is None:
            raise ParseError(self.last_error, self._diagnostics)
        return self.root is not None

    def evaluate(self, values: list[float] | None = None) -> float:
        """Evaluates the parsed tree, 0.0 if there is none.

        When ``values`` is given it is copied into the variable slots first
        and receives the (possibly modified) slots afterwards.
        """
        if self.root is None:
            return 0.0
        slots = self.table.values
        if values is not None:
            count = min(len(values), len(slots))
            slots[:count] = [float(v) for v in values[:count]]
        result = self.root.evaluate(self.context)
        if values is not None:
            values[:count] = slots[:count]
        return result

    @property
    def variable_names(self) -> list[str]:
        return list(self.table.names)

    @property
    def values(self) -> list[float]:
        """The live variable slots, in ``variable_names`` order."""
        return self.table.values

    @property
    def diagnostics(self) -> list[Diagnostic]:
        return list(self._diagnostics)

    @property
    def last_error(self) -> str:
        """The most recent diagnostic as text, or ``""`` after a clean parse."""
        return str(self._diagnostics[-1]) if self._diagnostics else ""

    def error_report(self) -> list[str]:
        """Header plus numbered diagnostics, as shown by the REPL."""
        if not self._diagnostics:
            return []
        return [
            f"Equation contains {len(self._diagnostics)} error(s):",
            *render_diagnostics(self._diagnostics),
        ]


def evaluate_expression(text: str, **variables: float) -> float:
    """Parses and evaluates ``text`` once with the given variable values.

    Raises:
        ParseError: If the expression does not parse.

    Example:
        >>> evaluate_expression("x^2 + 1", x=3)
        10.0
    """
    eq = Equation()
    eq.parse(text, list(variables), strict=True)
    return eq.evaluate([float(v) for v in variables.values()])
