"""
cexpr expression parser.

Turns the token list produced by `cexpr_lexer.Lexer` into an `ASTNode` tree
by precedence climbing. Each level parses its own operators and defers
tighter-binding ones to the next level down:

    1. assignment      =  +=  -=  *=  /=     (left operand must be assignable)
    2. logical or      ||
    3. logical and     &&
    4. equality        ==  !=
    5. relational      <  <=  >  >=
    6. additive        +  -
    7. multiplicative  *  /  %
    8. power           ^
    9. unary           +  -  ++  --
   10. parentheses     ( ... )
   11. primary         number, PI, variable, function call

Error handling
--------------
The parser never raises to its caller. Problems are appended to
``Parser.diagnostics`` and `Parser.parse` returns None:

- Fatal errors (unbalanced or empty parentheses, unexpected token,
  unknown function, non-assignable target, ...) stop the parse at once.
- Unknown variables, exhausted variable capacity and malformed numbers
  only fail their own sub-tree; parsing continues so that every such
  problem in the expression gets reported in one pass.
"""

from __future__ import annotations

import logging

from cexpr.cexpr_ast import ASTNode, VariableTable
from cexpr.cexpr_constants import (
    ADDITIVE_OPS,
    AND_OPS,
    ASSIGNMENT_OPS,
    BINARY_FUNCTIONS,
    BUILTIN_CONSTANTS,
    COMPOUND_ASSIGNMENT,
    EQUALITY_OPS,
    FUNCTION_ARITY,
    INCREMENT_OPS,
    MULTIPLICATIVE_OPS,
    OR_OPS,
    POWER_OPS,
    RELATIONAL_OPS,
    SIGN_OPS,
    UNARY_FUNCTIONS,
)
from cexpr.cexpr_diagnostics import (
    CAPACITY_EXCEEDED,
    EMPTY_PARENTHESES,
    NO_EXPRESSION,
    NON_ASSIGNABLE,
    STRING_OUTSIDE_PRINT,
    SYNTAX_ERROR,
    SYNTAX_ERROR_NEAR,
    UNBALANCED_PARENTHESES,
    UNEXPECTED_END,
    UNEXPECTED_TOKEN,
    UNKNOWN_FUNCTION,
    UNKNOWN_VARIABLE,
    WRONG_ARGUMENT_COUNT,
    Diagnostic,
)
from cexpr.cexpr_lexer import Token

log = logging.getLogger(__name__)


class _FatalParseError(Exception):
    """Unwinds the recursive descent after a fatal diagnostic was recorded."""


class Parser:
    """
    Precedence-climbing parser for one expression.

    Attributes
    ----------
    tokens : list[Token]
        Token list ending with an END token.
    position : int
        Index of the current token.
    variables : VariableTable
        Names the expression may reference. With ``auto_add`` set, unknown
        names are appended to it while capacity remains.
    auto_add : bool
        Create variables for unknown identifiers instead of reporting them.
    diagnostics : list[Diagnostic]
        Problems found, in the order they were met.
    """

    def __init__(
        self,
        tokens: list[Token],
        variables: VariableTable | None = None,
        auto_add: bool = False,
    ) -> None:
        self.tokens = tokens
        self.position = 0
        self.variables = variables if variables is not None else VariableTable()
        self.auto_add = auto_add
        self.diagnostics: list[Diagnostic] = []

    # ---------------------------------------------------------------
    # Cursor helpers
    # ---------------------------------------------------------------

    def current(self) -> Token:
        """Returns the token under the cursor.

        Returns:
            Token: The current token, or an END token past the end of the list.
        """
        if self.position < len(self.tokens):
            return self.tokens[self.position]
        return Token("END", "")

    def advance(self) -> Token:
        """Moves the cursor forward by one token.

        Returns:
            Token: The token that was consumed.
        """
        tok = self.current()
        self.position += 1
        return tok

    def match(self, *values: str) -> Token | None:
        """Consumes the current token if it is one of the given delimiters.

        Args:
            *values (str): Accepted delimiter texts.

        Returns:
            Token | None: The consumed token, or None if it did not match.
        """
        tok = self.current()
        if tok.is_delimiter(*values):
            self.advance()
            return tok
        return None

    def _report(self, kind: str, message: str, tok: Token) -> None:
        self.diagnostics.append(
            Diagnostic(SYNTAX_ERROR, kind, message, position=tok.position)
        )

    def _fail(self, kind: str, message: str, tok: Token | None = None) -> None:
        """Records a fatal diagnostic and unwinds the parse.

        Raises:
            _FatalParseError: Always.
        """
        self._report(kind, message, tok or self.current())
        raise _FatalParseError(message)

    def _unexpected(self, tok: Token) -> None:
        if tok.type == "END":
            self._fail(UNEXPECTED_END, "Unexpected end of equation", tok)
        if tok.type == "STRING":
            self._fail(
                STRING_OUTSIDE_PRINT,
                "Strings are only supported in print() functions",
                tok,
            )
        self._fail(UNEXPECTED_TOKEN, f"Unexpected token: {tok.value}", tok)

    # ---------------------------------------------------------------
    # Entry point
    # ---------------------------------------------------------------

    def parse(self) -> ASTNode | None:
        """Parses the whole token list; None when any diagnostic was recorded."""
        if self.current().type == "END":
            self._report(NO_EXPRESSION, "No expression Present", self.current())
            return None
        try:
            root = self.parse_assignment()
            tok = self.current()
            if tok.type != "END":
                if tok.is_delimiter(")"):
                    self._fail(UNBALANCED_PARENTHESES, "Unbalanced Parentheses", tok)
                self._fail(SYNTAX_ERROR_NEAR, f"Syntax error near {tok.value}", tok)
        except _FatalParseError:
            root = None
        log.debug(
            "parsed %d token(s): %s, %d diagnostic(s)",
            len(self.tokens),
            "ok" if root is not None else "failed",
            len(self.diagnostics),
        )
        return root

    # ---------------------------------------------------------------
    # Precedence levels
    # ---------------------------------------------------------------

    def parse_assignment(self) -> ASTNode | None:
        """Parses ``=`` and compound assignments, left to right.

        The left operand of each operator must be assignable (see
        `ASTNode.can_be_modified`), which allows chains like ``a = b = 0``.

        Returns:
            ASTNode | None: The expression tree, or None if a sub-tree failed.
        """
        lop = self.parse_or()
        while self.current().is_delimiter(*ASSIGNMENT_OPS):
            op = self.advance()
            if lop is not None and not lop.can_be_modified():
                self._fail(
                    NON_ASSIGNABLE,
                    f"Non assignable statement on left of {op.value} operator.",
                    op,
                )
            rop = self.parse_or()
            if lop is None or rop is None:
                lop = None
            elif op.value == "=":
                lop = ASTNode(
                    "assign", children=[lop, rop], line=op.line, col=op.col
                )
            else:
                lop = ASTNode(
                    "compound_assign",
                    COMPOUND_ASSIGNMENT[op.value],
                    [lop, rop],
                    line=op.line,
                    col=op.col,
                )
        return lop

    def _parse_binary(self, operators: tuple[str, ...], operand) -> ASTNode | None:
        """Left-associative loop shared by the binary precedence levels.

        Args:
            operators (tuple[str, ...]): Operators handled at this level.
            operand (Callable): Parser for the next tighter level.
        """
        lop = operand()
        while self.current().is_delimiter(*operators):
            op = self.advance()
            rop = operand()
            if lop is None or rop is None:
                lop = None
            else:
                lop = ASTNode(
                    "binary", op.value, [lop, rop], line=op.line, col=op.col
                )
        return lop

    def parse_or(self) -> ASTNode | None:
        return self._parse_binary(OR_OPS, self.parse_and)

    def parse_and(self) -> ASTNode | None:
        return self._parse_binary(AND_OPS, self.parse_equality)

    def parse_equality(self) -> ASTNode | None:
        return self._parse_binary(EQUALITY_OPS, self.parse_relational)

    def parse_relational(self) -> ASTNode | None:
        return self._parse_binary(RELATIONAL_OPS, self.parse_additive)

    def parse_additive(self) -> ASTNode | None:
        return self._parse_binary(ADDITIVE_OPS, self.parse_multiplicative)

    def parse_multiplicative(self) -> ASTNode | None:
        return self._parse_binary(MULTIPLICATIVE_OPS, self.parse_power)

    def parse_power(self) -> ASTNode | None:
        return self._parse_binary(POWER_OPS, self.parse_unary)

    def parse_unary(self) -> ASTNode | None:
        """Parses prefix ``+``, ``-``, ``++`` and ``--``.

        ``++``/``--`` need a bare variable operand, anything else is a
        non-assignable error.
        """
        tok = self.current()
        if tok.is_delimiter(*INCREMENT_OPS):
            self.advance()
            operand = self.parse_unary()
            if operand is None:
                return None
            if operand.kind != "variable":
                self._fail(
                    NON_ASSIGNABLE,
                    f"Non assignable statement on right of {tok.value} operator.",
                    tok,
                )
            delta = 1.0 if tok.value == "++" else -1.0
            return ASTNode("increment", delta, [operand], line=tok.line, col=tok.col)
        if tok.is_delimiter(*SIGN_OPS):
            self.advance()
            operand = self.parse_unary()
            if operand is None or tok.value == "+":
                return operand
            return ASTNode("unary", "-", [operand], line=tok.line, col=tok.col)
        return self.parse_parentheses()

    def parse_parentheses(self) -> ASTNode | None:
        if not self.match("("):
            return self.parse_primary()
        if self.current().is_delimiter(")"):
            self._fail(EMPTY_PARENTHESES, "Empty Parentheses")
        node = self.parse_assignment()
        if not self.match(")"):
            self._fail(UNBALANCED_PARENTHESES, "Unbalanced Parentheses")
        return node

    def parse_primary(self) -> ASTNode | None:
        tok = self.current()
        if tok.type == "NUMBER":
            self.advance()
            # malformed literals were already reported by the lexer
            if tok.number is None:
                return None
            return ASTNode("constant", tok.number, line=tok.line, col=tok.col)
        if tok.type == "VARIABLE":
            self.advance()
            return self.resolve_variable(tok)
        if tok.type == "FUNCTION":
            return self.parse_call()
        self._unexpected(tok)
        return None

    def resolve_variable(self, tok: Token) -> ASTNode | None:
        """Binds an identifier to a constant or a variable slot.

        Args:
            tok (Token): The VARIABLE token.

        Returns:
            ASTNode | None: A ``constant`` node for ``PI``, a ``variable`` node,
            or None after reporting an unknown name or a full table.
        """
        name = tok.value
        if name in BUILTIN_CONSTANTS:
            return ASTNode(
                "constant", BUILTIN_CONSTANTS[name], line=tok.line, col=tok.col
            )
        index = self.variables.index_of(name)
        if index is None and self.auto_add:
            index = self.variables.add(name)
            if index is None:
                self._report(
                    CAPACITY_EXCEEDED,
                    f"Detected variable {name} but maximum number of unknown "
                    "variables has been reached",
                    tok,
                )
                return None
            log.debug("auto-added variable %s at slot %d", name, index)
        elif index is None:
            self._report(UNKNOWN_VARIABLE, f"Unknown variable: {name}", tok)
            return None
        return ASTNode("variable", name, index=index, line=tok.line, col=tok.col)

    # ---------------------------------------------------------------
    # Function calls
    # ---------------------------------------------------------------

    def parse_call(self) -> ASTNode | None:
        """Parses a built-in function call, ``if(...)`` and ``print(...)`` included.

        Returns:
            ASTNode | None: A ``unary``, ``binary``, ``conditional`` or ``print``
            node, or None if an argument failed.
        """
        tok = self.advance()
        name = tok.value
        if name == "print":
            self.advance()
            return self.parse_print(tok)
        if name not in FUNCTION_ARITY:
            self._fail(UNKNOWN_FUNCTION, f"Unknown function: {name}()", tok)
        self.advance()

        arity = FUNCTION_ARITY[name]
        args: list[ASTNode | None] = []
        while True:
            if self.current().is_delimiter(")"):
                self._fail(
                    WRONG_ARGUMENT_COUNT,
                    f"Function {name}() expects {arity} argument(s)",
                )
            args.append(self.parse_assignment())
            if len(args) == arity or not self.match(","):
                break
        if len(args) < arity and self.current().is_delimiter(")"):
            self._fail(
                WRONG_ARGUMENT_COUNT, f"Function {name}() expects {arity} argument(s)"
            )
        if not self.match(")"):
            self._fail(UNBALANCED_PARENTHESES, "Unbalanced Parentheses")

        if any(arg is None for arg in args):
            return None
        if name == "if":
            return ASTNode("conditional", children=args, line=tok.line, col=tok.col)
        if name in UNARY_FUNCTIONS:
            return ASTNode(
                "unary", UNARY_FUNCTIONS[name], args, line=tok.line, col=tok.col
            )
        return ASTNode(
            "binary", BINARY_FUNCTIONS[name], args, line=tok.line, col=tok.col
        )

    def parse_print(self, tok: Token) -> ASTNode | None:
        """Parses the comma-separated arguments of ``print``; strings are allowed here."""
        args: list[ASTNode | None] = []
        while True:
            arg_tok = self.current()
            if arg_tok.type == "STRING":
                self.advance()
                args.append(
                    ASTNode("string", arg_tok.value, line=arg_tok.line, col=arg_tok.col)
                )
            else:
                args.append(self.parse_assignment())
            if not self.match(","):
                break
        if not self.match(")"):
            self._fail(UNBALANCED_PARENTHESES, "Unbalanced Parentheses")
        if any(arg is None for arg in args):
            return None
        return ASTNode("print", children=args, line=tok.line, col=tok.col)
