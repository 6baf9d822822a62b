"""
Script layer: statements, ``if`` / ``else if`` / ``else`` and ``while``.

A script is a sequence of ``;``-terminated expressions and control blocks:

    y = 48;
    if (z == 0) {
        x = y;
    } else if (z < 0) {
        x = -y;
    } else {
        x = y / (2 * z);
    }
    while (n > 0) { n = n - 1; }

``//``, ``#`` and ``/* ... */`` comments are allowed anywhere outside
double-quoted strings.

Pipeline
--------
1. `strip_comments` removes comments and splits the text into
   `SourceLine` units (one statement fragment, ``{`` or ``}`` each), every
   unit carrying the source line it started on.
2. `ScriptParser` walks the units with a small state machine, extracting
   conditions and brace-delimited bodies (which may span several lines)
   and parsing bodies recursively.
3. Every leaf expression and condition goes through the expression
   parser, sharing one `VariableTable`; a condition ``c`` is parsed as
   ``if(c, 1., 0.)``.

Structure errors stop the block being read; expression errors are
collected and reading continues. Either way a script with diagnostics
yields no statements.
"""

import logging
import re
from typing import Any, Iterable, TextIO

from cexpr.cexpr_ast import ASTNode, EvalContext, VariableTable
from cexpr.cexpr_constants import DEFAULT_ULP_TOLERANCE
from cexpr.cexpr_diagnostics import (
    EMPTY_CONDITION,
    INVALID_EXPRESSION,
    MISSING_BRACE,
    MISSING_PARENTHESIS,
    MISSING_SEMICOLON,
    SCRIPT_ERROR,
    UNEXPECTED_END_OF_SCRIPT,
    UNMATCHED_BRACE,
    Diagnostic,
    ParseError,
    render_diagnostics,
)
from cexpr.cexpr_equation import parse_expression
from cexpr.cexpr_mathutils import is_true
from cexpr.cexpr_random import RandomState

log = logging.getLogger(__name__)

NORMAL = "NORMAL"
AFTER_IF = "AFTER_IF"
AFTER_ELSE_IF = "AFTER_ELSE_IF"
AFTER_ELSE = "AFTER_ELSE"

_ELSE_IF = re.compile(r"else\s+if(?=[\s(]|$)")


class SourceLine:
    """One normalized unit of script text and the source line it came from."""

    def __init__(self, line: int, text: str):
        self.line = line
        self.text = text

    def __repr__(self) -> str:
        return f"SourceLine({self.line}, {self.text!r})"

    def __eq__(self, other: Any) -> bool:
        return (
            isinstance(other, SourceLine)
            and self.line == other.line
            and self.text == other.text
        )


class _UnitWriter:
    def __init__(self) -> None:
        self.units: list[SourceLine] = []
        self.chars: list[str] = []
        self.line = 0

    def add(self, ch: str, line: int) -> None:
        # tabs become spaces and runs of blanks collapse to one
        if ch in " \t\r":
            if self.chars and self.chars[-1] != " ":
                self.chars.append(" ")
            return
        self.add_raw(ch, line)

    def add_raw(self, ch: str, line: int) -> None:
        if not self.chars:
            self.line = line
        self.chars.append(ch)

    def flush(self) -> None:
        text = "".join(self.chars).strip()
        if text:
            self.units.append(SourceLine(self.line, text))
        self.chars = []


def strip_comments(script: str) -> list[SourceLine]:
    """Removes comments and splits ``script`` into `SourceLine` units.

    Units break at every newline, around ``{`` and ``}`` and after ``;``.
    Comment markers and structure characters inside double quotes are
    kept as text.

    Example:
        >>> strip_comments("x = 1; // one\\nif (x) { y = 2; }")
        [SourceLine(1, 'x = 1;'), SourceLine(2, 'if (x)'), SourceLine(2, '{'),
         SourceLine(2, 'y = 2;'), SourceLine(2, '}')]
    """
    writer = _UnitWriter()
    line = 1
    in_block_comment = False
    in_string = False
    i = 0
    length = len(script)
    while i < length:
        ch = script[i]
        nxt = script[i + 1] if i + 1 < length else ""
        if ch == "\n":
            line += 1
            in_string = False
            writer.flush()
            i += 1
        elif in_block_comment:
            if ch == "*" and nxt == "/":
                in_block_comment = False
                i += 2
            else:
                i += 1
        elif in_string:
            writer.add_raw(ch, line)
            in_string = ch != '"'
            i += 1
        elif ch == '"':
            writer.add_raw(ch, line)
            in_string = True
            i += 1
        elif ch == "/" and nxt == "*":
            in_block_comment = True
            i += 2
        elif (ch == "/" and nxt == "/") or ch == "#":
            while i < length and script[i] != "\n":
                i += 1
        elif ch in "{}":
            writer.flush()
            writer.add(ch, line)
            writer.flush()
            i += 1
        elif ch == ";":
            writer.add(ch, line)
            writer.flush()
            i += 1
        else:
            writer.add(ch, line)
            i += 1
    writer.flush()
    return writer.units


class Statement:
    """
    A script statement.

    Kinds:
        equation   value = expression tree
        if         value = condition tree, children = then-block,
                   else_children = else-block (an ``else if`` chain is a
                   nested ``if`` as the only else statement)
        while      value = condition tree, children = loop body

    Args:
        kind (str): ``equation``, ``if`` or ``while``.
        value (ASTNode): Expression or condition.
        children (list[Statement], optional): Then-block or loop body.
        else_children (list[Statement], optional): Else-block.
        line (int): Source line the statement ends (equation) or starts on.
    """

    def __init__(
        self,
        kind: str,
        value: ASTNode | None,
        children: list["Statement"] | None = None,
        else_children: list["Statement"] | None = None,
        line: int = 0,
    ):
        self.kind = kind
        self.value = value
        self.children: list["Statement"] = children or []
        self.else_children: list["Statement"] = else_children or []
        self.line = line

    def __repr__(self) -> str:
        parts = [self.kind, f"line={self.line}"]
        if self.children:
            parts.append(f"children={len(self.children)}")
        if self.else_children:
            parts.append(f"else_children={len(self.else_children)}")
        return f"Statement({', '.join(parts)})"

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, Statement):
            return False
        return (
            self.kind == other.kind
            and self.value == other.value
            and self.children == other.children
            and self.else_children == other.else_children
        )

    def _holds(self, ctx: EvalContext) -> bool:
        return is_true(self.value.evaluate(ctx), ctx.ulp_tolerance)

    def evaluate(self, ctx: EvalContext) -> None:
        """
        Runs the statement.

        ``if`` runs only the selected block; ``while`` re-tests its condition
        before every pass over the body.

        Args:
            ctx (EvalContext): Shared variable slots, random state and output.
        """
        if self.kind == "equation":
            self.value.evaluate(ctx)
        elif self.kind == "if":
            block = self.children if self._holds(ctx) else self.else_children
            for stmt in block:
                stmt.evaluate(ctx)
        elif self.kind == "while":
            while self._holds(ctx):
                for stmt in self.children:
                    stmt.evaluate(ctx)

    def to_dict(self) -> dict[str, Any]:
        """Nested dict dump with ``kind``, ``line``, ``value``, ``children`` and ``else_children``."""
        return {
            "kind": self.kind,
            "line": self.line,
            "value": self.value.to_dict() if self.value is not None else None,
            "children": [c.to_dict() for c in self.children],
            "else_children": [c.to_dict() for c in self.else_children],
        }

    def describe(self, depth: int = 0) -> str:
        if self.kind == "equation":
            return self.value.describe(depth)
        pad = "  " * depth
        lines = [pad + ("If" if self.kind == "if" else "While loop")]
        lines.append(pad + "  Condition")
        # conditions are stored as if(c, 1., 0.); show c only
        lines.append(self.value.children[0].describe(depth + 2))
        lines.append(pad + ("  Then" if self.kind == "if" else "  Body"))
        lines.extend(stmt.describe(depth + 2) for stmt in self.children)
        if self.else_children:
            lines.append(pad + "  Else")
            lines.extend(stmt.describe(depth + 2) for stmt in self.else_children)
        return "\n".join(lines)


class _StructureError(Exception):
    def __init__(self, diagnostic: Diagnostic):
        super().__init__(diagnostic.message)
        self.diagnostic = diagnostic


class _UnitCursor:
    def __init__(self, units: list[SourceLine], line: int):
        self.units = units
        self.position = 0
        self.line = line

    def at_end(self) -> bool:
        return self.position >= len(self.units)

    def advance(self) -> SourceLine | None:
        if self.at_end():
            return None
        unit = self.units[self.position]
        self.position += 1
        self.line = unit.line
        return unit


def _after_keyword(text: str, keyword: str) -> str | None:
    """Text following ``keyword`` when ``text`` opens with it, else None."""
    if keyword == "else if":
        match = _ELSE_IF.match(text)
        return text[match.end() :].strip() if match else None
    if not text.startswith(keyword):
        return None
    rest = text[len(keyword) :].strip()
    if rest and not rest.startswith("("):
        return None
    return rest


def _scan_parentheses(text: str, level: int) -> tuple[int | None, int]:
    for i, ch in enumerate(text):
        if ch == "(":
            level += 1
        elif ch == ")":
            level -= 1
            if level == 0:
                return i, 0
    return None, level


class ScriptParser:
    """Parses and runs scripts against one shared set of variables.

    Args:
        ulp_tolerance: ULP distance under which two values compare equal.
        output: Stream written by ``print()``; standard output when None.
        random: Generator shared with other sessions, or a fresh one.

    Typical use::

        script = ScriptParser()
        if script.load(text):
            script.evaluate()
            print(dict(zip(script.variable_names, script.values)))
    """

    def __init__(
        self,
        ulp_tolerance: int = DEFAULT_ULP_TOLERANCE,
        output: TextIO | None = None,
        random: RandomState | None = None,
    ):
        self.statements: list[Statement] = []
        self.table = VariableTable()
        self.context = EvalContext(
            self.table.values, random or RandomState(), output, ulp_tolerance
        )
        self._auto_add = False
        self._diagnostics: list[Diagnostic] = []

    def _reset(self, table: VariableTable, auto_add: bool) -> None:
        self.statements = []
        self.table = table
        self.context.values = table.values
        self._auto_add = auto_add
        self._diagnostics = []

    # ---------------------------------------------------------------
    # Public API
    # ---------------------------------------------------------------

    def parse(self, script: str, variable_names: Iterable[str] = ()) -> bool:
        """Parses ``script`` with a fixed variable list.

        All values start at 0. Returns False, leaving no statements, when
        any diagnostic was produced.
        """
        names = list(variable_names)
        self._reset(VariableTable(names, capacity=len(names)), auto_add=False)
        statements = self._break_block(strip_comments(script), top_level=True)
        if not self._diagnostics:
            self.statements = statements
        log.debug(
            "script parsed: %d statement(s), %d variable(s), %d diagnostic(s)",
            len(self.statements),
            len(self.table),
            len(self._diagnostics),
        )
        return not self._diagnostics

    def get_variables_list(self, script: str) -> list[str]:
        """Names referenced by ``script``, in order of first appearance.

        Runs the full parse with unknown names auto-added; diagnostics of
        that pass are kept, the statements are discarded.
        """
        self._reset(VariableTable(), auto_add=True)
        self._break_block(strip_comments(script), top_level=True)
        names = list(self.table.names)
        log.debug("harvested variables %s", names)
        diagnostics = self._diagnostics
        self._reset(VariableTable(), auto_add=False)
        self._diagnostics = diagnostics
        return names

    def load(self, script: str, strict: bool = False) -> bool:
        """Harvests the variables of ``script`` then parses it with them.

        Raises:
            ParseError: With ``strict``, when either pass reported problems.
        """
        names = self.get_variables_list(script)
        ok = not self._diagnostics and self.parse(script, names)
        if strict and not ok:
            raise ParseError(self.last_error, self.diagnostics)
        return ok

    def evaluate(self, values: list[float] | None = None) -> None:
        """Runs the statements once.

        When ``values`` is given it is copied into the variable slots first
        and receives the updated slots afterwards.
        """
        slots = self.table.values
        count = 0
        if values is not None:
            count = min(len(values), len(slots))
            slots[:count] = [float(v) for v in values[:count]]
        for stmt in self.statements:
            stmt.evaluate(self.context)
        if values is not None:
            values[:count] = slots[:count]

    @property
    def variable_names(self) -> list[str]:
        return list(self.table.names)

    @property
    def values(self) -> list[float]:
        return self.table.values

    @property
    def diagnostics(self) -> list[Diagnostic]:
        return list(self._diagnostics)

    @property
    def last_error(self) -> str:
        """The most recent diagnostic as text, prefixed with its line."""
        return str(self._diagnostics[-1]) if self._diagnostics else ""

    def error_report(self, title: str = "The script contains") -> list[str]:
        """
        Formats the diagnostics for display.

        Args:
            title (str): Text put before the error count in the header line.

        Returns:
            list[str]: Header plus numbered diagnostics, empty when there are none.
        """
        if not self._diagnostics:
            return []
        return [
            f"{title} {len(self._diagnostics)} error(s):",
            *render_diagnostics(self._diagnostics),
        ]

    def to_dict(self) -> list[dict[str, Any]]:
        return [stmt.to_dict() for stmt in self.statements]

    def describe(self) -> str:
        return "\n".join(["Script", *(s.describe(1) for s in self.statements)])

    # ---------------------------------------------------------------
    # Block reading
    # ---------------------------------------------------------------

    def _fail(self, kind: str, message: str, line: int) -> None:
        raise _StructureError(Diagnostic(SCRIPT_ERROR, kind, message, line=line))

    def _break_block(
        self, units: list[SourceLine], top_level: bool, line: int = 1
    ) -> list[Statement]:
        statements: list[Statement] = []
        cursor = _UnitCursor(units, line)
        try:
            self._read_statements(cursor, statements, top_level)
        except _StructureError as exc:
            self._diagnostics.append(exc.diagnostic)
        return statements

    def _read_statements(
        self, cursor: _UnitCursor, statements: list[Statement], top_level: bool
    ) -> None:
        state = NORMAL
        fragments: list[str] = []
        branches: list[tuple[str, int, list[SourceLine]]] = []
        else_body: list[SourceLine] | None = None

        while not cursor.at_end():
            unit = cursor.advance()
            text = unit.text
            if text == "}":
                self._fail(UNMATCHED_BRACE, "unexpected '}'.", unit.line)

            if state in (AFTER_IF, AFTER_ELSE_IF):
                if text == "else":
                    brace = cursor.advance()
                    if brace is None or brace.text != "{":
                        self._fail(
                            MISSING_BRACE, "'{' expected after 'else'.", cursor.line
                        )
                    else_body = self._read_block(cursor)
                    state = AFTER_ELSE
                    continue
                rest = _after_keyword(text, "else if")
                if rest is not None:
                    condition = self._read_condition(cursor, rest, "else if")
                    branches.append((condition, unit.line, self._read_block(cursor)))
                    state = AFTER_ELSE_IF
                    continue
                state = AFTER_ELSE

            if state == AFTER_ELSE:
                statements.append(self._build_conditional(branches, else_body))
                branches, else_body = [], None
                state = NORMAL

            rest = _after_keyword(text, "if")
            if rest is not None:
                if fragments:
                    self._fail(MISSING_SEMICOLON, "missing ';' before 'if'.", unit.line)
                condition = self._read_condition(cursor, rest, "if")
                branches.append((condition, unit.line, self._read_block(cursor)))
                state = AFTER_IF
                continue

            rest = _after_keyword(text, "while")
            if rest is not None:
                if fragments:
                    self._fail(
                        MISSING_SEMICOLON, "missing ';' before 'while'.", unit.line
                    )
                condition = self._read_condition(cursor, rest, "while")
                body = self._read_block(cursor)
                statements.append(
                    Statement(
                        "while",
                        self._parse_condition(condition, unit.line),
                        self._break_block(body, top_level=False, line=unit.line),
                        line=unit.line,
                    )
                )
                continue

            if text.endswith(";"):
                fragments.append(text[:-1])
                expression = " ".join(f.strip() for f in fragments if f.strip())
                fragments = []
                if expression:
                    stmt = self._build_equation(expression, unit.line)
                    if stmt is not None:
                        statements.append(stmt)
            else:
                fragments.append(text)

        if branches:
            statements.append(self._build_conditional(branches, else_body))
        elif fragments:
            if top_level:
                self._fail(
                    UNEXPECTED_END_OF_SCRIPT, "unexpected end of script.", cursor.line
                )
            self._fail(MISSING_SEMICOLON, "missing ';' before '}'.", cursor.line)

    def _read_condition(self, cursor: _UnitCursor, rest: str, keyword: str) -> str:
        """Reads ``( ... )`` and the following ``{``; returns the condition text."""
        if not rest:
            unit = cursor.advance()
            rest = unit.text if unit is not None else ""
        if not rest.startswith("("):
            self._fail(
                MISSING_PARENTHESIS, f"'(' expected after '{keyword}'.", cursor.line
            )

        parts: list[str] = []
        text, level = rest[1:], 1
        while True:
            close, level = _scan_parentheses(text, level)
            if close is not None:
                parts.append(text[:close])
                remainder = text[close + 1 :].strip()
                break
            parts.append(text)
            unit = cursor.advance()
            if unit is None:
                self._fail(
                    UNEXPECTED_END_OF_SCRIPT,
                    "unexpected end of script (unbalanced parenthesis).",
                    cursor.line,
                )
            text = unit.text

        if remainder:
            self._fail(
                MISSING_BRACE,
                f"{{ expected after conditional expression but '{remainder}' found.",
                cursor.line,
            )
        condition = " ".join(p.strip() for p in parts if p.strip())
        if not condition:
            self._fail(EMPTY_CONDITION, "empty conditional expression.", cursor.line)
        brace = cursor.advance()
        if brace is None or brace.text != "{":
            self._fail(
                MISSING_BRACE, "'{' expected after conditional expression.", cursor.line
            )
        return condition

    def _read_block(self, cursor: _UnitCursor) -> list[SourceLine]:
        """Collects units up to the ``}`` matching an already consumed ``{``."""
        level = 1
        body: list[SourceLine] = []
        while not cursor.at_end():
            unit = cursor.advance()
            if unit.text == "}":
                level -= 1
                if level == 0:
                    return body
            elif unit.text == "{":
                level += 1
            body.append(unit)
        self._fail(
            UNEXPECTED_END_OF_SCRIPT,
            "unexpected end of script (unbalanced '{' and '}').",
            cursor.line,
        )
        return body

    # ---------------------------------------------------------------
    # Statement construction
    # ---------------------------------------------------------------

    def _parse(self, text: str, line: int) -> tuple[ASTNode | None, list[Diagnostic]]:
        root, diagnostics = parse_expression(text, self.table, self._auto_add)
        return root, [diag.at_line(line) for diag in diagnostics]

    def _build_equation(self, expression: str, line: int) -> Statement | None:
        root, diagnostics = self._parse(expression, line)
        if diagnostics:
            self._diagnostics.append(
                Diagnostic(
                    SCRIPT_ERROR,
                    INVALID_EXPRESSION,
                    f"invalid expression '{expression}'.",
                    line=line,
                )
            )
            self._diagnostics.extend(diagnostics)
            return None
        return Statement("equation", root, line=line)

    def _parse_condition(self, condition: str, line: int) -> ASTNode | None:
        root, diagnostics = self._parse(f"if({condition}, 1., 0.)", line)
        self._diagnostics.extend(diagnostics)
        return root

    def _build_conditional(
        self,
        branches: list[tuple[str, int, list[SourceLine]]],
        else_body: list[SourceLine] | None,
    ) -> Statement:
        parsed = []
        for condition, line, body in branches:
            test = self._parse_condition(condition, line)
            parsed.append((test, self._break_block(body, False, line), line))
        else_statements: list[Statement] = []
        if else_body is not None:
            else_statements = self._break_block(else_body, False, parsed[-1][2])
        for test, then, line in reversed(parsed):
            node = Statement("if", test, then, else_statements, line)
            else_statements = [node]
        return node
