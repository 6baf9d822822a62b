import math

import pytest
from hypothesis import given
from hypothesis import strategies as st

from cexpr.cexpr_ast import ASTNode, EvalContext, VariableTable
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
)
from cexpr.cexpr_lexer import CharacterStream, Lexer
from cexpr.cexpr_parser import Parser


def make_parser(
    source: str, names: tuple[str, ...] = (), auto_add: bool = False, capacity=None
) -> Parser:
    tokens = Lexer(CharacterStream(source)).tokenize()
    return Parser(tokens, VariableTable(names, capacity), auto_add)


def parse(source: str, names: tuple[str, ...] = ()) -> ASTNode:
    parser = make_parser(source, names)
    root = parser.parse()
    assert parser.diagnostics == [], parser.diagnostics
    assert root is not None
    return root


def kinds(source: str, names: tuple[str, ...] = ()) -> list[str]:
    parser = make_parser(source, names)
    assert parser.parse() is None
    return [d.kind for d in parser.diagnostics]


def value(source: str, *values: float, names: tuple[str, ...] = ()) -> float:
    return parse(source, names).evaluate(EvalContext(list(values)))


@pytest.mark.parametrize(
    "source, expected",
    [
        ("2+3*4", 14.0),
        ("(2+3)*4", 20.0),
        ("2^10", 1024.0),
        ("10 % 3", 1.0),
        ("2^3^2", 64.0),
        ("-2^2", 4.0),
        ("2^-1", 0.5),
        ("8/2/2", 2.0),
        ("1 - 2 - 3", -4.0),
        ("+5", 5.0),
        ("1 + 2 == 3", 1.0),
        ("1 < 2 == 1", 1.0),
        ("1 || 0 && 0", 1.0),
        ("0.1 + 0.2 == 0.3", 1.0),
        ("PI", math.pi),
        ("pow(2, 3)", 8.0),
        ("atan2(1, 1)", math.pi / 4),
        ("if(1, 2, 3)", 2.0),
        ("if(0, 2, 3)", 3.0),
        ("ln(exp(2))", 2.0),
        ("abs(-4)", 4.0),
        ("0x10 + 0b11 + 0o7", 26.0),
        ("max(min(3, 1), 2)", 2.0),
    ],
)  # type: ignore[misc]
def test_evaluation(source: str, expected: float) -> None:
    assert value(source) == pytest.approx(expected)


def test_division_by_zero_is_infinite() -> None:
    assert value("1/0") == math.inf


def test_multiplicative_before_additive_tree() -> None:
    root = parse("1+2*3")
    assert root.kind == "binary"
    assert root.value == "+"
    assert root.children[1].value == "*"


def test_aliases_use_canonical_names() -> None:
    assert parse("ln(2)").value == "log"
    assert parse("abs(2)").value == "fabs"


def test_variable_binding() -> None:
    root = parse("y", ("x", "y"))
    assert root == ASTNode("variable", "y", index=1)


def test_chained_assignment() -> None:
    root = parse("a=b=c=5", ("a", "b", "c"))
    ctx = EvalContext([0.0, 0.0, 0.0])
    assert root.evaluate(ctx) == 5.0
    assert ctx.values == [5.0, 5.0, 5.0]


def test_compound_assignment_and_increment() -> None:
    root = parse("x += ++y", ("x", "y"))
    ctx = EvalContext([10.0, 1.0])
    assert root.evaluate(ctx) == 12.0
    assert ctx.values == [12.0, 2.0]


def test_decrement() -> None:
    ctx = EvalContext([3.0])
    assert parse("--x", ("x",)).evaluate(ctx) == 2.0


def test_no_short_circuit_side_effects() -> None:
    ctx = EvalContext([0.0])
    parse("0 && ++n", ("n",)).evaluate(ctx)
    parse("1 || ++n", ("n",)).evaluate(ctx)
    assert ctx.values == [2.0]


def test_if_only_evaluates_selected_branch() -> None:
    ctx = EvalContext([0.0, 0.0])
    parse("if(1, ++a, ++b)", ("a", "b")).evaluate(ctx)
    assert ctx.values == [1.0, 0.0]


def test_print_arguments() -> None:
    root = parse('print(1, "two", x)', ("x",))
    assert root.kind == "print"
    assert [c.kind for c in root.children] == ["constant", "string", "variable"]


def test_unknown_variable_single_diagnostic() -> None:
    parser = make_parser("x+1")
    assert parser.parse() is None
    assert len(parser.diagnostics) == 1
    diag = parser.diagnostics[0]
    assert diag.kind == UNKNOWN_VARIABLE
    assert diag.category == SYNTAX_ERROR
    assert "x" in diag.message
    assert diag.position == 0


def test_unknown_variables_all_reported() -> None:
    parser = make_parser("a + b * c")
    assert parser.parse() is None
    assert [d.message for d in parser.diagnostics] == [
        "Unknown variable: a",
        "Unknown variable: b",
        "Unknown variable: c",
    ]


def test_auto_add_creates_variables() -> None:
    parser = make_parser("z = y + 1", auto_add=True)
    root = parser.parse()
    assert root is not None
    assert parser.variables.names == ["z", "y"]


def test_auto_add_capacity() -> None:
    parser = make_parser("a + b + c", ("a",), auto_add=True, capacity=2)
    assert parser.parse() is None
    assert [d.kind for d in parser.diagnostics] == [CAPACITY_EXCEEDED]
    assert "c" in parser.diagnostics[0].message
    assert parser.variables.names == ["a", "b"]


def test_pi_bypasses_variable_table() -> None:
    parser = make_parser("PI * 2", auto_add=True)
    assert parser.parse() is not None
    assert parser.variables.names == []


@pytest.mark.parametrize(
    "source, expected",
    [
        ("", [NO_EXPRESSION]),
        ("   ", [NO_EXPRESSION]),
        ("()", [EMPTY_PARENTHESES]),
        ("(1+2", [UNBALANCED_PARENTHESES]),
        ("1+2)", [UNBALANCED_PARENTHESES]),
        ("1 2", [SYNTAX_ERROR_NEAR]),
        ("1 +", [UNEXPECTED_END]),
        ("1 + * 2", [UNEXPECTED_TOKEN]),
        ("1 + @", [UNEXPECTED_TOKEN]),
        ('"text"', [STRING_OUTSIDE_PRINT]),
        ("foo(1)", [UNKNOWN_FUNCTION]),
        ("sin(1", [UNBALANCED_PARENTHESES]),
        ("pow(1)", [WRONG_ARGUMENT_COUNT]),
        ("sin()", [WRONG_ARGUMENT_COUNT]),
        ("pow(1, 2, 3)", [UNBALANCED_PARENTHESES]),
        ("if(1, 2)", [WRONG_ARGUMENT_COUNT]),
        ("1 = 2", [NON_ASSIGNABLE]),
        ("++1", [NON_ASSIGNABLE]),
        ("print(1", [UNBALANCED_PARENTHESES]),
    ],
)  # type: ignore[misc]
def test_fatal_errors(source: str, expected: list[str]) -> None:
    assert kinds(source) == expected


def test_assignment_to_expression_is_rejected() -> None:
    assert kinds("a + 1 = 2", ("a",)) == [NON_ASSIGNABLE]
    assert kinds("a = b + 1 = 2", ("a", "b")) == [NON_ASSIGNABLE]


def test_leftover_reported_after_unknown_variable() -> None:
    assert kinds("x 2") == [UNKNOWN_VARIABLE, SYNTAX_ERROR_NEAR]


def test_messages() -> None:
    parser = make_parser("foo(1)")
    parser.parse()
    assert parser.diagnostics[0].message == "Unknown function: foo()"
    parser = make_parser("1 2")
    parser.parse()
    assert parser.diagnostics[0].message == "Syntax error near 2"
    parser = make_parser("1 + *")
    parser.parse()
    assert parser.diagnostics[0].message == "Unexpected token: *"


def test_cursor_helpers() -> None:
    parser = make_parser("a ( b")
    assert parser.current().value == "a"
    assert parser.advance().value == "a"
    assert parser.current().value == "("
    assert parser.match(")") is None
    assert parser.match("(") is not None
    parser.position = 99
    assert parser.current().type == "END"


def test_nodes_record_source_location() -> None:
    root = parse("ab + sin(c)", ("ab", "c"))
    dumped = root.to_dict()
    assert (dumped["line"], dumped["col"]) == (1, 4)
    left, right = dumped["children"]
    assert (left["line"], left["col"]) == (1, 1)
    assert right["value"] == "sin"
    assert right["col"] == 6
    assert right["children"][0]["col"] == 10


@given(st.integers(-1000, 1000), st.integers(-1000, 1000))  # type: ignore[misc]
def test_integer_arithmetic_matches_python(a: int, b: int) -> None:
    assert value(f"{a} + {b}") == a + b
    assert value(f"{a} - {b}") == a - b
    assert value(f"{a} * {b}") == a * b
    assert value(f"({a}) * ({b})") == a * b
