import io
import math

import hypothesis.strategies as st
import pytest
from hypothesis import given

from cexpr.cexpr_ast import ASTNode, EvalContext, VariableTable
from cexpr.cexpr_random import RandomState


def const(value: float) -> ASTNode:
    return ASTNode("constant", value)


def var(name: str, index: int) -> ASTNode:
    return ASTNode("variable", name, index=index)


def binary(op: str, left: ASTNode, right: ASTNode) -> ASTNode:
    return ASTNode("binary", op, [left, right])


def ctx(*values: float, output: io.StringIO | None = None) -> EvalContext:
    return EvalContext(list(values), RandomState(1), output)


def test_constant_and_variable() -> None:
    c = ctx(2.5)
    assert const(3.0).evaluate(c) == 3.0
    assert var("x", 0).evaluate(c) == 2.5


@pytest.mark.parametrize(
    "op, a, b, expected",
    [
        ("+", 2.0, 3.0, 5.0),
        ("-", 2.0, 3.0, -1.0),
        ("*", 2.0, 3.0, 6.0),
        ("/", 3.0, 2.0, 1.5),
        ("%", 10.0, 3.0, 1.0),
        ("%", -7.0, 3.0, -1.0),
        ("^", 2.0, 10.0, 1024.0),
        ("pow", 9.0, 0.5, 3.0),
        ("min", 2.0, 3.0, 2.0),
        ("max", 2.0, 3.0, 3.0),
        ("<", 1.0, 2.0, 1.0),
        (">", 1.0, 2.0, 0.0),
        ("<=", 2.0, 2.0, 1.0),
        (">=", 1.0, 2.0, 0.0),
        ("==", 0.1 + 0.2, 0.3, 1.0),
        ("!=", 1.0, 2.0, 1.0),
        ("&&", 1.0, 0.0, 0.0),
        ("||", 0.0, 2.0, 1.0),
    ],
)  # type: ignore[misc]
def test_binary_operators(op: str, a: float, b: float, expected: float) -> None:
    assert binary(op, const(a), const(b)).evaluate(ctx()) == pytest.approx(expected)


def test_ieee_results_do_not_raise() -> None:
    c = ctx()
    assert binary("/", const(1.0), const(0.0)).evaluate(c) == math.inf
    assert math.isnan(binary("/", const(0.0), const(0.0)).evaluate(c))
    assert math.isnan(ASTNode("unary", "log", [const(-1.0)]).evaluate(c))
    assert ASTNode("unary", "log", [const(0.0)]).evaluate(c) == -math.inf
    assert binary("^", const(10.0), const(400.0)).evaluate(c) == math.inf


@pytest.mark.parametrize(
    "op, arg, expected",
    [
        ("-", 2.0, -2.0),
        ("sqrt", 16.0, 4.0),
        ("cbrt", 27.0, 3.0),
        ("fabs", -3.0, 3.0),
        ("sign", -0.5, -1.0),
        ("sign", 0.0, 1.0),
        ("round", 2.5, 3.0),
        ("round", -2.5, -3.0),
        ("round", 2.4, 2.0),
        ("ceil", 1.2, 2.0),
        ("floor", -1.2, -2.0),
        ("degToRad", 180.0, math.pi),
        ("radToDeg", math.pi, 180.0),
        ("exp", 0.0, 1.0),
        ("log10", 1000.0, 3.0),
        ("atanh", 0.0, 0.0),
    ],
)  # type: ignore[misc]
def test_unary_functions(op: str, arg: float, expected: float) -> None:
    result = ASTNode("unary", op, [const(arg)]).evaluate(ctx())
    assert isinstance(result, float)
    assert result == pytest.approx(expected)


def test_results_are_python_floats() -> None:
    result = binary("+", const(1.0), const(2.0)).evaluate(ctx())
    assert type(result) is float


def test_conditional_is_lazy() -> None:
    c = ctx(0.0, 0.0)
    node = ASTNode(
        "conditional",
        children=[
            const(1.0),
            ASTNode("increment", 1.0, [var("a", 0)]),
            ASTNode("increment", 1.0, [var("b", 1)]),
        ],
    )
    assert node.evaluate(c) == 1.0
    assert c.values == [1.0, 0.0]


def test_logical_operators_evaluate_both_sides() -> None:
    c = ctx(0.0)
    bump = ASTNode("increment", 1.0, [var("n", 0)])
    binary("&&", const(0.0), bump).evaluate(c)
    binary("||", const(1.0), bump).evaluate(c)
    assert c.values == [2.0]


def test_assignment_chain_sets_every_target() -> None:
    c = ctx(0.0, 0.0, 0.0)
    a, b, cc = var("a", 0), var("b", 1), var("c", 2)
    inner = ASTNode("assign", children=[ASTNode("assign", children=[a, b]), cc])
    node = ASTNode("assign", children=[inner, const(5.0)])
    assert inner.can_be_modified()
    assert not node.can_be_modified()
    assert node.evaluate(c) == 5.0
    assert c.values == [5.0, 5.0, 5.0]


def test_compound_assign_and_increment() -> None:
    c = ctx(10.0)
    x = var("x", 0)
    assert ASTNode("compound_assign", "-", [x, const(4.0)]).evaluate(c) == 6.0
    assert ASTNode("compound_assign", "/", [x, const(4.0)]).evaluate(c) == 1.5
    assert ASTNode("increment", -1.0, [x]).evaluate(c) == 0.5
    assert c.values == [0.5]


def test_can_be_modified() -> None:
    x = var("x", 0)
    assert x.can_be_modified()
    assert not const(1.0).can_be_modified()
    assert not binary("+", x, const(1.0)).can_be_modified()
    assert ASTNode("increment", 1.0, [x]).can_be_modified()
    assert not ASTNode("assign", children=[x, const(1.0)]).can_be_modified()


def test_set_value_on_constant_fails() -> None:
    with pytest.raises(TypeError):
        const(1.0).set_value(ctx(), 2.0)


def test_print_single_variable(output: io.StringIO) -> None:
    c = ctx(3.5, output=output)
    assert ASTNode("print", children=[var("x", 0)]).evaluate(c) == 3.5
    assert output.getvalue() == "x = 3.5\n"


def test_print_mixed_arguments(output: io.StringIO) -> None:
    c = ctx(output=output)
    node = ASTNode(
        "print", children=[const(1.0), const(2.0), ASTNode("string", "hi")]
    )
    assert node.evaluate(c) == 2.0
    assert output.getvalue() == "1 2 hi\n"


def test_print_only_strings_returns_zero(output: io.StringIO) -> None:
    c = ctx(output=output)
    node = ASTNode("print", children=[ASTNode("string", "a"), ASTNode("string", "b")])
    assert node.evaluate(c) == 0.0
    assert output.getvalue() == "a b\n"


def test_print_uses_twelve_significant_digits(output: io.StringIO) -> None:
    c = ctx(output=output)
    ASTNode("print", children=[const(1.0 / 3.0)]).evaluate(c)
    assert output.getvalue() == "0.333333333333\n"


def test_print_defaults_to_stdout(capsys: pytest.CaptureFixture[str]) -> None:
    ASTNode("print", children=[const(7.0)]).evaluate(ctx())
    assert capsys.readouterr().out == "7\n"


def test_rands_reseeds_shared_generator() -> None:
    c = ctx()
    seed = ASTNode("unary", "rands", [const(42.0)])
    draw = binary("urand", const(0.0), const(1.0))
    assert seed.evaluate(c) == 42.0
    first = [draw.evaluate(c) for _ in range(3)]
    seed.evaluate(c)
    assert [draw.evaluate(c) for _ in range(3)] == first


def test_urand_and_nrand_ranges() -> None:
    c = ctx()
    for _ in range(50):
        assert 5.0 <= binary("urand", const(5.0), const(6.0)).evaluate(c) < 6.0
    assert binary("nrand", const(3.0), const(0.0)).evaluate(c) == 3.0


def test_variable_table() -> None:
    table = VariableTable(["a", "b", "a"], capacity=3)
    assert table.names == ["a", "b"]
    assert table.values == [0.0, 0.0]
    assert table.index_of("b") == 1
    assert table.index_of("z") is None
    assert table.add("a") == 0
    assert table.add("c") == 2
    assert table.is_full()
    assert table.add("d") is None
    assert "c" in table
    assert len(table) == 3


def test_unbounded_variable_table() -> None:
    table = VariableTable()
    for i in range(200):
        assert table.add(f"v{i}") == i
    assert not table.is_full()


def test_to_dict() -> None:
    node = binary("+", var("x", 0), const(1.0))
    assert node.to_dict() == {
        "kind": "binary",
        "value": "+",
        "index": None,
        "line": 0,
        "col": 0,
        "children": [
            {
                "kind": "variable",
                "value": "x",
                "index": 0,
                "line": 0,
                "col": 0,
                "children": [],
            },
            {
                "kind": "constant",
                "value": 1.0,
                "index": None,
                "line": 0,
                "col": 0,
                "children": [],
            },
        ],
    }


def test_describe_conditional() -> None:
    node = ASTNode("conditional", children=[var("x", 0), const(1.0), const(0.0)])
    assert node.describe().splitlines() == [
        "Conditional",
        "  condition:",
        "    Variable x [0]",
        "  then:",
        "    Constant 1",
        "  else:",
        "    Constant 0",
    ]


def test_repr_and_eq() -> None:
    node = binary("*", var("x", 0), const(2.0))
    assert "binary" in repr(node)
    assert "value='*'" in repr(node)
    assert node == binary("*", var("x", 0), const(2.0))
    assert node != binary("*", var("x", 1), const(2.0))
    assert node != "not a node"


@given(
    st.floats(allow_nan=False, allow_infinity=False, width=64),
    st.floats(allow_nan=False, allow_infinity=False, width=64),
)  # type: ignore[misc]
def test_min_max_select_an_operand(a: float, b: float) -> None:
    c = ctx()
    low = binary("min", const(a), const(b)).evaluate(c)
    high = binary("max", const(a), const(b)).evaluate(c)
    assert {low, high} <= {a, b}
    assert low <= high


@given(st.floats(allow_nan=False, allow_infinity=False))  # type: ignore[misc]
def test_equality_is_reflexive(x: float) -> None:
    assert binary("==", const(x), const(x)).evaluate(ctx()) == 1.0
    assert binary("<=", const(x), const(x)).evaluate(ctx()) == 1.0
    assert binary(">=", const(x), const(x)).evaluate(ctx()) == 1.0
