"""
Abstract syntax tree and evaluator for cexpr expressions.

Classes:
    ASTNode:
        Tagged tree node produced by the parser. A node knows how to evaluate
        itself against an `EvalContext` and, for assignable kinds, how to store
        a value back into the variable slots.

    ASTDict:
        TypedDict shape of `ASTNode.to_dict()`, for debugging and tests.

    VariableTable:
        Ordered unique variable names, each bound to one slot of a value list.

    EvalContext:
        Everything evaluation touches: the value slots, the shared random
        generator, the ``print`` output stream and the ULP tolerance.

Node kinds:
    constant         value = float
    variable         value = name, index = slot
    string           value = text (only as a ``print`` argument)
    unary            value = ``"-"`` or a one-argument function name; children = [operand]
    binary           value = operator or two-argument function name; children = [left, right]
    print            children = arguments
    assign           children = [target, expression]
    compound_assign  value = ``"+"``, ``"-"``, ``"*"`` or ``"/"``; children = [target, expression]
    increment        value = +1.0 or -1.0; children = [variable]
    conditional      children = [test, then, else]

Evaluation never raises on arithmetic: numpy ufuncs run under
``numpy.errstate(all="ignore")`` so IEEE-754 infinities and NaNs flow through.
"""

import sys
from typing import Any, Callable, TextIO, TypedDict

import numpy as np

from cexpr.cexpr_constants import DEFAULT_ULP_TOLERANCE, format_number
from cexpr.cexpr_mathutils import (
    c_round,
    is_equal,
    is_inf_or_equal,
    is_sup_or_equal,
    is_true,
)
from cexpr.cexpr_random import RandomState, seed_from_value


class ASTDict(TypedDict, total=False):
    """Serialized form of an ASTNode."""

    kind: str
    value: Any
    index: int | None
    line: int
    col: int
    children: list["ASTDict"]


class VariableTable:
    """Ordered variable names mapped 1:1 to slots of ``values``.

    Args:
        names: Initial names, in slot order. Duplicates keep their first slot.
        capacity: Maximum number of names the table may hold, or None for no limit.
    """

    def __init__(self, names=(), capacity: int | None = None):
        self.names: list[str] = []
        self.values: list[float] = []
        self.capacity = capacity
        self._index: dict[str, int] = {}
        for name in names:
            if name not in self._index:
                self._append(name)

    def _append(self, name: str) -> int:
        self._index[name] = len(self.names)
        self.names.append(name)
        self.values.append(0.0)
        return self._index[name]

    def index_of(self, name: str) -> int | None:
        """Looks up the slot of a name.

        Args:
            name (str): Variable name.

        Returns:
            int | None: The slot index, or None if the name is unknown.
        """
        return self._index.get(name)

    def is_full(self) -> bool:
        """Returns True when a capacity is set and has been reached."""
        return self.capacity is not None and len(self.names) >= self.capacity

    def add(self, name: str) -> int | None:
        """Returns the slot of a name, creating a zeroed one if needed.

        Args:
            name (str): Variable name.

        Returns:
            int | None: The existing or new slot index, or None when the table
            is full.
        """
        index = self._index.get(name)
        if index is not None:
            return index
        if self.is_full():
            return None
        return self._append(name)

    def __contains__(self, name: object) -> bool:
        return name in self._index

    def __len__(self) -> int:
        return len(self.names)

    def __repr__(self) -> str:
        return f"VariableTable({self.names!r})"


class EvalContext:
    """State shared by every node evaluated in one session.

    Attributes:
        values (list[float]): Variable slots, indexed by ``variable`` nodes.
        random (RandomState): Generator behind ``urand``, ``nrand`` and ``rands``.
        output (TextIO): Stream written by ``print``.
        ulp_tolerance (int): Tolerance for ``==``, ``<=``, truth tests, etc.
    """

    def __init__(
        self,
        values: list[float] | None = None,
        random: RandomState | None = None,
        output: TextIO | None = None,
        ulp_tolerance: int = DEFAULT_ULP_TOLERANCE,
    ):
        self.values = values if values is not None else []
        self.random = random or RandomState()
        self.output = output
        self.ulp_tolerance = ulp_tolerance

    def write(self, text: str) -> None:
        """Writes to ``output``, or to the current ``sys.stdout`` when unset."""
        (self.output or sys.stdout).write(text)


def _sign(x: float) -> float:
    return -1.0 if x < 0.0 else 1.0


UNARY_EVALUATORS: dict[str, Callable[[float], Any]] = {
    "-": np.negative,
    "sqrt": np.sqrt,
    "cbrt": np.cbrt,
    "exp": np.exp,
    "log": np.log,
    "log10": np.log10,
    "sin": np.sin,
    "cos": np.cos,
    "tan": np.tan,
    "asin": np.arcsin,
    "acos": np.arccos,
    "atan": np.arctan,
    "sinh": np.sinh,
    "cosh": np.cosh,
    "tanh": np.tanh,
    "asinh": np.arcsinh,
    "acosh": np.arccosh,
    "atanh": np.arctanh,
    "ceil": np.ceil,
    "floor": np.floor,
    "fabs": np.fabs,
    "sign": _sign,
    "round": c_round,
    "degToRad": np.deg2rad,
    "radToDeg": np.rad2deg,
}

ARITHMETIC_EVALUATORS: dict[str, Callable[[float, float], Any]] = {
    "+": np.add,
    "-": np.subtract,
    "*": np.multiply,
    "/": np.divide,
    "%": np.fmod,
    "^": np.power,
    "pow": np.power,
    "atan2": np.arctan2,
    "min": lambda a, b: a if a < b else b,
    "max": lambda a, b: b if a < b else a,
}


class ASTNode:
    """
    A node of the expression tree.

    Args:
        kind (str): Node kind (see module docstring).
        value (Any, optional): Literal, name, operator or increment delta.
        children (list[ASTNode], optional): Operands in evaluation order.
        index (int, optional): Slot index for ``variable`` nodes.
        line (int): Source line of the token the node was built from, 0 when unknown.
        col (int): Source column, 0 when unknown.

    Methods:
        evaluate(ctx): Computes the node's value.
        can_be_modified(): True if the node may appear left of ``=``.
        set_value(ctx, value): Stores through an assignable node.
        to_dict(): Nested dict dump.
        describe(): Indented multi-line dump.
    """

    def __init__(
        self,
        kind: str,
        value: Any = None,
        children: list["ASTNode"] | None = None,
        index: int | None = None,
        line: int = 0,
        col: int = 0,
    ):
        self.kind = kind
        self.value = value
        self.children: list["ASTNode"] = children or []
        self.index = index
        self.line = line
        self.col = col

    def __repr__(self) -> str:
        parts = [self.kind]
        if self.value is not None:
            parts.append(f"value={self.value!r}")
        if self.index is not None:
            parts.append(f"index={self.index}")
        if self.children:
            parts.append(f"children=[{', '.join(repr(c) for c in self.children)}]")
        return f"ASTNode({', '.join(parts)})"

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, ASTNode):
            return False
        return (
            self.kind == other.kind
            and self.value == other.value
            and self.index == other.index
            and self.children == other.children
        )

    # ---------------------------------------------------------------
    # Evaluation
    # ---------------------------------------------------------------

    def evaluate(self, ctx: EvalContext) -> float:
        """
        Computes the value of this node.

        Args:
            ctx (EvalContext): Variable slots, random state and print output.

        Returns:
            float: The result. Invalid arithmetic yields inf or NaN, never raises.
        """
        with np.errstate(all="ignore"):
            return self._eval(ctx)

    def _eval(self, ctx: EvalContext) -> float:
        return _EVALUATORS[self.kind](self, ctx)

    def _eval_constant(self, ctx: EvalContext) -> float:
        return self.value

    def _eval_variable(self, ctx: EvalContext) -> float:
        return ctx.values[self.index]

    def _eval_string(self, ctx: EvalContext) -> float:
        # strings only carry text for print; as a value they are zero
        return 0.0

    def _eval_unary(self, ctx: EvalContext) -> float:
        arg = self.children[0]._eval(ctx)
        if self.value == "rands":
            seed = seed_from_value(arg)
            ctx.random.reseed(seed)
            return float(seed)
        return float(UNARY_EVALUATORS[self.value](arg))

    def _eval_binary(self, ctx: EvalContext) -> float:
        left = self.children[0]._eval(ctx)
        right = self.children[1]._eval(ctx)
        op = self.value
        ulp = ctx.ulp_tolerance
        if op in ARITHMETIC_EVALUATORS:
            return float(ARITHMETIC_EVALUATORS[op](left, right))
        if op == "==":
            return float(is_equal(left, right, ulp))
        if op == "!=":
            return float(not is_equal(left, right, ulp))
        if op == "<":
            return float(left < right)
        if op == ">":
            return float(left > right)
        if op == "<=":
            return float(is_inf_or_equal(left, right, ulp))
        if op == ">=":
            return float(is_sup_or_equal(left, right, ulp))
        if op == "&&":
            return float(is_true(left, ulp) and is_true(right, ulp))
        if op == "||":
            return float(is_true(left, ulp) or is_true(right, ulp))
        if op == "urand":
            return left + ctx.random.uniform() * (right - left)
        if op == "nrand":
            return left + right * ctx.random.normal()
        raise ValueError(f"unknown binary operator {op!r}")

    def _eval_print(self, ctx: EvalContext) -> float:
        """Prints ``name = value`` for a lone variable, else the arguments joined by spaces.

        Returns:
            float: The last numeric argument, 0.0 if there is none.
        """
        if len(self.children) == 1 and self.children[0].kind == "variable":
            var = self.children[0]
            result = var._eval(ctx)
            ctx.write(f"{var.value} = {format_number(result)}\n")
            return result
        parts = []
        result = 0.0
        for arg in self.children:
            if arg.kind == "string":
                parts.append(arg.value)
            else:
                result = arg._eval(ctx)
                parts.append(format_number(result))
        ctx.write(" ".join(parts) + "\n")
        return result

    def _eval_assign(self, ctx: EvalContext) -> float:
        target, expr = self.children
        return target.set_value(ctx, expr._eval(ctx))

    def _eval_compound_assign(self, ctx: EvalContext) -> float:
        target, expr = self.children
        current = target._eval(ctx)
        value = float(ARITHMETIC_EVALUATORS[self.value](current, expr._eval(ctx)))
        return target.set_value(ctx, value)

    def _eval_increment(self, ctx: EvalContext) -> float:
        target = self.children[0]
        return target.set_value(ctx, target._eval(ctx) + self.value)

    def _eval_conditional(self, ctx: EvalContext) -> float:
        test, then, otherwise = self.children
        if is_true(test._eval(ctx), ctx.ulp_tolerance):
            return then._eval(ctx)
        return otherwise._eval(ctx)

    # ---------------------------------------------------------------
    # Assignability
    # ---------------------------------------------------------------

    def can_be_modified(self) -> bool:
        """True for a variable, or an assignment chain ending in one."""
        if self.kind == "variable":
            return True
        if self.kind in ("assign", "compound_assign"):
            return self.children[1].can_be_modified()
        if self.kind == "increment":
            return self.children[0].can_be_modified()
        return False

    def set_value(self, ctx: EvalContext, value: float) -> float:
        """Stores a value through this node.

        Args:
            ctx (EvalContext): Holds the variable slots written to.
            value (float): The value to store.

        Returns:
            float: The stored value.

        Raises:
            TypeError: If the node is not assignable.
        """
        if self.kind == "variable":
            ctx.values[self.index] = float(value)
            return ctx.values[self.index]
        if self.kind in ("assign", "compound_assign"):
            target, expr = self.children
            return target.set_value(ctx, expr.set_value(ctx, value))
        if self.kind == "increment":
            return self.children[0].set_value(ctx, value)
        raise TypeError(f"cannot assign to a {self.kind} node")

    # ---------------------------------------------------------------
    # Dumps
    # ---------------------------------------------------------------

    def to_dict(self) -> ASTDict:
        """
        Converts the node and its descendants into nested dictionaries.

        Returns:
            ASTDict: ``kind``, ``value``, ``index``, ``line``, ``col`` and
            ``children`` of this node.
        """
        return {
            "kind": self.kind,
            "value": self.value,
            "index": self.index,
            "line": self.line,
            "col": self.col,
            "children": [c.to_dict() for c in self.children],
        }

    def label(self) -> str:
        """One-line caption used by `describe`, e.g. ``Binary +`` or ``Variable x [0]``."""
        if self.kind == "constant":
            return f"Constant {format_number(self.value)}"
        if self.kind == "variable":
            return f"Variable {self.value} [{self.index}]"
        if self.kind == "string":
            return f'String "{self.value}"'
        if self.kind == "compound_assign":
            return f"CompoundAssign {self.value}="
        if self.kind == "increment":
            return "Increment ++" if self.value > 0 else "Increment --"
        if self.kind in ("unary", "binary"):
            return f"{self.kind.capitalize()} {self.value}"
        return self.kind.capitalize()

    def describe(self, depth: int = 0) -> str:
        """Indented tree dump, one node per line."""
        pad = "  " * depth
        lines = [pad + self.label()]
        if self.kind == "conditional":
            for section, child in zip(("condition:", "then:", "else:"), self.children):
                lines.append(pad + "  " + section)
                lines.append(child.describe(depth + 2))
        else:
            lines.extend(child.describe(depth + 1) for child in self.children)
        return "\n".join(lines)


_EVALUATORS: dict[str, Callable[[ASTNode, EvalContext], float]] = {
    "constant": ASTNode._eval_constant,
    "variable": ASTNode._eval_variable,
    "string": ASTNode._eval_string,
    "unary": ASTNode._eval_unary,
    "binary": ASTNode._eval_binary,
    "print": ASTNode._eval_print,
    "assign": ASTNode._eval_assign,
    "compound_assign": ASTNode._eval_compound_assign,
    "increment": ASTNode._eval_increment,
    "conditional": ASTNode._eval_conditional,
}
