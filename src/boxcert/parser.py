"""
Expression and Constraint Parser

Compiles text such as "x^2 + y^2 <= 1" into expression graphs and
constraints. Text is parsed with Python's own grammar (the standard
library ast module), then lowered node by node into an ExpressionGraph:

- `^` and `**` are both powers; `x^2` becomes a SQUARE node
- functions: sqrt, exp, log, sin, cos, tan, asin, acos, atan, sinh,
  cosh, tanh, abs, min, max
- named constants: pi, e
- comparisons: <=, >=, ==, and chains such as 0 <= x*y <= 1
- several constraints joined with `and`

Strict comparisons are accepted and read as their closed version, as
interval methods cannot tell an open set from its closure.

Variables are numbered in the order given by `variables`, or by first
appearance in the text.
"""

import ast
import math
from fractions import Fraction
from typing import Dict, List, Optional, Sequence, Tuple, Union

from .errors import ParseError
from .expr_graph import ExpressionGraph, ExprNode, OpType, _eval_binary
from .bounds.interval import E_HI, E_LO, PI_HI, PI_LO, Interval
from .constraint import Constraint


UNARY_FUNCTIONS = {
    "sqrt": OpType.SQRT,
    "exp": OpType.EXP,
    "log": OpType.LOG,
    "sin": OpType.SIN,
    "cos": OpType.COS,
    "tan": OpType.TAN,
    "asin": OpType.ASIN,
    "acos": OpType.ACOS,
    "atan": OpType.ATAN,
    "sinh": OpType.SINH,
    "cosh": OpType.COSH,
    "tanh": OpType.TANH,
    "abs": OpType.ABS,
}

BINARY_FUNCTIONS = {
    "min": OpType.MIN,
    "max": OpType.MAX,
}

# Named constants are not doubles: each carries a bracket of its true value
CONSTANTS = {
    "pi": (PI_LO, PI_HI),
    "e": (E_LO, E_HI),
}

_BIN_OPS = {
    ast.Add: OpType.ADD,
    ast.Sub: OpType.SUB,
    ast.Mult: OpType.MUL,
    ast.Div: OpType.DIV,
    ast.Pow: OpType.POW,
}

_EXACT_OPS = {
    OpType.ADD: lambda a, b: a + b,
    OpType.SUB: lambda a, b: a - b,
    OpType.MUL: lambda a, b: a * b,
    OpType.DIV: lambda a, b: a / b,
}

# A compiled operand: a float (folded constant) or a node of the graph being built
Operand = Union[float, ExprNode]


def _parse(text: str) -> ast.expr:
    if not isinstance(text, str) or not text.strip():
        raise ParseError("Expression text must be a non-empty string")
    try:
        # `^` is a power, not Python's xor (which also binds looser than +)
        return ast.parse(text.strip().replace("^", "**"), mode="eval").body
    except SyntaxError as e:
        raise ParseError(f"Invalid syntax in {text!r}: {e.msg}") from e


def _variable_order(tree: ast.expr, variables: Optional[Sequence[str]]) -> List[str]:
    """Variable names in index order."""
    function_names = {
        id(node.func) for node in ast.walk(tree) if isinstance(node, ast.Call)
    }
    names = [
        node for node in ast.walk(tree)
        if isinstance(node, ast.Name) and id(node) not in function_names
    ]

    if variables is not None:
        variables = list(variables)
        if len(set(variables)) != len(variables):
            raise ParseError(f"Duplicate variable names in {variables}")
        for node in names:
            if node.id not in variables and node.id not in CONSTANTS:
                raise ParseError(f"Unknown variable {node.id!r}")
        return variables

    names.sort(key=lambda n: (n.lineno, n.col_offset))
    order: List[str] = []
    for node in names:
        if node.id not in CONSTANTS and node.id not in order:
            order.append(node.id)
    return order


class _GraphBuilder:
    """Lowers one ast expression into a fresh ExpressionGraph."""

    def __init__(self, variables: List[str]):
        self.variables = variables
        self.index = {name: i for i, name in enumerate(variables)}
        self.graph = ExpressionGraph(n_vars=len(variables))

    def node(self, operand: Operand) -> ExprNode:
        if isinstance(operand, float):
            return self.graph.constant(operand)
        return operand

    def finish(self, operand: Operand) -> ExpressionGraph:
        self.graph.set_output(self.node(operand))
        return self.graph

    def build(self, node: ast.expr) -> Operand:
        if isinstance(node, ast.Constant):
            if isinstance(node.value, bool) or not isinstance(node.value, (int, float)):
                raise ParseError(f"Unsupported literal {node.value!r}")
            return float(node.value)

        if isinstance(node, ast.Name):
            if node.id in self.index:
                return self.graph.variable(self.index[node.id], node.id)
            if node.id in CONSTANTS:
                lo, hi = CONSTANTS[node.id]
                return self.graph.constant(lo, enclosure=(lo, hi), name=node.id)
            raise ParseError(f"Unknown variable {node.id!r}")

        if isinstance(node, ast.UnaryOp):
            operand = self.build(node.operand)
            if isinstance(node.op, ast.UAdd):
                return operand
            if isinstance(node.op, ast.USub):
                if isinstance(operand, float):
                    return -operand
                return self.graph.unary(OpType.NEG, operand)
            raise ParseError(f"Unsupported unary operator {type(node.op).__name__}")

        if isinstance(node, ast.BinOp):
            op = _BIN_OPS.get(type(node.op))
            if op is None:
                raise ParseError(f"Unsupported operator {type(node.op).__name__}")
            return self.binary(op, self.build(node.left), self.build(node.right))

        if isinstance(node, ast.Call):
            return self.call(node)

        raise ParseError(f"Unsupported syntax: {type(node).__name__}")

    def binary(self, op: OpType, left: Operand, right: Operand) -> Operand:
        if isinstance(left, float) and isinstance(right, float):
            folded = _fold(op, left, right)
            if folded is not None:
                return folded
        if op == OpType.POW and isinstance(right, float) and right == 2.0:
            return self.graph.unary(OpType.SQUARE, self.node(left))
        return self.graph.binary(op, self.node(left), self.node(right))

    def call(self, node: ast.Call) -> Operand:
        if not isinstance(node.func, ast.Name):
            raise ParseError("Only plain function names can be called")
        if node.keywords:
            raise ParseError(f"{node.func.id}() takes no keyword arguments")
        name = node.func.id
        args = [self.build(arg) for arg in node.args]

        if name in UNARY_FUNCTIONS:
            if len(args) != 1:
                raise ParseError(f"{name}() takes exactly one argument ({len(args)} given)")
            return self.graph.unary(UNARY_FUNCTIONS[name], self.node(args[0]))

        if name in BINARY_FUNCTIONS:
            if len(args) < 2:
                raise ParseError(f"{name}() takes at least two arguments ({len(args)} given)")
            result = args[0]
            for arg in args[1:]:
                result = self.graph.binary(BINARY_FUNCTIONS[name], self.node(result), self.node(arg))
            return result

        raise ParseError(f"Unknown function {name!r}")


def _fold(op: OpType, a: float, b: float) -> Optional[float]:
    """
    Fold a constant operation when its double result is exact.

    Inexact results stay in the graph so interval evaluation rounds
    them outward.
    """
    if op == OpType.POW:
        if float(b).is_integer() and 0 <= b <= 64:
            exact = Fraction(a) ** int(b)
            value = float(exact) if abs(exact) < Fraction(1.7976931348623157e308) else None
            return value if value is not None and Fraction(value) == exact else None
        return None
    if op == OpType.DIV and b == 0.0:
        return None
    if op in _EXACT_OPS:
        value = _eval_binary(op, a, b)
        if math.isfinite(value) and Fraction(value) == _EXACT_OPS[op](Fraction(a), Fraction(b)):
            return float(value)
    return None


def parse_expression(text: str, variables: Optional[Sequence[str]] = None) -> ExpressionGraph:
    """
    Compile an arithmetic expression into an ExpressionGraph.

    Args:
        text: Expression such as "(x - 3)^2 + sin(y)"
        variables: Variable names in index order (default: first appearance)

    Returns:
        ExpressionGraph whose n_vars is the number of variables

    Raises:
        ParseError: On syntax errors, unknown names, or relational text
    """
    tree = _parse(text)
    if isinstance(tree, (ast.Compare, ast.BoolOp)):
        raise ParseError(f"Expected an expression, got a relation: {text!r}")
    builder = _GraphBuilder(_variable_order(tree, variables))
    return builder.finish(builder.build(tree))


def parse_constraints(text: str, variables: Optional[Sequence[str]] = None) -> List[Constraint]:
    """
    Compile relational text into constraints that must all hold.

    A chain `a <= f(x) <= b` with constant ends gives the single
    constraint f(x) in [a, b]; a chain with several non-constant
    operands gives one constraint per link. Conjunctions with `and`
    are flattened.
    """
    tree = _parse(text)
    names = _variable_order(tree, variables)

    if isinstance(tree, ast.BoolOp):
        if not isinstance(tree.op, ast.And):
            raise ParseError("Only 'and' may join constraints; use Separator '|' for unions")
        relations = tree.values
    else:
        relations = [tree]

    constraints: List[Constraint] = []
    for relation in relations:
        if not isinstance(relation, ast.Compare):
            raise ParseError(f"Expected a comparison, got: {ast.unparse(relation)!r}")
        constraints.extend(_compile_compare(relation, names))
    return constraints


def parse_constraint(text: str, variables: Optional[Sequence[str]] = None) -> Constraint:
    """
    Compile relational text into exactly one constraint.

    Raises:
        ParseError: If the text is not relational or holds several constraints
    """
    constraints = parse_constraints(text, variables)
    if len(constraints) != 1:
        raise ParseError(
            f"Expected a single constraint, got {len(constraints)}; use parse_constraints"
        )
    return constraints[0]


def _constant_value(node: ast.expr) -> Optional[float]:
    """Value of an operand that holds no variables, else None."""
    builder = _GraphBuilder([])
    try:
        value = builder.build(node)
    except ParseError:
        return None
    return value if isinstance(value, float) else None


def _compile_compare(node: ast.Compare, names: List[str]) -> List[Constraint]:
    operands = [node.left] + list(node.comparators)
    constants = [_constant_value(op) for op in operands]
    text = ast.unparse(node)

    # target per non-constant operand index, and f - g links
    targets: Dict[int, Interval] = {}
    links: List[Tuple[int, int, Interval]] = []

    for i, op in enumerate(node.ops):
        a, b = constants[i], constants[i + 1]
        if isinstance(op, (ast.LtE, ast.Lt)):
            lo_side, hi_side = i, i + 1
        elif isinstance(op, (ast.GtE, ast.Gt)):
            lo_side, hi_side = i + 1, i
        elif isinstance(op, ast.Eq):
            lo_side, hi_side = i, i + 1
        else:
            raise ParseError(f"Unsupported comparison {type(op).__name__} in {text!r}")
        equality = isinstance(op, ast.Eq)

        lo_c, hi_c = constants[lo_side], constants[hi_side]
        if a is not None and b is not None:
            raise ParseError(f"Comparison between constants in {text!r}")
        if lo_c is not None:
            # constant <= expr
            target = Interval(lo_c, lo_c) if equality else Interval(lo_c, math.inf)
            _merge(targets, hi_side, target, text)
        elif hi_c is not None:
            # expr <= constant
            target = Interval(hi_c, hi_c) if equality else Interval(-math.inf, hi_c)
            _merge(targets, lo_side, target, text)
        else:
            # expr_lo - expr_hi <= 0
            target = Interval(0.0, 0.0) if equality else Interval(-math.inf, 0.0)
            links.append((lo_side, hi_side, target))

    constraints = []
    for index in sorted(targets):
        builder = _GraphBuilder(names)
        graph = builder.finish(builder.build(operands[index]))
        constraints.append(Constraint(graph=graph, target=targets[index], text=text))
    for lo_side, hi_side, target in links:
        builder = _GraphBuilder(names)
        diff = builder.binary(
            OpType.SUB, builder.build(operands[lo_side]), builder.build(operands[hi_side])
        )
        constraints.append(Constraint(graph=builder.finish(diff), target=target, text=text))
    return constraints


def _merge(targets: Dict[int, Interval], index: int, target: Interval, text: str) -> None:
    merged = targets[index].intersect(target) if index in targets else target
    if merged.is_empty:
        raise ParseError(f"Contradictory bounds in {text!r}")
    targets[index] = merged


def variable_names(*texts: str) -> List[str]:
    """Variable names of one or more texts, in order of first appearance."""
    order: List[str] = []
    for text in texts:
        for name in _variable_order(_parse(text), None):
            if name not in order:
                order.append(name)
    return order
