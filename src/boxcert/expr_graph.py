"""
Expression Graph for Factorable Functions

Represents real-valued functions as directed acyclic graphs (DAGs)
of elementary operations. The same graph drives:
1. Point evaluation (local probing of upper bounds)
2. Natural interval extension (certified bounds over a box)
3. Forward-backward contraction (constraint separators)

Each node is either:
- Variable: an input variable x_i
- Constant: a fixed value
- UnaryOp: f(child) for f in {neg, abs, sqrt, exp, log, sin, cos, ...}
- BinaryOp: f(left, right) for f in {add, sub, mul, div, pow, min, max}

Graphs are built explicitly, by tracing a Python callable through
TracedVar operator overloading, or by boxcert.parser from text.
"""

from enum import Enum
from typing import Callable, Dict, List, Optional, Sequence, Tuple, Union
from dataclasses import dataclass, field
import inspect
import numpy as np


class OpType(Enum):
    """Elementary operations for expression graphs."""

    # Binary operations
    ADD = "add"
    SUB = "sub"
    MUL = "mul"
    DIV = "div"
    POW = "pow"
    MIN = "min"
    MAX = "max"

    # Unary operations
    NEG = "neg"
    ABS = "abs"
    SQRT = "sqrt"
    EXP = "exp"
    LOG = "log"
    SIN = "sin"
    COS = "cos"
    TAN = "tan"
    ASIN = "asin"
    ACOS = "acos"
    ATAN = "atan"
    SINH = "sinh"
    COSH = "cosh"
    TANH = "tanh"
    SQUARE = "square"  # x^2 (special case with tighter bounds)


BINARY_OPS = {OpType.ADD, OpType.SUB, OpType.MUL, OpType.DIV, OpType.POW, OpType.MIN, OpType.MAX}
UNARY_OPS = {OpType.NEG, OpType.ABS, OpType.SQRT, OpType.EXP, OpType.LOG,
             OpType.SIN, OpType.COS, OpType.TAN, OpType.ASIN, OpType.ACOS,
             OpType.ATAN, OpType.SINH, OpType.COSH, OpType.TANH, OpType.SQUARE}

_INFIX = {OpType.ADD: "+", OpType.SUB: "-", OpType.MUL: "*", OpType.DIV: "/", OpType.POW: "^"}


@dataclass(eq=False)
class ExprNode:
    """Base class for expression graph nodes."""
    node_id: int = field(default=-1)


@dataclass(eq=False)
class Variable(ExprNode):
    """
    A variable node representing input x_i.

    Attributes:
        var_index: Index of the variable (0-indexed)
        name: Optional variable name
    """
    var_index: int = 0
    name: str = ""


@dataclass(eq=False)
class Constant(ExprNode):
    """
    A constant node with a fixed value.

    Attributes:
        value: Value used for point evaluation
        enclosure: (lo, hi) bracket of the true value when it is not a
            double (named constants such as pi); None for exact doubles
        name: Optional display name
    """
    value: float = 0.0
    enclosure: Optional[Tuple[float, float]] = None
    name: str = ""

    @property
    def is_exact(self) -> bool:
        return self.enclosure is None


@dataclass(eq=False)
class UnaryOp(ExprNode):
    """A unary operation node: f(child)."""
    op: OpType = OpType.NEG
    child: ExprNode = None


@dataclass(eq=False)
class BinaryOp(ExprNode):
    """A binary operation node: f(left, right)."""
    op: OpType = OpType.ADD
    left: ExprNode = None
    right: ExprNode = None


def _eval_unary(op: OpType, x: float) -> float:
    """Evaluate a unary operation at a point."""
    if op == OpType.NEG:
        return -x
    elif op == OpType.ABS:
        return abs(x)
    elif op == OpType.SQRT:
        return np.sqrt(x)
    elif op == OpType.EXP:
        return np.exp(x)
    elif op == OpType.LOG:
        return np.log(x)
    elif op == OpType.SIN:
        return np.sin(x)
    elif op == OpType.COS:
        return np.cos(x)
    elif op == OpType.TAN:
        return np.tan(x)
    elif op == OpType.ASIN:
        return np.arcsin(x)
    elif op == OpType.ACOS:
        return np.arccos(x)
    elif op == OpType.ATAN:
        return np.arctan(x)
    elif op == OpType.SINH:
        return np.sinh(x)
    elif op == OpType.COSH:
        return np.cosh(x)
    elif op == OpType.TANH:
        return np.tanh(x)
    elif op == OpType.SQUARE:
        return x * x
    else:
        raise ValueError(f"Unknown unary op: {op}")


def _eval_binary(op: OpType, l: float, r: float) -> float:
    """Evaluate a binary operation at a point."""
    if op == OpType.ADD:
        return l + r
    elif op == OpType.SUB:
        return l - r
    elif op == OpType.MUL:
        return l * r
    elif op == OpType.DIV:
        return np.divide(l, r)
    elif op == OpType.POW:
        return np.power(l, r)
    elif op == OpType.MIN:
        return min(l, r)
    elif op == OpType.MAX:
        return max(l, r)
    else:
        raise ValueError(f"Unknown binary op: {op}")


class ExpressionGraph:
    """
    A complete expression graph representing a factorable function.

    The graph is a DAG with:
    - Variable nodes as leaves (inputs)
    - Constant nodes as leaves
    - Operation nodes as internal nodes
    - A designated output node (the function value)

    `n_vars` is the declared arity. It defaults to one more than the
    highest variable index in use, but tracing and parsing set it
    explicitly so a function may ignore some of its inputs.
    """

    def __init__(self, n_vars: Optional[int] = None):
        self.nodes: List[ExprNode] = []
        self.variables: Dict[int, Variable] = {}  # var_index -> Variable node
        self.output_node: Optional[ExprNode] = None
        self._declared_vars = n_vars
        self._next_id: int = 0
        self._order: Optional[List[ExprNode]] = None

    def _add_node(self, node: ExprNode) -> ExprNode:
        """Add a node to the graph and assign an ID."""
        node.node_id = self._next_id
        self._next_id += 1
        self.nodes.append(node)
        self._order = None
        return node

    def variable(self, index: int, name: str = "") -> Variable:
        """Get or create the variable node for x_index."""
        if index in self.variables:
            return self.variables[index]

        var = Variable(var_index=index, name=name or f"x{index}")
        self._add_node(var)
        self.variables[index] = var
        return var

    def constant(
        self,
        value: float,
        enclosure: Optional[Tuple[float, float]] = None,
        name: str = ""
    ) -> Constant:
        """Create a constant node; `enclosure` brackets a value that is not a double."""
        return self._add_node(Constant(value=float(value), enclosure=enclosure, name=name))

    def unary(self, op: OpType, child: ExprNode) -> UnaryOp:
        """Create a unary operation node."""
        if op not in UNARY_OPS:
            raise ValueError(f"{op} is not a unary operation")
        return self._add_node(UnaryOp(op=op, child=child))

    def binary(self, op: OpType, left: ExprNode, right: ExprNode) -> BinaryOp:
        """Create a binary operation node."""
        if op not in BINARY_OPS:
            raise ValueError(f"{op} is not a binary operation")
        return self._add_node(BinaryOp(op=op, left=left, right=right))

    def set_output(self, node: ExprNode) -> None:
        """Set the output node of the graph."""
        self.output_node = node
        self._order = None

    @property
    def n_vars(self) -> int:
        """Declared number of input variables."""
        if self._declared_vars is not None:
            return self._declared_vars
        return self.num_variables()

    def num_variables(self) -> int:
        """Return one more than the highest variable index in use."""
        if not self.variables:
            return 0
        return max(self.variables.keys()) + 1

    def variable_names(self) -> List[str]:
        """Names of x_0 .. x_{n-1}, falling back to x{i} for unused inputs."""
        return [
            self.variables[i].name if i in self.variables else f"x{i}"
            for i in range(self.n_vars)
        ]

    def evaluate(self, x: Union[np.ndarray, Sequence[float], Dict[int, float]]) -> float:
        """
        Evaluate the expression at a point.

        Args:
            x: Variable values (array, list, or dict keyed by index)

        Returns:
            Function value at x
        """
        if self.output_node is None:
            raise ValueError("No output node set")

        if isinstance(x, dict):
            var_values = x
        else:
            var_values = {i: x[i] for i in range(len(x))}

        values: Dict[int, float] = {}
        for node in self.topological_order():
            if isinstance(node, Variable):
                values[node.node_id] = var_values[node.var_index]
            elif isinstance(node, Constant):
                values[node.node_id] = node.value
            elif isinstance(node, UnaryOp):
                values[node.node_id] = _eval_unary(node.op, values[node.child.node_id])
            else:
                values[node.node_id] = _eval_binary(
                    node.op, values[node.left.node_id], values[node.right.node_id]
                )
        return float(values[self.output_node.node_id])

    def __call__(self, x: Union[np.ndarray, Sequence[float]]) -> float:
        """Shorthand for evaluate."""
        return self.evaluate(x)

    def topological_order(self) -> List[ExprNode]:
        """
        Return the nodes reachable from the output, leaves first.

        Computed once per graph and cached; the traversal is iterative so
        deep chains (long sums) do not hit the recursion limit.
        """
        if self._order is not None:
            return self._order

        visited = set()
        order: List[ExprNode] = []
        if self.output_node is not None:
            stack = [(self.output_node, False)]
            while stack:
                node, expanded = stack.pop()
                if expanded:
                    order.append(node)
                    continue
                if node.node_id in visited:
                    continue
                visited.add(node.node_id)
                stack.append((node, True))
                if isinstance(node, UnaryOp):
                    stack.append((node.child, False))
                elif isinstance(node, BinaryOp):
                    stack.append((node.right, False))
                    stack.append((node.left, False))

        self._order = order
        return order

    def to_text(self, node: Optional[ExprNode] = None) -> str:
        """Render the graph (or a sub-expression) as infix text."""
        node = self.output_node if node is None else node
        if node is None:
            return ""
        if isinstance(node, Variable):
            return node.name
        if isinstance(node, Constant):
            return node.name or f"{node.value:g}"
        if isinstance(node, UnaryOp):
            inner = self.to_text(node.child)
            if node.op == OpType.NEG:
                return f"-({inner})"
            if node.op == OpType.SQUARE:
                return f"({inner})^2"
            return f"{node.op.value}({inner})"
        left = self.to_text(node.left)
        right = self.to_text(node.right)
        if node.op in _INFIX:
            return f"({left} {_INFIX[node.op]} {right})"
        return f"{node.op.value}({left}, {right})"

    def __repr__(self) -> str:
        return f"ExpressionGraph({self.to_text()})"

    @classmethod
    def from_callable(
        cls,
        func: Callable,
        num_vars: int,
        var_names: Optional[List[str]] = None
    ) -> 'ExpressionGraph':
        """
        Create an expression graph by tracing a callable.

        This uses operator overloading to capture the computation, so
        `func` may only use arithmetic operators and the math functions
        of this module (sqrt, exp, sin, ...).

        Args:
            func: A callable that takes `num_vars` traced variables
            num_vars: Number of variables
            var_names: Optional variable names

        Returns:
            ExpressionGraph representing the function
        """
        graph = cls(n_vars=num_vars)
        vars = [
            TracedVar(graph, graph.variable(i, var_names[i] if var_names else ""))
            for i in range(num_vars)
        ]
        result = func(*vars)

        if isinstance(result, TracedVar):
            graph.set_output(result.node)
        else:
            # Constant result
            graph.set_output(graph.constant(float(result)))

        return graph


def callable_arity(func: Callable) -> Optional[int]:
    """
    Number of positional parameters of `func`.

    Returns None when the callable accepts *args (any arity) or has no
    inspectable signature.
    """
    try:
        signature = inspect.signature(func)
    except (TypeError, ValueError):
        return None

    count = 0
    for param in signature.parameters.values():
        if param.kind == inspect.Parameter.VAR_POSITIONAL:
            return None
        if param.kind in (inspect.Parameter.POSITIONAL_ONLY,
                          inspect.Parameter.POSITIONAL_OR_KEYWORD):
            if param.default is inspect.Parameter.empty:
                count += 1
    return count


class TracedVar:
    """
    A traced variable for expression graph construction.

    Supports operator overloading to build the graph automatically.
    """

    def __init__(self, graph: ExpressionGraph, node: ExprNode):
        self.graph = graph
        self.node = node

    def _ensure_traced(self, other) -> 'TracedVar':
        """Ensure the other operand is a TracedVar."""
        if isinstance(other, TracedVar):
            return other
        return TracedVar(self.graph, self.graph.constant(float(other)))

    def _binary(self, op: OpType, left: 'TracedVar', right: 'TracedVar') -> 'TracedVar':
        return TracedVar(self.graph, self.graph.binary(op, left.node, right.node))

    def __add__(self, other) -> 'TracedVar':
        return self._binary(OpType.ADD, self, self._ensure_traced(other))

    def __radd__(self, other) -> 'TracedVar':
        return self._binary(OpType.ADD, self._ensure_traced(other), self)

    def __sub__(self, other) -> 'TracedVar':
        return self._binary(OpType.SUB, self, self._ensure_traced(other))

    def __rsub__(self, other) -> 'TracedVar':
        return self._binary(OpType.SUB, self._ensure_traced(other), self)

    def __mul__(self, other) -> 'TracedVar':
        return self._binary(OpType.MUL, self, self._ensure_traced(other))

    def __rmul__(self, other) -> 'TracedVar':
        return self._binary(OpType.MUL, self._ensure_traced(other), self)

    def __truediv__(self, other) -> 'TracedVar':
        return self._binary(OpType.DIV, self, self._ensure_traced(other))

    def __rtruediv__(self, other) -> 'TracedVar':
        return self._binary(OpType.DIV, self._ensure_traced(other), self)

    def __pow__(self, other) -> 'TracedVar':
        # x**2 gets the dedicated square node (tighter than x*x)
        if isinstance(other, (int, float)) and not isinstance(other, bool) and other == 2:
            return TracedVar(self.graph, self.graph.unary(OpType.SQUARE, self.node))
        return self._binary(OpType.POW, self, self._ensure_traced(other))

    def __rpow__(self, other) -> 'TracedVar':
        return self._binary(OpType.POW, self._ensure_traced(other), self)

    def __neg__(self) -> 'TracedVar':
        return TracedVar(self.graph, self.graph.unary(OpType.NEG, self.node))

    def __pos__(self) -> 'TracedVar':
        return self

    def __abs__(self) -> 'TracedVar':
        return TracedVar(self.graph, self.graph.unary(OpType.ABS, self.node))


def _unary_function(op: OpType, point_fn: Callable, method: str) -> Callable:
    """
    Build a math function that traces, bounds or evaluates depending on
    its argument: TracedVar -> graph node, Interval -> interval method,
    anything else -> numpy at a point.
    """
    def apply(x):
        if isinstance(x, TracedVar):
            return TracedVar(x.graph, x.graph.unary(op, x.node))
        if hasattr(x, method) and hasattr(x, "lo"):
            return getattr(x, method)()
        return point_fn(x)

    apply.__name__ = op.value
    apply.__doc__ = f"{op.value}(x) for traced variables, intervals and floats."
    return apply


# Module-level math functions for tracing
sqrt = _unary_function(OpType.SQRT, np.sqrt, "sqrt")
exp = _unary_function(OpType.EXP, np.exp, "exp")
log = _unary_function(OpType.LOG, np.log, "log")
sin = _unary_function(OpType.SIN, np.sin, "sin")
cos = _unary_function(OpType.COS, np.cos, "cos")
tan = _unary_function(OpType.TAN, np.tan, "tan")
asin = _unary_function(OpType.ASIN, np.arcsin, "asin")
acos = _unary_function(OpType.ACOS, np.arccos, "acos")
atan = _unary_function(OpType.ATAN, np.arctan, "atan")
sinh = _unary_function(OpType.SINH, np.sinh, "sinh")
cosh = _unary_function(OpType.COSH, np.cosh, "cosh")
tanh = _unary_function(OpType.TANH, np.tanh, "tanh")


def fmin(a, b):
    """Pointwise minimum of two traced variables (or numbers)."""
    if isinstance(a, TracedVar) or isinstance(b, TracedVar):
        tv = a if isinstance(a, TracedVar) else b
        return tv._binary(OpType.MIN, tv._ensure_traced(a), tv._ensure_traced(b))
    return min(a, b)


def fmax(a, b):
    """Pointwise maximum of two traced variables (or numbers)."""
    if isinstance(a, TracedVar) or isinstance(b, TracedVar):
        tv = a if isinstance(a, TracedVar) else b
        return tv._binary(OpType.MAX, tv._ensure_traced(a), tv._ensure_traced(b))
    return max(a, b)
