"""
Function Evaluator

Wraps an objective (expression graph, traceable callable or text) and
returns certified enclosures of its range over boxes. Evaluation keeps
no per-call state, so one evaluator may serve several worker threads.
"""

from typing import Callable, Optional, Sequence, Union
import math
import numpy as np

from .interval import Interval, IntervalEvaluator
from .box import IntervalBox
from ..errors import DimensionMismatch
from ..expr_graph import ExpressionGraph, callable_arity
from ..parser import parse_expression


Objective = Union[ExpressionGraph, Callable, str]


def is_numeric_empty(bound: Interval) -> bool:
    """
    True when a bound carries no usable information: empty, NaN, or
    a lower end of +inf. Boxes with such bounds are discarded.
    """
    if bound.is_empty:
        return True
    if math.isnan(bound.lo) or math.isnan(bound.hi):
        return True
    return bound.lo == math.inf


def as_graph(f: Objective, dim: Optional[int] = None) -> ExpressionGraph:
    """
    Coerce an objective to an ExpressionGraph.

    Strings are parsed (variables numbered by first appearance),
    callables are traced with one argument per positional parameter,
    or `dim` arguments when the callable takes *args.
    """
    if isinstance(f, ExpressionGraph):
        return f
    if isinstance(f, str):
        return parse_expression(f)
    if callable(f):
        arity = callable_arity(f)
        if arity is None:
            if dim is None:
                raise ValueError("Cannot infer the arity of a *args callable without a box")
            arity = dim
        return ExpressionGraph.from_callable(f, arity)
    raise TypeError(f"Cannot build an objective from {type(f).__name__}")


class FunctionEvaluator:
    """
    Certified bounds of f over boxes (natural interval extension).

    Args:
        f: ExpressionGraph, callable or expression text
        dim: Box dimension; when given the arity is checked immediately
        strict_domain: Return empty bounds for boxes leaving the domain
            of any partial operation instead of restricting to it
    """

    def __init__(self, f: Objective, dim: Optional[int] = None, strict_domain: bool = False):
        self.graph = as_graph(f, dim)
        self.strict_domain = strict_domain
        self._evaluator = IntervalEvaluator(self.graph, strict_domain)
        if dim is not None:
            self.check_dimension(dim)

    @property
    def n_vars(self) -> int:
        return self.graph.n_vars

    def check_dimension(self, dim: int) -> None:
        if self.graph.n_vars != dim:
            raise DimensionMismatch(self.graph.n_vars, dim)

    def bound(self, box: IntervalBox) -> Interval:
        """Interval enclosure of {f(x) : x in box}."""
        result, _ = self._evaluator.evaluate(box.intervals)
        return result

    def __call__(self, box: IntervalBox) -> Interval:
        return self.bound(box)

    def upper_bound_at(self, point: Sequence[float]) -> float:
        """
        Certified upper end of f at a point.

        Any value at or above f(point) is an upper bound of the global
        minimum, so this is a valid cutoff candidate. Returns +inf when
        f is undefined at the point.
        """
        result = self.bound(IntervalBox.point(point))
        if is_numeric_empty(result):
            return math.inf
        return result.hi

    def value_at(self, point: Sequence[float]) -> float:
        """Floating-point value of f at a point (not certified)."""
        with np.errstate(all="ignore"):
            return self.graph.evaluate(np.asarray(point, dtype=np.float64))


class NegatedEvaluator:
    """Bounds of -f, for running maximisation as minimisation."""

    def __init__(self, inner: FunctionEvaluator):
        self.inner = inner

    @property
    def graph(self) -> ExpressionGraph:
        return self.inner.graph

    @property
    def n_vars(self) -> int:
        return self.inner.n_vars

    def check_dimension(self, dim: int) -> None:
        self.inner.check_dimension(dim)

    def bound(self, box: IntervalBox) -> Interval:
        return -self.inner.bound(box)

    def __call__(self, box: IntervalBox) -> Interval:
        return self.bound(box)

    def upper_bound_at(self, point: Sequence[float]) -> float:
        result = self.bound(IntervalBox.point(point))
        if is_numeric_empty(result):
            return math.inf
        return result.hi

    def value_at(self, point: Sequence[float]) -> float:
        return -self.inner.value_at(point)
