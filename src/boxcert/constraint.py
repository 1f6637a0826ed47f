"""
Constraints

A constraint is an expression graph together with a target interval
T, meaning f(x) in T. Inequalities use half-lines as targets
(f(x) <= 0 has T = (-inf, 0]), equalities degenerate targets.

The closed complement of T is one or two half-lines; the separator
contracts against each of them to bound the violating points.
"""

from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple, Union
import math

from .expr_graph import ExpressionGraph, callable_arity
from .bounds.interval import Interval


@dataclass(frozen=True)
class Constraint:
    """
    f(x) in target.

    Attributes:
        graph: Expression graph of f
        target: Allowed values of f (closed, possibly unbounded)
        text: Source text, when the constraint was parsed
    """
    graph: ExpressionGraph
    target: Interval
    text: str = ""

    def __post_init__(self):
        if self.target.is_empty:
            raise ValueError("Constraint target must not be empty")

    @property
    def n_vars(self) -> int:
        return self.graph.n_vars

    def complement_targets(self) -> List[Interval]:
        """
        Closed pieces of the complement of the target.

        Their union is the closure of R minus target, so points on the
        target boundary belong to both the target and its complement.
        """
        pieces = []
        if self.target.lo > -math.inf:
            pieces.append(Interval(-math.inf, self.target.lo))
        if self.target.hi < math.inf:
            pieces.append(Interval(self.target.hi, math.inf))
        return pieces

    def is_satisfied_at(self, x: Sequence[float]) -> bool:
        """Floating-point check at a point (not certified)."""
        value = self.graph.evaluate(x)
        return self.target.contains(value)

    def to_text(self) -> str:
        if self.text:
            return self.text
        body = self.graph.to_text()
        lo, hi = self.target.lo, self.target.hi
        if lo == hi:
            return f"{body} == {lo:g}"
        if lo == -math.inf:
            return f"{body} <= {hi:g}"
        if hi == math.inf:
            return f"{body} >= {lo:g}"
        return f"{lo:g} <= {body} <= {hi:g}"

    def __repr__(self) -> str:
        return f"Constraint({self.to_text()})"

    @classmethod
    def from_callable(
        cls,
        func: Callable,
        target: Union[Interval, Tuple[float, float]],
        num_vars: Optional[int] = None,
        var_names: Optional[List[str]] = None
    ) -> 'Constraint':
        """
        Trace func into a graph and attach the target.

        Example:
            Constraint.from_callable(lambda x, y: x**2 + y**2, (-math.inf, 1.0))
        """
        if num_vars is None:
            num_vars = callable_arity(func)
            if num_vars is None:
                raise ValueError("num_vars is required for callables taking *args")
        graph = ExpressionGraph.from_callable(func, num_vars, var_names)
        return cls(graph=graph, target=Interval.coerce(target))
