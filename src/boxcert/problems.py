"""
Standard Test Problems

Classic global optimisation test functions as expression graphs, with
their default domain and known global minimizer:

- paraboloid / sphere: f(x) = sum((x_i - c_i)^2), minimum 0 at c
- griewank: f(x) = sum(x_i^2)/4000 - prod(cos(x_i/sqrt(i))) + 1, minimum 0 at 0
- rastrigin: f(x) = 10n + sum(x_i^2 - 10 cos(2 pi x_i)), minimum 0 at 0
- rosenbrock: f(x) = sum(100 (x_{i+1} - x_i^2)^2 + (1 - x_i)^2), minimum 0 at 1
"""

from dataclasses import dataclass
from typing import Optional, Sequence
import math
import numpy as np

from .expr_graph import ExpressionGraph, OpType, TracedVar, cos
from .bounds.box import IntervalBox


@dataclass
class Problem:
    """A test function with its domain and known global minimum."""
    name: str
    graph: ExpressionGraph
    box: IntervalBox
    minimizer: np.ndarray
    minimum: float = 0.0

    @property
    def n_vars(self) -> int:
        return self.graph.n_vars


def default_center(n: int) -> np.ndarray:
    """Minimizer used by paraboloid(): 0.3 + 0.01 i, away from bisection points."""
    return np.array([0.3 + 0.01 * i for i in range(n)], dtype=np.float64)


def build_paraboloid_graph(n: int, center: Sequence[float]) -> ExpressionGraph:
    """
    Build expression graph for f(x) = sum((x_i - center_i)^2).

    Built node by node rather than traced, so large n stays cheap.
    """
    g = ExpressionGraph(n_vars=n)
    terms = []

    for i in range(n):
        v = g.variable(i)
        c = g.constant(center[i])
        diff = g.binary(OpType.SUB, v, c)
        terms.append(g.unary(OpType.SQUARE, diff))

    result = terms[0]
    for t in terms[1:]:
        result = g.binary(OpType.ADD, result, t)

    g.set_output(result)
    return g


def paraboloid(n: int, center: Optional[Sequence[float]] = None, half_width: float = 10.0) -> Problem:
    """Shifted n-dimensional paraboloid over [-half_width, half_width]^n."""
    if n < 1:
        raise ValueError("Dimension must be at least 1")
    center = default_center(n) if center is None else np.asarray(center, dtype=np.float64)
    return Problem(
        name=f"Paraboloid_{n}D",
        graph=build_paraboloid_graph(n, center),
        box=IntervalBox.from_bounds([-half_width] * n, [half_width] * n),
        minimizer=center,
    )


def sphere(n: int, half_width: float = 5.0) -> Problem:
    """Unshifted paraboloid."""
    problem = paraboloid(n, np.zeros(n), half_width)
    problem.name = f"Sphere_{n}D"
    return problem


def _trace_griewank(*vars: TracedVar) -> TracedVar:
    # Sum term: sum(x_i^2)/4000
    sum_term = vars[0] ** 2
    for v in vars[1:]:
        sum_term = sum_term + v ** 2
    sum_term = sum_term / 4000.0

    # Product term: prod(cos(x_i/sqrt(i)))
    prod_term = cos(vars[0])
    for i, v in enumerate(vars[1:], start=2):
        prod_term = prod_term * cos(v / math.sqrt(float(i)))

    return sum_term - prod_term + 1.0


def griewank(n: int, half_width: float = 600.0) -> Problem:
    """Griewank function, highly multimodal with shallow local minima."""
    return Problem(
        name=f"Griewank_{n}D",
        graph=ExpressionGraph.from_callable(_trace_griewank, n),
        box=IntervalBox.from_bounds([-half_width] * n, [half_width] * n),
        minimizer=np.zeros(n),
    )


def _trace_rastrigin(*vars: TracedVar) -> TracedVar:
    result = 10.0 * len(vars)
    for v in vars:
        result = result + (v ** 2 - 10.0 * cos(2.0 * math.pi * v))
    return result


def rastrigin(n: int, half_width: float = 5.12) -> Problem:
    """Rastrigin function, a regular grid of local minima."""
    return Problem(
        name=f"Rastrigin_{n}D",
        graph=ExpressionGraph.from_callable(_trace_rastrigin, n),
        box=IntervalBox.from_bounds([-half_width] * n, [half_width] * n),
        minimizer=np.zeros(n),
    )


def _trace_rosenbrock(*vars: TracedVar) -> TracedVar:
    result = 0.0
    for a, b in zip(vars[:-1], vars[1:]):
        result = result + 100.0 * (b - a ** 2) ** 2 + (1.0 - a) ** 2
    return result


def rosenbrock(n: int, half_width: float = 2.0) -> Problem:
    """Rosenbrock valley; n >= 2."""
    if n < 2:
        raise ValueError("Rosenbrock needs at least 2 variables")
    return Problem(
        name=f"Rosenbrock_{n}D",
        graph=ExpressionGraph.from_callable(_trace_rosenbrock, n),
        box=IntervalBox.from_bounds([-half_width] * n, [half_width] * n),
        minimizer=np.ones(n),
    )
