"""
Tests for Function Evaluator
"""

import math
import numpy as np
import pytest
from boxcert.errors import DimensionMismatch
from boxcert.expr_graph import ExpressionGraph, OpType
from boxcert.bounds.interval import Interval
from boxcert.bounds.box import IntervalBox
from boxcert.bounds.function_evaluator import (
    FunctionEvaluator,
    NegatedEvaluator,
    as_graph,
    is_numeric_empty,
)


class TestAsGraph:
    """Test objective coercion."""

    def test_graph_passthrough(self):
        """Graphs are used as they are."""
        g = ExpressionGraph()
        g.set_output(g.variable(0))
        assert as_graph(g) is g

    def test_text(self):
        """Text is parsed."""
        assert as_graph("x*y").n_vars == 2

    def test_callable(self):
        """Callables are traced by arity."""
        assert as_graph(lambda a, b, c: a + b + c).n_vars == 3

    def test_varargs_needs_dimension(self):
        """*args callables take their arity from the box."""
        assert as_graph(lambda *v: v[0] * v[1], dim=2).n_vars == 2
        with pytest.raises(ValueError):
            as_graph(lambda *v: v[0])

    def test_unsupported(self):
        """Other objects are rejected."""
        with pytest.raises(TypeError):
            as_graph(42)


class TestFunctionEvaluator:
    """Test certified bounds over boxes."""

    def test_bound(self):
        """Test bounds of x^2 over [-2, 3]."""
        f = FunctionEvaluator("x^2", dim=1)
        bound = f.bound(IntervalBox.coerce([(-2, 3)]))
        assert bound.lo == 0.0
        assert bound.hi >= 9.0
        assert f(IntervalBox.coerce([(-2, 3)])) == bound

    def test_dimension_mismatch(self):
        """Arity must match the box dimension."""
        with pytest.raises(DimensionMismatch):
            FunctionEvaluator(lambda x, y: x + y, dim=3)
        f = FunctionEvaluator("x + y")
        with pytest.raises(DimensionMismatch):
            f.check_dimension(1)

    def test_upper_bound_at(self):
        """The certified upper end at a point is at least f(point)."""
        f = FunctionEvaluator("x^2 + 0.1", dim=1)
        upper = f.upper_bound_at([0.3])
        assert upper >= 0.3 * 0.3 + 0.1
        assert upper == pytest.approx(0.19)

    def test_upper_bound_outside_domain(self):
        """Points where f is undefined give +inf."""
        f = FunctionEvaluator("sqrt(x)", dim=1)
        assert f.upper_bound_at([-1.0]) == math.inf

    def test_value_at(self):
        """Floating-point values are not certified but close."""
        f = FunctionEvaluator(lambda x, y: x * y, dim=2)
        assert f.value_at(np.array([2.0, 3.0])) == 6.0
        assert math.isnan(FunctionEvaluator("log(x)").value_at([-1.0]))

    def test_strict_domain(self):
        """Strict evaluators return empty bounds across domain edges."""
        f = FunctionEvaluator("log(x)", dim=1, strict_domain=True)
        assert f.bound(IntervalBox.coerce([(-1, 1)])).is_empty
        assert not f.bound(IntervalBox.coerce([(1, 2)])).is_empty


class TestNegatedEvaluator:
    """Test bounds of -f."""

    def test_negated_bound(self):
        """Bounds are negated."""
        f = FunctionEvaluator("x", dim=1)
        g = NegatedEvaluator(f)
        assert g.bound(IntervalBox.coerce([(1, 2)])) == Interval(-2.0, -1.0)
        assert g.value_at([3.0]) == -3.0
        assert g.upper_bound_at([3.0]) == -3.0
        assert g.n_vars == 1
        assert g.graph is f.graph


class TestNumericEmpty:
    """Test the numeric-empty predicate."""

    def test_cases(self):
        """Empty bounds are numeric-empty, ordinary bounds are not."""
        assert is_numeric_empty(Interval.empty())
        assert not is_numeric_empty(Interval(0.0, 1.0))
        assert not is_numeric_empty(Interval(-math.inf, math.inf))


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
