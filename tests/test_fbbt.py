"""
Tests for FBBT (Feasibility-Based Bound Tightening)
"""

import math
import numpy as np
import pytest
from boxcert.expr_graph import ExpressionGraph, OpType
from boxcert.bounds.interval import Interval
from boxcert.bounds.box import IntervalBox
from boxcert.bounds.fbbt import (
    FBBTContractor,
    contract_all,
    has_partial_ops,
    nth_root,
)
from boxcert.parser import parse_expression


LE_ZERO = Interval(-math.inf, 0.0)


class TestFBBTEquality:
    """Test FBBT for equality constraints."""

    def test_simple_linear(self):
        """Test FBBT on x + y = 0 with y in [0, 1]."""
        g = ExpressionGraph()
        x = g.variable(0)
        y = g.variable(1)
        g.set_output(g.binary(OpType.ADD, x, y))

        op = FBBTContractor(g, Interval(0.0, 0.0))
        result = op.contract(IntervalBox.coerce([(-5, 5), (0, 1)]))

        assert not result.empty
        assert result.tightened
        bx = result.box[0]
        assert -1.0 - 1e-9 <= bx.lo <= -1.0
        assert 0.0 <= bx.hi <= 1e-9

    def test_product_equality(self):
        """x * y = 4 with y in [1, 2] gives x in [2, 4]."""
        g = parse_expression("x*y")
        result = FBBTContractor(g, Interval(4.0, 4.0)).contract(
            IntervalBox.coerce([(-10, 10), (1, 2)])
        )
        bx = result.box[0]
        assert bx.lo == pytest.approx(2.0)
        assert bx.hi == pytest.approx(4.0)


class TestFBBTInequality:
    """Test FBBT for inequality constraints."""

    def test_simple_bound(self):
        """Test FBBT on x - 1 <= 0 (i.e., x <= 1)."""
        g = parse_expression("x - 1")
        result = FBBTContractor(g, LE_ZERO).contract(IntervalBox.coerce([(-5, 5)]))
        assert result.box[0].lo == -5.0
        assert 1.0 <= result.box[0].hi <= 1.0 + 1e-12

    def test_square(self):
        """x^2 <= 1 narrows x to [-1, 1]."""
        g = parse_expression("x^2")
        result = FBBTContractor(g, Interval(-math.inf, 1.0)).contract(
            IntervalBox.coerce([(-5, 5)])
        )
        bx = result.box[0]
        assert -1.0 - 1e-12 <= bx.lo <= -1.0
        assert 1.0 <= bx.hi <= 1.0 + 1e-12

    def test_square_lower_bound(self):
        """x^2 >= 4 on [0, 5] narrows x to [2, 5]."""
        g = parse_expression("x^2")
        result = FBBTContractor(g, Interval(4.0, math.inf)).contract(
            IntervalBox.coerce([(0, 5)])
        )
        assert 2.0 - 1e-12 <= result.box[0].lo <= 2.0
        assert result.box[0].hi == 5.0

    def test_sqrt(self):
        """sqrt(x) <= 2 drops the undefined part and x > 4."""
        g = parse_expression("sqrt(x)")
        result = FBBTContractor(g, Interval(-math.inf, 2.0)).contract(
            IntervalBox.coerce([(-10, 100)])
        )
        bx = result.box[0]
        assert bx.lo == 0.0
        assert 4.0 <= bx.hi <= 4.0 + 1e-9

    def test_exp(self):
        """exp(x) <= 1 narrows x to x <= 0."""
        g = parse_expression("exp(x)")
        result = FBBTContractor(g, Interval(-math.inf, 1.0)).contract(
            IntervalBox.coerce([(-5, 5)])
        )
        assert 0.0 <= result.box[0].hi <= 1e-9
        assert result.box[0].lo == -5.0

    def test_log(self):
        """log(x) <= 0 narrows x to (0, 1]."""
        g = parse_expression("log(x)")
        result = FBBTContractor(g, LE_ZERO).contract(IntervalBox.coerce([(-5, 5)]))
        assert result.box[0].lo >= 0.0
        assert 1.0 <= result.box[0].hi <= 1.0 + 1e-9

    def test_odd_power(self):
        """x^3 <= -8 narrows x to x <= -2."""
        g = parse_expression("x^3")
        result = FBBTContractor(g, Interval(-math.inf, -8.0)).contract(
            IntervalBox.coerce([(-5, 5)])
        )
        assert result.box[0].lo == -5.0
        assert -2.0 <= result.box[0].hi <= -2.0 + 1e-9

    def test_disk(self):
        """x^2 + y^2 <= 1 narrows both variables to [-1, 1]."""
        g = parse_expression("x^2 + y^2")
        box = IntervalBox.coerce([(-3, 3), (-3, 3)])
        result = FBBTContractor(g, Interval(-math.inf, 1.0)).contract(box)
        for iv in result.box:
            assert iv.lo <= -1.0 and iv.lo >= -1.0 - 1e-9
            assert iv.hi >= 1.0 and iv.hi <= 1.0 + 1e-9

    def test_infeasible(self):
        """x^2 <= -1 is infeasible."""
        g = parse_expression("x^2")
        result = FBBTContractor(g, Interval(-math.inf, -1.0)).contract(
            IntervalBox.coerce([(-5, 5)])
        )
        assert result.empty
        assert result.box.is_empty

    def test_no_tightening(self):
        """Constraints already satisfied leave the box unchanged."""
        g = parse_expression("x + y")
        box = IntervalBox.coerce([(0, 1), (0, 1)])
        result = FBBTContractor(g, Interval(-math.inf, 10.0)).contract(box)
        assert result.box == box
        assert not result.tightened

    def test_callable_interface(self):
        """Contractors are callables on boxes."""
        g = parse_expression("x")
        op = FBBTContractor(g, Interval(0.0, 1.0))
        assert op(IntervalBox.coerce([(-5, 5)])) == IntervalBox.coerce([(0, 1)])


class TestFBBTSoundness:
    """Contraction never loses feasible points."""

    @pytest.mark.parametrize("text,target", [
        ("x^2 + y^2", (-math.inf, 1.0)),
        ("x*y", (0.5, 2.0)),
        ("exp(x) - y", (-0.5, 0.5)),
        ("sin(x) + y^3", (-0.5, 0.5)),
        ("x/(1 + y^2)", (-math.inf, 0.25)),
        ("min(x, y)", (1.0, math.inf)),
        ("abs(x - y)", (-math.inf, 0.5)),
    ])
    def test_sampled_points_kept(self, text, target):
        """Sampled feasible points stay in the contracted box."""
        g = parse_expression(text)
        target = Interval(*target)
        box = IntervalBox.coerce([(-2, 3), (-3, 2)])
        contracted = FBBTContractor(g, target).contract(box).box

        rng = np.random.default_rng(5)
        points = rng.uniform(box.lower, box.upper, size=(2000, 2))
        with np.errstate(all="ignore"):
            for point in points:
                value = g.evaluate(point)
                if target.lo + 1e-9 <= value <= target.hi - 1e-9:
                    assert contracted.contains(point), (text, point)


class TestContractAll:
    """Test propagation across several constraints."""

    def test_chained_propagation(self):
        """x - y = 0 and y in [1, 2] narrow x through y."""
        c1 = FBBTContractor(parse_expression("x - y"), Interval(0.0, 0.0))
        c2 = FBBTContractor(parse_expression("y", variables=["x", "y"]), Interval(1.0, 2.0))
        result = contract_all([c1, c2], IntervalBox.coerce([(-10, 10), (-10, 10)]))
        bx = result.box[0]
        assert not result.empty
        assert 1.0 - 1e-9 <= bx.lo <= 1.0
        assert 2.0 <= bx.hi <= 2.0 + 1e-9

    def test_infeasible_system(self):
        """x <= 0 and x >= 1 is infeasible."""
        c1 = FBBTContractor(parse_expression("x"), Interval(-math.inf, 0.0))
        c2 = FBBTContractor(parse_expression("x"), Interval(1.0, math.inf))
        result = contract_all([c1, c2], IntervalBox.coerce([(-5, 5)]))
        assert result.empty


class TestHelpers:
    """Test contraction helpers."""

    def test_nth_root(self):
        """Roots are enclosed exactly at representable values."""
        r = nth_root(Interval(4.0, 9.0), 2)
        assert r.lo <= 2.0 and r.hi >= 3.0
        assert r.lo * r.lo <= 4.0 and r.hi * r.hi >= 9.0
        assert nth_root(Interval(-2.0, -1.0), 2).is_empty

    def test_has_partial_ops(self):
        """Detect operations that are undefined on part of the line."""
        assert has_partial_ops(parse_expression("sqrt(x) + 1"))
        assert has_partial_ops(parse_expression("1/x"))
        assert not has_partial_ops(parse_expression("sin(x)*x^2"))


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
