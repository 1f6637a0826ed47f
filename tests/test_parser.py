"""
Tests for the Expression and Constraint Parser
"""

import math
from fractions import Fraction
import pytest
from boxcert.errors import ParseError
from boxcert.expr_graph import OpType, UnaryOp
from boxcert.bounds.interval import Interval, interval_evaluate
from boxcert.parser import (
    parse_expression,
    parse_constraint,
    parse_constraints,
    variable_names,
)


class TestParseExpression:
    """Test compiling arithmetic text into graphs."""

    def test_simple(self):
        """Test (x - 3)^2."""
        g = parse_expression("(x - 3)^2")
        assert g.n_vars == 1
        assert g.evaluate([5.0]) == 4.0

    def test_caret_precedence(self):
        """^ binds tighter than +, like **."""
        g = parse_expression("x^2 + y")
        assert g.evaluate([2.0, 1.0]) == 5.0
        assert parse_expression("x**2 + y").evaluate([2.0, 1.0]) == 5.0

    def test_square_node(self):
        """A constant power 2 becomes a square node."""
        g = parse_expression("x^2")
        assert isinstance(g.output_node, UnaryOp)
        assert g.output_node.op == OpType.SQUARE

    def test_first_appearance_order(self):
        """Without explicit names variables are numbered as they appear."""
        g = parse_expression("y + 2*x")
        assert g.variable_names() == ["y", "x"]
        assert g.evaluate([10.0, 1.0]) == 12.0

    def test_explicit_order(self):
        """Explicit variable names fix the numbering."""
        g = parse_expression("y + 2*x", variables=["x", "y"])
        assert g.evaluate([1.0, 10.0]) == 12.0

    def test_unused_variable(self):
        """Explicitly named variables count even when unused."""
        g = parse_expression("x + 1", variables=["x", "y", "z"])
        assert g.n_vars == 3

    def test_constants(self):
        """pi and e are known names."""
        g = parse_expression("pi*x + e")
        assert g.evaluate([1.0]) == pytest.approx(math.pi + math.e)
        assert g.n_vars == 1

    def test_functions(self):
        """Unary library functions compile."""
        g = parse_expression("sqrt(x) + exp(y) - log(x) + sin(y)*cos(x) + abs(y)")
        x, y = 4.0, -1.0
        expected = 2.0 + math.exp(y) - math.log(x) + math.sin(y) * math.cos(x) + 1.0
        assert g.evaluate([x, y]) == pytest.approx(expected)

    def test_min_max_variadic(self):
        """min and max take two or more arguments."""
        g = parse_expression("min(x, y, 0) + max(x, y)")
        assert g.evaluate([2.0, 3.0]) == 3.0
        assert g.evaluate([-2.0, 3.0]) == 1.0

    def test_unary_minus(self):
        """Unary minus on variables and constants."""
        g = parse_expression("-x + -2")
        assert g.evaluate([3.0]) == -5.0

    def test_exact_constants_fold(self):
        """Exactly representable constant arithmetic is folded."""
        g = parse_expression("x + 2*3")
        assert g.to_text() == "(x + 6)"

    def test_inexact_constants_enclosed(self):
        """Inexact constants stay in the graph and are enclosed."""
        g = parse_expression("x + 1/3")
        bound = interval_evaluate(g, [Interval(0.0, 0.0)])
        assert Fraction(bound.lo) <= Fraction(1, 3) <= Fraction(bound.hi)

    @pytest.mark.parametrize("name,true_value", [
        ("pi", Fraction("3.14159265358979323846264338327950288")),
        ("e", Fraction("2.71828182845904523536028747135266250")),
    ])
    def test_named_constants_enclosed(self, name, true_value):
        """pi and e are enclosed by an interval, not rounded to a double."""
        bound = interval_evaluate(parse_expression(name), [])
        assert Fraction(bound.lo) <= true_value <= Fraction(bound.hi)
        assert bound.lo < bound.hi

    def test_named_constant_arithmetic_enclosed(self):
        """Arithmetic on pi keeps the enclosure and the name."""
        g = parse_expression("2*pi - x")
        assert "pi" in g.to_text()
        bound = interval_evaluate(g, [Interval(0.0, 0.0)])
        two_pi = 2 * Fraction("3.14159265358979323846264338327950288")
        assert Fraction(bound.lo) <= two_pi <= Fraction(bound.hi)

    def test_constant_expression(self):
        """An expression without variables has arity 0."""
        g = parse_expression("2^10")
        assert g.n_vars == 0
        assert g.evaluate([]) == 1024.0


class TestParseErrors:
    """Test that unsupported text is rejected."""

    @pytest.mark.parametrize("text", [
        "",
        "x +",
        "foo(x)",
        "x | y",
        "x % 2",
        "sin(x, y)",
        "max(x)",
        "sqrt(x=1)",
        "'a' + x",
        "x.y",
        "x[0]",
    ])
    def test_rejected(self, text):
        """Unsupported syntax raises ParseError."""
        with pytest.raises(ParseError):
            parse_expression(text)

    def test_relation_is_not_expression(self):
        """Relational text is not an expression."""
        with pytest.raises(ParseError):
            parse_expression("x <= 1")

    def test_unknown_variable(self):
        """Names outside the variable list are rejected."""
        with pytest.raises(ParseError):
            parse_expression("x + z", variables=["x", "y"])

    def test_duplicate_variables(self):
        """Variable lists must not repeat names."""
        with pytest.raises(ParseError):
            parse_expression("x", variables=["x", "x"])

    def test_parse_error_is_value_error(self):
        """ParseError is a ValueError."""
        with pytest.raises(ValueError):
            parse_expression("x +")


class TestParseConstraints:
    """Test compiling relational text into constraints."""

    def test_inequality(self):
        """Test x^2 + y^2 <= 1."""
        c = parse_constraint("x^2 + y^2 <= 1")
        assert c.target == Interval(-math.inf, 1.0)
        assert c.n_vars == 2
        assert c.is_satisfied_at([0.5, 0.5])
        assert not c.is_satisfied_at([1.0, 1.0])

    def test_reversed_inequality(self):
        """Test 1 >= x (constant on the left)."""
        c = parse_constraint("1 >= x")
        assert c.target == Interval(-math.inf, 1.0)

    def test_greater_equal(self):
        """Test x*y >= 2."""
        c = parse_constraint("x*y >= 2")
        assert c.target == Interval(2.0, math.inf)

    def test_chain(self):
        """A chain with constant ends is one constraint."""
        c = parse_constraint("0 <= x*y <= 1")
        assert c.target == Interval(0.0, 1.0)

    def test_equality(self):
        """Equalities have degenerate targets."""
        c = parse_constraint("x + y == 1")
        assert c.target == Interval(1.0, 1.0)

    def test_strict_read_as_closed(self):
        """Strict comparisons are accepted as their closure."""
        c = parse_constraint("x < 1")
        assert c.target == Interval(-math.inf, 1.0)

    def test_expression_versus_expression(self):
        """x >= y becomes y - x <= 0."""
        c = parse_constraint("x >= y")
        assert c.target == Interval(-math.inf, 0.0)
        assert c.is_satisfied_at([2.0, 1.0])
        assert not c.is_satisfied_at([1.0, 2.0])

    def test_conjunction(self):
        """Constraints joined with `and` share variables."""
        cs = parse_constraints("x^2 + y^2 <= 1 and x >= 0")
        assert len(cs) == 2
        assert all(c.n_vars == 2 for c in cs)

    def test_chain_with_expressions(self):
        """A chain of expressions gives one constraint per link."""
        cs = parse_constraints("x <= y <= 2*x")
        assert len(cs) == 2
        assert all(c.target == Interval(-math.inf, 0.0) for c in cs)

    def test_contradictory_chain(self):
        """Empty targets are rejected."""
        with pytest.raises(ParseError):
            parse_constraint("2 <= x <= 1")

    def test_constant_comparison(self):
        """Comparisons between constants are rejected."""
        with pytest.raises(ParseError):
            parse_constraint("1 <= 2")

    def test_disjunction_rejected(self):
        """`or` is not supported in text."""
        with pytest.raises(ParseError):
            parse_constraints("x <= 1 or x >= 2")

    def test_not_a_comparison(self):
        """A bare expression is not a constraint."""
        with pytest.raises(ParseError):
            parse_constraint("x + 1")

    def test_single_constraint_required(self):
        """parse_constraint rejects conjunctions."""
        with pytest.raises(ParseError):
            parse_constraint("x <= 1 and y <= 1")

    def test_unsupported_comparison(self):
        """`!=` has no closed interval target."""
        with pytest.raises(ParseError):
            parse_constraint("x != 1")

    def test_text_kept(self):
        """Parsed constraints remember their source."""
        c = parse_constraint("x^2 <= 1")
        assert "<=" in c.to_text()


class TestVariableNames:
    """Test shared numbering across several texts."""

    def test_first_appearance(self):
        """Names are collected in order of first appearance."""
        assert variable_names("x + y", "z - x") == ["x", "y", "z"]

    def test_constants_and_functions_skipped(self):
        """Function names and constants are not variables."""
        assert variable_names("sin(pi*t) + e") == ["t"]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
