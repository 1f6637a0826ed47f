"""
Tests for Standard Test Problems
"""

import numpy as np
import pytest
from boxcert.bounds.box import IntervalBox
from boxcert.bounds.function_evaluator import FunctionEvaluator
from boxcert.problems import (
    default_center,
    griewank,
    paraboloid,
    rastrigin,
    rosenbrock,
    sphere,
)


class TestProblems:
    """Test problem construction and known minima."""

    @pytest.mark.parametrize("make,n", [
        (paraboloid, 1),
        (paraboloid, 7),
        (sphere, 3),
        (griewank, 2),
        (rastrigin, 4),
        (rosenbrock, 3),
    ])
    def test_minimum_at_minimizer(self, make, n):
        """The stated minimizer attains the stated minimum."""
        problem = make(n)
        assert problem.n_vars == n
        assert problem.box.dim == n
        assert problem.box.contains(problem.minimizer)
        value = problem.graph.evaluate(problem.minimizer)
        assert value == pytest.approx(problem.minimum, abs=1e-12)

    @pytest.mark.parametrize("make", [paraboloid, griewank, rastrigin, rosenbrock])
    def test_bounds_enclose_minimum(self, make):
        """Interval bounds of the domain enclose the minimum."""
        problem = make(2)
        bound = FunctionEvaluator(problem.graph, dim=2).bound(problem.box)
        assert bound.contains(problem.minimum)

    def test_minimum_is_global(self):
        """Sampled points never beat the minimum."""
        problem = rastrigin(2)
        rng = np.random.default_rng(4)
        points = rng.uniform(problem.box.lower, problem.box.upper, size=(500, 2))
        for point in points:
            assert problem.graph.evaluate(point) >= problem.minimum - 1e-12

    def test_paraboloid_center(self):
        """Default minimizer is 0.3 + 0.01 i."""
        problem = paraboloid(3)
        assert np.allclose(problem.minimizer, [0.3, 0.31, 0.32])
        assert np.array_equal(default_center(3), problem.minimizer)
        assert problem.box == IntervalBox.from_bounds([-10.0] * 3, [10.0] * 3)
        assert problem.name == "Paraboloid_3D"

    def test_custom_center(self):
        """Explicit centers and widths are honoured."""
        problem = paraboloid(2, center=[1.0, -1.0], half_width=2.0)
        assert problem.graph.evaluate([1.0, -1.0]) == 0.0
        assert problem.graph.evaluate([0.0, 0.0]) == 2.0
        assert problem.box[0].hi == 2.0

    def test_large_paraboloid(self):
        """Graphs for large n build node by node."""
        problem = paraboloid(500)
        assert problem.n_vars == 500
        assert problem.graph.evaluate(problem.minimizer) == 0.0

    def test_invalid_dimension(self):
        """Dimensions below the minimum are rejected."""
        with pytest.raises(ValueError):
            paraboloid(0)
        with pytest.raises(ValueError):
            rosenbrock(1)

    def test_names(self):
        """Problems are named by family and dimension."""
        assert sphere(2).name == "Sphere_2D"
        assert griewank(5).name == "Griewank_5D"
        assert rastrigin(1).name == "Rastrigin_1D"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
