"""
Tests for Interval Boxes and Bisection
"""

import math
import numpy as np
import pytest
from boxcert.bounds.interval import Interval, FLOAT_MAX
from boxcert.bounds.box import (
    IntervalBox,
    BoxSplitter,
    SplitResult,
    hull_of,
    total_volume,
)


class TestIntervalBox:
    """Test box construction and measures."""

    def test_from_bounds(self):
        """Test construction from bound vectors."""
        box = IntervalBox.from_bounds([0.0, -1.0], [2.0, 1.0])
        assert box.dim == 2
        assert box[0] == Interval(0.0, 2.0)
        assert np.array_equal(box.lower, [0.0, -1.0])
        assert np.array_equal(box.upper, [2.0, 1.0])

    def test_from_bounds_length_mismatch(self):
        """Test that mismatched bound vectors raise."""
        with pytest.raises(ValueError):
            IntervalBox.from_bounds([0.0], [1.0, 2.0])

    def test_coerce(self):
        """Test coercion from pairs and single intervals."""
        box = IntervalBox.coerce([(0, 1), (2, 3)])
        assert box == IntervalBox((Interval(0.0, 1.0), Interval(2.0, 3.0)))
        assert IntervalBox.coerce(Interval(0.0, 1.0)).dim == 1
        assert IntervalBox.coerce(box) is box

    def test_measures(self):
        """Test widths, diameter, volume and midpoint."""
        box = IntervalBox.coerce([(0, 4), (1, 2)])
        assert box.widths == [4.0, 1.0]
        assert box.diam == 4.0
        assert box.volume == 4.0
        assert np.array_equal(box.midpoint, [2.0, 1.5])

    def test_unbounded_midpoint(self):
        """Midpoints of unbounded boxes are finite."""
        box = IntervalBox((Interval.entire(), Interval(0.0, math.inf)))
        mid = box.midpoint
        assert np.all(np.isfinite(mid))
        assert mid[0] == 0.0
        assert mid[1] == FLOAT_MAX

    def test_empty_box(self):
        """A box with one empty component is empty."""
        box = IntervalBox((Interval(0.0, 1.0), Interval.empty()))
        assert box.is_empty
        assert box.volume == 0.0
        assert box.diam == 0.0
        assert IntervalBox.empty(3).dim == 3

    def test_contains(self):
        """Test point containment."""
        box = IntervalBox.coerce([(0, 1), (0, 1)])
        assert box.contains([0.5, 1.0])
        assert not box.contains([0.5, 1.5])
        assert not box.contains([0.5])

    def test_intersect(self):
        """Test box intersection."""
        a = IntervalBox.coerce([(0, 2), (0, 2)])
        b = IntervalBox.coerce([(1, 3), (1, 3)])
        assert a.intersect(b) == IntervalBox.coerce([(1, 2), (1, 2)])
        c = IntervalBox.coerce([(5, 6), (0, 1)])
        assert a.intersect(c).is_empty

    def test_hull(self):
        """Test box hull."""
        a = IntervalBox.coerce([(0, 1), (0, 1)])
        b = IntervalBox.coerce([(2, 3), (-1, 0)])
        assert a.hull(b) == IntervalBox.coerce([(0, 3), (-1, 1)])
        assert IntervalBox.empty(2).hull(a) == a
        assert hull_of([a, b]) == a.hull(b)
        assert hull_of([]) is None

    def test_replace(self):
        """Test component replacement."""
        box = IntervalBox.coerce([(0, 1), (0, 1)])
        new = box.replace(1, Interval(5.0, 6.0))
        assert new[1] == Interval(5.0, 6.0)
        assert box[1] == Interval(0.0, 1.0)

    def test_fingerprint(self):
        """Equal boxes have equal fingerprints, infinities included."""
        a = IntervalBox((Interval(0.0, math.inf), Interval(-1.0, 1.0)))
        b = IntervalBox.coerce([(0.0, math.inf), (-1.0, 1.0)])
        assert a.fingerprint() == b.fingerprint()
        assert a.to_canonical() == [[0.0, "inf"], [-1.0, 1.0]]
        assert a.fingerprint() != IntervalBox.coerce([(0, 1), (-1, 1)]).fingerprint()


class TestSetDifference:
    """Test box set difference."""

    def test_hole_in_the_middle(self):
        """A box minus an interior box leaves 2n pieces."""
        box = IntervalBox.coerce([(0, 4), (0, 4)])
        hole = IntervalBox.coerce([(1, 2), (1, 2)])
        pieces = box.setdiff(hole)
        assert len(pieces) == 4
        assert total_volume(pieces) == 15.0
        for piece in pieces:
            assert piece.is_subset(box)
            assert piece.intersect(hole).volume == 0.0

    def test_disjoint_interiors(self):
        """Pieces overlap at most on their faces."""
        box = IntervalBox.coerce([(0, 4), (0, 4), (0, 4)])
        pieces = box.setdiff(IntervalBox.coerce([(1, 3), (1, 3), (1, 3)]))
        assert len(pieces) == 6
        for i, a in enumerate(pieces):
            for b in pieces[i + 1:]:
                assert a.intersect(b).volume == 0.0
        assert total_volume(pieces) == 64.0 - 8.0

    def test_disjoint(self):
        """A box minus a disjoint box is itself."""
        box = IntervalBox.coerce([(0, 1)])
        assert box.setdiff(IntervalBox.coerce([(2, 3)])) == [box]

    def test_covered(self):
        """A box minus a superset is nothing."""
        box = IntervalBox.coerce([(0, 1), (0, 1)])
        assert box.setdiff(IntervalBox.coerce([(-1, 2), (-1, 2)])) == []

    def test_one_sided(self):
        """Overlap on one side gives one piece."""
        box = IntervalBox.coerce([(0, 4)])
        pieces = box.setdiff(IntervalBox.coerce([(2, 6)]))
        assert pieces == [IntervalBox.coerce([(0, 2)])]


class TestBoxSplitter:
    """Test bisection."""

    def test_widest_dimension(self):
        """The widest dimension is bisected at its midpoint."""
        box = IntervalBox.coerce([(0, 1), (0, 4)])
        result = BoxSplitter().split(box)
        assert result.dimension == 1
        left, right = result.children
        assert left == IntervalBox.coerce([(0, 1), (0, 2)])
        assert right == IntervalBox.coerce([(0, 1), (2, 4)])

    def test_tie_goes_to_lowest_index(self):
        """Equal widths split the first dimension."""
        box = IntervalBox.coerce([(0, 2), (5, 7), (0, 2)])
        assert BoxSplitter().choose_dimension(box) == 0

    def test_children_cover_parent(self):
        """Both halves are subsets and together cover the parent."""
        box = IntervalBox.coerce([(-3, 5), (1, 2)])
        left, right = BoxSplitter()(box).children
        assert left.is_subset(box) and right.is_subset(box)
        assert left.hull(right) == box
        assert left.volume + right.volume == box.volume

    def test_unbounded(self):
        """The entire line splits at zero."""
        box = IntervalBox((Interval.entire(),))
        left, right = BoxSplitter().split(box).children
        assert left[0] == Interval(-math.inf, 0.0)
        assert right[0] == Interval(0.0, math.inf)

    def test_half_line(self):
        """A half-line splits at the largest finite float."""
        box = IntervalBox((Interval(0.0, math.inf),))
        left, right = BoxSplitter().split(box).children
        assert left[0] == Interval(0.0, FLOAT_MAX)
        assert right[0] == Interval(FLOAT_MAX, math.inf)

    def test_unsplittable_point(self):
        """A point box cannot be split."""
        box = IntervalBox.point([1.0, 2.0])
        result = BoxSplitter().split(box)
        assert not result.splittable
        assert result.dimension == -1
        assert result.children == (box,)

    def test_adjacent_floats(self):
        """An interval between two adjacent floats is unsplittable."""
        box = IntervalBox((Interval(1.0, math.nextafter(1.0, 2.0)),))
        assert BoxSplitter().split(box) == SplitResult(children=(box,), dimension=-1)

    def test_skips_unsplittable_dimension(self):
        """An unsplittable wide dimension is passed over."""
        box = IntervalBox((Interval(FLOAT_MAX, math.inf), Interval(0.0, 1.0)))
        assert BoxSplitter().choose_dimension(box) == 1


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
