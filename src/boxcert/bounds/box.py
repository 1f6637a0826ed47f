"""
Interval Boxes and Bisection

An IntervalBox is the Cartesian product of n intervals, the unit of
work of every search in the package. Boxes are immutable: splitting,
intersecting or contracting a box always builds new boxes.

BoxSplitter bisects the widest splittable dimension at its midpoint.
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple, Union
import math
import numpy as np

from .interval import Interval
from ..core.canonical_json import canonical_float, canonical_hash


BoxLike = Union['IntervalBox', Interval, Sequence[Union[Interval, Tuple[float, float]]]]


@dataclass(frozen=True)
class IntervalBox:
    """
    A box [lo_1, hi_1] x ... x [lo_n, hi_n].

    A box is empty as soon as one of its components is empty.
    """
    intervals: Tuple[Interval, ...]

    def __post_init__(self):
        object.__setattr__(self, "intervals", tuple(self.intervals))

    @classmethod
    def coerce(cls, value: BoxLike) -> 'IntervalBox':
        """Build a box from an IntervalBox, a single Interval or a sequence of (lo, hi) pairs."""
        if isinstance(value, IntervalBox):
            return value
        if isinstance(value, Interval):
            return cls((value,))
        return cls(tuple(Interval.coerce(v) for v in value))

    @classmethod
    def from_bounds(cls, lower: Sequence[float], upper: Sequence[float]) -> 'IntervalBox':
        if len(lower) != len(upper):
            raise ValueError("Lower and upper bounds must have same length")
        return cls(tuple(Interval(float(l), float(u)) for l, u in zip(lower, upper)))

    @classmethod
    def point(cls, x: Sequence[float]) -> 'IntervalBox':
        """Degenerate box of a single point."""
        return cls(tuple(Interval.point(v) for v in x))

    @classmethod
    def empty(cls, dim: int) -> 'IntervalBox':
        return cls(tuple(Interval.empty() for _ in range(dim)))

    def __len__(self) -> int:
        return len(self.intervals)

    def __iter__(self) -> Iterator[Interval]:
        return iter(self.intervals)

    def __getitem__(self, i: int) -> Interval:
        return self.intervals[i]

    @property
    def dim(self) -> int:
        return len(self.intervals)

    @property
    def is_empty(self) -> bool:
        return any(iv.is_empty for iv in self.intervals)

    @property
    def lower(self) -> np.ndarray:
        return np.array([iv.lo for iv in self.intervals], dtype=np.float64)

    @property
    def upper(self) -> np.ndarray:
        return np.array([iv.hi for iv in self.intervals], dtype=np.float64)

    @property
    def widths(self) -> List[float]:
        return [iv.width for iv in self.intervals]

    @property
    def diam(self) -> float:
        """Largest component width (0 for an empty box)."""
        if not self.intervals or self.is_empty:
            return 0.0
        return max(self.widths)

    @property
    def midpoint(self) -> np.ndarray:
        """Finite midpoint, also for unbounded components."""
        return np.array([iv.midpoint for iv in self.intervals], dtype=np.float64)

    @property
    def volume(self) -> float:
        if self.is_empty:
            return 0.0
        return float(math.prod(self.widths))

    def contains(self, x: Sequence[float]) -> bool:
        """Check if a point lies in the (closed) box."""
        if len(x) != self.dim:
            return False
        return all(iv.contains(float(v)) for iv, v in zip(self.intervals, x))

    def is_subset(self, other: 'IntervalBox') -> bool:
        if self.is_empty:
            return True
        return all(a.is_subset(b) for a, b in zip(self.intervals, other.intervals))

    def intersect(self, other: 'IntervalBox') -> 'IntervalBox':
        """Componentwise intersection; the empty box if any component is empty."""
        parts = tuple(a.intersect(b) for a, b in zip(self.intervals, other.intervals))
        if any(iv.is_empty for iv in parts):
            return IntervalBox.empty(self.dim)
        return IntervalBox(parts)

    def hull(self, other: 'IntervalBox') -> 'IntervalBox':
        """Smallest box containing both boxes."""
        if self.is_empty:
            return other
        if other.is_empty:
            return self
        return IntervalBox(tuple(a.union_hull(b) for a, b in zip(self.intervals, other.intervals)))

    def setdiff(self, other: 'IntervalBox') -> List['IntervalBox']:
        """
        Cover the closure of self minus other with boxes of disjoint interiors.

        At most 2n boxes are returned. Dimension i contributes the slabs
        of self below and above other, with dimensions before i already
        clipped to other.
        """
        cut = self.intersect(other)
        if cut.is_empty:
            return [] if self.is_empty else [self]

        pieces: List[IntervalBox] = []
        current = list(self.intervals)
        for i, (mine, theirs) in enumerate(zip(self.intervals, cut.intervals)):
            if mine.lo < theirs.lo:
                slab = list(current)
                slab[i] = Interval(mine.lo, theirs.lo)
                pieces.append(IntervalBox(tuple(slab)))
            if theirs.hi < mine.hi:
                slab = list(current)
                slab[i] = Interval(theirs.hi, mine.hi)
                pieces.append(IntervalBox(tuple(slab)))
            current[i] = theirs
        return pieces

    def replace(self, index: int, interval: Interval) -> 'IntervalBox':
        """Copy of the box with one component replaced."""
        parts = list(self.intervals)
        parts[index] = interval
        return IntervalBox(tuple(parts))

    def to_canonical(self) -> List[List[Any]]:
        return [[canonical_float(iv.lo), canonical_float(iv.hi)] for iv in self.intervals]

    def fingerprint(self) -> str:
        return canonical_hash(self.to_canonical())

    def __repr__(self) -> str:
        return "IntervalBox(" + " x ".join(repr(iv) for iv in self.intervals) + ")"


def hull_of(boxes: Iterable[IntervalBox]) -> Optional[IntervalBox]:
    """Hull of several boxes, None when there are none."""
    result: Optional[IntervalBox] = None
    for box in boxes:
        result = box if result is None else result.hull(box)
    return result


def total_volume(boxes: Iterable[IntervalBox]) -> float:
    return float(sum(box.volume for box in boxes))


@dataclass(frozen=True)
class SplitResult:
    """
    Outcome of a bisection.

    Attributes:
        children: The two halves (lower half first), or (box,) when unsplittable
        dimension: Bisected dimension, -1 when unsplittable
    """
    children: Tuple[IntervalBox, ...]
    dimension: int = -1

    @property
    def splittable(self) -> bool:
        return self.dimension >= 0


class BoxSplitter:
    """
    Bisects a box across its widest splittable dimension.

    A dimension is splittable when its midpoint lies strictly inside it,
    i.e. there is a representable float between the two ends. Ties in
    width go to the lowest index.
    """

    def choose_dimension(self, box: IntervalBox) -> int:
        best = -1
        best_width = -1.0
        for i, iv in enumerate(box.intervals):
            m = iv.midpoint
            if not (iv.lo < m < iv.hi):
                continue
            w = iv.width
            if w > best_width:
                best, best_width = i, w
        return best

    def split(self, box: IntervalBox) -> SplitResult:
        dim = self.choose_dimension(box)
        if dim < 0:
            return SplitResult(children=(box,), dimension=-1)

        iv = box.intervals[dim]
        m = iv.midpoint
        left = box.replace(dim, Interval(iv.lo, m))
        right = box.replace(dim, Interval(m, iv.hi))
        return SplitResult(children=(left, right), dimension=dim)

    def __call__(self, box: IntervalBox) -> SplitResult:
        return self.split(box)
