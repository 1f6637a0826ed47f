"""
Separators

A separator maps a box X to a pair of boxes (inner, outer):
- inner contains every point of X that satisfies the condition
- outer contains every point of X that violates it

Points of X outside `outer` therefore certainly satisfy the condition,
points outside `inner` certainly violate it, and only inner & outer is
left undecided. Points on the boundary of a constraint (equality points)
belong to both.

Separators compose:
    S1 & S2   both hold     inner = inner1 & inner2, outer = hull(outer1, outer2)
    S1 | S2   either holds  inner = hull(inner1, inner2), outer = outer1 & outer2
    ~S        complement    inner and outer swapped
"""

from typing import Iterable, List, NamedTuple, Optional, Sequence, Union

from .box import IntervalBox, hull_of
from .interval import IntervalEvaluator
from .fbbt import FBBTContractor, contract_all, has_partial_ops
from ..constraint import Constraint
from ..errors import DimensionMismatch
from ..parser import parse_constraints, variable_names


class SeparatorResult(NamedTuple):
    inner: IntervalBox
    outer: IntervalBox


class Separator:
    """Base class: a pure map from boxes to SeparatorResult."""

    n_vars: int = 0

    def separate(self, box: IntervalBox) -> SeparatorResult:
        raise NotImplementedError

    def __call__(self, box: IntervalBox) -> SeparatorResult:
        return self.separate(box)

    def check_dimension(self, dim: int) -> None:
        if self.n_vars != dim:
            raise DimensionMismatch(self.n_vars, dim, what="separator")

    def __and__(self, other: 'Separator') -> 'Separator':
        return IntersectionSeparator([self, other])

    def __or__(self, other: 'Separator') -> 'Separator':
        return UnionSeparator([self, other])

    def __invert__(self) -> 'Separator':
        return ComplementSeparator(self)

    @classmethod
    def from_constraint(cls, constraint: Constraint, **options) -> 'ConstraintSeparator':
        return ConstraintSeparator(constraint, **options)

    @classmethod
    def from_text(
        cls,
        text: str,
        variables: Optional[Sequence[str]] = None,
        **options
    ) -> 'Separator':
        """
        Build a separator from relational text.

        Example:
            Separator.from_text("x^2 + y^2 <= 1")
            Separator.from_text("0 <= x*y <= 1 and x >= y", variables=["x", "y"])
        """
        constraints = parse_constraints(text, variables)
        return cls.system(constraints, **options)

    @classmethod
    def system(
        cls,
        parts: Iterable[Union['Separator', Constraint, str]],
        variables: Optional[Sequence[str]] = None,
        **options
    ) -> 'Separator':
        """
        Intersection of several constraints (all must hold).

        Text parts share one variable numbering: `variables` when given,
        otherwise first appearance across all text parts.
        """
        parts = list(parts)
        texts = [part for part in parts if isinstance(part, str)]
        if texts and variables is None:
            variables = variable_names(*texts)

        separators: List[Separator] = []
        for part in parts:
            if isinstance(part, Separator):
                separators.append(part)
            elif isinstance(part, Constraint):
                separators.append(ConstraintSeparator(part, **options))
            elif isinstance(part, str):
                separators.append(cls.from_text(part, variables, **options))
            else:
                raise TypeError(f"Cannot build a separator from {type(part).__name__}")
        if not separators:
            raise ValueError("A system needs at least one constraint")
        if len(separators) == 1:
            return separators[0]
        return IntersectionSeparator(separators)


def _hull(boxes: List[IntervalBox], dim: int) -> IntervalBox:
    result = hull_of(boxes)
    return result if result is not None else IntervalBox.empty(dim)


def _meet(boxes: List[IntervalBox], dim: int) -> IntervalBox:
    result = boxes[0]
    for box in boxes[1:]:
        if result.is_empty:
            break
        result = result.intersect(box)
    return result if not result.is_empty else IntervalBox.empty(dim)


class ConstraintSeparator(Separator):
    """
    Separator of a single constraint f(x) in T.

    inner is the FBBT contraction against T. outer is the hull of the
    contractions against the closed half-lines making up the complement
    of T; when f may be undefined somewhere in the box, outer is the
    whole box, since undefined points do not satisfy the constraint.

    Both contractions use the non-strict domain policy: a partly defined
    box keeps the points where f is defined.
    """

    def __init__(
        self,
        constraint: Constraint,
        max_iterations: int = 20,
        min_progress: float = 0.001
    ):
        self.constraint = constraint
        self.n_vars = constraint.n_vars
        self.max_iterations = max_iterations
        self.min_progress = min_progress
        self.inner_contractor = FBBTContractor(
            constraint.graph, constraint.target, max_iterations, min_progress
        )
        self._outer = [
            FBBTContractor(constraint.graph, piece, max_iterations, min_progress)
            for piece in constraint.complement_targets()
        ]
        self._domain_check = (
            IntervalEvaluator(constraint.graph, strict_domain=True)
            if has_partial_ops(constraint.graph) else None
        )

    def separate(self, box: IntervalBox) -> SeparatorResult:
        inner = self.inner_contractor.contract(box).box
        if self._domain_check is not None and self._partly_undefined(box):
            return SeparatorResult(inner, box)
        outer = _hull([c.contract(box).box for c in self._outer], box.dim)
        return SeparatorResult(inner, outer)

    def _partly_undefined(self, box: IntervalBox) -> bool:
        bound, _ = self._domain_check.evaluate(box.intervals)
        return bound.is_empty

    def __repr__(self) -> str:
        return f"Separator({self.constraint.to_text()})"


class IntersectionSeparator(Separator):
    """
    All parts must hold.

    When two or more parts are single constraints, the met inner box is
    contracted by all of their inner contractors in turn until a fixed
    point, so bounds learnt from one constraint narrow the others.
    """

    def __init__(self, parts: Sequence[Separator]):
        self.parts = list(parts)
        _check_parts(self.parts)
        self.n_vars = self.parts[0].n_vars
        constraints = [p for p in self.parts if isinstance(p, ConstraintSeparator)]
        self._system = [p.inner_contractor for p in constraints]
        self._system_iterations = max((p.max_iterations for p in constraints), default=0)
        self._system_progress = min((p.min_progress for p in constraints), default=0.0)

    def separate(self, box: IntervalBox) -> SeparatorResult:
        results = [part.separate(box) for part in self.parts]
        inner = _meet([r.inner for r in results], box.dim)
        if len(self._system) > 1 and not inner.is_empty:
            inner = contract_all(
                self._system, inner, self._system_iterations, self._system_progress
            ).box
        outer = _hull([r.outer for r in results], box.dim)
        return SeparatorResult(inner, outer)

    def __repr__(self) -> str:
        return " & ".join(f"({p!r})" for p in self.parts)


class UnionSeparator(Separator):
    """At least one part must hold."""

    def __init__(self, parts: Sequence[Separator]):
        self.parts = list(parts)
        _check_parts(self.parts)
        self.n_vars = self.parts[0].n_vars

    def separate(self, box: IntervalBox) -> SeparatorResult:
        results = [part.separate(box) for part in self.parts]
        inner = _hull([r.inner for r in results], box.dim)
        outer = _meet([r.outer for r in results], box.dim)
        return SeparatorResult(inner, outer)

    def __repr__(self) -> str:
        return " | ".join(f"({p!r})" for p in self.parts)


class ComplementSeparator(Separator):
    """The condition must not hold."""

    def __init__(self, part: Separator):
        self.part = part
        self.n_vars = part.n_vars

    def separate(self, box: IntervalBox) -> SeparatorResult:
        inner, outer = self.part.separate(box)
        return SeparatorResult(outer, inner)

    def __repr__(self) -> str:
        return f"~({self.part!r})"


def _check_parts(parts: List[Separator]) -> None:
    if not parts:
        raise ValueError("Separator composition needs at least one part")
    n_vars = parts[0].n_vars
    for part in parts[1:]:
        if part.n_vars != n_vars:
            raise DimensionMismatch(n_vars, part.n_vars, what="separator")
