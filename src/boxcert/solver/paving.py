"""
Paving: Certified Feasible Regions

Covers the solution set of a condition over a box with
- inner boxes, every point of which satisfies the condition, and
- boundary boxes of diameter <= tol that remain undecided.

Every satisfying point of the initial box lies in an inner or a
boundary box; points in neither are certified to violate the condition.

Boxes are taken depth-first from the working set and handed to the
separator:
1. inner part empty -> no point satisfies: discard
2. outer part empty -> no point violates: the box is inner
3. otherwise the parts of the box outside `outer` are inner, and
   inner & outer is either a boundary box (diameter <= tol) or bisected
"""

import logging
import time
from typing import List, Optional, Sequence, Union

from ..bounds.box import BoxLike, BoxSplitter, IntervalBox
from ..bounds.interval import Interval
from ..bounds.separator import Separator
from ..constraint import Constraint
from ..core.output_gate import OutputGate, Status, SubPaving
from .config import SearchConfig, check_tolerance
from .working_set import CandidateBox, WorkingSet, depth_first_priority

logger = logging.getLogger(__name__)

_UNBOUNDED = Interval.entire()

SeparatorLike = Union[Separator, Constraint, str, Sequence[Union[Separator, Constraint, str]]]


def as_separator(condition: SeparatorLike, config: SearchConfig) -> Separator:
    """Build a separator from text, a constraint, or a list of them."""
    if isinstance(condition, Separator):
        return condition
    options = dict(
        max_iterations=config.contractor_iterations,
        min_progress=config.contractor_min_progress,
    )
    if isinstance(condition, str):
        return Separator.from_text(condition, **options)
    if isinstance(condition, Constraint):
        return Separator.from_constraint(condition, **options)
    return Separator.system(condition, **options)


class PavingEngine:
    """
    Branch-and-prune driven by a separator.

    Args:
        separator: Inner/outer classifier of boxes
        tol: Boundary boxes are kept once their diameter is <= tol
        config: Budgets (max_iterations, max_time) and logging cadence
    """

    def __init__(self, separator: Separator, tol: float, config: Optional[SearchConfig] = None):
        self.separator = separator
        self.tol = check_tolerance(tol)
        self.config = (config or SearchConfig()).validate()
        self.splitter = BoxSplitter()
        self.gate = OutputGate()

    def run(self, boxes: Sequence[IntervalBox]) -> SubPaving:
        """Pave the union of boxes (normally a single root box)."""
        start = time.time()
        working_set = WorkingSet(depth_first_priority)
        for box in boxes:
            self.separator.check_dimension(box.dim)
            if not box.is_empty:
                working_set.push(CandidateBox(box, _UNBOUNDED, 0))

        inner: List[IntervalBox] = []
        boundary: List[IntervalBox] = []
        statistics = {"separated": 0, "split": 0, "discarded": 0}
        iterations = 0

        while working_set:
            elapsed = time.time() - start
            reason = None
            if iterations >= self.config.max_iterations:
                reason = "iterations"
            elif elapsed >= self.config.max_time:
                reason = "time"
            if reason is not None:
                # Unprocessed boxes are undecided, never dropped
                remaining = [c.box for c in working_set.drain()]
                boundary.extend(remaining)
                logger.warning(
                    "Paving budget exhausted (%s) after %d iterations: %d boxes left undecided",
                    reason, iterations, len(remaining)
                )
                return self._finish(Status.ABORTED, inner, boundary, iterations,
                                    start, statistics, reason)

            candidate = working_set.pop()
            iterations += 1
            if iterations % self.config.log_frequency == 0:
                logger.info(
                    "Iterations: %s | Pending: %s | Inner: %s | Boundary: %s | Time: %.2fs",
                    f"{iterations:,}", f"{len(working_set):,}", f"{len(inner):,}",
                    f"{len(boundary):,}", time.time() - start
                )

            box = candidate.box
            result = self.separator.separate(box)
            statistics["separated"] += 1

            if result.inner.is_empty:
                statistics["discarded"] += 1
                continue
            if result.outer.is_empty:
                inner.append(box)
                continue

            inner.extend(box.setdiff(result.outer))
            undecided = result.inner.intersect(result.outer)
            if undecided.is_empty:
                continue

            split = self.splitter.split(undecided)
            if undecided.diam <= self.tol or not split.splittable:
                boundary.append(undecided)
                continue

            statistics["split"] += 1
            for child in split.children:
                working_set.push(CandidateBox(child, _UNBOUNDED, candidate.depth + 1))

        unresolved = sum(1 for b in boundary if b.diam > self.tol)
        if unresolved:
            # Boxes too thin to bisect but still wider than tol
            logger.warning(
                "Paving cannot reach tol %g: %d boundary boxes cannot be split further",
                self.tol, unresolved
            )
            return self._finish(Status.ABORTED, inner, boundary, iterations,
                                start, statistics, "resolution")
        status = Status.CONVERGED if inner or boundary else Status.INFEASIBLE
        return self._finish(status, inner, boundary, iterations, start, statistics)

    def _finish(
        self,
        status: Status,
        inner: List[IntervalBox],
        boundary: List[IntervalBox],
        iterations: int,
        start: float,
        statistics: dict,
        reason: Optional[str] = None
    ) -> SubPaving:
        result = SubPaving(
            status=status,
            inner=inner,
            boundary=boundary,
            tol=self.tol,
            iterations=iterations,
            elapsed=time.time() - start,
            reason=reason,
            statistics=dict(statistics),
        )
        logger.info(
            "Paving finished: %s, %d inner, %d boundary boxes, %d iterations",
            status.value, len(inner), len(boundary), iterations
        )
        return self.gate.emit(result)


def pave(
    separator: SeparatorLike,
    box: BoxLike,
    tol: float,
    config: Optional[SearchConfig] = None
) -> SubPaving:
    """
    Pave the solution set of a condition inside box.

    Args:
        separator: Separator, Constraint, relational text such as
            "x^2 + y^2 <= 1", or a list of them (all must hold)
        box: IntervalBox, Interval, or sequence of (lo, hi) pairs
        tol: Diameter of the boundary boxes
        config: Budgets and contractor settings

    Returns:
        SubPaving with .inner and .boundary box lists
    """
    tol = check_tolerance(tol)
    config = (config or SearchConfig()).validate()
    return PavingEngine(as_separator(separator, config), tol, config).run([IntervalBox.coerce(box)])


def refine(
    separator: SeparatorLike,
    paving: SubPaving,
    tol: float,
    config: Optional[SearchConfig] = None
) -> SubPaving:
    """
    Re-pave only the boundary boxes of an existing paving at tolerance tol.

    Inner boxes are carried over unchanged; statistics and iteration
    counts cover the refinement pass only.
    """
    tol = check_tolerance(tol)
    config = (config or SearchConfig()).validate()
    engine = PavingEngine(as_separator(separator, config), tol, config)
    refined = engine.run(paving.boundary)

    result = SubPaving(
        status=Status.CONVERGED if refined.status == Status.INFEASIBLE else refined.status,
        inner=list(paving.inner) + refined.inner,
        boundary=refined.boundary,
        tol=tol,
        iterations=refined.iterations,
        elapsed=refined.elapsed,
        reason=refined.reason,
        statistics=refined.statistics,
    )
    if not result.inner and not result.boundary:
        result.status = Status.INFEASIBLE
    return engine.gate.emit(result)
