"""
Branch-and-Bound: Certified Global Minimisation

Repeatedly takes the pending box with the smallest certified lower
bound, discards it when that bound exceeds the cutoff (the best
certified upper bound of the minimum found so far), accepts it when it
is small enough, and otherwise bisects it and bounds both halves.

States: RUNNING -> CONVERGED | INFEASIBLE | ABORTED

At every step the union of the pending and accepted boxes covers every
global minimizer, and the cutoff never increases. The final value is
[smallest lower bound of a surviving accepted box, cutoff].

maximise runs the same search on -f.
"""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple, Union

from ..bounds.box import BoxLike, BoxSplitter, IntervalBox
from ..bounds.interval import Interval
from ..bounds.function_evaluator import (
    FunctionEvaluator,
    NegatedEvaluator,
    Objective,
    is_numeric_empty,
)
from ..core.output_gate import OutputGate, ResultBundle, Status
from ..primal.local_search import LocalSearch, finite_start_point
from .config import SearchConfig, check_tolerance
from .working_set import CandidateBox, WorkingSet, lower_bound_priority

logger = logging.getLogger(__name__)

INF = float('inf')


class Cutoff:
    """
    Best certified upper bound of the global minimum.

    Shared between worker threads; update() is an atomic
    compare-and-set to the minimum, so the value never increases.
    """

    def __init__(self, value: float = INF):
        self._value = value
        self._lock = threading.Lock()

    @property
    def value(self) -> float:
        return self._value

    def update(self, candidate: float) -> bool:
        """Lower the cutoff to candidate if smaller; True when it changed."""
        with self._lock:
            if candidate < self._value:
                self._value = candidate
                return True
            return False


@dataclass
class RunContext:
    """Mutable state of a single run."""
    config: SearchConfig
    cutoff: Cutoff = field(default_factory=Cutoff)
    start_time: float = field(default_factory=time.time)
    iterations: int = 0
    statistics: Dict[str, int] = field(default_factory=lambda: {
        "evaluated": 0,
        "split": 0,
        "accepted": 0,
        "pruned": 0,
        "numeric_empty": 0,
        "local_searches": 0,
    })

    def elapsed(self) -> float:
        return time.time() - self.start_time

    def budget_exhausted(self) -> Optional[str]:
        """Name of the exhausted budget, or None."""
        if self.iterations >= self.config.max_iterations:
            return "iterations"
        if self.elapsed() >= self.config.max_time:
            return "time"
        return None


Evaluator = Union[FunctionEvaluator, NegatedEvaluator]


class BranchAndBoundDriver:
    """
    Best-first branch-and-bound over interval boxes.

    Args:
        evaluator: Certified bounds of the objective
        tol: Minimizer boxes are accepted once their diameter is <= tol
        config: Budgets and cutoff enrichment settings
    """

    def __init__(self, evaluator: Evaluator, tol: float, config: Optional[SearchConfig] = None):
        self.evaluator = evaluator
        self.tol = check_tolerance(tol)
        self.config = (config or SearchConfig()).validate()
        self.splitter = BoxSplitter()
        self.gate = OutputGate()
        self._local = LocalSearch(evaluator, self.config.local_search_maxiter)

    def run(self, box: IntervalBox) -> ResultBundle:
        """Minimise over box."""
        self.evaluator.check_dimension(box.dim)
        ctx = RunContext(self.config)
        working_set = WorkingSet(lower_bound_priority)
        accepted: List[CandidateBox] = []

        root_bound = self.evaluator.bound(box) if not box.is_empty else Interval.empty()
        ctx.statistics["evaluated"] += 1
        if is_numeric_empty(root_bound):
            ctx.statistics["numeric_empty"] += 1
            logger.info("Root bound %s is empty: infeasible", root_bound)
            return self._finish(ctx, Status.INFEASIBLE, Interval.empty(), [], [])

        working_set.push(CandidateBox(box, root_bound, 0))
        if self.config.local_search:
            self._local_search(box, ctx)

        executor = (
            ThreadPoolExecutor(max_workers=self.config.workers)
            if self.config.workers > 1 else None
        )
        try:
            while working_set:
                reason = ctx.budget_exhausted()
                if reason is not None:
                    return self._abort(ctx, reason, accepted, working_set)
                self._step(ctx, working_set, accepted, executor)
        finally:
            if executor is not None:
                executor.shutdown(wait=True)

        cutoff = ctx.cutoff.value
        survivors = [c for c in accepted if c.bound.lo <= cutoff]
        if not survivors:
            return self._finish(ctx, Status.INFEASIBLE, Interval.empty(), [], [])

        value = Interval(min(c.bound.lo for c in survivors), cutoff)
        unresolved = sum(1 for c in survivors if c.box.diam > self.tol)
        if unresolved:
            # Boxes too thin to bisect but still wider than tol
            logger.warning(
                "Cannot reach tol %g: %d accepted boxes cannot be split further",
                self.tol, unresolved
            )
            return self._finish(ctx, Status.ABORTED, value, [c.box for c in survivors], [],
                                reason="resolution")
        return self._finish(ctx, Status.CONVERGED, value, [c.box for c in survivors], [])

    def _step(
        self,
        ctx: RunContext,
        working_set: WorkingSet,
        accepted: List[CandidateBox],
        executor: Optional[ThreadPoolExecutor]
    ) -> None:
        """Pop one candidate and prune, accept or split it."""
        candidate = working_set.pop()
        ctx.iterations += 1
        if ctx.iterations % self.config.log_frequency == 0:
            self._log_progress(ctx, working_set, accepted)

        if candidate.bound.lo > ctx.cutoff.value:
            ctx.statistics["pruned"] += 1
            return

        split = self.splitter.split(candidate.box)
        if candidate.box.diam <= self.tol or not split.splittable:
            accepted.append(candidate)
            ctx.statistics["accepted"] += 1
            ctx.cutoff.update(candidate.bound.hi)
            return

        ctx.statistics["split"] += 1
        frequency = self.config.local_search_frequency
        if self.config.local_search and frequency and ctx.iterations % frequency == 0:
            self._local_search(candidate.box, ctx)

        if executor is not None:
            children = list(executor.map(self._bound_child, split.children))
        else:
            children = [self._bound_child(child) for child in split.children]

        # Merge on the driver thread only
        for child, bound, point_upper in children:
            ctx.statistics["evaluated"] += 1
            if is_numeric_empty(bound):
                ctx.statistics["numeric_empty"] += 1
                continue
            ctx.cutoff.update(point_upper)
            if bound.lo > ctx.cutoff.value:
                ctx.statistics["pruned"] += 1
                continue
            working_set.push(CandidateBox(child, bound, candidate.depth + 1))

    def _bound_child(self, box: IntervalBox) -> Tuple[IntervalBox, Interval, float]:
        """Bound a child box, and its midpoint when the midpoint test is on."""
        bound = self.evaluator.bound(box)
        point_upper = INF
        if self.config.midpoint_test and not is_numeric_empty(bound):
            point_upper = self.evaluator.upper_bound_at(box.midpoint)
        return box, bound, point_upper

    def _local_search(self, box: IntervalBox, ctx: RunContext) -> None:
        ctx.statistics["local_searches"] += 1
        result = self._local.search(box, finite_start_point(box))
        if ctx.cutoff.update(result.certified_upper):
            logger.debug("Local search lowered the cutoff to %.10g", result.certified_upper)

    def _abort(
        self,
        ctx: RunContext,
        reason: str,
        accepted: List[CandidateBox],
        working_set: WorkingSet
    ) -> ResultBundle:
        cutoff = ctx.cutoff.value
        pending = [c for c in working_set.drain() if c.bound.lo <= cutoff]
        kept = [c for c in accepted if c.bound.lo <= cutoff]
        logger.warning(
            "Budget exhausted (%s) after %d iterations: %d accepted, %d pending boxes",
            reason, ctx.iterations, len(kept), len(pending)
        )
        if not kept and not pending:
            return self._finish(ctx, Status.INFEASIBLE, Interval.empty(), [], [])

        lo = min(c.bound.lo for c in kept + pending)
        return self._finish(
            ctx,
            Status.ABORTED,
            Interval(lo, cutoff),
            [c.box for c in kept],
            [c.box for c in pending],
            reason=reason,
        )

    def _finish(
        self,
        ctx: RunContext,
        status: Status,
        value: Interval,
        boxes: List[IntervalBox],
        pending: List[IntervalBox],
        reason: Optional[str] = None
    ) -> ResultBundle:
        result = ResultBundle(
            status=status,
            value=value,
            boxes=boxes,
            tol=self.tol,
            sense="min",
            pending=pending,
            iterations=ctx.iterations,
            elapsed=ctx.elapsed(),
            reason=reason,
            statistics=dict(ctx.statistics),
        )
        logger.info(
            "Finished: %s, value %s, %d boxes, %d iterations, %.2fs",
            status.value, value, len(boxes), ctx.iterations, result.elapsed
        )
        return self.gate.emit(result)

    def _log_progress(
        self,
        ctx: RunContext,
        working_set: WorkingSet,
        accepted: List[CandidateBox]
    ) -> None:
        """Log progress."""
        lower = min(working_set.min_lower_bound(),
                    min((c.bound.lo for c in accepted), default=INF))
        logger.info(
            "Iterations: %s | Pending: %s | Accepted: %s | LB: %.6g | Cutoff: %.6g | Time: %.2fs",
            f"{ctx.iterations:,}", f"{len(working_set):,}", f"{len(accepted):,}",
            lower, ctx.cutoff.value, ctx.elapsed()
        )


def _prepare(
    f: Union[Objective, FunctionEvaluator],
    box: BoxLike,
    tol: float,
    config: Optional[SearchConfig]
) -> Tuple[FunctionEvaluator, IntervalBox, float, SearchConfig]:
    tol = check_tolerance(tol)
    config = (config or SearchConfig()).validate()
    box = IntervalBox.coerce(box)
    if isinstance(f, FunctionEvaluator):
        f.check_dimension(box.dim)
        evaluator = f
    else:
        evaluator = FunctionEvaluator(f, dim=box.dim, strict_domain=config.strict_domain)
    return evaluator, box, tol, config


def minimise(
    f: Union[Objective, FunctionEvaluator],
    box: BoxLike,
    tol: float,
    config: Optional[SearchConfig] = None
) -> ResultBundle:
    """
    Certified global minimum of f over box.

    Args:
        f: ExpressionGraph, traceable callable, or expression text
        box: IntervalBox, Interval, or sequence of (lo, hi) pairs
        tol: Diameter of the returned minimizer boxes
        config: Budgets and search options

    Returns:
        ResultBundle; unpacks as (value, boxes)

    Raises:
        InvalidTolerance: tol is not a finite positive number
        InvalidBudget: config budgets are unusable
        DimensionMismatch: f takes a different number of variables
    """
    evaluator, box, tol, config = _prepare(f, box, tol, config)
    return BranchAndBoundDriver(evaluator, tol, config).run(box)


def maximise(
    f: Union[Objective, FunctionEvaluator],
    box: BoxLike,
    tol: float,
    config: Optional[SearchConfig] = None
) -> ResultBundle:
    """
    Certified global maximum of f over box.

    Runs minimise on -f; the value is negated back and the maximizer
    boxes are the minimizer boxes of -f.
    """
    evaluator, box, tol, config = _prepare(f, box, tol, config)
    result = BranchAndBoundDriver(NegatedEvaluator(evaluator), tol, config).run(box)
    result.value = -result.value
    result.sense = "max"
    return result
