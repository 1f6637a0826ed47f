"""
Local Search: Upper Bound Discovery

Branch-and-bound prunes a box once its lower bound exceeds the cutoff,
the best certified upper bound of the minimum known so far. A tight
cutoff early on is what keeps the working set small, most of all in
high dimension, so the driver seeds it with a local minimisation
(scipy L-BFGS-B) from a finite point of the box.

The local minimiser only proposes a point; the point is then evaluated
as a degenerate box with interval arithmetic, and only that certified
upper end is offered as a cutoff.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

import numpy as np
from scipy.optimize import minimize

from ..bounds.box import IntervalBox

logger = logging.getLogger(__name__)

# Stand-in objective value where f is undefined or overflows
_PENALTY = 1e300


@dataclass
class SearchResult:
    """Outcome of one local search."""
    x: Optional[np.ndarray]
    certified_upper: float = float('inf')
    evaluations: int = 0
    success: bool = False


def finite_start_point(box: IntervalBox) -> np.ndarray:
    """
    A finite point of the box: the midpoint of bounded components, the
    finite end of half-lines, 0 for the entire line.
    """
    x = np.zeros(box.dim, dtype=np.float64)
    for i, iv in enumerate(box.intervals):
        lo_finite, hi_finite = np.isfinite(iv.lo), np.isfinite(iv.hi)
        if lo_finite and hi_finite:
            x[i] = iv.midpoint
        elif lo_finite:
            x[i] = iv.lo
        elif hi_finite:
            x[i] = iv.hi
    return x


def scipy_bounds(box: IntervalBox) -> List[Tuple[Optional[float], Optional[float]]]:
    """Box bounds in scipy form (None for infinite ends)."""
    return [
        (iv.lo if np.isfinite(iv.lo) else None, iv.hi if np.isfinite(iv.hi) else None)
        for iv in box.intervals
    ]


class LocalSearch:
    """
    L-BFGS-B local search returning certified upper bounds.

    Args:
        evaluator: FunctionEvaluator (or NegatedEvaluator) of the objective
        maxiter: L-BFGS-B iteration cap per search
    """

    def __init__(self, evaluator, maxiter: int = 100):
        self.evaluator = evaluator
        self.maxiter = maxiter
        self.searches = 0

    def _objective(self, x: np.ndarray) -> float:
        value = self.evaluator.value_at(x)
        if not np.isfinite(value):
            return _PENALTY
        return float(min(value, _PENALTY))

    def search(self, box: IntervalBox, x0: Optional[np.ndarray] = None) -> SearchResult:
        """
        Minimise locally from x0 (default: the finite start point of box)
        and certify the start and end points.
        """
        self.searches += 1
        if x0 is None:
            x0 = finite_start_point(box)
        x0 = np.asarray(x0, dtype=np.float64)

        best_x = x0
        best_upper = self.evaluator.upper_bound_at(x0)
        evaluations = 1

        try:
            with np.errstate(all="ignore"):
                result = minimize(
                    self._objective,
                    x0,
                    method='L-BFGS-B',
                    bounds=scipy_bounds(box),
                    options={'maxiter': self.maxiter, 'gtol': 1e-10}
                )
        except (ValueError, ArithmeticError) as e:
            logger.debug("Local search failed from %s: %s", x0, e)
            return SearchResult(best_x, best_upper, evaluations, False)

        evaluations += int(result.nfev)
        x = np.asarray(result.x, dtype=np.float64)
        if np.all(np.isfinite(x)) and box.contains(x):
            upper = self.evaluator.upper_bound_at(x)
            if upper < best_upper:
                best_x, best_upper = x, upper

        logger.debug(
            "Local search: %d evaluations, certified upper bound %.10g", evaluations, best_upper
        )
        return SearchResult(best_x, best_upper, evaluations, bool(result.success))
