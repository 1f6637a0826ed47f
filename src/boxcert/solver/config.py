"""
Search Configuration

One dataclass drives every search in the package: the budgets that
bound a run, the optional cutoff enrichments of branch-and-bound, the
contractor settings used when a pave is given plain constraints, and
logging cadence.
"""

from dataclasses import dataclass, asdict
from typing import Any, Dict
import math

from ..errors import InvalidBudget, InvalidTolerance


@dataclass
class SearchConfig:
    """Configuration for branch-and-bound and paving."""
    max_iterations: int = 200_000
    max_time: float = 60.0
    workers: int = 1

    # Cutoff enrichment (branch-and-bound only)
    midpoint_test: bool = True
    local_search: bool = True
    local_search_frequency: int = 0  # 0 = root box only
    local_search_maxiter: int = 100

    # Objective domain policy; pavings always count undefined points as violating
    strict_domain: bool = False

    # Forward-backward contraction
    contractor_iterations: int = 20
    contractor_min_progress: float = 0.001

    log_frequency: int = 1000

    def validate(self) -> 'SearchConfig':
        """Raise InvalidBudget for unusable budgets; return self."""
        if not isinstance(self.max_iterations, int) or self.max_iterations < 1:
            raise InvalidBudget(f"max_iterations must be a positive integer, got {self.max_iterations!r}")
        if not self.max_time > 0:
            raise InvalidBudget(f"max_time must be positive, got {self.max_time!r}")
        if not isinstance(self.workers, int) or self.workers < 1:
            raise InvalidBudget(f"workers must be at least 1, got {self.workers!r}")
        if self.local_search_frequency < 0:
            raise InvalidBudget("local_search_frequency must be >= 0")
        if self.contractor_iterations < 1:
            raise InvalidBudget("contractor_iterations must be >= 1")
        if self.log_frequency < 1:
            raise InvalidBudget("log_frequency must be >= 1")
        return self

    def to_canonical(self) -> Dict[str, Any]:
        return asdict(self)


def check_tolerance(tol: float) -> float:
    """Raise InvalidTolerance unless tol is a finite positive number."""
    try:
        value = float(tol)
    except (TypeError, ValueError):
        raise InvalidTolerance(tol) from None
    if not math.isfinite(value) or value <= 0:
        raise InvalidTolerance(tol)
    return value
