"""
Output Gate

Every search ends in one of three admissible statuses:

- CONVERGED: the answer is certified at the requested tolerance
- INFEASIBLE: no point of the domain qualifies (certified)
- ABORTED: the budget ran out; the partial answer is still sound

This module defines the result types and validates every result
before it leaves a solver.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Union

from .canonical_json import canonical_float, canonical_hash
from ..bounds.box import IntervalBox, total_volume
from ..bounds.interval import Interval
from ..errors import ResultInvariantError


class Status(Enum):
    """Search status; RUNNING never leaves a solver."""
    RUNNING = "running"
    CONVERGED = "converged"
    INFEASIBLE = "infeasible"
    ABORTED = "aborted"


@dataclass
class ResultBundle:
    """
    Result of minimise / maximise.

    Unpacks as (value, boxes):

        value, boxes = minimise("(x - 3)^2", [(-10, 10)], 1e-6)

    Attributes:
        status: CONVERGED, INFEASIBLE or ABORTED
        value: Certified enclosure of the global minimum (maximum)
        boxes: Minimizer (maximizer) boxes, in acceptance order
        tol: Requested box diameter
        sense: "min" or "max"
        pending: Boxes still unexplored when the run was aborted
        iterations: Boxes popped from the working set
        elapsed: Wall-clock seconds
        reason: Why the run aborted ("iterations" or "time")
        statistics: Counters of the run
    """
    status: Status
    value: Interval
    boxes: List[IntervalBox] = field(default_factory=list)
    tol: float = 0.0
    sense: str = "min"
    pending: List[IntervalBox] = field(default_factory=list)
    iterations: int = 0
    elapsed: float = 0.0
    reason: Optional[str] = None
    statistics: Dict[str, int] = field(default_factory=dict)

    def __iter__(self) -> Iterator[Any]:
        yield self.value
        yield self.boxes

    @property
    def converged(self) -> bool:
        return self.status == Status.CONVERGED

    def to_canonical(self) -> Dict[str, Any]:
        """Canonical form; wall-clock time is left out so equal runs hash equal."""
        return {
            "status": self.status.value,
            "sense": self.sense,
            "tol": canonical_float(self.tol),
            "value": [canonical_float(self.value.lo), canonical_float(self.value.hi)],
            "boxes": [box.to_canonical() for box in self.boxes],
            "pending": [box.to_canonical() for box in self.pending],
            "iterations": self.iterations,
            "reason": self.reason,
        }

    def fingerprint(self) -> str:
        return canonical_hash(self.to_canonical())


@dataclass
class SubPaving:
    """
    Result of pave / refine.

    Attributes:
        status: CONVERGED, INFEASIBLE or ABORTED
        inner: Boxes whose every point satisfies the condition
        boundary: Undecided boxes (diameter <= tol unless aborted)
        tol: Requested boundary box diameter
        iterations: Boxes popped from the working set
        elapsed: Wall-clock seconds
        reason: Why the run aborted
        statistics: Counters of the run
    """
    status: Status
    inner: List[IntervalBox] = field(default_factory=list)
    boundary: List[IntervalBox] = field(default_factory=list)
    tol: float = 0.0
    iterations: int = 0
    elapsed: float = 0.0
    reason: Optional[str] = None
    statistics: Dict[str, int] = field(default_factory=dict)

    def __iter__(self) -> Iterator[List[IntervalBox]]:
        yield self.inner
        yield self.boundary

    def inner_volume(self) -> float:
        return total_volume(self.inner)

    def boundary_volume(self) -> float:
        return total_volume(self.boundary)

    def to_canonical(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "tol": canonical_float(self.tol),
            "inner": [box.to_canonical() for box in self.inner],
            "boundary": [box.to_canonical() for box in self.boundary],
            "iterations": self.iterations,
            "reason": self.reason,
        }

    def fingerprint(self) -> str:
        return canonical_hash(self.to_canonical())


SearchResult = Union[ResultBundle, SubPaving]


class OutputGate:
    """
    Validates results against their invariants.

    Any attempt to output an invalid result raises ResultInvariantError.
    """

    def validate_bundle(self, result: ResultBundle) -> bool:
        """
        Checks:
        - status is final
        - INFEASIBLE carries the empty value and no boxes
        - otherwise the value is non-empty and every box non-empty
        - CONVERGED boxes have diameter <= tol
        - ABORTED carries a reason
        """
        if result.status == Status.RUNNING:
            raise ResultInvariantError("A RUNNING result cannot be emitted")

        if result.status == Status.INFEASIBLE:
            if not result.value.is_empty or result.boxes:
                raise ResultInvariantError("INFEASIBLE requires an empty value and no boxes")
            return True

        if result.value.is_empty:
            raise ResultInvariantError(f"{result.status.value} result has an empty value")
        if result.sense not in ("min", "max"):
            raise ResultInvariantError(f"Unknown sense {result.sense!r}")

        for box in result.boxes:
            if box.is_empty:
                raise ResultInvariantError("Result contains an empty box")

        if result.status == Status.CONVERGED:
            if not result.boxes:
                raise ResultInvariantError("CONVERGED requires at least one box")
            for box in result.boxes:
                if box.diam > result.tol:
                    raise ResultInvariantError(
                        f"Box diameter {box.diam} exceeds tolerance {result.tol}"
                    )
        elif result.status == Status.ABORTED and not result.reason:
            raise ResultInvariantError("ABORTED requires a reason")

        return True

    def validate_paving(self, result: SubPaving) -> bool:
        """
        Checks:
        - status is final
        - INFEASIBLE carries no boxes
        - no empty boxes
        - CONVERGED boundary boxes have diameter <= tol
        - ABORTED carries a reason
        """
        if result.status == Status.RUNNING:
            raise ResultInvariantError("A RUNNING paving cannot be emitted")

        if result.status == Status.INFEASIBLE:
            if result.inner or result.boundary:
                raise ResultInvariantError("INFEASIBLE paving must hold no boxes")
            return True

        for box in result.inner + result.boundary:
            if box.is_empty:
                raise ResultInvariantError("Paving contains an empty box")

        if result.status == Status.CONVERGED:
            for box in result.boundary:
                if box.diam > result.tol:
                    raise ResultInvariantError(
                        f"Boundary box diameter {box.diam} exceeds tolerance {result.tol}"
                    )
        elif result.status == Status.ABORTED and not result.reason:
            raise ResultInvariantError("ABORTED requires a reason")

        return True

    def validate(self, result: SearchResult) -> bool:
        if isinstance(result, ResultBundle):
            return self.validate_bundle(result)
        if isinstance(result, SubPaving):
            return self.validate_paving(result)
        raise TypeError(f"Unknown result type: {type(result).__name__}")

    def emit(self, result: SearchResult) -> SearchResult:
        """
        Validate and emit a result through the output gate.

        This is the only way results should leave a solver.
        """
        self.validate(result)
        return result
