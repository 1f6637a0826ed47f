"""
Working Set

The pending boxes of a search: an arena of candidates plus a heap of
(priority, insertion sequence, arena index). Popping returns the
candidate with the smallest priority; equal priorities come out in
insertion order, so runs are deterministic.
"""

import heapq
from dataclasses import dataclass
from typing import Callable, Iterator, List, Optional, Tuple

from ..bounds.box import IntervalBox
from ..bounds.interval import Interval


@dataclass(frozen=True)
class CandidateBox:
    """
    A pending box with its cached bound.

    Attributes:
        box: The box itself
        bound: Enclosure of the objective over the box (driver), or the
            entire line when the search does not bound (paving)
        depth: Number of splits from the root box
    """
    box: IntervalBox
    bound: Interval
    depth: int = 0


def lower_bound_priority(candidate: CandidateBox) -> float:
    """Best-first: smallest certified lower bound first."""
    return candidate.bound.lo


def depth_first_priority(candidate: CandidateBox) -> float:
    """Deepest box first."""
    return -candidate.depth


class WorkingSet:
    """
    Priority work-list of CandidateBoxes.

    Popped slots of the arena are released, so memory follows the
    number of pending boxes rather than the number ever pushed.
    """

    def __init__(self, priority: Callable[[CandidateBox], float] = lower_bound_priority):
        self._priority = priority
        self._arena: List[Optional[CandidateBox]] = []
        self._free: List[int] = []
        self._heap: List[Tuple[float, int, int]] = []
        self._sequence = 0

    def push(self, candidate: CandidateBox) -> None:
        if self._free:
            index = self._free.pop()
            self._arena[index] = candidate
        else:
            index = len(self._arena)
            self._arena.append(candidate)
        heapq.heappush(self._heap, (self._priority(candidate), self._sequence, index))
        self._sequence += 1

    def pop(self) -> CandidateBox:
        """Remove and return the candidate with the smallest priority."""
        if not self._heap:
            raise IndexError("pop from an empty working set")
        _, _, index = heapq.heappop(self._heap)
        candidate = self._arena[index]
        self._arena[index] = None
        self._free.append(index)
        return candidate

    def peek(self) -> CandidateBox:
        if not self._heap:
            raise IndexError("peek at an empty working set")
        return self._arena[self._heap[0][2]]

    def drain(self) -> List[CandidateBox]:
        """Remove every candidate, in priority order."""
        items = []
        while self._heap:
            items.append(self.pop())
        return items

    def min_lower_bound(self) -> float:
        """Smallest bound.lo over all pending candidates (+inf when empty)."""
        return min((c.bound.lo for c in self), default=float("inf"))

    def __iter__(self) -> Iterator[CandidateBox]:
        """Pending candidates in priority order (without removing them)."""
        for _, _, index in sorted(self._heap):
            yield self._arena[index]

    def __len__(self) -> int:
        return len(self._heap)

    def __bool__(self) -> bool:
        return bool(self._heap)
