"""
Solver Module - Branch-and-Bound and Paving

Provides:
- minimise / maximise: certified global optimisation over a box
- pave / refine: certified inner and boundary boxes of a constraint set
- SearchConfig: budgets and search options
- WorkingSet: the priority work-list both searches share
"""

from .config import SearchConfig, check_tolerance
from .working_set import CandidateBox, WorkingSet
from .branch_and_bound import (
    BranchAndBoundDriver,
    Cutoff,
    RunContext,
    minimise,
    maximise,
)
from .paving import PavingEngine, pave, refine

__all__ = [
    'SearchConfig',
    'check_tolerance',
    'CandidateBox',
    'WorkingSet',
    'BranchAndBoundDriver',
    'Cutoff',
    'RunContext',
    'minimise',
    'maximise',
    'PavingEngine',
    'pave',
    'refine',
]
