"""
boxcert - Certified Global Optimisation and Constraint Paving

Interval branch-and-bound that returns mathematically guaranteed answers:
- minimise / maximise: an interval certainly containing the global
  optimum, and small boxes covering every global optimizer
- pave: inner boxes certainly satisfying a constraint system and thin
  boundary boxes around its frontier

Every search ends CONVERGED, INFEASIBLE or ABORTED (budget exhausted,
with a partial answer that is still sound).

Key Features:
- Outward-rounded interval arithmetic over expression graphs
- Objectives and constraints from Python callables or plain text
- Forward-backward contractors and composable separators
- Cutoff seeding by certified midpoint tests and local search
"""

from .errors import (
    BoxCertError,
    InvalidTolerance,
    DimensionMismatch,
    InvalidBudget,
    ParseError,
    ResultInvariantError,
)
from .expr_graph import (
    ExpressionGraph,
    ExprNode,
    Variable,
    Constant,
    UnaryOp,
    BinaryOp,
    OpType,
    TracedVar,
)
from .bounds.interval import (
    Interval,
    IntervalEvaluator,
    interval_evaluate,
)
from .bounds.box import (
    IntervalBox,
    BoxSplitter,
)
from .bounds.function_evaluator import (
    FunctionEvaluator,
    NegatedEvaluator,
)
from .bounds.separator import (
    Separator,
    SeparatorResult,
)
from .constraint import Constraint
from .parser import (
    parse_expression,
    parse_constraint,
    parse_constraints,
)
from .core.output_gate import (
    Status,
    ResultBundle,
    SubPaving,
    OutputGate,
)
from .solver.config import SearchConfig
from .solver.branch_and_bound import (
    BranchAndBoundDriver,
    minimise,
    maximise,
)
from .solver.paving import (
    pave,
    refine,
)

__version__ = "0.1.0"

__all__ = [
    # Errors
    "BoxCertError",
    "InvalidTolerance",
    "DimensionMismatch",
    "InvalidBudget",
    "ParseError",
    "ResultInvariantError",
    # Expression Graph
    "ExpressionGraph",
    "ExprNode",
    "Variable",
    "Constant",
    "UnaryOp",
    "BinaryOp",
    "OpType",
    "TracedVar",
    # Intervals and boxes
    "Interval",
    "IntervalEvaluator",
    "interval_evaluate",
    "IntervalBox",
    "BoxSplitter",
    "FunctionEvaluator",
    "NegatedEvaluator",
    # Constraints
    "Constraint",
    "Separator",
    "SeparatorResult",
    "parse_expression",
    "parse_constraint",
    "parse_constraints",
    # Results
    "Status",
    "ResultBundle",
    "SubPaving",
    "OutputGate",
    # Solver
    "SearchConfig",
    "BranchAndBoundDriver",
    "minimise",
    "maximise",
    "pave",
    "refine",
]
