"""
Bounds Module - Certified Enclosures

Provides:
- Interval arithmetic with outward rounding (Interval, IntervalEvaluator)
- Interval boxes and bisection (IntervalBox, BoxSplitter)
- Objective bounds over boxes (FunctionEvaluator)
- Forward-backward contraction (FBBTContractor)
- Inner/outer separators for constraints (Separator)
"""

from .interval import (
    Interval,
    IntervalEvaluator,
    interval_evaluate,
)
from .box import (
    IntervalBox,
    BoxSplitter,
    SplitResult,
    hull_of,
    total_volume,
)
from .function_evaluator import (
    FunctionEvaluator,
    NegatedEvaluator,
    is_numeric_empty,
)
from .fbbt import (
    FBBTContractor,
    FBBTResult,
    contract_all,
)
from .separator import (
    Separator,
    SeparatorResult,
    ConstraintSeparator,
    IntersectionSeparator,
    UnionSeparator,
    ComplementSeparator,
)

__all__ = [
    # Interval
    'Interval',
    'IntervalEvaluator',
    'interval_evaluate',
    # Boxes
    'IntervalBox',
    'BoxSplitter',
    'SplitResult',
    'hull_of',
    'total_volume',
    # Function bounds
    'FunctionEvaluator',
    'NegatedEvaluator',
    'is_numeric_empty',
    # FBBT
    'FBBTContractor',
    'FBBTResult',
    'contract_all',
    # Separators
    'Separator',
    'SeparatorResult',
    'ConstraintSeparator',
    'IntersectionSeparator',
    'UnionSeparator',
    'ComplementSeparator',
]
