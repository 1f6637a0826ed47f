"""
Feasibility-Based Bound Tightening (FBBT)

Forward-backward contraction of a box against a constraint f(x) in T.

Given a box X and target T, the contractor returns X' subset of X with
    {x in X : f(x) in T} subset of X'
so no point satisfying the constraint is ever lost.

Algorithm (HC4-revise):
1. Forward pass: interval bounds for every node of the expression DAG
2. Intersect the output bound with T
3. Backward pass: from the output down to the variables, narrow each
   child using the inverse of its parent operation
4. Repeat until a pass gains less than `min_progress` (relative width)
   or `max_iterations` passes have run

All inverse operations go through Interval arithmetic, so every
narrowed bound is outward-rounded.
"""

from dataclasses import dataclass
from fractions import Fraction
from typing import Dict, List, Optional, Tuple
import math

from .interval import Interval, IntervalEvaluator, HALF_PI_HI, PI_HI
from .box import IntervalBox
from ..expr_graph import (
    ExpressionGraph,
    Variable,
    Constant,
    UnaryOp,
    BinaryOp,
    OpType,
)


INF = math.inf
NONNEG = Interval(0.0, INF)

# Operations whose argument domain is not the whole real line
PARTIAL_OPS = {OpType.SQRT, OpType.LOG, OpType.ASIN, OpType.ACOS, OpType.TAN,
               OpType.DIV, OpType.POW}


@dataclass(frozen=True)
class FBBTResult:
    """Result of FBBT propagation."""
    box: IntervalBox
    empty: bool       # True if no point of the box can satisfy the constraint
    tightened: bool
    iterations: int


def _relative_progress(old: IntervalBox, new: IntervalBox) -> float:
    """Largest relative width reduction over all dimensions."""
    progress = 0.0
    for a, b in zip(old.intervals, new.intervals):
        wa, wb = a.width, b.width
        if wa == wb:
            continue
        if wa == INF:
            return 1.0
        if wa > 0:
            progress = max(progress, (wa - wb) / wa)
    return progress


def _root_bound(v: float, n: int, upward: bool) -> float:
    """
    Rounded n-th root of v >= 0: the result r satisfies r**n >= v when
    upward, r**n <= v otherwise (checked exactly with fractions).
    """
    if v == 0.0 or v == INF:
        return v
    r = v ** (1.0 / n)
    target = Fraction(v)
    if upward:
        while Fraction(r) ** n < target:
            r = math.nextafter(r, INF)
    else:
        while r > 0 and Fraction(r) ** n > target:
            r = math.nextafter(r, -INF)
    return r


def nth_root(t: Interval, n: int) -> Interval:
    """Enclosure of {w^(1/n) : w in t, w >= 0} for integer n >= 1."""
    t = t.intersect(NONNEG)
    if t.is_empty:
        return t
    return Interval(_root_bound(t.lo, n, upward=False), _root_bound(t.hi, n, upward=True))


def _signed_hull(child: Interval, root: Interval) -> Interval:
    """child restricted to [-root] union [root]."""
    if root.is_empty:
        return root
    return child.intersect(-root).union_hull(child.intersect(root))


class FBBTContractor:
    """
    Forward-backward contractor for one constraint f(x) in target.

    Args:
        graph: Expression DAG for f
        target: Allowed values of f
        max_iterations: Maximum forward-backward passes
        min_progress: Stop once a pass narrows no dimension by this
            relative amount
        strict_domain: Forward pass domain policy (see IntervalEvaluator)
    """

    def __init__(
        self,
        graph: ExpressionGraph,
        target: Interval,
        max_iterations: int = 20,
        min_progress: float = 0.001,
        strict_domain: bool = False
    ):
        self.graph = graph
        self.target = target
        self.max_iterations = max_iterations
        self.min_progress = min_progress
        self._evaluator = IntervalEvaluator(graph, strict_domain)

    def contract(self, box: IntervalBox) -> FBBTResult:
        """Contract a box; the returned box is empty when infeasible."""
        current = box
        iterations = 0

        for iteration in range(self.max_iterations):
            iterations = iteration + 1
            narrowed = self._revise(current)
            if narrowed is None:
                return FBBTResult(IntervalBox.empty(box.dim), True, True, iterations)

            progress = _relative_progress(current, narrowed)
            current = narrowed
            if progress < self.min_progress:
                break

        return FBBTResult(current, False, current != box, iterations)

    def __call__(self, box: IntervalBox) -> IntervalBox:
        return self.contract(box).box

    def _revise(self, box: IntervalBox) -> Optional[IntervalBox]:
        """One forward-backward pass; None when the box is proved infeasible."""
        output, node_intervals = self._evaluator.evaluate(box.intervals)
        root = output.intersect(self.target)
        if root.is_empty:
            return None

        targets: Dict[int, Interval] = {self.graph.output_node.node_id: root}
        narrowed: List[Interval] = list(box.intervals)

        # Process nodes in reverse topological order
        for node in reversed(self.graph.topological_order()):
            target = targets.get(node.node_id, node_intervals[node.node_id])
            if target.is_empty:
                return None

            if isinstance(node, Variable):
                if node.var_index >= len(narrowed):
                    continue
                narrowed[node.var_index] = narrowed[node.var_index].intersect(target)
                if narrowed[node.var_index].is_empty:
                    return None

            elif isinstance(node, Constant):
                continue

            elif isinstance(node, UnaryOp):
                child = node.child.node_id
                current = targets.get(child, node_intervals[child])
                targets[child] = current.intersect(
                    self._backward_unary(node.op, target, current)
                )

            elif isinstance(node, BinaryOp):
                left, right = node.left.node_id, node.right.node_id
                current_left = targets.get(left, node_intervals[left])
                current_right = targets.get(right, node_intervals[right])
                exponent = (
                    node.right.value
                    if isinstance(node.right, Constant) and node.right.is_exact else None
                )
                left_target, right_target = self._backward_binary(
                    node.op, target, current_left, current_right, exponent
                )
                targets[left] = current_left.intersect(left_target)
                # A DAG may use the same child on both sides
                current_right = targets.get(right, current_right)
                targets[right] = current_right.intersect(right_target)

        return IntervalBox(tuple(narrowed))

    def _backward_unary(self, op: OpType, target: Interval, child: Interval) -> Interval:
        """
        Backward propagation for unary operations.

        Given: w = op(x), and w in target
        Compute: bounds on x
        """
        if op == OpType.NEG:
            return -target

        elif op == OpType.SQUARE:
            return _signed_hull(child, nth_root(target, 2))

        elif op == OpType.ABS:
            return _signed_hull(child, target.intersect(NONNEG))

        elif op == OpType.SQRT:
            return target.intersect(NONNEG).square()

        elif op == OpType.EXP:
            return target.log()

        elif op == OpType.LOG:
            return target.exp()

        elif op == OpType.ASIN:
            return target.intersect(Interval(-HALF_PI_HI, HALF_PI_HI)).sin()

        elif op == OpType.ACOS:
            return target.intersect(Interval(0.0, PI_HI)).cos()

        elif op == OpType.ATAN:
            inside = target.intersect(Interval(-HALF_PI_HI, HALF_PI_HI))
            return inside.tan() if not inside.is_empty else inside

        else:
            # Periodic and remaining functions: no tightening
            return child

    def _backward_binary(
        self,
        op: OpType,
        target: Interval,
        left: Interval,
        right: Interval,
        exponent: Optional[float] = None
    ) -> Tuple[Interval, Interval]:
        """
        Backward propagation for binary operations.

        Given: w = op(x, y), and w in target
        Compute: bounds on x and y
        """
        if op == OpType.ADD:
            # w = x + y => x = w - y, y = w - x
            return target - right, target - left

        elif op == OpType.SUB:
            # w = x - y => x = w + y, y = x - w
            return target + right, left - target

        elif op == OpType.MUL:
            left_target, right_target = left, right
            if not right.contains_zero():
                left_target = target / right
            if not left.contains_zero():
                right_target = target / left
            return left_target, right_target

        elif op == OpType.DIV:
            # w = x / y => x = w * y, y = x / w
            left_target = target * right
            right_target = right if target.contains_zero() else left / target
            return left_target, right_target

        elif op == OpType.POW and exponent is not None and float(exponent).is_integer() and exponent > 0:
            n = int(exponent)
            if n % 2 == 0:
                return _signed_hull(left, nth_root(target, n)), right
            positive = nth_root(target, n)
            negative = -nth_root(-target, n)
            roots = positive.union_hull(negative) if not negative.is_empty else positive
            return roots, right

        elif op == OpType.MIN:
            # w = min(x, y) => x >= w and y >= w
            floor = Interval(target.lo, INF) if target.lo < INF else Interval.empty()
            return floor, floor

        elif op == OpType.MAX:
            ceiling = Interval(-INF, target.hi) if target.hi > -INF else Interval.empty()
            return ceiling, ceiling

        else:
            return left, right


def has_partial_ops(graph: ExpressionGraph) -> bool:
    """True when f may be undefined on part of a box."""
    for node in graph.topological_order():
        if isinstance(node, (UnaryOp, BinaryOp)) and node.op in PARTIAL_OPS:
            return True
    return False


def contract_all(
    contractors: List[FBBTContractor],
    box: IntervalBox,
    max_iterations: int = 20,
    min_progress: float = 0.001
) -> FBBTResult:
    """
    Apply several contractors in turn until a fixed point.

    The result contains every point of the box satisfying all of the
    constraints.
    """
    current = box
    total_iterations = 0

    for _ in range(max_iterations):
        before = current
        for contractor in contractors:
            result = contractor.contract(current)
            total_iterations += result.iterations
            if result.empty:
                return FBBTResult(result.box, True, True, total_iterations)
            current = result.box
        if _relative_progress(before, current) < min_progress:
            break

    return FBBTResult(current, False, current != box, total_iterations)
