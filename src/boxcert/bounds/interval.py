"""
Interval Arithmetic

Provides rigorous interval enclosures for function evaluation.
Every computed endpoint is rounded outward (one ulp per arithmetic
operation, two for library transcendental functions) so the true
result is always contained in the returned interval.

This is the foundation of certified optimisation:
- Every function value is guaranteed to be in the computed interval
- The lower end of an objective interval is a certified bound for the box
- Constraint intervals enable inner/outer classification

Intervals are immutable. The empty set is the distinguished value
Interval.empty() == [+inf, -inf]; every operation on an empty operand
returns the empty set.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union
import math

from ..expr_graph import (
    ExpressionGraph,
    ExprNode,
    Variable,
    Constant,
    UnaryOp,
    BinaryOp,
    OpType,
)


INF = math.inf
FLOAT_MAX = 1.7976931348623157e308
PI_LO = 3.141592653589793            # float(pi) is below pi
PI_HI = math.nextafter(PI_LO, INF)
HALF_PI_LO = PI_LO / 2
HALF_PI_HI = PI_HI / 2
E_LO = 2.718281828459045             # float(e) is below e
E_HI = math.nextafter(E_LO, INF)

# Trigonometric range reduction is only trusted below this magnitude
_TRIG_LIMIT = 1e12


def _down(x: float) -> float:
    return math.nextafter(x, -INF)


def _up(x: float) -> float:
    return math.nextafter(x, INF)


def _down2(x: float) -> float:
    return math.nextafter(math.nextafter(x, -INF), -INF)


def _up2(x: float) -> float:
    return math.nextafter(math.nextafter(x, INF), INF)


def _mul(a: float, b: float) -> float:
    """Endpoint product with the interval convention 0 * inf = 0."""
    if a == 0.0 or b == 0.0:
        return 0.0
    return a * b


def _exp(x: float) -> float:
    try:
        return math.exp(x)
    except OverflowError:
        return INF


def _ipow(x: float, n: int) -> float:
    """x**n for a non-negative integer n, saturating to +-inf."""
    try:
        return x ** n
    except OverflowError:
        return INF if x > 0 or n % 2 == 0 else -INF


@dataclass(frozen=True)
class Interval:
    """
    A closed interval [lo, hi] with outward-rounded arithmetic.

    lo may be -inf and hi may be +inf; a non-empty interval never has
    lo == +inf or hi == -inf.
    """
    lo: float
    hi: float

    def __post_init__(self):
        lo, hi = self.lo, self.hi
        if math.isnan(lo) or math.isnan(hi):
            raise ValueError(f"Invalid interval: [{lo}, {hi}]")
        if lo == INF and hi == -INF:
            return
        if lo > hi or lo == INF or hi == -INF:
            raise ValueError(f"Invalid interval: [{lo}, {hi}]")

    @classmethod
    def point(cls, x: float) -> 'Interval':
        """Create a point interval [x, x]."""
        x = float(x)
        return cls(x, x)

    @classmethod
    def empty(cls) -> 'Interval':
        """The empty interval (infeasibility / undefined result)."""
        return _EMPTY

    @classmethod
    def entire(cls) -> 'Interval':
        """The entire real line."""
        return _ENTIRE

    @classmethod
    def coerce(cls, value: Union['Interval', float, Tuple[float, float]]) -> 'Interval':
        """Build an interval from an Interval, a number or a (lo, hi) pair."""
        if isinstance(value, Interval):
            return value
        if isinstance(value, (int, float)):
            return cls.point(value)
        lo, hi = value
        return cls(float(lo), float(hi))

    @property
    def is_empty(self) -> bool:
        return self.lo > self.hi

    @property
    def width(self) -> float:
        if self.is_empty:
            return 0.0
        return self.hi - self.lo

    @property
    def diam(self) -> float:
        return self.width

    @property
    def is_bounded(self) -> bool:
        return not self.is_empty and math.isfinite(self.lo) and math.isfinite(self.hi)

    @property
    def is_degenerate(self) -> bool:
        return self.lo == self.hi

    @property
    def midpoint(self) -> float:
        """
        A finite point of the interval.

        Unbounded intervals use 0 for the entire line and +-FLOAT_MAX for
        half-lines, so bisection of an unbounded domain always progresses.
        """
        if self.is_empty:
            return math.nan
        lo, hi = self.lo, self.hi
        if lo == -INF and hi == INF:
            return 0.0
        if lo == -INF:
            return min(-FLOAT_MAX, hi)
        if hi == INF:
            return max(FLOAT_MAX, lo)
        m = 0.5 * lo + 0.5 * hi
        return min(max(m, lo), hi)

    @property
    def mag(self) -> float:
        """Largest absolute value in the interval."""
        return max(abs(self.lo), abs(self.hi))

    @property
    def mig(self) -> float:
        """Smallest absolute value in the interval."""
        if self.contains_zero():
            return 0.0
        return min(abs(self.lo), abs(self.hi))

    def contains(self, x: float) -> bool:
        return self.lo <= x <= self.hi

    def __contains__(self, x: float) -> bool:
        return self.contains(x)

    def contains_zero(self) -> bool:
        return self.lo <= 0.0 <= self.hi

    def is_subset(self, other: 'Interval') -> bool:
        if self.is_empty:
            return True
        return other.lo <= self.lo and self.hi <= other.hi

    def is_interior(self, other: 'Interval') -> bool:
        """True when self lies strictly inside other (at finite ends)."""
        if self.is_empty:
            return True
        lo_ok = other.lo == -INF or other.lo < self.lo
        hi_ok = other.hi == INF or self.hi < other.hi
        return lo_ok and hi_ok

    def intersect(self, other: 'Interval') -> 'Interval':
        """Intersection of two intervals."""
        new_lo = max(self.lo, other.lo)
        new_hi = min(self.hi, other.hi)
        if new_lo > new_hi or new_lo == INF or new_hi == -INF:
            return _EMPTY
        return Interval(new_lo, new_hi)

    def union_hull(self, other: 'Interval') -> 'Interval':
        """Convex hull of two intervals."""
        if self.is_empty:
            return other
        if other.is_empty:
            return self
        return Interval(min(self.lo, other.lo), max(self.hi, other.hi))

    # Arithmetic operations with outward rounding

    def __neg__(self) -> 'Interval':
        if self.is_empty:
            return self
        return Interval(-self.hi, -self.lo)

    def __pos__(self) -> 'Interval':
        return self

    def __add__(self, other) -> 'Interval':
        other = _as_interval(other)
        if other is NotImplemented:
            return other
        if self.is_empty or other.is_empty:
            return _EMPTY
        return Interval(_down(self.lo + other.lo), _up(self.hi + other.hi))

    def __radd__(self, other) -> 'Interval':
        return self.__add__(other)

    def __sub__(self, other) -> 'Interval':
        other = _as_interval(other)
        if other is NotImplemented:
            return other
        if self.is_empty or other.is_empty:
            return _EMPTY
        return Interval(_down(self.lo - other.hi), _up(self.hi - other.lo))

    def __rsub__(self, other) -> 'Interval':
        other = _as_interval(other)
        if other is NotImplemented:
            return other
        return other.__sub__(self)

    def __mul__(self, other) -> 'Interval':
        other = _as_interval(other)
        if other is NotImplemented:
            return other
        if self.is_empty or other.is_empty:
            return _EMPTY

        products = (
            _mul(self.lo, other.lo),
            _mul(self.lo, other.hi),
            _mul(self.hi, other.lo),
            _mul(self.hi, other.hi),
        )
        lo, hi = min(products), max(products)
        return Interval(_down(lo) if lo != -INF else lo, _up(hi) if hi != INF else hi)

    def __rmul__(self, other) -> 'Interval':
        return self.__mul__(other)

    def reciprocal(self) -> 'Interval':
        """1 / x, with the usual extended rules when 0 is in x."""
        if self.is_empty:
            return _EMPTY
        lo, hi = self.lo, self.hi
        if lo == 0.0 and hi == 0.0:
            return _EMPTY
        if lo < 0.0 < hi:
            return _ENTIRE
        if lo == 0.0:
            return Interval(0.0 if hi == INF else _down(1.0 / hi), INF)
        if hi == 0.0:
            return Interval(-INF, 0.0 if lo == -INF else _up(1.0 / lo))
        new_lo = 0.0 if hi == INF else _down(1.0 / hi)
        new_hi = 0.0 if lo == -INF else _up(1.0 / lo)
        return Interval(new_lo, new_hi)

    def __truediv__(self, other) -> 'Interval':
        other = _as_interval(other)
        if other is NotImplemented:
            return other
        if self.is_empty or other.is_empty:
            return _EMPTY
        if self.lo == 0.0 and self.hi == 0.0 and not (other.lo == 0.0 and other.hi == 0.0):
            return Interval(0.0, 0.0)
        if other.is_degenerate and math.isfinite(other.lo) and other.lo != 0.0:
            # Division by a point: round the quotients directly
            q = (self.lo / other.lo, self.hi / other.lo)
            lo, hi = min(q), max(q)
            return Interval(_down(lo) if lo != -INF else lo, _up(hi) if hi != INF else hi)
        return self * other.reciprocal()

    def __rtruediv__(self, other) -> 'Interval':
        other = _as_interval(other)
        if other is NotImplemented:
            return other
        return other.__truediv__(self)

    def __pow__(self, n) -> 'Interval':
        """Power operation x^n."""
        if isinstance(n, Interval):
            if n.is_degenerate and float(n.lo).is_integer():
                return self.pow_int(int(n.lo))
            if n.is_degenerate:
                return self.pow_real(n.lo)
            return self.pow_interval(n)
        if isinstance(n, int) or (isinstance(n, float) and n.is_integer()):
            return self.pow_int(int(n))
        return self.pow_real(float(n))

    def pow_int(self, n: int) -> 'Interval':
        """Integer power with proper interval handling."""
        if self.is_empty:
            return _EMPTY
        if n == 0:
            return Interval(1.0, 1.0)
        elif n == 1:
            return self
        elif n == 2:
            return self.square()
        elif n < 0:
            return self.pow_int(-n).reciprocal()
        elif n % 2 == 0:
            # Even power
            if self.hi <= 0:
                return Interval(_down(_ipow(self.hi, n)), _up(_ipow(self.lo, n)))
            elif self.lo >= 0:
                return Interval(_down(_ipow(self.lo, n)), _up(_ipow(self.hi, n)))
            else:
                return Interval(0.0, _up(max(_ipow(self.lo, n), _ipow(self.hi, n))))
        else:
            # Odd power is monotone
            return Interval(_down(_ipow(self.lo, n)), _up(_ipow(self.hi, n)))

    def pow_real(self, p: float) -> 'Interval':
        """x^p for a non-integer constant p, defined for x >= 0 (x > 0 if p < 0)."""
        if p.is_integer():
            return self.pow_int(int(p))
        if self.is_empty or self.hi < 0 or (p < 0 and self.hi <= 0):
            return _EMPTY
        lo = max(self.lo, 0.0)
        hi = self.hi

        def _p(x: float) -> float:
            if x == 0.0:
                return INF if p < 0 else 0.0
            if x == INF:
                return INF if p > 0 else 0.0
            try:
                return x ** p
            except OverflowError:
                return INF

        if p > 0:
            a, b = _p(lo), _p(hi)
        else:
            a, b = _p(hi), _p(lo)
        return Interval(max(0.0, _down2(a)), _up2(b) if b != INF else b)

    def pow_interval(self, n: 'Interval') -> 'Interval':
        """General power x^y via exp(y*log(x)) on the positive part of x."""
        if self.is_empty or n.is_empty:
            return _EMPTY
        return (n * self.log()).exp()

    def square(self) -> 'Interval':
        """Optimized x^2 computation."""
        if self.is_empty:
            return _EMPTY
        if self.hi <= 0:
            return Interval(max(0.0, _down(_mul(self.hi, self.hi))), _up(_mul(self.lo, self.lo)))
        elif self.lo >= 0:
            return Interval(max(0.0, _down(_mul(self.lo, self.lo))), _up(_mul(self.hi, self.hi)))
        else:
            # Interval contains zero
            return Interval(0.0, _up(max(self.lo * self.lo, self.hi * self.hi)))

    def abs(self) -> 'Interval':
        """Absolute value."""
        if self.is_empty:
            return _EMPTY
        if self.lo >= 0:
            return self
        elif self.hi <= 0:
            return Interval(-self.hi, -self.lo)
        else:
            return Interval(0.0, max(-self.lo, self.hi))

    def __abs__(self) -> 'Interval':
        return self.abs()

    def sqrt(self) -> 'Interval':
        """Square root over the non-negative part."""
        if self.is_empty or self.hi < 0:
            return _EMPTY
        lo = max(0.0, self.lo)
        return Interval(
            max(0.0, _down(math.sqrt(lo))) if lo > 0 else 0.0,
            _up(math.sqrt(self.hi)) if self.hi != INF else INF,
        )

    def exp(self) -> 'Interval':
        """Exponential function."""
        if self.is_empty:
            return _EMPTY
        return Interval(
            max(0.0, _down2(_exp(self.lo))),
            _up2(_exp(self.hi)) if self.hi != INF else INF,
        )

    def log(self) -> 'Interval':
        """Natural logarithm over the positive part."""
        if self.is_empty or self.hi <= 0:
            return _EMPTY
        lo = -INF if self.lo <= 0 else _down2(math.log(self.lo))
        hi = INF if self.hi == INF else _up2(math.log(self.hi))
        return Interval(lo, hi)

    def _periodic(self, fn, max_at: float, min_at: float) -> 'Interval':
        """
        Range of sin or cos: endpoint values plus any period extremum
        inside the interval. Extrema phases are offsets in units of pi.
        """
        if self.is_empty:
            return _EMPTY
        if not self.is_bounded or self.mag > _TRIG_LIMIT or self.width >= 2 * PI_LO:
            return Interval(-1.0, 1.0)

        lo, hi = self.lo, self.hi
        slack = 8 * math.ulp(max(abs(lo), abs(hi), 1.0))
        vals = [fn(lo), fn(hi)]
        lo_v = max(-1.0, _down2(min(vals)))
        hi_v = min(1.0, _up2(max(vals)))

        if _hits_phase(lo - slack, hi + slack, max_at):
            hi_v = 1.0
        if _hits_phase(lo - slack, hi + slack, min_at):
            lo_v = -1.0
        return Interval(lo_v, hi_v)

    def sin(self) -> 'Interval':
        """Sine function with proper range handling."""
        return self._periodic(math.sin, 0.5, 1.5)

    def cos(self) -> 'Interval':
        """Cosine function."""
        return self._periodic(math.cos, 0.0, 1.0)

    def tan(self) -> 'Interval':
        """Tangent function; entire when a pole may be inside."""
        if self.is_empty:
            return _EMPTY
        if not self.is_bounded or self.mag > _TRIG_LIMIT or self.width >= PI_LO:
            return _ENTIRE
        slack = 8 * math.ulp(max(abs(self.lo), abs(self.hi), 1.0))
        if _hits_pole(self.lo - slack, self.hi + slack):
            return _ENTIRE
        return Interval(_down2(math.tan(self.lo)), _up2(math.tan(self.hi)))

    def asin(self) -> 'Interval':
        x = self.intersect(Interval(-1.0, 1.0))
        if x.is_empty:
            return _EMPTY
        return Interval(max(-HALF_PI_HI, _down2(math.asin(x.lo))),
                        min(HALF_PI_HI, _up2(math.asin(x.hi))))

    def acos(self) -> 'Interval':
        x = self.intersect(Interval(-1.0, 1.0))
        if x.is_empty:
            return _EMPTY
        return Interval(max(0.0, _down2(math.acos(x.hi))),
                        min(PI_HI, _up2(math.acos(x.lo))))

    def atan(self) -> 'Interval':
        if self.is_empty:
            return _EMPTY
        return Interval(max(-HALF_PI_HI, _down2(math.atan(self.lo))),
                        min(HALF_PI_HI, _up2(math.atan(self.hi))))

    def sinh(self) -> 'Interval':
        if self.is_empty:
            return _EMPTY
        return Interval(_down2(_sinh(self.lo)), _up2(_sinh(self.hi)))

    def cosh(self) -> 'Interval':
        if self.is_empty:
            return _EMPTY
        a = self.abs()
        return Interval(max(1.0, _down2(_cosh(a.lo))), _up2(_cosh(a.hi)))

    def tanh(self) -> 'Interval':
        if self.is_empty:
            return _EMPTY
        return Interval(max(-1.0, _down2(math.tanh(self.lo))),
                        min(1.0, _up2(math.tanh(self.hi))))

    @staticmethod
    def minimum(a: 'Interval', b: 'Interval') -> 'Interval':
        if a.is_empty or b.is_empty:
            return _EMPTY
        return Interval(min(a.lo, b.lo), min(a.hi, b.hi))

    @staticmethod
    def maximum(a: 'Interval', b: 'Interval') -> 'Interval':
        if a.is_empty or b.is_empty:
            return _EMPTY
        return Interval(max(a.lo, b.lo), max(a.hi, b.hi))

    def to_canonical(self) -> Dict[str, Any]:
        return {"lo": self.lo, "hi": self.hi}

    def __repr__(self) -> str:
        if self.is_empty:
            return "[empty]"
        return f"[{self.lo:.6g}, {self.hi:.6g}]"


_EMPTY = Interval(INF, -INF)
_ENTIRE = Interval(-INF, INF)


def _as_interval(value) -> Union[Interval, Any]:
    if isinstance(value, Interval):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return Interval.point(float(value))
    return NotImplemented


def _hits_phase(lo: float, hi: float, phase: float) -> bool:
    """Does [lo, hi] contain (phase + 2k) * pi for some integer k?"""
    # Bracket pi from both sides so the test only ever over-reports
    k_lo = math.ceil(min(lo / (2 * PI_LO), lo / (2 * PI_HI)) - phase / 2)
    k_hi = math.floor(max(hi / (2 * PI_LO), hi / (2 * PI_HI)) - phase / 2)
    return k_lo <= k_hi


def _hits_pole(lo: float, hi: float) -> bool:
    """Does [lo, hi] contain pi/2 + k*pi for some integer k?"""
    k_lo = math.ceil(min(lo / PI_LO, lo / PI_HI) - 0.5)
    k_hi = math.floor(max(hi / PI_LO, hi / PI_HI) - 0.5)
    return k_lo <= k_hi


def _sinh(x: float) -> float:
    try:
        return math.sinh(x)
    except OverflowError:
        return INF if x > 0 else -INF


def _cosh(x: float) -> float:
    try:
        return math.cosh(x)
    except OverflowError:
        return INF


# Domains of operations that are undefined outside them
_UNARY_DOMAINS = {
    OpType.SQRT: Interval(0.0, INF),
    OpType.ASIN: Interval(-1.0, 1.0),
    OpType.ACOS: Interval(-1.0, 1.0),
}


class IntervalEvaluator:
    """
    Evaluates an expression graph over intervals (natural interval extension).

    Given variable bounds (as intervals), computes interval enclosures
    for all nodes in the graph. The evaluator holds no per-call state,
    so one instance may be shared between threads.

    With strict_domain=True any operation applied to an argument that is
    only partly inside its domain yields the empty interval; otherwise
    the argument is restricted to the domain first.
    """

    def __init__(self, graph: ExpressionGraph, strict_domain: bool = False):
        self.graph = graph
        self.strict_domain = strict_domain

    def evaluate(
        self,
        var_intervals: Union[Mapping[int, Interval], Sequence[Interval]]
    ) -> Tuple[Interval, Dict[int, Interval]]:
        """
        Evaluate the graph over given variable intervals.

        Args:
            var_intervals: Map (or sequence) from variable index to interval

        Returns:
            Tuple of (output interval, all node intervals)
        """
        if self.graph.output_node is None:
            raise ValueError("No output node set")

        node_intervals: Dict[int, Interval] = {}
        for node in self.graph.topological_order():
            node_intervals[node.node_id] = self._eval_node(node, var_intervals, node_intervals)

        return node_intervals[self.graph.output_node.node_id], node_intervals

    def _eval_node(
        self,
        node: ExprNode,
        var_intervals,
        node_intervals: Dict[int, Interval]
    ) -> Interval:
        """Evaluate a single node."""
        if isinstance(node, Variable):
            return var_intervals[node.var_index]

        elif isinstance(node, Constant):
            if node.enclosure is not None:
                return Interval(*node.enclosure)
            return Interval.point(node.value)

        elif isinstance(node, UnaryOp):
            return self._eval_unary(node.op, node_intervals[node.child.node_id])

        elif isinstance(node, BinaryOp):
            right = node.right
            if node.op == OpType.POW and isinstance(right, Constant) and right.is_exact:
                return self._eval_const_pow(node_intervals[node.left.node_id], right.value)
            return self._eval_binary(
                node.op,
                node_intervals[node.left.node_id],
                node_intervals[right.node_id],
            )

        else:
            raise ValueError(f"Unknown node type: {type(node)}")

    def _outside_domain(self, op: OpType, x: Interval) -> bool:
        if not self.strict_domain:
            return False
        if op in _UNARY_DOMAINS:
            return not x.is_subset(_UNARY_DOMAINS[op])
        if op == OpType.LOG:
            return x.lo <= 0
        if op == OpType.TAN:
            return x.tan() == _ENTIRE
        return False

    def _eval_unary(self, op: OpType, x: Interval) -> Interval:
        """Evaluate a unary operation on an interval."""
        if x.is_empty or self._outside_domain(op, x):
            return _EMPTY
        if op == OpType.NEG:
            return -x
        elif op == OpType.ABS:
            return x.abs()
        elif op == OpType.SQRT:
            return x.sqrt()
        elif op == OpType.EXP:
            return x.exp()
        elif op == OpType.LOG:
            return x.log()
        elif op == OpType.SIN:
            return x.sin()
        elif op == OpType.COS:
            return x.cos()
        elif op == OpType.TAN:
            return x.tan()
        elif op == OpType.SQUARE:
            return x.square()
        elif op == OpType.SINH:
            return x.sinh()
        elif op == OpType.COSH:
            return x.cosh()
        elif op == OpType.TANH:
            return x.tanh()
        elif op == OpType.ASIN:
            return x.asin()
        elif op == OpType.ACOS:
            return x.acos()
        elif op == OpType.ATAN:
            return x.atan()
        else:
            raise ValueError(f"Unknown unary op: {op}")

    def _eval_const_pow(self, base: Interval, p: float) -> Interval:
        if float(p).is_integer():
            n = int(p)
            if self.strict_domain and n < 0 and base.contains_zero():
                return _EMPTY
            return base.pow_int(n)
        if self.strict_domain and (base.lo < 0 or (p < 0 and base.lo <= 0)):
            return _EMPTY
        return base.pow_real(p)

    def _eval_binary(self, op: OpType, l: Interval, r: Interval) -> Interval:
        """Evaluate a binary operation on intervals."""
        if op == OpType.ADD:
            return l + r
        elif op == OpType.SUB:
            return l - r
        elif op == OpType.MUL:
            return l * r
        elif op == OpType.DIV:
            if self.strict_domain and r.contains_zero():
                return _EMPTY
            return l / r
        elif op == OpType.POW:
            if self.strict_domain and l.lo <= 0:
                return _EMPTY
            return l.pow_interval(r)
        elif op == OpType.MIN:
            return Interval.minimum(l, r)
        elif op == OpType.MAX:
            return Interval.maximum(l, r)
        else:
            raise ValueError(f"Unknown binary op: {op}")


def interval_evaluate(
    graph: ExpressionGraph,
    box: Sequence[Interval],
    strict_domain: bool = False
) -> Interval:
    """
    Evaluate an expression graph over a box using interval arithmetic.

    Args:
        graph: ExpressionGraph of the function
        box: One interval per variable (an IntervalBox or any sequence)
        strict_domain: See IntervalEvaluator

    Returns:
        Interval enclosure of the function over the box
    """
    result, _ = IntervalEvaluator(graph, strict_domain).evaluate(box)
    return result
