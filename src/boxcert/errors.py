"""
Error Taxonomy

Configuration errors are raised eagerly, before any search work starts.
Numeric anomalies met during a search are pruning decisions, not errors:
an infeasible root is reported through Status.INFEASIBLE and a box whose
bound is empty or non-finite is discarded and counted.
"""


class BoxCertError(Exception):
    """Base class for all boxcert errors."""


class InvalidTolerance(BoxCertError, ValueError):
    """Tolerance is not a finite positive number."""

    def __init__(self, tol):
        self.tol = tol
        super().__init__(f"Tolerance must be a finite positive number, got {tol!r}")


class DimensionMismatch(BoxCertError, ValueError):
    """Function arity differs from the box dimension."""

    def __init__(self, expected: int, actual: int, what: str = "function"):
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"{what} takes {expected} variable(s) but the box has dimension {actual}"
        )


class InvalidBudget(BoxCertError, ValueError):
    """Iteration, time or worker budget is not usable."""


class ParseError(BoxCertError, ValueError):
    """Expression text cannot be compiled into an expression tree."""


class ResultInvariantError(BoxCertError, AssertionError):
    """A result about to leave a solver violates its invariants."""
