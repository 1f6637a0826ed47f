"""
Primal Module - Upper Bound Discovery

Provides:
- LocalSearch: scipy L-BFGS-B local search whose end point is certified
  by interval evaluation before it becomes a cutoff
"""

from .local_search import LocalSearch, SearchResult, finite_start_point, scipy_bounds

__all__ = [
    'LocalSearch',
    'SearchResult',
    'finite_start_point',
    'scipy_bounds',
]
