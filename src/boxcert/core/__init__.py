"""
Core Module - Foundational Components

Provides:
- Canonical JSON serialization
- Result types and the output gate (boxcert.core.output_gate)
"""

from .canonical_json import canonical_dumps, canonical_float, canonical_hash

__all__ = [
    'canonical_dumps',
    'canonical_float',
    'canonical_hash',
]
