"""
Canonical JSON Serialization

Deterministic JSON for results: sorted keys, compact separators and
non-finite floats spelled as strings, so two runs that produce the
same boxes produce the same bytes and the same SHA-256 fingerprint.
"""

import json
import hashlib
import math
from typing import Any


def canonical_float(x: float) -> Any:
    """Spell non-finite floats as "inf", "-inf" or "nan"; keep the rest."""
    x = float(x)
    if math.isfinite(x):
        return x
    if math.isnan(x):
        return "nan"
    return "inf" if x > 0 else "-inf"


def canonical_dumps(obj: Any, indent: int = None) -> str:
    """
    Canonical JSON serialization with sorted keys.

    Args:
        obj: Object to serialize
        indent: Indentation level (None for compact)

    Returns:
        Canonical JSON string
    """
    return json.dumps(
        obj,
        sort_keys=True,
        separators=(',', ':') if indent is None else None,
        indent=indent,
        default=str
    )


def canonical_hash(obj: Any) -> str:
    """Hex SHA-256 digest of the canonical JSON of obj."""
    return hashlib.sha256(canonical_dumps(obj).encode()).hexdigest()
