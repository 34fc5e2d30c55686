"""
fetchgraph Dotted Paths

Copy-on-write assignment of values at dotted key paths.
"""

from __future__ import annotations

from typing import Any, Dict, Mapping


def assign_path(original: Mapping[str, Any], path: str, value: Any) -> Dict[str, Any]:
    """
    Assign value at a dotted path, e.g. "path.to.value".

    Intermediate mappings are copied (or created when missing) so the
    original object and its siblings are never mutated.
    """
    steps = path.split(".")
    result = dict(original)
    cursor = result
    for key in steps[:-1]:
        existing = cursor.get(key)
        nested = dict(existing) if isinstance(existing, Mapping) else {}
        cursor[key] = nested
        cursor = nested
    cursor[steps[-1]] = value
    return result
