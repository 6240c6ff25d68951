"""
Structural equality used by change filters.

Parsed frontmatter is plain nested data (dicts, lists, scalars), sometimes
holding numpy arrays. ``==`` on arrays is elementwise, so comparisons walk
containers and hand arrays to numpy. YAML anchors can make that data
self-referential, so container pairs already being compared count as equal.
"""

from typing import AbstractSet, Any, Set, Tuple

import numpy as np


def values_equal(a: Any, b: Any) -> bool:
    """Deep equality that never raises."""
    try:
        return _deep_equal(a, b, set())
    except (ValueError, TypeError, RecursionError):
        return False


def _deep_equal(a: Any, b: Any, active: Set[Tuple[int, int]]) -> bool:
    if a is b:
        return True

    if isinstance(a, np.ndarray) or isinstance(b, np.ndarray):
        if type(a) != type(b):
            return False
        return bool(np.array_equal(a, b))

    is_mapping = isinstance(a, dict) and isinstance(b, dict)
    is_sequence = isinstance(a, (list, tuple)) and isinstance(b, (list, tuple))
    if not (is_mapping or is_sequence):
        return bool(a == b)

    pair = (id(a), id(b))
    if pair in active:
        return True
    active.add(pair)
    try:
        if is_mapping:
            if a.keys() != b.keys():
                return False
            return all(_deep_equal(a[k], b[k], active) for k in a)

        if type(a) != type(b) or len(a) != len(b):
            return False
        return all(_deep_equal(x, y, active) for x, y in zip(a, b))
    finally:
        active.discard(pair)


def sets_equal(a: AbstractSet, b: AbstractSet) -> bool:
    return a is b or (len(a) == len(b) and a == b)
