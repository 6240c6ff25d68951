"""
Memoizers for derived-view factories.

Factories such as ``frontmatter_of(cell)`` must hand back the *same* view for
the same argument, otherwise every caller would build (and re-evaluate) its
own copy.
"""

import functools
from typing import Any, Callable, Dict, Hashable, TypeVar

A = TypeVar("A")
R = TypeVar("R")


def memoize_weak(fn: Callable[[A], R]) -> Callable[[A], R]:
    """
    Cache ``fn(arg)`` on ``arg`` itself.

    The result lives in ``arg._memo`` under a token private to this memoizer,
    so it is collected together with the argument even when the result holds
    a reference back to it. Arguments must expose a ``_memo`` dict; cells,
    views and graphs all do.
    """
    token = object()

    @functools.wraps(fn)
    def memoized(arg: A) -> R:
        memo: Dict[Any, Any] = arg._memo
        try:
            return memo[token]
        except KeyError:
            result = memo[token] = fn(arg)
            return result

    return memoized


def memoize_strong(fn: Callable[[Hashable], R]) -> Callable[[Hashable], R]:
    """Cache ``fn(key)`` in a dict until ``cache_clear()`` is called."""
    cache: Dict[Hashable, R] = {}

    @functools.wraps(fn)
    def memoized(key: Hashable) -> R:
        if key not in cache:
            cache[key] = fn(key)
        return cache[key]

    memoized.cache_clear = cache.clear
    memoized.cache_size = lambda: len(cache)
    return memoized
