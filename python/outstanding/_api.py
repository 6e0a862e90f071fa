"""
Internal helper functions for the outstanding-shares facade.

This module is private API. Do not import directly.
"""

from __future__ import annotations

import operator
from typing import Callable, Sequence, TypeVar

T = TypeVar("T")


def _coerce_int(x: object, field: str) -> int:
    """
    Coerce x to an integer field value.

    Uses operator.index() to support numpy.int64 and similar types
    that implement __index__.

    Args:
        x: Value to coerce to integer.
        field: Field name used in error messages.

    Returns:
        Integer value.

    Raises:
        TypeError: If x is bool (to prevent True -> 1 accidents)
            or if x doesn't support __index__.
    """
    if isinstance(x, bool):
        raise TypeError(f"{field} must be int (bool not allowed)")
    try:
        return operator.index(x)
    except TypeError:
        raise TypeError(
            f"{field} must be int, not {type(x).__name__}"
        ) from None


def partition_point(
    seq: Sequence[T],
    pred: Callable[[T], bool],
    lo: int = 0,
    hi: int | None = None,
) -> int:
    """
    Return the first index in seq[lo:hi] for which pred is false.

    seq must be partitioned by pred: every element for which pred holds
    comes before every element for which it does not. Under that
    precondition the search takes O(log n) predicate calls. If pred holds
    for the whole range, hi is returned.

    Args:
        seq: Randomly accessible sequence partitioned by pred.
        pred: Monotonic predicate (true on a prefix, false on the suffix).
        lo: First index of the searched range.
        hi: One past the last index of the searched range (default len(seq)).

    Returns:
        Boundary index in [lo, hi].

    Raises:
        ValueError: If lo is negative or hi is below lo.
    """
    if lo < 0:
        raise ValueError("lo must be non-negative")
    if hi is None:
        hi = len(seq)
    if hi < lo:
        raise ValueError("hi must not be less than lo")

    while lo < hi:
        mid = (lo + hi) // 2
        if pred(seq[mid]):
            lo = mid + 1
        else:
            hi = mid
    return lo
