"""
Query engines for outstanding shares at a point in time.

This module is private API. Import from ``outstanding`` instead.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, NamedTuple, Sequence

from outstanding._api import _coerce_int, partition_point


@dataclass(frozen=True)
class Order:
    """Shares active over the half-open interval [created_at, executed_or_cancelled_at)."""

    created_at: int
    executed_or_cancelled_at: int
    number_of_shares: int

    def __post_init__(self) -> None:
        # Frozen dataclass: write coerced values through object.__setattr__.
        for name in ("created_at", "executed_or_cancelled_at", "number_of_shares"):
            object.__setattr__(self, name, _coerce_int(getattr(self, name), name))

    def covers(self, time: int) -> bool:
        return self.created_at <= time < self.executed_or_cancelled_at


@dataclass(frozen=True)
class Query:
    """A request for the number of outstanding shares at ``time``."""

    time: int

    def __post_init__(self) -> None:
        object.__setattr__(self, "time", _coerce_int(self.time, "time"))


@dataclass
class QueryResult:
    outstanding_shares: int = 0


class _PendingQuery(NamedTuple):
    time: int
    # Slot in the result list, so results keep input order after sorting.
    output_idx: int


def compute_naive(orders: Sequence[Order], queries: Sequence[Query]) -> list[QueryResult]:
    """
    Sum the shares of every order covering each query time.

    For N orders and P queries this takes O(N * P) time. It is the
    reference result that compute_binsearch must reproduce exactly.
    """
    results = []
    for query in queries:
        total = 0
        for order in orders:
            if order.covers(query.time):
                total += order.number_of_shares
        results.append(QueryResult(outstanding_shares=total))
    return results


def _before(threshold: int) -> Callable[[_PendingQuery], bool]:
    return lambda pending: pending.time < threshold


def compute_binsearch(orders: Sequence[Order], queries: Sequence[Query]) -> list[QueryResult]:
    """
    Same contract as compute_naive, computed by sorting the queries.

    Growth for N orders and P queries:

    - P log P to sort the queries
    - N * 2 log P to find where each order's interval starts and ends
      among the sorted queries
    - one addition per (order, covered query) pair, which is P per order
      in the worst case and nothing in the best case

    With short intervals relative to the query spread the total is close
    to P log P + N log P.
    """
    totals = [0] * len(queries)
    sorted_queries = sorted(
        (_PendingQuery(query.time, idx) for idx, query in enumerate(queries)),
        key=lambda pending: pending.time,
    )

    for order in orders:
        # Queries before the order starts form the prefix; the first query
        # at or after created_at is where the matching range begins.
        first = partition_point(sorted_queries, _before(order.created_at))
        # Same partition on the exclusive end: the first query at or after
        # executed_or_cancelled_at is one past the matching range.
        last = partition_point(sorted_queries, _before(order.executed_or_cancelled_at), lo=first)
        for sorted_idx in range(first, last):
            totals[sorted_queries[sorted_idx].output_idx] += order.number_of_shares

    return [QueryResult(outstanding_shares=total) for total in totals]
