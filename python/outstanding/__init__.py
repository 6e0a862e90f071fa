"""
Outstanding: point-in-time share totals over time-interval orders.

Each order is active over the half-open interval
[created_at, executed_or_cancelled_at) and carries a share count. For
each query time, the outstanding shares are the sum of share counts of
every order whose interval contains that time.

Two engines compute the same answer:

- compute_naive:     brute force, O(orders * queries). Reference result.
- compute_binsearch: sorts the queries once and locates each order's
                     interval with two partition-point searches,
                     O(P log P + N log P + matches).

Example:
    >>> from outstanding import compute_binsearch, make_orders, make_queries
    >>>
    >>> orders = make_orders([(5, 10, 3), (7, 20, 4)])
    >>> queries = make_queries([5, 7, 10])
    >>> [r.outstanding_shares for r in compute_binsearch(orders, queries)]
    [3, 7, 4]

Result order:
    Results are returned in query input order, one per query, regardless
    of how an engine reorders queries internally. Duplicate query times
    each get their own result.

Inputs:
    Orders and queries are read, never mutated. Callers must supply
    well-formed intervals (created_at < executed_or_cancelled_at); the
    engines do not validate them. Integer fields accept any type that
    implements __index__ (e.g. numpy.int64), but not bool.

Overflow:
    Sums are plain Python ints and are exact for any input magnitude.
    There is no wrapping or saturation.

Thread Safety:
    Engines are pure functions with no shared state. Concurrent calls,
    including calls on the same inputs, are safe.
"""

from __future__ import annotations

try:
    from importlib.metadata import version as _pkg_version

    __version__ = _pkg_version("outstanding")
except Exception:
    __version__ = "0+unknown"

from typing import Callable, Iterable, Sequence, Union

from outstanding._api import _coerce_int, partition_point
from outstanding._engine import (
    Order,
    Query,
    QueryResult,
    compute_binsearch,
    compute_naive,
)

# Type aliases
OrderRow = tuple[int, int, int]
Engine = Callable[[Sequence[Order], Sequence[Query]], list[QueryResult]]

ENGINES: dict[str, Engine] = {
    "naive": compute_naive,
    "binsearch": compute_binsearch,
}

DEFAULT_ENGINE = "binsearch"


def make_orders(rows: Iterable[Union[Order, OrderRow]]) -> list[Order]:
    """
    Build a list of orders from Order objects or 3-tuples.

    Tuples are read as (created_at, executed_or_cancelled_at,
    number_of_shares).

    Raises:
        TypeError: If a row is neither an Order nor a 3-item sequence,
            or a field is not an integer.
    """
    out = []
    for row in rows:
        if isinstance(row, Order):
            out.append(row)
            continue
        try:
            created_at, executed_or_cancelled_at, number_of_shares = row
        except (TypeError, ValueError):
            raise TypeError(
                "order rows must be Order or "
                "(created_at, executed_or_cancelled_at, number_of_shares), "
                f"not {row!r}"
            ) from None
        out.append(Order(created_at, executed_or_cancelled_at, number_of_shares))
    return out


def make_queries(times: Iterable[Union[Query, int]]) -> list[Query]:
    """Build a list of queries from Query objects or integer times."""
    return [t if isinstance(t, Query) else Query(_coerce_int(t, "time")) for t in times]


def compute(
    orders: Sequence[Order],
    queries: Sequence[Query],
    *,
    engine: str = DEFAULT_ENGINE,
) -> list[QueryResult]:
    """
    Compute outstanding shares with the engine registered under ``engine``.

    Raises:
        ValueError: Unknown engine name.
    """
    try:
        fn = ENGINES[engine]
    except KeyError:
        valid = ", ".join(sorted(ENGINES))
        raise ValueError(f"Unknown engine {engine!r}; expected one of: {valid}") from None
    return fn(orders, queries)


__all__ = [
    # Types
    "Order",
    "Query",
    "QueryResult",
    "OrderRow",
    "Engine",
    # Engines
    "compute_naive",
    "compute_binsearch",
    "compute",
    "ENGINES",
    "DEFAULT_ENGINE",
    # Helpers
    "make_orders",
    "make_queries",
    "partition_point",
    # Metadata
    "__version__",
]
