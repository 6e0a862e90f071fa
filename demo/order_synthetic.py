#!/usr/bin/env python3
"""
Seeded synthetic workload generator for the outstanding-shares engines.

Every generator takes an explicit random.Random, so a seed fully
determines the orders and queries a benchmark or checker run sees.

Three APIs:
  - OrderGenerator / generate_queries: in-process streams for the checker
  - generate_workload():  benchmark protocol ((orders, queries) for a seed)
  - generate_csv():       writes orders.csv / queries.csv to disk
"""

from __future__ import annotations

import argparse
import csv
import random
import sys
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Iterator

sys.path.insert(0, str(Path(__file__).resolve().parent.parent / "python"))

from outstanding import Order, Query  # noqa: E402


# ---------------------------------------------------------------------------
# Workload limits
# ---------------------------------------------------------------------------

MIN_QUERIES = 1_000
MAX_QUERIES = 100_000
MIN_ORDERS = 1_000
MAX_ORDERS = 100_000

MIN_TIME = 0
MAX_TIME = 10_000
MIN_DURATION = 1
MAX_DURATION = 1_000

MIN_SHARES = 1
MAX_SHARES = 50_000

ORDER_COLUMNS = ["created_at", "executed_or_cancelled_at", "number_of_shares"]
QUERY_COLUMNS = ["time"]


@dataclass(frozen=True)
class WorkloadBounds:
    """Ranges for generated sizes, times, durations and share counts.

    Count and time upper bounds are exclusive; MAX_SHARES is inclusive.
    """
    min_orders: int = MIN_ORDERS
    max_orders: int = MAX_ORDERS
    min_queries: int = MIN_QUERIES
    max_queries: int = MAX_QUERIES
    min_time: int = MIN_TIME
    max_time: int = MAX_TIME
    min_duration: int = MIN_DURATION
    max_duration: int = MAX_DURATION
    min_shares: int = MIN_SHARES
    max_shares: int = MAX_SHARES

    def validate(self) -> None:
        if self.min_duration < 1:
            raise ValueError("min_duration must be at least 1")
        if self.max_time - self.min_time <= self.min_duration:
            raise ValueError("time range must be longer than min_duration")
        if self.max_duration < self.min_duration:
            raise ValueError("max_duration must be >= min_duration")
        if self.min_shares < 0 or self.max_shares < self.min_shares:
            raise ValueError("share range must be non-negative and non-empty")
        if not (0 <= self.min_orders < self.max_orders):
            raise ValueError("order count range must be non-empty")
        if not (0 <= self.min_queries < self.max_queries):
            raise ValueError("query count range must be non-empty")


DEFAULT_BOUNDS = WorkloadBounds()

# Named workload shapes shared by the benchmark scenarios and the checker.
SHAPES: dict[str, WorkloadBounds] = {
    "uniform": DEFAULT_BOUNDS,
    # Long intervals: most orders cover a large share of the queries.
    "dense": replace(DEFAULT_BOUNDS, min_duration=2_000, max_duration=9_000),
    # Short intervals over a wide time range: few matches per order.
    "sparse": replace(DEFAULT_BOUNDS, max_time=1_000_000, max_duration=50),
    # Narrow time range: many queries share the same time.
    "duplicates": replace(DEFAULT_BOUNDS, max_time=64, max_duration=16),
}


# ---------------------------------------------------------------------------
# Generators
# ---------------------------------------------------------------------------

class OrderGenerator:
    """
    Infinite stream of well-formed orders drawn from ``bounds``.

    Start times fall in [min_time, max_time - min_duration). End times fall
    in [start + min_duration, min(start + max_duration, max_time)); when
    the cap at max_time leaves that range empty, the order gets the
    minimum duration.
    """

    def __init__(self, rng: random.Random, bounds: WorkloadBounds = DEFAULT_BOUNDS) -> None:
        bounds.validate()
        self.rng = rng
        self.bounds = bounds

    def __iter__(self) -> Iterator[Order]:
        return self

    def __next__(self) -> Order:
        b = self.bounds
        start = self.rng.randrange(b.min_time, b.max_time - b.min_duration)
        end_lo = start + b.min_duration
        end_hi = min(start + b.max_duration, b.max_time)
        end = self.rng.randrange(end_lo, end_hi) if end_hi > end_lo else end_lo
        shares = self.rng.randint(b.min_shares, b.max_shares)
        return Order(start, end, shares)

    def take(self, count: int) -> list[Order]:
        return [next(self) for _ in range(count)]


def generate_queries(
    rng: random.Random,
    count: int,
    bounds: WorkloadBounds = DEFAULT_BOUNDS,
) -> list[Query]:
    return [Query(rng.randrange(bounds.min_time, bounds.max_time)) for _ in range(count)]


def random_workload_size(
    rng: random.Random,
    bounds: WorkloadBounds = DEFAULT_BOUNDS,
) -> tuple[int, int]:
    """Pick (num_orders, num_queries) uniformly from the bounds."""
    num_orders = rng.randrange(bounds.min_orders, bounds.max_orders)
    num_queries = rng.randrange(bounds.min_queries, bounds.max_queries)
    return num_orders, num_queries


def generate_workload(
    *,
    seed: int,
    num_orders: int | None = None,
    num_queries: int | None = None,
    bounds: WorkloadBounds = DEFAULT_BOUNDS,
) -> tuple[list[Order], list[Query]]:
    """
    Generate a reproducible (orders, queries) workload.

    Args:
        seed: RNG seed; the same seed and arguments give the same workload.
        num_orders: Order count (None = random within bounds).
        num_queries: Query count (None = random within bounds).
        bounds: Value ranges.
    """
    rng = random.Random(seed)
    rand_orders, rand_queries = random_workload_size(rng, bounds)
    n_orders = rand_orders if num_orders is None else num_orders
    n_queries = rand_queries if num_queries is None else num_queries
    orders = OrderGenerator(rng, bounds).take(n_orders)
    queries = generate_queries(rng, n_queries, bounds)
    return orders, queries


# ---------------------------------------------------------------------------
# CSV persistence
# ---------------------------------------------------------------------------

def write_orders_csv(path: str | Path, orders: list[Order]) -> None:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(ORDER_COLUMNS)
        for order in orders:
            writer.writerow([order.created_at, order.executed_or_cancelled_at, order.number_of_shares])


def write_queries_csv(path: str | Path, queries: list[Query]) -> None:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(QUERY_COLUMNS)
        for query in queries:
            writer.writerow([query.time])


def _check_header(path: Path, header: list[str] | None, expected: list[str]) -> None:
    if header != expected:
        raise ValueError(f"{path}: expected header {expected}, got {header}")


def load_orders_csv(path: str | Path) -> list[Order]:
    path = Path(path)
    with path.open("r", newline="", encoding="utf-8") as f:
        reader = csv.reader(f)
        _check_header(path, next(reader, None), ORDER_COLUMNS)
        return [Order(int(row[0]), int(row[1]), int(row[2])) for row in reader if row]


def load_queries_csv(path: str | Path) -> list[Query]:
    path = Path(path)
    with path.open("r", newline="", encoding="utf-8") as f:
        reader = csv.reader(f)
        _check_header(path, next(reader, None), QUERY_COLUMNS)
        return [Query(int(row[0])) for row in reader if row]


def generate_csv(
    out_dir: str | Path,
    *,
    num_orders: int | None = None,
    num_queries: int | None = None,
    seed: int = 42,
    bounds: WorkloadBounds = DEFAULT_BOUNDS,
) -> tuple[Path, Path]:
    """
    Write orders.csv and queries.csv for a seeded workload.

    Returns:
        (orders_path, queries_path)
    """
    out_dir = Path(out_dir)
    orders, queries = generate_workload(
        seed=seed,
        num_orders=num_orders,
        num_queries=num_queries,
        bounds=bounds,
    )
    orders_path = out_dir / "orders.csv"
    queries_path = out_dir / "queries.csv"
    write_orders_csv(orders_path, orders)
    write_queries_csv(queries_path, queries)
    print(f"CSV generated: {orders_path} ({len(orders):,} orders), "
          f"{queries_path} ({len(queries):,} queries)")
    return orders_path, queries_path


# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------

def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Generate a synthetic orders/queries workload as CSV"
    )
    parser.add_argument("--out-dir", type=str, required=True,
                        help="Directory for orders.csv and queries.csv")
    parser.add_argument("--orders", type=int, default=None,
                        help="Number of orders (default: random in [1000, 100000))")
    parser.add_argument("--queries", type=int, default=None,
                        help="Number of queries (default: random in [1000, 100000))")
    parser.add_argument("--shape", choices=sorted(SHAPES), default="uniform",
                        help="Workload shape (default: uniform)")
    parser.add_argument("--seed", type=int, default=42,
                        help="RNG seed for reproducibility (default: 42)")
    return parser.parse_args()


if __name__ == "__main__":
    args = _parse_args()
    if args.orders is not None and args.orders < 0:
        raise SystemExit("--orders must be non-negative")
    if args.queries is not None and args.queries < 0:
        raise SystemExit("--queries must be non-negative")
    generate_csv(
        args.out_dir,
        num_orders=args.orders,
        num_queries=args.queries,
        seed=args.seed,
        bounds=SHAPES[args.shape],
    )
