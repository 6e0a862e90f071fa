#!/usr/bin/env python3
"""
Outstanding-shares demo: time both engines on a random workload and
verify that they agree.

Usage:
    python demo/query_demo.py [--seed=N] [--orders=N] [--queries=N]

Options:
    --seed=N           RNG seed (default: random)
    --orders=N         Order count (default: random in [1000, 100000))
    --queries=N        Query count (default: random in [1000, 100000))
    --orders-csv=PATH  Load orders from CSV instead of generating them
    --queries-csv=PATH Load queries from CSV instead of generating them
    --skip-naive       Time only the binary-search engine
    --export-json=PATH Write timings and system info to JSON
    --no-tracemalloc   Disable tracemalloc (reduce measurement overhead)

Exit codes:
    0  engines agree (or naive skipped)
    2  engines disagree
"""

from __future__ import annotations

import argparse
import json
import random
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Sequence

sys.path.insert(0, str(Path(__file__).resolve().parent.parent / "python"))

from outstanding import (  # noqa: E402
    Order,
    Query,
    QueryResult,
    compute_binsearch,
    compute_naive,
)
from order_synthetic import (  # noqa: E402
    DEFAULT_BOUNDS,
    OrderGenerator,
    generate_queries,
    load_orders_csv,
    load_queries_csv,
    random_workload_size,
)
from perf_profiler import PerfProfiler, get_system_info  # noqa: E402


def first_mismatch(expected: Sequence[QueryResult], got: Sequence[QueryResult]) -> int | None:
    """Index of the first differing result, len if lengths differ, else None."""
    for idx, (a, b) in enumerate(zip(expected, got)):
        if a != b:
            return idx
    if len(expected) != len(got):
        return min(len(expected), len(got))
    return None


def build_workload(args: argparse.Namespace, rng: random.Random) -> tuple[list[Order], list[Query]]:
    num_orders, num_queries = random_workload_size(rng, DEFAULT_BOUNDS)
    if args.orders is not None:
        num_orders = args.orders
    if args.queries is not None:
        num_queries = args.queries

    if args.orders_csv:
        orders = load_orders_csv(args.orders_csv)
        print(f"Loaded {len(orders)} orders from {args.orders_csv}")
    else:
        print(f"will generate {num_orders} orders")
        orders = OrderGenerator(rng, DEFAULT_BOUNDS).take(num_orders)
        print("Generated all orders")

    if args.queries_csv:
        queries = load_queries_csv(args.queries_csv)
        print(f"Loaded {len(queries)} queries from {args.queries_csv}")
    else:
        print(f"will generate {num_queries} queries")
        queries = generate_queries(rng, num_queries, DEFAULT_BOUNDS)
        print("Generated all queries")
    return orders, queries


def run_comparison(
    orders: Sequence[Order],
    queries: Sequence[Query],
    *,
    skip_naive: bool = False,
    track_memory: bool = True,
    profiler_factory=PerfProfiler,
) -> dict[str, Any]:
    """Time binsearch, then naive, and compare their results."""
    out: dict[str, Any] = {"orders": len(orders), "queries": len(queries)}

    print("Running binsearch computation")
    with profiler_factory("binsearch", track_memory=track_memory) as prof:
        binsearch_results = compute_binsearch(orders, queries)
    prof.set_queries(len(queries))
    out["binsearch"] = prof.report()
    print(f"Binsearch computation done in {prof.metrics.wall_time_s} seconds")

    if skip_naive:
        out["match"] = None
        return out

    print("Running naive computation")
    with profiler_factory("naive", track_memory=track_memory) as prof:
        naive_results = compute_naive(orders, queries)
    prof.set_queries(len(queries))
    out["naive"] = prof.report()
    print(f"Naive computation done in {prof.metrics.wall_time_s} seconds")

    mismatch = first_mismatch(naive_results, binsearch_results)
    out["match"] = mismatch is None
    out["first_mismatch"] = mismatch
    if mismatch is not None and mismatch < min(len(naive_results), len(binsearch_results)):
        out["mismatch_detail"] = {
            "query_time": queries[mismatch].time,
            "naive": naive_results[mismatch].outstanding_shares,
            "binsearch": binsearch_results[mismatch].outstanding_shares,
        }

    binsearch_s = out["binsearch"]["wall_time_s"]
    naive_s = out["naive"]["wall_time_s"]
    if binsearch_s > 0:
        out["speedup"] = naive_s / binsearch_s
        print(f"Speedup: {out['speedup']:.1f}x")
    return out


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Outstanding-shares engine comparison")
    parser.add_argument("--seed", type=int, default=None, help="RNG seed (default: random)")
    parser.add_argument("--orders", type=int, default=None)
    parser.add_argument("--queries", type=int, default=None)
    parser.add_argument("--orders-csv", type=str, default=None)
    parser.add_argument("--queries-csv", type=str, default=None)
    parser.add_argument("--skip-naive", action="store_true")
    parser.add_argument("--export-json", type=str, default=None)
    parser.add_argument("--no-tracemalloc", action="store_true")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    seed = args.seed if args.seed is not None else random.randint(0, 2**32 - 1)
    print(f"seed={seed}")
    rng = random.Random(seed)

    orders, queries = build_workload(args, rng)
    result = run_comparison(
        orders,
        queries,
        skip_naive=args.skip_naive,
        track_memory=not args.no_tracemalloc,
    )

    if args.export_json:
        payload = {
            "timestamp": datetime.now().isoformat(),
            "seed": seed,
            "system": get_system_info(),
            "result": result,
        }
        out_json = Path(args.export_json)
        out_json.parent.mkdir(parents=True, exist_ok=True)
        with out_json.open("w") as f:
            json.dump(payload, f, indent=2)
        print(f"Results exported: {out_json}")

    if result["match"] is False:
        print(f"MISMATCH at query index {result['first_mismatch']}: {result.get('mismatch_detail')}")
        return 2
    if result["match"]:
        print("Results match")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
