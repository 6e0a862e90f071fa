#!/usr/bin/env python3
"""Methodology scenario registry for the outstanding-shares engines."""

from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Any

from outstanding import ENGINES, Order, Query, QueryResult, compute_naive

from benchmark_models import fit_loglog_exponent
from benchmark_schema import BenchmarkCaseContext, BenchmarkScenarioSpec
from order_synthetic import SHAPES, generate_workload

# Naive runs are capped at this many (order, query) pairs per call.
NAIVE_MAX_PAIRS = 4_000_000
# Queries re-checked against the naive engine per binsearch sample.
ORACLE_SAMPLE = 500

J1_SIZES = [150, 300, 600, 1_200]
J1_SIZES_QUICK = [100, 200, 400, 800]
J2_SIZES = [2_000, 4_000, 8_000, 16_000, 32_000]
J2_SIZES_QUICK = [1_000, 2_000, 4_000, 8_000]
SCALING_REPEATS = 3


@dataclass
class ScenarioState:
    orders: list[Order]
    queries: list[Query]
    oracle_idx: list[int] | None = None
    oracle: list[QueryResult] | None = None


def _capped_sizes(engine: str, num_orders: int, num_queries: int) -> tuple[int, int]:
    if engine != "naive" or num_orders * num_queries <= NAIVE_MAX_PAIRS:
        return num_orders, num_queries
    scale = (NAIVE_MAX_PAIRS / (num_orders * num_queries)) ** 0.5
    return max(1, int(num_orders * scale)), max(1, int(num_queries * scale))


def _make_setup(engine: str, shape: str):
    def setup(ctx: BenchmarkCaseContext) -> ScenarioState:
        num_orders, num_queries = _capped_sizes(engine, ctx.num_orders, ctx.num_queries)
        orders, queries = generate_workload(
            seed=ctx.seed,
            num_orders=num_orders,
            num_queries=num_queries,
            bounds=SHAPES[shape],
        )
        state = ScenarioState(orders=orders, queries=queries)
        if ctx.verify and engine != "naive" and queries:
            # Results are per query, so a sample checks a subset exactly.
            rng = random.Random(ctx.seed)
            k = min(ORACLE_SAMPLE, len(queries))
            state.oracle_idx = sorted(rng.sample(range(len(queries)), k))
            state.oracle = compute_naive(orders, [queries[i] for i in state.oracle_idx])
        return state

    setup.__name__ = f"_{engine}_{shape}_setup"
    return setup


def _make_measure(engine: str):
    fn = ENGINES[engine]

    def measure(ctx: BenchmarkCaseContext, state: ScenarioState) -> dict[str, Any]:
        _ = ctx
        results = fn(state.orders, state.queries)
        out: dict[str, Any] = {
            "orders": len(state.orders),
            "queries": len(state.queries),
            "pairs": len(state.orders) * len(state.queries),
            "total_shares": sum(r.outstanding_shares for r in results),
        }
        if state.oracle is not None and state.oracle_idx is not None:
            got = [results[i] for i in state.oracle_idx]
            out["checked"] = len(got)
            out["matches_oracle"] = got == state.oracle
        return out

    measure.__name__ = f"_{engine}_measure"
    return measure


def _teardown(ctx: BenchmarkCaseContext, state: Any) -> None:
    _ = ctx, state


def _oracle_assert(result: dict[str, Any]) -> tuple[bool, str]:
    if result.get("matches_oracle", True):
        return True, "ok"
    return False, f"binsearch disagreed with naive on {result.get('checked')} sampled queries"


# -------------------------
# Scaling cases
# -------------------------

def _scaling_setup(ctx: BenchmarkCaseContext) -> dict[str, Any]:
    return {"seed": ctx.seed}


def _make_scaling_measure(engine: str, shape: str, sizes: list[int], quick_sizes: list[int]):
    fn = ENGINES[engine]

    def measure(ctx: BenchmarkCaseContext, state: dict[str, Any]) -> dict[str, Any]:
        chosen = quick_sizes if ctx.quick else sizes
        timings: list[float] = []
        for n in chosen:
            orders, queries = generate_workload(
                seed=state["seed"] + n,
                num_orders=n,
                num_queries=n,
                bounds=SHAPES[shape],
            )
            best = float("inf")
            for _ in range(SCALING_REPEATS):
                t0 = ctx.clock()
                fn(orders, queries)
                best = min(best, ctx.clock() - t0)
            timings.append(best)
        fit = fit_loglog_exponent([float(n) for n in chosen], timings)
        return {
            "queries": sum(chosen) * SCALING_REPEATS,
            "sizes": chosen,
            "timings_s": timings,
            "scaling_exponent": fit["slope"],
            "r2": fit["r2"],
        }

    measure.__name__ = f"_{engine}_scaling_measure"
    return measure


def _scenario(scenario_id: str, name: str, engine: str, shape: str, expected_model: str) -> BenchmarkScenarioSpec:
    return BenchmarkScenarioSpec(
        scenario_id=scenario_id,
        name=name,
        engine=engine,
        shape=shape,
        expected_model=expected_model,
        setup_fn=_make_setup(engine, shape),
        measure_fn=_make_measure(engine),
        teardown_fn=_teardown,
        oracle_check_fn=_oracle_assert,
    )


def _scaling(scenario_id: str, name: str, engine: str, shape: str, expected_model: str,
             sizes: list[int], quick_sizes: list[int]) -> BenchmarkScenarioSpec:
    return BenchmarkScenarioSpec(
        scenario_id=scenario_id,
        name=name,
        engine=engine,
        shape=shape,
        expected_model=expected_model,
        setup_fn=_scaling_setup,
        measure_fn=_make_scaling_measure(engine, shape, sizes, quick_sizes),
        teardown_fn=_teardown,
    )


def build_scenario_registry() -> dict[str, BenchmarkScenarioSpec]:
    specs = [
        _scenario("N1", "Naive, uniform intervals", "naive", "uniform", "O(N*P)"),
        _scenario("B1", "Binsearch, uniform intervals", "binsearch", "uniform", "O(P log P + N log P + M)"),
        _scenario("B2", "Binsearch, dense intervals", "binsearch", "dense", "O(P log P + N log P + M), M ~ N*P"),
        _scenario("B3", "Binsearch, duplicate query times", "binsearch", "duplicates", "O(P log P + N log P + M)"),
        _scenario("B4", "Binsearch, sparse intervals", "binsearch", "sparse", "O(P log P + N log P)"),
        _scaling("J1", "Naive scaling exponent", "naive", "uniform", "n^2",
                 J1_SIZES, J1_SIZES_QUICK),
        _scaling("J2", "Binsearch scaling exponent", "binsearch", "sparse", "n log n",
                 J2_SIZES, J2_SIZES_QUICK),
    ]
    return {spec.scenario_id: spec for spec in specs}
