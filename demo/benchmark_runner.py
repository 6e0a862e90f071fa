#!/usr/bin/env python3
"""Core execution engine for methodology benchmarks."""

from __future__ import annotations

import platform
import time
from dataclasses import asdict, replace
from pathlib import Path
from typing import Any, Callable

from benchmark_baseline import compare_to_baseline, load_baseline, workload_contract
from benchmark_models import compute_scenario_stats, evaluate_complexity_from_result
from benchmark_schema import (
    BenchmarkCaseContext,
    BenchmarkScenarioSpec,
    GateStatus,
    PhaseTiming,
    RunSample,
)


def _sample(run_index: int, measure_s: float, result: dict[str, Any]) -> RunSample:
    queries = int(result.get("queries", 0))
    qps = queries / measure_s if measure_s > 0 else 0.0
    ns = measure_s * 1e9 / queries if queries > 0 else 0.0
    return RunSample(
        run_index=run_index,
        measure_time_s=measure_s,
        queries=queries,
        queries_per_sec=qps,
        ns_per_query=ns,
        result=result,
    )


def run_scenario(
    spec: BenchmarkScenarioSpec,
    ctx: BenchmarkCaseContext,
    warmup_runs: int,
    measured_runs: int,
    baseline: dict[str, Any] | None,
    clock: Callable[[], float] = time.perf_counter,
) -> dict[str, Any]:
    warmup_runs = max(0, warmup_runs)
    measured_runs = max(1, measured_runs)
    # Scaling cases time their own inner loops with the same clock.
    ctx = replace(ctx, clock=clock)

    phase = PhaseTiming()
    samples: list[RunSample] = []
    correctness_failures: list[str] = []

    # Warmup passes reuse one setup; only measured runs are sampled.
    if warmup_runs:
        t0 = clock()
        state = spec.setup_fn(ctx)
        t1 = clock()
        for _ in range(warmup_runs):
            spec.measure_fn(ctx, state)
        t2 = clock()
        spec.teardown_fn(ctx, state)
        t3 = clock()
        phase.setup_time_s += t1 - t0
        phase.warmup_time_s += t2 - t1
        phase.teardown_time_s += t3 - t2

    last_result: dict[str, Any] = {}

    for i in range(measured_runs):
        t0 = clock()
        state = spec.setup_fn(ctx)
        t1 = clock()

        m0 = clock()
        result = spec.measure_fn(ctx, state)
        m1 = clock()

        td0 = clock()
        spec.teardown_fn(ctx, state)
        td1 = clock()

        measure_s = m1 - m0
        phase.setup_time_s += t1 - t0
        phase.measure_time_s += measure_s
        phase.teardown_time_s += td1 - td0
        samples.append(_sample(i, measure_s, result))

        if spec.oracle_check_fn is not None:
            ok, msg = spec.oracle_check_fn(result)
            if not ok:
                correctness_failures.append(f"run {i}: {msg}")

        last_result = result

    stats = compute_scenario_stats(
        [s.queries_per_sec for s in samples],
        [s.ns_per_query for s in samples],
        seed=ctx.seed,
    )

    # "na" for everything except the scaling scenarios.
    complexity_eval = evaluate_complexity_from_result(spec.scenario_id, last_result)
    correctness_gate = "fail" if correctness_failures else "pass"
    contract = workload_contract(spec, ctx)

    throughput_gate = "na"
    throughput_detail: dict[str, Any] = {"reason": "baseline unavailable"}
    if baseline is not None:
        throughput_gate, throughput_detail = compare_to_baseline(
            baseline, spec.scenario_id, contract, stats.median_qps
        )

    gate_status = GateStatus(
        correctness=correctness_gate,
        complexity=complexity_eval.gate,
        throughput=throughput_gate,
        details={
            "correctness_failures": correctness_failures,
            "throughput": throughput_detail,
            "complexity_model": asdict(complexity_eval),
        },
    )

    return {
        "scenario_id": spec.scenario_id,
        "name": spec.name,
        "engine": spec.engine,
        "shape": spec.shape,
        "expected_model": spec.expected_model,
        "num_orders": last_result.get("orders"),
        "num_queries": last_result.get("queries"),
        "contract": contract,
        "phase_timing": {
            "setup_time_s": phase.setup_time_s,
            "warmup_time_s": phase.warmup_time_s,
            "measure_time_s": phase.measure_time_s,
            "teardown_time_s": phase.teardown_time_s,
            "total_time_s": phase.total_time_s,
        },
        "stats": asdict(stats),
        "samples": [asdict(s) for s in samples],
        "last_result": last_result,
        "gates": asdict(gate_status),
    }


def run_benchmark_suite(
    specs: list[BenchmarkScenarioSpec],
    base_ctx: BenchmarkCaseContext,
    warmup_runs: int,
    measured_runs: int,
    baseline_path: Path | None,
) -> list[dict[str, Any]]:
    baseline = None
    if baseline_path is not None:
        baseline = load_baseline(baseline_path)

    out: list[dict[str, Any]] = []
    for spec in specs:
        ctx = replace(base_ctx, scenario_id=spec.scenario_id)
        print(f"[benchmark] {spec.scenario_id}: {spec.name}")
        out.append(run_scenario(spec, ctx, warmup_runs, measured_runs, baseline))
    return out


def summarize_gate_counts(scenarios: list[dict[str, Any]]) -> dict[str, Any]:
    counts = {
        gate: {"pass": 0, "fail": 0, "warn": 0, "na": 0}
        for gate in ("correctness", "complexity", "throughput")
    }
    for s in scenarios:
        gates = s.get("gates", {})
        for gate_name, gate_counts in counts.items():
            state = gates.get(gate_name, "na")
            gate_counts[state] = gate_counts.get(state, 0) + 1

    return {
        "platform": platform.platform(),
        "scenario_count": len(scenarios),
        "gate_counts": counts,
    }
