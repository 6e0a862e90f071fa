#!/usr/bin/env python3
"""Statistics and complexity-fit utilities for benchmark samples."""

from __future__ import annotations

import math
import random
import statistics
from typing import Any

from benchmark_schema import ComplexityFitResult, ScenarioStats

# Log-log slope limits for time vs. workload size when orders and
# queries grow together (N == P == n).
NAIVE_MIN_EXPONENT = 1.6      # n * n
BINSEARCH_MAX_EXPONENT = 1.5  # n log n plus matches


def percentile(values: list[float], p: float) -> float:
    """Linear-interpolated percentile, p in [0, 1]."""
    if not values:
        return 0.0
    if len(values) == 1:
        return values[0]
    s = sorted(values)
    pos = (len(s) - 1) * p
    lo = math.floor(pos)
    hi = math.ceil(pos)
    w = pos - lo
    return s[lo] + (s[hi] - s[lo]) * w


def mad(values: list[float]) -> float:
    """Median absolute deviation."""
    if not values:
        return 0.0
    med = statistics.median(values)
    return statistics.median(abs(v - med) for v in values)


def bootstrap_ci95(values: list[float], seed: int, samples: int = 500) -> tuple[float, float]:
    """Bootstrap 95% interval of the median."""
    if not values:
        return (0.0, 0.0)
    if len(values) == 1:
        return (values[0], values[0])
    rng = random.Random(seed)
    medians = sorted(
        statistics.median(rng.choices(values, k=len(values)))
        for _ in range(samples)
    )
    lo = medians[max(0, int(0.025 * (samples - 1)))]
    hi = medians[min(samples - 1, int(0.975 * (samples - 1)))]
    return (lo, hi)


def compute_scenario_stats(qps: list[float], ns_per_query: list[float], seed: int) -> ScenarioStats:
    ci_lo, ci_hi = bootstrap_ci95(qps, seed=seed)
    return ScenarioStats(
        samples=len(qps),
        median_qps=statistics.median(qps) if qps else 0.0,
        p95_qps=percentile(qps, 0.95),
        p99_qps=percentile(qps, 0.99),
        mad_qps=mad(qps),
        ci95_low_qps=ci_lo,
        ci95_high_qps=ci_hi,
        median_ns_per_query=statistics.median(ns_per_query) if ns_per_query else 0.0,
        p95_ns_per_query=percentile(ns_per_query, 0.95),
    )


def fit_loglog_exponent(xs: list[float], ys: list[float]) -> dict[str, float]:
    """Least-squares fit of log(y) = slope * log(x) + intercept."""
    points = [(math.log(x), math.log(y)) for x, y in zip(xs, ys) if x > 0 and y > 0]
    if len(points) < 2:
        return {"slope": 0.0, "intercept": 0.0, "r2": 0.0}

    n = len(points)
    sx = sum(x for x, _ in points)
    sy = sum(y for _, y in points)
    sxx = sum(x * x for x, _ in points)
    sxy = sum(x * y for x, y in points)

    denom = (n * sxx) - (sx * sx)
    if denom == 0:
        return {"slope": 0.0, "intercept": 0.0, "r2": 0.0}

    slope = ((n * sxy) - (sx * sy)) / denom
    intercept = (sy - slope * sx) / n

    ybar = sy / n
    ss_res = sum((y - (slope * x + intercept)) ** 2 for x, y in points)
    ss_tot = sum((y - ybar) ** 2 for _, y in points)
    r2 = 1.0 - (ss_res / ss_tot) if ss_tot > 0 else 1.0

    return {"slope": slope, "intercept": intercept, "r2": r2}


def evaluate_complexity_from_result(scenario_id: str, result: dict[str, Any]) -> ComplexityFitResult:
    """Evaluate the complexity gate from a scaling scenario's payload."""
    if scenario_id == "J1":
        exponent = result.get("scaling_exponent")
        ok = exponent is not None and exponent >= NAIVE_MIN_EXPONENT
        return ComplexityFitResult(
            gate="pass" if ok else "fail",
            summary=f"J1 naive exponent >= {NAIVE_MIN_EXPONENT}",
            metrics={"scaling_exponent": exponent, "r2": result.get("r2"), "sizes": result.get("sizes")},
        )

    if scenario_id == "J2":
        exponent = result.get("scaling_exponent")
        ok = exponent is not None and exponent <= BINSEARCH_MAX_EXPONENT
        return ComplexityFitResult(
            gate="pass" if ok else "fail",
            summary=f"J2 binsearch exponent <= {BINSEARCH_MAX_EXPONENT}",
            metrics={"scaling_exponent": exponent, "r2": result.get("r2"), "sizes": result.get("sizes")},
        )

    return ComplexityFitResult(gate="na", summary="No complexity gate for this scenario", metrics={})
