#!/usr/bin/env python3
"""Per-platform throughput baselines for methodology benchmarks.

A baseline stores, per scenario, the median queries/sec of earlier runs
together with the workload contract they ran under. A new run is only
compared against entries with an identical contract.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from benchmark_schema import BenchmarkCaseContext, BenchmarkScenarioSpec

SCHEMA_VERSION = "outstanding_bench_v1"
# Fractional drop in median queries/sec that turns the throughput gate to warn.
REGRESSION_TOLERANCE = 0.10

_PLATFORM_BUCKETS = (
    ("windows", "windows"),
    ("darwin", "macos"),
    ("macos", "macos"),
)


def detect_platform_bucket(platform_name: str) -> str:
    lowered = platform_name.lower()
    for needle, bucket in _PLATFORM_BUCKETS:
        if needle in lowered:
            return bucket
    return "linux"


def default_baseline_path(platform_name: str) -> Path:
    bucket = detect_platform_bucket(platform_name)
    return Path("benchmarks") / "baselines" / bucket / f"{SCHEMA_VERSION}.json"


def workload_contract(spec: BenchmarkScenarioSpec, ctx: BenchmarkCaseContext) -> dict[str, Any]:
    return {
        "engine": spec.engine,
        "shape": spec.shape,
        "num_orders": ctx.num_orders,
        "num_queries": ctx.num_queries,
        "quick": bool(ctx.quick),
    }


def _empty_baseline() -> dict[str, Any]:
    return {"schema_version": SCHEMA_VERSION, "scenarios": {}}


def load_baseline(path: Path) -> dict[str, Any]:
    """Read a baseline file; missing files and other schema versions load empty."""
    if not path.exists():
        return _empty_baseline()
    with path.open(encoding="utf-8") as f:
        data = json.load(f)
    if data.get("schema_version") != SCHEMA_VERSION:
        return _empty_baseline()
    data.setdefault("scenarios", {})
    return data


def save_baseline(path: Path, payload: dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, indent=2) + "\n", encoding="utf-8")


def compare_to_baseline(
    baseline: dict[str, Any],
    scenario_id: str,
    contract: dict[str, Any],
    median_qps: float,
) -> tuple[str, dict[str, Any]]:
    """
    Throughput gate for one scenario.

    Returns ("pass" | "warn" | "na", detail). ``warn`` means the median
    dropped by more than REGRESSION_TOLERANCE against a matching entry;
    ``na`` means there was nothing comparable.
    """
    entries = baseline.get("scenarios", {}).get(scenario_id, [])
    match = next((e for e in entries if e.get("contract") == contract), None)
    if match is None:
        return "na", {"reason": "no baseline entry with the same contract"}

    reference = float(match.get("median_qps", 0.0))
    if reference <= 0.0 or median_qps <= 0.0:
        return "na", {"reason": "non-positive median", "baseline_median_qps": reference}

    change = (median_qps - reference) / reference
    regressed = change < -REGRESSION_TOLERANCE
    return ("warn" if regressed else "pass"), {
        "baseline_median_qps": reference,
        "current_median_qps": median_qps,
        "change_ratio": change,
        "tolerance": REGRESSION_TOLERANCE,
        "regressed": regressed,
    }


def build_baseline_from_results(
    platform_name: str,
    timestamp: str,
    scenarios: list[dict[str, Any]],
) -> dict[str, Any]:
    payload = _empty_baseline()
    payload["platform"] = detect_platform_bucket(platform_name)
    payload["generated_at"] = timestamp
    for s in scenarios:
        payload["scenarios"].setdefault(s["scenario_id"], []).append({
            "contract": s.get("contract", {}),
            "median_qps": s.get("stats", {}).get("median_qps", 0.0),
        })
    return payload
