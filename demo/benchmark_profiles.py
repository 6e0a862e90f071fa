#!/usr/bin/env python3
"""Methodology benchmark profile definitions."""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any

PR_SCENARIOS = ["N1", "B1", "B2", "B3", "J2"]


@dataclass
class BenchmarkProfile:
    name: str
    scenarios: list[str] | str  # "all" or explicit list
    warmup_runs: int
    measured_runs: int
    quick: bool
    num_orders: int
    num_queries: int


def default_profile(profile_name: str) -> BenchmarkProfile:
    if profile_name == "pr":
        return BenchmarkProfile(
            name="pr",
            scenarios=PR_SCENARIOS,
            warmup_runs=1,
            measured_runs=3,
            quick=True,
            num_orders=2_000,
            num_queries=2_000,
        )
    if profile_name == "full":
        return BenchmarkProfile(
            name="full",
            scenarios="all",
            warmup_runs=2,
            measured_runs=7,
            quick=False,
            num_orders=20_000,
            num_queries=20_000,
        )

    # custom default fallback (can be replaced via config file)
    return BenchmarkProfile(
        name="custom",
        scenarios="all",
        warmup_runs=2,
        measured_runs=7,
        quick=False,
        num_orders=10_000,
        num_queries=10_000,
    )


def load_custom_profile(config_path: Path) -> BenchmarkProfile:
    base = default_profile("custom")
    with config_path.open() as f:
        raw = json.load(f)

    return BenchmarkProfile(
        name=str(raw.get("name", base.name)),
        scenarios=raw.get("scenarios", base.scenarios),
        warmup_runs=int(raw.get("warmup_runs", base.warmup_runs)),
        measured_runs=int(raw.get("measured_runs", base.measured_runs)),
        quick=bool(raw.get("quick", base.quick)),
        num_orders=int(raw.get("num_orders", base.num_orders)),
        num_queries=int(raw.get("num_queries", base.num_queries)),
    )


def profile_to_dict(profile: BenchmarkProfile) -> dict[str, Any]:
    return asdict(profile)
