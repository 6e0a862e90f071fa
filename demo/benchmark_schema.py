#!/usr/bin/env python3
"""Schema/types for methodology benchmark runs.

Every scenario answers queries, so throughput is always reported as
queries per second and latency as nanoseconds per query.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Callable, Literal

EngineName = Literal["naive", "binsearch"]
WorkloadShape = Literal["uniform", "dense", "sparse", "duplicates"]
GateOutcome = Literal["pass", "fail", "warn", "na"]


@dataclass
class BenchmarkCaseContext:
    num_orders: int
    num_queries: int
    quick: bool
    seed: int
    verify: bool = True
    scenario_id: str | None = None
    # Timer for measurements taken inside measure_fn (scaling cases).
    clock: Callable[[], float] = time.perf_counter


@dataclass
class BenchmarkScenarioSpec:
    scenario_id: str
    name: str
    engine: EngineName
    shape: WorkloadShape
    expected_model: str
    setup_fn: Callable[[BenchmarkCaseContext], Any]
    measure_fn: Callable[[BenchmarkCaseContext, Any], dict[str, Any]]
    teardown_fn: Callable[[BenchmarkCaseContext, Any], None]
    # Checks a measure_fn result against the naive oracle: (ok, message).
    oracle_check_fn: Callable[[dict[str, Any]], tuple[bool, str]] | None = None


@dataclass
class PhaseTiming:
    setup_time_s: float = 0.0
    warmup_time_s: float = 0.0
    measure_time_s: float = 0.0
    teardown_time_s: float = 0.0

    @property
    def total_time_s(self) -> float:
        return self.setup_time_s + self.warmup_time_s + self.measure_time_s + self.teardown_time_s


@dataclass
class RunSample:
    run_index: int
    measure_time_s: float
    queries: int
    queries_per_sec: float
    ns_per_query: float
    result: dict[str, Any]


@dataclass
class ScenarioStats:
    samples: int
    median_qps: float
    p95_qps: float
    p99_qps: float
    mad_qps: float
    ci95_low_qps: float
    ci95_high_qps: float
    median_ns_per_query: float
    p95_ns_per_query: float


@dataclass
class ComplexityFitResult:
    gate: GateOutcome
    summary: str
    metrics: dict[str, Any] = field(default_factory=dict)


@dataclass
class GateStatus:
    correctness: GateOutcome
    complexity: GateOutcome
    throughput: GateOutcome
    details: dict[str, Any] = field(default_factory=dict)
