#!/usr/bin/env python3

from __future__ import annotations

import sys
import unittest
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[2]
sys.path.insert(0, str(REPO_ROOT / "python"))
sys.path.insert(0, str(REPO_ROOT / "demo"))

from benchmark_scenarios import (  # noqa: E402
    NAIVE_MAX_PAIRS,
    SCALING_REPEATS,
    _capped_sizes,
    build_scenario_registry,
)
from benchmark_schema import BenchmarkCaseContext  # noqa: E402


def _ctx(**overrides) -> BenchmarkCaseContext:
    fields = {"num_orders": 300, "num_queries": 300, "quick": True, "seed": 7}
    fields.update(overrides)
    return BenchmarkCaseContext(**fields)


class BenchmarkScenarioRegistryTests(unittest.TestCase):
    def test_registry_contains_scenarios(self) -> None:
        reg = build_scenario_registry()
        self.assertEqual(sorted(reg), ["B1", "B2", "B3", "B4", "J1", "J2", "N1"])

    def test_required_fields_present(self) -> None:
        reg = build_scenario_registry()
        for spec in reg.values():
            self.assertIn(spec.engine, ("naive", "binsearch"))
            self.assertTrue(spec.expected_model)
            self.assertIsNotNone(spec.setup_fn)
            self.assertIsNotNone(spec.measure_fn)
            self.assertIsNotNone(spec.teardown_fn)

    def test_scaling_cases_pair_engines(self) -> None:
        reg = build_scenario_registry()
        self.assertEqual(reg["J1"].engine, "naive")
        self.assertEqual(reg["J2"].engine, "binsearch")


class ScenarioMeasureTests(unittest.TestCase):
    def test_binsearch_matches_sampled_oracle(self) -> None:
        spec = build_scenario_registry()["B2"]
        ctx = _ctx()
        state = spec.setup_fn(ctx)
        result = spec.measure_fn(ctx, state)
        spec.teardown_fn(ctx, state)
        self.assertEqual(result["orders"], 300)
        self.assertEqual(result["queries"], 300)
        self.assertEqual(result["pairs"], 90_000)
        self.assertTrue(result["matches_oracle"])
        self.assertEqual(result["checked"], 300)
        ok, _ = spec.oracle_check_fn(result)  # type: ignore[misc]
        self.assertTrue(ok)

    def test_no_verify_skips_oracle(self) -> None:
        spec = build_scenario_registry()["B1"]
        ctx = _ctx(verify=False)
        result = spec.measure_fn(ctx, spec.setup_fn(ctx))
        self.assertNotIn("matches_oracle", result)

    def test_naive_has_no_oracle(self) -> None:
        spec = build_scenario_registry()["N1"]
        ctx = _ctx(num_orders=50, num_queries=50)
        result = spec.measure_fn(ctx, spec.setup_fn(ctx))
        self.assertNotIn("matches_oracle", result)
        self.assertEqual(result["pairs"], 2_500)

    def test_same_seed_same_total(self) -> None:
        spec = build_scenario_registry()["B3"]
        ctx = _ctx()
        a = spec.measure_fn(ctx, spec.setup_fn(ctx))
        b = spec.measure_fn(ctx, spec.setup_fn(ctx))
        self.assertEqual(a["total_shares"], b["total_shares"])

    def test_oracle_assert_reports_disagreement(self) -> None:
        spec = build_scenario_registry()["B1"]
        ok, msg = spec.oracle_check_fn({"matches_oracle": False, "checked": 5})  # type: ignore[misc]
        self.assertFalse(ok)
        self.assertIn("5", msg)


class ScalingMeasureTests(unittest.TestCase):
    def test_timings_come_from_context_clock(self) -> None:
        calls = []

        def clock() -> float:
            calls.append(None)
            return len(calls) * 0.5

        spec = build_scenario_registry()["J2"]
        ctx = _ctx(clock=clock)
        result = spec.measure_fn(ctx, spec.setup_fn(ctx))
        self.assertEqual(len(result["sizes"]), len(result["timings_s"]))
        # Two reads per timed call, every call sees the same 0.5 s step.
        self.assertEqual(len(calls), 2 * SCALING_REPEATS * len(result["sizes"]))
        self.assertTrue(all(t == 0.5 for t in result["timings_s"]))
        self.assertAlmostEqual(result["scaling_exponent"], 0.0)


class NaiveCapTests(unittest.TestCase):
    def test_binsearch_never_capped(self) -> None:
        self.assertEqual(_capped_sizes("binsearch", 100_000, 100_000), (100_000, 100_000))

    def test_naive_small_untouched(self) -> None:
        self.assertEqual(_capped_sizes("naive", 1_000, 1_000), (1_000, 1_000))

    def test_naive_large_scaled_down(self) -> None:
        n, p = _capped_sizes("naive", 20_000, 20_000)
        self.assertLessEqual(n * p, NAIVE_MAX_PAIRS)
        self.assertEqual(n, p)


if __name__ == "__main__":
    unittest.main()
