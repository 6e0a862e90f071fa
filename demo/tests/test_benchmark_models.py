#!/usr/bin/env python3

from __future__ import annotations

import sys
import unittest
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from benchmark_models import (  # noqa: E402
    bootstrap_ci95,
    compute_scenario_stats,
    evaluate_complexity_from_result,
    fit_loglog_exponent,
    mad,
    percentile,
)


class BenchmarkModelsTests(unittest.TestCase):
    def test_percentile(self) -> None:
        vals = [1.0, 2.0, 3.0, 4.0, 5.0]
        self.assertAlmostEqual(percentile(vals, 0.5), 3.0)
        self.assertAlmostEqual(percentile(vals, 0.95), 4.8)

    def test_mad(self) -> None:
        vals = [10.0, 11.0, 9.0, 50.0]
        self.assertGreater(mad(vals), 0.0)

    def test_bootstrap_is_seeded(self) -> None:
        vals = [100.0, 101.0, 99.0, 102.0, 98.0]
        self.assertEqual(bootstrap_ci95(vals, seed=7), bootstrap_ci95(vals, seed=7))
        lo, hi = bootstrap_ci95(vals, seed=7)
        self.assertLessEqual(lo, hi)

    def test_compute_stats(self) -> None:
        rates = [100.0, 101.0, 99.0, 102.0, 98.0]
        lat = [10.0, 9.5, 10.5, 9.8, 10.2]
        stats = compute_scenario_stats(rates, lat, seed=123)
        self.assertEqual(stats.samples, 5)
        self.assertGreater(stats.median_qps, 0.0)
        self.assertGreaterEqual(stats.p99_qps, stats.p95_qps)

    def test_loglog_fit_linear(self) -> None:
        xs = [1, 2, 4, 8, 16]
        ys = [1, 2, 4, 8, 16]
        fit = fit_loglog_exponent(xs, ys)
        self.assertAlmostEqual(fit["slope"], 1.0, delta=0.1)

    def test_loglog_fit_quadratic(self) -> None:
        xs = [100, 200, 400, 800]
        ys = [x * x for x in xs]
        fit = fit_loglog_exponent(xs, ys)
        self.assertAlmostEqual(fit["slope"], 2.0, delta=0.05)
        self.assertGreater(fit["r2"], 0.99)


class ComplexityGateTests(unittest.TestCase):
    def test_naive_quadratic_passes(self) -> None:
        res = evaluate_complexity_from_result("J1", {"scaling_exponent": 1.95})
        self.assertEqual(res.gate, "pass")

    def test_naive_too_flat_fails(self) -> None:
        res = evaluate_complexity_from_result("J1", {"scaling_exponent": 1.1})
        self.assertEqual(res.gate, "fail")

    def test_binsearch_near_linear_passes(self) -> None:
        res = evaluate_complexity_from_result("J2", {"scaling_exponent": 1.08})
        self.assertEqual(res.gate, "pass")

    def test_binsearch_quadratic_fails(self) -> None:
        res = evaluate_complexity_from_result("J2", {"scaling_exponent": 1.9})
        self.assertEqual(res.gate, "fail")

    def test_missing_exponent_fails(self) -> None:
        self.assertEqual(evaluate_complexity_from_result("J2", {}).gate, "fail")

    def test_other_scenarios_are_na(self) -> None:
        self.assertEqual(evaluate_complexity_from_result("B1", {"scaling_exponent": 3.0}).gate, "na")


if __name__ == "__main__":
    unittest.main()
