#!/usr/bin/env python3

from __future__ import annotations

import json
import random
import subprocess
import sys
import tarfile
import tempfile
import unittest
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[2]
sys.path.insert(0, str(REPO_ROOT / "python"))
sys.path.insert(0, str(REPO_ROOT / "demo"))

import correctness_checker as cc  # noqa: E402
from outstanding import Order, QueryResult, compute_binsearch, compute_naive  # noqa: E402


def _bump_first(results):
    if results:
        results[0] = QueryResult(results[0].outstanding_shares + 1)
    return results


def _off_by_one_engine(orders, queries):
    return _bump_first(compute_binsearch(orders, queries))


def _sorting_engine(orders, queries):
    queries.sort(key=lambda q: q.time)
    return compute_binsearch(orders, queries)


class WrongOnCalls:
    """Wraps ``base`` and bumps the first result on calls n (1-based) where wrong_calls(n) holds."""

    def __init__(self, wrong_calls, base=compute_binsearch):
        self.wrong_calls = wrong_calls
        self.base = base
        self.calls = 0

    def __call__(self, orders, queries):
        self.calls += 1
        results = self.base(orders, queries)
        if self.wrong_calls(self.calls):
            return _bump_first(results)
        return results


class WorkloadFactoryTests(unittest.TestCase):
    def test_every_shape_builds(self) -> None:
        factory = cc.WorkloadFactory(random.Random(1), max_orders=20, max_queries=20)
        shapes = {shape for mix in cc.MIXES.values() for shape in mix}
        for shape in shapes:
            orders, queries = factory.make(shape)
            self.assertLessEqual(len(orders), 20, shape)
            self.assertLessEqual(len(queries), 20, shape)

    def test_special_shapes(self) -> None:
        factory = cc.WorkloadFactory(random.Random(2), max_orders=20, max_queries=20)
        self.assertEqual(factory.make("empty_orders")[0], [])
        self.assertEqual(factory.make("empty_queries")[1], [])
        _, queries = factory.make("single_point")
        self.assertEqual(len({q.time for q in queries}), 1)
        orders, queries = factory.make("boundary")
        endpoints = {o.created_at for o in orders} | {o.executed_or_cancelled_at for o in orders}
        near = endpoints | {t - 1 for t in endpoints}
        self.assertTrue(all(q.time in near for q in queries))

    def test_boundary_times_never_negative(self) -> None:
        factory = cc.WorkloadFactory(random.Random(4))
        queries = factory.boundary_queries([Order(0, 3, 1), Order(2, 5, 1)], 200)
        self.assertEqual(len(queries), 200)
        self.assertTrue({q.time for q in queries} <= {0, 1, 2, 3, 4, 5})
        self.assertTrue(all(q.time >= 0 for q in queries))

    def test_boundary_shape_over_many_seeds(self) -> None:
        for seed in range(300):
            factory = cc.WorkloadFactory(random.Random(seed), max_orders=30, max_queries=30)
            _, queries = factory.make("boundary")
            self.assertTrue(all(q.time >= 0 for q in queries), seed)


class CheckerRunTests(unittest.TestCase):
    def test_clean_run_has_no_findings(self) -> None:
        checker = cc.CorrectnessChecker(seed=42, duration=60, iterations=150, max_orders=40, max_queries=40)
        summary = checker.run()
        self.assertEqual(summary["workloads"], 150)
        self.assertEqual(summary["findings"], [])
        self.assertEqual(summary["status_counts"], {})
        self.assertEqual(sum(summary["shape_counts"].values()), 150)

    def test_broken_engine_is_confirmed(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            run_dir = Path(td) / "run"
            checker = cc.CorrectnessChecker(
                seed=1, duration=60, iterations=50, mix="bulk", run_dir=run_dir,
                max_findings=3, engine=_off_by_one_engine,
            )
            summary = checker.run()
            self.assertEqual(summary["status_counts"], {cc.CONFIRMED_ENGINE_BUG: 3})
            self.assertEqual(summary["findings"][0]["kind"], "mismatch")
            issues = sorted((run_dir / "issues").iterdir())
            self.assertEqual(len(issues), 3)
            self.assertTrue((issues[0] / "orders.csv").exists())
            ops = [json.loads(line) for line in (run_dir / "ops.jsonl").read_text().splitlines()]
            self.assertTrue(any(op["op"] == "MISMATCH" for op in ops))

    def test_input_mutation_detected(self) -> None:
        checker = cc.CorrectnessChecker(seed=5, duration=60, iterations=30, mix="bulk",
                                        max_findings=1, engine=_sorting_engine)
        summary = checker.run()
        self.assertEqual(summary["findings"][0]["kind"], "input_mutation")

    def test_fail_fast_raises(self) -> None:
        checker = cc.CorrectnessChecker(seed=1, duration=60, iterations=20, mix="bulk",
                                        fail_fast=True, engine=_off_by_one_engine)
        with self.assertRaises(cc.MismatchError):
            checker.run()

    def test_one_off_disagreement_is_transient(self) -> None:
        checker = cc.CorrectnessChecker(seed=3, duration=60, iterations=5, mix="bulk",
                                        engine=WrongOnCalls(lambda n: n == 1))
        summary = checker.run()
        self.assertEqual(summary["status_counts"], {cc.UNCONFIRMED_TRANSIENT: 1})
        self.assertEqual(summary["findings"][0]["kind"], "mismatch")
        outcome = cc._compute_exit_code(summary["status_counts"], {cc.CONFIRMED_ENGINE_BUG, cc.CHECKER_BUG})
        self.assertEqual(outcome.exit_code, 0)

    def test_transient_does_not_raise_with_fail_fast(self) -> None:
        checker = cc.CorrectnessChecker(seed=3, duration=60, iterations=5, mix="bulk", fail_fast=True,
                                        engine=WrongOnCalls(lambda n: n == 1))
        summary = checker.run()
        self.assertEqual(summary["workloads"], 5)

    def test_changing_second_call_is_not_idempotent(self) -> None:
        checker = cc.CorrectnessChecker(seed=3, duration=60, iterations=5, mix="bulk", max_findings=1,
                                        engine=WrongOnCalls(lambda n: n % 2 == 0))
        summary = checker.run()
        self.assertEqual(summary["status_counts"], {cc.CONFIRMED_ENGINE_BUG: 1})
        self.assertEqual(summary["findings"][0]["kind"], "not_idempotent")

    def test_short_oracle_is_checker_bug(self) -> None:
        checker = cc.CorrectnessChecker(seed=3, duration=60, iterations=5, mix="bulk", max_findings=1,
                                        oracle=lambda orders, queries: compute_naive(orders, queries)[:-1])
        summary = checker.run()
        self.assertEqual(summary["status_counts"], {cc.CHECKER_BUG: 1})
        self.assertEqual(summary["findings"][0]["kind"], "oracle_length")

    def test_unstable_oracle_is_checker_bug(self) -> None:
        checker = cc.CorrectnessChecker(seed=3, duration=60, iterations=5, mix="bulk", max_findings=1,
                                        oracle=WrongOnCalls(lambda n: n == 2, base=compute_naive))
        summary = checker.run()
        self.assertEqual(summary["status_counts"], {cc.CHECKER_BUG: 1})
        self.assertEqual(summary["findings"][0]["kind"], "oracle_not_idempotent")
        outcome = cc._compute_exit_code(summary["status_counts"], {cc.CONFIRMED_ENGINE_BUG, cc.CHECKER_BUG})
        self.assertEqual(outcome.exit_code, 2)


class CorrectnessCheckerCIModeTests(unittest.TestCase):
    def test_exit_code_policy(self) -> None:
        fail = cc._compute_exit_code({cc.CONFIRMED_ENGINE_BUG: 1}, {cc.CONFIRMED_ENGINE_BUG, cc.CHECKER_BUG})
        self.assertEqual(fail.exit_code, 2)
        self.assertEqual(fail.result, "fail")
        ok = cc._compute_exit_code({cc.UNCONFIRMED_TRANSIENT: 4}, {cc.CONFIRMED_ENGINE_BUG, cc.CHECKER_BUG})
        self.assertEqual(ok.exit_code, 0)
        self.assertEqual(ok.result, "pass")

    def test_profile_limits_and_overrides(self) -> None:
        pr = cc._parse_args(["--ci-profile", "pr"])
        self.assertEqual(cc.resolve_limits(pr), {"max_orders": 100, "max_queries": 100, "max_findings": 5})
        nightly = cc._parse_args(["--ci-profile", "nightly", "--max-orders", "7"])
        self.assertEqual(cc.resolve_limits(nightly), {"max_orders": 7, "max_queries": 400, "max_findings": 25})
        self.assertEqual(cc._parse_args([]).mix, "default")

    def test_fail_bundle_policy(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            run_dir = Path(td)
            ops = run_dir / "ops.jsonl"
            ops.write_text("{}\n", encoding="utf-8")
            issue = run_dir / "issues" / "001_mismatch"
            issue.mkdir(parents=True)
            (issue / "report.md").write_text("x", encoding="utf-8")
            bundle = run_dir / "bundle.tar.gz"
            manifest = cc._apply_artifact_policy(
                run_dir=run_dir,
                artifact_mode="fail-bundle",
                result="fail",
                detail_paths=[ops, run_dir / "issues", run_dir / "missing.jsonl"],
                failure_bundle_out=bundle,
            )
            self.assertEqual(manifest["bundle_path"], str(bundle))
            self.assertFalse(ops.exists())
            self.assertFalse((run_dir / "issues").exists())
            with tarfile.open(bundle) as tf:
                names = tf.getnames()
            self.assertIn("ops.jsonl", names)
            self.assertIn("issues/001_mismatch/report.md", names)

    def test_minimal_policy_on_pass(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            run_dir = Path(td)
            ops = run_dir / "ops.jsonl"
            ops.write_text("{}\n", encoding="utf-8")
            manifest = cc._apply_artifact_policy(
                run_dir=run_dir,
                artifact_mode="minimal",
                result="pass",
                detail_paths=[ops],
                failure_bundle_out=run_dir / "bundle.tar.gz",
            )
            self.assertIsNone(manifest["bundle_path"])
            self.assertFalse(ops.exists())

    def test_cli_writes_summary(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            root = Path(td)
            summary_json = root / "summary.json"
            summary_md = root / "summary.md"
            cmd = [
                sys.executable,
                "demo/correctness_checker.py",
                "--iterations", "40",
                "--duration-seconds", "30",
                "--seed", "7",
                "--max-orders", "30",
                "--max-queries", "30",
                "--out-dir", str(root / "runs"),
                "--run-id", "unit",
                "--artifact-mode", "minimal",
                "--summary-json-out", str(summary_json),
                "--summary-md-out", str(summary_md),
            ]
            proc = subprocess.run(cmd, cwd=str(REPO_ROOT), check=False, capture_output=True, text=True)
            self.assertEqual(proc.returncode, 0, proc.stdout + proc.stderr)
            payload = json.loads(summary_json.read_text(encoding="utf-8"))
            self.assertEqual(payload["result"], "pass")
            self.assertEqual(payload["workloads"], 40)
            self.assertEqual(payload["gate"]["fail_status_counts"], {})
            self.assertIn("Correctness Checker Summary", summary_md.read_text(encoding="utf-8"))
            self.assertFalse((root / "runs" / "unit" / "ops.jsonl").exists())


if __name__ == "__main__":
    unittest.main()
