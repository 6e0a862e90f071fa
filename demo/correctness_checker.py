#!/usr/bin/env python3
"""
Correctness Checker: randomized equivalence test of the two engines.

Generates random workloads of varied shape, runs both engines, and
verifies every result. The naive engine is the oracle; any disagreement
from the binary-search engine is a potential bug.

Usage:
    python demo/correctness_checker.py [--duration-seconds=60] [--iterations=N] [--seed=42]

Options:
    --duration-seconds=N  Run for N seconds (default: 60)
    --iterations=N        Stop after N workloads (default: unlimited)
    --seed=N              RNG seed for reproducibility (default: random)
    --mix=NAME            Workload mix: default, edge, bulk
    --ci-profile=NAME     pr, nightly or local: default size and finding limits
    --verbose             Print every workload
    --out-dir=PATH        Run directory for JSONL logs and issue files

Per workload it checks:
    - binsearch == naive, element-wise
    - one result per query
    - a second call returns the same results (idempotence)
    - neither engine modifies its inputs
"""

from __future__ import annotations

import argparse
import json
import random
import shutil
import sys
import tarfile
import time
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable

sys.path.insert(0, str(Path(__file__).resolve().parent.parent / "python"))

from outstanding import (  # noqa: E402
    Order,
    Query,
    QueryResult,
    compute_binsearch,
    compute_naive,
    make_queries,
)
from order_synthetic import (  # noqa: E402
    SHAPES,
    OrderGenerator,
    generate_queries,
    write_orders_csv,
    write_queries_csv,
)

CONFIRMED_ENGINE_BUG = "CONFIRMED_ENGINE_BUG"
UNCONFIRMED_TRANSIENT = "UNCONFIRMED_TRANSIENT"
CHECKER_BUG = "CHECKER_BUG"
DEFAULT_FAIL_STATUSES = f"{CONFIRMED_ENGINE_BUG},{CHECKER_BUG}"

MIXES: dict[str, dict[str, int]] = {
    "default": {
        "uniform": 30,
        "dense": 12,
        "sparse": 12,
        "duplicates": 12,
        "boundary": 18,
        "single_point": 6,
        "empty_orders": 5,
        "empty_queries": 5,
    },
    "edge": {
        "boundary": 35,
        "duplicates": 20,
        "single_point": 20,
        "empty_orders": 10,
        "empty_queries": 10,
        "uniform": 5,
    },
    "bulk": {
        "uniform": 40,
        "dense": 30,
        "sparse": 30,
    },
}

# Workload size and finding limits per CI profile; explicit flags override them.
CI_PROFILE_LIMITS: dict[str, dict[str, int]] = {
    "pr": {"max_orders": 100, "max_queries": 100, "max_findings": 5},
    "nightly": {"max_orders": 400, "max_queries": 400, "max_findings": 25},
    "local": {"max_orders": 200, "max_queries": 200, "max_findings": 10},
}


# ---------------------------------------------------------------------------
# Workload Factory
# ---------------------------------------------------------------------------

class WorkloadFactory:
    """Builds small random workloads of a named shape."""

    def __init__(self, rng: random.Random, max_orders: int = 200, max_queries: int = 200):
        self._rng = rng
        self.max_orders = max_orders
        self.max_queries = max_queries

    def make(self, shape: str) -> tuple[list[Order], list[Query]]:
        builder = getattr(self, f"_make_{shape}", None)
        if builder is not None:
            return builder()
        return self._from_bounds(shape)

    def _sizes(self) -> tuple[int, int]:
        return self._rng.randint(1, self.max_orders), self._rng.randint(1, self.max_queries)

    def _from_bounds(self, shape: str) -> tuple[list[Order], list[Query]]:
        bounds = SHAPES[shape]
        n_orders, n_queries = self._sizes()
        orders = OrderGenerator(self._rng, bounds).take(n_orders)
        return orders, generate_queries(self._rng, n_queries, bounds)

    def _make_boundary(self) -> tuple[list[Order], list[Query]]:
        n_orders, n_queries = self._sizes()
        orders = OrderGenerator(self._rng, SHAPES["uniform"]).take(n_orders)
        return orders, self.boundary_queries(orders, n_queries)

    def boundary_queries(self, orders: list[Order], count: int) -> list[Query]:
        """Queries on interval endpoints and one before them, never below 0."""
        candidates: set[int] = set()
        for order in orders:
            for t in (order.created_at, order.executed_or_cancelled_at):
                candidates.add(t)
                if t > 0:
                    candidates.add(t - 1)
        ordered = sorted(candidates)
        return make_queries(self._rng.choice(ordered) for _ in range(count))

    def _make_single_point(self) -> tuple[list[Order], list[Query]]:
        """Every query asks about the same time."""
        orders, queries = self._from_bounds("uniform")
        t = queries[0].time
        return orders, [Query(t) for _ in queries]

    def _make_empty_orders(self) -> tuple[list[Order], list[Query]]:
        _, queries = self._from_bounds("uniform")
        return [], queries

    def _make_empty_queries(self) -> tuple[list[Order], list[Query]]:
        orders, _ = self._from_bounds("uniform")
        return orders, []


# ---------------------------------------------------------------------------
# Operation Log (JSONL)
# ---------------------------------------------------------------------------

class OperationLog:
    """Append-only JSONL audit trail."""

    def __init__(self, path: str | Path | None):
        self._file = None
        if path:
            Path(path).parent.mkdir(parents=True, exist_ok=True)
            self._file = open(path, "w", encoding="utf-8")
        self._seq = 0

    def log(self, **fields):
        self._seq += 1
        record = {"seq": self._seq, "t": time.time(), **fields}
        if self._file:
            self._file.write(json.dumps(record, default=str) + "\n")

    def close(self):
        if self._file:
            self._file.flush()
            self._file.close()
            self._file = None


# ---------------------------------------------------------------------------
# Findings
# ---------------------------------------------------------------------------

class MismatchError(Exception):
    """Raised on verification failure when running with fail_fast."""
    pass


@dataclass
class Finding:
    status: str
    kind: str
    shape: str
    iteration: int
    message: str


@dataclass
class ExitOutcome:
    exit_code: int
    result: str


def _compute_exit_code(status_counts: dict[str, int], fail_statuses: set[str]) -> ExitOutcome:
    """Fail (exit 2) if any status in fail_statuses was seen."""
    failing = sum(int(n) for status, n in status_counts.items() if status in fail_statuses)
    if failing > 0:
        return ExitOutcome(exit_code=2, result="fail")
    return ExitOutcome(exit_code=0, result="pass")


def _first_diff(expected: list[QueryResult], got: list[QueryResult]) -> int | None:
    for idx, (a, b) in enumerate(zip(expected, got)):
        if a != b:
            return idx
    if len(expected) != len(got):
        return min(len(expected), len(got))
    return None


def _apply_artifact_policy(
    *,
    run_dir: Path,
    artifact_mode: str,
    result: str,
    detail_paths: list[Path],
    failure_bundle_out: Path | None,
) -> dict[str, Any]:
    """
    Reduce run artifacts after the run.

    minimal:      delete detail files.
    fail-bundle:  on failure, tar.gz the detail files first, then delete.
    full:         keep everything.
    """
    manifest: dict[str, Any] = {"artifact_mode": artifact_mode, "bundle_path": None, "removed": []}
    if artifact_mode == "full":
        return manifest

    existing = [p for p in detail_paths if p.exists()]
    if artifact_mode == "fail-bundle" and result == "fail" and failure_bundle_out is not None:
        failure_bundle_out.parent.mkdir(parents=True, exist_ok=True)
        with tarfile.open(failure_bundle_out, "w:gz") as tf:
            for p in existing:
                tf.add(p, arcname=str(p.relative_to(run_dir)))
        manifest["bundle_path"] = str(failure_bundle_out)

    for p in existing:
        if p.is_dir():
            shutil.rmtree(p)
        else:
            p.unlink()
        manifest["removed"].append(str(p))
    return manifest


# ---------------------------------------------------------------------------
# Correctness Checker
# ---------------------------------------------------------------------------

class CorrectnessChecker:
    """Orchestrator: generates workloads and verifies both engines."""

    def __init__(
        self,
        seed: int,
        duration: float,
        *,
        iterations: int | None = None,
        mix: str = "default",
        verbose: bool = False,
        run_dir: Path | None = None,
        max_orders: int = 200,
        max_queries: int = 200,
        max_findings: int = 10,
        fail_fast: bool = False,
        engine: Callable[[list[Order], list[Query]], list[QueryResult]] = compute_binsearch,
        oracle: Callable[[list[Order], list[Query]], list[QueryResult]] = compute_naive,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.seed = seed
        self.duration = duration
        self.iterations = iterations
        self.mix = mix
        self.verbose = verbose
        self.run_dir = run_dir
        self.max_findings = max_findings
        self.fail_fast = fail_fast
        self.engine = engine
        self.oracle = oracle
        self.clock = clock
        self.rng = random.Random(seed)
        self.factory = WorkloadFactory(self.rng, max_orders=max_orders, max_queries=max_queries)
        self.oplog = OperationLog(run_dir / "ops.jsonl" if run_dir else None)
        self.issue_log = OperationLog(run_dir / "issues.jsonl" if run_dir else None)

        weights = MIXES[mix]
        self._choices = list(weights)
        self._weights_list = list(weights.values())

        # Stats
        self.ops = 0
        self.verifications = 0
        self.queries_checked = 0
        self.shape_counts: dict[str, int] = {name: 0 for name in self._choices}
        self.findings: list[Finding] = []

    @property
    def status_counts(self) -> dict[str, int]:
        counts: dict[str, int] = {}
        for f in self.findings:
            counts[f.status] = counts.get(f.status, 0) + 1
        return counts

    def run(self) -> dict[str, Any]:
        """Main loop. Returns the run summary."""
        print(f"Correctness Checker | seed={self.seed} | duration={self.duration}s | mix={self.mix}")
        print("=" * 64)

        start = self.clock()
        last_report = start
        report_interval = 10  # seconds

        try:
            while True:
                if self.clock() - start >= self.duration:
                    break
                if self.iterations is not None and self.ops >= self.iterations:
                    break
                if len(self.findings) >= self.max_findings:
                    print(f"  stopping: {len(self.findings)} findings")
                    break

                shape = self.rng.choices(self._choices, self._weights_list, k=1)[0]
                orders, queries = self.factory.make(shape)
                self.shape_counts[shape] += 1
                self._verify(shape, orders, queries)
                self.ops += 1

                now = self.clock()
                if now - last_report >= report_interval:
                    elapsed_s = int(now - start)
                    print(f"  [{elapsed_s}s]  {self.ops} workloads | "
                          f"{self.queries_checked} queries | {len(self.findings)} findings")
                    self.oplog.log(op="progress", elapsed=elapsed_s, ops=self.ops,
                                   findings=len(self.findings))
                    last_report = now

        except MismatchError as e:
            print(f"\nFATAL MISMATCH: {e}")
            self.oplog.log(op="FATAL", error=str(e))
            raise
        finally:
            elapsed_s = round(self.clock() - start, 3)
            print("=" * 64)
            print(f"SUMMARY: {self.ops} workloads | {self.queries_checked} queries | "
                  f"{len(self.findings)} FINDINGS")
            print(f"Duration: {elapsed_s}s | Verifications: {self.verifications}")
            print("=" * 64)
            self.oplog.log(op="summary", ops=self.ops, verifications=self.verifications,
                           findings=len(self.findings), elapsed=elapsed_s)
            self.oplog.close()
            self.issue_log.close()

        return {
            "seed": self.seed,
            "mix": self.mix,
            "elapsed_s": elapsed_s,
            "workloads": self.ops,
            "verifications": self.verifications,
            "queries_checked": self.queries_checked,
            "shape_counts": self.shape_counts,
            "status_counts": self.status_counts,
            "findings": [asdict(f) for f in self.findings],
        }

    # ------------------------------------------------------------------
    # Verification
    # ------------------------------------------------------------------

    def _verify(self, shape: str, orders: list[Order], queries: list[Query]) -> None:
        self.verifications += 1
        orders_before = list(orders)
        queries_before = list(queries)

        expected = self.oracle(orders, queries)
        got = self.engine(orders, queries)
        self.queries_checked += len(queries)

        if orders != orders_before or queries != queries_before:
            self._report(CONFIRMED_ENGINE_BUG, "input_mutation", shape, orders_before, queries_before,
                         "an engine modified its inputs")
            return

        if len(expected) != len(queries):
            self._report(CHECKER_BUG, "oracle_length", shape, orders, queries,
                         f"naive returned {len(expected)} results for {len(queries)} queries")
            return

        if self.oracle(orders, queries) != expected:
            self._report(CHECKER_BUG, "oracle_not_idempotent", shape, orders, queries,
                         "naive results changed between calls")
            return

        diff = _first_diff(expected, got)
        if diff is not None:
            # Re-run to separate reproducible disagreements from one-offs.
            rerun = self.engine(orders, queries)
            status = CONFIRMED_ENGINE_BUG if _first_diff(expected, rerun) is not None else UNCONFIRMED_TRANSIENT
            detail = f"{len(got)} results for {len(queries)} queries"
            if diff < min(len(expected), len(got)):
                detail = (f"query[{diff}] time={queries[diff].time}: "
                          f"expected {expected[diff].outstanding_shares}, "
                          f"got {got[diff].outstanding_shares}")
            self._report(status, "mismatch", shape, orders, queries, detail)
            return

        if self.engine(orders, queries) != got:
            self._report(CONFIRMED_ENGINE_BUG, "not_idempotent", shape, orders, queries,
                         "engine results changed between calls")
            return

        if self.verbose:
            print(f"  {shape}: {len(orders)} orders x {len(queries)} queries OK")
        self.oplog.log(op="verify", shape=shape, orders=len(orders), queries=len(queries), ok=True)

    def _report(
        self,
        status: str,
        kind: str,
        shape: str,
        orders: list[Order],
        queries: list[Query],
        message: str,
    ) -> None:
        finding = Finding(status=status, kind=kind, shape=shape, iteration=self.ops, message=message)
        self.findings.append(finding)
        print(f"  {status} [{kind}] {shape}: {message}")
        self.oplog.log(op="MISMATCH", **asdict(finding))
        self.issue_log.log(**asdict(finding), orders=len(orders), queries=len(queries))

        if self.run_dir is not None:
            issue_dir = self.run_dir / "issues" / f"{len(self.findings):03d}_{kind}"
            write_orders_csv(issue_dir / "orders.csv", orders)
            write_queries_csv(issue_dir / "queries.csv", queries)
            (issue_dir / "report.md").write_text(
                f"# {status}\n\n- kind: `{kind}`\n- shape: `{shape}`\n"
                f"- iteration: `{self.ops}`\n- seed: `{self.seed}`\n\n{message}\n",
                encoding="utf-8",
            )

        if self.fail_fast and status != UNCONFIRMED_TRANSIENT:
            raise MismatchError(f"{kind}: {message}")


# ---------------------------------------------------------------------------
# Summary artifacts
# ---------------------------------------------------------------------------

def _build_summary_markdown(payload: dict[str, Any]) -> str:
    lines = [
        "# Correctness Checker Summary",
        "",
        f"- Run: `{payload.get('run_id')}`",
        f"- Result: `{payload.get('result')}`",
        f"- Seed: `{payload.get('seed')}`",
        f"- Mix: `{payload.get('mix')}`",
        f"- Workloads: `{payload.get('workloads')}`",
        f"- Queries checked: `{payload.get('queries_checked')}`",
        "",
        "## Status Counts",
        "",
    ]
    counts = payload.get("gate", {}).get("fail_status_counts", {})
    if not counts:
        lines.append("- none")
    for status, n in sorted(counts.items()):
        lines.append(f"- `{status}`: `{n}`")
    lines.append("")
    return "\n".join(lines)


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Randomized equivalence check: binsearch engine vs naive oracle"
    )
    parser.add_argument("--duration-seconds", type=float, default=60.0,
                        help="Run duration in seconds (default: 60)")
    parser.add_argument("--iterations", type=int, default=None,
                        help="Stop after this many workloads (default: unlimited)")
    parser.add_argument("--seed", type=int, default=None,
                        help="RNG seed (default: random)")
    parser.add_argument("--mix", choices=sorted(MIXES), default="default",
                        help="Workload mix (default: default)")
    parser.add_argument("--ci-profile", choices=sorted(CI_PROFILE_LIMITS), default="local",
                        help="Sets default size and finding limits")
    parser.add_argument("--max-orders", type=int, default=None)
    parser.add_argument("--max-queries", type=int, default=None)
    parser.add_argument("--max-findings", type=int, default=None)
    parser.add_argument("--fail-fast", action="store_true",
                        help="Raise on the first failing finding")
    parser.add_argument("--verbose", action="store_true",
                        help="Print every workload")
    parser.add_argument("--out-dir", type=str, default="demo/correctness_runs")
    parser.add_argument("--run-id", type=str, default=None)
    parser.add_argument("--artifact-mode", choices=["minimal", "fail-bundle", "full"], default="full")
    parser.add_argument("--fail-statuses", type=str, default=DEFAULT_FAIL_STATUSES)
    parser.add_argument("--summary-json-out", type=str, default=None)
    parser.add_argument("--summary-md-out", type=str, default=None)
    parser.add_argument("--failure-bundle-out", type=str, default=None)
    return parser.parse_args(argv)


def resolve_limits(args: argparse.Namespace) -> dict[str, int]:
    """Profile limits, with any explicitly passed --max-* flag taking precedence."""
    limits = dict(CI_PROFILE_LIMITS[args.ci_profile])
    for name in limits:
        value = getattr(args, name)
        if value is not None:
            limits[name] = value
    return limits


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    seed = args.seed if args.seed is not None else random.randint(0, 2**32 - 1)
    run_id = args.run_id or f"cc_{datetime.now(timezone.utc).strftime('%Y%m%dT%H%M%S')}_seed{seed}"
    run_dir = Path(args.out_dir) / run_id
    run_dir.mkdir(parents=True, exist_ok=True)

    checker = CorrectnessChecker(
        seed=seed,
        duration=args.duration_seconds,
        iterations=args.iterations,
        mix=args.mix,
        verbose=args.verbose,
        run_dir=run_dir,
        **resolve_limits(args),
        fail_fast=args.fail_fast,
    )
    summary = checker.run()

    fail_statuses = {s.strip() for s in args.fail_statuses.split(",") if s.strip()}
    outcome = _compute_exit_code(summary["status_counts"], fail_statuses)

    bundle_out = Path(args.failure_bundle_out) if args.failure_bundle_out else run_dir / "failure_bundle.tar.gz"
    manifest = _apply_artifact_policy(
        run_dir=run_dir,
        artifact_mode=args.artifact_mode,
        result=outcome.result,
        detail_paths=[run_dir / "ops.jsonl", run_dir / "issues.jsonl", run_dir / "issues"],
        failure_bundle_out=bundle_out,
    )

    payload = {
        "schema_version": "correctness_checker_v1",
        "run_id": run_id,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "ci_profile": args.ci_profile,
        **summary,
        "result": outcome.result,
        "exit_code": outcome.exit_code,
        "gate": {
            "fail_statuses": sorted(fail_statuses),
            "fail_status_counts": summary["status_counts"],
        },
        "artifacts": manifest,
    }

    summary_json = Path(args.summary_json_out) if args.summary_json_out else run_dir / "summary.json"
    summary_md = Path(args.summary_md_out) if args.summary_md_out else run_dir / "summary.md"
    summary_json.parent.mkdir(parents=True, exist_ok=True)
    summary_md.parent.mkdir(parents=True, exist_ok=True)
    summary_json.write_text(json.dumps(payload, indent=2) + "\n", encoding="utf-8")
    summary_md.write_text(_build_summary_markdown(payload), encoding="utf-8")
    print(f"result={outcome.result} summary={summary_json}")
    return outcome.exit_code


if __name__ == "__main__":
    raise SystemExit(main())
