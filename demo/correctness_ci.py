#!/usr/bin/env python3
"""CI orchestrator for correctness_checker.py profiles."""

from __future__ import annotations

import argparse
import json
import subprocess
import sys
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

REPO_ROOT = Path(__file__).resolve().parent.parent
DEFAULT_SEED = 12345
FAIL_STATUSES = "CONFIRMED_ENGINE_BUG,CHECKER_BUG"


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class LegSpec:
    leg_id: str
    mix: str
    duration_seconds: int
    ci_profile: str
    # None leaves the checker's per-profile limit in place.
    max_orders: int | None = None
    max_queries: int | None = None


def _profile_legs(profile: str, duration_override_seconds: int | None) -> list[LegSpec]:
    if profile == "pr":
        duration = duration_override_seconds if duration_override_seconds is not None else 60
        return [
            LegSpec(
                leg_id="pr_default",
                mix="default",
                duration_seconds=duration,
                ci_profile="pr",
            )
        ]

    # nightly profile
    duration = duration_override_seconds if duration_override_seconds is not None else 300
    return [
        LegSpec(
            leg_id="nightly_default",
            mix="default",
            duration_seconds=duration,
            ci_profile="nightly",
        ),
        LegSpec(
            leg_id="nightly_edge",
            mix="edge",
            duration_seconds=duration,
            ci_profile="nightly",
            max_orders=50,
            max_queries=50,
        ),
        LegSpec(
            leg_id="nightly_bulk",
            mix="bulk",
            duration_seconds=duration,
            ci_profile="nightly",
            max_orders=1_000,
            max_queries=1_000,
        ),
    ]


def _load_json(path: Path) -> dict[str, Any]:
    with path.open(encoding="utf-8") as f:
        return json.load(f)


def _leg_command(
    *,
    leg: LegSpec,
    seed: int,
    python_exe: str,
    work_dir: Path,
    summary_json: Path,
    summary_md: Path,
    bundle_out: Path,
) -> list[str]:
    cmd = [
        python_exe,
        "demo/correctness_checker.py",
        "--ci-profile",
        leg.ci_profile,
        "--mix",
        leg.mix,
        "--artifact-mode",
        "fail-bundle",
        "--fail-statuses",
        FAIL_STATUSES,
        "--duration-seconds",
        str(leg.duration_seconds),
        "--seed",
        str(seed),
        "--out-dir",
        str(work_dir),
        "--summary-json-out",
        str(summary_json),
        "--summary-md-out",
        str(summary_md),
        "--failure-bundle-out",
        str(bundle_out),
        "--run-id",
        f"{leg.leg_id}_seed{seed}",
    ]
    if leg.max_orders is not None:
        cmd.extend(["--max-orders", str(leg.max_orders)])
    if leg.max_queries is not None:
        cmd.extend(["--max-queries", str(leg.max_queries)])
    return cmd


def _run_leg(
    *,
    leg: LegSpec,
    seed: int,
    python_exe: str,
    out_dir: Path,
    failure_bundle_dir: Path,
) -> dict[str, Any]:
    work_dir = out_dir / "work"
    work_dir.mkdir(parents=True, exist_ok=True)
    failure_bundle_dir.mkdir(parents=True, exist_ok=True)

    summary_json = out_dir / f"{leg.leg_id}.summary.json"
    summary_md = out_dir / f"{leg.leg_id}.summary.md"
    run_log = out_dir / f"{leg.leg_id}.log"
    bundle_out = failure_bundle_dir / f"{leg.leg_id}.failure_bundle.tar.gz"

    cmd = _leg_command(
        leg=leg,
        seed=seed,
        python_exe=python_exe,
        work_dir=work_dir,
        summary_json=summary_json,
        summary_md=summary_md,
        bundle_out=bundle_out,
    )
    base = {
        "leg_id": leg.leg_id,
        "seed": seed,
        "mix": leg.mix,
        "duration_seconds": leg.duration_seconds,
        "summary_path": str(summary_json),
    }

    timeout_s = leg.duration_seconds + 120
    try:
        proc = subprocess.run(
            cmd,
            cwd=str(REPO_ROOT),
            text=True,
            capture_output=True,
            check=False,
            timeout=timeout_s,
        )
    except subprocess.TimeoutExpired as exc:
        timeout_msg = f"[correctness-ci] TIMEOUT: {leg.leg_id} exceeded {timeout_s}s\n"
        stdout = exc.stdout.decode() if isinstance(exc.stdout, bytes) else (exc.stdout or "")
        stderr = exc.stderr.decode() if isinstance(exc.stderr, bytes) else (exc.stderr or "")
        run_log.write_text(stdout + "\n[stderr]\n" + stderr + "\n" + timeout_msg, encoding="utf-8")
        print(timeout_msg, file=sys.stderr)
        return {
            **base,
            "return_code": -1,
            "result": "fail",
            "fail_status_counts": {"TIMEOUT": 1},
            "artifacts": {"run_log": str(run_log)},
        }

    log_payload = proc.stdout
    if proc.stderr:
        log_payload += "\n[stderr]\n" + proc.stderr
    run_log.write_text(log_payload, encoding="utf-8")
    if proc.stdout:
        print(proc.stdout, end="")
    if proc.stderr:
        print(proc.stderr, end="", file=sys.stderr)

    summary: dict[str, Any] | None = None
    if summary_json.exists():
        summary = _load_json(summary_json)

    result = "fail" if proc.returncode != 0 else "pass"
    if summary is not None and summary.get("result") in {"pass", "fail"}:
        result = str(summary["result"])

    artifacts = {
        "summary_json": str(summary_json),
        "summary_md": str(summary_md),
        "run_log": str(run_log),
    }
    if bundle_out.exists():
        artifacts["failure_bundle"] = str(bundle_out)

    fail_counts: dict[str, int] = {}
    workloads = 0
    if summary is not None:
        fail_counts = dict(summary.get("gate", {}).get("fail_status_counts", {}))
        workloads = int(summary.get("workloads", 0))

    return {
        **base,
        "return_code": proc.returncode,
        "result": result,
        "workloads": workloads,
        "fail_status_counts": fail_counts,
        "artifacts": artifacts,
    }


def _build_markdown(payload: dict[str, Any]) -> str:
    lines: list[str] = []
    lines.append("# Outstanding-Shares Correctness CI Summary")
    lines.append("")
    lines.append(f"- Timestamp: `{payload.get('timestamp')}`")
    lines.append(f"- Profile: `{payload.get('profile')}`")
    lines.append(f"- Result: `{payload.get('result')}`")
    lines.append(f"- Exit code: `{payload.get('exit_code')}`")
    lines.append("")
    lines.append("## Legs")
    lines.append("")
    lines.append("| Leg | Mix | Duration(s) | Workloads | Result | Exit |")
    lines.append("|---|---|---:|---:|---|---:|")
    for leg in payload.get("legs", []):
        lines.append(
            f"| {leg.get('leg_id')} | {leg.get('mix')} | {leg.get('duration_seconds')} | "
            f"{leg.get('workloads', 0)} | {leg.get('result')} | {leg.get('return_code')} |"
        )
    lines.append("")
    lines.append("## Gate Counts")
    lines.append("")
    gate_counts = payload.get("gate_status_totals", {})
    if not gate_counts:
        lines.append("- none")
    for k, v in sorted(gate_counts.items()):
        lines.append(f"- `{k}`: `{v}`")
    return "\n".join(lines) + "\n"


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run correctness checker CI profiles")
    parser.add_argument("--profile", choices=["pr", "nightly"], default="pr")
    parser.add_argument("--out-dir", type=str, default="demo/correctness_ci_runs")
    parser.add_argument("--seed", type=int, default=DEFAULT_SEED)
    parser.add_argument("--export-json", type=str, default=None)
    parser.add_argument("--export-md", type=str, default=None)
    parser.add_argument("--failure-bundle-dir", type=str, default=None)
    parser.add_argument("--python", type=str, default=sys.executable)
    parser.add_argument("--duration-override-seconds", type=int, default=None, help=argparse.SUPPRESS)
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    out_dir = Path(args.out_dir).resolve()
    out_dir.mkdir(parents=True, exist_ok=True)

    failure_bundle_dir = Path(args.failure_bundle_dir) if args.failure_bundle_dir else (out_dir / "failure_bundles")
    export_json = Path(args.export_json) if args.export_json else (out_dir / "correctness_ci_summary.json")
    export_md = Path(args.export_md) if args.export_md else (out_dir / "correctness_ci_summary.md")
    export_json.parent.mkdir(parents=True, exist_ok=True)
    export_md.parent.mkdir(parents=True, exist_ok=True)

    legs = _profile_legs(args.profile, args.duration_override_seconds)
    leg_results: list[dict[str, Any]] = []
    gate_totals: dict[str, int] = {}

    started = _utc_now_iso()
    for idx, leg in enumerate(legs):
        leg_seed = args.seed + idx
        print(f"[correctness-ci] running {leg.leg_id} (seed={leg_seed}, duration={leg.duration_seconds}s)")
        result = _run_leg(
            leg=leg,
            seed=leg_seed,
            python_exe=args.python,
            out_dir=out_dir,
            failure_bundle_dir=failure_bundle_dir.resolve(),
        )
        leg_results.append(result)
        for status, count in result.get("fail_status_counts", {}).items():
            gate_totals[status] = gate_totals.get(status, 0) + int(count)

    failed_legs = [leg["leg_id"] for leg in leg_results if leg.get("result") == "fail"]
    overall_fail = bool(failed_legs)
    exit_code = 2 if overall_fail else 0

    payload = {
        "schema_version": "correctness_ci_v1",
        "timestamp": _utc_now_iso(),
        "started_utc": started,
        "profile": args.profile,
        "result": "fail" if overall_fail else "pass",
        "exit_code": exit_code,
        "seed_base": args.seed,
        "legs": leg_results,
        "failed_legs": failed_legs,
        "gate_status_totals": gate_totals,
    }

    export_json.write_text(json.dumps(payload, indent=2, ensure_ascii=True) + "\n", encoding="utf-8")
    export_md.write_text(_build_markdown(payload), encoding="utf-8")
    print(f"[correctness-ci] JSON: {export_json}")
    print(f"[correctness-ci] MD: {export_md}")
    print(
        f"[correctness-ci] result={payload['result']} "
        f"legs={len(leg_results)} failed_legs={len(failed_legs)}"
    )
    return exit_code


if __name__ == "__main__":
    raise SystemExit(main())
