#!/usr/bin/env python3
"""Methodology benchmark harness for the outstanding-shares engines."""

from __future__ import annotations

import argparse
import json
import platform
import sys
from datetime import datetime
from pathlib import Path
from typing import Any

sys.path.insert(0, str(Path(__file__).resolve().parent.parent / "python"))

from benchmark_baseline import (  # noqa: E402
    SCHEMA_VERSION,
    build_baseline_from_results,
    default_baseline_path,
    save_baseline,
)
from benchmark_profiles import (  # noqa: E402
    BenchmarkProfile,
    default_profile,
    load_custom_profile,
    profile_to_dict,
)
from benchmark_report import write_markdown_report  # noqa: E402
from benchmark_runner import run_benchmark_suite, summarize_gate_counts  # noqa: E402
from benchmark_scenarios import build_scenario_registry  # noqa: E402
from benchmark_schema import BenchmarkCaseContext  # noqa: E402
from perf_profiler import get_system_info  # noqa: E402

DEFAULT_SEED = 12345


def _resolve_profile(args: argparse.Namespace) -> BenchmarkProfile:
    if args.profile == "custom" and args.config is not None:
        profile = load_custom_profile(Path(args.config))
    else:
        profile = default_profile(args.profile)
    if args.orders is not None:
        profile.num_orders = args.orders
    if args.queries is not None:
        profile.num_queries = args.queries
    return profile


def _resolve_scenarios(
    all_specs: dict[str, Any],
    profile: BenchmarkProfile,
    scenario_override: str | None,
) -> list[str]:
    if scenario_override:
        wanted = [x.strip().upper() for x in scenario_override.split(",") if x.strip()]
    elif profile.scenarios == "all":
        return sorted(all_specs.keys())
    else:
        wanted = [x.upper() for x in profile.scenarios]

    unknown = [code for code in wanted if code not in all_specs]
    if unknown:
        print(f"[benchmark] ignoring unknown scenarios: {', '.join(unknown)}")
    return [code for code in wanted if code in all_specs]


def run_methodology(args: argparse.Namespace) -> tuple[int, dict[str, Any]]:
    profile = _resolve_profile(args)

    registry = build_scenario_registry()
    selected_codes = _resolve_scenarios(registry, profile, args.scenarios)
    selected_specs = [registry[code] for code in selected_codes]

    baseline_path = Path(args.baseline) if args.baseline else default_baseline_path(platform.platform())
    base_ctx = BenchmarkCaseContext(
        num_orders=profile.num_orders,
        num_queries=profile.num_queries,
        quick=profile.quick,
        seed=args.seed,
        verify=not args.no_verify,
    )
    scenarios = run_benchmark_suite(
        selected_specs,
        base_ctx,
        warmup_runs=profile.warmup_runs,
        measured_runs=profile.measured_runs,
        baseline_path=baseline_path,
    )

    summary = summarize_gate_counts(scenarios)
    payload = {
        "schema_version": SCHEMA_VERSION,
        "timestamp": datetime.now().isoformat(),
        "profile": profile.name,
        "platform": platform.platform(),
        "python_version": sys.version,
        "system": get_system_info(),
        "config": {
            "baseline_path": str(baseline_path),
            "seed": args.seed,
            "num_orders": profile.num_orders,
            "num_queries": profile.num_queries,
            "verify": not args.no_verify,
            "profile": profile_to_dict(profile),
        },
        "scenarios": scenarios,
        "summary": summary,
    }

    if args.export_json:
        out_json = Path(args.export_json)
        out_json.parent.mkdir(parents=True, exist_ok=True)
        with out_json.open("w") as f:
            json.dump(payload, f, indent=2)
        print(f"Benchmark JSON exported: {out_json}")

    if args.export_md:
        out_md = Path(args.export_md)
        write_markdown_report(payload, out_md)
        print(f"Benchmark Markdown exported: {out_md}")

    if args.update_baseline:
        baseline_payload = build_baseline_from_results(
            platform_name=payload["platform"],
            timestamp=payload["timestamp"],
            scenarios=scenarios,
        )
        save_baseline(baseline_path, baseline_payload)
        print(f"Baseline updated: {baseline_path}")

    gate_counts = summary["gate_counts"]
    correctness_fail = gate_counts["correctness"]["fail"]
    complexity_fail = gate_counts["complexity"]["fail"]
    throughput_warn = gate_counts["throughput"]["warn"]

    print(
        "Benchmark summary | "
        f"scenarios={summary['scenario_count']} "
        f"correctness_fail={correctness_fail} "
        f"complexity_fail={complexity_fail} "
        f"throughput_warn={throughput_warn}"
    )

    if correctness_fail > 0:
        return 2, payload
    if complexity_fail > 0:
        return 3, payload
    return 0, payload


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Outstanding-shares engine benchmark harness")
    parser.add_argument("--profile", choices=["pr", "full", "custom"], default="pr")
    parser.add_argument("--config", type=str, help="Path to custom profile JSON config")
    parser.add_argument("--scenarios", type=str, help="Comma-separated scenario ids override")
    parser.add_argument("--orders", type=int, default=None, help="Override profile order count")
    parser.add_argument("--queries", type=int, default=None, help="Override profile query count")
    parser.add_argument("--baseline", type=str, default=None)
    parser.add_argument("--seed", type=int, default=DEFAULT_SEED)
    parser.add_argument("--export-json", type=str, default="demo/benchmark_runs/outstanding_bench_v1.json")
    parser.add_argument("--export-md", type=str, default="demo/benchmark_runs/outstanding_bench_v1.md")
    parser.add_argument("--update-baseline", action="store_true")
    parser.add_argument("--no-verify", action="store_true",
                        help="Skip the sampled naive-oracle check in binsearch scenarios")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    code, _payload = run_methodology(args)
    return code


if __name__ == "__main__":
    raise SystemExit(main())
