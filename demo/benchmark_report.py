#!/usr/bin/env python3
"""Reporting helpers for methodology benchmark artifacts."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Any


def _fmt_gate(g: str) -> str:
    return g.upper()


def build_markdown_report(payload: dict[str, Any]) -> str:
    ts = payload.get("timestamp", datetime.now().isoformat())
    system = payload.get("system", {})
    config = payload.get("config", {})
    summary = payload.get("summary", {})

    lines: list[str] = []
    lines.append("# Outstanding-Shares Engine Benchmark Report")
    lines.append("")
    lines.append(f"- Timestamp: `{ts}`")
    lines.append(f"- Profile: `{payload.get('profile', 'unknown')}`")
    lines.append(f"- Platform: `{payload.get('platform', 'unknown')}`")
    lines.append(f"- Python: `{payload.get('python_version', 'unknown')}`")
    lines.append(f"- CPU Count: `{system.get('cpu_count', 'unknown')}`")
    lines.append(f"- Seed: `{config.get('seed', 'unknown')}`")
    lines.append(f"- Workload: `{config.get('num_orders', '?')}` orders x `{config.get('num_queries', '?')}` queries")
    lines.append("")

    gate_counts = summary.get("gate_counts", {})
    lines.append("## Gate Summary")
    lines.append("")
    lines.append("| Gate | pass | fail | warn | na |")
    lines.append("|---|---:|---:|---:|---:|")
    for gate in ("correctness", "complexity", "throughput"):
        c = gate_counts.get(gate, {})
        lines.append(
            f"| {gate} | {c.get('pass', 0)} | {c.get('fail', 0)} | {c.get('warn', 0)} | {c.get('na', 0)} |"
        )

    lines.append("")
    lines.append("## Scenario Results")
    lines.append("")
    lines.append(
        "| Scenario | Name | Engine | Shape | Median q/s | p95 q/s | Correctness | Complexity | Throughput |"
    )
    lines.append("|---|---|---|---|---:|---:|---|---|---|")

    for s in payload.get("scenarios", []):
        stats = s.get("stats", {})
        gates = s.get("gates", {})
        lines.append(
            f"| {s.get('scenario_id')} | {s.get('name')} | {s.get('engine')} | {s.get('shape')} "
            f"| {stats.get('median_qps', 0.0):,.1f} | {stats.get('p95_qps', 0.0):,.1f} "
            f"| {_fmt_gate(gates.get('correctness', 'na'))} "
            f"| {_fmt_gate(gates.get('complexity', 'na'))} "
            f"| {_fmt_gate(gates.get('throughput', 'na'))} |"
        )

    scaling = [s for s in payload.get("scenarios", []) if "scaling_exponent" in s.get("last_result", {})]
    if scaling:
        lines.append("")
        lines.append("## Scaling")
        lines.append("")
        lines.append("| Scenario | Expected | Sizes | Exponent | r2 |")
        lines.append("|---|---|---|---:|---:|")
        for s in scaling:
            r = s["last_result"]
            lines.append(
                f"| {s.get('scenario_id')} | {s.get('expected_model')} | {r.get('sizes')} "
                f"| {r.get('scaling_exponent', 0.0):.2f} | {r.get('r2', 0.0):.3f} |"
            )

    lines.append("")
    return "\n".join(lines)


def write_markdown_report(payload: dict[str, Any], path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(build_markdown_report(payload))
