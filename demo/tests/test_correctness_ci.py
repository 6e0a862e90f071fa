#!/usr/bin/env python3

from __future__ import annotations

import json
import subprocess
import sys
import tempfile
import unittest
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[2]
sys.path.insert(0, str(REPO_ROOT / "demo"))

import correctness_ci as cci  # noqa: E402


class CorrectnessCIOrchestratorTests(unittest.TestCase):
    def test_nightly_profile_legs(self) -> None:
        legs = cci._profile_legs("nightly", duration_override_seconds=1)
        self.assertEqual([leg.mix for leg in legs], ["default", "edge", "bulk"])
        self.assertTrue(all(leg.duration_seconds == 1 for leg in legs))

    def test_leg_command_forwards_mix(self) -> None:
        leg = cci._profile_legs("pr", duration_override_seconds=5)[0]
        cmd = cci._leg_command(
            leg=leg,
            seed=9,
            python_exe="python",
            work_dir=Path("w"),
            summary_json=Path("s.json"),
            summary_md=Path("s.md"),
            bundle_out=Path("b.tar.gz"),
        )
        self.assertEqual(cmd[cmd.index("--mix") + 1], "default")
        self.assertEqual(cmd[cmd.index("--seed") + 1], "9")
        self.assertEqual(cmd[cmd.index("--duration-seconds") + 1], "5")
        self.assertEqual(cmd[cmd.index("--ci-profile") + 1], "pr")
        self.assertNotIn("--max-orders", cmd)

    def test_leg_size_overrides_are_forwarded(self) -> None:
        legs = {leg.leg_id: leg for leg in cci._profile_legs("nightly", duration_override_seconds=1)}
        cmd = cci._leg_command(
            leg=legs["nightly_edge"],
            seed=1,
            python_exe="python",
            work_dir=Path("w"),
            summary_json=Path("s.json"),
            summary_md=Path("s.md"),
            bundle_out=Path("b.tar.gz"),
        )
        self.assertEqual(cmd[cmd.index("--max-orders") + 1], "50")
        self.assertEqual(cmd[cmd.index("--max-queries") + 1], "50")

    def test_pr_profile_smoke(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            root = Path(td)
            out_dir = root / "out"
            export_json = root / "correctness_ci_pr.json"
            export_md = root / "correctness_ci_pr.md"
            cmd = [
                sys.executable,
                "demo/correctness_ci.py",
                "--profile",
                "pr",
                "--duration-override-seconds",
                "2",
                "--out-dir",
                str(out_dir),
                "--export-json",
                str(export_json),
                "--export-md",
                str(export_md),
            ]
            proc = subprocess.run(cmd, cwd=str(REPO_ROOT), check=False)
            self.assertTrue(export_json.exists())
            self.assertTrue(export_md.exists())
            payload = json.loads(export_json.read_text(encoding="utf-8"))
            self.assertEqual(payload.get("profile"), "pr")
            self.assertEqual(len(payload.get("legs", [])), 1)
            self.assertEqual(payload.get("result"), "pass")
            self.assertEqual(proc.returncode, int(payload.get("exit_code")))

    def test_nightly_profile_dry_run(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            root = Path(td)
            out_dir = root / "out"
            export_json = root / "correctness_ci_nightly.json"
            export_md = root / "correctness_ci_nightly.md"
            cmd = [
                sys.executable,
                "demo/correctness_ci.py",
                "--profile",
                "nightly",
                "--duration-override-seconds",
                "1",
                "--out-dir",
                str(out_dir),
                "--export-json",
                str(export_json),
                "--export-md",
                str(export_md),
            ]
            proc = subprocess.run(cmd, cwd=str(REPO_ROOT), check=False)
            self.assertTrue(export_json.exists())
            self.assertTrue(export_md.exists())
            payload = json.loads(export_json.read_text(encoding="utf-8"))
            self.assertEqual(payload.get("profile"), "nightly")
            self.assertEqual(len(payload.get("legs", [])), 3)
            self.assertEqual(sum(1 for leg in payload.get("legs", []) if leg.get("mix") == "bulk"), 1)
            self.assertEqual(proc.returncode, int(payload.get("exit_code")))


if __name__ == "__main__":
    unittest.main()
