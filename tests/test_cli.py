from __future__ import annotations

import json
import os
import subprocess
import sys
import tempfile
import unittest
from pathlib import Path

from billing_doctor import __version__


ROOT = Path(__file__).resolve().parents[1]
CLI = [sys.executable, "-m", "billing_doctor.cli"]
FIXED_STAMP = "20260301T010203Z"

ONE_SIDED_CSV = (
    "Fee Earner,Date,Narrative\n"
    "Sophie Whitmore,2024-01-05,Call with Callum re disclosure\n"
    "Callum Reyes,2024-01-05,Drafting witness statement\n"
)
RECIPROCAL_CSV = (
    "Fee Earner,Date,Narrative\n"
    "Sophie Whitmore,2024-01-05,Call with Callum Reyes re disclosure\n"
    "Callum Reyes,2024-01-05,Call with Sophie re disclosure\n"
)


def run_cli(*args: str, cwd: Path | None = None) -> subprocess.CompletedProcess[str]:
    env = dict(os.environ)
    env["BILLING_DOCTOR_OUTPUT_STAMP"] = FIXED_STAMP
    env["PYTHONPATH"] = os.pathsep.join(filter(None, [str(ROOT), env.get("PYTHONPATH")]))
    return subprocess.run(
        [*CLI, *args],
        cwd=cwd or ROOT,
        capture_output=True,
        text=True,
        env=env,
    )


class BillingDoctorCliTests(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.tmp = Path(self._tmp.name)
        self.profile = self.tmp / "matter.json"
        proc = run_cli("config", "init", "--path", str(self.profile), "--name", "Harbour Logistics")
        self.assertEqual(proc.returncode, 0, proc.stderr)

    def tearDown(self):
        self._tmp.cleanup()

    def write_csv(self, name: str, text: str) -> Path:
        path = self.tmp / name
        path.write_text(text, encoding="utf-8")
        return path

    def test_version(self):
        proc = run_cli("version")
        self.assertEqual(proc.returncode, 0)
        self.assertEqual(proc.stdout.strip(), __version__)

    def test_config_init_writes_profile_and_refuses_overwrite(self):
        profile = json.loads(self.profile.read_text(encoding="utf-8"))
        self.assertEqual(profile["name"], "Harbour Logistics")
        self.assertEqual([person["name"] for person in profile["feeEarners"]], ["Sophie Whitmore", "Callum Reyes"])
        proc = run_cli("config", "init", "--path", str(self.profile))
        self.assertEqual(proc.returncode, 1)
        self.assertIn("Refusing to overwrite", proc.stderr)

    def test_apply_writes_workbook_and_summary(self):
        input_path = self.write_csv("january.csv", ONE_SIDED_CSV)
        out_dir = self.tmp / "out"
        proc = run_cli("apply", str(input_path), "--profile", str(self.profile), "--out", str(out_dir))
        self.assertEqual(proc.returncode, 3, proc.stderr)
        self.assertIn("Workbook written:", proc.stderr)
        self.assertTrue((out_dir / "january-billing.xlsx").exists())
        summary = json.loads((out_dir / "apply-summary.json").read_text(encoding="utf-8"))
        self.assertEqual(summary["contract"]["name"], "billing_doctor.apply_summary")
        self.assertEqual(summary["highlight_rows"], [2])
        self.assertEqual(summary["run_summary"]["metrics"]["narratives_amended"], 1)
        self.assertEqual(summary["run_summary"]["generated_at"], "1970-01-01T00:00:00Z")
        self.assertEqual(
            [item["note"] for item in summary["findings"]],
            ["Missing Time: Callum Reyes should have entry for 2024-01-05"],
        )

    def test_apply_refuses_to_overwrite_output(self):
        input_path = self.write_csv("january.csv", ONE_SIDED_CSV)
        existing = self.tmp / "existing.xlsx"
        existing.write_bytes(b"")
        proc = run_cli("apply", str(input_path), "--profile", str(self.profile), "--output", str(existing))
        self.assertEqual(proc.returncode, 1)
        self.assertIn("Refusing to overwrite", proc.stderr)

    def test_apply_default_output_directory_uses_stamp(self):
        input_path = self.write_csv("january.csv", RECIPROCAL_CSV)
        proc = run_cli("apply", str(input_path), "--profile", str(self.profile), "-q", cwd=self.tmp)
        self.assertEqual(proc.returncode, 0, proc.stderr)
        output_dir = self.tmp / "billing-doctor-output" / f"january-{FIXED_STAMP}"
        self.assertTrue((output_dir / "january-billing.xlsx").exists())
        self.assertTrue((output_dir / "apply-summary.json").exists())
        self.assertEqual(proc.stderr.strip(), "")

    def test_apply_dry_run_json_writes_nothing(self):
        input_path = self.write_csv("january.csv", ONE_SIDED_CSV)
        out_dir = self.tmp / "out"
        proc = run_cli("apply", str(input_path), "--profile", str(self.profile), "--out", str(out_dir), "--dry-run", "--json")
        self.assertEqual(proc.returncode, 3, proc.stderr)
        payload = json.loads(proc.stdout)
        self.assertIsNone(payload["output_file"])
        self.assertEqual(len(payload["findings"]), 1)
        self.assertFalse(out_dir.exists())
        self.assertEqual(proc.stderr.strip(), "")

    def test_audit_reports_findings_with_sheet_rows(self):
        input_path = self.write_csv("january.csv", ONE_SIDED_CSV)
        proc = run_cli("audit", str(input_path), "--profile", str(self.profile), "--json")
        self.assertEqual(proc.returncode, 3, proc.stderr)
        payload = json.loads(proc.stdout)
        self.assertEqual(payload["contract"]["name"], "billing_doctor.audit")
        self.assertEqual(len(payload["findings"]), 1)
        finding = payload["findings"][0]
        self.assertEqual(finding["sheet_row"], 2)
        self.assertEqual(finding["missing_person"], "Callum Reyes")
        self.assertFalse(input_path.with_name("billing-doctor-output").exists())

    def test_audit_with_default_name_rule_settings(self):
        profile = self.tmp / "imported.json"
        profile.write_text(
            json.dumps(
                {
                    "name": "Imported",
                    "feeEarners": [{"name": "Sophie Whitmore"}, {"name": "Callum Reyes"}],
                    "rules": {"nameStandardisation": {"enabled": True}, "missingTimeEntries": {"enabled": True}},
                }
            ),
            encoding="utf-8",
        )
        input_path = self.write_csv(
            "february.csv",
            "Fee Earner,Date,Narrative\n"
            "Sophie Whitmore,2024-01-05,Call with Callum Reyes re disclosure\n"
            "Callum Reyes,2024-01-05,Review partnership agreement\n",
        )
        proc = run_cli("audit", str(input_path), "--profile", str(profile), "--json")
        self.assertEqual(proc.returncode, 3, proc.stderr)
        payload = json.loads(proc.stdout)
        self.assertEqual(payload["contract"], {"name": "billing_doctor.audit", "version": "1.0.0"})
        self.assertEqual(payload["schema_version"], "1.0.0")
        self.assertEqual(payload["run_summary"]["command"], "audit")
        self.assertEqual(payload["run_summary"]["profile"], "Imported")
        self.assertEqual([item["missing_person"] for item in payload["findings"]], ["Callum Reyes"])

    def test_audit_clean_timesheet_returns_exit_0(self):
        input_path = self.write_csv("january.csv", RECIPROCAL_CSV)
        proc = run_cli("audit", str(input_path), "--profile", str(self.profile))
        self.assertEqual(proc.returncode, 0, proc.stderr)
        self.assertIn("Missing entries: 0", proc.stderr)

    def test_standardise(self):
        proc = run_cli("standardise", "Conference with Sophie", "--profile", str(self.profile))
        self.assertEqual(proc.returncode, 0, proc.stderr)
        self.assertEqual(proc.stdout.strip(), "Conference with Sophie Whitmore")

    def test_roster(self):
        input_path = self.write_csv(
            "roster.csv",
            "Name,Role,Rate\nSophie Whitmore,Partner,450\nNathan Cole,Trainee,150\nNathan Price,Associate,250\n",
        )
        proc = run_cli("roster", str(input_path), "--json")
        self.assertEqual(proc.returncode, 0, proc.stderr)
        payload = json.loads(proc.stdout)
        self.assertEqual(payload["contract"]["name"], "billing_doctor.roster")
        self.assertEqual([person["name"] for person in payload["feeEarners"]], ["Sophie Whitmore", "Nathan Cole", "Nathan Price"])
        self.assertEqual(payload["duplicate_first_names"], {"nathan": ["Nathan Cole", "Nathan Price"]})

    def test_explain(self):
        proc = run_cli("explain", "missing_time_entries")
        self.assertEqual(proc.returncode, 0)
        self.assertIn("Rule: missing_time_entries", proc.stdout)
        proc = run_cli("explain", "nope")
        self.assertEqual(proc.returncode, 1)
        self.assertIn("Unknown rule id", proc.stderr)

    def test_errors_map_to_exit_codes(self):
        corrupt = self.tmp / "corrupt.xlsx"
        corrupt.write_bytes(b"not a zip archive")
        proc = run_cli("audit", str(corrupt), "--profile", str(self.profile))
        self.assertEqual(proc.returncode, 2)
        self.assertIn("Could not read workbook", proc.stderr)

        proc = run_cli("audit", str(self.tmp / "missing.csv"), "--profile", str(self.profile))
        self.assertEqual(proc.returncode, 1)
        self.assertIn("File not found", proc.stderr)

        proc = run_cli("audit")
        self.assertEqual(proc.returncode, 1)


if __name__ == "__main__":
    unittest.main()
