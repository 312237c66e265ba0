from __future__ import annotations

import json
import os
import subprocess
import sys
import tempfile
import unittest
from pathlib import Path

from ledger_import import __version__


ROOT = Path(__file__).resolve().parents[1]
CLI = [sys.executable, "-m", "ledger_import.cli"]
FIXED_STAMP = "20260301T010203Z"


def run_cli(*args: str, env: dict[str, str] | None = None) -> subprocess.CompletedProcess[str]:
    merged_env = dict(os.environ)
    merged_env["LEDGER_IMPORT_OUTPUT_STAMP"] = FIXED_STAMP
    if env:
        merged_env.update(env)
    return subprocess.run(
        [*CLI, *args],
        cwd=ROOT,
        capture_output=True,
        text=True,
        env=merged_env,
    )


class LedgerImportCliTests(unittest.TestCase):
    def test_detect_json_reports_mapping_and_format(self):
        proc = run_cli("detect", "sample-data/bank_statement.csv", "--json")
        self.assertEqual(proc.returncode, 0, proc.stderr)
        payload = json.loads(proc.stdout)
        self.assertEqual(payload["contract"]["name"], "ledger_import.detect")
        self.assertEqual(payload["format"], "bank-statement")
        self.assertEqual(payload["confidence"], 100)
        self.assertEqual([column["type"] for column in payload["columns"]], ["date", "description", "debit", "credit", "balance"])
        self.assertEqual(proc.stderr.strip(), "")

    def test_detect_text_goes_to_stderr(self):
        proc = run_cli("detect", "sample-data/simple_export.csv")
        self.assertEqual(proc.returncode, 0, proc.stderr)
        self.assertEqual(proc.stdout, "")
        self.assertIn("Format: Simple Format (simple)", proc.stderr)
        self.assertIn("Confidence: 100% (high)", proc.stderr)
        self.assertIn("Record kind: income-expense", proc.stderr)

    def test_parse_statement_json(self):
        proc = run_cli("parse", "sample-data/financial_statement.csv", "--json")
        self.assertEqual(proc.returncode, 0, proc.stderr)
        payload = json.loads(proc.stdout)
        self.assertEqual(payload["contract"]["name"], "ledger_import.parse")
        self.assertEqual(payload["format"], "financial-statement")
        self.assertEqual(payload["row_count"], 10)
        self.assertEqual(payload["run_summary"]["metrics"]["rows_extracted"], 10)
        self.assertEqual(payload["run_summary"]["tool_version"], __version__)
        repairs = [row for row in payload["rows"] if row["Name"] == "Repairs & Maintenance"]
        self.assertEqual([row["Amount"] for row in repairs], ["250", "-75", "410"])

    def test_parse_map_override_re_extracts(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "refunds.csv"
            path.write_text("Date,Details,Amount\n2025-01-05,Refund,30\n", encoding="utf-8")
            proc = run_cli("parse", str(path), "--json", "--map", "2=credit")
        self.assertEqual(proc.returncode, 0, proc.stderr)
        payload = json.loads(proc.stdout)
        self.assertEqual(payload["rows"][0]["Type"], "Income")
        self.assertEqual(payload["detected_columns"]["mapping"]["2"], "credit")

    def test_parse_bad_map_returns_exit_1(self):
        proc = run_cli("parse", "sample-data/simple_export.csv", "--map", "two=credit")
        self.assertEqual(proc.returncode, 1)
        self.assertIn("--map expects IDX=TYPE", proc.stderr)

        proc = run_cli("parse", "sample-data/simple_export.csv", "--map", "9=credit")
        self.assertEqual(proc.returncode, 1)
        self.assertIn("out of range", proc.stderr)

    def test_parse_writes_output_with_stamp(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            proc = run_cli("parse", "sample-data/simple_export.csv", "--out", tmpdir)
            self.assertEqual(proc.returncode, 0, proc.stderr)
            output_path = Path(tmpdir) / f"simple_export-parsed-{FIXED_STAMP}.json"
            self.assertTrue(output_path.exists())
            payload = json.loads(output_path.read_text(encoding="utf-8"))
            self.assertEqual(payload["run_summary"]["output_file"], str(output_path))
            self.assertIn("Parsed dataset:", proc.stderr)

    def test_validate_invalid_rows_return_exit_5(self):
        proc = run_cli("validate", "sample-data/financial_statement.csv", "--json")
        self.assertEqual(proc.returncode, 5, proc.stderr)
        payload = json.loads(proc.stdout)
        self.assertFalse(payload["valid"])
        self.assertEqual(payload["summary"], "Found 9 valid rows and 1 invalid rows")
        self.assertEqual(payload["report"]["invalid_rows"][0]["errors"], ["Amount must be positive"])

    def test_validate_bank_statement_uses_bank_shape(self):
        proc = run_cli("validate", "sample-data/bank_statement.csv")
        self.assertEqual(proc.returncode, 0, proc.stderr)
        self.assertIn("Shape: bank-statement", proc.stderr)
        self.assertIn("All 5 rows are valid", proc.stderr)

    def test_unsupported_file_returns_exit_1(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "notes.txt"
            path.write_text("Date,Description,Amount\n", encoding="utf-8")
            proc = run_cli("parse", str(path))
        self.assertEqual(proc.returncode, 1)
        self.assertIn("Unsupported format", proc.stderr)

    def test_missing_file_returns_exit_1(self):
        proc = run_cli("detect", "sample-data/does-not-exist.csv")
        self.assertEqual(proc.returncode, 1)
        self.assertIn("File not found", proc.stderr)

    def test_empty_file_returns_exit_2(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "empty.csv"
            path.write_text("", encoding="utf-8")
            proc = run_cli("parse", str(path))
        self.assertEqual(proc.returncode, 2)
        self.assertIn("Empty CSV file", proc.stderr)

    def test_quiet_suppresses_human_output(self):
        proc = run_cli("validate", "sample-data/simple_export.csv", "--quiet")
        self.assertEqual(proc.returncode, 0, proc.stderr)
        self.assertEqual(proc.stderr, "")

    def test_version(self):
        proc = run_cli("version")
        self.assertEqual(proc.returncode, 0)
        self.assertEqual(proc.stdout.strip(), __version__)

    def test_unknown_command_returns_exit_1(self):
        proc = run_cli("export")
        self.assertEqual(proc.returncode, 1)


if __name__ == "__main__":
    unittest.main()
