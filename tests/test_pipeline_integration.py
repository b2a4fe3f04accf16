#!/usr/bin/env python3
"""
test_pipeline_integration.py

Integration tests for the two pipeline stages.

Tests:
- End-to-end example: event bridged through Elevate to a PROVISIONING CRM account
  lands only in the post-installation file
- Only events imported on the run date are processed
- Scripts run as subprocesses (stage 1, stage 2, run_pipeline.py)
- All three output files exist even when no events were imported
"""

import unittest
import tempfile
import shutil
import subprocess
import sys
from pathlib import Path

import pandas as pd

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "code"))
sys.path.insert(0, str(Path(__file__).resolve().parent))

from csv_fixtures import write_crm_csv, write_elevate_csv, write_events_csv
from import_mandates import run_import
from process_mandates import run_processing
from mandates.export import HEADER_LINE, ExportPaths
from mandates.store import open_store
from mandates.teams import TEAM_NO_ACTION_AT_OUR_REQUEST, TEAM_POST_INSTALLATION, TEAM_PRE_INSTALLATION

RUN_DATE = "2024-05-01"


def write_day_exports(input_dir: Path, run_date: str = RUN_DATE) -> None:
    write_elevate_csv(input_dir / f"elevate-accounts-{run_date}.csv", [
        {"account_number": "ACC9", "customer_name": "Grace Hopper", "mandate_reference": "M100"},
    ])
    write_crm_csv(input_dir / f"crm-accounts-{run_date}.csv", [
        {"crm_id": "CRM9", "crm_account_number": "ACC9", "crm_name": "Grace Hopper",
         "crm_stage_name": "PROVISIONING", "crm_email": "grace@example.com"},
        {"crm_id": "CRM5", "crm_account_number": "ACC5", "crm_name": "Alan Turing",
         "crm_stage_name": "ACTIVE", "crm_gocardless_id": "CU5"},
    ])
    write_events_csv(input_dir / f"cancelled-mandates-{run_date}.csv", [
        {"id": "EVT1", "details_description": "customer cancelled mandate", "mandates_id": "M100"},
        {"id": "EVT2", "details_description": "Mandate cancelled at your request", "customers_id": "CU5"},
    ])
    write_events_csv(input_dir / f"failed-mandates-{run_date}.csv", [
        {"id": "EVT3", "details_description": "bank account closed",
         "customers_given_name": "Nobody", "customers_family_name": "Known"},
    ])


def read_out(path: Path) -> pd.DataFrame:
    return pd.read_csv(path, dtype=str, keep_default_na=False)


class TestEndToEnd(unittest.TestCase):

    def setUp(self):
        self.test_dir = Path(tempfile.mkdtemp())
        self.input_dir = self.test_dir / "in"
        self.output_dir = self.test_dir / "out"
        self.input_dir.mkdir()
        self.output_dir.mkdir()
        self.db_path = self.test_dir / "store.sqlite3"
        self.paths = ExportPaths(
            pre_team=self.output_dir / "pre.csv",
            post_team=self.output_dir / "post.csv",
            to_check=self.output_dir / "check.csv",
        )

    def tearDown(self):
        shutil.rmtree(self.test_dir, ignore_errors=True)

    def _import(self, run_date=RUN_DATE):
        return run_import(
            self.db_path,
            run_date,
            self.input_dir / f"elevate-accounts-{run_date}.csv",
            self.input_dir / f"crm-accounts-{run_date}.csv",
            [
                self.input_dir / f"cancelled-mandates-{run_date}.csv",
                self.input_dir / f"failed-mandates-{run_date}.csv",
            ],
        )

    def _process(self, run_date=RUN_DATE):
        engine = open_store(self.db_path)
        try:
            return run_processing(engine, run_date, self.paths, self.output_dir / "report.csv")
        finally:
            engine.dispose()

    def test_bridged_event_goes_to_post_team(self):
        write_day_exports(self.input_dir)
        self._import()
        counts, report = self._process()

        post = read_out(self.paths.post_team)
        pre = read_out(self.paths.pre_team)
        check = read_out(self.paths.to_check)

        self.assertEqual(post["id"].tolist(), ["EVT1"])
        evt1 = post.iloc[0]
        self.assertEqual(evt1["crm_id"], "CRM9")
        self.assertEqual(evt1["crm_account_number"], "ACC9")
        self.assertEqual(evt1["crm_stage_name"], "PROVISIONING")
        self.assertEqual(evt1["crm_email"], "grace@example.com")
        self.assertEqual(evt1["target_team"], TEAM_POST_INSTALLATION)
        self.assertEqual(evt1["imported_at"], RUN_DATE)
        self.assertNotIn("EVT1", pre["id"].tolist() + check["id"].tolist())

        # EVT2 resolves to an ACTIVE account but the override wins
        self.assertEqual(check["id"].tolist(), ["EVT2"])
        self.assertEqual(check.iloc[0]["target_team"], TEAM_NO_ACTION_AT_OUR_REQUEST)
        self.assertEqual(check.iloc[0]["crm_id"], "CRM5")

        # EVT3 is unmatched and defaults to pre-installation with empty CRM fields
        self.assertEqual(pre["id"].tolist(), ["EVT3"])
        self.assertEqual(pre.iloc[0]["crm_id"], "")
        self.assertEqual(pre.iloc[0]["target_team"], TEAM_PRE_INSTALLATION)

        self.assertEqual(counts, {"pre": 1, "post": 1, "check": 1})
        methods = dict(zip(report["id"], report["Match_Method"]))
        self.assertEqual(methods, {"EVT1": "M2_MANDATE_BRIDGE", "EVT2": "M3_CUSTOMER_ID", "EVT3": "UNMATCHED"})
        self.assertTrue((self.output_dir / "report.csv").exists())

    def test_only_todays_events_are_processed(self):
        write_day_exports(self.input_dir)
        self._import()
        write_events_csv(self.input_dir / "cancelled-mandates-2024-05-02.csv", [
            {"id": "EVT1", "details_description": "re-sent"},
            {"id": "EVT9", "details_description": "new today"},
        ])
        self._import("2024-05-02")

        counts, report = self._process("2024-05-02")
        self.assertEqual(report["id"].tolist(), ["EVT9"])
        self.assertEqual(sum(counts.values()), 1)

    def test_rerun_is_stable(self):
        write_day_exports(self.input_dir)
        self._import()
        self._import()
        counts, _ = self._process()
        self.assertEqual(sum(counts.values()), 3)

    def test_no_events_still_writes_three_files(self):
        self._import()
        counts, report = self._process()
        self.assertTrue(report.empty)
        for path in self.paths.by_destination().values():
            self.assertEqual(path.read_text(encoding="utf-8"), HEADER_LINE)


class TestScripts(unittest.TestCase):

    def setUp(self):
        self.code_dir = Path(__file__).resolve().parents[1] / "code"
        self.test_dir = Path(tempfile.mkdtemp())
        self.input_dir = self.test_dir / "in"
        self.output_dir = self.test_dir / "out"
        self.input_dir.mkdir()

    def tearDown(self):
        shutil.rmtree(self.test_dir, ignore_errors=True)

    def run_script(self, name, *args):
        return subprocess.run(
            [sys.executable, str(self.code_dir / name), *args],
            capture_output=True,
            text=True,
        )

    def test_stages_as_scripts(self):
        write_day_exports(self.input_dir)
        common = ["--input_dir", str(self.input_dir), "--date", RUN_DATE]

        result = self.run_script("import_mandates.py", *common)
        self.assertEqual(result.returncode, 0, f"Import failed: {result.stderr}")
        self.assertIn("Import complete", result.stdout)

        result = self.run_script("process_mandates.py", *common, "--output_dir", str(self.output_dir))
        self.assertEqual(result.returncode, 0, f"Processing failed: {result.stderr}")
        self.assertIn("Processing complete", result.stdout)
        self.assertIn("M2_MANDATE_BRIDGE", result.stdout)

        post = read_out(self.output_dir / f"mandates-to-process-by-post-installation-team-{RUN_DATE}.csv")
        self.assertEqual(post["id"].tolist(), ["EVT1"])
        self.assertTrue((self.output_dir / f"mandates-to-process-by-pre-installation-team-{RUN_DATE}.csv").exists())
        self.assertTrue((self.output_dir / f"mandates-to-check-{RUN_DATE}.csv").exists())
        self.assertTrue((self.output_dir / f"resolution-report-{RUN_DATE}.csv").exists())

    def test_run_pipeline(self):
        write_day_exports(self.input_dir)
        result = self.run_script(
            "run_pipeline.py",
            "--input_dir", str(self.input_dir),
            "--output_dir", str(self.output_dir),
            "--date", RUN_DATE,
        )
        self.assertEqual(result.returncode, 0, f"Pipeline failed: {result.stderr}")
        self.assertIn("Pipeline complete", result.stdout)
        check = read_out(self.output_dir / f"mandates-to-check-{RUN_DATE}.csv")
        self.assertEqual(check["id"].tolist(), ["EVT2"])

    def test_process_without_database_fails(self):
        result = self.run_script(
            "process_mandates.py",
            "--input_dir", str(self.input_dir),
            "--date", RUN_DATE,
        )
        self.assertNotEqual(result.returncode, 0)
        self.assertIn("Mandate database not found", result.stderr)

    def test_malformed_export_fails_import(self):
        (self.input_dir / f"crm-accounts-{RUN_DATE}.csv").write_text("only,three,columns\n")
        result = self.run_script("import_mandates.py", "--input_dir", str(self.input_dir), "--date", RUN_DATE)
        self.assertNotEqual(result.returncode, 0)
        self.assertIn("IngestionError", result.stderr)

    def test_invalid_date_rejected(self):
        result = self.run_script("import_mandates.py", "--input_dir", str(self.input_dir), "--date", "01/05/2024")
        self.assertNotEqual(result.returncode, 0)
        self.assertIn("YYYY-MM-DD", result.stderr)


if __name__ == "__main__":
    unittest.main(verbosity=2)
