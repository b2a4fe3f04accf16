#!/usr/bin/env python3
"""
process_mandates.py  (Stage 2: resolve, classify, export)

For every mandate event imported on the run date:
1. Resolve the CRM account (mandates.resolution cascade, M1 -> M4, first match wins)
2. Assign the target team from the CRM stage + event description (mandates.teams)
3. Route the 42-column row to one of three files:
   - mandates-to-process-by-pre-installation-team-YYYY-MM-DD.csv   (Pre-Installation)
   - mandates-to-process-by-post-installation-team-YYYY-MM-DD.csv  (Post-Installation)
   - mandates-to-check-YYYY-MM-DD.csv                              (everything else)

Unmatched events are not errors: they go out with empty CRM fields and the
default team. All three files are written, header included, on every run.

Also writes resolution-report-YYYY-MM-DD.csv (one line per event: match method,
strategies attempted, lookup diagnostics) and prints a per-method / per-team summary.

Usage:
  python process_mandates.py --input_dir in/ --output_dir out/ [--date 2024-05-01]
"""

from __future__ import annotations

import argparse
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import pandas as pd
from sqlalchemy.engine import Engine

from mandates.export import ExportPaths, build_output_row, write_partitions
from mandates.io import ensure_dirs, load_settings
from mandates.resolution import MATCH_STRATEGIES, UNMATCHED, ReferenceIndex, resolve_event
from mandates.schema import OUTPUT_COLUMNS
from mandates.store import events_imported_on, open_store
from mandates.teams import classify_team

REPORT_COLUMNS = [
    "id",
    "Match_Method",
    "Methods_Attempted",
    "crm_id",
    "crm_stage_name",
    "target_team",
    "Diagnostics",
]


def process_events(events: pd.DataFrame, reference: ReferenceIndex) -> Tuple[pd.DataFrame, pd.DataFrame]:
    """
    Resolve and classify a batch of events.

    Returns:
        (resolved, report) where resolved has OUTPUT_COLUMNS in event order and
        report has REPORT_COLUMNS, one row per event.
    """
    rows: List[Dict[str, str]] = []
    report: List[Dict[str, str]] = []

    for event in events.to_dict("records"):
        resolution = resolve_event(event, reference)
        team = classify_team(resolution.profile.crm_stage_name, event.get("details_description", ""))
        rows.append(build_output_row(event, resolution.profile, team))
        report.append({
            "id": str(event.get("id", "")),
            "Match_Method": resolution.method,
            "Methods_Attempted": "|".join(resolution.attempted),
            "crm_id": resolution.profile.crm_id,
            "crm_stage_name": resolution.profile.crm_stage_name,
            "target_team": team,
            "Diagnostics": " | ".join(resolution.diagnostics),
        })

    return (
        pd.DataFrame(rows, columns=OUTPUT_COLUMNS),
        pd.DataFrame(report, columns=REPORT_COLUMNS),
    )


def run_processing(
    engine: Engine,
    run_date: str,
    paths: ExportPaths,
    report_csv: Optional[Path] = None,
) -> Tuple[Dict[str, int], pd.DataFrame]:
    reference = ReferenceIndex.from_store(engine)
    events = events_imported_on(engine, run_date)

    resolved, report = process_events(events, reference)
    counts = write_partitions(resolved, paths)

    if report_csv is not None:
        report_csv.parent.mkdir(parents=True, exist_ok=True)
        report.to_csv(report_csv, index=False)

    print_console_summary(run_date, len(reference), report, counts, paths)
    return counts, report


def print_console_summary(
    run_date: str,
    n_crm: int,
    report: pd.DataFrame,
    counts: Dict[str, int],
    paths: ExportPaths,
) -> None:
    print(f"Events imported on {run_date}: {len(report)}")
    print(f"CRM accounts indexed: {n_crm}")

    print("\nMatch method breakdown:")
    by_method = report["Match_Method"].value_counts()
    for method_id in [st.method_id for st in MATCH_STRATEGIES] + [UNMATCHED]:
        print(f"  {method_id:<18} {int(by_method.get(method_id, 0))}")

    print("\nTarget team breakdown:")
    for team, n in report["target_team"].value_counts().items():
        print(f"  {team:<28} {n}")

    diag = report[report["Diagnostics"] != ""]
    if not diag.empty:
        print(f"\n⚠ {len(diag)} events had lookup errors:")
        print(diag[["id", "Diagnostics"]].to_string(index=False))

    print("\nWrote:")
    for dest, path in paths.by_destination().items():
        print(f"  {counts.get(dest, 0):>5} rows -> {path}")


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    ap = argparse.ArgumentParser(description="Route today's mandate events to the acting team")
    ap.add_argument("--input_dir", type=str, help="Directory holding the day's exports / database")
    ap.add_argument("--output_dir", type=str, help="Directory to write the team files to")
    ap.add_argument("--db", type=str, help="SQLite database to read from")
    ap.add_argument("--date", type=str, help="Run date YYYY-MM-DD (default: today)")
    ap.add_argument("--to_pre", type=str, help="CSV file for the pre-installation team")
    ap.add_argument("--to_post", type=str, help="CSV file for the post-installation team")
    ap.add_argument("--to_check", type=str, help="CSV file for everything else")
    ap.add_argument("--report", type=str, help="CSV file for the resolution report")
    return ap.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> None:
    args = parse_args(argv)
    s = load_settings(
        input_dir=args.input_dir,
        output_dir=args.output_dir,
        run_date=args.date,
        db_path=args.db,
    )
    ensure_dirs(s)

    paths = ExportPaths(
        pre_team=Path(args.to_pre) if args.to_pre else s.to_pre_csv,
        post_team=Path(args.to_post) if args.to_post else s.to_post_csv,
        to_check=Path(args.to_check) if args.to_check else s.to_check_csv,
    )
    report_csv = Path(args.report) if args.report else s.report_csv

    if not s.db_path.exists():
        raise FileNotFoundError(f"Mandate database not found: {s.db_path} (run import_mandates.py first)")

    print("=" * 60)
    print("PROCESS CANCELLED / FAILED MANDATES")
    print("=" * 60)
    print(f"Run date: {s.run_date}")
    print(f"Database: {s.db_path}")
    print()

    engine = open_store(s.db_path)
    try:
        run_processing(engine, s.run_date, paths, report_csv)
    finally:
        engine.dispose()

    print(f"\n✓ Processing complete -> {report_csv}")


if __name__ == "__main__":
    main()
