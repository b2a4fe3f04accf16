#!/usr/bin/env python3
"""
import_mandates.py  (Stage 1: ingest daily exports)

Loads the day's exports into the SQLite mandate store:
- elevate-accounts-YYYY-MM-DD.csv     -> elevateAccounts (insert-or-skip)
- crm-accounts-YYYY-MM-DD.csv         -> crmAccounts     (upsert)
- cancelled-mandates-YYYY-MM-DD.csv   -> mandateEvents   (insert-or-skip, imported_at = run date)
- failed-mandates-YYYY-MM-DD.csv      -> mandateEvents   (insert-or-skip, imported_at = run date)

A file that is not present for the day is skipped. Re-running the import is
idempotent: events and Elevate accounts already stored are left untouched.

IO:
- Reads MANDATES_INPUT_DIR / MANDATES_DB / MANDATES_RUN_DATE from code/.env (or env)
- Any path can be overridden on the command line

Usage:
  python import_mandates.py --input_dir in/ --db store.sqlite3 [--date 2024-05-01]
  python import_mandates.py --input_dir in/ --crm "crm export.csv"
"""

from __future__ import annotations

import argparse
from pathlib import Path
from typing import List, Optional

from mandates.ingest import (
    ImportResult,
    import_crm_accounts,
    import_elevate_accounts,
    import_mandate_events,
)
from mandates.io import ensure_dirs, load_settings
from mandates.store import open_store


def run_import(
    db_path: Path,
    run_date: str,
    elevate_csv: Path,
    crm_csv: Path,
    event_csvs: List[Path],
) -> List[ImportResult]:
    """
    Import reference data first, then events. Returns one result per file actually read.
    """
    engine = open_store(db_path)
    results: List[Optional[ImportResult]] = []
    try:
        results.append(import_elevate_accounts(engine, elevate_csv))
        results.append(import_crm_accounts(engine, crm_csv))
        for events_csv in event_csvs:
            results.append(import_mandate_events(engine, events_csv, run_date))
    finally:
        engine.dispose()
    return [r for r in results if r is not None]


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    ap = argparse.ArgumentParser(description="Import Elevate, CRM and mandate event exports")
    ap.add_argument("--input_dir", type=str, help="Directory holding the day's exports")
    ap.add_argument("--db", type=str, help="SQLite database to import to")
    ap.add_argument("--date", type=str, help="Run date YYYY-MM-DD (default: today)")
    ap.add_argument("--elevate", type=str, help="CSV file to import Elevate accounts from")
    ap.add_argument("--crm", type=str, help="CSV file to import CRM accounts from")
    ap.add_argument("--cancelled", type=str, help="CSV file to import cancelled mandates from")
    ap.add_argument("--failed", type=str, help="CSV file to import failed mandates from")
    return ap.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> None:
    args = parse_args(argv)
    s = load_settings(input_dir=args.input_dir, run_date=args.date, db_path=args.db)
    ensure_dirs(s)

    elevate_csv = Path(args.elevate) if args.elevate else s.elevate_csv
    crm_csv = Path(args.crm) if args.crm else s.crm_csv
    cancelled_csv = Path(args.cancelled) if args.cancelled else s.cancelled_csv
    failed_csv = Path(args.failed) if args.failed else s.failed_csv

    print("=" * 60)
    print("IMPORT MANDATE EXPORTS")
    print("=" * 60)
    print(f"Run date:  {s.run_date}")
    print(f"Database:  {s.db_path}")
    print(f"Elevate:   {elevate_csv}")
    print(f"CRM:       {crm_csv}")
    print(f"Cancelled: {cancelled_csv}")
    print(f"Failed:    {failed_csv}")
    print()

    results = run_import(s.db_path, s.run_date, elevate_csv, crm_csv, [cancelled_csv, failed_csv])

    failed = sum(r.failed for r in results)
    print(f"\nImported {len(results)} files.")
    if failed:
        print(f"⚠ {failed} rows failed to insert (see ✗ lines above)")
    print("✓ Import complete")


if __name__ == "__main__":
    main()
