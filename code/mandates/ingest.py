"""
ingest.py

Loads the three daily CSV exports into the mandate store.

Input Contract
--------------
Every file must have a header row. Fields are mapped by position:
- Elevate accounts : col 0 account number, col 2 customer name, col 30 mandate reference
- CRM accounts     : cols 0, 2, 4, 6, 7, 8, 9, 10 (see schema.CRM_SOURCE_POSITIONS)
- Mandate events   : cols 0..27 (see schema.EVENT_SOURCE_COLUMNS)

Write Policy
------------
- elevateAccounts, mandateEvents: insert-or-skip. A row whose key already exists
  is counted as skipped and the stored values are kept.
- crmAccounts: upsert. The stored row takes the latest name, email, premise,
  stage, processor id and support user id.

Errors
------
- Missing file: skip notice, returns None.
- Empty file / missing or short header / unparseable CSV: IngestionError (fatal).
- Data row wider than the header: counted as failed, printed, other rows still load.
- Any other per-row database error: counted as failed, printed, import continues.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Union

import pandas as pd
from sqlalchemy import Table
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from .schema import (
    CRM_COLUMNS,
    CRM_SOURCE_POSITIONS,
    CRM_UPDATE_COLUMNS,
    ELEVATE_COLUMNS,
    ELEVATE_SOURCE_POSITIONS,
    EVENT_COLUMNS,
    EVENT_SOURCE_COLUMNS,
    crm_accounts,
    elevate_accounts,
    mandate_events,
)

PathLike = Union[str, Path]


class IngestionError(Exception):
    """Raised when an input file cannot be read as a headed CSV of the expected shape."""


@dataclass
class ImportResult:
    source_file: str
    table: str
    rows_read: int = 0
    written: int = 0
    skipped: int = 0
    failed: int = 0
    errors: List[str] = field(default_factory=list)

    def summary_line(self) -> str:
        return (
            f"{self.table}: {self.rows_read} read, {self.written} written, "
            f"{self.skipped} skipped, {self.failed} failed ({self.source_file})"
        )


@dataclass
class SourceRows:
    """Data rows of one export plus the lines rejected for having too many fields."""
    rows: pd.DataFrame
    rejected: List[str] = field(default_factory=list)


# ======================================================
# CSV READING
# ======================================================

def read_source_csv(csv_path: PathLike, min_columns: int, label: str) -> Optional[SourceRows]:
    """
    Read a headed CSV as all-string columns.

    Returns None when the file does not exist (that day's export was not provided).
    A data row wider than the header is rejected on its own; shorter rows are padded.
    """
    path = Path(csv_path)
    if not path.exists():
        print(f"→ Skipping {label} (no file at {path})")
        return None

    rejected: List[str] = []

    # returning None tells pandas to drop the line
    def _reject(bad_line: List[str]) -> None:
        first = bad_line[0] if bad_line else ""
        rejected.append(f"Malformed {label} row in {path}: {len(bad_line)} fields (first field {first!r})")

    # header=None: the header row fixes the field count, wider rows go to _reject
    try:
        raw = pd.read_csv(
            path,
            header=None,
            dtype=str,
            keep_default_na=False,
            engine="python",
            on_bad_lines=_reject,
        )
    except pd.errors.EmptyDataError as exc:
        raise IngestionError(f"Missing header row in {label} file: {path}") from exc
    except pd.errors.ParserError as exc:
        raise IngestionError(f"Malformed {label} file {path}: {exc}") from exc

    if len(raw.columns) < min_columns:
        raise IngestionError(
            f"{label} file {path} has {len(raw.columns)} header columns; "
            f"expected at least {min_columns}"
        )

    return SourceRows(raw.iloc[1:].reset_index(drop=True).fillna(""), rejected)


def _pick_positions(df: pd.DataFrame, positions: Dict[str, int], columns: List[str]) -> pd.DataFrame:
    picked = pd.DataFrame({name: df.iloc[:, pos].astype(str) for name, pos in positions.items()})
    return picked[columns]


def map_elevate_rows(df: pd.DataFrame) -> pd.DataFrame:
    return _pick_positions(df, ELEVATE_SOURCE_POSITIONS, ELEVATE_COLUMNS)


def map_crm_rows(df: pd.DataFrame) -> pd.DataFrame:
    return _pick_positions(df, CRM_SOURCE_POSITIONS, CRM_COLUMNS)


def full_customer_name(given: str, family: str) -> str:
    return f"{given} {family}"


def map_event_rows(df: pd.DataFrame, imported_at: str) -> pd.DataFrame:
    """Map the events export to the 32 stored columns, stamping imported_at."""
    n_source = len(EVENT_SOURCE_COLUMNS)
    events = pd.DataFrame(df.iloc[:, :n_source].to_numpy(), columns=EVENT_SOURCE_COLUMNS).astype(str)
    events["customers_metadata_xero"] = ""
    events["mandates_metadata_xero"] = ""
    events["imported_at"] = imported_at
    events["customers_name"] = [
        full_customer_name(g, f)
        for g, f in zip(events["customers_given_name"], events["customers_family_name"])
    ]
    return events[EVENT_COLUMNS]


# ======================================================
# WRITES
# ======================================================

def _insert_or_skip(table: Table, key: str):
    return sqlite_insert(table).on_conflict_do_nothing(index_elements=[key])


def _upsert_crm():
    stmt = sqlite_insert(crm_accounts)
    return stmt.on_conflict_do_update(
        index_elements=["crm_id"],
        set_={name: stmt.excluded[name] for name in CRM_UPDATE_COLUMNS},
    )


def _write_rows(engine: Engine, stmt, source: SourceRows, rows: pd.DataFrame, table: Table, key: str,
                source_file: PathLike) -> ImportResult:
    result = ImportResult(
        source_file=str(source_file),
        table=table.name,
        rows_read=len(rows) + len(source.rejected),
        failed=len(source.rejected),
        errors=list(source.rejected),
    )
    for msg in source.rejected:
        print(f"✗ {msg}")

    with engine.begin() as conn:
        for record in rows.to_dict("records"):
            try:
                outcome = conn.execute(stmt, record)
            except SQLAlchemyError as exc:
                result.failed += 1
                msg = f"Insert into {table.name} failed for {key} = {record.get(key, '')}: {exc}"
                result.errors.append(msg)
                print(f"✗ {msg}")
                continue

            # ON CONFLICT DO NOTHING reports zero affected rows
            if outcome.rowcount == 0:
                result.skipped += 1
            else:
                result.written += 1

    print(f"✓ {result.summary_line()}")
    return result


def import_elevate_accounts(engine: Engine, csv_path: PathLike) -> Optional[ImportResult]:
    source = read_source_csv(csv_path, max(ELEVATE_SOURCE_POSITIONS.values()) + 1, "Elevate accounts")
    if source is None:
        return None
    rows = map_elevate_rows(source.rows)
    stmt = _insert_or_skip(elevate_accounts, "elevate_account_number")
    return _write_rows(engine, stmt, source, rows, elevate_accounts, "elevate_account_number", csv_path)


def import_crm_accounts(engine: Engine, csv_path: PathLike) -> Optional[ImportResult]:
    source = read_source_csv(csv_path, max(CRM_SOURCE_POSITIONS.values()) + 1, "CRM accounts")
    if source is None:
        return None
    rows = map_crm_rows(source.rows)
    return _write_rows(engine, _upsert_crm(), source, rows, crm_accounts, "crm_id", csv_path)


def import_mandate_events(engine: Engine, csv_path: PathLike, imported_at: str) -> Optional[ImportResult]:
    source = read_source_csv(csv_path, len(EVENT_SOURCE_COLUMNS), "mandate events")
    if source is None:
        return None
    rows = map_event_rows(source.rows, imported_at)
    stmt = _insert_or_skip(mandate_events, "id")
    return _write_rows(engine, stmt, source, rows, mandate_events, "id", csv_path)
