from __future__ import annotations

from pathlib import Path
from typing import Union

import pandas as pd
from sqlalchemy import create_engine, literal_column, select
from sqlalchemy.engine import Engine

from .schema import (
    CRM_COLUMNS,
    ELEVATE_COLUMNS,
    EVENT_COLUMNS,
    crm_accounts,
    elevate_accounts,
    mandate_events,
    metadata,
)

# Insertion order; SQLite keeps it stable for tables with a TEXT primary key.
_STORE_ORDER = literal_column("rowid")


def open_store(db_path: Union[str, Path]) -> Engine:
    """
    Open (or create) the SQLite store and make sure tables and indexes exist.

    Raises whatever the driver raises when the file cannot be opened; callers
    treat that as fatal.
    """
    engine = create_engine(f"sqlite:///{db_path}")
    metadata.create_all(engine)
    return engine


def _read_table(engine: Engine, stmt, columns) -> pd.DataFrame:
    with engine.connect() as conn:
        df = pd.read_sql(stmt, conn)
    if df.empty:
        return pd.DataFrame(columns=columns)
    return df[columns].fillna("").astype(str)


def events_imported_on(engine: Engine, run_date: str) -> pd.DataFrame:
    """Events stamped with run_date, in the order they were ingested."""
    stmt = (
        select(mandate_events)
        .where(mandate_events.c.imported_at == run_date)
        .order_by(_STORE_ORDER)
    )
    return _read_table(engine, stmt, EVENT_COLUMNS)


def load_crm_accounts(engine: Engine) -> pd.DataFrame:
    return _read_table(engine, select(crm_accounts).order_by(_STORE_ORDER), CRM_COLUMNS)


def load_elevate_accounts(engine: Engine) -> pd.DataFrame:
    return _read_table(engine, select(elevate_accounts).order_by(_STORE_ORDER), ELEVATE_COLUMNS)
