import os
from datetime import date
from pathlib import Path
from typing import Optional

import pandas as pd
from dotenv import load_dotenv

from .config import Settings, build_settings

ENV_PATH = Path(__file__).resolve().parents[1] / ".env"


def today() -> str:
    return date.today().strftime("%Y-%m-%d")


def _check_run_date(run_date: str) -> str:
    try:
        pd.to_datetime(run_date, format="%Y-%m-%d", errors="raise")
    except ValueError as exc:
        raise ValueError(f"Run date must be YYYY-MM-DD, got {run_date!r}") from exc
    return run_date


def load_settings(
    input_dir: Optional[str] = None,
    output_dir: Optional[str] = None,
    run_date: Optional[str] = None,
    db_path: Optional[str] = None,
) -> Settings:
    """Arguments win over MANDATES_* variables from the environment / code/.env."""
    load_dotenv(ENV_PATH)
    input_dir = input_dir or os.getenv("MANDATES_INPUT_DIR")
    output_dir = output_dir or os.getenv("MANDATES_OUTPUT_DIR") or input_dir
    run_date = run_date or os.getenv("MANDATES_RUN_DATE") or today()
    db_path = db_path or os.getenv("MANDATES_DB")
    if not input_dir:
        raise ValueError("MANDATES_INPUT_DIR (or --input_dir) must be provided")
    return build_settings(input_dir, output_dir, _check_run_date(run_date), db_path)


def ensure_dirs(s: Settings):
    s.output_dir.mkdir(parents=True, exist_ok=True)
    s.db_path.parent.mkdir(parents=True, exist_ok=True)
