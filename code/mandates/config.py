from dataclasses import dataclass
from pathlib import Path
from typing import Optional

DEFAULT_DB_NAME = "cancelled-mandates-database.sqlite3"


@dataclass(frozen=True)
class Settings:
    run_date: str
    db_path: Path
    input_dir: Path
    output_dir: Path
    elevate_csv: Path
    crm_csv: Path
    cancelled_csv: Path
    failed_csv: Path
    to_pre_csv: Path
    to_post_csv: Path
    to_check_csv: Path
    report_csv: Path


def build_settings(input_dir: str, output_dir: str, run_date: str, db_path: Optional[str] = None) -> Settings:
    inp = Path(input_dir)
    out = Path(output_dir)
    return Settings(
        run_date=run_date,
        db_path=Path(db_path) if db_path else inp / DEFAULT_DB_NAME,
        input_dir=inp,
        output_dir=out,
        elevate_csv=inp / f"elevate-accounts-{run_date}.csv",
        crm_csv=inp / f"crm-accounts-{run_date}.csv",
        cancelled_csv=inp / f"cancelled-mandates-{run_date}.csv",
        failed_csv=inp / f"failed-mandates-{run_date}.csv",
        to_pre_csv=out / f"mandates-to-process-by-pre-installation-team-{run_date}.csv",
        to_post_csv=out / f"mandates-to-process-by-post-installation-team-{run_date}.csv",
        to_check_csv=out / f"mandates-to-check-{run_date}.csv",
        report_csv=out / f"resolution-report-{run_date}.csv",
    )
