from __future__ import annotations

import csv
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Mapping

import pandas as pd

from .resolution import CrmProfile
from .schema import EVENT_COLUMNS, OUTPUT_COLUMNS
from .teams import TEAM_POST_INSTALLATION, TEAM_PRE_INSTALLATION

DEST_PRE = "pre"
DEST_POST = "post"
DEST_CHECK = "check"

HEADER_LINE = ",".join(OUTPUT_COLUMNS) + "\n"


@dataclass(frozen=True)
class ExportPaths:
    pre_team: Path
    post_team: Path
    to_check: Path

    def by_destination(self) -> Dict[str, Path]:
        return {DEST_PRE: self.pre_team, DEST_POST: self.post_team, DEST_CHECK: self.to_check}


def build_output_row(event: Mapping[str, object], profile: CrmProfile, target_team: str) -> Dict[str, str]:
    row = {c: "" if event.get(c) is None else str(event.get(c)) for c in EVENT_COLUMNS}
    row.update(profile.as_dict())
    row["crm_customer_name"] = ""
    row["target_team"] = target_team
    return {c: row[c] for c in OUTPUT_COLUMNS}


def route_team(target_team: str) -> str:
    if target_team == TEAM_PRE_INSTALLATION:
        return DEST_PRE
    if target_team == TEAM_POST_INSTALLATION:
        return DEST_POST
    return DEST_CHECK


def write_partitions(resolved: pd.DataFrame, paths: ExportPaths) -> Dict[str, int]:
    """
    Write each resolved row to the file for its team.

    All three files are (re)created with the header line even when no rows
    route to them. Data fields are always double-quoted.
    """
    if resolved.empty:
        resolved = pd.DataFrame(columns=OUTPUT_COLUMNS)

    destinations = resolved["target_team"].map(route_team)
    counts: Dict[str, int] = {}

    for dest, path in paths.by_destination().items():
        part = resolved.loc[destinations == dest, OUTPUT_COLUMNS]
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("w", encoding="utf-8", newline="") as f:
            f.write(HEADER_LINE)
            part.to_csv(f, header=False, index=False, quoting=csv.QUOTE_ALL, lineterminator="\n")
        counts[dest] = len(part)

    return counts
