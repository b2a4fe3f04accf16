#!/usr/bin/env python3
"""
run_pipeline.py

Single entrypoint to run:
Stage 1 (import exports into the store) -> Stage 2 (resolve, classify, export).

Design:
- Uses code/.env as the single source of truth where possible.
- Each stage runs as its own process (argparse-based scripts); stage 2 only
  starts once stage 1 has committed, so the store is never written while it
  is being read.
- --input_dir / --output_dir / --db / --date are forwarded to the stages that accept them.
"""

from __future__ import annotations

import argparse
import os
import sys
import subprocess
from pathlib import Path

from dotenv import load_dotenv


def _run(cmd: list[str]) -> None:
    print("\nRUN:", " ".join(cmd))
    subprocess.check_call(cmd)


def _forward(args: argparse.Namespace, names: list[str]) -> list[str]:
    out: list[str] = []
    for name in names:
        value = getattr(args, name)
        if value:
            out += [f"--{name}", value]
    return out


def main() -> None:
    code_dir = Path(__file__).resolve().parent

    load_dotenv(code_dir / ".env")

    ap = argparse.ArgumentParser(description="Import exports, then route mandate events to teams")
    ap.add_argument("--input_dir", type=str)
    ap.add_argument("--output_dir", type=str)
    ap.add_argument("--db", type=str)
    ap.add_argument("--date", type=str)
    args = ap.parse_args()

    if not (args.input_dir or os.getenv("MANDATES_INPUT_DIR")):
        raise ValueError("Missing MANDATES_INPUT_DIR in code/.env (or pass --input_dir)")

    # ---- Stage 1: Import exports ----
    _run([
        sys.executable, str(code_dir / "import_mandates.py"),
        *_forward(args, ["input_dir", "db", "date"]),
    ])

    # ---- Stage 2: Resolve + export ----
    _run([
        sys.executable, str(code_dir / "process_mandates.py"),
        *_forward(args, ["input_dir", "output_dir", "db", "date"]),
    ])

    print("\nPipeline complete.")


if __name__ == "__main__":
    main()
