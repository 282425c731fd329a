#!/usr/bin/env python3
"""
Print the daily attendance summary.

Usage:
    python scripts/attendance_summary.py                 # today (UTC)
    python scripts/attendance_summary.py --day 2026-03-02
"""

import argparse
import json
import sys
from datetime import date
from pathlib import Path

# Add project root to path
project_root = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(project_root))

from rollcall.config import STORE_PATH
from rollcall.reports import daily_summary
from rollcall.store import JsonFileStore


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Daily attendance summary")
    parser.add_argument("--day", type=date.fromisoformat, default=None,
                        help="ISO date (default: today, UTC)")
    parser.add_argument("--store", type=Path, default=Path(STORE_PATH))
    args = parser.parse_args(argv)

    summary = daily_summary(JsonFileStore(args.store), day=args.day)
    print(json.dumps(summary.to_dict(), indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
