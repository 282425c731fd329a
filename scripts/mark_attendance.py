#!/usr/bin/env python3
"""
Mark attendance for one probe embedding.

The probe file is JSON: a single vector, or an object with an "embedding" key.

Usage:
    python scripts/mark_attendance.py probe.json
    python scripts/mark_attendance.py probe.json --threshold 0.8 --json

Exit codes:
    0  accepted
    1  not recognized, or already marked within the cooldown window
    2  probe file unreadable, invalid probe, or store unavailable
"""

import argparse
import dataclasses
import json
import logging
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(project_root))

from rollcall.attendance import AttendanceOutcome, mark_attendance
from rollcall.config import STORE_PATH, AttendanceSettings
from rollcall.errors import InvalidEmbedding, StoreUnavailable
from rollcall.store import JsonFileStore

logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")
logger = logging.getLogger(__name__)


def load_probe(path: Path) -> list:
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    if isinstance(data, dict):
        data = data.get("embedding")
    return data


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Mark attendance from a probe embedding")
    parser.add_argument("probe", type=Path, help="JSON file with the probe embedding")
    parser.add_argument("--store", type=Path, default=Path(STORE_PATH))
    parser.add_argument("--threshold", type=float, default=None,
                        help="Override SIMILARITY_THRESHOLD")
    parser.add_argument("--cooldown", type=int, default=None,
                        help="Override COOLDOWN_SECONDS")
    parser.add_argument("--source", default=None, help="Ledger source tag")
    parser.add_argument("--json", action="store_true", help="Print the decision as JSON")
    args = parser.parse_args(argv)

    settings = AttendanceSettings.from_env()
    if args.threshold is not None:
        settings = dataclasses.replace(settings, similarity_threshold=args.threshold)
    if args.cooldown is not None:
        settings = dataclasses.replace(settings, cooldown_seconds=args.cooldown)

    try:
        probe = load_probe(args.probe)
    except (OSError, json.JSONDecodeError) as e:
        logger.error(f"Cannot read probe file {args.probe}: {e}")
        return 2

    try:
        decision = mark_attendance(
            JsonFileStore(args.store),
            probe,
            settings=settings,
            source=args.source,
        )
    except InvalidEmbedding as e:
        print(str(e))
        return 2
    except StoreUnavailable as e:
        logger.error(str(e))
        return 2

    if args.json:
        print(json.dumps(decision.to_dict(), indent=2))
    elif decision.outcome is AttendanceOutcome.ACCEPTED:
        print(f"Marked present: {decision.identity.name} ({decision.identity.key}) "
              f"at {decision.confidence}%")
    elif decision.outcome is AttendanceOutcome.DUPLICATE_WITHIN_COOLDOWN:
        print(f"Already marked: {decision.identity.name} ({decision.identity.key}) "
              f"within the last {settings.cooldown_seconds}s")
    else:
        print(f"Face not recognized (best confidence {decision.confidence}%)")

    return 0 if decision.accepted else 1


if __name__ == "__main__":
    sys.exit(main())
