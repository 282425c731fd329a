#!/usr/bin/env python3
"""
Delete an enrolled identity and all of its attendance records.

Usage:
    python scripts/delete_identity.py R100 --dry-run
    python scripts/delete_identity.py R100

Safety:
    - Administrative action; the records removed cannot be recovered
    - --dry-run prints what would be removed without writing
"""

import argparse
import logging
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(project_root))

from rollcall.config import STORE_PATH
from rollcall.event_recorder import get_event_recorder
from rollcall.store import JsonFileStore

logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")
logger = logging.getLogger(__name__)


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Delete an identity")
    parser.add_argument("roll_number")
    parser.add_argument("--store", type=Path, default=Path(STORE_PATH))
    parser.add_argument("--dry-run", action="store_true")
    args = parser.parse_args(argv)

    store = JsonFileStore(args.store)
    identity = store.get_identity(args.roll_number)
    if identity is None:
        print(f"Identity not found: {args.roll_number}")
        return 1

    if args.dry_run:
        count = sum(1 for r in store.list_records() if r.identity_key == identity.key)
        print(f"[dry-run] Would delete {identity.key} ({identity.name}) "
              f"and {count} attendance records")
        return 0

    removed = store.delete_identity(identity.key)
    get_event_recorder().record("DELETE_IDENTITY", {
        "identity_key": identity.key,
        "records_removed": removed,
    }, actor="admin")
    print(f"Deleted {identity.key} ({identity.name}) and {removed} attendance records")
    return 0


if __name__ == "__main__":
    sys.exit(main())
