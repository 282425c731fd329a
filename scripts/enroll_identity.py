#!/usr/bin/env python3
"""
Enroll a new identity from pre-computed face embeddings.

The embeddings file is JSON: either a list of vectors, or an object with an
"embeddings" key holding that list.

Usage:
    python scripts/enroll_identity.py R100 --name "Alice" --class 10 --section A --embeddings alice.json
    python scripts/enroll_identity.py R100 ... --store data/attendance.json

Exit codes:
    0  enrolled
    1  rejected (duplicate, too few samples, invalid embedding, missing fields)
    2  embeddings file unreadable, or store unavailable
"""

import argparse
import json
import logging
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(project_root))

from rollcall.config import STORE_PATH, AttendanceSettings
from rollcall.enrollment import enroll
from rollcall.errors import EnrollmentError, InvalidEmbedding, StoreUnavailable
from rollcall.store import JsonFileStore

logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")
logger = logging.getLogger(__name__)


def load_embeddings(path: Path) -> list:
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    if isinstance(data, dict):
        data = data.get("embeddings", [])
    return data


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Enroll an identity")
    parser.add_argument("roll_number", help="Unique external key")
    parser.add_argument("--name", required=True)
    parser.add_argument("--class", dest="class_name", required=True)
    parser.add_argument("--section", required=True)
    parser.add_argument("--embeddings", type=Path, required=True,
                        help="JSON file with the captured embeddings")
    parser.add_argument("--store", type=Path, default=Path(STORE_PATH))
    args = parser.parse_args(argv)

    try:
        embeddings = load_embeddings(args.embeddings)
    except (OSError, json.JSONDecodeError) as e:
        logger.error(f"Cannot read embeddings file {args.embeddings}: {e}")
        return 2

    store = JsonFileStore(args.store)
    try:
        identity = enroll(
            store,
            args.roll_number,
            {"name": args.name, "class_name": args.class_name, "section": args.section},
            embeddings,
            settings=AttendanceSettings.from_env(),
        )
    except (EnrollmentError, InvalidEmbedding) as e:
        print(f"Enrollment rejected: {e}")
        return 1
    except StoreUnavailable as e:
        logger.error(str(e))
        return 2

    print(f"Enrolled {identity.key} ({identity.name}) with {identity.embedding_count} embeddings")
    return 0


if __name__ == "__main__":
    sys.exit(main())
