"""
Scanner session id for the audit trail.

Every enrollment, attendance decision and deletion written to events.jsonl
carries a run id, so the events produced by one scanner deployment can be
pulled out of a shared log. The id lives in a small text file under DATA_DIR
and survives restarts of the same deployment; clearing it starts a new
session.
"""

import os
import uuid
from datetime import datetime, timezone
from pathlib import Path

from rollcall.config import DATA_DIR

RUN_ID_FILE = os.path.join(DATA_DIR, "current_run_id.txt")


def new_run_id(now: datetime = None) -> str:
    """run_<UTC yyyymmdd_hhmmss>_<6 hex>; the suffix separates scanners started together."""
    now = now or datetime.now(timezone.utc)
    return f"run_{now.strftime('%Y%m%d_%H%M%S')}_{uuid.uuid4().hex[:6]}"


def get_or_create_run_id(run_id_file: str = RUN_ID_FILE) -> str:
    """Return the session id stored in run_id_file, starting a session if there is none."""
    path = Path(run_id_file)
    if path.exists():
        stored = path.read_text(encoding="utf-8").strip()
        if stored:
            return stored

    path.parent.mkdir(parents=True, exist_ok=True)
    run_id = new_run_id()
    path.write_text(run_id, encoding="utf-8")
    return run_id


def clear_run_id(run_id_file: str = RUN_ID_FILE) -> None:
    """End the current scanner session."""
    Path(run_id_file).unlink(missing_ok=True)
