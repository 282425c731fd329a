# rollcall/event_recorder.py
import datetime
import json
import logging
import os
import threading
from typing import Any, Dict

from rollcall.config import LOG_DIR
from rollcall.run_context import get_or_create_run_id

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1

_lock = threading.Lock()
_recorder = None


class EventRecorder:
    def __init__(self, log_dir: str = LOG_DIR, run_id: str = None):
        self.run_id = run_id or get_or_create_run_id()
        os.makedirs(log_dir, exist_ok=True)
        self.log_path = os.path.join(log_dir, "events.jsonl")

    def record(self, event_type: str, payload: Dict[str, Any], actor: str = "system"):
        """
        Writes a structured, immutable audit event to the log.
        """
        entry = {
            "schema_version": SCHEMA_VERSION,
            "timestamp": datetime.datetime.now(datetime.timezone.utc).isoformat(),
            "run_id": self.run_id,
            "event_type": event_type,
            "actor": actor,
            "payload": payload,
        }

        try:
            with _lock:
                with open(self.log_path, "a", encoding="utf-8") as f:
                    f.write(json.dumps(entry) + "\n")
                    f.flush()
                    os.fsync(f.fileno())
        except OSError as e:
            # Never fail an attendance mark because the audit trail is unwritable
            logger.warning(f"Event logging failed: {e}")


def get_event_recorder() -> EventRecorder:
    """Singleton accessor for the recorder."""
    global _recorder
    if _recorder is None:
        _recorder = EventRecorder()
    return _recorder


def set_event_recorder(recorder: EventRecorder | None) -> None:
    """Replace the process-wide recorder (None resets to lazy default)."""
    global _recorder
    _recorder = recorder
