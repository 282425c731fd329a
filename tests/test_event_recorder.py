"""
Tests for the audit event recorder and run context.
"""

import json
import os
from unittest.mock import patch

import pytest


class TestEventRecorder:

    def test_record_appends_json_line(self, tmp_path):
        from rollcall.event_recorder import SCHEMA_VERSION, EventRecorder

        recorder = EventRecorder(log_dir=str(tmp_path), run_id="run_x")
        recorder.record("ENROLL", {"identity_key": "R1"})
        recorder.record("ATTENDANCE", {"outcome": "accepted"}, actor="scanner")

        with open(recorder.log_path) as f:
            events = [json.loads(line) for line in f]

        assert [e["event_type"] for e in events] == ["ENROLL", "ATTENDANCE"]
        assert events[0]["schema_version"] == SCHEMA_VERSION
        assert events[0]["run_id"] == "run_x"
        assert events[0]["actor"] == "system"
        assert events[1]["actor"] == "scanner"
        assert events[1]["payload"] == {"outcome": "accepted"}

    def test_write_failure_does_not_raise(self, tmp_path):
        from rollcall.event_recorder import EventRecorder

        recorder = EventRecorder(log_dir=str(tmp_path), run_id="run_x")

        with patch("builtins.open", side_effect=OSError("disk full")):
            recorder.record("ENROLL", {"identity_key": "R1"})

    def test_singleton_accessor(self, event_log):
        from rollcall.event_recorder import get_event_recorder

        assert get_event_recorder() is event_log
        assert get_event_recorder() is get_event_recorder()


class TestRunContext:

    def test_run_id_persists(self, tmp_path):
        from rollcall.run_context import get_or_create_run_id

        run_file = str(tmp_path / "data" / "current_run_id.txt")

        first = get_or_create_run_id(run_file)
        second = get_or_create_run_id(run_file)

        assert first.startswith("run_")
        assert first == second

    def test_clear_run_id(self, tmp_path):
        from rollcall.run_context import clear_run_id, get_or_create_run_id

        run_file = str(tmp_path / "current_run_id.txt")
        get_or_create_run_id(run_file)

        clear_run_id(run_file)

        assert not os.path.exists(run_file)

    def test_clear_run_id_without_file(self, tmp_path):
        from rollcall.run_context import clear_run_id

        clear_run_id(str(tmp_path / "missing.txt"))

    def test_new_session_after_clear(self, tmp_path):
        from rollcall.run_context import clear_run_id, get_or_create_run_id

        run_file = str(tmp_path / "current_run_id.txt")
        first = get_or_create_run_id(run_file)
        clear_run_id(run_file)

        assert get_or_create_run_id(run_file) != first

    def test_blank_file_starts_new_session(self, tmp_path):
        from rollcall.run_context import get_or_create_run_id

        run_file = tmp_path / "current_run_id.txt"
        run_file.write_text("   \n")

        run_id = get_or_create_run_id(str(run_file))

        assert run_id.startswith("run_")
        assert run_file.read_text() == run_id

    def test_run_id_format(self):
        from datetime import datetime, timezone

        from rollcall.run_context import new_run_id

        run_id = new_run_id(datetime(2026, 3, 2, 9, 0, 0, tzinfo=timezone.utc))

        prefix, day, clock, suffix = run_id.split("_")
        assert (prefix, day, clock) == ("run", "20260302", "090000")
        assert len(suffix) == 6
