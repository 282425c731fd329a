"""
Tests for the attendance decision engine.

Each attempt must end in exactly one of ACCEPTED, NOT_RECOGNIZED or
DUPLICATE_WITHIN_COOLDOWN, and only ACCEPTED writes to the ledger.
"""

from dataclasses import replace
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest

T0 = datetime(2026, 3, 2, 9, 0, 0, tzinfo=timezone.utc)


def padded(values, dim=128):
    vector = [0.0] * dim
    vector[:len(values)] = values
    return vector


@pytest.fixture
def alice(store, settings):
    """Gallery with Alice enrolled: [1,0,0,...], [0.9,0.1,0,...], [0.8,0.2,0,...]."""
    from rollcall.enrollment import enroll

    return enroll(
        store,
        "R100",
        {"name": "Alice", "class_name": "10", "section": "A"},
        [padded([1.0]), padded([0.9, 0.1]), padded([0.8, 0.2])],
        settings=settings,
    )


class TestNotRecognized:
    """Probes that must not produce a ledger entry."""

    def test_empty_gallery(self, store, settings, random_embeddings):
        from rollcall.attendance import AttendanceOutcome, mark_attendance

        for probe in random_embeddings(3):
            decision = mark_attendance(store, probe, settings=settings, now=T0)
            assert decision.outcome is AttendanceOutcome.NOT_RECOGNIZED
            assert decision.identity is None

        assert store.list_records() == []

    def test_opposite_vector(self, store, settings, alice):
        """Similarity -1 is below threshold and reported unclamped."""
        from rollcall.attendance import AttendanceOutcome, mark_attendance

        decision = mark_attendance(store, padded([-1.0]), settings=settings, now=T0)

        assert decision.outcome is AttendanceOutcome.NOT_RECOGNIZED
        assert decision.similarity == pytest.approx(-1.0)
        assert decision.confidence == 0
        assert decision.record is None
        assert store.list_records() == []

    def test_just_below_threshold(self, store, settings):
        """cos ~= 0.74999 against the only enrolled identity is rejected."""
        from rollcall.attendance import AttendanceOutcome, mark_attendance
        from rollcall.enrollment import enroll

        enroll(store, "R1", {"name": "Solo", "class_name": "9", "section": "B"},
               [padded([1.0])] * 3, settings=settings)

        # x / sqrt(x^2 + 7) at x = 2.9999 is just under 3/4
        decision = mark_attendance(store, padded([2.9999, 2.0, 1.0, 1.0, 1.0]),
                                   settings=settings, now=T0)

        assert 0.7499 < decision.similarity < 0.75
        assert decision.outcome is AttendanceOutcome.NOT_RECOGNIZED
        assert store.list_records() == []

    def test_not_recognized_hides_identity(self, store, settings, alice):
        """A rejected probe does not leak the nearest identity to the caller."""
        from rollcall.attendance import mark_attendance

        decision = mark_attendance(store, padded([0.0, 0.0, 1.0]), settings=settings, now=T0)

        assert decision.identity is None
        assert "name" not in decision.to_dict()
        assert decision.to_dict()["outcome"] == "not_recognized"

    def test_invalid_probe_raises(self, store, settings, alice):
        from rollcall.attendance import mark_attendance
        from rollcall.errors import InvalidEmbedding

        with pytest.raises(InvalidEmbedding):
            mark_attendance(store, [1.0] * 5, settings=settings, now=T0)


class TestAccepted:
    """Recognized probes outside any cooldown window."""

    def test_exactly_at_threshold_is_accepted(self, store, settings):
        """(3,2,1,1,1) vs (1,0,...) is exactly 0.75."""
        from rollcall.attendance import AttendanceOutcome, mark_attendance
        from rollcall.enrollment import enroll

        enroll(store, "R1", {"name": "Solo", "class_name": "9", "section": "B"},
               [padded([1.0])] * 3, settings=settings)

        decision = mark_attendance(store, padded([3.0, 2.0, 1.0, 1.0, 1.0]),
                                   settings=settings, now=T0)

        assert decision.similarity == pytest.approx(0.75)
        assert decision.outcome is AttendanceOutcome.ACCEPTED
        assert decision.confidence == 75

    def test_identical_probe_records_attendance(self, store, settings, alice):
        from rollcall.attendance import AttendanceOutcome, mark_attendance

        decision = mark_attendance(store, padded([1.0]), settings=settings, now=T0)

        assert decision.outcome is AttendanceOutcome.ACCEPTED
        assert decision.accepted
        assert decision.identity.key == "R100"
        assert decision.confidence == 100

        records = store.list_records()
        assert len(records) == 1
        assert records[0] is decision.record
        assert records[0].identity_key == "R100"
        assert records[0].confidence == 100
        assert records[0].source == "scanner"
        assert records[0].timestamp == T0
        assert records[0].name == "Alice"

    def test_source_tag_override(self, store, settings, alice):
        from rollcall.attendance import mark_attendance

        decision = mark_attendance(store, padded([1.0]), settings=settings,
                                   now=T0, source="kiosk-2")

        assert decision.record.source == "kiosk-2"

    def test_to_dict_carries_identity_and_record(self, store, settings, alice):
        from rollcall.attendance import mark_attendance

        payload = mark_attendance(store, padded([1.0]), settings=settings, now=T0).to_dict()

        assert payload["outcome"] == "accepted"
        assert payload["name"] == "Alice"
        assert payload["roll_number"] == "R100"
        assert payload["class"] == "10"
        assert payload["section"] == "A"
        assert payload["confidence"] == 100
        assert payload["attendance"]["timestamp"] == T0.isoformat()

    def test_threshold_is_configurable(self, store, settings, alice):
        """A stricter threshold rejects a probe that 0.75 accepts."""
        from rollcall.attendance import AttendanceOutcome, mark_attendance

        # Best over Alice's set is vs [0.8, 0.2]: cos ~= 0.934
        probe = padded([1.0, 0.7])
        strict = replace(settings, similarity_threshold=0.95)

        assert mark_attendance(store, probe, settings=strict, now=T0).outcome \
            is AttendanceOutcome.NOT_RECOGNIZED
        assert mark_attendance(store, probe, settings=settings, now=T0).outcome \
            is AttendanceOutcome.ACCEPTED


class TestCooldown:
    """Duplicate suppression within the cooldown window."""

    def test_second_mark_inside_cooldown_is_duplicate(self, store, settings, alice):
        from rollcall.attendance import AttendanceOutcome, mark_attendance

        mark_attendance(store, padded([1.0]), settings=settings, now=T0)
        decision = mark_attendance(store, padded([1.0]), settings=settings,
                                   now=T0 + timedelta(minutes=4, seconds=59))

        assert decision.outcome is AttendanceOutcome.DUPLICATE_WITHIN_COOLDOWN
        assert decision.identity.key == "R100"
        assert decision.identity.name == "Alice"
        assert decision.record is None
        assert len(store.list_records()) == 1

    def test_mark_after_cooldown_is_accepted(self, store, settings, alice):
        from rollcall.attendance import AttendanceOutcome, mark_attendance

        mark_attendance(store, padded([1.0]), settings=settings, now=T0)
        decision = mark_attendance(store, padded([1.0]), settings=settings,
                                   now=T0 + timedelta(minutes=5, seconds=1))

        assert decision.outcome is AttendanceOutcome.ACCEPTED
        assert len(store.list_records()) == 2

    def test_duplicate_payload_has_display_info(self, store, settings, alice):
        from rollcall.attendance import mark_attendance

        mark_attendance(store, padded([1.0]), settings=settings, now=T0)
        payload = mark_attendance(store, padded([1.0]), settings=settings,
                                  now=T0 + timedelta(seconds=30)).to_dict()

        assert payload["outcome"] == "duplicate_within_cooldown"
        assert payload["name"] == "Alice"
        assert payload["roll_number"] == "R100"
        assert "attendance" not in payload

    def test_cooldown_is_per_identity(self, store, settings, alice):
        from rollcall.attendance import AttendanceOutcome, mark_attendance
        from rollcall.enrollment import enroll

        enroll(store, "R200", {"name": "Bob", "class_name": "10", "section": "A"},
               [padded([0.0, 1.0])] * 3, settings=settings)

        mark_attendance(store, padded([1.0]), settings=settings, now=T0)
        decision = mark_attendance(store, padded([0.0, 1.0]), settings=settings,
                                   now=T0 + timedelta(seconds=10))

        assert decision.outcome is AttendanceOutcome.ACCEPTED
        assert decision.identity.key == "R200"

    def test_cooldown_is_configurable(self, store, settings, alice):
        from rollcall.attendance import AttendanceOutcome, mark_attendance

        short = replace(settings, cooldown_seconds=10)

        mark_attendance(store, padded([1.0]), settings=short, now=T0)
        decision = mark_attendance(store, padded([1.0]), settings=short,
                                   now=T0 + timedelta(seconds=11))

        assert decision.outcome is AttendanceOutcome.ACCEPTED

    def test_lost_race_reports_duplicate(self, settings, alice):
        """If the conditional write finds a record the check missed, nothing is written."""
        from rollcall.attendance import AttendanceOutcome, mark_attendance

        racing_store = MagicMock()
        racing_store.list_gallery.return_value = [alice]
        racing_store.recent_records.return_value = []
        racing_store.append_record_if_absent.return_value = None

        decision = mark_attendance(racing_store, padded([1.0]), settings=settings, now=T0)

        assert decision.outcome is AttendanceOutcome.DUPLICATE_WITHIN_COOLDOWN
        racing_store.append_record.assert_not_called()

    def test_conditional_write_uses_cooldown_cutoff(self, settings, alice):
        from rollcall.attendance import mark_attendance

        recording_store = MagicMock()
        recording_store.list_gallery.return_value = [alice]
        recording_store.recent_records.return_value = []
        recording_store.append_record_if_absent.side_effect = lambda record, since: record

        mark_attendance(recording_store, padded([1.0]), settings=settings, now=T0)

        recording_store.recent_records.assert_called_once_with("R100", T0 - timedelta(minutes=5))
        _, since = recording_store.append_record_if_absent.call_args[0]
        assert since == T0 - timedelta(minutes=5)


class TestStoreFailures:
    """Store errors are failures, never 'not recognized'."""

    def test_gallery_read_failure_propagates(self, settings):
        from rollcall.attendance import mark_attendance
        from rollcall.errors import StoreUnavailable

        broken = MagicMock()
        broken.list_gallery.side_effect = StoreUnavailable("disk gone")

        with pytest.raises(StoreUnavailable):
            mark_attendance(broken, padded([1.0]), settings=settings, now=T0)

    def test_ledger_write_failure_propagates(self, settings, alice):
        from rollcall.attendance import mark_attendance
        from rollcall.errors import StoreUnavailable

        broken = MagicMock()
        broken.list_gallery.return_value = [alice]
        broken.recent_records.return_value = []
        broken.append_record_if_absent.side_effect = StoreUnavailable("read-only")

        with pytest.raises(StoreUnavailable):
            mark_attendance(broken, padded([1.0]), settings=settings, now=T0)


class TestAuditEvents:
    """Every decision leaves an ATTENDANCE event."""

    def test_events_written_per_outcome(self, store, settings, alice, event_log):
        import json

        from rollcall.attendance import mark_attendance

        mark_attendance(store, padded([1.0]), settings=settings, now=T0)
        mark_attendance(store, padded([1.0]), settings=settings, now=T0 + timedelta(seconds=1))
        mark_attendance(store, padded([-1.0]), settings=settings, now=T0)

        with open(event_log.log_path) as f:
            events = [json.loads(line) for line in f]

        outcomes = [e["payload"]["outcome"] for e in events if e["event_type"] == "ATTENDANCE"]
        assert outcomes == ["accepted", "duplicate_within_cooldown", "not_recognized"]
