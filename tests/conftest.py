"""Shared fixtures for matcher, attendance, enrollment and store tests."""

import numpy as np
import pytest


# ---------------------------------------------------------------------------
# Audit log isolation
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def event_log(tmp_path):
    """Route audit events into a per-test directory instead of ./logs."""
    from rollcall.event_recorder import EventRecorder, set_event_recorder

    recorder = EventRecorder(log_dir=str(tmp_path / "logs"), run_id="run_test")
    set_event_recorder(recorder)
    yield recorder
    set_event_recorder(None)


# ---------------------------------------------------------------------------
# Settings and stores
# ---------------------------------------------------------------------------

@pytest.fixture
def settings():
    """Design-point settings: 0.75 threshold, 5 minute cooldown, 3 samples."""
    from rollcall.config import AttendanceSettings
    return AttendanceSettings()


@pytest.fixture
def store():
    from rollcall.store import InMemoryStore
    return InMemoryStore()


@pytest.fixture
def json_store(tmp_path):
    from rollcall.store import JsonFileStore
    return JsonFileStore(tmp_path / "data" / "attendance.json")


@pytest.fixture
def random_embeddings():
    """Factory for n random unit vectors (fixed seed per test)."""
    rng = np.random.default_rng(1234)

    def _make(n: int, dim: int = 128) -> list[list[float]]:
        vectors = rng.standard_normal((n, dim))
        vectors /= np.linalg.norm(vectors, axis=1, keepdims=True)
        return vectors.tolist()

    return _make
