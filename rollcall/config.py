"""
Configuration for Rollcall.

Contains:
- Storage locations (environment-based)
- Embedding shape bounds accepted from the feature extractor
- Matching and attendance thresholds

Values are read from environment variables with sensible defaults so the
threshold and cooldown can be tuned per deployment without code changes.
AttendanceSettings bundles them for callers that want to pass tuned values
explicitly (tests, scripts).
"""

import os
from dataclasses import dataclass
from enum import Enum


class DimensionPolicy(Enum):
    """How to compare a probe against a stored embedding of another length."""
    EXACT = "exact"        # Skip stored embeddings whose length differs
    TRUNCATE = "truncate"  # Compare the overlapping prefix only


# =============================================================================
# Built-in Defaults
# Used when an environment variable is unset, and by AttendanceSettings().
# =============================================================================

DEFAULT_SIMILARITY_THRESHOLD = 0.75
DEFAULT_COOLDOWN_SECONDS = 300
DEFAULT_MIN_SAMPLES = 3
DEFAULT_MAX_SAMPLES = 12
DEFAULT_MIN_EMBEDDING_DIM = 64
DEFAULT_MAX_EMBEDDING_DIM = 256
DEFAULT_DIMENSION_POLICY = DimensionPolicy.EXACT
DEFAULT_SOURCE = "scanner"


# =============================================================================
# Storage Configuration (from environment variables)
# =============================================================================

DATA_DIR = os.getenv("DATA_DIR", "data")
LOG_DIR = os.getenv("LOG_DIR", "logs")
STORE_PATH = os.getenv("STORE_PATH", os.path.join(DATA_DIR, "attendance.json"))

# =============================================================================
# Embedding Shape
# face-api.js descriptors are 128-D; other extractors seen in the field
# produce 64..256 components.
# =============================================================================

EMBEDDING_DIM = int(os.getenv("EMBEDDING_DIM", "128"))
MIN_EMBEDDING_DIM = int(os.getenv("MIN_EMBEDDING_DIM", str(DEFAULT_MIN_EMBEDDING_DIM)))
MAX_EMBEDDING_DIM = int(os.getenv("MAX_EMBEDDING_DIM", str(DEFAULT_MAX_EMBEDDING_DIM)))

# exact: only equal-length vectors are compared.
# truncate: compare min(len(a), len(b)) leading components. Use only when
# the gallery holds vectors from an older extractor that must keep matching.
DIMENSION_POLICY = DimensionPolicy(os.getenv("DIMENSION_POLICY", DEFAULT_DIMENSION_POLICY.value).lower())

# =============================================================================
# Matching & Attendance
# =============================================================================

# Minimum cosine similarity for a probe to count as recognized.
SIMILARITY_THRESHOLD = float(os.getenv("SIMILARITY_THRESHOLD", str(DEFAULT_SIMILARITY_THRESHOLD)))

# Same identity cannot be marked again within this window.
COOLDOWN_SECONDS = int(os.getenv("COOLDOWN_SECONDS", str(DEFAULT_COOLDOWN_SECONDS)))

# Enrollment sample bounds
MIN_SAMPLES = max(1, int(os.getenv("MIN_SAMPLES", str(DEFAULT_MIN_SAMPLES))))
MAX_SAMPLES = max(MIN_SAMPLES, int(os.getenv("MAX_SAMPLES", str(DEFAULT_MAX_SAMPLES))))

# Source tag written on ledger entries created by the scanner
ATTENDANCE_SOURCE = os.getenv("ATTENDANCE_SOURCE", DEFAULT_SOURCE)


@dataclass(frozen=True)
class AttendanceSettings:
    """Tunable inputs for matching, attendance and enrollment."""
    similarity_threshold: float = DEFAULT_SIMILARITY_THRESHOLD
    cooldown_seconds: int = DEFAULT_COOLDOWN_SECONDS
    min_samples: int = DEFAULT_MIN_SAMPLES
    max_samples: int = DEFAULT_MAX_SAMPLES
    min_dim: int = DEFAULT_MIN_EMBEDDING_DIM
    max_dim: int = DEFAULT_MAX_EMBEDDING_DIM
    dimension_policy: DimensionPolicy = DEFAULT_DIMENSION_POLICY
    source: str = DEFAULT_SOURCE

    @classmethod
    def from_env(cls) -> "AttendanceSettings":
        """Build settings from the module-level environment values."""
        return cls(
            similarity_threshold=SIMILARITY_THRESHOLD,
            cooldown_seconds=COOLDOWN_SECONDS,
            min_samples=MIN_SAMPLES,
            max_samples=MAX_SAMPLES,
            min_dim=MIN_EMBEDDING_DIM,
            max_dim=MAX_EMBEDDING_DIM,
            dimension_policy=DIMENSION_POLICY,
            source=ATTENDANCE_SOURCE,
        )
