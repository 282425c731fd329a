"""
Domain records: enrolled identities and attendance ledger entries.

Both are frozen. An Identity's embedding set only grows through enrollment
of a new identity; ledger entries are append-only. Timestamps are
timezone-aware UTC datetimes in memory and ISO-8601 strings on disk.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone

import numpy as np


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 timestamp, treating naive values as UTC."""
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _frozen_vector(values) -> np.ndarray:
    vector = np.array(values, dtype=np.float64)
    vector.setflags(write=False)
    return vector


@dataclass(frozen=True, eq=False)
class Identity:
    """
    An enrolled person.

    Attributes:
        key: Unique external key (roll number)
        name, class_name, section: Display attributes, passed through untouched
        embeddings: Read-only float64 vectors captured at enrollment
        identity_id: Generated internal id
        created_at: Enrollment time (UTC)
    """
    key: str
    name: str
    class_name: str
    section: str
    embeddings: tuple = ()
    identity_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = field(default_factory=utc_now)

    @property
    def embedding_count(self) -> int:
        return len(self.embeddings)

    def display_info(self) -> dict:
        return {
            "name": self.name,
            "roll_number": self.key,
            "class": self.class_name,
            "section": self.section,
        }

    def to_dict(self) -> dict:
        return {
            "identity_id": self.identity_id,
            "key": self.key,
            "name": self.name,
            "class_name": self.class_name,
            "section": self.section,
            "embeddings": [e.tolist() for e in self.embeddings],
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Identity":
        return cls(
            key=data["key"],
            name=data.get("name", ""),
            class_name=data.get("class_name", ""),
            section=data.get("section", ""),
            embeddings=tuple(_frozen_vector(e) for e in data.get("embeddings", [])),
            identity_id=data["identity_id"],
            created_at=parse_timestamp(data["created_at"]),
        )


@dataclass(frozen=True)
class AttendanceRecord:
    """One accepted attendance mark. Display fields are a snapshot at marking time."""
    identity_key: str
    confidence: int
    source: str
    name: str = ""
    class_name: str = ""
    section: str = ""
    timestamp: datetime = field(default_factory=utc_now)
    record_id: str = field(default_factory=lambda: str(uuid.uuid4()))

    @classmethod
    def for_identity(
        cls,
        identity: Identity,
        confidence: int,
        source: str,
        timestamp: datetime = None,
    ) -> "AttendanceRecord":
        return cls(
            identity_key=identity.key,
            confidence=confidence,
            source=source,
            name=identity.name,
            class_name=identity.class_name,
            section=identity.section,
            timestamp=timestamp or utc_now(),
        )

    def to_dict(self) -> dict:
        return {
            "record_id": self.record_id,
            "identity_key": self.identity_key,
            "timestamp": self.timestamp.isoformat(),
            "confidence": self.confidence,
            "source": self.source,
            "name": self.name,
            "class_name": self.class_name,
            "section": self.section,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "AttendanceRecord":
        return cls(
            identity_key=data["identity_key"],
            confidence=int(data["confidence"]),
            source=data.get("source", ""),
            name=data.get("name", ""),
            class_name=data.get("class_name", ""),
            section=data.get("section", ""),
            timestamp=parse_timestamp(data["timestamp"]),
            record_id=data["record_id"],
        )
