"""
Persistent store for enrolled identities and the attendance ledger.

The matcher and decision engine only see the AttendanceStore interface.
Two implementations ship with the package:

- InMemoryStore: dicts behind a threading.Lock (tests, embedding in a
  long-running service that owns persistence elsewhere)
- JsonFileStore: a single JSON document on disk

JsonFileStore guarantees:
- Atomic: writes go to a temp file, are fsynced, then renamed over the target
- Locked: every read-modify-write holds an exclusive portalocker lock
- Fresh: every call re-reads the file, so readers see committed state only

Both implementations hold their lock across the cooldown check and the
ledger append in append_record_if_absent, so two concurrent marks for the
same identity cannot both land inside one cooldown window.
"""

import json
import logging
import os
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path

from rollcall.errors import DuplicateIdentity, StoreUnavailable
from rollcall.models import AttendanceRecord, Identity

logger = logging.getLogger(__name__)


SCHEMA_VERSION = 1


class AttendanceStore(ABC):
    """Key/record interface over identities and the attendance ledger."""

    @abstractmethod
    def list_gallery(self) -> list[Identity]:
        """All enrolled identities, in enrollment order."""

    @abstractmethod
    def get_identity(self, key: str) -> Identity | None:
        """Identity by external key, or None."""

    @abstractmethod
    def insert_identity(self, identity: Identity) -> Identity:
        """
        Insert an identity with all its embeddings in one step.

        Raises:
            DuplicateIdentity: key already present
        """

    @abstractmethod
    def delete_identity(self, key: str) -> int:
        """
        Remove an identity and every attendance record for it.

        Returns:
            Number of attendance records removed

        Raises:
            KeyError: key not enrolled
        """

    @abstractmethod
    def recent_records(self, key: str, since: datetime) -> list[AttendanceRecord]:
        """Records for one identity with timestamp >= since."""

    @abstractmethod
    def append_record(self, record: AttendanceRecord) -> AttendanceRecord:
        """Append one record to the ledger and return it as stored."""

    @abstractmethod
    def list_records(
        self,
        since: datetime = None,
        until: datetime = None,
    ) -> list[AttendanceRecord]:
        """Ledger entries with since <= timestamp < until (either bound optional)."""

    def append_record_if_absent(
        self,
        record: AttendanceRecord,
        since: datetime,
    ) -> AttendanceRecord | None:
        """
        Append unless the identity already has a record with timestamp >= since.

        Returns the stored record, or None if a recent record exists.
        This default is a plain check-then-act; subclasses that can hold a
        lock across both steps override it.
        """
        if self.recent_records(record.identity_key, since):
            return None
        return self.append_record(record)


def _in_window(record: AttendanceRecord, since: datetime = None, until: datetime = None) -> bool:
    if since is not None and record.timestamp < since:
        return False
    if until is not None and record.timestamp >= until:
        return False
    return True


class InMemoryStore(AttendanceStore):
    """Process-local store. State is lost when the process exits."""

    def __init__(self):
        self._identities: dict[str, Identity] = {}
        self._records: list[AttendanceRecord] = []
        self._lock = threading.Lock()

    def list_gallery(self) -> list[Identity]:
        with self._lock:
            return list(self._identities.values())

    def get_identity(self, key: str) -> Identity | None:
        with self._lock:
            return self._identities.get(key)

    def insert_identity(self, identity: Identity) -> Identity:
        with self._lock:
            if identity.key in self._identities:
                raise DuplicateIdentity(identity.key)
            self._identities[identity.key] = identity
        return identity

    def delete_identity(self, key: str) -> int:
        with self._lock:
            if key not in self._identities:
                raise KeyError(f"Identity not found: {key}")
            del self._identities[key]
            kept = [r for r in self._records if r.identity_key != key]
            removed = len(self._records) - len(kept)
            self._records = kept
        return removed

    def recent_records(self, key: str, since: datetime) -> list[AttendanceRecord]:
        with self._lock:
            return self._recent_locked(key, since)

    def _recent_locked(self, key: str, since: datetime) -> list[AttendanceRecord]:
        return [
            r for r in self._records
            if r.identity_key == key and r.timestamp >= since
        ]

    def append_record(self, record: AttendanceRecord) -> AttendanceRecord:
        with self._lock:
            self._records.append(record)
        return record

    def append_record_if_absent(
        self,
        record: AttendanceRecord,
        since: datetime,
    ) -> AttendanceRecord | None:
        with self._lock:
            if self._recent_locked(record.identity_key, since):
                return None
            self._records.append(record)
        return record

    def list_records(
        self,
        since: datetime = None,
        until: datetime = None,
    ) -> list[AttendanceRecord]:
        with self._lock:
            return [r for r in self._records if _in_window(r, since, until)]


class JsonFileStore(AttendanceStore):
    """
    Store backed by one JSON file.

    Layout:
        {
          "schema_version": 1,
          "identities": {key: Identity.to_dict(), ...},
          "records": [AttendanceRecord.to_dict(), ...]
        }

    A missing file reads as an empty store; the file is created on first write.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self._lock_path = self.path.with_suffix(".lock")
        self._temp_path = self.path.with_suffix(".tmp")

    # -------------------------------------------------------------------------
    # Raw file access
    # -------------------------------------------------------------------------

    def _read(self) -> dict:
        """Load the document, or an empty one if the file does not exist."""
        if not self.path.exists():
            return {"schema_version": SCHEMA_VERSION, "identities": {}, "records": []}

        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise StoreUnavailable(f"Cannot read store {self.path}: {e}") from e

        if not isinstance(data, dict):
            raise StoreUnavailable(
                f"Corrupt store {self.path}: top-level document must be an object"
            )

        if data.get("schema_version") != SCHEMA_VERSION:
            raise ValueError(
                f"Schema version mismatch: expected {SCHEMA_VERSION}, "
                f"got {data.get('schema_version')}"
            )

        data.setdefault("identities", {})
        data.setdefault("records", [])
        if not isinstance(data["identities"], dict) or not isinstance(data["records"], list):
            raise StoreUnavailable(
                f"Corrupt store {self.path}: identities must be an object, records a list"
            )
        return data

    def _decode(self, decoder, entries: list) -> list:
        """Decode stored entries; malformed ones mean the store is unusable."""
        try:
            return [decoder(entry) for entry in entries]
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise StoreUnavailable(f"Corrupt entry in store {self.path}: {e!r}") from e

    def _write(self, data: dict) -> None:
        """Write to temp file, fsync, atomic rename. Caller holds the lock."""
        try:
            with open(self._temp_path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
                f.flush()
                os.fsync(f.fileno())
            os.replace(self._temp_path, self.path)
        except OSError as e:
            raise StoreUnavailable(f"Cannot write store {self.path}: {e}") from e

    @contextmanager
    def _locked(self):
        """
        Hold the exclusive file lock and yield the current document.

        Single Writer Boundary: every mutation goes through this block and
        ends in _write().
        """
        import portalocker

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self._lock_path.touch(exist_ok=True)
            lock_file = open(self._lock_path, "r+")
        except OSError as e:
            raise StoreUnavailable(f"Cannot open lock {self._lock_path}: {e}") from e

        with lock_file:
            try:
                portalocker.lock(lock_file, portalocker.LOCK_EX)
            except portalocker.LockException as e:
                raise StoreUnavailable(f"Cannot lock store {self.path}: {e}") from e
            try:
                yield self._read()
            finally:
                portalocker.unlock(lock_file)

    # -------------------------------------------------------------------------
    # Identities
    # -------------------------------------------------------------------------

    def list_gallery(self) -> list[Identity]:
        data = self._read()
        return self._decode(Identity.from_dict, list(data["identities"].values()))

    def get_identity(self, key: str) -> Identity | None:
        entry = self._read()["identities"].get(key)
        return self._decode(Identity.from_dict, [entry])[0] if entry else None

    def insert_identity(self, identity: Identity) -> Identity:
        with self._locked() as data:
            if identity.key in data["identities"]:
                raise DuplicateIdentity(identity.key)
            data["identities"][identity.key] = identity.to_dict()
            self._write(data)

        logger.info(
            f"Stored identity {identity.key} with {identity.embedding_count} embeddings"
        )
        return identity

    def delete_identity(self, key: str) -> int:
        with self._locked() as data:
            if key not in data["identities"]:
                raise KeyError(f"Identity not found: {key}")
            del data["identities"][key]
            records = self._records_from(data)
            kept = [r for r in records if r.identity_key != key]
            removed = len(records) - len(kept)
            data["records"] = [r.to_dict() for r in kept]
            self._write(data)

        logger.info(f"Deleted identity {key} and {removed} attendance records")
        return removed

    # -------------------------------------------------------------------------
    # Ledger
    # -------------------------------------------------------------------------

    def _records_from(self, data: dict) -> list[AttendanceRecord]:
        return self._decode(AttendanceRecord.from_dict, data["records"])

    def recent_records(self, key: str, since: datetime) -> list[AttendanceRecord]:
        return [
            r for r in self._records_from(self._read())
            if r.identity_key == key and r.timestamp >= since
        ]

    def append_record(self, record: AttendanceRecord) -> AttendanceRecord:
        with self._locked() as data:
            data["records"].append(record.to_dict())
            self._write(data)
        return record

    def append_record_if_absent(
        self,
        record: AttendanceRecord,
        since: datetime,
    ) -> AttendanceRecord | None:
        with self._locked() as data:
            for existing in self._records_from(data):
                if existing.identity_key == record.identity_key and existing.timestamp >= since:
                    return None
            data["records"].append(record.to_dict())
            self._write(data)
        return record

    def list_records(
        self,
        since: datetime = None,
        until: datetime = None,
    ) -> list[AttendanceRecord]:
        return [
            r for r in self._records_from(self._read())
            if _in_window(r, since, until)
        ]
