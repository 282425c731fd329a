"""
Attendance Decision Engine.

One call per captured probe:

    Matching -> ACCEPTED
             -> NOT_RECOGNIZED             (no identity, or similarity < threshold)
             -> DUPLICATE_WITHIN_COOLDOWN  (identity already marked inside cooldown)

Every outcome is an AttendanceDecision with an explicit AttendanceOutcome.
Callers branch on the enum, never on message text. Store failures propagate
as StoreUnavailable and are never reported as "not recognized".
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional

from rollcall.config import AttendanceSettings
from rollcall.event_recorder import get_event_recorder
from rollcall.matcher import match
from rollcall.models import AttendanceRecord, Identity, utc_now
from rollcall.store import AttendanceStore

logger = logging.getLogger(__name__)


class AttendanceOutcome(Enum):
    """Terminal states of a matching attempt."""
    ACCEPTED = "accepted"
    NOT_RECOGNIZED = "not_recognized"
    DUPLICATE_WITHIN_COOLDOWN = "duplicate_within_cooldown"


@dataclass(frozen=True)
class AttendanceDecision:
    """
    Result of one attendance attempt.

    Attributes:
        outcome: Which terminal state was reached
        identity: Matched identity (None when NOT_RECOGNIZED)
        similarity: Best raw cosine similarity seen (diagnostic on rejection)
        confidence: similarity as a 0..100 integer percentage
        record: Ledger entry written (ACCEPTED only)
    """
    outcome: AttendanceOutcome
    identity: Optional[Identity] = None
    similarity: float = 0.0
    confidence: int = 0
    record: Optional[AttendanceRecord] = None

    @property
    def accepted(self) -> bool:
        return self.outcome is AttendanceOutcome.ACCEPTED

    def to_dict(self) -> dict:
        result = {
            "outcome": self.outcome.value,
            "confidence": self.confidence,
        }
        if self.identity is not None and self.outcome is not AttendanceOutcome.NOT_RECOGNIZED:
            result.update(self.identity.display_info())
        if self.record is not None:
            result["attendance"] = self.record.to_dict()
        return result


def mark_attendance(
    store: AttendanceStore,
    probe,
    settings: AttendanceSettings = None,
    now: datetime = None,
    source: str = None,
) -> AttendanceDecision:
    """
    Identify a probe and record attendance if allowed.

    Args:
        store: Identity gallery and ledger
        probe: Raw probe embedding from the feature extractor
        settings: Threshold, cooldown and shape bounds (default: from env)
        now: Decision time (UTC); defaults to the current time
        source: Ledger source tag (default: settings.source)

    Returns:
        AttendanceDecision

    Raises:
        InvalidEmbedding: probe fails shape/numeric validation
        StoreUnavailable: the store could not be read or written
    """
    settings = settings or AttendanceSettings.from_env()
    now = now or utc_now()
    source = source or settings.source

    # 1. Match against a fresh gallery snapshot
    result = match(
        probe,
        store.list_gallery(),
        dimension_policy=settings.dimension_policy,
        min_dim=settings.min_dim,
        max_dim=settings.max_dim,
    )

    if not result.matched or result.similarity < settings.similarity_threshold:
        logger.info(
            f"Not recognized: best={result.identity.key if result.matched else None} "
            f"similarity={result.similarity:.4f} threshold={settings.similarity_threshold}"
        )
        return _finish(AttendanceDecision(
            outcome=AttendanceOutcome.NOT_RECOGNIZED,
            similarity=result.similarity,
            confidence=result.confidence,
        ))

    identity = result.identity
    cutoff = now - timedelta(seconds=settings.cooldown_seconds)

    # 2. Cooldown check
    if store.recent_records(identity.key, cutoff):
        return _duplicate(identity, result.similarity, result.confidence)

    # 3. Conditional append closes the race between check and write
    record = AttendanceRecord.for_identity(
        identity,
        confidence=result.confidence,
        source=source,
        timestamp=now,
    )
    stored = store.append_record_if_absent(record, cutoff)
    if stored is None:
        return _duplicate(identity, result.similarity, result.confidence)

    logger.info(
        f"Attendance marked: {identity.key} ({identity.name}) confidence={result.confidence}%"
    )
    return _finish(AttendanceDecision(
        outcome=AttendanceOutcome.ACCEPTED,
        identity=identity,
        similarity=result.similarity,
        confidence=result.confidence,
        record=stored,
    ))


def _duplicate(identity: Identity, similarity: float, confidence: int) -> AttendanceDecision:
    logger.info(f"Already marked within cooldown: {identity.key} ({identity.name})")
    return _finish(AttendanceDecision(
        outcome=AttendanceOutcome.DUPLICATE_WITHIN_COOLDOWN,
        identity=identity,
        similarity=similarity,
        confidence=confidence,
    ))


def _finish(decision: AttendanceDecision) -> AttendanceDecision:
    get_event_recorder().record("ATTENDANCE", {
        "outcome": decision.outcome.value,
        "identity_key": decision.identity.key if decision.identity else None,
        "similarity": round(decision.similarity, 4),
        "confidence": decision.confidence,
        "record_id": decision.record.record_id if decision.record else None,
    })
    return decision
