"""
Enrollment: validate a registration request and store the identity.

All-or-nothing. Every embedding is validated before the store is touched,
and the identity is inserted with its full embedding set in one store call,
so a partially enrolled identity is never observable. Retrying a failed or
timed-out enrollment is safe: the second attempt hits DuplicateIdentity if
the first one landed.
"""

import logging

from rollcall.config import AttendanceSettings
from rollcall.embeddings import validate_embedding
from rollcall.errors import (
    DuplicateIdentity,
    InsufficientSamples,
    MissingAttributes,
    TooManySamples,
)
from rollcall.event_recorder import get_event_recorder
from rollcall.models import Identity
from rollcall.store import AttendanceStore

logger = logging.getLogger(__name__)

REQUIRED_ATTRIBUTES = ("name", "class_name", "section")


def _normalize_attributes(key, attributes: dict) -> dict:
    attributes = dict(attributes or {})
    # Accept the wire name "class" as well as "class_name"
    if "class_name" not in attributes and "class" in attributes:
        attributes["class_name"] = attributes.pop("class")

    missing = []
    if not isinstance(key, str) or not key.strip():
        missing.append("roll_number")
    for field_name in REQUIRED_ATTRIBUTES:
        value = attributes.get(field_name)
        if not isinstance(value, str) or not value.strip():
            missing.append(field_name)
    if missing:
        raise MissingAttributes(missing)

    return {name: attributes[name].strip() for name in REQUIRED_ATTRIBUTES}


def enroll(
    store: AttendanceStore,
    key: str,
    attributes: dict,
    embeddings: list,
    settings: AttendanceSettings = None,
) -> Identity:
    """
    Register a new identity with its face embeddings.

    Args:
        store: Target store
        key: Unique external key (roll number)
        attributes: name, class_name (or "class"), section
        embeddings: Raw embeddings captured for this person
        settings: Sample and shape bounds (default: from env)

    Returns:
        The stored Identity

    Raises:
        MissingAttributes: key or a display attribute is blank
        DuplicateIdentity: key already enrolled
        InsufficientSamples: fewer than settings.min_samples embeddings
        TooManySamples: more than settings.max_samples embeddings
        InvalidEmbedding: an embedding fails validation (error names its index)
    """
    settings = settings or AttendanceSettings.from_env()
    clean = _normalize_attributes(key, attributes)
    key = key.strip()

    # Checked first so a repeated key is reported whatever the payload holds.
    # insert_identity re-checks atomically under the store lock.
    if store.get_identity(key) is not None:
        raise DuplicateIdentity(key)

    embeddings = [] if embeddings is None else list(embeddings)
    if len(embeddings) < settings.min_samples:
        raise InsufficientSamples(len(embeddings), settings.min_samples)
    if len(embeddings) > settings.max_samples:
        raise TooManySamples(len(embeddings), settings.max_samples)

    vectors = tuple(
        validate_embedding(emb, index=i, min_dim=settings.min_dim, max_dim=settings.max_dim)
        for i, emb in enumerate(embeddings)
    )

    identity = Identity(key=key, embeddings=vectors, **clean)
    store.insert_identity(identity)

    logger.info(f"Enrolled {key} ({clean['name']}) with {len(vectors)} embeddings")
    get_event_recorder().record("ENROLL", {
        "identity_key": key,
        "identity_id": identity.identity_id,
        "embedding_count": len(vectors),
        "dimensions": sorted({v.shape[0] for v in vectors}),
    })
    return identity
