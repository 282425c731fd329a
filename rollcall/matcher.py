"""
Probe-to-Gallery Identity Matching (Instance-First).

Stateless and read-only. Each identity is scored by the single best cosine
similarity between the probe and any of its enrolled embeddings
(best linkage). Embeddings are never averaged: one strong sample is enough
to match an otherwise weak set.

The caller decides what the score means. This module only reports the best
identity and its similarity; the threshold lives in attendance.py.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Optional

import numpy as np

from rollcall.config import (
    DIMENSION_POLICY,
    MAX_EMBEDDING_DIM,
    MIN_EMBEDDING_DIM,
    DimensionPolicy,
)
from rollcall.embeddings import (
    cosine_similarities,
    similarity_to_confidence,
    validate_embedding,
)
from rollcall.models import Identity

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MatchResult:
    """
    Best gallery match for a probe.

    Attributes:
        identity: Best scoring identity, or None when nothing was comparable
        similarity: Raw cosine similarity of the best pair, in [-1, 1]
        confidence: similarity as an integer percentage in [0, 100]
    """
    identity: Optional[Identity]
    similarity: float
    confidence: int

    @property
    def matched(self) -> bool:
        return self.identity is not None


NO_MATCH = MatchResult(identity=None, similarity=0.0, confidence=0)


def best_similarity(
    probe: np.ndarray,
    embeddings,
    policy: DimensionPolicy = DimensionPolicy.EXACT,
) -> Optional[float]:
    """
    Highest cosine similarity between a validated probe and a set of embeddings.

    Returns None if no embedding is comparable under the policy
    (EXACT with no equal-length embedding, or an empty set).
    """
    dim = probe.shape[0]

    # Bucket stored vectors by the number of leading components compared
    buckets = defaultdict(list)
    for emb in embeddings:
        n = len(emb)
        if n == 0:
            continue
        if n == dim:
            buckets[dim].append(emb)
        elif policy is DimensionPolicy.TRUNCATE:
            width = min(n, dim)
            buckets[width].append(emb[:width])

    if not buckets:
        return None

    best = None
    for width, rows in buckets.items():
        sims = cosine_similarities(probe[:width], np.vstack(rows))
        top = float(np.max(sims))
        if best is None or top > best:
            best = top
    return best


def match(
    probe,
    gallery: list[Identity],
    dimension_policy: DimensionPolicy = DIMENSION_POLICY,
    min_dim: int = MIN_EMBEDDING_DIM,
    max_dim: int = MAX_EMBEDDING_DIM,
) -> MatchResult:
    """
    Find the identity whose embedding set best matches the probe.

    Args:
        probe: Raw probe embedding
        gallery: Snapshot of enrolled identities
        dimension_policy: How to treat stored embeddings of another length
        min_dim, max_dim: Accepted probe length bounds

    Returns:
        MatchResult. identity is None for an empty gallery or when no stored
        embedding is comparable. Ties keep the earlier gallery entry.

    Raises:
        InvalidEmbedding: probe fails shape/numeric validation
    """
    probe_vec = validate_embedding(probe, min_dim=min_dim, max_dim=max_dim)

    best_identity = None
    best_score = None
    skipped = 0

    for identity in gallery:
        score = best_similarity(probe_vec, identity.embeddings, dimension_policy)
        if score is None:
            skipped += 1
            continue
        if best_score is None or score > best_score:
            best_identity = identity
            best_score = score

    if skipped:
        logger.debug(
            f"{skipped} identities had no embedding comparable to a "
            f"{probe_vec.shape[0]}-D probe (policy={dimension_policy.value})"
        )

    if best_identity is None:
        return NO_MATCH

    return MatchResult(
        identity=best_identity,
        similarity=best_score,
        confidence=similarity_to_confidence(best_score),
    )
