"""
Embedding validation and cosine similarity.

Embeddings arrive from an external feature extractor whose provenance we do
not trust, so every vector is checked for shape and numeric sanity before it
is compared or stored. Validated vectors are returned as read-only float64
arrays; nothing downstream may mutate a stored embedding.

Similarity is plain cosine: dot(a, b) / (|a| * |b|), with a zero-magnitude
vector on either side scoring 0 rather than NaN.
"""

import math
from numbers import Real

import numpy as np
from scipy.spatial.distance import cdist

from rollcall.config import (
    MAX_EMBEDDING_DIM,
    MIN_EMBEDDING_DIM,
    DimensionPolicy,
)
from rollcall.errors import InvalidEmbedding


def validate_embedding(
    values,
    index: int = None,
    min_dim: int = MIN_EMBEDDING_DIM,
    max_dim: int = MAX_EMBEDDING_DIM,
) -> np.ndarray:
    """
    Validate a raw embedding and return it as a read-only float64 vector.

    Args:
        values: Sequence of numbers (list, tuple or 1-D numpy array)
        index: Position of this embedding in a batch, reported in errors
        min_dim: Smallest accepted length
        max_dim: Largest accepted length

    Returns:
        1-D np.ndarray (float64, non-writeable)

    Raises:
        InvalidEmbedding: Not a flat numeric sequence, length out of
            [min_dim, max_dim], or any component is NaN/Infinity
    """
    if values is None or isinstance(values, (str, bytes, dict)):
        raise InvalidEmbedding("must be a numeric array", index)

    if isinstance(values, np.ndarray):
        if values.ndim != 1:
            raise InvalidEmbedding(f"must be 1-dimensional, got shape {values.shape}", index)
        if values.dtype.kind not in "iuf":
            raise InvalidEmbedding(f"unsupported dtype {values.dtype}", index)
        vector = values.astype(np.float64)
    else:
        try:
            items = list(values)
        except TypeError:
            raise InvalidEmbedding("must be a numeric array", index) from None
        for value in items:
            # bool is an int subclass but never a valid component
            if isinstance(value, bool) or not isinstance(value, Real):
                raise InvalidEmbedding("contains non-numeric values", index)
        try:
            vector = np.array(items, dtype=np.float64)
        except (OverflowError, ValueError, TypeError) as e:
            raise InvalidEmbedding("contains values not representable as float64", index) from e

    if not min_dim <= vector.shape[0] <= max_dim:
        raise InvalidEmbedding(
            f"length {vector.shape[0]} outside [{min_dim}, {max_dim}]", index
        )

    if not np.all(np.isfinite(vector)):
        raise InvalidEmbedding("contains NaN or infinite values", index)

    vector.setflags(write=False)
    return vector


def cosine_similarities(probe: np.ndarray, matrix: np.ndarray) -> np.ndarray:
    """
    Cosine similarity of one probe against every row of a matrix.

    Rows (or a probe) with zero magnitude score 0.

    Args:
        probe: 1-D vector of length d
        matrix: (n, d) array of stored vectors

    Returns:
        (n,) array of similarities in [-1, 1]
    """
    probe = np.asarray(probe, dtype=np.float64)
    matrix = np.atleast_2d(np.asarray(matrix, dtype=np.float64))

    sims = np.zeros(matrix.shape[0], dtype=np.float64)
    if matrix.shape[0] == 0 or np.linalg.norm(probe) == 0:
        return sims

    nonzero = np.linalg.norm(matrix, axis=1) > 0
    if np.any(nonzero):
        dists = cdist(probe[np.newaxis, :], matrix[nonzero], metric="cosine")[0]
        sims[nonzero] = np.clip(1.0 - dists, -1.0, 1.0)

    return sims


def cosine_similarity(
    a,
    b,
    policy: DimensionPolicy = DimensionPolicy.EXACT,
) -> float:
    """
    Cosine similarity between two vectors.

    Under TRUNCATE, vectors of different length are compared over their
    common prefix. Under EXACT, a length mismatch is an error.
    """
    a = np.asarray(a, dtype=np.float64)
    b = np.asarray(b, dtype=np.float64)

    if a.shape[0] != b.shape[0]:
        if policy is DimensionPolicy.EXACT:
            raise ValueError(
                f"Length mismatch: {a.shape[0]} vs {b.shape[0]} (policy=exact)"
            )
        n = min(a.shape[0], b.shape[0])
        a, b = a[:n], b[:n]

    if a.shape[0] == 0:
        return 0.0

    return float(cosine_similarities(a, b[np.newaxis, :])[0])


def similarity_to_confidence(similarity: float) -> int:
    """
    Convert a cosine similarity to an integer percentage in [0, 100].

    Rounds half up. Negative similarities report 0.
    """
    percent = math.floor(similarity * 100 + 0.5)
    return max(0, min(100, percent))
