"""
Feature extractor lifecycle.

The extractor itself (face-api.js, FaceNet, InsightFace...) is external.
This wrapper gives it an explicit, scoped lifecycle instead of a module-level
"models loaded" flag: ensure_ready() runs the loader exactly once per
instance, is safe to call from many threads, and can be retried after a
failed load. Every vector it produces goes through validate_embedding before
anyone else sees it.
"""

import logging
import threading
from typing import Any, Callable

import numpy as np

from rollcall.config import MAX_EMBEDDING_DIM, MIN_EMBEDDING_DIM
from rollcall.embeddings import validate_embedding

logger = logging.getLogger(__name__)


class FeatureExtractor:
    """
    Init-once handle around an external embedding model.

    Args:
        loader: Called once with no arguments; returns the loaded model
        extract_fn: Called as extract_fn(model, frame); returns a vector or
            None when no usable face is present
        min_dim, max_dim: Accepted output length bounds
    """

    def __init__(
        self,
        loader: Callable[[], Any],
        extract_fn: Callable[[Any, Any], Any],
        min_dim: int = MIN_EMBEDDING_DIM,
        max_dim: int = MAX_EMBEDDING_DIM,
    ):
        self._loader = loader
        self._extract_fn = extract_fn
        self._min_dim = min_dim
        self._max_dim = max_dim
        self._model = None
        self._ready = False
        self._lock = threading.Lock()

    @property
    def is_ready(self) -> bool:
        return self._ready

    def ensure_ready(self) -> None:
        """Load the model if it has not been loaded yet. Idempotent."""
        if self._ready:
            return
        with self._lock:
            if self._ready:
                return
            logger.info("Loading feature extractor")
            self._model = self._loader()
            self._ready = True
            logger.info("Feature extractor ready")

    def extract(self, frame) -> np.ndarray | None:
        """
        Compute a validated embedding for one frame.

        Returns None when the extractor reports no usable face.

        Raises:
            InvalidEmbedding: extractor returned a malformed vector
        """
        self.ensure_ready()
        raw = self._extract_fn(self._model, frame)
        if raw is None:
            return None
        return validate_embedding(raw, min_dim=self._min_dim, max_dim=self._max_dim)
