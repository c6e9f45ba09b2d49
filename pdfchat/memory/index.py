# pdfchat/memory/index.py
"""
Exact cosine-similarity index over one document's chunk vectors.

Vectors are L2-normalized and stored in a FAISS inner-product index,
so inner product equals cosine similarity. A zero vector stays zero
after normalization and therefore scores 0 against everything.

Row i of the index is chunk i of the session. The index is built once
and never mutated.
"""

import logging
from abc import ABC, abstractmethod
from typing import List, Optional, Sequence, Tuple

import faiss
import numpy as np

from pdfchat.errors import DimensionMismatch, EmbeddingCorrupt, InvalidArgument

logger = logging.getLogger(__name__)


SearchHit = Tuple[int, float]


def _normalize(vectors: np.ndarray) -> np.ndarray:

    norms = np.linalg.norm(vectors, axis=1, keepdims=True)

    # zero rows divide by 1 and stay zero
    return vectors / np.where(norms == 0, 1.0, norms)


def cosine_similarity(a, b) -> float:
    """dot(a, b) / (|a| * |b|), defined as 0 when either norm is 0."""

    a = np.asarray(a, dtype="float64")
    b = np.asarray(b, dtype="float64")

    if a.shape != b.shape:
        raise DimensionMismatch(f"Cannot compare shapes {a.shape} and {b.shape}")

    norm_a = np.linalg.norm(a)
    norm_b = np.linalg.norm(b)

    if norm_a == 0 or norm_b == 0:
        return 0.0

    return float(np.dot(a, b) / (norm_a * norm_b))


class VectorIndex(ABC):
    """Ranked nearest-neighbor lookup over a fixed set of vectors."""

    @property
    @abstractmethod
    def dimension(self) -> Optional[int]:
        ...

    @abstractmethod
    def __len__(self) -> int:
        ...

    @abstractmethod
    def search(self, query, k: int) -> List[SearchHit]:
        ...


class FlatCosineIndex(VectorIndex):

    def __init__(self, index: Optional[faiss.Index], dimension: Optional[int]):

        self._index = index
        self._dimension = dimension

    # ============================================================
    # BUILD
    # ============================================================

    @classmethod
    def build(cls, vectors: Sequence) -> "FlatCosineIndex":
        """
        Build an index from every chunk vector at once.

        All vectors must share one dimension. An empty input gives an
        empty index whose searches return [].
        """

        if len(vectors) == 0:
            return cls(index=None, dimension=None)

        dimensions = {len(vector) for vector in vectors}

        if len(dimensions) != 1:
            logger.error(
                "Index build rejected: mixed dimensions",
                extra={"dimensions": sorted(dimensions)},
            )
            raise DimensionMismatch(
                f"All vectors must share one dimension, got {sorted(dimensions)}"
            )

        matrix = np.asarray(vectors, dtype="float32")

        if matrix.ndim != 2 or matrix.shape[1] == 0:
            raise DimensionMismatch(f"Invalid vector matrix shape {matrix.shape}")

        if not np.isfinite(matrix).all():
            raise EmbeddingCorrupt("Index build rejected: non-finite components")

        dimension = matrix.shape[1]

        index = faiss.IndexFlatIP(dimension)
        index.add(np.ascontiguousarray(_normalize(matrix)))

        logger.info(
            "Vector index built",
            extra={"dimension": dimension, "vectors": index.ntotal},
        )

        return cls(index=index, dimension=dimension)

    # ============================================================
    # SEARCH
    # ============================================================

    def search(self, query, k: int) -> List[SearchHit]:
        """
        Top-k (chunk_index, score) pairs, best first.

        Ties go to the lower chunk index. Returns min(k, len(self))
        hits, and [] for an empty index.
        """

        if isinstance(k, bool) or not isinstance(k, (int, np.integer)) or k <= 0:
            raise InvalidArgument(f"k must be a positive integer, got {k!r}")

        if self._index is None or self._index.ntotal == 0:
            return []

        query = np.asarray(query, dtype="float32").reshape(1, -1)

        if query.shape[1] != self._dimension:
            raise DimensionMismatch(
                f"Query dimension {query.shape[1]} != index dimension {self._dimension}"
            )

        if not np.isfinite(query).all():
            raise EmbeddingCorrupt("Query vector contains non-finite components")

        # Score every row so ties at the k boundary are resolved here,
        # not by the order FAISS happens to return them in.
        total = self._index.ntotal
        scores, ids = self._index.search(np.ascontiguousarray(_normalize(query)), total)

        hits = [
            (int(idx), float(score))
            for idx, score in zip(ids[0], scores[0])
            if idx >= 0
        ]

        hits.sort(key=lambda hit: (-hit[1], hit[0]))

        return hits[:k]

    # ============================================================
    # ACCESSORS
    # ============================================================

    @property
    def dimension(self) -> Optional[int]:
        return self._dimension

    def __len__(self) -> int:
        return 0 if self._index is None else int(self._index.ntotal)
