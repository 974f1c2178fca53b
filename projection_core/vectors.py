"""
Projection Core - Vector Similarity

Fixed-dimension float vectors and the similarity measures every scoring
component is built on.

Mathematical Definition:
    cos(u, v) = (u · v) / (‖u‖ · ‖v‖)

    Degenerate policy: if either norm is zero the similarity is 0.0
    (not an error). Result range is [-1, 1].
"""

from __future__ import annotations

import math
from typing import Iterator, List, Sequence, Union

import numpy as np

from .errors import DimensionMismatchError, PreconditionError


class Embedding:
    """
    Immutable embedding vector.

    Backed by a read-only float64 numpy array. Dimension is fixed by the
    embedding provider (384 for MiniLM, 1536 for text-embedding-3-small).
    """

    __slots__ = ("_values",)

    def __init__(self, values: Union[Sequence[float], np.ndarray]):
        arr = np.array(values, dtype=np.float64).reshape(-1)
        if arr.size == 0:
            raise PreconditionError("Embedding cannot be empty")
        if not np.all(np.isfinite(arr)):
            raise PreconditionError("Embedding values must be finite")
        arr.setflags(write=False)
        self._values = arr

    @property
    def values(self) -> np.ndarray:
        return self._values

    @property
    def dimension(self) -> int:
        return int(self._values.size)

    def cosine_similarity(self, other: "Embedding") -> float:
        return cosine_similarity(self, other)

    def dot_product(self, other: "Embedding") -> float:
        return dot_product(self, other)

    def to_list(self) -> List[float]:
        return self._values.tolist()

    @classmethod
    def zeros(cls, dimension: int) -> "Embedding":
        if dimension <= 0:
            raise PreconditionError(f"dimension must be positive, got: {dimension}")
        return cls(np.zeros(dimension))

    def __len__(self) -> int:
        return self.dimension

    def __iter__(self) -> Iterator[float]:
        return iter(self._values.tolist())

    def __eq__(self, other: object) -> bool:
        if self is other:
            return True
        if not isinstance(other, Embedding):
            return NotImplemented
        return bool(np.array_equal(self._values, other._values))

    def __hash__(self) -> int:
        return hash(self._values.tobytes())

    def __repr__(self) -> str:
        return f"Embedding(dimension={self.dimension})"


def _check_dimensions(u: Embedding, v: Embedding) -> None:
    if u.dimension != v.dimension:
        raise DimensionMismatchError(u.dimension, v.dimension)


def dot_product(u: Embedding, v: Embedding) -> float:
    """
    Compute u · v.

    Raises:
        DimensionMismatchError: if dimensions differ
    """
    _check_dimensions(u, v)
    return float(np.dot(u.values, v.values))


def cosine_similarity(u: Embedding, v: Embedding) -> float:
    """
    Compute cosine similarity between two embeddings.

    cos(u, v) = (u · v) / (‖u‖ · ‖v‖)

    Args:
        u: First embedding
        v: Second embedding

    Returns:
        Similarity in [-1, 1]; 0.0 when either vector has zero norm

    Raises:
        DimensionMismatchError: if dimensions differ

    Notes:
        - Squared norms come from the same dot routine as the numerator and
          the denominator is sqrt(‖u‖²·‖v‖²), so cos(v, v) is exactly 1.0
          for any non-zero v
        - Result is clipped to [-1, 1] against rounding drift
    """
    _check_dimensions(u, v)
    dot = float(np.dot(u.values, v.values))
    norm_u_sq = float(np.dot(u.values, u.values))
    norm_v_sq = float(np.dot(v.values, v.values))
    if norm_u_sq == 0.0 or norm_v_sq == 0.0:
        return 0.0
    denominator = math.sqrt(norm_u_sq * norm_v_sq)
    if denominator == 0.0 or not math.isfinite(denominator):
        # Product over/underflowed; take the roots separately
        denominator = math.sqrt(norm_u_sq) * math.sqrt(norm_v_sq)
    if denominator == 0.0:
        return 0.0
    return max(-1.0, min(1.0, dot / denominator))
