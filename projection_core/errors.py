"""
Projection Core - Error Types

Construction-time invariant violations raise PreconditionError (a ValueError),
never silently clamped. Embedding provider failures are a separate family so
callers can tell "bad input" from "the text->vector service let us down".
"""


class ProjectionError(Exception):
    """Base class for all decision projection errors."""


class PreconditionError(ProjectionError, ValueError):
    """A value violated a documented range or shape at construction time."""


class DimensionMismatchError(PreconditionError):
    """Two embeddings of different dimension were combined."""

    def __init__(self, left: int, right: int):
        self.left = left
        self.right = right
        super().__init__(f"Embeddings must have same dimension: {left} vs {right}")


class EmbeddingProviderError(ProjectionError):
    """Base class for failures raised by an embedding provider."""


class EmbeddingGenerationError(EmbeddingProviderError):
    """Embedding generation failed (network, API error, timeout, bad input)."""

    def __init__(self, message: str = "Failed to generate embedding"):
        super().__init__(message)


class QuotaExceededError(EmbeddingProviderError):
    """
    The embedding provider refused the call because the quota is exhausted.

    Non-retryable: the orchestrating layer decides how to surface it.
    """

    def __init__(self, message: str = "Embedding provider quota exceeded"):
        super().__init__(message)


def require(condition: bool, message: str) -> None:
    """Raise PreconditionError with message unless condition holds."""
    if not condition:
        raise PreconditionError(message)
