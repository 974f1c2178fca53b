"""
Projection Core - Evidence

Historical thought fragments and the similarity-scored evidence items the
evidence store hands to the scoring pipeline. Both are read-only inputs.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Sequence

from .errors import require
from .utils import in_range
from .vectors import Embedding


MAX_FRAGMENT_LENGTH = 10_000


@dataclass(frozen=True)
class ThoughtFragment:
    """
    One recorded thought with its emotional tone.

    Attributes:
        id: Fragment identifier
        user_id: Owner
        text: Raw text, immutable once recorded (non-blank, ≤ 10000 chars)
        valence: Emotional positivity in [-1, 1]
        arousal: Activation intensity in [0, 1]
        embedding: Vector for the text, supplied by the embedding provider
        created_at: Recording time
        deleted: Soft-delete marker; deleted fragments are never evidence
    """
    id: str
    user_id: str
    text: str
    valence: float
    arousal: float
    embedding: Embedding
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    deleted: bool = False

    def __post_init__(self):
        require(bool(self.text and self.text.strip()), "Fragment text cannot be blank")
        require(len(self.text) <= MAX_FRAGMENT_LENGTH,
                f"Fragment text cannot exceed {MAX_FRAGMENT_LENGTH} characters")
        require(in_range(self.valence, -1.0, 1.0),
                f"Valence must be between -1.0 and 1.0, got: {self.valence}")
        require(in_range(self.arousal, 0.0, 1.0),
                f"Arousal must be between 0.0 and 1.0, got: {self.arousal}")
        require(isinstance(self.embedding, Embedding), "Fragment embedding is required")

    @property
    def is_positive(self) -> bool:
        return self.valence > 0.3

    @property
    def is_negative(self) -> bool:
        return self.valence < -0.3


@dataclass(frozen=True)
class EvidenceItem:
    """A fragment paired with its precomputed similarity to the decision context."""
    fragment: ThoughtFragment
    similarity: float

    def __post_init__(self):
        require(in_range(self.similarity, 0.0, 1.0),
                f"Similarity must be between 0.0 and 1.0, got: {self.similarity}")

    @property
    def id(self) -> str:
        return self.fragment.id

    @property
    def text(self) -> str:
        return self.fragment.text

    @property
    def valence(self) -> float:
        return self.fragment.valence

    @property
    def arousal(self) -> float:
        return self.fragment.arousal

    @property
    def embedding(self) -> Embedding:
        return self.fragment.embedding

    @property
    def created_at(self) -> datetime:
        return self.fragment.created_at


def make_evidence(
    id: str,
    embedding: Embedding,
    similarity: float,
    valence: float = 0.0,
    arousal: float = 0.5,
    text: Optional[str] = None,
    user_id: str = "unknown",
) -> EvidenceItem:
    """Build an EvidenceItem without constructing the fragment by hand."""
    fragment = ThoughtFragment(
        id=id,
        user_id=user_id,
        text=text or f"fragment {id}",
        valence=valence,
        arousal=arousal,
        embedding=embedding,
    )
    return EvidenceItem(fragment=fragment, similarity=similarity)


def evidence_ids(evidence: Sequence[EvidenceItem], limit: int) -> list:
    """First `limit` evidence ids in supplied (similarity) order."""
    return [item.id for item in evidence[:limit]]
