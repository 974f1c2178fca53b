"""
Collaborator Interfaces

Narrow async interfaces for everything the projection service depends on
but does not own: embedding generation, evidence retrieval, per-user stores
and explanation generation. Each has an in-memory or real implementation
elsewhere in this package and a test double in tests/conftest.py.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import TYPE_CHECKING, Dict, List, Optional, Sequence

from projection_core.decision import Decision, DecisionExplanation
from projection_core.evidence import EvidenceItem, ThoughtFragment
from projection_core.parameters import UserAdaptiveSettings
from projection_core.regret import DecisionFeedback, FeedbackStats
from projection_core.values import ValueAxis, ValueImportance, ValueNode
from projection_core.vectors import Embedding

if TYPE_CHECKING:
    from projection_service.explanation import ExplanationContext


class EmbeddingPort(ABC):
    """
    Text → vector service.

    Implementations raise EmbeddingGenerationError or QuotaExceededError;
    they never retry.
    """

    @abstractmethod
    async def embed(self, text: str) -> Embedding:
        """Embedding for one text."""
        pass

    @abstractmethod
    async def embed_batch(self, texts: Sequence[str]) -> List[Embedding]:
        """Embeddings for several texts, in input order."""
        pass


class EvidenceStore(ABC):
    """Nearest-neighbor search over a user's non-deleted fragments."""

    @abstractmethod
    async def find_similar(self, user_id: str, query: Embedding, top_k: int) -> List[EvidenceItem]:
        """Top-K fragments by similarity, most similar first."""
        pass

    @abstractmethod
    async def add(self, fragment: ThoughtFragment) -> None:
        pass


class ValueImportanceStore(ABC):

    @abstractmethod
    async def get(self, user_id: str) -> Optional[ValueImportance]:
        pass

    @abstractmethod
    async def save(self, importance: ValueImportance) -> ValueImportance:
        pass


class ValueGraphStore(ABC):
    """Implicit per-axis value nodes."""

    @abstractmethod
    async def get_nodes(self, user_id: str) -> Dict[ValueAxis, ValueNode]:
        pass

    @abstractmethod
    async def save_node(self, user_id: str, node: ValueNode) -> None:
        pass


class UserSettingsStore(ABC):
    """
    Per-user adaptive settings with optimistic versioning.

    save() succeeds only if the stored version equals expected_version;
    otherwise it raises ConcurrentModificationError.
    """

    @abstractmethod
    async def get(self, user_id: str) -> Optional[UserAdaptiveSettings]:
        pass

    @abstractmethod
    async def create(self, settings: UserAdaptiveSettings) -> UserAdaptiveSettings:
        """Insert settings; if a record already exists, return that one instead."""
        pass

    @abstractmethod
    async def save(self, settings: UserAdaptiveSettings, expected_version: int) -> UserAdaptiveSettings:
        pass


class DecisionStore(ABC):
    """Decisions, their feedback, and per-user feedback statistics."""

    @abstractmethod
    async def save(self, decision: Decision) -> Decision:
        pass

    @abstractmethod
    async def get(self, decision_id: str) -> Optional[Decision]:
        pass

    @abstractmethod
    async def save_feedback(self, feedback: DecisionFeedback) -> DecisionFeedback:
        pass

    @abstractmethod
    async def get_feedback(self, decision_id: str) -> Optional[DecisionFeedback]:
        pass

    @abstractmethod
    async def delete_feedback(self, decision_id: str) -> None:
        """Remove a decision's feedback; no-op when there is none."""
        pass

    @abstractmethod
    async def get_feedback_stats(self, user_id: str) -> FeedbackStats:
        pass

    @abstractmethod
    async def list_decisions(self, user_id: str, limit: int, offset: int) -> List[Decision]:
        """User's decisions, newest first."""
        pass

    @abstractmethod
    async def count_decisions(self, user_id: str) -> int:
        pass

    @abstractmethod
    async def find_awaiting_feedback(self, user_id: str, created_after: datetime,
                                     created_before: datetime) -> List[Decision]:
        """Decisions without feedback created inside the window, oldest first."""
        pass


class ExplanationPort(ABC):
    """Text-generation service that turns a neutral fact bundle into prose."""

    @abstractmethod
    async def generate(self, context: "ExplanationContext") -> DecisionExplanation:
        pass
