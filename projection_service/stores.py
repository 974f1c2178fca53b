"""
In-Memory Stores

Process-local implementations of every collaborator store. Used by tests
and single-process deployments; all state is lost on restart.

Each method body runs without awaiting, so under asyncio every operation
is atomic with respect to other coroutines.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from typing import Dict, List, Optional

from projection_core.decision import Decision
from projection_core.evidence import EvidenceItem, ThoughtFragment
from projection_core.parameters import UserAdaptiveSettings
from projection_core.regret import DecisionFeedback, FeedbackStats
from projection_core.values import ValueAxis, ValueImportance, ValueNode
from projection_core.vectors import Embedding, cosine_similarity
from projection_service.errors import ConcurrentModificationError
from projection_service.ports import (
    DecisionStore,
    EvidenceStore,
    UserSettingsStore,
    ValueGraphStore,
    ValueImportanceStore,
)


class InMemoryEvidenceStore(EvidenceStore):
    """Brute-force cosine search over stored fragments."""

    def __init__(self):
        self._fragments: Dict[str, ThoughtFragment] = {}

    async def add(self, fragment: ThoughtFragment) -> None:
        self._fragments[fragment.id] = fragment

    async def delete(self, fragment_id: str) -> None:
        """Soft-delete: the fragment stays but is never returned as evidence."""
        fragment = self._fragments.get(fragment_id)
        if fragment is not None:
            self._fragments[fragment_id] = replace(fragment, deleted=True)

    async def find_similar(self, user_id: str, query: Embedding, top_k: int) -> List[EvidenceItem]:
        if top_k <= 0:
            return []
        scored = []
        for fragment in self._fragments.values():
            if fragment.user_id != user_id or fragment.deleted:
                continue
            similarity = max(0.0, cosine_similarity(query, fragment.embedding))
            scored.append(EvidenceItem(fragment=fragment, similarity=similarity))
        scored.sort(key=lambda item: item.similarity, reverse=True)
        return scored[:top_k]


class InMemoryValueImportanceStore(ValueImportanceStore):

    def __init__(self):
        self._profiles: Dict[str, ValueImportance] = {}

    async def get(self, user_id: str) -> Optional[ValueImportance]:
        return self._profiles.get(user_id)

    async def save(self, importance: ValueImportance) -> ValueImportance:
        self._profiles[importance.user_id] = importance
        return importance


class InMemoryValueGraphStore(ValueGraphStore):

    def __init__(self):
        self._nodes: Dict[str, Dict[ValueAxis, ValueNode]] = {}

    async def get_nodes(self, user_id: str) -> Dict[ValueAxis, ValueNode]:
        return dict(self._nodes.get(user_id, {}))

    async def save_node(self, user_id: str, node: ValueNode) -> None:
        self._nodes.setdefault(user_id, {})[node.axis] = node


class InMemoryUserSettingsStore(UserSettingsStore):
    """Settings with optimistic version checks."""

    def __init__(self):
        self._settings: Dict[str, UserAdaptiveSettings] = {}

    async def get(self, user_id: str) -> Optional[UserAdaptiveSettings]:
        return self._settings.get(user_id)

    async def create(self, settings: UserAdaptiveSettings) -> UserAdaptiveSettings:
        return self._settings.setdefault(settings.user_id, settings)

    async def save(self, settings: UserAdaptiveSettings, expected_version: int) -> UserAdaptiveSettings:
        current = self._settings.get(settings.user_id)
        actual = current.version if current is not None else 0
        if actual != expected_version:
            raise ConcurrentModificationError(settings.user_id, expected_version, actual)
        self._settings[settings.user_id] = settings
        return settings


class InMemoryDecisionStore(DecisionStore):

    def __init__(self):
        self._decisions: Dict[str, Decision] = {}
        self._feedback: Dict[str, DecisionFeedback] = {}  # decision_id -> feedback

    async def save(self, decision: Decision) -> Decision:
        self._decisions[decision.id] = decision
        return decision

    async def get(self, decision_id: str) -> Optional[Decision]:
        return self._decisions.get(decision_id)

    async def save_feedback(self, feedback: DecisionFeedback) -> DecisionFeedback:
        self._feedback[feedback.decision_id] = feedback
        return feedback

    async def get_feedback(self, decision_id: str) -> Optional[DecisionFeedback]:
        return self._feedback.get(decision_id)

    async def delete_feedback(self, decision_id: str) -> None:
        self._feedback.pop(decision_id, None)

    async def get_feedback_stats(self, user_id: str) -> FeedbackStats:
        decision_ids = [d.id for d in self._decisions.values() if d.user_id == user_id]
        types = [self._feedback[d].feedback_type for d in decision_ids if d in self._feedback]
        return FeedbackStats.from_feedback(types, total_decisions=len(decision_ids))

    def _owned(self, user_id: str) -> List[Decision]:
        return [d for d in self._decisions.values() if d.user_id == user_id]

    async def list_decisions(self, user_id: str, limit: int, offset: int) -> List[Decision]:
        decisions = sorted(self._owned(user_id), key=lambda d: d.created_at, reverse=True)
        return decisions[offset:offset + limit]

    async def count_decisions(self, user_id: str) -> int:
        return len(self._owned(user_id))

    async def find_awaiting_feedback(self, user_id: str, created_after: datetime,
                                     created_before: datetime) -> List[Decision]:
        pending = [d for d in self._owned(user_id)
                   if d.id not in self._feedback and created_after <= d.created_at <= created_before]
        return sorted(pending, key=lambda d: d.created_at)
