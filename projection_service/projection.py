"""
Decision Projection Service

Async orchestration around the pure scoring pipeline:

  1. Validate the request and build the decision context text
  2. Embed context, both options and the 8 value-axis texts in one batch
  3. Fetch evidence, feedback stats, settings, importance and value nodes
  4. Run projection_core.project_decision
  5. Persist the Decision

Embedding is the only suspension point the pipeline depends on. If it is
cancelled, times out or fails, nothing is computed and nothing is saved.
Provider errors propagate unchanged; timeouts surface as
EmbeddingGenerationError. No retries here.
"""

from __future__ import annotations

import asyncio
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional, Tuple

from config.projection_config import ProjectionConfig, config as default_config
from projection_core.decision import Decision, build_context_text, validate_decision_text
from projection_core.errors import EmbeddingGenerationError, require
from projection_core.parameters import CalculationParameters
from projection_core.scoring import DecisionResult, project_decision
from projection_core.values import ValueAxis
from projection_core.vectors import Embedding
from projection_service.errors import DecisionNotFoundError
from projection_service.logging_utils import get_logger
from projection_service.ports import (
    DecisionStore,
    EmbeddingPort,
    EvidenceStore,
    ValueGraphStore,
    ValueImportanceStore,
)
from projection_service.settings_provider import UserSettingsProvider

logger = get_logger(__name__)


@dataclass(frozen=True)
class DecisionEmbeddings:
    """Every vector one decision needs, fetched together."""
    context: Embedding
    option_a: Embedding
    option_b: Embedding
    axes: Dict[ValueAxis, Embedding]

    def priority(self, axis: Optional[ValueAxis]) -> Optional[Embedding]:
        return self.axes[axis] if axis is not None else None


@dataclass(frozen=True)
class DecisionPage:
    decisions: Tuple[Decision, ...]
    total: int
    has_more: bool


class DecisionProjectionService:

    def __init__(
        self,
        embeddings: EmbeddingPort,
        evidence_store: EvidenceStore,
        decision_store: DecisionStore,
        settings_provider: UserSettingsProvider,
        importance_store: ValueImportanceStore,
        value_graph_store: ValueGraphStore,
        config: Optional[ProjectionConfig] = None,
        id_factory: Callable[[], str] = lambda: str(uuid.uuid4()),
    ):
        self.embeddings = embeddings
        self.evidence_store = evidence_store
        self.decision_store = decision_store
        self.settings_provider = settings_provider
        self.importance_store = importance_store
        self.value_graph_store = value_graph_store
        self.config = config or default_config
        self._new_id = id_factory

    async def embed_decision(self, title: str, option_a: str, option_b: str,
                             priority_axis: Optional[ValueAxis] = None) -> DecisionEmbeddings:
        """
        Fetch all embeddings for a decision in one batch.

        Raises:
            EmbeddingGenerationError: provider failure, timeout, or a short batch
            QuotaExceededError: provider quota exhausted
        """
        axes = list(ValueAxis)
        texts: List[str] = [build_context_text(title, option_a, option_b, priority_axis),
                            option_a, option_b]
        texts.extend(axis.axis_text for axis in axes)

        try:
            vectors = await asyncio.wait_for(self.embeddings.embed_batch(texts),
                                             timeout=self.config.EMBEDDING_TIMEOUT)
        except asyncio.TimeoutError:
            logger.error(f"Embedding timed out after {self.config.EMBEDDING_TIMEOUT}s")
            raise EmbeddingGenerationError(
                f"Embedding timed out after {self.config.EMBEDDING_TIMEOUT}s"
            ) from None

        if len(vectors) != len(texts):
            raise EmbeddingGenerationError(
                f"Expected {len(texts)} embeddings, received {len(vectors)}"
            )

        return DecisionEmbeddings(
            context=vectors[0],
            option_a=vectors[1],
            option_b=vectors[2],
            axes=dict(zip(axes, vectors[3:])),
        )

    async def project(self, user_id: str, title: str, option_a: str, option_b: str,
                      priority_axis: Optional[ValueAxis] = None) -> DecisionResult:
        """
        Compute a projection without persisting it.

        Raises:
            PreconditionError: invalid title or options
            EmbeddingProviderError: embedding failure (nothing is computed)
        """
        validate_decision_text(title, option_a, option_b)
        vectors = await self.embed_decision(title, option_a, option_b, priority_axis)

        evidence = await self.evidence_store.find_similar(
            user_id, vectors.context, self.config.EVIDENCE_TOP_K
        )
        stats = await self.decision_store.get_feedback_stats(user_id)
        settings = await self.settings_provider.get_settings(user_id)
        importance = await self.importance_store.get(user_id)
        nodes = await self.value_graph_store.get_nodes(user_id)

        result = project_decision(
            option_a=vectors.option_a,
            option_b=vectors.option_b,
            evidence=evidence,
            stats=stats,
            axis_embeddings=vectors.axes,
            parameters=CalculationParameters.with_user_settings(settings),
            importance=importance,
            value_nodes=nodes,
            priority_axis_embedding=vectors.priority(priority_axis),
        )
        logger.debug(f"Projected decision for user {user_id}: evidence={len(evidence)} "
                     f"lambda={settings.lambda_} probA={result.probability_a:.4f}")
        return result

    async def create_decision(self, user_id: str, title: str, option_a: str, option_b: str,
                              priority_axis: Optional[ValueAxis] = None) -> Decision:
        """Compute a projection and persist it as a new Decision."""
        result = await self.project(user_id, title, option_a, option_b, priority_axis)
        decision = Decision(
            id=self._new_id(),
            user_id=user_id,
            title=title,
            option_a=option_a,
            option_b=option_b,
            priority_axis=priority_axis,
            result=result,
        )
        saved = await self.decision_store.save(decision)
        logger.info(f"Decision created: {saved.id} (user {user_id})")
        return saved

    async def get_decision(self, user_id: str, decision_id: str) -> Decision:
        """
        Load a decision owned by user_id.

        Raises:
            DecisionNotFoundError: missing, or owned by another user
        """
        decision = await self.decision_store.get(decision_id)
        if decision is None or decision.user_id != user_id:
            raise DecisionNotFoundError(decision_id)
        return decision

    async def list_decisions(self, user_id: str, limit: int = 20, offset: int = 0) -> DecisionPage:
        """One page of the user's decisions, newest first."""
        require(limit >= 1, f"limit must be positive, got {limit}")
        require(offset >= 0, f"offset cannot be negative, got {offset}")
        decisions = await self.decision_store.list_decisions(user_id, limit, offset)
        total = await self.decision_store.count_decisions(user_id)
        return DecisionPage(
            decisions=tuple(decisions),
            total=total,
            has_more=offset + len(decisions) < total,
        )

    async def decisions_awaiting_feedback(self, user_id: str,
                                          now: Optional[datetime] = None) -> List[Decision]:
        """
        Decisions old enough to judge but not yet too old to ask about.

        The window is [now - FEEDBACK_MAX_DELAY_HOURS, now - FEEDBACK_MIN_DELAY_HOURS];
        decisions that already have feedback are excluded.
        """
        now = now or datetime.now(timezone.utc)
        return await self.decision_store.find_awaiting_feedback(
            user_id,
            created_after=now - timedelta(hours=self.config.FEEDBACK_MAX_DELAY_HOURS),
            created_before=now - timedelta(hours=self.config.FEEDBACK_MIN_DELAY_HOURS),
        )
