"""
Pytest configuration and fixtures for decision projection tests.
"""
import asyncio
import hashlib
import itertools
import sys
import warnings
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import pytest

project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from config.projection_config import ProjectionConfig
from projection_core.decision import DecisionExplanation
from projection_core.evidence import EvidenceItem, ThoughtFragment
from projection_core.vectors import Embedding
from projection_service.feedback import FeedbackService
from projection_service.locking import UserLockManager
from projection_service.ports import EmbeddingPort, ExplanationPort
from projection_service.projection import DecisionProjectionService
from projection_service.settings_provider import UserSettingsProvider
from projection_service.stores import (
    InMemoryDecisionStore,
    InMemoryEvidenceStore,
    InMemoryUserSettingsStore,
    InMemoryValueGraphStore,
    InMemoryValueImportanceStore,
)

# Filter ResourceWarnings from SQLite connections closed by GC
warnings.filterwarnings("ignore", category=ResourceWarning)

DIMENSION = 8


def hashed_vector(text: str, dimension: int = DIMENSION) -> List[float]:
    """Deterministic pseudo-embedding: same text, same vector."""
    digest = hashlib.sha256(text.encode("utf-8")).digest()
    return [(digest[i % len(digest)] / 127.5) - 1.0 for i in range(dimension)]


class FakeEmbeddingProvider(EmbeddingPort):
    """
    Deterministic embedding double.

    Texts registered in `fixed` get exactly that vector; everything else is
    hashed. Set `error` to make every call raise, or `delay` to make calls
    slow.
    """

    def __init__(self, dimension: int = DIMENSION):
        self.dimension = dimension
        self.fixed: Dict[str, List[float]] = {}
        self.error: Optional[BaseException] = None
        self.delay: float = 0.0
        self.calls: List[List[str]] = []

    def set(self, text: str, vector: Sequence[float]) -> None:
        self.fixed[text] = list(vector)

    def vector_for(self, text: str) -> List[float]:
        return self.fixed.get(text) or hashed_vector(text, self.dimension)

    async def embed(self, text: str) -> Embedding:
        return (await self.embed_batch([text]))[0]

    async def embed_batch(self, texts: Sequence[str]) -> List[Embedding]:
        self.calls.append(list(texts))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return [Embedding(self.vector_for(t)) for t in texts]


class FakeExplanationPort(ExplanationPort):

    def __init__(self):
        self.contexts = []

    async def generate(self, context) -> DecisionExplanation:
        self.contexts.append(context)
        return DecisionExplanation(
            summary=f"Projection for '{context.title}'",
            evidence_summary=f"{len(context.top_fragments)} fragments considered",
            value_summary="Alignment is descriptive only",
        )


_fragment_ids = itertools.count(1)


def make_fragment(embedding, valence=0.0, arousal=0.5, user_id="user-1",
                  text=None, fragment_id=None) -> ThoughtFragment:
    fid = fragment_id or f"frag-{next(_fragment_ids)}"
    vector = embedding if isinstance(embedding, Embedding) else Embedding(embedding)
    return ThoughtFragment(
        id=fid,
        user_id=user_id,
        text=text or f"Thought {fid}",
        valence=valence,
        arousal=arousal,
        embedding=vector,
    )


def make_evidence(embedding, similarity=0.8, valence=0.0, **kwargs) -> EvidenceItem:
    return EvidenceItem(fragment=make_fragment(embedding, valence=valence, **kwargs),
                        similarity=similarity)


@pytest.fixture
def test_config():
    return ProjectionConfig(EMBEDDING_TIMEOUT=1.0, LOCK_TIMEOUT=1.0)


@pytest.fixture
def embeddings():
    return FakeEmbeddingProvider()


@pytest.fixture
def evidence_store():
    return InMemoryEvidenceStore()


@pytest.fixture
def decision_store():
    return InMemoryDecisionStore()


@pytest.fixture
def settings_store():
    return InMemoryUserSettingsStore()


@pytest.fixture
def importance_store():
    return InMemoryValueImportanceStore()


@pytest.fixture
def value_graph_store():
    return InMemoryValueGraphStore()


@pytest.fixture
def settings_provider(settings_store, test_config):
    return UserSettingsProvider(settings_store, test_config)


@pytest.fixture
def projection_service(embeddings, evidence_store, decision_store, settings_provider,
                       importance_store, value_graph_store, test_config):
    ids = itertools.count(1)
    return DecisionProjectionService(
        embeddings=embeddings,
        evidence_store=evidence_store,
        decision_store=decision_store,
        settings_provider=settings_provider,
        importance_store=importance_store,
        value_graph_store=value_graph_store,
        config=test_config,
        id_factory=lambda: f"decision-{next(ids)}",
    )


@pytest.fixture
def feedback_service(decision_store, settings_store, settings_provider, test_config):
    return FeedbackService(
        decision_store=decision_store,
        settings_store=settings_store,
        settings_provider=settings_provider,
        locks=UserLockManager(test_config.LOCK_TIMEOUT),
        config=test_config,
    )


@pytest.fixture
def explanation_port():
    return FakeExplanationPort()
