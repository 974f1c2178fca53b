"""
Embedding Providers

Two implementations of EmbeddingPort:

- LocalEmbeddingProvider: sentence-transformers, model loaded lazily in an
  executor on first use. Model from config EMBEDDING_MODEL, by default
  all-MiniLM-L6-v2 (384 dimensions).
- OpenAIEmbeddingProvider: OpenAI embeddings API, text-embedding-3-small
  (1536 dimensions). Quota exhaustion maps to QuotaExceededError, every
  other API failure to EmbeddingGenerationError.

Neither provider retries.

Usage:
    from projection_service.embeddings import LocalEmbeddingProvider

    provider = LocalEmbeddingProvider()
    embedding = await provider.embed("Take the job in Berlin")
"""

from __future__ import annotations

import asyncio
import os
from typing import Any, List, Optional, Sequence

from config.projection_config import config as default_config
from projection_core.errors import EmbeddingGenerationError, QuotaExceededError
from projection_core.vectors import Embedding
from projection_service.logging_utils import get_logger
from projection_service.ports import EmbeddingPort

logger = get_logger(__name__)

# Model configuration
LOCAL_EMBEDDING_DIM = 384
DEFAULT_OPENAI_MODEL = "text-embedding-3-small"
OPENAI_EMBEDDING_DIM = 1536

# Check if sentence-transformers is available
try:
    from sentence_transformers import SentenceTransformer
    SENTENCE_TRANSFORMERS_AVAILABLE = True
except ImportError:
    SENTENCE_TRANSFORMERS_AVAILABLE = False

# Check if OpenAI SDK is available
try:
    from openai import AsyncOpenAI
    OPENAI_AVAILABLE = True
except ImportError:
    OPENAI_AVAILABLE = False


def _require_text(texts: Sequence[str]) -> None:
    for text in texts:
        if not text or not text.strip():
            raise EmbeddingGenerationError("Cannot embed blank text")


class LocalEmbeddingProvider(EmbeddingPort):
    """
    sentence-transformers provider with lazy model loading.

    Async-compatible via run_in_executor. Model loaded on first use to avoid
    startup overhead.
    """

    def __init__(self, model_name: Optional[str] = None, batch_size: int = 32):
        self.model_name = model_name or default_config.EMBEDDING_MODEL
        self.batch_size = batch_size
        self._model: Optional[Any] = None
        self._load_lock: Optional[asyncio.Lock] = None

    async def _ensure_model(self) -> Any:
        """Lazy load model on first use."""
        if not SENTENCE_TRANSFORMERS_AVAILABLE:
            raise EmbeddingGenerationError(
                "sentence-transformers not installed. "
                "Install with: pip install 'decision-projection[local]'"
            )

        if self._model is not None:
            return self._model

        # Create lock lazily to avoid event loop binding issues
        if self._load_lock is None:
            self._load_lock = asyncio.Lock()

        async with self._load_lock:
            if self._model is not None:
                return self._model

            loop = asyncio.get_running_loop()

            def _load_model():
                logger.info(f"Loading embedding model: {self.model_name}")
                model = SentenceTransformer(self.model_name)
                logger.info(f"Embedding model loaded: {self.model_name}")
                return model

            try:
                self._model = await loop.run_in_executor(None, _load_model)
            except (RuntimeError, ValueError, OSError) as e:
                logger.error(f"Failed to load embedding model {self.model_name}: {e}")
                raise EmbeddingGenerationError(
                    f"Failed to load embedding model {self.model_name}: {e}"
                ) from e
            return self._model

    async def embed(self, text: str) -> Embedding:
        result = await self.embed_batch([text])
        return result[0]

    async def embed_batch(self, texts: Sequence[str]) -> List[Embedding]:
        if not texts:
            return []
        _require_text(texts)

        model = await self._ensure_model()
        loop = asyncio.get_running_loop()

        def _encode_batch():
            # normalize_embeddings=True for cosine similarity
            return model.encode(
                list(texts),
                batch_size=self.batch_size,
                normalize_embeddings=True,
                show_progress_bar=len(texts) > 100,
            )

        try:
            vectors = await loop.run_in_executor(None, _encode_batch)
        except (RuntimeError, ValueError, OSError) as e:
            logger.error(f"Local embedding failed: {e}")
            raise EmbeddingGenerationError(f"Failed to generate embedding: {e}") from e

        return [Embedding(vector) for vector in vectors]


def _is_quota_error(error: Exception) -> bool:
    """True when the OpenAI error reports an exhausted quota."""
    code = getattr(error, "code", None)
    if code == "insufficient_quota":
        return True
    body = getattr(error, "body", None)
    if isinstance(body, dict):
        inner = body.get("error", body)
        if isinstance(inner, dict) and inner.get("code") == "insufficient_quota":
            return True
    return False


class OpenAIEmbeddingProvider(EmbeddingPort):
    """OpenAI embeddings API provider."""

    def __init__(
        self,
        model: str = DEFAULT_OPENAI_MODEL,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        client: Optional[Any] = None,
    ):
        self.model = model
        if client is not None:
            self.client = client
            return

        if not OPENAI_AVAILABLE:
            raise ImportError("openai package required")

        api_key = api_key or os.getenv("OPENAI_API_KEY")
        if not api_key:
            raise ValueError("OPENAI_API_KEY required")

        self.client = AsyncOpenAI(
            api_key=api_key,
            base_url=base_url or os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1"),
        )
        logger.info(f"OpenAIEmbeddingProvider initialized: {self.model}")

    async def embed(self, text: str) -> Embedding:
        result = await self.embed_batch([text])
        return result[0]

    async def embed_batch(self, texts: Sequence[str]) -> List[Embedding]:
        if not texts:
            return []
        _require_text(texts)

        try:
            response = await self.client.embeddings.create(model=self.model, input=list(texts))
        except Exception as e:
            if _is_quota_error(e):
                logger.error(f"Embedding quota exceeded: {e}")
                raise QuotaExceededError() from e
            logger.error(f"Embedding failed: {e}")
            raise EmbeddingGenerationError(f"Failed to generate embedding: {e}") from e

        data = sorted(response.data, key=lambda item: item.index)
        if len(data) != len(texts):
            raise EmbeddingGenerationError(
                f"Expected {len(texts)} embeddings, received {len(data)}"
            )
        return [Embedding(item.embedding) for item in data]
