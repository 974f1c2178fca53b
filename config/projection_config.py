"""
Decision Projection Service - Configuration

Service-level settings. Scoring constants live in projection_core.parameters;
this file only covers choices made by the orchestrating layer.
"""

import os
from dataclasses import dataclass, fields
from typing import Optional

from projection_core.parameters import DEFAULT_LAMBDA, DEFAULT_REGRET_PRIOR


@dataclass(frozen=True)
class ProjectionConfig:
    """Complete service configuration"""

    # =================================================================
    # Per-user adaptive defaults (first access)
    # =================================================================
    DEFAULT_LAMBDA: float = DEFAULT_LAMBDA
    DEFAULT_REGRET_PRIOR: float = DEFAULT_REGRET_PRIOR

    # =================================================================
    # Evidence retrieval
    # =================================================================
    EVIDENCE_TOP_K: int = 20       # Similar fragments requested per decision

    # =================================================================
    # Embedding provider
    # =================================================================
    EMBEDDING_MODEL: str = "sentence-transformers/all-MiniLM-L6-v2"
    EMBEDDING_TIMEOUT: float = 30.0    # Seconds for one embedding batch

    # =================================================================
    # Concurrency & persistence
    # =================================================================
    LOCK_TIMEOUT: float = 5.0          # Seconds to wait for a per-user lock
    SETTINGS_DB_PATH: str = "data/projection_settings.db"
    SETTINGS_SAVE_RETRIES: int = 3     # Optimistic-version retries

    # =================================================================
    # Explanation generation
    # =================================================================
    EXPLANATION_MODEL: str = "gpt-4o-mini"
    EXPLANATION_TIMEOUT: float = 30.0  # Seconds for one completion
    EXPLANATION_MAX_TOKENS: int = 400

    # =================================================================
    # Feedback window
    # =================================================================
    FEEDBACK_MIN_DELAY_HOURS: float = 24.0   # Decision too fresh to judge before this
    FEEDBACK_MAX_DELAY_HOURS: float = 72.0   # No longer prompted after this


_ENV_PREFIX = "PROJECTION_"


def get_config(environ: Optional[dict] = None) -> ProjectionConfig:
    """
    Build configuration with PROJECTION_* environment overrides applied.

    Args:
        environ: Mapping to read instead of os.environ (tests)

    Raises:
        ValueError: if an override cannot be converted to the field's type
    """
    env = os.environ if environ is None else environ
    overrides = {}
    for f in fields(ProjectionConfig):
        raw = env.get(_ENV_PREFIX + f.name)
        if raw is None or raw == "":
            continue
        default = f.default
        try:
            overrides[f.name] = type(default)(raw)
        except ValueError:
            raise ValueError(f"Invalid value for {_ENV_PREFIX}{f.name}: {raw!r}") from None
    return ProjectionConfig(**overrides)


# Export singleton config
config = get_config()
