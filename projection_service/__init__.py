"""
Decision Projection Service

Async orchestration around projection_core: collaborator interfaces,
embedding providers, stores, per-user locking, and the decision, feedback,
explanation and value-profile services.
"""

from .errors import (
    DecisionNotFoundError,
    FeedbackAlreadyExistsError,
    ConcurrentModificationError,
    LockTimeoutError,
)
from .projection import DecisionProjectionService, DecisionPage
from .feedback import FeedbackService, FeedbackOutcome
from .explanation import (
    ExplanationService,
    ExplanationContext,
    OpenAIExplanationProvider,
    build_explanation_context,
)
from .values import ValueProfileService
from .settings_provider import UserSettingsProvider
from .locking import UserLockManager

__all__ = [
    'DecisionNotFoundError',
    'FeedbackAlreadyExistsError',
    'ConcurrentModificationError',
    'LockTimeoutError',
    'DecisionProjectionService',
    'DecisionPage',
    'FeedbackService',
    'FeedbackOutcome',
    'ExplanationService',
    'ExplanationContext',
    'OpenAIExplanationProvider',
    'build_explanation_context',
    'ValueProfileService',
    'UserSettingsProvider',
    'UserLockManager',
]
