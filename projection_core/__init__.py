"""
Projection Core - Decision Projection Engine

Pure, synchronous scoring pipeline for binary decisions: pattern fit,
regret risk, value alignment, softmax probabilities and the feedback
learner that adapts λ over time. No I/O, no async, no hidden state.

Results describe the user's own history. They never recommend an option.
"""

from .errors import (
    ProjectionError,
    PreconditionError,
    DimensionMismatchError,
    EmbeddingProviderError,
    EmbeddingGenerationError,
    QuotaExceededError,
)

from .vectors import (
    Embedding,
    cosine_similarity,
    dot_product,
)

from .values import (
    ValueAxis,
    ValueImportance,
    ValueNode,
    Trend,
)

from .evidence import (
    ThoughtFragment,
    EvidenceItem,
)

from .parameters import (
    CalculationParameters,
    UserAdaptiveSettings,
    LearnerConfig,
    DEFAULT_PARAMETERS,
    DEFAULT_LEARNER_CONFIG,
)

from .breakdown import (
    FragmentContribution,
    FitBreakdown,
    RegretBreakdown,
    ScoreBreakdown,
    CalculationBreakdown,
    DataReliability,
    FavoredOption,
)

from .fit import compute_fit

from .regret import (
    FeedbackType,
    FeedbackStats,
    DecisionFeedback,
    estimate_regret,
)

from .alignment import (
    compute_value_alignment,
    theoretical_max_amplification,
)

from .scoring import (
    softmax_pair,
    compose_scores,
    project_decision,
    DecisionResult,
    Option,
    RegretLevel,
)

from .decision import (
    Decision,
    DecisionExplanation,
    build_context_text,
)

from .feedback_learner import (
    FeedbackLearner,
    LambdaUpdate,
    compute_lambda_update,
    next_lambda,
)

__all__ = [
    # Errors
    'ProjectionError',
    'PreconditionError',
    'DimensionMismatchError',
    'EmbeddingProviderError',
    'EmbeddingGenerationError',
    'QuotaExceededError',

    # Vectors
    'Embedding',
    'cosine_similarity',
    'dot_product',

    # Values and evidence
    'ValueAxis',
    'ValueImportance',
    'ValueNode',
    'Trend',
    'ThoughtFragment',
    'EvidenceItem',

    # Parameters
    'CalculationParameters',
    'UserAdaptiveSettings',
    'LearnerConfig',
    'DEFAULT_PARAMETERS',
    'DEFAULT_LEARNER_CONFIG',

    # Breakdowns
    'FragmentContribution',
    'FitBreakdown',
    'RegretBreakdown',
    'ScoreBreakdown',
    'CalculationBreakdown',
    'DataReliability',
    'FavoredOption',

    # Pipeline
    'compute_fit',
    'FeedbackType',
    'FeedbackStats',
    'DecisionFeedback',
    'estimate_regret',
    'compute_value_alignment',
    'theoretical_max_amplification',
    'softmax_pair',
    'compose_scores',
    'project_decision',
    'DecisionResult',
    'Option',
    'RegretLevel',
    'Decision',
    'DecisionExplanation',
    'build_context_text',

    # Learning
    'FeedbackLearner',
    'LambdaUpdate',
    'compute_lambda_update',
    'next_lambda',
]

__version__ = '1.0.0'
