"""
Projection Core - Regret Estimator

Estimated risk that the user will regret each option, from their own
feedback history and the emotional tone of similar fragments.

Mathematical Definition:
    historicalRate = regret_rate(feedback)  if any feedback else regretPrior
    variance       = clip(Var_pop(valence_i), 0, 1)           (no evidence → 0.5)
    negativity_X   = Σ n_i·w_i / Σ w_i                        (Σ w_i = 0 → 0.5)
        n_i = (1 - valence_i) / 2
        w_i = similarity_i · clip((cos(X, f_i) + 1) / 2, 0, 1)
    baseRegret     = clip(historicalRate + variance · volatilityWeight, 0, 1)
    regretRisk_X   = clip(baseRegret + (negativity_X - 0.5) · negativityWeight, 0, 1)

Historical regret rate is the signal-weighted mean over submitted feedback:
    regret_rate = (0.0·satisfied + 0.3·neutral + 1.0·regret) / totalWithFeedback
"""

from __future__ import annotations
import logging
from collections import Counter
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Iterable, Optional, Sequence

from .breakdown import RegretBreakdown
from .errors import require
from .evidence import EvidenceItem
from .parameters import (
    CalculationParameters,
    DEFAULT_PARAMETERS,
    NEUTRAL_SCORE,
    NO_EVIDENCE_VARIANCE,
)
from .utils import clip01, population_variance
from .vectors import Embedding, cosine_similarity

logger = logging.getLogger(__name__)


class FeedbackType(Enum):
    """Post-decision outcome reported by the user."""

    SATISFIED = ("Satisfied", 0.0)
    NEUTRAL = ("Neutral", 0.3)
    REGRET = ("Regret", 1.0)

    def __init__(self, display_name: str, regret_signal: float):
        self.display_name = display_name
        self.regret_signal = regret_signal

    @classmethod
    def from_name(cls, name: str) -> "FeedbackType":
        try:
            return cls[name.strip().upper()]
        except KeyError:
            raise ValueError(f"Unknown feedback type: {name}") from None


@dataclass(frozen=True)
class DecisionFeedback:
    """One outcome report for one decision. At most one per decision."""
    id: str
    decision_id: str
    feedback_type: FeedbackType
    created_at: Optional[datetime] = None

    def __post_init__(self):
        if self.created_at is None:
            object.__setattr__(self, "created_at", datetime.now(timezone.utc))


@dataclass(frozen=True)
class FeedbackStats:
    """Per-user feedback counts."""
    total_decisions: int = 0
    total_with_feedback: int = 0
    satisfied_count: int = 0
    neutral_count: int = 0
    regret_count: int = 0

    def __post_init__(self):
        for name in ("total_decisions", "total_with_feedback",
                     "satisfied_count", "neutral_count", "regret_count"):
            require(getattr(self, name) >= 0, f"{name} must be non-negative")
        require(self.satisfied_count + self.neutral_count + self.regret_count
                == self.total_with_feedback,
                "feedback counts must sum to total_with_feedback")

    @property
    def has_feedback(self) -> bool:
        return self.total_with_feedback > 0

    @property
    def regret_rate(self) -> float:
        """Signal-weighted regret rate in [0, 1]; 0.0 without feedback."""
        if self.total_with_feedback == 0:
            return 0.0
        weighted = (FeedbackType.SATISFIED.regret_signal * self.satisfied_count
                    + FeedbackType.NEUTRAL.regret_signal * self.neutral_count
                    + FeedbackType.REGRET.regret_signal * self.regret_count)
        return clip01(weighted / self.total_with_feedback)

    @property
    def regret_count_ratio(self) -> float:
        """Share of feedback that was REGRET (descriptive only)."""
        if self.total_with_feedback == 0:
            return 0.0
        return self.regret_count / self.total_with_feedback

    @property
    def feedback_rate(self) -> float:
        if self.total_decisions == 0:
            return 0.0
        return clip01(self.total_with_feedback / self.total_decisions)

    @classmethod
    def from_feedback(cls, feedback_types: Iterable[FeedbackType],
                      total_decisions: Optional[int] = None) -> "FeedbackStats":
        """Aggregate a list of feedback types into stats."""
        counts = Counter(feedback_types)
        total = sum(counts.values())
        return cls(
            total_decisions=total if total_decisions is None else total_decisions,
            total_with_feedback=total,
            satisfied_count=counts[FeedbackType.SATISFIED],
            neutral_count=counts[FeedbackType.NEUTRAL],
            regret_count=counts[FeedbackType.REGRET],
        )


def historical_regret_rate(stats: FeedbackStats, regret_prior: float) -> float:
    """The user's regret rate, or the prior before any feedback exists."""
    return stats.regret_rate if stats.has_feedback else regret_prior


def valence_variance(evidence: Sequence[EvidenceItem]) -> float:
    """
    Population variance of evidence valences, clipped to [0, 1].

    Returns 0.5 for no evidence (high uncertainty).
    """
    if not evidence:
        return NO_EVIDENCE_VARIANCE
    return clip01(population_variance([item.valence for item in evidence]))


def option_negativity(option: Embedding, evidence: Sequence[EvidenceItem]) -> float:
    """
    How strongly an option lines up with negative fragments.

    Args:
        option: Option embedding
        evidence: Evidence items

    Returns:
        Weighted negativity in [0, 1]; 0.5 when total weight is zero
    """
    weighted_negativity = 0.0
    total_weight = 0.0
    for item in evidence:
        alignment_weight = clip01((cosine_similarity(option, item.embedding) + 1.0) / 2.0)
        weight = item.similarity * alignment_weight
        if weight == 0.0:
            continue
        negativity = clip01((1.0 - item.valence) / 2.0)
        weighted_negativity += negativity * weight
        total_weight += weight

    if total_weight == 0.0:
        return NEUTRAL_SCORE
    return clip01(weighted_negativity / total_weight)


def estimate_regret(
    option_a: Embedding,
    option_b: Embedding,
    evidence: Sequence[EvidenceItem],
    stats: FeedbackStats,
    parameters: CalculationParameters = DEFAULT_PARAMETERS,
) -> RegretBreakdown:
    """
    Estimate regret risk for both options.

    Args:
        option_a: Embedding of option A
        option_b: Embedding of option B
        evidence: Similarity-sorted evidence items
        stats: The user's feedback statistics
        parameters: Calculation parameters (regret prior and weights)

    Returns:
        RegretBreakdown with every intermediate in [0, 1]

    Raises:
        DimensionMismatchError: if option and fragment dimensions differ
    """
    rate = historical_regret_rate(stats, parameters.regret_prior)
    variance = valence_variance(evidence)
    negativity_a = option_negativity(option_a, evidence)
    negativity_b = option_negativity(option_b, evidence)

    base_regret = clip01(rate + variance * parameters.volatility_weight)
    risk_a = clip01(base_regret + (negativity_a - 0.5) * parameters.negativity_weight)
    risk_b = clip01(base_regret + (negativity_b - 0.5) * parameters.negativity_weight)

    logger.debug(f"regret: rate={rate:.4f} variance={variance:.4f} "
                 f"riskA={risk_a:.4f} riskB={risk_b:.4f}")

    return RegretBreakdown(
        historical_regret_rate=rate,
        valence_variance=variance,
        option_negativity_a=negativity_a,
        option_negativity_b=negativity_b,
        base_regret=base_regret,
        regret_risk_a=risk_a,
        regret_risk_b=risk_b,
        feedback_count=stats.total_with_feedback,
    )
