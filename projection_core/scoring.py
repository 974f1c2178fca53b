"""
Projection Core - Score & Probability Compositor

Combines pattern fit and regret risk into final scores, then into
normalized probabilities.

Mathematical Definition:
    score_X = fit_X - λ · regretRisk_X
    P(A)    = exp(scoreA) / (exp(scoreA) + exp(scoreB))
    P(B)    = 1 - P(A)

Interpretation:
    Probabilities describe how each option fits the user's own history.
    They are descriptive statistics, never a recommendation.
"""

from __future__ import annotations
import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional, Sequence, Tuple

from .alignment import compute_value_alignment
from .breakdown import CalculationBreakdown
from .errors import require
from .evidence import EvidenceItem, evidence_ids
from .fit import compute_fit
from .parameters import CalculationParameters, DEFAULT_PARAMETERS, MAX_EVIDENCE_COUNT
from .regret import FeedbackStats, estimate_regret
from .utils import in_range
from .values import ValueAxis, ValueImportance, ValueNode
from .vectors import Embedding

logger = logging.getLogger(__name__)

PROBABILITY_TOLERANCE = 1e-9


def softmax_pair(score_a: float, score_b: float) -> Tuple[float, float]:
    """
    Two-way softmax, max-subtracted for numerical stability.

    Equal scores give exactly (0.5, 0.5).

    Args:
        score_a: Score of option A
        score_b: Score of option B

    Returns:
        (probability_a, probability_b) summing to 1
    """
    m = max(score_a, score_b)
    exp_a = math.exp(score_a - m)
    exp_b = math.exp(score_b - m)
    prob_a = exp_a / (exp_a + exp_b)
    return prob_a, 1.0 - prob_a


def compose_scores(fit_a: float, fit_b: float, regret_a: float, regret_b: float,
                   lambda_: float) -> Tuple[float, float]:
    """score = fit - λ·regret for both options."""
    return fit_a - lambda_ * regret_a, fit_b - lambda_ * regret_b


class Option(Enum):
    A = "A"
    B = "B"


class RegretLevel(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @classmethod
    def classify(cls, regret_risk: float) -> "RegretLevel":
        if regret_risk >= 0.6:
            return cls.HIGH
        if regret_risk >= 0.3:
            return cls.MEDIUM
        return cls.LOW


@dataclass(frozen=True)
class DecisionResult:
    """
    Outcome of one decision projection.

    Attributes:
        probability_a: Fit probability of option A [0, 1]
        probability_b: Fit probability of option B, 1 - probability_a
        regret_risk_a: Regret risk of option A [0, 1]
        regret_risk_b: Regret risk of option B [0, 1]
        evidence_fragment_ids: Up to 10 evidence ids, most similar first
        value_alignment: Alignment in [0, 1] for each value axis
        breakdown: Full calculation record for audit consumers
    """
    probability_a: float
    probability_b: float
    regret_risk_a: float
    regret_risk_b: float
    evidence_fragment_ids: Tuple[str, ...] = field(default_factory=tuple)
    value_alignment: Dict[ValueAxis, float] = field(default_factory=dict)
    breakdown: Optional[CalculationBreakdown] = None

    def __post_init__(self):
        require(in_range(self.probability_a, 0.0, 1.0), "probabilityA must be in [0.0, 1.0]")
        require(in_range(self.probability_b, 0.0, 1.0), "probabilityB must be in [0.0, 1.0]")
        require(abs(self.probability_a + self.probability_b - 1.0) <= PROBABILITY_TOLERANCE,
                "Probabilities must sum to 1.0")
        require(in_range(self.regret_risk_a, 0.0, 1.0), "regretRiskA must be in [0.0, 1.0]")
        require(in_range(self.regret_risk_b, 0.0, 1.0), "regretRiskB must be in [0.0, 1.0]")
        require(len(self.evidence_fragment_ids) <= MAX_EVIDENCE_COUNT,
                f"At most {MAX_EVIDENCE_COUNT} evidence fragments")
        for axis, value in self.value_alignment.items():
            require(in_range(value, 0.0, 1.0), f"Value alignment for {axis.name} must be in [0.0, 1.0]")
        object.__setattr__(self, "evidence_fragment_ids", tuple(self.evidence_fragment_ids))

    @property
    def higher_probability_option(self) -> Optional[Option]:
        """Which option fits the user's history more closely; None on a tie."""
        if self.probability_a > self.probability_b:
            return Option.A
        if self.probability_b > self.probability_a:
            return Option.B
        return None

    @property
    def lower_regret_risk_option(self) -> Optional[Option]:
        if self.regret_risk_a < self.regret_risk_b:
            return Option.A
        if self.regret_risk_b < self.regret_risk_a:
            return Option.B
        return None

    @property
    def regret_level_a(self) -> RegretLevel:
        return RegretLevel.classify(self.regret_risk_a)

    @property
    def regret_level_b(self) -> RegretLevel:
        return RegretLevel.classify(self.regret_risk_b)

    def to_dict(self, include_breakdown: bool = True) -> dict:
        data = {
            'probability_a': self.probability_a,
            'probability_b': self.probability_b,
            'regret_risk_a': self.regret_risk_a,
            'regret_risk_b': self.regret_risk_b,
            'evidence_fragment_ids': list(self.evidence_fragment_ids),
            'value_alignment': {axis.key: value for axis, value in self.value_alignment.items()},
        }
        if include_breakdown and self.breakdown is not None:
            data['breakdown'] = self.breakdown.to_dict()
        return data


def project_decision(
    option_a: Embedding,
    option_b: Embedding,
    evidence: Sequence[EvidenceItem],
    stats: FeedbackStats,
    axis_embeddings: Dict[ValueAxis, Embedding],
    parameters: CalculationParameters = DEFAULT_PARAMETERS,
    importance: Optional[ValueImportance] = None,
    value_nodes: Optional[Dict[ValueAxis, ValueNode]] = None,
    priority_axis_embedding: Optional[Embedding] = None,
) -> DecisionResult:
    """
    Run the full scoring pipeline on precomputed inputs.

    Pure and deterministic: the same inputs always give the same result.

    Args:
        option_a: Embedding of option A
        option_b: Embedding of option B
        evidence: Similarity-sorted evidence items
        stats: The user's feedback statistics
        axis_embeddings: Embedding of each value axis text
        parameters: The user's calculation parameters
        importance: Explicit value importance profile
        value_nodes: Implicit per-axis statistics
        priority_axis_embedding: Embedding of the decision's priority axis, if any

    Returns:
        DecisionResult including the calculation breakdown
    """
    fit = compute_fit(option_a, option_b, evidence,
                      priority_axis_embedding=priority_axis_embedding,
                      priority_axis_boost=parameters.priority_axis_boost)
    regret = estimate_regret(option_a, option_b, evidence, stats, parameters)
    breakdown = CalculationBreakdown.compute(fit, regret, parameters)
    prob_a, prob_b = softmax_pair(breakdown.scores.score_a, breakdown.scores.score_b)
    alignment = compute_value_alignment(option_a, option_b, axis_embeddings,
                                        importance, value_nodes)

    logger.debug(f"projection: scoreA={breakdown.scores.score_a:.4f} "
                 f"scoreB={breakdown.scores.score_b:.4f} probA={prob_a:.4f}")

    return DecisionResult(
        probability_a=prob_a,
        probability_b=prob_b,
        regret_risk_a=regret.regret_risk_a,
        regret_risk_b=regret.regret_risk_b,
        evidence_fragment_ids=tuple(evidence_ids(evidence, MAX_EVIDENCE_COUNT)),
        value_alignment=alignment,
        breakdown=breakdown,
    )
