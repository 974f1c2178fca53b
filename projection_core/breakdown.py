"""
Projection Core - Calculation Breakdowns

Immutable records of every intermediate value of one decision calculation.
All values are reproducible from the inputs: no randomness, no hidden state,
no generated prose.

    CalculationBreakdown
      ├── FitBreakdown      (pattern fit + top fragment contributions)
      ├── RegretBreakdown   (historical rate, volatility, negativity)
      ├── CalculationParameters
      └── ScoreBreakdown    (score = fit - λ·regret)
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Sequence, Tuple

from .errors import require
from .parameters import (
    CalculationParameters,
    CLOSE_CALL_THRESHOLD,
    DEFAULT_NEGATIVITY_WEIGHT,
    DEFAULT_PRIORITY_AXIS_BOOST,
    HIGH_RELIABILITY_THRESHOLD,
    MAX_CONTRIBUTIONS,
    MAX_SUMMARY_LENGTH,
    MEDIUM_RELIABILITY_THRESHOLD,
    NEUTRAL_SCORE,
    REGRET_FORMULA,
    SCORE_FORMULA,
)
from .utils import clip01, in_range


class FavoredOption(Enum):
    A = "A"
    B = "B"
    NEUTRAL = "NEUTRAL"


class DataReliability(Enum):
    """Reliability of the historical regret rate, by feedback sample size."""
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"

    @classmethod
    def from_count(cls, feedback_count: int) -> "DataReliability":
        if feedback_count >= HIGH_RELIABILITY_THRESHOLD:
            return cls.HIGH
        if feedback_count >= MEDIUM_RELIABILITY_THRESHOLD:
            return cls.MEDIUM
        return cls.LOW


@dataclass(frozen=True)
class FragmentContribution:
    """
    One evidence fragment's contribution to the fit scores.

    Attributes:
        fragment_id: Evidence id
        fragment_summary: Truncated fragment text (≤ 80 chars)
        similarity: Similarity to the decision context [0, 1]
        valence_weight: (1 + valence) / 2 in [0, 1]
        priority_weight: 1 + boost·max(0, cos(fragment, axis)), ≥ 0
        contribution_to_a: align_A · weight · valence_weight
        contribution_to_b: align_B · weight · valence_weight
    """
    fragment_id: str
    fragment_summary: str
    similarity: float
    valence_weight: float
    priority_weight: float
    contribution_to_a: float
    contribution_to_b: float

    def __post_init__(self):
        require(len(self.fragment_summary) <= MAX_SUMMARY_LENGTH,
                f"fragmentSummary must be at most {MAX_SUMMARY_LENGTH} characters")
        require(in_range(self.similarity, 0.0, 1.0),
                f"similarity must be in [0.0, 1.0], got: {self.similarity}")
        require(in_range(self.valence_weight, 0.0, 1.0),
                f"valenceWeight must be in [0.0, 1.0], got: {self.valence_weight}")
        require(in_range(self.priority_weight, 0.0, float("inf")),
                f"priorityWeight must be non-negative, got: {self.priority_weight}")

    @property
    def total_contribution(self) -> float:
        return self.contribution_to_a + self.contribution_to_b

    @property
    def favored_option(self) -> FavoredOption:
        if self.contribution_to_a > self.contribution_to_b:
            return FavoredOption.A
        if self.contribution_to_b > self.contribution_to_a:
            return FavoredOption.B
        return FavoredOption.NEUTRAL


def top_contributions(contributions: Sequence[FragmentContribution],
                      limit: int = MAX_CONTRIBUTIONS) -> List[FragmentContribution]:
    """Contributions sorted by total descending (stable), capped at limit."""
    ranked = sorted(contributions, key=lambda c: c.total_contribution, reverse=True)
    return ranked[:limit]


@dataclass(frozen=True)
class FitBreakdown:
    """Pattern fit scores and the fragments that drove them."""
    fit_score_a: float
    fit_score_b: float
    total_weight: float
    priority_axis_boost: float = DEFAULT_PRIORITY_AXIS_BOOST
    top_contributions: Tuple[FragmentContribution, ...] = field(default_factory=tuple)

    def __post_init__(self):
        require(in_range(self.fit_score_a, 0.0, 1.0),
                f"fitScoreA must be in [0.0, 1.0], got: {self.fit_score_a}")
        require(in_range(self.fit_score_b, 0.0, 1.0),
                f"fitScoreB must be in [0.0, 1.0], got: {self.fit_score_b}")
        require(in_range(self.total_weight, 0.0, float("inf")),
                f"totalWeight must be non-negative, got: {self.total_weight}")
        require(len(self.top_contributions) <= MAX_CONTRIBUTIONS,
                f"topContributions must have at most {MAX_CONTRIBUTIONS} items")
        object.__setattr__(self, "top_contributions", tuple(self.top_contributions))

    @classmethod
    def empty(cls, priority_axis_boost: float = DEFAULT_PRIORITY_AXIS_BOOST) -> "FitBreakdown":
        """Neutral breakdown for a decision with no evidence."""
        return cls(fit_score_a=NEUTRAL_SCORE, fit_score_b=NEUTRAL_SCORE,
                   total_weight=0.0, priority_axis_boost=priority_axis_boost)

    @property
    def fit_difference(self) -> float:
        """Positive when A fits better."""
        return self.fit_score_a - self.fit_score_b

    @property
    def fit_gap(self) -> float:
        return abs(self.fit_difference)

    @property
    def is_close_call(self) -> bool:
        return self.fit_gap < CLOSE_CALL_THRESHOLD

    @property
    def fragments_favoring_a(self) -> List[FragmentContribution]:
        return [c for c in self.top_contributions if c.favored_option is FavoredOption.A]

    @property
    def fragments_favoring_b(self) -> List[FragmentContribution]:
        return [c for c in self.top_contributions if c.favored_option is FavoredOption.B]


@dataclass(frozen=True)
class RegretBreakdown:
    """
    Regret risk intermediates.

    regretRisk = baseRegret + (negativity - 0.5) · negativityWeight
    baseRegret = historicalRate + variance · volatilityWeight
    """
    historical_regret_rate: float
    valence_variance: float
    option_negativity_a: float
    option_negativity_b: float
    base_regret: float
    regret_risk_a: float
    regret_risk_b: float
    feedback_count: int
    formula: str = REGRET_FORMULA

    def __post_init__(self):
        for name in ("historical_regret_rate", "valence_variance",
                     "option_negativity_a", "option_negativity_b",
                     "base_regret", "regret_risk_a", "regret_risk_b"):
            value = getattr(self, name)
            require(in_range(value, 0.0, 1.0), f"{name} must be in [0.0, 1.0], got: {value}")
        require(self.feedback_count >= 0,
                f"feedbackCount must be non-negative, got: {self.feedback_count}")

    @property
    def data_reliability(self) -> DataReliability:
        return DataReliability.from_count(self.feedback_count)

    @property
    def is_option_a_safer(self) -> bool:
        return self.regret_risk_a < self.regret_risk_b

    @property
    def regret_risk_difference(self) -> float:
        """Positive when B is riskier."""
        return self.regret_risk_b - self.regret_risk_a

    @property
    def is_using_default_prior(self) -> bool:
        return self.feedback_count == 0

    @classmethod
    def with_default_prior(cls, regret_prior: float,
                           option_negativity_a: float = 0.5,
                           option_negativity_b: float = 0.5,
                           negativity_weight: float = DEFAULT_NEGATIVITY_WEIGHT) -> "RegretBreakdown":
        """Breakdown for a user with no feedback and no evidence variance."""
        base_regret = clip01(regret_prior)
        return cls(
            historical_regret_rate=regret_prior,
            valence_variance=0.0,
            option_negativity_a=option_negativity_a,
            option_negativity_b=option_negativity_b,
            base_regret=base_regret,
            regret_risk_a=clip01(base_regret + (option_negativity_a - 0.5) * negativity_weight),
            regret_risk_b=clip01(base_regret + (option_negativity_b - 0.5) * negativity_weight),
            feedback_count=0,
        )


@dataclass(frozen=True)
class ScoreBreakdown:
    """Final unbounded scores; probabilities come from softmax over these."""
    score_a: float
    score_b: float
    formula: str = SCORE_FORMULA

    @property
    def score_difference(self) -> float:
        return self.score_a - self.score_b

    @property
    def is_option_a_higher(self) -> bool:
        return self.score_a > self.score_b


@dataclass(frozen=True)
class CalculationBreakdown:
    """Complete, reproducible record of one decision calculation."""
    fit: FitBreakdown
    regret: RegretBreakdown
    parameters: CalculationParameters
    scores: ScoreBreakdown

    @classmethod
    def compute(cls, fit: FitBreakdown, regret: RegretBreakdown,
                parameters: CalculationParameters) -> "CalculationBreakdown":
        score_a = fit.fit_score_a - parameters.lambda_ * regret.regret_risk_a
        score_b = fit.fit_score_b - parameters.lambda_ * regret.regret_risk_b
        return cls(fit=fit, regret=regret, parameters=parameters,
                   scores=ScoreBreakdown(score_a=score_a, score_b=score_b))

    def to_dict(self) -> dict:
        """Plain-dict form for audit consumers."""
        return {
            'fit': {
                'fit_score_a': self.fit.fit_score_a,
                'fit_score_b': self.fit.fit_score_b,
                'total_weight': self.fit.total_weight,
                'priority_axis_boost': self.fit.priority_axis_boost,
                'top_contributions': [
                    {
                        'fragment_id': c.fragment_id,
                        'fragment_summary': c.fragment_summary,
                        'similarity': c.similarity,
                        'valence_weight': c.valence_weight,
                        'priority_weight': c.priority_weight,
                        'contribution_to_a': c.contribution_to_a,
                        'contribution_to_b': c.contribution_to_b,
                    }
                    for c in self.fit.top_contributions
                ],
            },
            'regret': {
                'historical_regret_rate': self.regret.historical_regret_rate,
                'valence_variance': self.regret.valence_variance,
                'option_negativity_a': self.regret.option_negativity_a,
                'option_negativity_b': self.regret.option_negativity_b,
                'base_regret': self.regret.base_regret,
                'regret_risk_a': self.regret.regret_risk_a,
                'regret_risk_b': self.regret.regret_risk_b,
                'feedback_count': self.regret.feedback_count,
                'data_reliability': self.regret.data_reliability.value,
                'formula': self.regret.formula,
            },
            'parameters': self.parameters.to_dict(),
            'scores': {
                'score_a': self.scores.score_a,
                'score_b': self.scores.score_b,
                'formula': self.scores.formula,
            },
        }
