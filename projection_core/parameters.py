"""
Projection Core - Parameter Definitions

Canonical parameter definitions for the decision projection pipeline.

This is the single source of truth for all parameter values,
bounds, and default configurations.
"""

from __future__ import annotations
from dataclasses import dataclass, replace

from .errors import require
from .utils import in_range


# Per-user adaptive defaults
DEFAULT_LAMBDA = 1.0            # Regret sensitivity in score = fit - λ·regret
DEFAULT_REGRET_PRIOR = 0.2      # Regret rate assumed before any feedback

# Fixed pipeline weights
DEFAULT_PRIORITY_AXIS_BOOST = 0.35   # Extra weight for evidence near the priority axis
DEFAULT_VOLATILITY_WEIGHT = 0.3      # Valence variance → base regret
DEFAULT_NEGATIVITY_WEIGHT = 0.3      # Option negativity → regret risk

# Fit scoring
MAX_CONTRIBUTIONS = 10               # Fragment contributions kept in a breakdown
MAX_SUMMARY_LENGTH = 80              # Characters of fragment text in a contribution
CLOSE_CALL_THRESHOLD = 0.05          # |fitA - fitB| below this is a close call
NEUTRAL_SCORE = 0.5                  # Zero-evidence / zero-weight default

# Regret estimation
NO_EVIDENCE_VARIANCE = 0.5           # "High uncertainty" default when no evidence
HIGH_RELIABILITY_THRESHOLD = 10      # Feedback samples for HIGH reliability
MEDIUM_RELIABILITY_THRESHOLD = 3     # Feedback samples for MEDIUM reliability

# Value alignment
DEFAULT_IMPORTANCE = 0.5             # Explicit importance when the user set none
VALENCE_ADJUSTMENT_SCALE = 0.5       # avgValence influence on amplification
CONFIDENCE_SATURATION = 10           # Fragments for full implicit-node confidence
ALIGNMENT_NORMALIZER = 4.0           # Divisor mapping amplifiedDiff onto [-1, 1]

# Result
MAX_EVIDENCE_COUNT = 10

SCORE_FORMULA = "score = fit - lambda * regret"
REGRET_FORMULA = "baseRegret + (negativity - 0.5) * 0.3"


@dataclass(frozen=True)
class CalculationParameters:
    """
    Parameters used in one decision calculation.

    lambda and regret_prior come from the user's adaptive settings; the
    remaining weights are fixed system defaults.

    Attributes:
        lambda_: Regret sensitivity weight (≥ 0)
        regret_prior: Regret rate used when no feedback exists [0, 1]
        priority_axis_boost: Priority axis boost coefficient (≥ 0)
        volatility_weight: Valence variance weight in base regret (≥ 0)
        negativity_weight: Option negativity weight in regret risk (≥ 0)
    """
    lambda_: float = DEFAULT_LAMBDA
    regret_prior: float = DEFAULT_REGRET_PRIOR
    priority_axis_boost: float = DEFAULT_PRIORITY_AXIS_BOOST
    volatility_weight: float = DEFAULT_VOLATILITY_WEIGHT
    negativity_weight: float = DEFAULT_NEGATIVITY_WEIGHT

    def __post_init__(self):
        require(in_range(self.lambda_, 0.0, float("inf")),
                f"lambda must be non-negative, got: {self.lambda_}")
        require(in_range(self.regret_prior, 0.0, 1.0),
                f"regretPrior must be in [0.0, 1.0], got: {self.regret_prior}")
        require(in_range(self.priority_axis_boost, 0.0, float("inf")),
                f"priorityAxisBoost must be non-negative, got: {self.priority_axis_boost}")
        require(in_range(self.volatility_weight, 0.0, float("inf")),
                f"volatilityWeight must be non-negative, got: {self.volatility_weight}")
        require(in_range(self.negativity_weight, 0.0, float("inf")),
                f"negativityWeight must be non-negative, got: {self.negativity_weight}")

    @classmethod
    def with_user_settings(cls, settings: "UserAdaptiveSettings") -> "CalculationParameters":
        """User lambda/regretPrior, system defaults for everything else."""
        return cls(lambda_=settings.lambda_, regret_prior=settings.regret_prior)

    @classmethod
    def defaults(cls) -> "CalculationParameters":
        return cls()

    def to_dict(self) -> dict:
        return {
            'lambda': self.lambda_,
            'regret_prior': self.regret_prior,
            'priority_axis_boost': self.priority_axis_boost,
            'volatility_weight': self.volatility_weight,
            'negativity_weight': self.negativity_weight,
        }


@dataclass(frozen=True)
class UserAdaptiveSettings:
    """
    Per-user adaptive parameters.

    Created with defaults on first access, mutated only through the
    feedback learner's update instructions. version supports optimistic
    concurrency in stores.
    """
    user_id: str
    lambda_: float = DEFAULT_LAMBDA
    regret_prior: float = DEFAULT_REGRET_PRIOR
    version: int = 1

    def __post_init__(self):
        require(bool(self.user_id and self.user_id.strip()), "user_id cannot be blank")
        require(in_range(self.lambda_, 0.0, float("inf")),
                f"lambda must be non-negative, got: {self.lambda_}")
        require(in_range(self.regret_prior, 0.0, 1.0),
                f"regretPrior must be in [0.0, 1.0], got: {self.regret_prior}")
        require(self.version >= 1, f"version must be at least 1, got: {self.version}")

    def with_lambda(self, new_lambda: float) -> "UserAdaptiveSettings":
        """Copy with a new lambda and the next version."""
        return replace(self, lambda_=new_lambda, version=self.version + 1)


@dataclass(frozen=True)
class LearnerConfig:
    """
    Feedback learner configuration.

    Hysteresis band: regret rate ≥ high_regret_threshold raises λ,
    ≤ low_regret_threshold lowers it, anything between is the dead band.
    Hard bounds cannot be crossed by adaptation.
    """
    high_regret_threshold: float = 0.4
    low_regret_threshold: float = 0.1

    increase_factor: float = 1.1
    decrease_factor: float = 0.95

    lambda_floor: float = 0.5
    lambda_ceiling: float = 2.0

    def __post_init__(self):
        require(0.0 <= self.low_regret_threshold < self.high_regret_threshold <= 1.0,
                "regret thresholds must satisfy 0 <= low < high <= 1")
        require(self.increase_factor > 1.0, "increase_factor must be > 1")
        require(0.0 < self.decrease_factor < 1.0, "decrease_factor must be in (0, 1)")
        require(0.0 <= self.lambda_floor < self.lambda_ceiling,
                "lambda bounds must satisfy 0 <= floor < ceiling")


# Default configurations
DEFAULT_PARAMETERS: CalculationParameters = CalculationParameters()
DEFAULT_LEARNER_CONFIG: LearnerConfig = LearnerConfig()
