"""
Projection Core - Feedback Learner

Closed-loop adaptation of the regret sensitivity λ from outcome feedback.
Runs after a decision, once per submitted feedback, and only affects future
computations.

Update rule (single step, hysteresis-banded):
  1. Recompute the user's cumulative regret rate from all feedback
  2. rate ≥ high_regret_threshold and λ < ceiling → λ = min(λ · increase_factor, ceiling)
  3. rate ≤ low_regret_threshold  and λ > floor   → λ = max(λ · decrease_factor, floor)
  4. Otherwise (dead band, or already at a bound) → no change

An online proportional controller with a dead band, not a fitted optimizer.
The learner never touches storage: it returns a LambdaUpdate instruction
and the caller persists it.
"""

from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Optional

from .parameters import DEFAULT_LEARNER_CONFIG, LearnerConfig, UserAdaptiveSettings
from .regret import FeedbackStats
from .utils import clip

logger = logging.getLogger(__name__)


class Direction:
    """Direction of a λ adjustment."""

    INCREASE = "increase"
    DECREASE = "decrease"
    UNCHANGED = "unchanged"


@dataclass(frozen=True)
class LambdaUpdate:
    """
    Instruction produced by the learner for one feedback event.

    Attributes:
        user_id: Whose settings to update
        previous_lambda: λ before this step
        new_lambda: λ after this step
        regret_prior: Carried through unchanged
        regret_rate: Cumulative regret rate that drove the step
        direction: Direction.INCREASE / DECREASE / UNCHANGED
        expected_version: Settings version the update was computed from
    """
    user_id: str
    previous_lambda: float
    new_lambda: float
    regret_prior: float
    regret_rate: float
    direction: str
    expected_version: int

    @property
    def changed(self) -> bool:
        return self.direction != Direction.UNCHANGED

    def apply_to(self, settings: UserAdaptiveSettings) -> UserAdaptiveSettings:
        """New settings record with λ applied and the version bumped."""
        return settings.with_lambda(self.new_lambda)


def next_lambda(regret_rate: float, current_lambda: float,
                config: LearnerConfig = DEFAULT_LEARNER_CONFIG) -> float:
    """
    One adaptation step for λ.

    Args:
        regret_rate: Cumulative regret rate in [0, 1]
        current_lambda: Current λ
        config: Learner thresholds, factors and bounds

    Returns:
        The next λ. Any adjusted value lands inside [floor, ceiling].
    """
    if regret_rate >= config.high_regret_threshold and current_lambda < config.lambda_ceiling:
        return clip(current_lambda * config.increase_factor,
                    config.lambda_floor, config.lambda_ceiling)
    if regret_rate <= config.low_regret_threshold and current_lambda > config.lambda_floor:
        return clip(current_lambda * config.decrease_factor,
                    config.lambda_floor, config.lambda_ceiling)
    return current_lambda


def compute_lambda_update(regret_rate: float, settings: UserAdaptiveSettings,
                          config: LearnerConfig = DEFAULT_LEARNER_CONFIG) -> LambdaUpdate:
    """Build the update instruction for a user's current settings."""
    new_lambda = next_lambda(regret_rate, settings.lambda_, config)
    if new_lambda > settings.lambda_:
        direction = Direction.INCREASE
    elif new_lambda < settings.lambda_:
        direction = Direction.DECREASE
    else:
        direction = Direction.UNCHANGED

    return LambdaUpdate(
        user_id=settings.user_id,
        previous_lambda=settings.lambda_,
        new_lambda=new_lambda,
        regret_prior=settings.regret_prior,
        regret_rate=regret_rate,
        direction=direction,
        expected_version=settings.version,
    )


def _unchanged_update(settings: UserAdaptiveSettings) -> LambdaUpdate:
    return LambdaUpdate(
        user_id=settings.user_id,
        previous_lambda=settings.lambda_,
        new_lambda=settings.lambda_,
        regret_prior=settings.regret_prior,
        regret_rate=0.0,
        direction=Direction.UNCHANGED,
        expected_version=settings.version,
    )


class FeedbackLearner:
    """
    Stateless learner bound to one configuration.

    Holds no per-user state: settings come in, an instruction goes out.
    """

    def __init__(self, config: Optional[LearnerConfig] = None):
        self.config = config or DEFAULT_LEARNER_CONFIG

    def learn(self, settings: UserAdaptiveSettings, stats: FeedbackStats) -> LambdaUpdate:
        """
        Compute the λ update after a new feedback.

        Args:
            settings: The user's current adaptive settings
            stats: Feedback statistics including the new feedback

        Returns:
            LambdaUpdate (direction UNCHANGED when no feedback exists)
        """
        if not stats.has_feedback:
            return _unchanged_update(settings)

        update = compute_lambda_update(stats.regret_rate, settings, self.config)
        logger.debug(f"learner: user={settings.user_id} rate={update.regret_rate:.4f} "
                     f"lambda {update.previous_lambda:.4f} -> {update.new_lambda:.4f}")
        return update
