"""
Feedback Service

Records post-decision outcome feedback and runs the feedback learner.

Flow for one submission:
  1. Load the decision; missing or foreign → DecisionNotFoundError
  2. One feedback per decision → FeedbackAlreadyExistsError
  3. Under the user's lock: save feedback, recompute stats, learn, persist λ
  4. If λ cannot be persisted the feedback is deleted again, so the caller
     can resubmit

The lock serializes same-user submissions inside this process; the settings
store's version check catches writers outside it, and a conflicting save is
recomputed from fresh settings a bounded number of times.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Callable, Optional

from config.projection_config import ProjectionConfig, config as default_config
from projection_core.feedback_learner import FeedbackLearner, LambdaUpdate
from projection_core.parameters import UserAdaptiveSettings
from projection_core.regret import DecisionFeedback, FeedbackType
from projection_service.errors import (
    ConcurrentModificationError,
    DecisionNotFoundError,
    FeedbackAlreadyExistsError,
)
from projection_service.locking import UserLockManager
from projection_service.logging_utils import get_logger
from projection_service.ports import DecisionStore, UserSettingsStore
from projection_service.settings_provider import UserSettingsProvider

logger = get_logger(__name__)


@dataclass(frozen=True)
class FeedbackOutcome:
    feedback: DecisionFeedback
    update: LambdaUpdate
    settings: UserAdaptiveSettings


class FeedbackService:

    def __init__(
        self,
        decision_store: DecisionStore,
        settings_store: UserSettingsStore,
        settings_provider: Optional[UserSettingsProvider] = None,
        learner: Optional[FeedbackLearner] = None,
        locks: Optional[UserLockManager] = None,
        config: Optional[ProjectionConfig] = None,
        id_factory: Callable[[], str] = lambda: str(uuid.uuid4()),
    ):
        self.config = config or default_config
        self.decision_store = decision_store
        self.settings_store = settings_store
        self.settings_provider = settings_provider or UserSettingsProvider(settings_store, self.config)
        self.learner = learner or FeedbackLearner()
        self.locks = locks or UserLockManager(self.config.LOCK_TIMEOUT)
        self._new_id = id_factory

    async def submit_feedback(self, user_id: str, decision_id: str,
                              feedback_type: FeedbackType) -> FeedbackOutcome:
        """
        Submit outcome feedback for one of the user's decisions.

        Args:
            user_id: Submitting user
            decision_id: Decision the feedback is about
            feedback_type: SATISFIED / NEUTRAL / REGRET

        Returns:
            FeedbackOutcome with the saved feedback, the learner's update
            instruction and the settings now in effect

        Raises:
            DecisionNotFoundError: decision missing or owned by another user
            FeedbackAlreadyExistsError: feedback already submitted
            LockTimeoutError: user's lock not acquired in time
            ConcurrentModificationError: settings kept changing underneath us
        """
        decision = await self.decision_store.get(decision_id)
        if decision is None or decision.user_id != user_id:
            raise DecisionNotFoundError(decision_id)

        if await self.decision_store.get_feedback(decision_id) is not None:
            raise FeedbackAlreadyExistsError(decision_id)

        async with self.locks.acquire(user_id):
            # Re-check under the lock: a concurrent submission may have won
            if await self.decision_store.get_feedback(decision_id) is not None:
                raise FeedbackAlreadyExistsError(decision_id)

            feedback = await self.decision_store.save_feedback(DecisionFeedback(
                id=self._new_id(),
                decision_id=decision_id,
                feedback_type=feedback_type,
            ))
            try:
                update, settings = await self._learn_and_persist(user_id)
            except BaseException:
                # Feedback without its λ step must not stay stored
                await self.decision_store.delete_feedback(decision_id)
                logger.warning(f"Feedback for {decision_id} rolled back: lambda update failed")
                raise

        return FeedbackOutcome(feedback=feedback, update=update, settings=settings)

    async def _learn_and_persist(self, user_id: str):
        attempts = max(1, self.config.SETTINGS_SAVE_RETRIES)
        for attempt in range(1, attempts + 1):
            stats = await self.decision_store.get_feedback_stats(user_id)
            settings = await self.settings_provider.get_settings(user_id)
            update = self.learner.learn(settings, stats)
            if not update.changed:
                return update, settings

            try:
                saved = await self.settings_store.save(update.apply_to(settings),
                                                       expected_version=update.expected_version)
            except ConcurrentModificationError as e:
                if attempt == attempts:
                    raise
                logger.warning(f"Settings conflict for {user_id} (attempt {attempt}/{attempts}): {e}")
                continue

            logger.info(f"Lambda {update.direction} for {user_id}: "
                        f"{update.previous_lambda:.4f} -> {update.new_lambda:.4f} "
                        f"(regret rate {update.regret_rate:.3f})")
            return update, saved
