"""
User Settings Provider

Reads a user's adaptive settings, creating the default record on first
access. Two first accesses racing each other both end up with the record
the store kept.
"""

from __future__ import annotations

from typing import Optional

from config.projection_config import ProjectionConfig, config as default_config
from projection_core.parameters import UserAdaptiveSettings
from projection_service.logging_utils import get_logger
from projection_service.ports import UserSettingsStore

logger = get_logger(__name__)


class UserSettingsProvider:

    def __init__(self, store: UserSettingsStore, config: Optional[ProjectionConfig] = None):
        self.store = store
        self.config = config or default_config

    def defaults_for(self, user_id: str) -> UserAdaptiveSettings:
        return UserAdaptiveSettings(
            user_id=user_id,
            lambda_=self.config.DEFAULT_LAMBDA,
            regret_prior=self.config.DEFAULT_REGRET_PRIOR,
        )

    async def get_settings(self, user_id: str) -> UserAdaptiveSettings:
        existing = await self.store.get(user_id)
        if existing is not None:
            return existing

        created = await self.store.create(self.defaults_for(user_id))
        logger.info(f"Created default settings for user {user_id}: "
                    f"lambda={created.lambda_} regret_prior={created.regret_prior}")
        return created
