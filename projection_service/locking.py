"""
Per-user locking for the feedback read-modify-write.

Single-writer-per-user discipline inside one process: every settings
update for a user runs under that user's asyncio lock. Locks for idle
users are dropped once the last holder or waiter leaves.
"""

from __future__ import annotations

import asyncio
import time
from contextlib import asynccontextmanager
from typing import Dict, Optional

from projection_service.errors import LockTimeoutError
from projection_service.logging_utils import get_logger

logger = get_logger(__name__)

# Default wait before giving up on a lock
DEFAULT_LOCK_TIMEOUT = 5.0  # seconds


class UserLockManager:
    """
    Keyed asyncio locks.

    Usage:
        locks = UserLockManager()
        async with locks.acquire("user-123"):
            # exclusive access to user-123's settings
            ...
    """

    def __init__(self, default_timeout: float = DEFAULT_LOCK_TIMEOUT):
        self.default_timeout = default_timeout
        self._locks: Dict[str, asyncio.Lock] = {}
        self._users: Dict[str, int] = {}  # resource_id -> holders + waiters

    @asynccontextmanager
    async def acquire(self, resource_id: str, *, timeout: Optional[float] = None):
        """
        Acquire the lock for a resource.

        Args:
            resource_id: Unique identifier for the resource (e.g., user_id)
            timeout: Maximum time to wait for lock (seconds)

        Raises:
            LockTimeoutError: If lock cannot be acquired within timeout
        """
        timeout = self.default_timeout if timeout is None else timeout
        lock = self._locks.setdefault(resource_id, asyncio.Lock())
        self._users[resource_id] = self._users.get(resource_id, 0) + 1
        start_time = time.monotonic()

        try:
            try:
                await asyncio.wait_for(lock.acquire(), timeout=timeout)
            except asyncio.TimeoutError:
                raise LockTimeoutError(resource_id, timeout) from None

            logger.debug(f"Lock acquired: {resource_id} "
                         f"(waited {time.monotonic() - start_time:.3f}s)")
            try:
                yield
            finally:
                lock.release()
                logger.debug(f"Lock released: {resource_id}")
        finally:
            self._users[resource_id] -= 1
            if self._users[resource_id] == 0:
                del self._users[resource_id]
                self._locks.pop(resource_id, None)

    def is_locked(self, resource_id: str) -> bool:
        lock = self._locks.get(resource_id)
        return lock is not None and lock.locked()
