"""
Service-layer errors.

Core errors (preconditions, dimension mismatch, embedding provider
failures) live in projection_core.errors and propagate through unchanged.
"""

from projection_core.errors import ProjectionError


class DecisionNotFoundError(ProjectionError):
    """Decision does not exist or belongs to another user."""

    def __init__(self, decision_id: str):
        self.decision_id = decision_id
        super().__init__(f"Decision not found: {decision_id}")


class FeedbackAlreadyExistsError(ProjectionError):
    """Feedback was already submitted for this decision."""

    def __init__(self, decision_id: str):
        self.decision_id = decision_id
        super().__init__(f"Feedback already submitted for decision: {decision_id}")


class ConcurrentModificationError(ProjectionError):
    """Optimistic version check failed: someone else saved first."""

    def __init__(self, user_id: str, expected_version: int, actual_version: int):
        self.user_id = user_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Settings for {user_id} changed concurrently: "
            f"expected version {expected_version}, found {actual_version}"
        )


class LockTimeoutError(ProjectionError, TimeoutError):
    """Per-user lock could not be acquired in time."""

    def __init__(self, resource_id: str, timeout: float):
        self.resource_id = resource_id
        self.timeout = timeout
        super().__init__(f"Failed to acquire lock for {resource_id} within {timeout}s")
