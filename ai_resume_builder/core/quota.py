"""
Free-tier quota enforcement.

Premium users are never limited. Non-premium users may generate while
their remaining free-generation count is above zero; one unit is
consumed per successfully persisted document.
"""

import structlog

from ai_resume_builder.storage.models import User
from ai_resume_builder.storage.repository import ResumeRepository

from .errors import QuotaExceeded

logger = structlog.get_logger().bind(module="quota")


class QuotaGate:
    """Authorizes generation attempts and consumes free-tier allowance."""

    def __init__(self, repository: ResumeRepository):
        self.repository = repository

    def authorize(self, user: User) -> bool:
        """Read-only check whether ``user`` may start a generation."""
        if user.is_premium:
            return True
        return user.free_generations_left > 0

    def enforce(self, user: User) -> None:
        """Raise ``QuotaExceeded`` when ``authorize`` denies the user."""
        if not self.authorize(user):
            logger.info("quota_denied", user_id=user.id)
            raise QuotaExceeded()

    def commit(self, user: User) -> bool:
        """Consume one unit of allowance for ``user``.

        The decrement is a single conditional update in storage, so of two
        concurrent commits on the last unit at most one succeeds. Premium
        users are never charged and always report success.

        Returns:
            True if the allowance was consumed (or the user is premium),
            False if nothing was left to consume

        Raises:
            sqlite3.Error: Storage errors are propagated unchanged
        """
        if user.is_premium:
            return True
        committed = self.repository.decrement_quota(user.id)
        if not committed:
            logger.warning("quota_commit_race_lost", user_id=user.id)
        return committed
