"""
Attempt-rate limiter shared by the self-service flows.

A counter allows MAX_ATTEMPT_COUNT increments; once exhausted, attempts are
refused until the cooldown window has passed since the last increment, after
which the counter resets to zero.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from ...core.config import settings
from ...core.exceptions import ForbiddenError, ExceptionMessageCode
from ...interfaces.repository_interface import IAttemptCountRepository
from ...models.base import utcnow

logger = structlog.get_logger()


@dataclass(frozen=True)
class AttemptResult:
    count: int
    cooldown_active: bool


class AttemptLimiter:
    """Per-request attempt counter with a cap and a cooldown window."""

    def __init__(
        self,
        repository: IAttemptCountRepository,
        max_attempts: Optional[int] = None,
        cooldown_seconds: Optional[int] = None
    ):
        self.repository = repository
        self.max_attempts = max_attempts or settings.MAX_ATTEMPT_COUNT
        self.cooldown = timedelta(seconds=cooldown_seconds or settings.ATTEMPT_COOLDOWN_IN_SEC)

    async def register_attempt(
        self,
        db: AsyncSession,
        request_id: int,
        now: Optional[datetime] = None
    ) -> AttemptResult:
        """
        Count one attempt against a request.

        The counter row is updated inside the caller's transaction with
        conditional UPDATEs, so concurrent attempts on the same request are
        each counted once. A soft-deleted counter (left by a confirmed
        request) is restored with its count intact.

        Raises:
            ForbiddenError: the cap is reached and the cooldown has not elapsed
        """
        now = now or utcnow()
        counter = await self.repository.get_by_request_id(db, request_id, include_deleted=True)

        if counter is None:
            created = await self.repository.create(db, request_id, now=now)
            if created is not None:
                return self._result(created.count)
            counter = await self.repository.get_by_request_id(db, request_id, include_deleted=True)

        if await self.repository.increment(db, counter, self.max_attempts, stamp=now):
            return self._result(counter.count)

        if now - counter.count_increase_last_update_date <= self.cooldown:
            logger.info(
                "Attempt refused during cooldown",
                request_id=request_id,
                count=counter.count
            )
            raise ForbiddenError(ExceptionMessageCode.WAIT_FOR_ANOTHER_DAY)

        if await self.repository.reset(
            db, counter, self.max_attempts, stamp=now, stamped_before=now - self.cooldown
        ):
            logger.info("Attempt counter reset after cooldown", request_id=request_id)
            return self._result(0)

        # A concurrent attempt reset the counter first
        if await self.repository.increment(db, counter, self.max_attempts, stamp=now):
            return self._result(counter.count)
        raise ForbiddenError(ExceptionMessageCode.WAIT_FOR_ANOTHER_DAY)

    def _result(self, count: int) -> AttemptResult:
        return AttemptResult(count=count, cooldown_active=count >= self.max_attempts)
