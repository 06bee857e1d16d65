"""
Repositories for self-service requests and their attempt counters.

One implementation per concern, parameterized by the mapped model, so the
account-verify, recover-password and reset-password flows share the same
data access code.
"""

from datetime import datetime
from typing import Optional, Type
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
import structlog

from ..interfaces.repository_interface import (
    ISelfServiceRequestRepository,
    IAttemptCountRepository,
)
from ..models.base import utcnow
from ..models.self_service import (
    SelfServiceRequestMixin,
    AttemptCountMixin,
    AccountVerification,
    AccountVerificationAttemptCount,
    RecoverPassword,
    RecoverPasswordAttemptCount,
    ResetPassword,
    ResetPasswordAttemptCount,
)

logger = structlog.get_logger()


class SelfServiceRequestRepository(ISelfServiceRequestRepository):
    """Data access for one self-service request table."""

    def __init__(self, model: Type[SelfServiceRequestMixin]):
        self.model = model

    def _select(self, include_deleted: bool):
        query = select(self.model)
        if not include_deleted:
            query = query.where(self.model.deleted_at.is_(None))
        return query

    async def create(
        self,
        db: AsyncSession,
        user_id: int,
        security_token: str,
        jti: str,
        new_password: Optional[str] = None
    ):
        """
        Insert the user's request row inside a savepoint.

        Returns:
            The new row, or None when a concurrent transaction inserted the
            user's row first; the caller's transaction stays usable.
        """
        request = self.model(
            user_id=user_id,
            security_token=security_token,
            jti=jti,
            new_password=new_password
        )
        try:
            async with db.begin_nested():
                db.add(request)
                await db.flush()
        except IntegrityError:
            logger.info(
                "Concurrent request insert lost",
                table=self.model.__tablename__,
                user_id=user_id
            )
            return None
        return request

    async def get_by_id(self, db: AsyncSession, request_id: int, include_deleted: bool = False):
        result = await db.execute(
            self._select(include_deleted).where(self.model.id == request_id)
        )
        return result.scalar_one_or_none()

    async def get_by_jti(self, db: AsyncSession, jti: str, include_deleted: bool = False):
        result = await db.execute(
            self._select(include_deleted).where(self.model.jti == jti)
        )
        return result.scalar_one_or_none()

    async def get_by_user_id(self, db: AsyncSession, user_id: int, include_deleted: bool = False):
        result = await db.execute(
            self._select(include_deleted).where(self.model.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def update_token(
        self,
        db: AsyncSession,
        request,
        security_token: str,
        jti: str,
        new_password: Optional[str] = None
    ):
        request.security_token = security_token
        request.jti = jti
        request.new_password = new_password
        request.restore()
        await db.flush()
        return request

    async def soft_delete(self, db: AsyncSession, request) -> None:
        request.soft_delete()
        await db.flush()


class AttemptCountRepository(IAttemptCountRepository):
    """Data access for one attempt counter table."""

    def __init__(self, model: Type[AttemptCountMixin]):
        self.model = model

    async def get_by_request_id(self, db: AsyncSession, request_id: int, include_deleted: bool = False):
        query = select(self.model).where(self.model.request_id == request_id)
        if not include_deleted:
            query = query.where(self.model.deleted_at.is_(None))
        result = await db.execute(query)
        return result.scalar_one_or_none()

    async def create(self, db: AsyncSession, request_id: int, now: Optional[datetime] = None):
        """Insert a counter at one; None when a concurrent insert won."""
        counter = self.model(
            request_id=request_id,
            count=1,
            count_increase_last_update_date=now or utcnow()
        )
        try:
            async with db.begin_nested():
                db.add(counter)
                await db.flush()
        except IntegrityError:
            logger.info(
                "Concurrent counter insert lost",
                table=self.model.__tablename__,
                request_id=request_id
            )
            return None
        return counter

    async def increment(self, db: AsyncSession, counter, limit: int, stamp: datetime) -> bool:
        """
        Add one to the stored count if it is still below limit.

        The comparison and the increment run as a single UPDATE so concurrent
        attempts cannot overwrite each other. The counter is restored if it
        was soft-deleted and is reloaded from the database either way.
        """
        result = await db.execute(
            update(self.model)
            .where(self.model.id == counter.id, self.model.count < limit)
            .values(
                count=self.model.count + 1,
                count_increase_last_update_date=stamp,
                deleted_at=None
            )
            .execution_options(synchronize_session=False)
        )
        await db.refresh(counter)
        return result.rowcount > 0

    async def reset(
        self,
        db: AsyncSession,
        counter,
        limit: int,
        stamp: datetime,
        stamped_before: datetime
    ) -> bool:
        """
        Zero an exhausted counter whose last increase is older than
        stamped_before. Returns False if another attempt changed it first.
        """
        result = await db.execute(
            update(self.model)
            .where(
                self.model.id == counter.id,
                self.model.count >= limit,
                self.model.count_increase_last_update_date < stamped_before
            )
            .values(count=0, count_increase_last_update_date=stamp, deleted_at=None)
            .execution_options(synchronize_session=False)
        )
        await db.refresh(counter)
        return result.rowcount > 0

    async def soft_delete(self, db: AsyncSession, counter) -> None:
        counter.soft_delete()
        await db.flush()


def account_verification_repositories():
    return (
        SelfServiceRequestRepository(AccountVerification),
        AttemptCountRepository(AccountVerificationAttemptCount),
    )


def recover_password_repositories():
    return (
        SelfServiceRequestRepository(RecoverPassword),
        AttemptCountRepository(RecoverPasswordAttemptCount),
    )


def reset_password_repositories():
    return (
        SelfServiceRequestRepository(ResetPassword),
        AttemptCountRepository(ResetPasswordAttemptCount),
    )
