"""
Reaction to detected credential reuse: lock strict-mode accounts and raise
an alert event for the account owner.
"""

from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from ...events.auth_events import CredentialReuseDetectedEvent
from ...interfaces.repository_interface import IUserRepository
from ...models.user import User

logger = structlog.get_logger()


class ReuseEscalation:
    """Locks strict-mode accounts and produces the alert event."""

    def __init__(self, user_repository: IUserRepository):
        self.user_repository = user_repository

    async def escalate(
        self,
        db: AsyncSession,
        user: User,
        source: str,
        jti: Optional[str] = None
    ) -> CredentialReuseDetectedEvent:
        locked = False
        if user.identity is not None and user.identity.strict_mode:
            await self.user_repository.set_locked(db, user.id, True)
            locked = True

        logger.warning(
            "Credential reuse detected",
            user_id=user.id,
            source=source,
            account_locked=locked
        )
        return CredentialReuseDetectedEvent(
            user_id=user.id,
            email=user.email,
            source=source,
            account_was_locked=locked,
            jti=jti
        )
