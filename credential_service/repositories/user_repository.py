"""
User repository implementation following the Repository pattern.
Handles user and identity data access; transaction boundaries belong to the caller.
"""

from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
import structlog

from ..interfaces.repository_interface import IUserRepository
from ..models.user import User, UserIdentity

logger = structlog.get_logger()


class UserRepository(IUserRepository):
    """Repository for user data access operations."""

    async def create(
        self,
        db: AsyncSession,
        email: str,
        user_name: str,
        password_hash: str
    ) -> User:
        """
        Create a new user with its identity row.

        The identity starts unverified, unlocked and outside strict mode.
        """
        user = User(email=email, user_name=user_name)
        user.identity = UserIdentity(
            password=password_hash,
            is_account_verified=False,
            is_locked=False,
            strict_mode=False
        )
        db.add(user)
        await db.flush()

        logger.info("User created", user_id=user.id)
        return user

    async def get_by_id(self, db: AsyncSession, user_id: int) -> Optional[User]:
        result = await db.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    async def get_by_email(self, db: AsyncSession, email: str) -> Optional[User]:
        result = await db.execute(select(User).where(User.email == email))
        return result.scalar_one_or_none()

    async def exists_by_email(self, db: AsyncSession, email: str) -> bool:
        result = await db.execute(select(User.id).where(User.email == email))
        return result.first() is not None

    async def _get_identity(self, db: AsyncSession, user_id: int) -> UserIdentity:
        result = await db.execute(
            select(UserIdentity).where(UserIdentity.user_id == user_id)
        )
        return result.scalar_one()

    async def update_password(self, db: AsyncSession, user_id: int, password_hash: str) -> None:
        identity = await self._get_identity(db, user_id)
        identity.password = password_hash
        await db.flush()
        logger.info("User password updated", user_id=user_id)

    async def set_verified(self, db: AsyncSession, user_id: int) -> None:
        """Mark the account verified; verification also lifts a lock."""
        identity = await self._get_identity(db, user_id)
        identity.is_account_verified = True
        identity.is_locked = False
        await db.flush()
        logger.info("User account verified", user_id=user_id)

    async def set_locked(self, db: AsyncSession, user_id: int, locked: bool = True) -> None:
        identity = await self._get_identity(db, user_id)
        identity.is_locked = locked
        await db.flush()
        logger.warning("User lock state changed", user_id=user_id, locked=locked)
