"""
Repository interfaces for dependency abstraction.
Defines contracts for data access operations to enable dependency injection
and improve testability.

Repositories flush but never commit; the caller's transaction decides.
"""

from datetime import datetime
from typing import Optional, Protocol, runtime_checkable
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.user import User
from ..models.refresh_token import RefreshToken, Platform


@runtime_checkable
class IUserRepository(Protocol):
    """Protocol for user repository operations."""

    async def create(
        self,
        db: AsyncSession,
        email: str,
        user_name: str,
        password_hash: str
    ) -> User:
        """
        Create a new user together with its identity row.

        Args:
            db: Database session
            email: User email
            user_name: Display name
            password_hash: Already hashed password

        Returns:
            Created user instance
        """
        ...

    async def get_by_id(self, db: AsyncSession, user_id: int) -> Optional[User]:
        """
        Get user by ID.

        Args:
            db: Database session
            user_id: User ID

        Returns:
            User instance or None if not found
        """
        ...

    async def get_by_email(self, db: AsyncSession, email: str) -> Optional[User]:
        """
        Get user by email.

        Args:
            db: Database session
            email: User email

        Returns:
            User instance or None if not found
        """
        ...

    async def exists_by_email(self, db: AsyncSession, email: str) -> bool:
        ...

    async def update_password(self, db: AsyncSession, user_id: int, password_hash: str) -> None:
        ...

    async def set_verified(self, db: AsyncSession, user_id: int) -> None:
        ...

    async def set_locked(self, db: AsyncSession, user_id: int, locked: bool = True) -> None:
        ...


@runtime_checkable
class IRefreshTokenRepository(Protocol):
    """Protocol for refresh token ledger storage."""

    async def create(
        self,
        db: AsyncSession,
        user_id: int,
        jti: str,
        iat: int,
        exp: int,
        platform: Platform,
        token: str
    ) -> RefreshToken:
        ...

    async def get_by_jti(self, db: AsyncSession, jti: str) -> Optional[RefreshToken]:
        ...

    async def delete_by_jti(self, db: AsyncSession, jti: str) -> bool:
        """
        Delete the record carrying this jti.

        Returns:
            True if a row was deleted, False if none existed
        """
        ...

    async def delete_all_by_user_id(self, db: AsyncSession, user_id: int) -> int:
        """
        Delete every record of a user.

        Returns:
            Number of rows deleted
        """
        ...


@runtime_checkable
class ISelfServiceRequestRepository(Protocol):
    """Protocol for account-verify, recover-password and reset-password requests."""

    async def create(
        self,
        db: AsyncSession,
        user_id: int,
        security_token: str,
        jti: str,
        new_password: Optional[str] = None
    ):
        """Returns None when a concurrent transaction inserted the user's row first."""
        ...

    async def get_by_jti(self, db: AsyncSession, jti: str, include_deleted: bool = False):
        ...

    async def get_by_user_id(self, db: AsyncSession, user_id: int, include_deleted: bool = False):
        ...

    async def update_token(
        self,
        db: AsyncSession,
        request,
        security_token: str,
        jti: str,
        new_password: Optional[str] = None
    ):
        """
        Overwrite token, jti and pending password in place and restore the row
        if it was soft-deleted.
        """
        ...

    async def soft_delete(self, db: AsyncSession, request) -> None:
        ...


@runtime_checkable
class IAttemptCountRepository(Protocol):
    """Protocol for per-request attempt counters."""

    async def get_by_request_id(self, db: AsyncSession, request_id: int, include_deleted: bool = False):
        ...

    async def create(self, db: AsyncSession, request_id: int, now: Optional[datetime] = None):
        """Returns None when a concurrent transaction created the counter first."""
        ...

    async def increment(self, db: AsyncSession, counter, limit: int, stamp: datetime) -> bool:
        """
        Atomically add one while the stored count is below limit, restamping
        and restoring the row. The counter is reloaded afterwards.
        """
        ...

    async def reset(
        self,
        db: AsyncSession,
        counter,
        limit: int,
        stamp: datetime,
        stamped_before: datetime
    ) -> bool:
        """Atomically zero an exhausted counter last increased before stamped_before."""
        ...

    async def soft_delete(self, db: AsyncSession, counter) -> None:
        ...
