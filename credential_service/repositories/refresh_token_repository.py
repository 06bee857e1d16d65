"""
Refresh token repository: storage for the ledger of live refresh tokens.
"""

from typing import Optional
from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
import structlog

from ..interfaces.repository_interface import IRefreshTokenRepository
from ..models.refresh_token import RefreshToken, Platform

logger = structlog.get_logger()


class RefreshTokenRepository(IRefreshTokenRepository):
    """Repository for refresh token records."""

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
        record = RefreshToken(
            user_id=user_id,
            jti=jti,
            iat=iat,
            exp=exp,
            platform=platform,
            token=token
        )
        db.add(record)
        await db.flush()
        return record

    async def get_by_jti(self, db: AsyncSession, jti: str) -> Optional[RefreshToken]:
        result = await db.execute(select(RefreshToken).where(RefreshToken.jti == jti))
        return result.scalar_one_or_none()

    async def delete_by_jti(self, db: AsyncSession, jti: str) -> bool:
        """
        Delete by jti with a single statement.

        The affected row count tells concurrent consumers apart: only one of
        them observes a deleted row.
        """
        result = await db.execute(
            delete(RefreshToken)
            .where(RefreshToken.jti == jti)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount > 0

    async def delete_all_by_user_id(self, db: AsyncSession, user_id: int) -> int:
        result = await db.execute(
            delete(RefreshToken)
            .where(RefreshToken.user_id == user_id)
            .execution_options(synchronize_session=False)
        )
        logger.info("Refresh tokens revoked", user_id=user_id, count=result.rowcount)
        return result.rowcount
