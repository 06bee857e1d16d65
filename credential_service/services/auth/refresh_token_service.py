"""
Refresh token ledger.

Every issued refresh token has exactly one live record until it is consumed
by rotation or sign-out. A signature-valid token without a record has been
used before; that is the reuse signal.
"""

from typing import Any, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from ...core.security import SecurityService
from ...interfaces.repository_interface import IRefreshTokenRepository
from ...models.refresh_token import RefreshToken, Platform
from .token_service import TokenService, TokenKind

logger = structlog.get_logger()


class RefreshTokenService:
    """Issues, looks up, consumes and revokes refresh token records."""

    def __init__(self, token_service: TokenService, repository: IRefreshTokenRepository):
        self.token_service = token_service
        self.repository = repository

    async def issue(
        self,
        db: AsyncSession,
        user_id: int,
        platform: Platform,
        claims: Dict[str, Any]
    ) -> RefreshToken:
        """
        Mint a refresh token and store its record.

        The stored iat/exp are the values signed into the token.
        """
        jti = SecurityService.generate_jti()
        token = self.token_service.mint(
            TokenKind.REFRESH,
            {**claims, "user_id": user_id, "jti": jti}
        )
        signed = self.token_service.decode_unverified(token)
        record = await self.repository.create(
            db,
            user_id=user_id,
            jti=jti,
            iat=signed["iat"],
            exp=signed["exp"],
            platform=platform,
            token=token
        )
        logger.debug("Refresh token issued", user_id=user_id, platform=platform.value)
        return record

    async def get_by_jti(self, db: AsyncSession, jti: str) -> Optional[RefreshToken]:
        return await self.repository.get_by_jti(db, jti)

    def verify_against_record(self, token: str, record: RefreshToken) -> Dict[str, Any]:
        """
        Verify a refresh token and require its claims to equal the record.

        Raises:
            TokenExpiredError: the token is otherwise valid but expired
            InvalidTokenError: signature, kind or claim mismatch
        """
        return self.token_service.verify(
            TokenKind.REFRESH,
            token,
            expected_claims={
                "jti": record.jti,
                "user_id": record.user_id,
                "iat": record.iat,
                "exp": record.exp,
            }
        )

    async def consume(self, db: AsyncSession, jti: str) -> bool:
        """
        Delete the record for jti.

        Returns:
            False when another transaction already consumed it
        """
        return await self.repository.delete_by_jti(db, jti)

    async def revoke_all(self, db: AsyncSession, user_id: int) -> int:
        """Delete every live record of a user. Idempotent."""
        return await self.repository.delete_all_by_user_id(db, user_id)
