"""
Dependency injection for FastAPI endpoints.
Provides common dependencies like the authentication service, the client
platform and the current user.
"""
from typing import Optional
from fastapi import Depends, Header, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from ..container import get_container
from ..core.config import settings
from ..core.database import get_db
from ..models.refresh_token import Platform
from ..models.user import User
from ..services.auth.authentication_service import AuthenticationService

security = HTTPBearer(auto_error=False)


def get_auth_service() -> AuthenticationService:
    return get_container().get(AuthenticationService)


def get_platform(platform: Optional[str] = Header(None)) -> Optional[Platform]:
    """Client platform from the `platform` header; None when missing or unknown."""
    return Platform.from_header(platform)


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db),
    auth_service: AuthenticationService = Depends(get_auth_service)
) -> User:
    """
    Resolve the signed-in user from the access token.

    Mobile clients send it as a bearer token, web clients as the access cookie.

    Raises:
        CredentialError: If authentication fails
    """
    token = credentials.credentials if credentials else request.cookies.get(settings.COOKIE_ACCESS_NAME)
    user = await auth_service.authenticate_access_token(db, token)
    # End the read-only transaction so the endpoint owns its own
    await db.commit()
    return user
