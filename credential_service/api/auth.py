"""
Authentication endpoints.
Implements sign-up, sign-in, token refresh, sign-out and the account-verify,
recover-password and reset-password flows.
"""
from typing import Callable, Dict, Optional
from fastapi import APIRouter, Depends, Query, Request, Response, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from ..core.config import settings
from ..core.database import get_db
from ..models.refresh_token import Platform
from ..models.user import User
from ..schemas.auth_schemas import (
    SignUpRequest,
    SignInRequest,
    RefreshTokenRequest,
    EmailRequest,
    ResetPasswordRequest,
    AuthenticationResponse,
    WebAuthenticationResponse,
    SendResponse,
    ConfirmResponse,
)
from ..services.auth.attempt_limiter import AttemptResult
from ..services.auth.authentication_service import AuthenticationService, IssuedSession
from .deps import get_auth_service, get_current_user, get_platform

logger = structlog.get_logger()
router = APIRouter(prefix="/authentication", tags=["authentication"])

UNKNOWN_PLATFORM_BODY = {"msg": "Something went wrong"}


def _set_session_cookies(response: Response, issued: IssuedSession) -> None:
    cookie_options = dict(
        httponly=True,
        secure=settings.COOKIE_SECURE,
        samesite=settings.COOKIE_SAMESITE,
        domain=settings.COOKIE_DOMAIN,
        path="/"
    )
    response.set_cookie(
        settings.COOKIE_ACCESS_NAME,
        issued.access_token,
        max_age=settings.ACCESS_TOKEN_EXPIRATION_IN_SEC,
        **cookie_options
    )
    response.set_cookie(
        settings.COOKIE_REFRESH_NAME,
        issued.refresh_token,
        max_age=settings.REFRESH_TOKEN_EXPIRATION_IN_SEC,
        **cookie_options
    )


def _clear_session_cookies(response: Response) -> None:
    for name in (settings.COOKIE_ACCESS_NAME, settings.COOKIE_REFRESH_NAME):
        response.delete_cookie(name, path="/", domain=settings.COOKIE_DOMAIN)


def _web_session_response(issued: IssuedSession) -> Response:
    response = JSONResponse(
        WebAuthenticationResponse(is_account_verified=issued.is_account_verified).model_dump()
    )
    _set_session_cookies(response, issued)
    return response


def _mobile_session_response(issued: IssuedSession) -> Response:
    return JSONResponse(
        AuthenticationResponse(
            access_token=issued.access_token,
            refresh_token=issued.refresh_token,
            is_account_verified=issued.is_account_verified
        ).model_dump()
    )


SESSION_RESPONSE_BUILDERS: Dict[Platform, Callable[[IssuedSession], Response]] = {
    Platform.WEB: _web_session_response,
    Platform.MOBILE: _mobile_session_response,
}


def _unknown_platform_response() -> Response:
    return JSONResponse(UNKNOWN_PLATFORM_BODY, status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)


def _presented_refresh_token(
    platform: Platform,
    request: Request,
    body: Optional[RefreshTokenRequest]
) -> Optional[str]:
    if platform is Platform.WEB:
        return request.cookies.get(settings.COOKIE_REFRESH_NAME)
    return body.refresh_token if body else None


def _send_response(result: AttemptResult) -> SendResponse:
    return SendResponse(attempt_count=result.count, cooldown_active=result.cooldown_active)


@router.post("/sign-up")
async def sign_up(
    body: SignUpRequest,
    platform: Optional[Platform] = Depends(get_platform),
    db: AsyncSession = Depends(get_db),
    auth_service: AuthenticationService = Depends(get_auth_service)
):
    """
    Create an account and start a session.

    - **email**: User's email address
    - **user_name**: Display name
    - **password**: User's password
    """
    if platform is None:
        return _unknown_platform_response()
    issued = await auth_service.sign_up(db, body.email, body.user_name, body.password, platform)
    return SESSION_RESPONSE_BUILDERS[platform](issued)


@router.post("/sign-in")
async def sign_in(
    body: SignInRequest,
    platform: Optional[Platform] = Depends(get_platform),
    db: AsyncSession = Depends(get_db),
    auth_service: AuthenticationService = Depends(get_auth_service)
):
    """Start a session with email and password."""
    if platform is None:
        return _unknown_platform_response()
    issued = await auth_service.sign_in(db, body.email, body.password, platform)
    return SESSION_RESPONSE_BUILDERS[platform](issued)


@router.post("/refresh")
async def refresh(
    request: Request,
    body: Optional[RefreshTokenRequest] = None,
    platform: Optional[Platform] = Depends(get_platform),
    db: AsyncSession = Depends(get_db),
    auth_service: AuthenticationService = Depends(get_auth_service)
):
    """
    Rotate the refresh token.

    Web clients send it as the refresh cookie, mobile clients in the body.
    """
    if platform is None:
        return _unknown_platform_response()
    token = _presented_refresh_token(platform, request, body)
    issued = await auth_service.refresh(db, token, platform)
    return SESSION_RESPONSE_BUILDERS[platform](issued)


@router.post("/sign-out", status_code=status.HTTP_204_NO_CONTENT)
async def sign_out(
    request: Request,
    body: Optional[RefreshTokenRequest] = None,
    platform: Optional[Platform] = Depends(get_platform),
    db: AsyncSession = Depends(get_db),
    auth_service: AuthenticationService = Depends(get_auth_service)
):
    """End the session that owns the presented refresh token."""
    if platform is None:
        return _unknown_platform_response()
    token = _presented_refresh_token(platform, request, body)
    await auth_service.sign_out(db, token)

    response = Response(status_code=status.HTTP_204_NO_CONTENT)
    if platform is Platform.WEB:
        _clear_session_cookies(response)
    return response


@router.post("/account-verify/send", response_model=SendResponse)
async def account_verify_send(
    body: EmailRequest,
    db: AsyncSession = Depends(get_db),
    auth_service: AuthenticationService = Depends(get_auth_service)
):
    """Mail an account verification link."""
    return _send_response(await auth_service.account_verify_send(db, body.email))


@router.get("/account-verify/confirm", response_model=ConfirmResponse)
async def account_verify_confirm(
    token: str = Query(..., min_length=1),
    db: AsyncSession = Depends(get_db),
    auth_service: AuthenticationService = Depends(get_auth_service)
):
    outcome = await auth_service.account_verify_confirm(db, token)
    return ConfirmResponse(status=outcome.value)


@router.post("/recover-password/send", response_model=SendResponse)
async def recover_password_send(
    body: EmailRequest,
    db: AsyncSession = Depends(get_db),
    auth_service: AuthenticationService = Depends(get_auth_service)
):
    """Mail a temporary password together with the link that activates it."""
    return _send_response(await auth_service.recover_password_send(db, body.email))


@router.get("/recover-password/confirm", response_model=ConfirmResponse)
async def recover_password_confirm(
    token: str = Query(..., min_length=1),
    db: AsyncSession = Depends(get_db),
    auth_service: AuthenticationService = Depends(get_auth_service)
):
    outcome = await auth_service.recover_password_confirm(db, token)
    return ConfirmResponse(status=outcome.value)


@router.post("/reset-password/send", response_model=SendResponse)
async def reset_password_send(
    body: ResetPasswordRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    auth_service: AuthenticationService = Depends(get_auth_service)
):
    """Request a password change; the new password applies once the mailed link is opened."""
    result = await auth_service.reset_password_send(
        db, current_user.id, body.old_password, body.new_password
    )
    return _send_response(result)


@router.get("/reset-password/confirm", response_model=ConfirmResponse)
async def reset_password_confirm(
    token: str = Query(..., min_length=1),
    db: AsyncSession = Depends(get_db),
    auth_service: AuthenticationService = Depends(get_auth_service)
):
    outcome = await auth_service.reset_password_confirm(db, token)
    return ConfirmResponse(status=outcome.value)
