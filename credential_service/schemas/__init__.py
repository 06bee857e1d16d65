"""
Pydantic schemas for request/response validation.
"""
from .auth_schemas import (
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

__all__ = [
    "SignUpRequest",
    "SignInRequest",
    "RefreshTokenRequest",
    "EmailRequest",
    "ResetPasswordRequest",
    "AuthenticationResponse",
    "WebAuthenticationResponse",
    "SendResponse",
    "ConfirmResponse",
]
