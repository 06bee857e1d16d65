"""
Database models for the credential service.
"""
from .base import Base, utcnow
from .user import User, UserIdentity
from .refresh_token import RefreshToken, Platform
from .self_service import (
    AccountVerification,
    RecoverPassword,
    ResetPassword,
    AccountVerificationAttemptCount,
    RecoverPasswordAttemptCount,
    ResetPasswordAttemptCount,
)

__all__ = [
    "Base",
    "utcnow",
    "User",
    "UserIdentity",
    "RefreshToken",
    "Platform",
    "AccountVerification",
    "RecoverPassword",
    "ResetPassword",
    "AccountVerificationAttemptCount",
    "RecoverPasswordAttemptCount",
    "ResetPasswordAttemptCount",
]
