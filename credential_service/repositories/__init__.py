"""
Repository implementations following the Repository pattern.
Provides the data access layer for users, refresh tokens and self-service requests.
"""

from .user_repository import UserRepository
from .refresh_token_repository import RefreshTokenRepository
from .self_service_repository import (
    SelfServiceRequestRepository,
    AttemptCountRepository,
    account_verification_repositories,
    recover_password_repositories,
    reset_password_repositories,
)

__all__ = [
    "UserRepository",
    "RefreshTokenRepository",
    "SelfServiceRequestRepository",
    "AttemptCountRepository",
    "account_verification_repositories",
    "recover_password_repositories",
    "reset_password_repositories",
]
