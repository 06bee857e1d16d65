"""
Test data factories for the credential service.
"""
from .user_factory import UserFactory, UserIdentityFactory, create_user, DEFAULT_PASSWORD

__all__ = [
    "UserFactory",
    "UserIdentityFactory",
    "create_user",
    "DEFAULT_PASSWORD",
]
