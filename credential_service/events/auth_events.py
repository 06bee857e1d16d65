"""
Credential lifecycle events.
Mail delivery and security alerting subscribe to these instead of being
called from inside a transaction.
"""

from typing import Optional
from dataclasses import dataclass, field

from .base_event import BaseEvent


@dataclass
class UserSignedUpEvent(BaseEvent):
    """Event published when an account is created."""

    user_id: int
    platform: str


@dataclass
class UserSignedInEvent(BaseEvent):
    """Event published when a user signs in."""

    user_id: int
    platform: str


@dataclass
class TokenRefreshedEvent(BaseEvent):
    """Event published when a refresh token is rotated."""

    user_id: int
    platform: str


@dataclass
class UserSignedOutEvent(BaseEvent):
    """Event published when a refresh token is consumed by sign-out."""

    user_id: int


@dataclass
class AccountVerifyRequestedEvent(BaseEvent):
    """Event published when a verification link must be mailed."""

    user_id: int
    email: str = field(repr=False)
    link: str = field(repr=False)
    attempt_count: int = 1


@dataclass
class PasswordRecoverRequestedEvent(BaseEvent):
    """Event published when a recovery link and temporary password must be mailed."""

    user_id: int
    email: str = field(repr=False)
    link: str = field(repr=False)
    temporary_password: str = field(repr=False)
    attempt_count: int = 1

    @property
    def data(self):
        payload = super().data
        payload.pop("temporary_password", None)
        return payload


@dataclass
class PasswordResetRequestedEvent(BaseEvent):
    """Event published when a reset confirmation link must be mailed."""

    user_id: int
    email: str = field(repr=False)
    link: str = field(repr=False)
    attempt_count: int = 1


@dataclass
class SelfServiceConfirmedEvent(BaseEvent):
    """Event published when a verify/recover/reset request is confirmed."""

    user_id: int
    flow: str


@dataclass
class CredentialReuseDetectedEvent(BaseEvent):
    """
    Event published when a consumed refresh token or a confirmed
    self-service token is presented again.
    """

    user_id: int
    email: str = field(repr=False)
    source: str = "refresh_token"
    account_was_locked: bool = False
    jti: Optional[str] = None
