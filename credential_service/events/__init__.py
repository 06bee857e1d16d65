"""
Event system implementation for decoupling mail delivery and audit logging
from the credential flows.
"""

from .event_bus import InMemoryEventBus
from .base_event import BaseEvent
from .auth_events import (
    UserSignedUpEvent,
    UserSignedInEvent,
    TokenRefreshedEvent,
    UserSignedOutEvent,
    AccountVerifyRequestedEvent,
    PasswordRecoverRequestedEvent,
    PasswordResetRequestedEvent,
    SelfServiceConfirmedEvent,
    CredentialReuseDetectedEvent,
)
from .mail_handlers import MailEventHandler, log_security_event

__all__ = [
    "InMemoryEventBus",
    "BaseEvent",
    "UserSignedUpEvent",
    "UserSignedInEvent",
    "TokenRefreshedEvent",
    "UserSignedOutEvent",
    "AccountVerifyRequestedEvent",
    "PasswordRecoverRequestedEvent",
    "PasswordResetRequestedEvent",
    "SelfServiceConfirmedEvent",
    "CredentialReuseDetectedEvent",
    "MailEventHandler",
    "log_security_event",
]
