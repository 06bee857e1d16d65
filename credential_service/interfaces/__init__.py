"""
Interface definitions for dependency abstractions.
These classes define contracts for services to enable dependency injection
and improve testability.
"""

from .encryption_interface import IEncryptionService
from .event_interface import IEventBus, IEvent
from .mail_interface import IMailService
from .repository_interface import (
    IUserRepository,
    IRefreshTokenRepository,
    ISelfServiceRequestRepository,
    IAttemptCountRepository,
)

__all__ = [
    "IEncryptionService",
    "IEventBus",
    "IEvent",
    "IMailService",
    "IUserRepository",
    "IRefreshTokenRepository",
    "ISelfServiceRequestRepository",
    "IAttemptCountRepository",
]
