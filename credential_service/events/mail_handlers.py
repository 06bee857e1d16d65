"""
Event handlers that turn credential lifecycle events into mail.
"""

import structlog

from ..interfaces.event_interface import IEventBus
from ..interfaces.mail_interface import IMailService
from .auth_events import (
    AccountVerifyRequestedEvent,
    PasswordRecoverRequestedEvent,
    PasswordResetRequestedEvent,
    CredentialReuseDetectedEvent,
)

logger = structlog.get_logger()


class MailEventHandler:
    """Routes mail-bearing events to the mail collaborator."""

    def __init__(self, mail_service: IMailService):
        self.mail_service = mail_service

    async def register(self, event_bus: IEventBus) -> None:
        await event_bus.subscribe("AccountVerifyRequestedEvent", self.on_account_verify_requested)
        await event_bus.subscribe("PasswordRecoverRequestedEvent", self.on_password_recover_requested)
        await event_bus.subscribe("PasswordResetRequestedEvent", self.on_password_reset_requested)
        await event_bus.subscribe("CredentialReuseDetectedEvent", self.on_credential_reuse_detected)

    async def on_account_verify_requested(self, event: AccountVerifyRequestedEvent) -> None:
        await self.mail_service.send_account_verify(event.email, event.link)

    async def on_password_recover_requested(self, event: PasswordRecoverRequestedEvent) -> None:
        await self.mail_service.send_password_recover(event.email, event.link, event.temporary_password)

    async def on_password_reset_requested(self, event: PasswordResetRequestedEvent) -> None:
        await self.mail_service.send_password_reset(event.email, event.link)

    async def on_credential_reuse_detected(self, event: CredentialReuseDetectedEvent) -> None:
        await self.mail_service.send_reuse_alert(event.email, event.account_was_locked)


async def log_security_event(event) -> None:
    """Global handler writing every credential event to the log."""
    logger.info(
        "Credential event",
        event_type=event.event_type,
        correlation_id=event.correlation_id,
        user_id=event.data.get("user_id")
    )
