"""
Outbound security mail.

Messages go out over SMTP from a worker thread so the event loop is never
blocked. Without SMTP_HOST the message is logged instead (development).
"""

import asyncio
import smtplib
import ssl
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional

import structlog

from ..core.config import Settings, settings as default_settings
from ..interfaces.mail_interface import IMailService

logger = structlog.get_logger()


def redact_email(email: Optional[str]) -> str:
    """Redact an email address for log lines."""
    if not email or "@" not in email:
        return "redacted"
    local, domain = email.split("@", 1)
    return f"{local[:2]}***@{domain}"


class MailService(IMailService):
    """SMTP mail sender for credential lifecycle notifications."""

    def __init__(self, settings: Settings = default_settings):
        self.smtp_host = settings.SMTP_HOST
        self.smtp_port = settings.SMTP_PORT
        self.smtp_user = settings.SMTP_USER
        self.smtp_password = settings.SMTP_PASSWORD
        self.smtp_use_tls = settings.SMTP_TLS
        self.from_email = settings.EMAILS_FROM_EMAIL or settings.SMTP_USER
        self.from_name = settings.EMAILS_FROM_NAME

    @property
    def is_configured(self) -> bool:
        return bool(self.smtp_host and self.from_email)

    async def send_account_verify(self, email: str, link: str) -> bool:
        return await self._send(
            email,
            "Verify your account",
            f"Confirm your email address by opening this link:\n\n{link}\n"
        )

    async def send_password_reset(self, email: str, link: str) -> bool:
        return await self._send(
            email,
            "Confirm your password change",
            f"A password change was requested for your account. "
            f"Confirm it by opening this link:\n\n{link}\n\n"
            f"If you did not request this, ignore this message."
        )

    async def send_password_recover(self, email: str, link: str, plaintext_temp_password: str) -> bool:
        return await self._send(
            email,
            "Recover your password",
            f"Your temporary password is: {plaintext_temp_password}\n\n"
            f"It becomes active once you open this link:\n\n{link}\n"
        )

    async def send_reuse_alert(self, email: str, account_was_locked: bool) -> bool:
        if account_was_locked:
            body = (
                "A previously used security token for your account was presented again. "
                "Your account has been locked and all sessions were signed out."
            )
        else:
            body = (
                "A previously used security token for your account was presented again. "
                "All sessions were signed out. Consider changing your password."
            )
        return await self._send(email, "Security alert", body)

    async def _send(self, to_email: str, subject: str, text_body: str) -> bool:
        if not self.is_configured:
            logger.info(
                "Mail not configured, message logged",
                to=redact_email(to_email),
                subject=subject
            )
            return True
        return await asyncio.to_thread(self._send_sync, to_email, subject, text_body)

    def _send_sync(self, to_email: str, subject: str, text_body: str) -> bool:
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = f"{self.from_name} <{self.from_email}>"
        msg["To"] = to_email
        msg.attach(MIMEText(text_body, "plain"))

        context = ssl.create_default_context()
        try:
            if self.smtp_use_tls:
                with smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=30) as server:
                    server.starttls(context=context)
                    if self.smtp_user and self.smtp_password:
                        server.login(self.smtp_user, self.smtp_password)
                    server.sendmail(self.from_email, to_email, msg.as_string())
            else:
                with smtplib.SMTP_SSL(self.smtp_host, self.smtp_port, context=context, timeout=30) as server:
                    if self.smtp_user and self.smtp_password:
                        server.login(self.smtp_user, self.smtp_password)
                    server.sendmail(self.from_email, to_email, msg.as_string())
        except (smtplib.SMTPException, OSError) as e:
            logger.error(
                "Mail delivery failed",
                to=redact_email(to_email),
                subject=subject,
                error=str(e)
            )
            return False

        logger.info("Mail sent", to=redact_email(to_email), subject=subject)
        return True
