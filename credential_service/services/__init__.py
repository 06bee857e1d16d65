"""
Service layer for the credential service.
"""
from .mail_service import MailService, redact_email

__all__ = [
    "MailService",
    "redact_email",
]
