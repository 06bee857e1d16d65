"""
Mail dispatch interface.
Delivery is fire-and-forget relative to the credential flows: callers never
hold a transaction open while mail is sent.
"""

from typing import Protocol, runtime_checkable


@runtime_checkable
class IMailService(Protocol):
    """Protocol for outbound security mail."""

    async def send_account_verify(self, email: str, link: str) -> bool:
        ...

    async def send_password_reset(self, email: str, link: str) -> bool:
        ...

    async def send_password_recover(self, email: str, link: str, plaintext_temp_password: str) -> bool:
        ...

    async def send_reuse_alert(self, email: str, account_was_locked: bool) -> bool:
        ...
