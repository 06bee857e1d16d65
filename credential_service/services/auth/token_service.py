"""
Token service focused solely on signed token operations.
Follows Single Responsibility Principle by handling only token minting,
verification and transport encryption; it never touches the store.
"""

import time
from enum import Enum
from typing import Any, Callable, Dict, Optional

from jose import jwt, JWTError, ExpiredSignatureError
import structlog

from ...core.config import Settings, settings as default_settings
from ...core.encryption import TransportCipher
from ...core.exceptions import InvalidTokenError, TokenExpiredError
from ...interfaces.encryption_interface import IEncryptionService

logger = structlog.get_logger()


class TokenKind(str, Enum):
    """Purpose of a token; each kind has its own secret and lifetime."""

    ACCESS = "access"
    REFRESH = "refresh"
    ACCOUNT_VERIFY = "verify"
    RECOVER_PASSWORD = "recover"
    RESET_PASSWORD = "reset"


class TokenService:
    """Service responsible for signed token operations."""

    def __init__(
        self,
        settings: Settings = default_settings,
        clock: Callable[[], float] = time.time,
        cipher: Optional[IEncryptionService] = None
    ):
        self.settings = settings
        self.clock = clock
        self.algorithm = settings.JWT_ALGORITHM
        self.transport_encryption_enabled = settings.ENABLE_SESSION_ACCESS_JWT_ENCRYPTION
        if cipher is None and self.transport_encryption_enabled:
            cipher = TransportCipher(settings.SESSION_ACCESS_JWT_ENCRYPTION_KEY)
        self.cipher = cipher

        self._secrets = {
            TokenKind.ACCESS: settings.ACCESS_TOKEN_SECRET,
            TokenKind.REFRESH: settings.REFRESH_TOKEN_SECRET,
            TokenKind.ACCOUNT_VERIFY: settings.ACCOUNT_VERIFY_TOKEN_SECRET,
            TokenKind.RECOVER_PASSWORD: settings.RECOVER_PASSWORD_TOKEN_SECRET,
            TokenKind.RESET_PASSWORD: settings.RESET_PASSWORD_TOKEN_SECRET,
        }
        self._lifetimes = {
            TokenKind.ACCESS: settings.ACCESS_TOKEN_EXPIRATION_IN_SEC,
            TokenKind.REFRESH: settings.REFRESH_TOKEN_EXPIRATION_IN_SEC,
            TokenKind.ACCOUNT_VERIFY: settings.ACCOUNT_VERIFICATION_TOKEN_EXPIRATION_IN_SEC,
            TokenKind.RECOVER_PASSWORD: settings.RECOVER_PASSWORD_REQUEST_TIMEOUT_IN_SEC,
            TokenKind.RESET_PASSWORD: settings.RESET_PASSWORD_REQUEST_TIMEOUT_IN_SEC,
        }

    def mint(self, kind: TokenKind, claims: Dict[str, Any]) -> str:
        """
        Sign a new token of the given kind.

        Args:
            kind: Token purpose, selects secret and lifetime
            claims: Payload claims, typically sub (email), user_id and jti

        Returns:
            Serialized JWT
        """
        issued_at = int(self.clock())
        payload = dict(claims)
        payload.update({
            "type": kind.value,
            "iat": issued_at,
            "exp": issued_at + self._lifetimes[kind],
        })
        return jwt.encode(payload, self._secrets[kind], algorithm=self.algorithm)

    def verify(
        self,
        kind: TokenKind,
        token: str,
        expected_claims: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """
        Verify signature, expiry, kind and optionally exact claim values.

        Raises:
            TokenExpiredError: signature valid but the token has expired
            InvalidTokenError: any other verification failure
        """
        return self._decode(kind, token, expected_claims, verify_exp=True)

    def verify_signature_only(self, kind: TokenKind, token: str) -> Dict[str, Any]:
        """Verify signature and kind while ignoring expiry."""
        return self._decode(kind, token, None, verify_exp=False)

    def _decode(
        self,
        kind: TokenKind,
        token: str,
        expected_claims: Optional[Dict[str, Any]],
        verify_exp: bool
    ) -> Dict[str, Any]:
        try:
            payload = jwt.decode(
                token,
                self._secrets[kind],
                algorithms=[self.algorithm],
                options={"verify_exp": verify_exp, "verify_aud": False}
            )
        except ExpiredSignatureError:
            raise TokenExpiredError()
        except JWTError as e:
            logger.debug("Token verification failed", kind=kind.value, error=str(e))
            raise InvalidTokenError()

        if payload.get("type") != kind.value:
            logger.debug("Token kind mismatch", expected=kind.value, actual=payload.get("type"))
            raise InvalidTokenError()

        for name, value in (expected_claims or {}).items():
            if payload.get(name) != value:
                logger.debug("Token claim mismatch", kind=kind.value, claim=name)
                raise InvalidTokenError()

        return payload

    @staticmethod
    def decode_unverified(token: str) -> Dict[str, Any]:
        """
        Read claims without checking the signature.

        Only used to locate the backing record; nothing read here is trusted
        until verify succeeds.
        """
        try:
            claims = jwt.get_unverified_claims(token)
        except JWTError:
            raise InvalidTokenError()
        if not isinstance(claims.get("jti"), str) or not isinstance(claims.get("user_id"), int):
            raise InvalidTokenError()
        return claims

    def encrypt_for_transport(self, token: str) -> str:
        """Apply transport encryption when the feature flag is on."""
        if not self.transport_encryption_enabled:
            return token
        return self.cipher.encrypt(token)

    def decrypt_for_transport(self, value: Optional[str]) -> Optional[str]:
        """
        Undo transport encryption when the feature flag is on.

        Returns None when the value is missing or cannot be decrypted.
        """
        if not value:
            return None
        if not self.transport_encryption_enabled:
            return value
        return self.cipher.decrypt(value)
