"""
Transport encryption for tokens handed to clients.

AES-256-GCM keyed by the SHA-256 digest of the configured key string.
Format: base64url([nonce:12][ciphertext+tag:N]).
"""
import base64
import binascii
import hashlib
import os
from typing import Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
import structlog

from ..interfaces.encryption_interface import IEncryptionService

logger = structlog.get_logger()

NONCE_LENGTH = 12  # 96 bits, the GCM recommendation


class TransportCipher(IEncryptionService):
    """Authenticated encryption of serialized tokens."""

    def __init__(self, key: str):
        if not key:
            raise ValueError("Transport encryption key must not be empty")
        self._aesgcm = AESGCM(hashlib.sha256(key.encode('utf-8')).digest())

    def encrypt(self, plaintext: str) -> str:
        nonce = os.urandom(NONCE_LENGTH)
        sealed = self._aesgcm.encrypt(nonce, plaintext.encode('utf-8'), None)
        return base64.urlsafe_b64encode(nonce + sealed).decode('ascii')

    def decrypt(self, ciphertext: str) -> Optional[str]:
        """
        Decrypt a transport ciphertext.

        Returns None for anything that is not an authentic ciphertext under
        this key; callers treat that exactly like a missing token.
        """
        try:
            raw = base64.urlsafe_b64decode(ciphertext.encode('ascii'))
        except (binascii.Error, ValueError, UnicodeEncodeError):
            logger.debug("Transport ciphertext is not valid base64")
            return None

        if len(raw) <= NONCE_LENGTH:
            return None

        try:
            plaintext = self._aesgcm.decrypt(raw[:NONCE_LENGTH], raw[NONCE_LENGTH:], None)
        except InvalidTag:
            logger.debug("Transport ciphertext failed authentication")
            return None

        try:
            return plaintext.decode('utf-8')
        except UnicodeDecodeError:
            return None
