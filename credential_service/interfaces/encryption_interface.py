"""
Encryption service interface for dependency abstraction.
Defines the contract for the transport encryption applied to tokens before they
leave the service.
"""

from typing import Optional, Protocol, runtime_checkable


@runtime_checkable
class IEncryptionService(Protocol):
    """Protocol for transport encryption operations."""

    def encrypt(self, plaintext: str) -> str:
        """
        Encrypt plaintext data.

        Args:
            plaintext: Data to encrypt

        Returns:
            Encrypted data as a URL-safe string
        """
        ...

    def decrypt(self, ciphertext: str) -> Optional[str]:
        """
        Decrypt encrypted data.

        Args:
            ciphertext: Encrypted data to decrypt

        Returns:
            Decrypted plaintext, or None if the ciphertext is not authentic
        """
        ...
