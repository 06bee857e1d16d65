"""
Unit tests for TokenService: signing, verification and transport encryption.
"""
import time

import pytest

from credential_service.core.config import settings
from credential_service.core.encryption import TransportCipher
from credential_service.core.exceptions import InvalidTokenError, TokenExpiredError
from credential_service.services.auth.token_service import TokenService, TokenKind

CLAIMS = {"sub": "user@example.com", "user_id": 7, "jti": "b5c1b0f6-53a1-4c55-8c51-7d9b8b0b8a10"}


class TestTokenService:

    @pytest.mark.unit
    def test_mint_and_verify_round_trip(self, token_service):
        token = token_service.mint(TokenKind.ACCESS, CLAIMS)

        payload = token_service.verify(TokenKind.ACCESS, token, expected_claims=CLAIMS)

        assert payload["user_id"] == 7
        assert payload["type"] == "access"
        assert payload["exp"] - payload["iat"] == settings.ACCESS_TOKEN_EXPIRATION_IN_SEC

    @pytest.mark.unit
    @pytest.mark.parametrize("kind", list(TokenKind))
    def test_each_kind_uses_its_own_lifetime(self, token_service, kind):
        payload = token_service.decode_unverified(token_service.mint(kind, CLAIMS))

        assert payload["exp"] - payload["iat"] == token_service._lifetimes[kind]

    @pytest.mark.unit
    def test_token_of_one_kind_does_not_verify_as_another(self, token_service):
        token = token_service.mint(TokenKind.RECOVER_PASSWORD, CLAIMS)

        with pytest.raises(InvalidTokenError):
            token_service.verify(TokenKind.RESET_PASSWORD, token)

    @pytest.mark.unit
    def test_expected_claim_mismatch_is_invalid(self, token_service):
        token = token_service.mint(TokenKind.REFRESH, CLAIMS)

        with pytest.raises(InvalidTokenError):
            token_service.verify(TokenKind.REFRESH, token, expected_claims={"user_id": 8})

    @pytest.mark.unit
    def test_tampered_token_is_invalid(self, token_service):
        token = token_service.mint(TokenKind.ACCESS, CLAIMS)
        header, payload, signature = token.split(".")
        tampered = ".".join([header, payload, signature[::-1]])

        with pytest.raises(InvalidTokenError):
            token_service.verify(TokenKind.ACCESS, tampered)

    @pytest.mark.unit
    def test_expired_token_is_distinguished(self, past_token_service, token_service):
        token = past_token_service.mint(TokenKind.REFRESH, CLAIMS)

        with pytest.raises(TokenExpiredError):
            token_service.verify(TokenKind.REFRESH, token)

    @pytest.mark.unit
    def test_signature_only_ignores_expiry(self, past_token_service, token_service):
        token = past_token_service.mint(TokenKind.REFRESH, CLAIMS)

        payload = token_service.verify_signature_only(TokenKind.REFRESH, token)

        assert payload["jti"] == CLAIMS["jti"]
        assert payload["exp"] < time.time()

    @pytest.mark.unit
    def test_decode_unverified_rejects_garbage(self, token_service):
        with pytest.raises(InvalidTokenError):
            token_service.decode_unverified("not-a-token")

    @pytest.mark.unit
    def test_decode_unverified_requires_jti_and_user_id(self, token_service):
        token = token_service.mint(TokenKind.ACCESS, {"sub": "user@example.com"})

        with pytest.raises(InvalidTokenError):
            token_service.decode_unverified(token)

    @pytest.mark.unit
    def test_transport_is_identity_when_disabled(self, token_service):
        assert token_service.encrypt_for_transport("abc") == "abc"
        assert token_service.decrypt_for_transport("abc") == "abc"
        assert token_service.decrypt_for_transport(None) is None

    @pytest.mark.unit
    def test_transport_encryption_round_trip(self, encrypting_token_service):
        token = encrypting_token_service.mint(TokenKind.ACCESS, CLAIMS)

        sealed = encrypting_token_service.encrypt_for_transport(token)

        assert sealed != token
        assert encrypting_token_service.decrypt_for_transport(sealed) == token

    @pytest.mark.unit
    def test_undecryptable_transport_value_reads_as_missing(self, encrypting_token_service, token_service):
        plain = token_service.mint(TokenKind.ACCESS, CLAIMS)

        assert encrypting_token_service.decrypt_for_transport(plain) is None
        assert encrypting_token_service.decrypt_for_transport("%%%") is None


class TestTransportCipher:

    @pytest.mark.unit
    def test_ciphertexts_are_randomized(self):
        cipher = TransportCipher("key")

        assert cipher.encrypt("token") != cipher.encrypt("token")

    @pytest.mark.unit
    def test_wrong_key_fails_authentication(self):
        sealed = TransportCipher("key-one").encrypt("token")

        assert TransportCipher("key-two").decrypt(sealed) is None

    @pytest.mark.unit
    def test_truncated_ciphertext_is_rejected(self):
        cipher = TransportCipher("key")
        sealed = cipher.encrypt("token")

        assert cipher.decrypt(sealed[:10]) is None

    @pytest.mark.unit
    def test_empty_key_is_refused(self):
        with pytest.raises(ValueError):
            TransportCipher("")
