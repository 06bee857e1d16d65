"""
Error taxonomy for the credential service.

Every failure that reaches a client is a CredentialError carrying an HTTP status
and a stable ExceptionMessageCode. Failures raised with keep_changes=True still
commit the writes made earlier in the same transaction (token revocation,
account lock, deletion of an expired refresh record).
"""
from enum import Enum
from typing import Optional

from fastapi import status


class ExceptionMessageCode(str, Enum):
    """User-visible error codes."""

    USER_EMAIL_EXISTS = "USER_EMAIL_EXISTS"
    EMAIL_OR_PASSWORD_INVALID = "EMAIL_OR_PASSWORD_INVALID"
    PASSWORD_INVALID = "PASSWORD_INVALID"
    NEW_PASSWORD_SAME = "NEW_PASSWORD_SAME"
    USER_NOT_FOUND = "USER_NOT_FOUND"
    USER_LOCKED = "USER_LOCKED"
    USER_NOT_VERIFIED = "USER_NOT_VERIFIED"
    USER_ALREADY_VERIFIED = "USER_ALREADY_VERIFIED"

    INVALID_TOKEN = "INVALID_TOKEN"
    TOKEN_EXPIRED = "TOKEN_EXPIRED"
    REFRESH_TOKEN_REUSE = "REFRESH_TOKEN_REUSE"
    REFRESH_TOKEN_EXPIRED = "REFRESH_TOKEN_EXPIRED"

    WAIT_FOR_ANOTHER_DAY = "WAIT_FOR_ANOTHER_DAY"

    ACCOUNT_VERIFICATION_TOKEN_REUSE = "ACCOUNT_VERIFICATION_TOKEN_REUSE"
    ACCOUNT_VERIFICATION_REQUEST_NOT_FOUND = "ACCOUNT_VERIFICATION_REQUEST_NOT_FOUND"
    ACCOUNT_VERIFICATION_REQUEST_INVALID = "ACCOUNT_VERIFICATION_REQUEST_INVALID"

    RECOVER_PASSWORD_TOKEN_REUSE = "RECOVER_PASSWORD_TOKEN_REUSE"
    RECOVER_PASSWORD_REQUEST_NOT_FOUND = "RECOVER_PASSWORD_REQUEST_NOT_FOUND"
    RECOVER_PASSWORD_REQUEST_INVALID = "RECOVER_PASSWORD_REQUEST_INVALID"

    RESET_PASSWORD_TOKEN_REUSE = "RESET_PASSWORD_TOKEN_REUSE"
    RESET_PASSWORD_REQUEST_NOT_FOUND = "RESET_PASSWORD_REQUEST_NOT_FOUND"
    RESET_PASSWORD_REQUEST_INVALID = "RESET_PASSWORD_REQUEST_INVALID"

    INTERNAL_ERROR = "INTERNAL_ERROR"


class CredentialError(Exception):
    """Base class for all credential lifecycle failures."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_code: ExceptionMessageCode = ExceptionMessageCode.INTERNAL_ERROR

    def __init__(
        self,
        code: Optional[ExceptionMessageCode] = None,
        message: Optional[str] = None,
        keep_changes: bool = False
    ):
        self.code = code or self.default_code
        self.message = message or self.code.value
        self.keep_changes = keep_changes
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"detail": self.message, "error_code": self.code.value}

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code.value})"


class UnauthorizedError(CredentialError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_code = ExceptionMessageCode.EMAIL_OR_PASSWORD_INVALID


class ForbiddenError(CredentialError):
    status_code = status.HTTP_403_FORBIDDEN
    default_code = ExceptionMessageCode.WAIT_FOR_ANOTHER_DAY


class NotFoundError(CredentialError):
    status_code = status.HTTP_404_NOT_FOUND
    default_code = ExceptionMessageCode.USER_NOT_FOUND


class InternalError(CredentialError):
    """Invariant violation; never expected in correct operation."""


class InvalidTokenError(UnauthorizedError):
    default_code = ExceptionMessageCode.INVALID_TOKEN


class TokenExpiredError(ForbiddenError):
    default_code = ExceptionMessageCode.TOKEN_EXPIRED


class RefreshTokenExpiredError(UnauthorizedError):
    default_code = ExceptionMessageCode.REFRESH_TOKEN_EXPIRED
