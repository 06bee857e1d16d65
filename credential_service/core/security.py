import secrets
import uuid
from passlib.context import CryptContext
import structlog

from .config import settings

logger = structlog.get_logger()

pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=settings.BCRYPT_ROUNDS
)

TEMPORARY_PASSWORD_MIN = 100000
TEMPORARY_PASSWORD_MAX = 999999


class SecurityService:
    """Handles password hashing and random identifiers"""

    @staticmethod
    def verify_password(plain_password: str, hashed_password: str) -> bool:
        """Verify a password against its hash"""
        return pwd_context.verify(plain_password, hashed_password)

    @staticmethod
    def get_password_hash(password: str) -> str:
        """Generate password hash"""
        return pwd_context.hash(password)

    @staticmethod
    def generate_jti() -> str:
        """Unique token identifier; also the lookup key of the backing record."""
        return str(uuid.uuid4())

    @staticmethod
    def generate_temporary_password() -> str:
        """Six-digit password mailed by the recover-password flow."""
        span = TEMPORARY_PASSWORD_MAX - TEMPORARY_PASSWORD_MIN + 1
        return str(TEMPORARY_PASSWORD_MIN + secrets.randbelow(span))

    @staticmethod
    def dummy_verify() -> None:
        """Spend the time of a hash check when there is no hash to check against."""
        pwd_context.dummy_verify()
