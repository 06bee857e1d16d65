from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator, model_validator, ValidationError, ValidationInfo
from typing import Optional
import sys
from functools import lru_cache
import structlog

logger = structlog.get_logger()


class Settings(BaseSettings):
    """
    Credential Service Configuration

    Token secrets MUST be provided via environment variables.
    The service will fail fast if required security configurations are missing.
    """

    model_config = SettingsConfigDict(
        case_sensitive=True,
        env_file=".env",
        validate_assignment=True,
        extra="ignore",
    )

    # Application settings
    APP_NAME: str = "Credential Service"
    VERSION: str = "1.0.0"
    DEBUG: bool = False
    ENVIRONMENT: str = "production"

    # Base URLs used to build confirmation links
    BACKEND_URL: str = "http://localhost:8000"

    # Token secrets - REQUIRED, NO DEFAULTS, one per token kind
    ACCESS_TOKEN_SECRET: str = Field(..., min_length=32)
    REFRESH_TOKEN_SECRET: str = Field(..., min_length=32)
    ACCOUNT_VERIFY_TOKEN_SECRET: str = Field(..., min_length=32)
    RECOVER_PASSWORD_TOKEN_SECRET: str = Field(..., min_length=32)
    RESET_PASSWORD_TOKEN_SECRET: str = Field(..., min_length=32)
    JWT_ALGORITHM: str = "HS256"

    # Token lifetimes
    ACCESS_TOKEN_EXPIRATION_IN_SEC: int = Field(default=900, ge=60)
    REFRESH_TOKEN_EXPIRATION_IN_SEC: int = Field(default=7 * 24 * 3600, ge=300)
    ACCOUNT_VERIFICATION_TOKEN_EXPIRATION_IN_SEC: int = Field(default=24 * 3600, ge=60)
    RECOVER_PASSWORD_REQUEST_TIMEOUT_IN_SEC: int = Field(default=3600, ge=60)
    RESET_PASSWORD_REQUEST_TIMEOUT_IN_SEC: int = Field(default=3600, ge=60)

    # Transport encryption of tokens handed to clients
    ENABLE_SESSION_ACCESS_JWT_ENCRYPTION: bool = False
    SESSION_ACCESS_JWT_ENCRYPTION_KEY: Optional[str] = None

    # Self-service attempt limiting
    MAX_ATTEMPT_COUNT: int = Field(default=5, ge=1, le=50)
    ATTEMPT_COOLDOWN_IN_SEC: int = Field(default=24 * 3600, ge=60)

    # Password hashing
    BCRYPT_ROUNDS: int = Field(default=10, ge=4, le=16)

    # Database - REQUIRED
    DATABASE_URL: str = Field(...)
    DATABASE_POOL_SIZE: int = Field(default=20, ge=1, le=200)
    DATABASE_MAX_OVERFLOW: int = Field(default=40, ge=0, le=200)
    DATABASE_POOL_TIMEOUT: int = Field(default=30, ge=5, le=60)
    DATABASE_POOL_RECYCLE: int = Field(default=1800, ge=300, le=3600)

    # Session cookies for web clients
    COOKIE_ACCESS_NAME: str = "access_token"
    COOKIE_REFRESH_NAME: str = "refresh_token"
    COOKIE_DOMAIN: Optional[str] = None
    COOKIE_SECURE: bool = True
    COOKIE_SAMESITE: str = "strict"

    # Email settings - optional, mail is logged when SMTP_HOST is not set
    SMTP_HOST: Optional[str] = None
    SMTP_PORT: int = 587
    SMTP_USER: Optional[str] = None
    SMTP_PASSWORD: Optional[str] = None
    SMTP_TLS: bool = True
    EMAILS_FROM_EMAIL: Optional[str] = None
    EMAILS_FROM_NAME: str = "Credential Service"

    @field_validator(
        "ACCESS_TOKEN_SECRET",
        "REFRESH_TOKEN_SECRET",
        "ACCOUNT_VERIFY_TOKEN_SECRET",
        "RECOVER_PASSWORD_TOKEN_SECRET",
        "RESET_PASSWORD_TOKEN_SECRET",
    )
    @classmethod
    def validate_secrets(cls, v: str, info: ValidationInfo) -> str:
        """Validate that signing secrets are strong enough"""
        bad_values = ["your-secret-key", "change-me", "changeme", "password", "12345"]
        if any(bad in v.lower() for bad in bad_values):
            raise ValueError(f"{info.field_name} contains weak or default values")
        return v

    @field_validator("ENVIRONMENT")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        valid_envs = ["development", "test", "staging", "production"]
        if v not in valid_envs:
            raise ValueError(f"ENVIRONMENT must be one of: {valid_envs}")
        return v

    @field_validator("COOKIE_SAMESITE")
    @classmethod
    def validate_samesite(cls, v: str) -> str:
        if v not in ("strict", "lax", "none"):
            raise ValueError("COOKIE_SAMESITE must be one of: strict, lax, none")
        return v

    @model_validator(mode="after")
    def validate_token_settings(self) -> "Settings":
        """Each token kind signs with its own secret; encryption needs a key."""
        secrets_in_use = [
            self.ACCESS_TOKEN_SECRET,
            self.REFRESH_TOKEN_SECRET,
            self.ACCOUNT_VERIFY_TOKEN_SECRET,
            self.RECOVER_PASSWORD_TOKEN_SECRET,
            self.RESET_PASSWORD_TOKEN_SECRET,
        ]
        if len(set(secrets_in_use)) != len(secrets_in_use):
            raise ValueError("Token secrets must be distinct for every token kind")

        if self.ENABLE_SESSION_ACCESS_JWT_ENCRYPTION and not self.SESSION_ACCESS_JWT_ENCRYPTION_KEY:
            raise ValueError(
                "SESSION_ACCESS_JWT_ENCRYPTION_KEY is required when "
                "ENABLE_SESSION_ACCESS_JWT_ENCRYPTION is on"
            )
        return self


def validate_required_settings(settings: Settings) -> None:
    """
    Validate environment-specific requirements.
    Fail fast if critical settings are missing or invalid.
    """
    errors = []

    if settings.ENVIRONMENT == "production":
        if settings.DEBUG:
            errors.append("DEBUG must be False in production")

        if not settings.COOKIE_SECURE:
            errors.append("COOKIE_SECURE must be enabled in production")

        if "localhost" in settings.DATABASE_URL.lower():
            errors.append("DATABASE_URL cannot use localhost in production")

    if settings.SMTP_HOST and not settings.EMAILS_FROM_EMAIL:
        errors.append("EMAILS_FROM_EMAIL required when SMTP_HOST is set")

    if errors:
        error_msg = "Configuration validation failed:\n" + "\n".join(f"  - {e}" for e in errors)
        logger.error(error_msg)
        raise ValueError(error_msg)

    logger.info(
        "Configuration validated successfully",
        environment=settings.ENVIRONMENT,
        debug=settings.DEBUG,
        transport_encryption=settings.ENABLE_SESSION_ACCESS_JWT_ENCRYPTION,
        max_attempt_count=settings.MAX_ATTEMPT_COUNT,
        smtp_configured=bool(settings.SMTP_HOST),
    )


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.
    Fails fast if required environment variables are missing.
    """
    try:
        settings = Settings()
        validate_required_settings(settings)
        return settings
    except ValidationError as e:
        logger.error("Failed to load settings", errors=e.errors())
        print("\n" + "=" * 60)
        print("CONFIGURATION ERROR")
        print("=" * 60)
        print("\nRequired environment variables are missing or invalid:")
        for error in e.errors():
            field = (error.get("loc") or ["settings"])[0]
            msg = error.get("msg", "Invalid value")
            print(f"  - {field}: {msg}")
        print("\nPlease check your environment variables and .env file")
        print("=" * 60 + "\n")
        sys.exit(1)
    except ValueError as e:
        logger.error("Invalid configuration", error=str(e))
        sys.exit(1)


# Initialize settings on module import
settings = get_settings()
