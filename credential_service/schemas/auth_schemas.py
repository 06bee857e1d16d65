"""
Authentication-related Pydantic schemas for request/response validation.
"""
from typing import Optional
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator


class SignUpRequest(BaseModel):
    """Sign-up request schema."""

    email: EmailStr = Field(..., description="User's email address")
    user_name: str = Field(..., min_length=1, max_length=100, description="Display name")
    password: str = Field(..., min_length=8, max_length=72, description="User's password")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "email": "user@example.com",
                "user_name": "user",
                "password": "securepassword123"
            }
        }
    )

    @field_validator('user_name')
    @classmethod
    def strip_user_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError('User name must not be blank')
        return v


class SignInRequest(BaseModel):
    """Sign-in request schema."""

    email: EmailStr = Field(..., description="User's email address")
    password: str = Field(..., min_length=1, max_length=72, description="User's password")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "email": "user@example.com",
                "password": "securepassword123"
            }
        }
    )


class RefreshTokenRequest(BaseModel):
    """Refresh token carried in the body by mobile clients."""

    refresh_token: Optional[str] = Field(None, description="Refresh token as issued")


class EmailRequest(BaseModel):
    """Body of the account-verify and recover-password send endpoints."""

    email: EmailStr = Field(..., description="User's email address")


class ResetPasswordRequest(BaseModel):
    """Authenticated password change request."""

    old_password: str = Field(..., min_length=1, max_length=72, description="Current password")
    new_password: str = Field(..., min_length=8, max_length=72, description="New password")


class AuthenticationResponse(BaseModel):
    """Body returned to mobile clients after sign-up, sign-in and refresh."""

    access_token: str = Field(..., description="Access token")
    refresh_token: str = Field(..., description="Refresh token")
    is_account_verified: bool = Field(..., description="Whether the email address is verified")


class WebAuthenticationResponse(BaseModel):
    """Body returned to web clients; tokens travel in cookies."""

    is_account_verified: bool


class SendResponse(BaseModel):
    """Result of a self-service send."""

    attempt_count: int
    cooldown_active: bool


class ConfirmResponse(BaseModel):
    """Result of a self-service confirm."""

    status: str
