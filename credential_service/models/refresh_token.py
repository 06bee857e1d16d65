"""
Refresh token ledger model.

One row per issued refresh token that is still live. A row is deleted exactly
once, at rotation or sign-out; a signature-valid token whose jti has no row is
a reused token.
"""
import enum
from typing import Optional
from sqlalchemy import Column, Integer, String, Text, BigInteger, ForeignKey, Index, Enum

from .base import BaseModel


class Platform(str, enum.Enum):
    """Client platform a token pair was issued to."""

    WEB = "web"
    MOBILE = "mobile"

    @classmethod
    def from_header(cls, value: Optional[str]) -> Optional["Platform"]:
        if not value:
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None


class RefreshToken(BaseModel):
    """Live refresh token record."""

    __tablename__ = 'refresh_token'

    user_id = Column(Integer, ForeignKey('user.id', ondelete='CASCADE'), nullable=False)
    jti = Column(String(64), nullable=False, unique=True, index=True)
    # Stored exactly as signed into the token; verification compares for equality
    iat = Column(BigInteger, nullable=False)
    exp = Column(BigInteger, nullable=False)
    platform = Column(Enum(Platform, name="platform_for_jwt"), nullable=False)
    token = Column(Text, nullable=False)

    __table_args__ = (
        Index('idx_refresh_token_user_id', 'user_id'),
    )

    def __repr__(self) -> str:
        return f"<RefreshToken(user_id={self.user_id}, platform={self.platform})>"
