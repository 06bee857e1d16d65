"""
User and UserIdentity models.

A User owns exactly one UserIdentity holding the credential state this service
mutates: password hash, verification flag, lock flag and strict mode.
"""
from sqlalchemy import Column, Integer, String, Boolean, ForeignKey, Index
from sqlalchemy.orm import relationship

from .base import BaseModel


class User(BaseModel):
    """Account owner; identified by email."""

    __tablename__ = 'user'

    email = Column(String(320), nullable=False, unique=True, index=True)
    user_name = Column(String(100), nullable=False)

    identity = relationship(
        "UserIdentity",
        back_populates="user",
        uselist=False,
        cascade="all, delete-orphan",
        lazy="joined"
    )

    @property
    def is_account_verified(self) -> bool:
        return bool(self.identity and self.identity.is_account_verified)

    @property
    def is_locked(self) -> bool:
        return bool(self.identity and self.identity.is_locked)

    def __repr__(self) -> str:
        return f"<User(id={self.id})>"


class UserIdentity(BaseModel):
    """Credential state of a user. Never deleted by this service."""

    __tablename__ = 'user_identity'

    user_id = Column(Integer, ForeignKey('user.id', ondelete='CASCADE'), nullable=False, unique=True)
    password = Column(String(255), nullable=False)
    is_account_verified = Column(Boolean, default=False, nullable=False)
    is_locked = Column(Boolean, default=False, nullable=False)
    # Opt-in: detected token reuse or replay locks the account on top of alerting
    strict_mode = Column(Boolean, default=False, nullable=False)

    user = relationship("User", back_populates="identity")

    __table_args__ = (
        Index('idx_user_identity_locked', 'is_locked'),
    )

    def __repr__(self) -> str:
        return f"<UserIdentity(user_id={self.user_id}, verified={self.is_account_verified})>"
