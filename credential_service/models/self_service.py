"""
Self-service request models: account verification, password recovery and
password reset.

All three share one shape: a single row per user (re-sent requests overwrite
token and jti in place), a signed security token, the jti it carries, an
optional pending password hash, and a soft-delete timestamp set at confirm.
Each request owns one attempt counter used for rate limiting and for the
replay window of confirmed requests.
"""
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey
from sqlalchemy.orm import declared_attr

from .base import BaseModel, SoftDeleteMixin, utcnow


class SelfServiceRequestMixin(SoftDeleteMixin):
    """Columns shared by every self-service request table."""

    @declared_attr
    def user_id(cls):
        return Column(
            Integer,
            ForeignKey('user.id', ondelete='CASCADE'),
            nullable=False,
            unique=True,
            index=True
        )

    security_token = Column(Text, nullable=False, unique=True)
    jti = Column(String(64), nullable=False, unique=True, index=True)
    new_password = Column(String(255), nullable=True)


class AttemptCountMixin(SoftDeleteMixin):
    """Columns shared by every attempt counter table."""

    count = Column(Integer, default=1, nullable=False)
    count_increase_last_update_date = Column(DateTime, default=utcnow, nullable=False)


class AccountVerification(BaseModel, SelfServiceRequestMixin):
    __tablename__ = 'account_verification'


class RecoverPassword(BaseModel, SelfServiceRequestMixin):
    __tablename__ = 'recover_password'


class ResetPassword(BaseModel, SelfServiceRequestMixin):
    __tablename__ = 'reset_password'


class AccountVerificationAttemptCount(BaseModel, AttemptCountMixin):
    __tablename__ = 'account_verification_attempt_count'

    request_id = Column(
        Integer,
        ForeignKey('account_verification.id', ondelete='CASCADE'),
        nullable=False,
        unique=True
    )


class RecoverPasswordAttemptCount(BaseModel, AttemptCountMixin):
    __tablename__ = 'recover_password_attempt_count'

    request_id = Column(
        Integer,
        ForeignKey('recover_password.id', ondelete='CASCADE'),
        nullable=False,
        unique=True
    )


class ResetPasswordAttemptCount(BaseModel, AttemptCountMixin):
    __tablename__ = 'reset_password_attempt_count'

    request_id = Column(
        Integer,
        ForeignKey('reset_password.id', ondelete='CASCADE'),
        nullable=False,
        unique=True
    )
