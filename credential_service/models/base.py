"""
Base model class with common fields and functionality.
All timestamps are stored as naive UTC.
"""
from datetime import datetime, timezone
from typing import Optional
from sqlalchemy import Column, Integer, DateTime
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def utcnow() -> datetime:
    """Current time as naive UTC, the representation used by every column."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class TimestampMixin:
    """Mixin for created_at and updated_at timestamps."""

    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)


class SoftDeleteMixin:
    """Mixin for soft delete functionality."""

    deleted_at = Column(DateTime, nullable=True, index=True)

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def soft_delete(self, when: Optional[datetime] = None) -> None:
        """Mark record as deleted."""
        self.deleted_at = when or utcnow()

    def restore(self) -> None:
        """Restore soft-deleted record."""
        self.deleted_at = None


class BaseModel(Base, TimestampMixin):
    """Base model with an integer primary key and timestamps."""

    __abstract__ = True

    id = Column(Integer, primary_key=True, index=True)

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}(id={self.id})>"
