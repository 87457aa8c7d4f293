"""
Declarative base and shared mixins for all models.
"""

from datetime import datetime
from typing import Any, Dict

from sqlalchemy import DateTime, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def utcnow() -> datetime:
    """Naive UTC timestamp, matching how timestamps are stored."""
    return datetime.utcnow()


class Base(DeclarativeBase):
    """Declarative base shared by every table."""


class BaseModel(Base):
    """Abstract model with common helpers."""

    __abstract__ = True

    def to_dict(self) -> Dict[str, Any]:
        """Serialize column values to a plain dict."""
        return {
            column.key: getattr(self, column.key)
            for column in self.__table__.columns
        }


class TimestampMixin:
    """Adds created_at / updated_at columns."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=utcnow,
        server_default=func.now(),
        index=True,
        comment="Creation timestamp"
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=utcnow,
        server_default=func.now(),
        onupdate=utcnow,
        comment="Last update timestamp"
    )
