"""
SQLAlchemy declarative base and shared column helpers.

All team access models inherit from Base and use UUID4 string keys.
"""
from datetime import datetime, timezone
from sqlalchemy import DateTime, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
import uuid


def generate_id() -> str:
    """Generate a new UUID4 string key."""
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy models.

    Usage:
        from app.core.database.base import Base, generate_id

        class Module(Base):
            __tablename__ = "modules"

            id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_id)
    """
    pass


class TimestampMixin:
    """
    Mixin adding created_at and updated_at timestamps.

    Set client-side with microsecond precision so "newest first" orderings
    stay stable for rows written within the same second.
    """
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        onupdate=utcnow,
        nullable=False,
    )
