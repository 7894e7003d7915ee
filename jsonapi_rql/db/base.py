"""
Declarative base for models exposed as JSON:API resources.
"""
from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import DateTime, MetaData, inspect
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


# Deterministic constraint and index names.
NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """Declarative base with naming conventions and a primary-key repr."""
    metadata = MetaData(naming_convention=NAMING_CONVENTION)

    def __repr__(self) -> str:
        identity = inspect(self).identity
        key = ",".join(str(part) for part in identity) if identity else "transient"
        return f"<{type(self).__name__} {key}>"


class TimestampMixin:
    """
    created_at/updated_at columns filled from Python with the current UTC time.
    """
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )
