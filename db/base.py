"""
db/base.py

Declarative bases and shared mixins for all SQLAlchemy models.
"""

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import DateTime, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """
    Project-wide declarative base for the versioned schema.
    All models managed by Alembic must inherit from this class.
    """

    type_annotation_map: dict[type, Any] = {}


class LegacyBase(DeclarativeBase):
    """
    Declarative base for the first-generation flat metric table.

    Kept on its own metadata so migrations never create it and it can share
    the ``dashboard_metrics`` table name with the versioned model.
    """


class TimestampMixin:
    """
    Mixin that adds created_at and updated_at to any model.
    updated_at is automatically refreshed on every UPDATE via onupdate.
    """

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=lambda: datetime.now(timezone.utc),
    )
