"""
db/models/data_change.py

Append-only audit log of metric mutations.
"""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, Index, String, Text, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base


class DataChange(Base):
    """
    One row per committed INSERT, UPDATE or DELETE on a metric table.

    Rows are never updated or deleted.
    """

    __tablename__ = "data_changes"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    table_name: Mapped[str] = mapped_column(String(100), nullable=False)
    record_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    field_name: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        comment="'_record' for inserts and deletes, changed columns for updates",
    )
    old_value: Mapped[str | None] = mapped_column(Text, nullable=True)
    new_value: Mapped[str | None] = mapped_column(Text, nullable=True)
    change_type: Mapped[str] = mapped_column(String(16), nullable=False)
    changed_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    __table_args__ = (
        CheckConstraint(
            "change_type IN ('INSERT', 'UPDATE', 'DELETE')",
            name="ck_data_changes_change_type",
        ),
        Index("ix_data_changes_timestamp", "timestamp"),
        Index("ix_data_changes_record_id", "record_id"),
    )
