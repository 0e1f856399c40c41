"""
db/models/dashboard_metric.py

Versioned metric table: one row per (section_key, metric_key) with full
display metadata.
"""

from __future__ import annotations

import uuid

from sqlalchemy import Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base, TimestampMixin

METRIC_UPSERT_CONSTRAINT = "uq_dashboard_metrics_section_metric"


class DashboardMetric(Base, TimestampMixin):
    """
    Canonical persisted metric.

    ``current_value`` and the other value columns are text: numbers,
    currency, percentages and free text are stored verbatim and interpreted
    by display code according to ``format_type``.

    The unique constraint on ``(section_key, metric_key)`` is the conflict
    key for upserts against this shape.
    """

    __tablename__ = "dashboard_metrics"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    section_key: Mapped[str] = mapped_column(String(100), nullable=False)
    category: Mapped[str] = mapped_column(String(255), nullable=False)
    metric_key: Mapped[str] = mapped_column(String(255), nullable=False)
    metric_name: Mapped[str] = mapped_column(String(255), nullable=False)
    display_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    current_value: Mapped[str] = mapped_column(Text, nullable=False)
    previous_value: Mapped[str | None] = mapped_column(Text, nullable=True)
    target_value: Mapped[str | None] = mapped_column(Text, nullable=True)

    unit: Mapped[str | None] = mapped_column(String(64), nullable=True)
    format_type: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        default="number",
        comment="number, currency, percentage, text, simple",
    )
    change_value: Mapped[str | None] = mapped_column(String(128), nullable=True)
    change_direction: Mapped[str | None] = mapped_column(
        String(16),
        nullable=True,
        comment="up, down, stable",
    )
    color_theme: Mapped[str] = mapped_column(String(32), nullable=False, default="neutral")
    icon_name: Mapped[str | None] = mapped_column(String(64), nullable=True)

    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    methodology: Mapped[str | None] = mapped_column(Text, nullable=True)
    data_source: Mapped[str | None] = mapped_column(Text, nullable=True)
    interpretation: Mapped[str | None] = mapped_column(Text, nullable=True)
    significance: Mapped[str | None] = mapped_column(Text, nullable=True)

    benchmarks: Mapped[list[str] | None] = mapped_column(JSONB, nullable=True)
    recommendations: Mapped[list[str] | None] = mapped_column(JSONB, nullable=True)

    __table_args__ = (
        UniqueConstraint("section_key", "metric_key", name=METRIC_UPSERT_CONSTRAINT),
        Index("ix_dashboard_metrics_section_key", "section_key"),
        Index("ix_dashboard_metrics_category", "category"),
        Index("ix_dashboard_metrics_section_order", "section_key", "display_order"),
    )
