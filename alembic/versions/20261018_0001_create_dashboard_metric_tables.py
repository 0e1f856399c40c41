"""create dashboard metric tables

Revision ID: 20261018_0001
Revises:
Create Date: 2026-10-18 09:00:00
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "20261018_0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "dashboard_sections",
        sa.Column("id", postgresql.UUID(as_uuid=True), server_default=sa.text("gen_random_uuid()"), nullable=False),
        sa.Column("section_key", sa.String(length=100), nullable=False),
        sa.Column("section_name", sa.String(length=255), nullable=False),
        sa.Column("display_order", sa.Integer(), nullable=False),
        sa.Column("is_active", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("section_key"),
    )
    op.create_index("ix_dashboard_sections_display_order", "dashboard_sections", ["display_order"], unique=False)

    op.create_table(
        "dashboard_metrics",
        sa.Column("id", postgresql.UUID(as_uuid=True), server_default=sa.text("gen_random_uuid()"), nullable=False),
        sa.Column("section_key", sa.String(length=100), nullable=False),
        sa.Column("category", sa.String(length=255), nullable=False),
        sa.Column("metric_key", sa.String(length=255), nullable=False),
        sa.Column("metric_name", sa.String(length=255), nullable=False),
        sa.Column("display_order", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("current_value", sa.Text(), nullable=False),
        sa.Column("previous_value", sa.Text(), nullable=True),
        sa.Column("target_value", sa.Text(), nullable=True),
        sa.Column("unit", sa.String(length=64), nullable=True),
        sa.Column(
            "format_type",
            sa.String(length=32),
            server_default="number",
            nullable=False,
            comment="number, currency, percentage, text, simple",
        ),
        sa.Column("change_value", sa.String(length=128), nullable=True),
        sa.Column("change_direction", sa.String(length=16), nullable=True, comment="up, down, stable"),
        sa.Column("color_theme", sa.String(length=32), server_default="neutral", nullable=False),
        sa.Column("icon_name", sa.String(length=64), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("methodology", sa.Text(), nullable=True),
        sa.Column("data_source", sa.Text(), nullable=True),
        sa.Column("interpretation", sa.Text(), nullable=True),
        sa.Column("significance", sa.Text(), nullable=True),
        sa.Column("benchmarks", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("recommendations", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("section_key", "metric_key", name="uq_dashboard_metrics_section_metric"),
    )
    op.create_index("ix_dashboard_metrics_section_key", "dashboard_metrics", ["section_key"], unique=False)
    op.create_index("ix_dashboard_metrics_category", "dashboard_metrics", ["category"], unique=False)
    op.create_index(
        "ix_dashboard_metrics_section_order",
        "dashboard_metrics",
        ["section_key", "display_order"],
        unique=False,
    )

    op.create_table(
        "data_changes",
        sa.Column("id", postgresql.UUID(as_uuid=True), server_default=sa.text("gen_random_uuid()"), nullable=False),
        sa.Column("table_name", sa.String(length=100), nullable=False),
        sa.Column("record_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column(
            "field_name",
            sa.Text(),
            nullable=False,
            comment="'_record' for inserts and deletes, changed columns for updates",
        ),
        sa.Column("old_value", sa.Text(), nullable=True),
        sa.Column("new_value", sa.Text(), nullable=True),
        sa.Column("change_type", sa.String(length=16), nullable=False),
        sa.Column("changed_by", sa.String(length=255), nullable=True),
        sa.Column("timestamp", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.CheckConstraint("change_type IN ('INSERT', 'UPDATE', 'DELETE')", name="ck_data_changes_change_type"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_data_changes_timestamp", "data_changes", ["timestamp"], unique=False)
    op.create_index("ix_data_changes_record_id", "data_changes", ["record_id"], unique=False)

    op.create_table(
        "csv_uploads",
        sa.Column("id", postgresql.UUID(as_uuid=True), server_default=sa.text("gen_random_uuid()"), nullable=False),
        sa.Column("filename", sa.String(length=512), nullable=False),
        sa.Column("file_size", sa.Integer(), nullable=True),
        sa.Column("total_rows", sa.Integer(), nullable=True),
        sa.Column("processed_rows", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("failed_rows", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("status", sa.String(length=16), server_default="PENDING", nullable=False),
        sa.Column(
            "error_details",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=True,
            comment="Bounded list of row and batch errors",
        ),
        sa.Column("uploaded_by", sa.String(length=255), nullable=True),
        sa.Column("uploaded_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint(
            "status IN ('PENDING', 'PROCESSING', 'COMPLETED', 'FAILED')",
            name="ck_csv_uploads_status",
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_csv_uploads_uploaded_at", "csv_uploads", ["uploaded_at"], unique=False)
    op.create_index("ix_csv_uploads_status", "csv_uploads", ["status"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_csv_uploads_status", table_name="csv_uploads")
    op.drop_index("ix_csv_uploads_uploaded_at", table_name="csv_uploads")
    op.drop_table("csv_uploads")
    op.drop_index("ix_data_changes_record_id", table_name="data_changes")
    op.drop_index("ix_data_changes_timestamp", table_name="data_changes")
    op.drop_table("data_changes")
    op.drop_index("ix_dashboard_metrics_section_order", table_name="dashboard_metrics")
    op.drop_index("ix_dashboard_metrics_category", table_name="dashboard_metrics")
    op.drop_index("ix_dashboard_metrics_section_key", table_name="dashboard_metrics")
    op.drop_table("dashboard_metrics")
    op.drop_index("ix_dashboard_sections_display_order", table_name="dashboard_sections")
    op.drop_table("dashboard_sections")
