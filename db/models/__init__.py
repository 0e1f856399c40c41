"""
Model package exports.

Import all SQLAlchemy models here so metadata registration and Alembic
autogeneration work without extra imports. ``LegacyDashboardMetric`` is
registered on its own metadata and is not migrated.
"""

from db.models.csv_upload import CSVUpload
from db.models.dashboard_metric import METRIC_UPSERT_CONSTRAINT, DashboardMetric
from db.models.dashboard_section import DashboardSection
from db.models.data_change import DataChange
from db.models.legacy_dashboard_metric import LEGACY_METRIC_UPSERT_CONSTRAINT, LegacyDashboardMetric

__all__ = [
    "CSVUpload",
    "DashboardMetric",
    "DashboardSection",
    "DataChange",
    "LegacyDashboardMetric",
    "LEGACY_METRIC_UPSERT_CONSTRAINT",
    "METRIC_UPSERT_CONSTRAINT",
]
