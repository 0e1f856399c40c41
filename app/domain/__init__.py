"""
app/domain package marker.
"""

from app.domain.metric_change import AuditEntry, MetricChange, MetricChangeEvent
from app.domain.metric_ingestion import IngestionSummary, RowValidationError, UploadJob
from app.domain.metric_record import MetricDefaults, MetricRecord, SectionRecord

__all__ = [
    "AuditEntry",
    "IngestionSummary",
    "MetricChange",
    "MetricChangeEvent",
    "MetricDefaults",
    "MetricRecord",
    "RowValidationError",
    "SectionRecord",
    "UploadJob",
]
