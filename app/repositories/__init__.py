"""
app/repositories package marker.
"""

from app.repositories.audit_log_repository import AuditLogRepository
from app.repositories.metric_store import MetricStoreClient, UpsertResult
from app.repositories.section_repository import SectionInUseError, SectionRepository
from app.repositories.upload_job_repository import UploadJobRepository

__all__ = [
    "AuditLogRepository",
    "MetricStoreClient",
    "SectionInUseError",
    "SectionRepository",
    "UploadJobRepository",
    "UpsertResult",
]
