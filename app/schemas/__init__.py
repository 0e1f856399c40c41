"""
app/schemas package marker.
"""

from app.schemas.dashboard import DashboardProjectionResponse, MetricViewResponse, SectionViewResponse
from app.schemas.history import (
    AuditEntryListResponse,
    AuditEntryResponse,
    SectionListResponse,
    SectionResponse,
)
from app.schemas.metric_ingestion import (
    CSVValidationErrorResponse,
    MetricIngestionSummaryResponse,
    UploadJobListResponse,
    UploadJobResponse,
)
from app.schemas.metrics import (
    MetricDeleteResponse,
    MetricListResponse,
    MetricRecordResponse,
    MetricUpsertRequest,
    MetricWriteResponse,
)

__all__ = [
    "AuditEntryListResponse",
    "AuditEntryResponse",
    "CSVValidationErrorResponse",
    "DashboardProjectionResponse",
    "MetricDeleteResponse",
    "MetricIngestionSummaryResponse",
    "MetricListResponse",
    "MetricRecordResponse",
    "MetricUpsertRequest",
    "MetricViewResponse",
    "MetricWriteResponse",
    "SectionListResponse",
    "SectionResponse",
    "SectionViewResponse",
    "UploadJobListResponse",
    "UploadJobResponse",
]
