"""
app/schemas/metric_ingestion.py

Response schemas for metric upload endpoints.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class CSVValidationErrorResponse(BaseModel):
    """
    API response model for one row-level validation error.
    """

    model_config = ConfigDict(from_attributes=True)

    row_number: int = Field(..., ge=0)
    message: str
    column: str | None = None
    value: str | None = None


class MetricIngestionSummaryResponse(BaseModel):
    """
    API response model for a metric CSV ingestion run.
    """

    model_config = ConfigDict(from_attributes=True)

    job_id: uuid.UUID | None = None
    status: str
    total_rows: int = Field(..., ge=0)
    rows_processed: int = Field(..., ge=0)
    rows_failed: int = Field(..., ge=0)
    validation_errors: list[CSVValidationErrorResponse] = Field(default_factory=list)


class UploadJobResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    filename: str
    status: str
    file_size: int | None = None
    total_rows: int | None = None
    processed_rows: int = 0
    failed_rows: int = 0
    error_details: dict[str, Any] | None = None
    uploaded_by: str | None = None
    uploaded_at: datetime | None = None
    completed_at: datetime | None = None


class UploadJobListResponse(BaseModel):
    items: list[UploadJobResponse] = Field(default_factory=list)
    count: int = Field(..., ge=0)
