"""
app/domain/metric_ingestion.py

Domain models used by the metric ingestion flow.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal

UploadStatus = Literal["PENDING", "PROCESSING", "COMPLETED", "FAILED"]

STATUS_PENDING = "PENDING"
STATUS_PROCESSING = "PROCESSING"
STATUS_COMPLETED = "COMPLETED"
STATUS_FAILED = "FAILED"


@dataclass(frozen=True)
class RowValidationError:
    """
    One row-level parse, validation or batch error detail.
    """

    row_number: int
    message: str
    column: str | None = None
    value: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "row_number": self.row_number,
            "message": self.message,
            "column": self.column,
            "value": self.value,
        }


@dataclass(frozen=True)
class UploadJob:
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


@dataclass(frozen=True)
class IngestionSummary:
    """
    End-of-run ingestion summary.
    """

    job_id: uuid.UUID | None
    status: str
    total_rows: int
    rows_processed: int
    rows_failed: int
    validation_errors: list[RowValidationError] = field(default_factory=list)
