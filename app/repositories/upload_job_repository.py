"""
app/repositories/upload_job_repository.py

Repository for upload job lifecycle persistence and status lookup.
"""

from __future__ import annotations

import uuid
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any

from app.domain.metric_ingestion import (
    STATUS_COMPLETED,
    STATUS_FAILED,
    STATUS_PENDING,
    STATUS_PROCESSING,
    UploadJob,
)
from db.models.csv_upload import CSVUpload
from db.repositories.table_gateway import TableGateway


class UploadJobRepository:
    table = CSVUpload.__table__

    def __init__(self, gateway: TableGateway) -> None:
        self._gateway = gateway

    async def create_job(
        self,
        *,
        filename: str,
        file_size: int | None = None,
        uploaded_by: str | None = None,
    ) -> UploadJob:
        rows = await self._gateway.insert_rows(
            self.table,
            [
                {
                    "id": uuid.uuid4(),
                    "filename": filename,
                    "file_size": file_size,
                    "status": STATUS_PENDING,
                    "processed_rows": 0,
                    "failed_rows": 0,
                    "uploaded_by": uploaded_by,
                }
            ],
        )
        return _to_job(rows[0])

    async def get_job(self, job_id: uuid.UUID) -> UploadJob | None:
        rows = await self._gateway.select_rows(self.table, filters={"id": job_id}, limit=1)
        return _to_job(rows[0]) if rows else None

    async def list_recent(self, *, limit: int = 50, status: str | None = None) -> list[UploadJob]:
        rows = await self._gateway.select_rows(
            self.table,
            filters={"status": status} if status else None,
            order_by=("-uploaded_at",),
            limit=max(1, limit),
        )
        return [_to_job(row) for row in rows]

    async def mark_processing(self, *, job_id: uuid.UUID, total_rows: int) -> UploadJob | None:
        return await self._update(
            job_id,
            {"status": STATUS_PROCESSING, "total_rows": total_rows},
        )

    async def update_progress(
        self,
        *,
        job_id: uuid.UUID,
        processed_rows: int,
        failed_rows: int,
    ) -> UploadJob | None:
        return await self._update(
            job_id,
            {"processed_rows": processed_rows, "failed_rows": failed_rows},
        )

    async def mark_completed(
        self,
        *,
        job_id: uuid.UUID,
        processed_rows: int,
        failed_rows: int,
        error_details: dict[str, Any] | None = None,
    ) -> UploadJob | None:
        return await self._update(
            job_id,
            {
                "status": STATUS_COMPLETED,
                "processed_rows": processed_rows,
                "failed_rows": failed_rows,
                "error_details": error_details,
                "completed_at": datetime.now(timezone.utc),
            },
        )

    async def mark_failed(
        self,
        *,
        job_id: uuid.UUID,
        error_details: dict[str, Any],
        processed_rows: int = 0,
        failed_rows: int = 0,
    ) -> UploadJob | None:
        return await self._update(
            job_id,
            {
                "status": STATUS_FAILED,
                "processed_rows": processed_rows,
                "failed_rows": failed_rows,
                "error_details": error_details,
                "completed_at": datetime.now(timezone.utc),
            },
        )

    async def _update(self, job_id: uuid.UUID, values: dict[str, Any]) -> UploadJob | None:
        rows = await self._gateway.update_rows(self.table, filters={"id": job_id}, values=values)
        return _to_job(rows[0]) if rows else None


def _to_job(row: Mapping[str, Any]) -> UploadJob:
    return UploadJob(
        id=row["id"],
        filename=row["filename"],
        status=row["status"],
        file_size=row.get("file_size"),
        total_rows=row.get("total_rows"),
        processed_rows=row.get("processed_rows") or 0,
        failed_rows=row.get("failed_rows") or 0,
        error_details=row.get("error_details"),
        uploaded_by=row.get("uploaded_by"),
        uploaded_at=row.get("uploaded_at"),
        completed_at=row.get("completed_at"),
    )
