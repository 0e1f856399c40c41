"""
app/api/routers/history_router.py

Upload job and change audit history endpoints.
"""

from __future__ import annotations

import logging
import uuid

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.api.dependencies import get_history_limit
from app.repositories.audit_log_repository import AuditLogRepository
from app.repositories.upload_job_repository import UploadJobRepository
from app.schemas.history import AuditEntryListResponse, AuditEntryResponse
from app.schemas.metric_ingestion import UploadJobListResponse, UploadJobResponse
from app.services.runtime import get_audit_log_repository, get_upload_job_repository
from db.repositories.errors import MetricStoreError

logger = logging.getLogger(__name__)

router = APIRouter(tags=["history"])


def _history_unavailable(exc: MetricStoreError) -> HTTPException:
    logger.error("History query failed: %s", exc)
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail="History is unavailable.",
    )


@router.get("/uploads", response_model=UploadJobListResponse)
async def list_uploads(
    limit: int = Depends(get_history_limit),
    upload_status: str | None = Query(default=None, alias="status"),
    jobs: UploadJobRepository = Depends(get_upload_job_repository),
) -> UploadJobListResponse:
    try:
        items = await jobs.list_recent(limit=limit, status=upload_status.upper() if upload_status else None)
    except MetricStoreError as exc:
        raise _history_unavailable(exc) from exc
    return UploadJobListResponse(
        items=[UploadJobResponse.model_validate(job) for job in items],
        count=len(items),
    )


@router.get("/uploads/{job_id}", response_model=UploadJobResponse)
async def get_upload(
    job_id: uuid.UUID,
    jobs: UploadJobRepository = Depends(get_upload_job_repository),
) -> UploadJobResponse:
    try:
        job = await jobs.get_job(job_id)
    except MetricStoreError as exc:
        raise _history_unavailable(exc) from exc
    if job is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Upload {job_id} not found.",
        )
    return UploadJobResponse.model_validate(job)


@router.get("/changes", response_model=AuditEntryListResponse)
async def list_changes(
    limit: int = Depends(get_history_limit),
    record_id: uuid.UUID | None = Query(default=None),
    audit_log: AuditLogRepository = Depends(get_audit_log_repository),
) -> AuditEntryListResponse:
    try:
        entries = await audit_log.list_recent(limit=limit, record_id=record_id)
    except MetricStoreError as exc:
        raise _history_unavailable(exc) from exc
    return AuditEntryListResponse(
        items=[AuditEntryResponse.model_validate(entry) for entry in entries],
        count=len(entries),
    )
