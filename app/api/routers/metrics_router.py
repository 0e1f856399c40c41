"""
app/api/routers/metrics_router.py

Metric record HTTP endpoints: upload, reads, direct writes, export and the
live change stream.
"""

from __future__ import annotations

import json
import logging

from fastapi import APIRouter, Depends, Form, HTTPException, UploadFile, WebSocket, WebSocketDisconnect, status
from fastapi.responses import StreamingResponse

from app.api.dependencies import get_csv_upload
from app.normalizers.key_normalizer import KeyNormalizer
from app.repositories.metric_store import MetricStoreClient
from app.schemas.metric_ingestion import CSVValidationErrorResponse, MetricIngestionSummaryResponse
from app.schemas.metrics import (
    MetricDeleteResponse,
    MetricListResponse,
    MetricUpsertRequest,
    MetricWriteResponse,
    metric_response,
)
from app.services.change_notifier import ChangeNotifier, SubscriptionGapError
from app.services.metric_export_service import MetricExportService, get_metric_export_service
from app.services.metric_ingestion_service import (
    CSVHeaderValidationError,
    CSVSchemaMappingError,
    MetricIngestionService,
    MetricRecordValidationError,
    get_metric_ingestion_service,
)
from app.services.runtime import get_change_notifier, get_key_normalizer, get_metric_store_client
from db.repositories.errors import MetricStoreError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/metrics", tags=["metrics"])


def _store_unavailable(exc: MetricStoreError) -> HTTPException:
    logger.error("Metric store request failed: %s", exc)
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail="Metric store is unavailable.",
    )


def _parse_column_mapping(raw: str | None) -> dict[str, str] | None:
    if raw is None or not raw.strip():
        return None
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="column_mapping must be a JSON object.",
        ) from exc
    if not isinstance(payload, dict) or not all(
        isinstance(key, str) and isinstance(value, str) for key, value in payload.items()
    ):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="column_mapping must map canonical fields to source column names.",
        )
    return payload


@router.post("/upload-csv", response_model=MetricIngestionSummaryResponse)
async def upload_csv(
    file: UploadFile = Depends(get_csv_upload),
    uploaded_by: str | None = Form(default=None),
    column_mapping: str | None = Form(default=None, description="Optional JSON canonical_field -> column map"),
    ingestion_service: MetricIngestionService = Depends(get_metric_ingestion_service),
) -> MetricIngestionSummaryResponse:
    """
    Ingest one metric CSV file.
    """

    manual_mapping = _parse_column_mapping(column_mapping)
    try:
        content = await file.read()
        summary = await ingestion_service.ingest_csv(
            content,
            filename=file.filename or "upload.csv",
            uploaded_by=uploaded_by,
            manual_mapping=manual_mapping,
        )
    except CSVSchemaMappingError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=exc.to_dict(),
        ) from exc
    except CSVHeaderValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=exc.to_dict(),
        ) from exc
    except MetricStoreError as exc:
        raise _store_unavailable(exc) from exc
    finally:
        await file.close()

    return MetricIngestionSummaryResponse(
        job_id=summary.job_id,
        status=summary.status,
        total_rows=summary.total_rows,
        rows_processed=summary.rows_processed,
        rows_failed=summary.rows_failed,
        validation_errors=[
            CSVValidationErrorResponse.model_validate(error) for error in summary.validation_errors
        ],
    )


@router.get("", response_model=MetricListResponse)
async def list_metrics(
    store: MetricStoreClient = Depends(get_metric_store_client),
) -> MetricListResponse:
    try:
        records = await store.get_all()
    except MetricStoreError as exc:
        raise _store_unavailable(exc) from exc
    return MetricListResponse(
        items=[metric_response(record) for record in records],
        count=len(records),
        shape=store.active_shape,
    )


@router.put("", response_model=MetricWriteResponse)
async def upsert_metric(
    payload: MetricUpsertRequest,
    ingestion_service: MetricIngestionService = Depends(get_metric_ingestion_service),
) -> MetricWriteResponse:
    """
    Insert or update one metric, keyed by section and metric key.
    """

    try:
        result = await ingestion_service.upsert_row(payload.to_mapped_row())
    except MetricRecordValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=exc.to_dict(),
        ) from exc
    except MetricStoreError as exc:
        raise _store_unavailable(exc) from exc

    return MetricWriteResponse(
        shape=result.shape,
        written=result.written,
        unchanged=result.unchanged,
        records=[metric_response(record) for record in result.records],
    )


@router.get("/export")
async def export_metrics(
    store: MetricStoreClient = Depends(get_metric_store_client),
    export_service: MetricExportService = Depends(get_metric_export_service),
) -> StreamingResponse:
    """
    Download every metric as a CSV document that re-ingests unchanged.
    """

    try:
        records = await store.get_all()
    except MetricStoreError as exc:
        raise _store_unavailable(exc) from exc

    return StreamingResponse(
        export_service.iter_csv(records),
        media_type="text/csv",
        headers={"Content-Disposition": "attachment; filename=dashboard_metrics_export.csv"},
    )


@router.get("/{section_key}", response_model=MetricListResponse)
async def list_section_metrics(
    section_key: str,
    store: MetricStoreClient = Depends(get_metric_store_client),
) -> MetricListResponse:
    try:
        records = await store.get_by_section(section_key)
    except MetricStoreError as exc:
        raise _store_unavailable(exc) from exc
    return MetricListResponse(
        items=[metric_response(record) for record in records],
        count=len(records),
        shape=store.active_shape,
    )


@router.delete("/{section_key}/{metric_key}", response_model=MetricDeleteResponse)
async def delete_metric(
    section_key: str,
    metric_key: str,
    store: MetricStoreClient = Depends(get_metric_store_client),
    normalizer: KeyNormalizer = Depends(get_key_normalizer),
) -> MetricDeleteResponse:
    canonical_section = normalizer.to_section_key(section_key)
    canonical_metric = normalizer.resolve_metric_alias(metric_key)
    try:
        changes = await store.delete_one(canonical_section, canonical_metric)
    except MetricStoreError as exc:
        raise _store_unavailable(exc) from exc

    if not changes:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Metric {canonical_section}/{canonical_metric} not found.",
        )
    return MetricDeleteResponse(
        section_key=canonical_section,
        metric_key=canonical_metric,
        deleted=len(changes),
    )


@router.websocket("/stream")
async def stream_changes(
    websocket: WebSocket,
    notifier: ChangeNotifier = Depends(get_change_notifier),
) -> None:
    """
    Push one JSON message per committed change.

    After a buffer overflow the server sends ``{"type": "resync"}`` and
    closes; clients re-fetch and reconnect.
    """

    await websocket.accept()
    subscription = notifier.subscribe()
    try:
        async for event in subscription:
            await websocket.send_json({"type": "change", "event": event.to_dict()})
        await websocket.close()
    except SubscriptionGapError:
        await websocket.send_json({"type": "resync"})
        await websocket.close()
    except WebSocketDisconnect:
        logger.info("Change stream client disconnected")
    finally:
        subscription.close()
