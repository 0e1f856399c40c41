"""
app/api/routers/dashboard_router.py

Nested dashboard projection endpoint.
"""

from __future__ import annotations

import logging
from dataclasses import asdict

from fastapi import APIRouter, Depends, HTTPException, status

from app.repositories.metric_store import MetricStoreClient
from app.repositories.section_repository import SectionRepository
from app.schemas.dashboard import DashboardProjectionResponse
from app.services.dashboard_projector import DashboardProjector
from app.services.runtime import get_dashboard_projector, get_metric_store_client, get_section_repository
from db.repositories.errors import MetricStoreError

logger = logging.getLogger(__name__)

router = APIRouter(tags=["dashboard"])


@router.get("/dashboard", response_model=DashboardProjectionResponse)
async def get_dashboard(
    store: MetricStoreClient = Depends(get_metric_store_client),
    sections: SectionRepository = Depends(get_section_repository),
    projector: DashboardProjector = Depends(get_dashboard_projector),
) -> DashboardProjectionResponse:
    """
    Return sections, categories and metrics as the dashboard renders them.
    """

    try:
        metrics = await store.get_all()
        catalogue = await sections.list_active()
    except MetricStoreError as exc:
        logger.error("Dashboard projection failed: %s", exc)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Metric store is unavailable.",
        ) from exc

    return DashboardProjectionResponse.model_validate(asdict(projector.project(metrics, catalogue)))
