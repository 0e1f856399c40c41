"""
app/api/routers/sections_router.py

Dashboard section catalogue endpoints.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from app.repositories.section_repository import SectionInUseError, SectionRepository
from app.schemas.history import SectionListResponse, SectionResponse
from app.services.runtime import get_section_repository
from db.repositories.errors import MetricStoreError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sections", tags=["sections"])


@router.get("", response_model=SectionListResponse)
async def list_sections(
    sections: SectionRepository = Depends(get_section_repository),
) -> SectionListResponse:
    try:
        records = await sections.list_active()
    except MetricStoreError as exc:
        logger.error("Section listing failed: %s", exc)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Metric store is unavailable.",
        ) from exc
    return SectionListResponse(
        items=[SectionResponse.model_validate(record) for record in records],
        count=len(records),
    )


@router.delete("/{section_key}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_section(
    section_key: str,
    sections: SectionRepository = Depends(get_section_repository),
) -> None:
    try:
        deleted = await sections.delete(section_key)
    except SectionInUseError as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={
                "message": str(exc),
                "section_key": exc.section_key,
                "metric_count": exc.metric_count,
            },
        ) from exc
    except MetricStoreError as exc:
        logger.error("Section delete failed section_key=%s: %s", section_key, exc)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Metric store is unavailable.",
        ) from exc

    if not deleted:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Section {section_key} not found.",
        )
