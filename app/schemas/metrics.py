"""
app/schemas/metrics.py

Request and response schemas for metric record endpoints.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from app.domain.metric_record import MetricRecord


class MetricRecordResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID | None = None
    section_key: str
    category: str
    metric_key: str
    metric_name: str
    display_order: int
    current_value: str
    previous_value: str | None = None
    target_value: str | None = None
    unit: str | None = None
    format_type: str
    change_value: str | None = None
    change_direction: str | None = None
    color_theme: str
    icon_name: str | None = None
    description: str | None = None
    methodology: str | None = None
    data_source: str | None = None
    interpretation: str | None = None
    significance: str | None = None
    benchmarks: list[str] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)
    created_at: datetime | None = None
    updated_at: datetime | None = None


class MetricListResponse(BaseModel):
    items: list[MetricRecordResponse] = Field(default_factory=list)
    count: int = Field(..., ge=0)
    shape: str | None = None


class MetricUpsertRequest(BaseModel):
    """
    One metric written through ``PUT /metrics``.

    Keys are normalized by the service, so display labels are accepted.
    """

    section_key: str = Field(..., min_length=1)
    metric_key: str | None = None
    metric_name: str | None = None
    current_value: str = Field(..., min_length=1)
    category: str | None = None
    display_order: int | None = Field(default=None, ge=0)
    previous_value: str | None = None
    target_value: str | None = None
    unit: str | None = None
    format_type: Literal["number", "currency", "percentage", "text", "simple"] | None = None
    change_value: str | None = None
    change_direction: Literal["up", "down", "stable"] | None = None
    color_theme: str | None = None
    icon_name: str | None = None
    description: str | None = None
    methodology: str | None = None
    data_source: str | None = None
    interpretation: str | None = None
    significance: str | None = None
    benchmarks: list[str] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def _require_key_or_name(self) -> "MetricUpsertRequest":
        if not (self.metric_key or "").strip() and not (self.metric_name or "").strip():
            raise ValueError("metric_key or metric_name is required.")
        return self

    def to_mapped_row(self) -> dict[str, str | None]:
        """Render as the canonical string row the metric validator accepts."""

        row: dict[str, str | None] = {}
        for name, value in self.model_dump().items():
            if isinstance(value, list):
                row[name] = "; ".join(value) if value else None
            elif value is None:
                row[name] = None
            else:
                row[name] = str(value)
        return row


class MetricWriteResponse(BaseModel):
    shape: str
    written: int = Field(..., ge=0)
    unchanged: int = Field(..., ge=0)
    records: list[MetricRecordResponse] = Field(default_factory=list)


class MetricDeleteResponse(BaseModel):
    section_key: str
    metric_key: str
    deleted: int = Field(..., ge=0)


def metric_response(record: MetricRecord) -> MetricRecordResponse:
    return MetricRecordResponse.model_validate(record.to_dict())
