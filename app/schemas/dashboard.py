"""
app/schemas/dashboard.py

Response schemas for the nested dashboard projection.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class MetricViewResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    metric_key: str
    metric_name: str
    display_order: int
    current_value: str
    numeric_value: float | None = None
    format_type: str
    unit: str | None = None
    previous_value: str | None = None
    target_value: str | None = None
    change_value: str | None = None
    change_direction: str | None = None
    color_theme: str = "neutral"
    icon_name: str | None = None
    description: str | None = None
    methodology: str | None = None
    data_source: str | None = None
    interpretation: str | None = None
    significance: str | None = None
    benchmarks: list[str] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)


class SectionViewResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    section_key: str
    section_name: str
    display_order: int
    categories: dict[str, list[MetricViewResponse]] = Field(default_factory=dict)


class DashboardProjectionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    sections: dict[str, SectionViewResponse] = Field(default_factory=dict)
    executive_metrics: dict[str, float | str] = Field(default_factory=dict)
