"""
app/domain/metric_record.py

Canonical metric record and the defaults applied when ingesting sparse rows.
"""

from __future__ import annotations

import uuid
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any, Literal

FormatType = Literal["number", "currency", "percentage", "text", "simple"]
ChangeDirection = Literal["up", "down", "stable"]

FORMAT_TYPES: frozenset[str] = frozenset({"number", "currency", "percentage", "text", "simple"})
CHANGE_DIRECTIONS: frozenset[str] = frozenset({"up", "down", "stable"})

DOCUMENTATION_FIELDS: tuple[str, ...] = (
    "description",
    "methodology",
    "data_source",
    "interpretation",
    "significance",
)
LIST_FIELDS: tuple[str, ...] = ("benchmarks", "recommendations")


@dataclass(frozen=True)
class MetricRecord:
    """
    One dashboard metric, independent of the persisted schema generation.

    ``(section_key, metric_key)`` identifies the record. All values are text;
    ``format_type`` tells display code how to interpret ``current_value``.
    """

    section_key: str
    category: str
    metric_key: str
    metric_name: str
    current_value: str
    display_order: int = 0
    previous_value: str | None = None
    target_value: str | None = None
    unit: str | None = None
    format_type: str = "number"
    change_value: str | None = None
    change_direction: str | None = None
    color_theme: str = "neutral"
    icon_name: str | None = None
    description: str | None = None
    methodology: str | None = None
    data_source: str | None = None
    interpretation: str | None = None
    significance: str | None = None
    benchmarks: tuple[str, ...] = ()
    recommendations: tuple[str, ...] = ()
    id: uuid.UUID | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def key(self) -> tuple[str, str]:
        return (self.section_key, self.metric_key)

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["benchmarks"] = list(self.benchmarks)
        payload["recommendations"] = list(self.recommendations)
        return payload


@dataclass(frozen=True)
class MetricDefaults:
    """
    Values used for optional columns missing from an input row.

    ``display_order`` is not listed: rows without one take their source row
    number.
    """

    category: str = "General"
    format_type: str = "number"
    color_theme: str = "neutral"


DEFAULT_METRIC_DEFAULTS = MetricDefaults()


@dataclass(frozen=True)
class SectionRecord:
    section_key: str
    section_name: str
    display_order: int
    is_active: bool = True
    id: uuid.UUID | None = None
    created_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

