"""
app/reconcilers/metric_shapes.py

Schema reconciliation between the two generations of the metric table.

``VersionedMetricShape`` targets ``(section_key, metric_key)`` rows with full
display metadata; ``LegacyMetricShape`` targets the flat
``(section, category, field, value)`` layout. Both convert to and from
``MetricRecord`` so callers never see which one is persisted.
``ShapeSelector`` picks one per store client and remembers it.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Mapping, Sequence
from dataclasses import replace
from typing import Any, Protocol, TypeVar

from sqlalchemy import Table

from app.domain.metric_record import DOCUMENTATION_FIELDS, LIST_FIELDS, MetricRecord
from app.normalizers.key_normalizer import KeyNormalizer
from db.models.dashboard_metric import DashboardMetric
from db.models.legacy_dashboard_metric import LegacyDashboardMetric
from db.repositories.errors import SchemaUnavailableError

logger = logging.getLogger(__name__)

T = TypeVar("T")

VERSIONED_SHAPE = "versioned"
LEGACY_SHAPE = "legacy"

_VERSIONED_VALUE_COLUMNS: tuple[str, ...] = (
    "section_key",
    "category",
    "metric_key",
    "metric_name",
    "display_order",
    "current_value",
    "previous_value",
    "target_value",
    "unit",
    "format_type",
    "change_value",
    "change_direction",
    "color_theme",
    "icon_name",
    *DOCUMENTATION_FIELDS,
    *LIST_FIELDS,
)


class MetricShapeStrategy(Protocol):
    """
    One persisted layout of the metric table.
    """

    name: str
    table: Table
    conflict_columns: tuple[str, ...]
    order_by: tuple[str, ...]

    def write_plan(self, record: MetricRecord) -> dict[str, Any]:
        """Columns to write for ``record``; unsupported fields are dropped."""
        ...

    def conflict_key(self, plan: Mapping[str, Any]) -> tuple[Any, ...]:
        ...

    def prefetch_filters(self, section_key: str) -> dict[str, Any] | None:
        """
        Filters selecting stored rows that a write to ``section_key`` may
        replace, or ``None`` when stored keys only match after conversion.
        """
        ...

    def bind_to_stored(self, plan: Mapping[str, Any], stored: Mapping[str, Any]) -> dict[str, Any]:
        """``plan`` rewritten to target the existing ``stored`` row on conflict."""
        ...

    def section_filters(self, section_key: str) -> dict[str, Any] | None:
        """Store-side filters for a section read, or ``None`` to filter after conversion."""
        ...

    def to_record(self, row: Mapping[str, Any]) -> MetricRecord:
        ...

    def sort_records(self, records: Sequence[MetricRecord]) -> list[MetricRecord]:
        ...


def _list_or_none(values: Sequence[str]) -> list[str] | None:
    return list(values) if values else None


def _as_tuple(value: Any) -> tuple[str, ...]:
    if not value:
        return ()
    if isinstance(value, str):
        return (value,)
    return tuple(str(item) for item in value)


def _record_sort_key(record: MetricRecord) -> tuple[str, int, str]:
    return (record.section_key, record.display_order, record.metric_key)


def plan_diff(plan: Mapping[str, Any], row: Mapping[str, Any]) -> tuple[str, ...]:
    """
    Columns of ``plan`` whose value differs from the stored ``row``.
    """

    return tuple(column for column, value in plan.items() if row.get(column) != value)


class VersionedMetricShape:
    name = VERSIONED_SHAPE
    table: Table = DashboardMetric.__table__
    conflict_columns: tuple[str, ...] = ("section_key", "metric_key")
    order_by: tuple[str, ...] = ("section_key", "display_order", "metric_key")

    def write_plan(self, record: MetricRecord) -> dict[str, Any]:
        plan: dict[str, Any] = {}
        for column in _VERSIONED_VALUE_COLUMNS:
            value = getattr(record, column)
            plan[column] = _list_or_none(value) if column in LIST_FIELDS else value
        return plan

    def conflict_key(self, plan: Mapping[str, Any]) -> tuple[Any, ...]:
        return (plan["section_key"], plan["metric_key"])

    def prefetch_filters(self, section_key: str) -> dict[str, Any] | None:
        return {"section_key": section_key}

    def bind_to_stored(self, plan: Mapping[str, Any], stored: Mapping[str, Any]) -> dict[str, Any]:
        return dict(plan)

    def section_filters(self, section_key: str) -> dict[str, Any] | None:
        return {"section_key": section_key}

    def to_record(self, row: Mapping[str, Any]) -> MetricRecord:
        return MetricRecord(
            section_key=row["section_key"],
            category=row["category"],
            metric_key=row["metric_key"],
            metric_name=row["metric_name"],
            display_order=row.get("display_order") or 0,
            current_value=row["current_value"],
            previous_value=row.get("previous_value"),
            target_value=row.get("target_value"),
            unit=row.get("unit"),
            format_type=row.get("format_type") or "number",
            change_value=row.get("change_value"),
            change_direction=row.get("change_direction"),
            color_theme=row.get("color_theme") or "neutral",
            icon_name=row.get("icon_name"),
            description=row.get("description"),
            methodology=row.get("methodology"),
            data_source=row.get("data_source"),
            interpretation=row.get("interpretation"),
            significance=row.get("significance"),
            benchmarks=_as_tuple(row.get("benchmarks")),
            recommendations=_as_tuple(row.get("recommendations")),
            id=row.get("id"),
            created_at=row.get("created_at"),
            updated_at=row.get("updated_at"),
        )

    def sort_records(self, records: Sequence[MetricRecord]) -> list[MetricRecord]:
        return sorted(records, key=_record_sort_key)


class LegacyMetricShape:
    """
    Flat first-generation layout.

    Writes keep ``section``/``category``/``field``/``value`` plus the
    documentation and list columns; display metadata has nowhere to go and is
    dropped. Reads re-synthesize the canonical keys through the normalizer,
    and writes match stored rows by that synthesized key, keeping the stored
    ``section``/``category``/``field`` of a matched row. Rows carry no display order, so records are numbered by creation order
    within their section.
    """

    name = LEGACY_SHAPE
    table: Table = LegacyDashboardMetric.__table__
    conflict_columns: tuple[str, ...] = ("section", "category", "field")
    order_by: tuple[str, ...] = ("section", "created_at", "field")

    def __init__(self, normalizer: KeyNormalizer) -> None:
        self._normalizer = normalizer

    def write_plan(self, record: MetricRecord) -> dict[str, Any]:
        plan: dict[str, Any] = {
            "section": record.section_key,
            "category": record.category,
            "field": record.metric_name,
            "value": record.current_value,
        }
        for column in DOCUMENTATION_FIELDS:
            plan[column] = getattr(record, column)
        for column in LIST_FIELDS:
            plan[column] = _list_or_none(getattr(record, column))
        return plan

    def conflict_key(self, plan: Mapping[str, Any]) -> tuple[Any, ...]:
        return (plan["section"], plan["category"], plan["field"])

    def prefetch_filters(self, section_key: str) -> dict[str, Any] | None:
        return None

    def bind_to_stored(self, plan: Mapping[str, Any], stored: Mapping[str, Any]) -> dict[str, Any]:
        # Stored rows keep their original headings ("Executive Summary",
        # "Lives Impacted"); the row is updated in place under them.
        return {**plan, **{column: stored.get(column) for column in self.conflict_columns}}

    def section_filters(self, section_key: str) -> dict[str, Any] | None:
        return None

    def to_record(self, row: Mapping[str, Any]) -> MetricRecord:
        field_name = row.get("field") or ""
        return MetricRecord(
            section_key=self._normalizer.to_section_key(row.get("section")),
            category=row.get("category") or "",
            metric_key=self._normalizer.resolve_metric_alias(field_name),
            metric_name=field_name,
            display_order=0,
            current_value=row.get("value") or "",
            description=row.get("description"),
            methodology=row.get("methodology"),
            data_source=row.get("data_source"),
            interpretation=row.get("interpretation"),
            significance=row.get("significance"),
            benchmarks=_as_tuple(row.get("benchmarks")),
            recommendations=_as_tuple(row.get("recommendations")),
            id=row.get("id"),
            created_at=row.get("created_at"),
            updated_at=row.get("updated_at"),
        )

    def sort_records(self, records: Sequence[MetricRecord]) -> list[MetricRecord]:
        ordered: list[MetricRecord] = []
        positions: dict[str, int] = {}
        for record in records:
            position = positions.get(record.section_key, 0) + 1
            positions[record.section_key] = position
            ordered.append(_with_display_order(record, position))
        return sorted(ordered, key=_record_sort_key)


def _with_display_order(record: MetricRecord, display_order: int) -> MetricRecord:
    return replace(record, display_order=display_order)


class ShapeSelector:
    """
    Chooses the active shape on first use and caches it.

    The first operation runs against the versioned shape; if the store reports
    the relation or a column missing, the same operation is retried once
    against the legacy shape, and legacy becomes the cached choice. The
    triggering error is only visible if the fallback fails too.
    """

    def __init__(self, versioned: MetricShapeStrategy, legacy: MetricShapeStrategy) -> None:
        self._versioned = versioned
        self._legacy = legacy
        self._active: MetricShapeStrategy | None = None

    @property
    def active(self) -> MetricShapeStrategy | None:
        return self._active

    def reset(self) -> None:
        self._active = None

    async def run(self, operation: Callable[[MetricShapeStrategy], Awaitable[T]]) -> T:
        if self._active is not None:
            return await operation(self._active)

        try:
            result = await operation(self._versioned)
        except SchemaUnavailableError as exc:
            logger.warning(
                "Versioned metric shape unavailable table=%s sqlstate=%s; retrying with legacy shape",
                exc.table_name,
                exc.sqlstate,
            )
            result = await operation(self._legacy)
            self._active = self._legacy
            logger.info("Metric shape selected shape=%s", self._legacy.name)
            return result

        self._active = self._versioned
        logger.info("Metric shape selected shape=%s", self._versioned.name)
        return result
