"""
app/services/dashboard_projector.py

Read-side fold of the flat metric set into the nested dashboard view.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field

from app.domain.metric_record import MetricRecord, SectionRecord
from app.normalizers.key_normalizer import KeyNormalizer
from app.validators.metric_validator import extract_numeric_value

EXECUTIVE_SECTION_KEY = "executive"


@dataclass(frozen=True)
class MetricView:
    metric_key: str
    metric_name: str
    display_order: int
    current_value: str
    numeric_value: float | None
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
    benchmarks: list[str] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class SectionView:
    section_key: str
    section_name: str
    display_order: int
    categories: dict[str, list[MetricView]] = field(default_factory=dict)


@dataclass(frozen=True)
class DashboardProjection:
    sections: dict[str, SectionView] = field(default_factory=dict)
    executive_metrics: dict[str, float | str] = field(default_factory=dict)


class DashboardProjector:
    """
    Stateless projection; call ``project`` again after every change event.

    Sections come from the catalogue in catalogue order. Metrics whose section
    is not catalogued still get a section, appended after the known ones.
    """

    def __init__(self, normalizer: KeyNormalizer | None = None) -> None:
        self._normalizer = normalizer or KeyNormalizer()

    def project(
        self,
        metrics: Sequence[MetricRecord],
        sections: Sequence[SectionRecord],
    ) -> DashboardProjection:
        ordered_sections = sorted(sections, key=lambda section: (section.display_order, section.section_key))
        views: dict[str, SectionView] = {
            section.section_key: SectionView(
                section_key=section.section_key,
                section_name=section.section_name,
                display_order=section.display_order,
            )
            for section in ordered_sections
        }

        next_order = max((section.display_order for section in ordered_sections), default=0) + 1
        ordered_metrics = sorted(
            metrics,
            key=lambda record: (record.section_key, record.display_order, record.metric_key),
        )
        for record in ordered_metrics:
            view = views.get(record.section_key)
            if view is None:
                view = SectionView(
                    section_key=record.section_key,
                    section_name=record.section_key.replace("_", " ").replace("-", " ").title(),
                    display_order=next_order,
                )
                views[record.section_key] = view
                next_order += 1
            view.categories.setdefault(record.category, []).append(_to_view(record))

        return DashboardProjection(
            sections=views,
            executive_metrics=self._executive_metrics(ordered_metrics),
        )

    def _executive_metrics(self, metrics: Sequence[MetricRecord]) -> dict[str, float | str]:
        flat: dict[str, float | str] = {}
        for record in metrics:
            if record.section_key != EXECUTIVE_SECTION_KEY:
                continue
            key = self._normalizer.executive_key(record.metric_key)
            if not key:
                continue
            numeric = _plain_number(record.current_value)
            flat[key] = numeric if numeric is not None else record.current_value
        return flat


def _plain_number(value: str) -> float | None:
    try:
        return float(value.replace(",", "").strip())
    except (AttributeError, ValueError):
        return None


def _to_view(record: MetricRecord) -> MetricView:
    return MetricView(
        metric_key=record.metric_key,
        metric_name=record.metric_name,
        display_order=record.display_order,
        current_value=record.current_value,
        numeric_value=extract_numeric_value(record.current_value),
        format_type=record.format_type,
        unit=record.unit,
        previous_value=record.previous_value,
        target_value=record.target_value,
        change_value=record.change_value,
        change_direction=record.change_direction,
        color_theme=record.color_theme,
        icon_name=record.icon_name,
        description=record.description,
        methodology=record.methodology,
        data_source=record.data_source,
        interpretation=record.interpretation,
        significance=record.significance,
        benchmarks=list(record.benchmarks),
        recommendations=list(record.recommendations),
    )
