"""
app/services/metric_export_service.py

Delimited export of metric records in the versioned column layout.

The output is the inverse of the upload format: re-ingesting an export
reproduces the same ``(section_key, metric_key) -> current_value`` pairs.
"""

from __future__ import annotations

import csv
import io
from collections.abc import Iterator, Sequence
from functools import lru_cache

from app.config import get_metric_ingestion_settings
from app.domain.metric_record import LIST_FIELDS, MetricRecord

EXPORT_FIELDS: tuple[str, ...] = (
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
    "description",
    "methodology",
    "data_source",
    "interpretation",
    "significance",
    "benchmarks",
    "recommendations",
)

LIST_SEPARATOR = "; "


class MetricExportService:
    """
    Serializes records to delimited text. Cells containing the delimiter or a
    quote are quoted; line breaks inside values are flattened to spaces so
    every record stays on one line.
    """

    def __init__(self, *, delimiter: str = ",") -> None:
        self._delimiter = delimiter

    def export_csv(self, records: Sequence[MetricRecord]) -> str:
        return "".join(self.iter_csv(records))

    def iter_csv(self, records: Sequence[MetricRecord]) -> Iterator[str]:
        buf = io.StringIO()
        writer = csv.DictWriter(
            buf,
            fieldnames=EXPORT_FIELDS,
            delimiter=self._delimiter,
            extrasaction="ignore",
            restval="",
            lineterminator="\r\n",
        )
        writer.writeheader()
        yield buf.getvalue()

        for record in records:
            buf.seek(0)
            buf.truncate(0)
            writer.writerow(self._to_row(record))
            yield buf.getvalue()

    @staticmethod
    def _to_row(record: MetricRecord) -> dict[str, str]:
        row: dict[str, str] = {}
        for name in EXPORT_FIELDS:
            value = getattr(record, name)
            if name in LIST_FIELDS:
                text = LIST_SEPARATOR.join(value)
            elif value is None:
                text = ""
            else:
                text = str(value)
            row[name] = " ".join(text.splitlines()) if "\n" in text or "\r" in text else text
        return row


@lru_cache(maxsize=1)
def get_metric_export_service() -> MetricExportService:
    return MetricExportService(delimiter=get_metric_ingestion_settings().delimiter)
