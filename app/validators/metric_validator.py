"""
app/validators/metric_validator.py

Row-level validation and normalization for metric ingestion.
"""

from __future__ import annotations

import re
from typing import Any, Mapping

from app.domain.metric_ingestion import RowValidationError
from app.domain.metric_record import (
    CHANGE_DIRECTIONS,
    DEFAULT_METRIC_DEFAULTS,
    FORMAT_TYPES,
    MetricDefaults,
    MetricRecord,
)
from app.normalizers.key_normalizer import KeyNormalizer
from app.normalizers.labels import label_words
from app.parsers.delimited_parser import split_list_field

# Metric names containing one of these words hold a 0-100 value.
BOUNDED_METRIC_WORDS: frozenset[str] = frozenset({"percentage", "percent", "rate", "efficiency"})
PERCENTAGE_BOUNDS: tuple[float, float] = (0.0, 100.0)

_NON_NUMERIC_CHARS = re.compile(r"[^\d.\-]")


def extract_numeric_value(value: str | None) -> float | None:
    """
    Parse a display value such as ``"EGP 6.36"`` or ``"27%"`` into a float.
    """

    if value is None:
        return None
    cleaned = _NON_NUMERIC_CHARS.sub("", str(value))
    if not cleaned:
        return None
    try:
        return float(cleaned)
    except ValueError:
        return None


class MetricRowValidator:
    """
    Validates mapped row values and builds canonical metric records.
    """

    def __init__(
        self,
        *,
        normalizer: KeyNormalizer | None = None,
        defaults: MetricDefaults = DEFAULT_METRIC_DEFAULTS,
    ) -> None:
        self._normalizer = normalizer or KeyNormalizer()
        self._defaults = defaults

    def is_completely_empty_row(self, row: Mapping[str, Any]) -> bool:
        return all(self._is_blank(value) for value in row.values())

    def validate_mapped_row(
        self,
        *,
        mapped_row: Mapping[str, str | None],
        row_number: int,
    ) -> tuple[MetricRecord | None, list[RowValidationError]]:
        """
        Validate one mapped row.

        Returns the record, or ``None`` with every problem found in the row.
        """

        errors: list[RowValidationError] = []

        section_raw = self._parse_required_string(
            value=mapped_row.get("section_key"),
            row_number=row_number,
            column="section_key",
            errors=errors,
        )
        section_key = self._normalizer.to_section_key(section_raw)
        if section_raw and not section_key:
            errors.append(
                RowValidationError(
                    row_number=row_number,
                    column="section_key",
                    message="Section does not contain any letters or digits.",
                    value=section_raw,
                )
            )

        metric_name = self._parse_optional_string(mapped_row.get("metric_name"))
        metric_key_raw = self._parse_optional_string(mapped_row.get("metric_key"))
        metric_key = self._normalizer.metric_key_for(metric_key_raw, metric_name)
        if not metric_key:
            errors.append(
                RowValidationError(
                    row_number=row_number,
                    column="metric_name",
                    message="Required value is missing.",
                    value=metric_name or metric_key_raw,
                )
            )

        current_value = self._parse_required_string(
            value=mapped_row.get("current_value"),
            row_number=row_number,
            column="current_value",
            errors=errors,
        )

        display_order = self._parse_display_order(
            value=mapped_row.get("display_order"),
            row_number=row_number,
            errors=errors,
        )
        format_type = self._parse_choice(
            value=mapped_row.get("format_type"),
            allowed=FORMAT_TYPES,
            default=self._defaults.format_type,
            row_number=row_number,
            column="format_type",
            errors=errors,
        )
        change_direction = self._parse_choice(
            value=mapped_row.get("change_direction"),
            allowed=CHANGE_DIRECTIONS,
            default=None,
            row_number=row_number,
            column="change_direction",
            errors=errors,
        )

        if current_value and metric_key and self.is_bounded_metric(metric_key, format_type):
            self._validate_bounded_value(
                value=current_value,
                row_number=row_number,
                errors=errors,
            )

        if errors:
            return None, errors

        return (
            MetricRecord(
                section_key=section_key,
                category=self._parse_optional_string(mapped_row.get("category")) or self._defaults.category,
                metric_key=metric_key,
                metric_name=metric_name or metric_key_raw or metric_key,
                display_order=display_order,
                current_value=current_value,
                previous_value=self._parse_optional_string(mapped_row.get("previous_value")),
                target_value=self._parse_optional_string(mapped_row.get("target_value")),
                unit=self._parse_optional_string(mapped_row.get("unit")),
                format_type=format_type or self._defaults.format_type,
                change_value=self._parse_optional_string(mapped_row.get("change_value")),
                change_direction=change_direction,
                color_theme=self._parse_optional_string(mapped_row.get("color_theme")) or self._defaults.color_theme,
                icon_name=self._parse_optional_string(mapped_row.get("icon_name")),
                description=self._parse_optional_string(mapped_row.get("description")),
                methodology=self._parse_optional_string(mapped_row.get("methodology")),
                data_source=self._parse_optional_string(mapped_row.get("data_source")),
                interpretation=self._parse_optional_string(mapped_row.get("interpretation")),
                significance=self._parse_optional_string(mapped_row.get("significance")),
                benchmarks=split_list_field(mapped_row.get("benchmarks")),
                recommendations=split_list_field(mapped_row.get("recommendations")),
            ),
            [],
        )

    def validate_record(self, record: MetricRecord, *, row_number: int = 0) -> list[RowValidationError]:
        """
        Check an already-built record, as submitted directly or from the inventory.
        """

        errors: list[RowValidationError] = []
        for column in ("section_key", "category", "metric_key", "metric_name", "current_value"):
            if self._is_blank(getattr(record, column)):
                errors.append(
                    RowValidationError(
                        row_number=row_number,
                        column=column,
                        message="Required value is missing.",
                    )
                )
        if record.format_type not in FORMAT_TYPES:
            errors.append(
                RowValidationError(
                    row_number=row_number,
                    column="format_type",
                    message=f"Unsupported format_type. Allowed values: {', '.join(sorted(FORMAT_TYPES))}.",
                    value=record.format_type,
                )
            )
        if record.change_direction is not None and record.change_direction not in CHANGE_DIRECTIONS:
            errors.append(
                RowValidationError(
                    row_number=row_number,
                    column="change_direction",
                    message=f"Unsupported change_direction. Allowed values: {', '.join(sorted(CHANGE_DIRECTIONS))}.",
                    value=record.change_direction,
                )
            )
        if record.current_value and self.is_bounded_metric(record.metric_key, record.format_type):
            self._validate_bounded_value(value=record.current_value, row_number=row_number, errors=errors)
        return errors

    @staticmethod
    def is_bounded_metric(metric_key: str, format_type: str | None) -> bool:
        if format_type == "percentage":
            return True
        return any(word in BOUNDED_METRIC_WORDS for word in label_words(metric_key))

    def _validate_bounded_value(
        self,
        *,
        value: str,
        row_number: int,
        errors: list[RowValidationError],
    ) -> None:
        number = extract_numeric_value(value)
        low, high = PERCENTAGE_BOUNDS
        if number is None:
            errors.append(
                RowValidationError(
                    row_number=row_number,
                    column="current_value",
                    message="Value should be a number.",
                    value=value,
                )
            )
        elif number < low or number > high:
            errors.append(
                RowValidationError(
                    row_number=row_number,
                    column="current_value",
                    message=f"Value should be between {low:g} and {high:g}.",
                    value=value,
                )
            )

    def _parse_display_order(
        self,
        *,
        value: str | None,
        row_number: int,
        errors: list[RowValidationError],
    ) -> int:
        if self._is_blank(value):
            return row_number
        raw = str(value).strip()
        try:
            return int(raw)
        except ValueError:
            errors.append(
                RowValidationError(
                    row_number=row_number,
                    column="display_order",
                    message="display_order must be an integer.",
                    value=raw,
                )
            )
            return row_number

    def _parse_choice(
        self,
        *,
        value: str | None,
        allowed: frozenset[str],
        default: str | None,
        row_number: int,
        column: str,
        errors: list[RowValidationError],
    ) -> str | None:
        if self._is_blank(value):
            return default
        normalized = str(value).strip().lower()
        if normalized not in allowed:
            errors.append(
                RowValidationError(
                    row_number=row_number,
                    column=column,
                    message=f"Unsupported {column}. Allowed values: {', '.join(sorted(allowed))}.",
                    value=self._stringify_value(value),
                )
            )
        return normalized

    def _parse_required_string(
        self,
        *,
        value: Any,
        row_number: int,
        column: str,
        errors: list[RowValidationError],
    ) -> str:
        if self._is_blank(value):
            errors.append(
                RowValidationError(
                    row_number=row_number,
                    column=column,
                    message="Required value is missing.",
                    value=self._stringify_value(value),
                )
            )
            return ""
        return str(value).strip()

    def _parse_optional_string(self, value: str | None) -> str | None:
        if self._is_blank(value):
            return None
        return str(value).strip()

    @staticmethod
    def _is_blank(value: Any) -> bool:
        if value is None:
            return True
        return str(value).strip() == ""

    @staticmethod
    def _stringify_value(value: Any) -> str | None:
        if value is None:
            return None
        return str(value)
