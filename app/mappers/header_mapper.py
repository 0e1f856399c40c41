"""
app/mappers/header_mapper.py

Header mapping engine for metric uploads.

Resolves free-form column labels (``Section``, ``Field``, ``DataSource``,
``metric_key`` ...) to canonical metric columns. Resolution order per
column: manual override, exact or alias match, then fuzzy match.
"""

from __future__ import annotations

from dataclasses import dataclass
from difflib import SequenceMatcher
from typing import Mapping, Sequence

from app.normalizers.labels import normalize_header
from app.validators.mapping_validator import MappingErrorDetail, MappingValidator, HeaderMappingError

CANONICAL_FIELDS: tuple[str, ...] = (
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

REQUIRED_CANONICAL_FIELDS: tuple[str, ...] = ("section_key", "current_value")

# At least one field of each group must be mapped.
REQUIRED_ANY_FIELDS: tuple[tuple[str, ...], ...] = (("metric_name", "metric_key"),)

DEFAULT_COLUMN_ALIASES: dict[str, tuple[str, ...]] = {
    "section_key": ("section", "section_name", "dashboard_section"),
    "category": ("metric_category", "group", "category_name"),
    "metric_key": ("key", "metric_id", "field_key"),
    "metric_name": ("field", "metric", "field_name", "name", "kpi", "label"),
    "display_order": ("order", "sort_order", "position"),
    "current_value": ("value", "current", "amount", "metric_value"),
    "previous_value": ("previous", "prior_value", "last_value"),
    "target_value": ("target", "goal"),
    "unit": ("units", "currency"),
    "format_type": ("format", "value_format"),
    "change_value": ("change", "delta"),
    "change_direction": ("direction", "trend"),
    "color_theme": ("color", "theme"),
    "icon_name": ("icon",),
    "description": ("details", "summary"),
    "methodology": ("method", "calculation"),
    "data_source": ("source", "datasource"),
    "interpretation": ("meaning",),
    "significance": ("importance",),
    "benchmarks": ("benchmark",),
    "recommendations": ("recommendation",),
}


@dataclass(frozen=True)
class MappingResolution:
    """
    Final resolved mapping metadata.
    """

    canonical_to_source: dict[str, str]
    source_headers: tuple[str, ...]
    match_strategies: dict[str, str]


class HeaderMapper:
    """
    Resolves source headers into canonical metric column mappings.
    """

    def __init__(
        self,
        *,
        aliases: Mapping[str, Sequence[str]] | None = None,
        validator: MappingValidator | None = None,
        fuzzy_threshold: float = 0.84,
    ) -> None:
        self._aliases: dict[str, tuple[str, ...]] = {
            canonical: tuple(values)
            for canonical, values in (aliases or DEFAULT_COLUMN_ALIASES).items()
        }
        self._validator = validator or MappingValidator(
            required_fields=REQUIRED_CANONICAL_FIELDS,
            canonical_fields=CANONICAL_FIELDS,
            required_any=REQUIRED_ANY_FIELDS,
        )
        self._fuzzy_threshold = max(0.0, min(1.0, fuzzy_threshold))

    def required_column_groups(
        self,
        manual_overrides: Mapping[str, str] | None = None,
    ) -> list[tuple[str, ...]]:
        """
        Header alias groups a document must contain before any row is read.

        A manual override adds its source column to the group of the field it
        maps, so an override can supply a required column under any header.
        """

        overrides = {field.strip(): column for field, column in (manual_overrides or {}).items() if column}

        def aliases_for(field: str) -> tuple[str, ...]:
            extra = (overrides[field],) if field in overrides else ()
            return (field, *self._aliases.get(field, ()), *extra)

        groups = [aliases_for(field) for field in REQUIRED_CANONICAL_FIELDS]
        for any_group in REQUIRED_ANY_FIELDS:
            merged: list[str] = []
            for field in any_group:
                merged.extend(aliases_for(field))
            groups.append(tuple(merged))
        return groups

    def resolve_mapping(
        self,
        headers: Sequence[str],
        *,
        manual_overrides: Mapping[str, str] | None = None,
    ) -> MappingResolution:
        """
        Resolve canonical-to-source mapping from headers and overrides.

        Exact and alias matches are claimed for every column before any
        fuzzy matching, so a fuzzy candidate never takes a header that
        names another column outright.
        """

        source_headers = tuple(header for header in headers if header and header.strip())
        if not source_headers:
            raise HeaderMappingError(
                message="Headers are empty; cannot resolve column mapping.",
                errors=[
                    MappingErrorDetail(
                        code="empty_headers",
                        message="No headers were provided.",
                    )
                ],
            )
        normalized_header_lookup: dict[str, str] = {}
        for header in source_headers:
            normalized = normalize_header(header)
            if normalized and normalized not in normalized_header_lookup:
                normalized_header_lookup[normalized] = header

        resolved: dict[str, str] = {}
        strategies: dict[str, str] = {}
        mapping_errors: list[MappingErrorDetail] = []

        for canonical_field, source_column in (manual_overrides or {}).items():
            normalized_canonical = canonical_field.strip()
            if normalized_canonical not in CANONICAL_FIELDS:
                mapping_errors.append(
                    MappingErrorDetail(
                        code="invalid_override_field",
                        message="Manual override contains unknown canonical field.",
                        canonical_field=normalized_canonical,
                        source_column=source_column,
                    )
                )
                continue

            matched_source = normalized_header_lookup.get(normalize_header(source_column))
            if matched_source is None:
                mapping_errors.append(
                    MappingErrorDetail(
                        code="override_source_not_found",
                        message="Manual override points to a source column not present in headers.",
                        canonical_field=normalized_canonical,
                        source_column=source_column,
                        context={"source_headers": list(source_headers)},
                    )
                )
                continue

            resolved[normalized_canonical] = matched_source
            strategies[normalized_canonical] = "override"

        used_headers = set(resolved.values())
        for canonical_field in CANONICAL_FIELDS:
            if canonical_field in resolved:
                continue
            exact = self._find_exact_or_alias_match(
                canonical_field=canonical_field,
                normalized_header_lookup=normalized_header_lookup,
            )
            if exact is not None and exact not in used_headers:
                resolved[canonical_field] = exact
                strategies[canonical_field] = "exact_or_alias"
                used_headers.add(exact)

        for canonical_field in CANONICAL_FIELDS:
            if canonical_field in resolved:
                continue
            fuzzy_match = self._find_best_fuzzy_match(
                canonical_field=canonical_field,
                normalized_header_lookup=normalized_header_lookup,
                used_headers=used_headers,
            )
            if fuzzy_match is not None:
                resolved[canonical_field] = fuzzy_match
                strategies[canonical_field] = "fuzzy"
                used_headers.add(fuzzy_match)

        self._validator.validate(
            mapping=resolved,
            source_headers=source_headers,
            pre_errors=mapping_errors,
        )
        return MappingResolution(
            canonical_to_source=resolved,
            source_headers=source_headers,
            match_strategies=strategies,
        )

    def map_row(
        self,
        *,
        raw_row: Mapping[str, str | None],
        mapping: MappingResolution,
    ) -> dict[str, str | None]:
        """
        Map one source row into canonical raw field values.
        """

        return {
            canonical_field: raw_row.get(source_column)
            for canonical_field, source_column in mapping.canonical_to_source.items()
        }

    def _find_exact_or_alias_match(
        self,
        *,
        canonical_field: str,
        normalized_header_lookup: Mapping[str, str],
    ) -> str | None:
        candidates = (
            canonical_field,
            *self._aliases.get(canonical_field, ()),
        )
        for candidate in candidates:
            match = normalized_header_lookup.get(normalize_header(candidate))
            if match:
                return match
        return None

    def _find_best_fuzzy_match(
        self,
        *,
        canonical_field: str,
        normalized_header_lookup: Mapping[str, str],
        used_headers: set[str],
    ) -> str | None:
        alias_candidates = [canonical_field, *self._aliases.get(canonical_field, ())]
        normalized_candidates = [normalize_header(item) for item in alias_candidates if normalize_header(item)]
        if not normalized_candidates:
            return None

        best_header: str | None = None
        best_score = 0.0
        for header_norm, header_raw in normalized_header_lookup.items():
            if header_raw in used_headers:
                continue
            for candidate in normalized_candidates:
                score = SequenceMatcher(None, header_norm, candidate).ratio()
                if len(header_norm) >= 4 and (header_norm in candidate or candidate in header_norm):
                    score = max(score, 0.9)
                if score > best_score:
                    best_score = score
                    best_header = header_raw

        if best_header is not None and best_score >= self._fuzzy_threshold:
            return best_header
        return None
