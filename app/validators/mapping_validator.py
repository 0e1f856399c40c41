"""
app/validators/mapping_validator.py

Checks a resolved canonical-field -> source-column mapping for a metric file
before any row is read.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import asdict, dataclass
from typing import Any, Mapping, Sequence


@dataclass(frozen=True)
class MappingErrorDetail:
    """
    One problem found while mapping headers onto canonical metric fields.
    """

    code: str
    message: str
    canonical_field: str | None = None
    source_column: str | None = None
    context: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class HeaderMappingError(ValueError):
    """
    Raised when the headers of a metric file cannot be mapped safely.
    """

    def __init__(self, *, message: str, errors: Sequence[MappingErrorDetail]) -> None:
        super().__init__(message)
        self.message = message
        self.errors = tuple(errors)

    @property
    def missing_fields(self) -> list[str]:
        return _missing_fields(self.errors)

    def to_dict(self) -> dict[str, Any]:
        return {
            "message": self.message,
            "missing_fields": self.missing_fields,
            "errors": [error.to_dict() for error in self.errors],
        }


class MappingValidator:
    """
    Validates a metric header mapping.

    ``required_fields`` must all be mapped; each group in ``required_any``
    needs at least one mapped member (a metric row is identified by either
    its key or its display name). A source column may feed one canonical
    field only.
    """

    def __init__(
        self,
        *,
        required_fields: Sequence[str],
        canonical_fields: Sequence[str],
        required_any: Sequence[Sequence[str]] = (),
    ) -> None:
        self._required_fields = tuple(required_fields)
        self._required_any = tuple(tuple(group) for group in required_any)
        self._canonical_set = frozenset(canonical_fields)

    def validate(
        self,
        *,
        mapping: Mapping[str, str],
        source_headers: Sequence[str],
        pre_errors: Sequence[MappingErrorDetail] | None = None,
    ) -> None:
        errors: list[MappingErrorDetail] = list(pre_errors or [])
        headers = set(source_headers)
        header_context = {"source_headers": list(source_headers)}

        for canonical_field, source_column in mapping.items():
            if canonical_field not in self._canonical_set:
                errors.append(
                    MappingErrorDetail(
                        code="invalid_canonical_field",
                        message="Unknown metric field in mapping.",
                        canonical_field=canonical_field,
                        source_column=source_column,
                    )
                )
            if source_column not in headers:
                errors.append(
                    MappingErrorDetail(
                        code="unknown_source_column",
                        message="Mapped column does not exist in the file headers.",
                        canonical_field=canonical_field,
                        source_column=source_column,
                        context=header_context,
                    )
                )

        claims = Counter(mapping.values())
        for source_column, count in sorted(claims.items()):
            if count > 1:
                errors.append(
                    MappingErrorDetail(
                        code="duplicate_source_column",
                        message="Column is mapped to more than one metric field.",
                        source_column=source_column,
                        context={
                            "canonical_fields": sorted(
                                field for field, column in mapping.items() if column == source_column
                            )
                        },
                    )
                )

        for required in self._required_fields:
            if required not in mapping:
                errors.append(
                    MappingErrorDetail(
                        code="required_field_unmapped",
                        message="Required metric field is not mapped.",
                        canonical_field=required,
                        context=header_context,
                    )
                )

        for group in self._required_any:
            if not any(field in mapping for field in group):
                errors.append(
                    MappingErrorDetail(
                        code="required_field_unmapped",
                        message=f"One of {', '.join(group)} must be mapped.",
                        canonical_field=group[0],
                        context={**header_context, "alternatives": list(group)},
                    )
                )

        if errors:
            missing = ", ".join(_missing_fields(errors)) or "none"
            raise HeaderMappingError(
                message=f"Column mapping validation failed. Missing required fields: {missing}.",
                errors=errors,
            )


def _missing_fields(errors: Sequence[MappingErrorDetail]) -> list[str]:
    return sorted(
        {
            error.canonical_field
            for error in errors
            if error.code == "required_field_unmapped" and error.canonical_field
        }
    )
