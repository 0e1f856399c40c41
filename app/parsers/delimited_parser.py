"""
app/parsers/delimited_parser.py

Line-oriented delimited text parser.

Produces header-keyed rows from raw text without any knowledge of metric
semantics. Malformed lines are reported per row; only a missing or
incomplete header row is fatal.
"""

from __future__ import annotations

import csv
import re
from collections.abc import Iterator, Sequence
from dataclasses import dataclass

from app.normalizers.labels import normalize_header

_LIST_SEPARATORS = re.compile(r"[,;]")


class HeaderValidationError(ValueError):
    """
    Raised when the header row is missing or lacks a required column.
    """

    def __init__(
        self,
        message: str,
        *,
        missing_columns: Sequence[str] = (),
        headers: Sequence[str] = (),
    ) -> None:
        super().__init__(message)
        self.message = message
        self.missing_columns = tuple(missing_columns)
        self.headers = tuple(headers)

    def to_dict(self) -> dict[str, object]:
        return {
            "message": self.message,
            "missing_columns": list(self.missing_columns),
            "headers": list(self.headers),
        }


@dataclass(frozen=True)
class RowParseError:
    line_number: int
    message: str


@dataclass(frozen=True)
class ParsedRow:
    """
    One data line keyed by header label. ``line_number`` is 1-based.
    """

    line_number: int
    values: dict[str, str]


class ParsedRows:
    """
    Restartable view over the data lines of one document.

    Every ``iter()`` starts again at the first data line. ``errors`` holds
    the malformed lines seen by the most recent pass.
    """

    def __init__(
        self,
        *,
        lines: Sequence[str],
        headers: tuple[str, ...],
        header_index: int,
        delimiter: str,
        quote: str,
    ) -> None:
        self._lines = lines
        self._headers = headers
        self._header_index = header_index
        self._delimiter = delimiter
        self._quote = quote
        self._errors: list[RowParseError] = []

    @property
    def headers(self) -> tuple[str, ...]:
        return self._headers

    @property
    def errors(self) -> list[RowParseError]:
        return list(self._errors)

    def count(self) -> int:
        """
        Number of non-blank data lines, well-formed or not.
        """

        return sum(1 for line in self._lines[self._header_index + 1 :] if line.strip())

    def __iter__(self) -> Iterator[ParsedRow]:
        self._errors = []
        return self._iterate(self._errors)

    def _iterate(self, errors: list[RowParseError]) -> Iterator[ParsedRow]:
        expected = len(self._headers)
        for index in range(self._header_index + 1, len(self._lines)):
            line = self._lines[index]
            if not line.strip():
                continue

            line_number = index + 1
            try:
                fields = split_line(line, delimiter=self._delimiter, quote=self._quote)
            except csv.Error as exc:
                errors.append(RowParseError(line_number=line_number, message=f"Malformed line: {exc}"))
                continue

            if len(fields) != expected:
                errors.append(
                    RowParseError(
                        line_number=line_number,
                        message=f"Expected {expected} fields but found {len(fields)}.",
                    )
                )
                continue

            yield ParsedRow(line_number=line_number, values=dict(zip(self._headers, fields)))


class DelimitedRowParser:
    """
    Splits text into header-keyed rows.

    Quoted spans protect delimiters; a doubled quote inside a quoted span is
    a literal quote.
    """

    def __init__(self, delimiter: str = ",", quote: str = '"') -> None:
        if len(delimiter) != 1 or len(quote) != 1:
            raise ValueError("delimiter and quote must be single characters.")
        self._delimiter = delimiter
        self._quote = quote

    @property
    def delimiter(self) -> str:
        return self._delimiter

    def parse(
        self,
        text: str,
        *,
        required_columns: Sequence[Sequence[str]] = (),
    ) -> ParsedRows:
        """
        Locate and validate the header row, returning a lazy row view.

        ``required_columns`` is a list of alias groups; each group must match
        at least one header (case and punctuation insensitive).
        """

        lines = [line.rstrip("\r") for line in text.lstrip("\ufeff").split("\n")]
        header_index = next((index for index, line in enumerate(lines) if line.strip()), None)
        if header_index is None:
            raise HeaderValidationError("Header row is missing.")

        try:
            headers = tuple(split_line(lines[header_index], delimiter=self._delimiter, quote=self._quote))
        except csv.Error as exc:
            raise HeaderValidationError(f"Header row is malformed: {exc}") from exc

        normalized = {normalize_header(header) for header in headers if header}
        missing = [
            group[0]
            for group in required_columns
            if group and not any(normalize_header(alias) in normalized for alias in group)
        ]
        if missing:
            raise HeaderValidationError(
                f"Header row is missing required columns: {', '.join(missing)}.",
                missing_columns=missing,
                headers=headers,
            )

        return ParsedRows(
            lines=lines,
            headers=headers,
            header_index=header_index,
            delimiter=self._delimiter,
            quote=self._quote,
        )


def split_line(line: str, *, delimiter: str = ",", quote: str = '"') -> list[str]:
    reader = csv.reader([line], delimiter=delimiter, quotechar=quote, skipinitialspace=True, strict=True)
    fields = next(reader, [])
    return [field.strip() for field in fields]


def split_list_field(value: str | None) -> tuple[str, ...]:
    """
    Split a benchmarks/recommendations cell on commas or semicolons.
    """

    if not value or not value.strip():
        return ()
    return tuple(item.strip() for item in _LIST_SEPARATORS.split(value) if item.strip())
