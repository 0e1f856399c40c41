"""
app/parsers package marker.
"""

from app.parsers.delimited_parser import (
    DelimitedRowParser,
    HeaderValidationError,
    ParsedRow,
    ParsedRows,
    RowParseError,
    split_list_field,
)

__all__ = [
    "DelimitedRowParser",
    "HeaderValidationError",
    "ParsedRow",
    "ParsedRows",
    "RowParseError",
    "split_list_field",
]
