"""
app/mappers package marker.
"""

from app.mappers.header_mapper import (
    CANONICAL_FIELDS,
    REQUIRED_CANONICAL_FIELDS,
    HeaderMapper,
    MappingResolution,
)

__all__ = [
    "CANONICAL_FIELDS",
    "REQUIRED_CANONICAL_FIELDS",
    "HeaderMapper",
    "MappingResolution",
]
