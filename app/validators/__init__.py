"""
app/validators package marker.
"""

from app.validators.mapping_validator import HeaderMappingError, MappingErrorDetail, MappingValidator
from app.validators.metric_validator import MetricRowValidator, extract_numeric_value

__all__ = [
    "HeaderMappingError",
    "MappingErrorDetail",
    "MappingValidator",
    "MetricRowValidator",
    "extract_numeric_value",
]
