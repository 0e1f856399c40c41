"""
app/reconcilers package marker.
"""

from app.reconcilers.metric_shapes import (
    LEGACY_SHAPE,
    VERSIONED_SHAPE,
    LegacyMetricShape,
    MetricShapeStrategy,
    ShapeSelector,
    VersionedMetricShape,
)

__all__ = [
    "LEGACY_SHAPE",
    "VERSIONED_SHAPE",
    "LegacyMetricShape",
    "MetricShapeStrategy",
    "ShapeSelector",
    "VersionedMetricShape",
]
