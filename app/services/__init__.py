"""
app/services package marker.
"""

from app.services.change_notifier import ChangeNotifier, MetricSubscription, SubscriptionGapError
from app.services.dashboard_projector import DashboardProjection, DashboardProjector
from app.services.inventory_seeder import InventorySeeder, SeedResult, get_inventory_seeder
from app.services.metric_export_service import MetricExportService, get_metric_export_service
from app.services.metric_ingestion_service import (
    CSVHeaderValidationError,
    CSVSchemaMappingError,
    MetricIngestionService,
    MetricRecordValidationError,
    get_metric_ingestion_service,
)

__all__ = [
    "ChangeNotifier",
    "CSVHeaderValidationError",
    "CSVSchemaMappingError",
    "DashboardProjection",
    "DashboardProjector",
    "get_inventory_seeder",
    "get_metric_export_service",
    "get_metric_ingestion_service",
    "InventorySeeder",
    "MetricExportService",
    "MetricIngestionService",
    "MetricRecordValidationError",
    "MetricSubscription",
    "SeedResult",
    "SubscriptionGapError",
]
